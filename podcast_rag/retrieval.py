import itertools
import time
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .config import RetrievalConfig
from .console import console
from .embeddings import EmbeddingCache
from .models import Confidence, RetrievalCandidate, TextUnit, Vector
from .scoring import cosine_similarity, lexical_score
from .topics import Topic, TopicTagger, expand_query


MODE_HYBRID = "hybrid"
MODE_LEXICAL = "lexical"


@dataclass
class RetrievalResult:
    candidates: List[RetrievalCandidate]
    mode: str
    query_topics: FrozenSet[Topic] = frozenset()
    semantic_count: int = 0
    lexical_count: int = 0
    elapsed_ms: int = 0


def fuse(*stages: Iterable[TextUnit]) -> List[TextUnit]:
    """Concatenate stage outputs, keeping the first occurrence of each unit id."""
    seen = set()
    fused: List[TextUnit] = []
    for unit in itertools.chain(*stages):
        if unit.id in seen:
            continue
        seen.add(unit.id)
        fused.append(unit)
    return fused


def topic_overlap(query_topics: FrozenSet[Topic], unit: TextUnit) -> float:
    if not query_topics:
        return 0.5  # Neutral if no topics detected
    return len(query_topics & unit.topics) / len(query_topics)


class Retriever:
    """Multi-stage retrieval over a read-only list of units.

    Stages: topic filter, semantic candidates, lexical candidates, fusion,
    composite scoring, rank and truncate. Without a query vector (provider
    failure, or nothing in the corpus embedded) only the lexical stage runs.
    Ties always fall back to corpus order.
    """

    def __init__(
        self,
        units: Sequence[TextUnit],
        embeddings: EmbeddingCache,
        config: Optional[RetrievalConfig] = None,
        tagger: Optional[TopicTagger] = None,
    ) -> None:
        self.units = list(units)
        self.embeddings = embeddings
        self.config = config or RetrievalConfig()
        self.tagger = tagger or TopicTagger()
        self._positions = {u.id: i for i, u in enumerate(self.units)}

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> List[RetrievalCandidate]:
        result = await self.search(query, top_k=top_k)
        return result.candidates

    async def search(self, query: str, top_k: Optional[int] = None) -> RetrievalResult:
        cfg = self.config
        k = cfg.top_k if top_k is None else top_k
        t_start = time.time()
        query = (query or "").strip()
        if not query:
            return RetrievalResult(candidates=[], mode=MODE_LEXICAL)

        # 1) Topic filter
        query_topics = self.tagger.tag(query)
        if query_topics:
            working = [u for u in self.units if u.topics & query_topics]
            console.log(f"[cyan]🎯 Detected topics: {', '.join(sorted(t.value for t in query_topics))} "
                        f"({len(working)}/{len(self.units)} units)[/cyan]")
        else:
            working = self.units

        # 2) Query embedding, only worth it when something in the corpus is embedded
        query_vec: Optional[Vector] = None
        if any(u.embedding is not None for u in self.units):
            query_vec = await self.embeddings.embed(expand_query(query))
            if query_vec is None:
                console.log("[yellow]Query embedding unavailable, falling back to keyword search[/yellow]")
        else:
            console.log("[yellow]No embedded units, using keyword search[/yellow]")

        if query_vec is None:
            lexical = self._lexical_stage(query, self.units)
            candidates = [
                RetrievalCandidate(
                    unit=unit,
                    relevance_score=score,
                    confidence=self.confidence_for(score, bool(query_topics & unit.topics)),
                    explanation=f"lexical-only: lexical={score:.3f}",
                )
                for unit, score in lexical
            ]
            result = RetrievalResult(
                candidates=self._rank(candidates)[:k],
                mode=MODE_LEXICAL,
                query_topics=query_topics,
                lexical_count=len(lexical),
            )
        else:
            semantic = self._semantic_stage(query_vec, working)
            lexical = self._lexical_stage(query, working)
            fused = fuse((u for u, _ in semantic), (u for u, _ in lexical))
            candidates = [c for c in (self._score(query, query_vec, query_topics, u) for u in fused) if c]
            result = RetrievalResult(
                candidates=self._rank(candidates)[:k],
                mode=MODE_HYBRID,
                query_topics=query_topics,
                semantic_count=len(semantic),
                lexical_count=len(lexical),
            )

        result.elapsed_ms = int((time.time() - t_start) * 1000)
        console.log(
            f"[cyan]⏱️  Retrieval ({result.mode}): {result.semantic_count} semantic, "
            f"{result.lexical_count} lexical, {len(result.candidates)} returned ({result.elapsed_ms}ms)[/cyan]"
        )
        return result

    def _semantic_stage(self, query_vec: Vector, units: Sequence[TextUnit]) -> List[Tuple[TextUnit, float]]:
        cfg = self.config
        scored = []
        for unit in units:
            if unit.embedding is None:
                continue
            sim = cosine_similarity(query_vec, unit.embedding)
            if sim > cfg.semantic_floor:
                scored.append((unit, sim))
        return self._rank_pairs(scored)[: cfg.semantic_top_n]

    def _lexical_stage(self, query: str, units: Sequence[TextUnit]) -> List[Tuple[TextUnit, float]]:
        cfg = self.config
        scored = []
        for unit in units:
            score = lexical_score(query, unit.body, cfg.phrase_bonus)
            if score > cfg.lexical_floor:
                scored.append((unit, score))
        return self._rank_pairs(scored)[: cfg.lexical_top_n]

    def _score(
        self,
        query: str,
        query_vec: Vector,
        query_topics: FrozenSet[Topic],
        unit: TextUnit,
    ) -> Optional[RetrievalCandidate]:
        cfg = self.config
        w = cfg.weights
        semantic = max(0.0, cosine_similarity(query_vec, unit.embedding))
        lexical = lexical_score(query, unit.body, cfg.phrase_bonus)
        topic = topic_overlap(query_topics, unit)
        context = lexical_score(query, unit.context, cfg.phrase_bonus)
        composite = min(
            1.0,
            semantic * w.semantic + lexical * w.lexical + topic * w.topic + context * w.context,
        )
        if composite < cfg.final_floor:
            return None
        return RetrievalCandidate(
            unit=unit,
            relevance_score=composite,
            confidence=self.confidence_for(composite, bool(query_topics & unit.topics)),
            explanation=(
                f"semantic={semantic:.3f} lexical={lexical:.3f} "
                f"topic={topic:.2f} context={context:.3f}"
            ),
        )

    def confidence_for(self, score: float, shares_topic: bool) -> Confidence:
        if score > self.config.high_confidence and shares_topic:
            return Confidence.HIGH
        if score > self.config.medium_confidence:
            return Confidence.MEDIUM
        return Confidence.LOW

    def _rank_pairs(self, scored: List[Tuple[TextUnit, float]]) -> List[Tuple[TextUnit, float]]:
        return sorted(scored, key=lambda s: (-s[1], self._positions.get(s[0].id, 0)))

    def _rank(self, candidates: List[RetrievalCandidate]) -> List[RetrievalCandidate]:
        return sorted(candidates, key=lambda c: (-c.relevance_score, self._positions.get(c.unit.id, 0)))
