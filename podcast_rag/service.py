import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from .chunking import Chunker
from .config import MAX_QUERY_CHARS, RetrievalConfig, Settings
from .console import console
from .corpus import Corpus
from .embeddings import EmbeddingCache, EmbeddingProvider, build_embedding_provider
from .generation import ChatCompleter, build_messages
from .models import Confidence, RetrievalCandidate
from .retrieval import Retriever
from .topics import TopicTagger


class QueryValidationError(ValueError):
    pass


class AnswerStatus(str, Enum):
    OK = "ok"
    NO_RESULTS = "no_results"
    INVALID = "invalid"
    ERROR = "error"
    UNAVAILABLE = "unavailable"


def validate_query(text: object, max_chars: int = MAX_QUERY_CHARS) -> str:
    """Return the trimmed query or raise QueryValidationError."""
    if not isinstance(text, str):
        raise QueryValidationError("Valid message is required")
    cleaned = text.strip()
    if not cleaned:
        raise QueryValidationError("Message cannot be empty")
    if len(cleaned) > max_chars:
        raise QueryValidationError(f"Message too long. Please keep it under {max_chars} characters.")
    return cleaned


def no_results_message(question: str) -> str:
    return (
        f"I don't have relevant information about \"{question}\" in the available episodes. "
        "Try asking about topics that were specifically discussed in the podcast."
    )


@dataclass
class Answer:
    status: AnswerStatus
    text: Optional[str] = None
    candidates: List[RetrievalCandidate] = field(default_factory=list)
    metadata: Dict = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "answer": self.text,
            "snippets": [c.to_dict() for c in self.candidates],
            "metadata": self.metadata,
        }


class PodcastQA:
    """Query surface over one corpus: validation, retrieval, answer synthesis, status."""

    def __init__(
        self,
        corpus: Corpus,
        completer: ChatCompleter,
        config: Optional[RetrievalConfig] = None,
        tagger: Optional[TopicTagger] = None,
    ) -> None:
        self.corpus = corpus
        self.embeddings = corpus.embeddings
        self.completer = completer
        self.config = config or RetrievalConfig()
        self.tagger = tagger or TopicTagger()
        self._retriever: Optional[Retriever] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        provider: Optional[EmbeddingProvider] = None,
        completer: Optional[ChatCompleter] = None,
    ) -> "PodcastQA":
        config = settings.retrieval
        tagger = TopicTagger()
        if provider is None:
            try:
                provider = build_embedding_provider(settings)
            except (RuntimeError, ValueError, OSError) as e:
                console.log(f"[yellow]Embedding provider unavailable ({e}); semantic search disabled[/yellow]")
                provider = None
        embeddings = EmbeddingCache(provider, config)
        corpus = Corpus(settings.transcripts_dir, Chunker(config, tagger), embeddings)
        return cls(
            corpus=corpus,
            completer=completer or ChatCompleter.from_settings(settings),
            config=config,
            tagger=tagger,
        )

    async def initialize(self) -> None:
        await self.corpus.initialize()
        if self.corpus.ready and self._retriever is None:
            self._retriever = Retriever(self.corpus.units, self.embeddings, self.config, self.tagger)

    async def search(self, question: object, top_k: Optional[int] = None) -> Answer:
        """Retrieve ranked candidates without generating an answer."""
        t_start = time.time()
        try:
            query = validate_query(question)
        except QueryValidationError as e:
            return Answer(status=AnswerStatus.INVALID, text=str(e))

        await self.initialize()
        if self._retriever is None:
            return Answer(
                status=AnswerStatus.ERROR,
                text=f"System error: {self.corpus.error}",
                metadata=self._metadata(query, t_start, [], None),
            )

        result = await self._retriever.search(query, top_k=top_k)
        status = AnswerStatus.OK if result.candidates else AnswerStatus.NO_RESULTS
        text = None if result.candidates else no_results_message(query)
        return Answer(
            status=status,
            text=text,
            candidates=result.candidates,
            metadata=self._metadata(query, t_start, result.candidates, result.mode),
        )

    async def ask(self, question: object, top_k: Optional[int] = None) -> Answer:
        t_start = time.time()
        if isinstance(question, str) and not question.strip():
            return Answer(status=AnswerStatus.INVALID, text="Please ask me a question about the podcast!")

        found = await self.search(question, top_k=top_k)
        if found.status is not AnswerStatus.OK:
            return found

        query = validate_query(question)
        messages = build_messages(query, found.candidates)
        text = await self.completer.complete(messages)
        found.metadata["processing_ms"] = int((time.time() - t_start) * 1000)
        if text is None:
            return Answer(
                status=AnswerStatus.UNAVAILABLE,
                text="Answer generation is unavailable right now. The most relevant excerpts are attached.",
                candidates=found.candidates,
                metadata=found.metadata,
            )
        return Answer(status=AnswerStatus.OK, text=text, candidates=found.candidates, metadata=found.metadata)

    def status(self) -> Dict:
        """Diagnostic snapshot. Does not trigger initialization."""
        snapshot = self.corpus.snapshot()
        snapshot.update(
            {
                "embedding_available": self.embeddings.available,
                "completion_available": self.completer.available,
            }
        )
        return snapshot

    def _metadata(
        self,
        query: str,
        t_start: float,
        candidates: List[RetrievalCandidate],
        mode: Optional[str],
    ) -> Dict:
        breakdown = Counter(c.confidence.value for c in candidates)
        return {
            "processing_ms": int((time.time() - t_start) * 1000),
            "candidate_count": len(candidates),
            "confidence": {level.value: breakdown.get(level.value, 0) for level in Confidence},
            "mode": mode,
            "message_length": len(query),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
