import asyncio
from typing import Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import DEFAULT_EMBEDDING_MODELS, RetrievalConfig, Settings
from .console import console
from .models import TextUnit, Vector


class MalformedEmbeddingResponse(Exception):
    """The provider answered, but without a usable vector."""


# Lazy import for the optional local provider
def _lazy_import_sentence_transformers():
    try:
        from sentence_transformers import SentenceTransformer
        return SentenceTransformer
    except ImportError as exc:
        raise RuntimeError(
            "sentence-transformers is required for provider=sentence-transformers. Install it first."
        ) from exc


# -----------------------------
# Embeddings Providers
# -----------------------------


class EmbeddingProvider:
    async def embed(self, texts: List[str]) -> List[Vector]:
        raise NotImplementedError


class SentenceTransformersEmbeddingProvider(EmbeddingProvider):
    def __init__(self, model_name: str = DEFAULT_EMBEDDING_MODELS["sentence-transformers"]) -> None:
        SentenceTransformer = _lazy_import_sentence_transformers()
        self.model = SentenceTransformer(model_name)

    async def embed(self, texts: List[str]) -> List[Vector]:
        # encode() is blocking; keep the event loop free while it runs
        embeddings = await asyncio.to_thread(
            self.model.encode, texts, normalize_embeddings=True, show_progress_bar=False
        )
        return [emb.tolist() for emb in embeddings]


class OpenAIEmbeddingProvider(EmbeddingProvider):
    def __init__(self, api_key: str, model_name: str = DEFAULT_EMBEDDING_MODELS["openai"]) -> None:
        self.client = AsyncOpenAI(api_key=api_key)
        # Map common aliases to canonical names
        alias = (model_name or "").strip().replace(":", "-")
        if alias in {"embeddings-3-small", "embedding-3-small", "text-embedding-3-small"}:
            self.model_name = "text-embedding-3-small"
        elif alias in {"embeddings-3-large", "embedding-3-large", "text-embedding-3-large"}:
            self.model_name = "text-embedding-3-large"
        else:
            self.model_name = model_name

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((openai.RateLimitError, openai.APIConnectionError)),
    )
    async def embed(self, texts: List[str]) -> List[Vector]:
        resp = await self.client.embeddings.create(model=self.model_name, input=texts)
        data = getattr(resp, "data", None) or []
        if len(data) != len(texts):
            raise MalformedEmbeddingResponse(f"expected {len(texts)} vectors, got {len(data)}")
        vectors: List[Vector] = []
        for d in data:
            if not getattr(d, "embedding", None):
                raise MalformedEmbeddingResponse("response item has no embedding")
            vectors.append(d.embedding)
        return vectors


def build_embedding_provider(settings: Settings) -> Optional[EmbeddingProvider]:
    """Return the configured provider, or None when its credential is missing."""
    provider = (settings.embedding_provider or "openai").lower()
    if provider in {"sentence-transformers", "sbert", "hf"}:
        return SentenceTransformersEmbeddingProvider(
            model_name=settings.embedding_model or DEFAULT_EMBEDDING_MODELS["sentence-transformers"]
        )
    if provider in {"openai", "oai"}:
        if not settings.openai_api_key:
            console.log("[yellow]OPENAI_API_KEY not set; semantic search disabled, using keyword search[/yellow]")
            return None
        return OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model_name=settings.embedding_model or DEFAULT_EMBEDDING_MODELS["openai"],
        )
    raise ValueError(f"Unsupported embeddings provider: {provider}")


# -----------------------------
# Embedding Cache
# -----------------------------


class EmbeddingCache:
    """Unit id -> vector store, filled once by the bulk pass and never rewritten.

    ``embed`` never raises for provider trouble; it returns None instead.
    """

    def __init__(self, provider: Optional[EmbeddingProvider], config: Optional[RetrievalConfig] = None) -> None:
        self.provider = provider
        self.config = config or RetrievalConfig()
        self._vectors: Dict[str, Vector] = {}

    @property
    def available(self) -> bool:
        return self.provider is not None

    @property
    def embedded_count(self) -> int:
        return len(self._vectors)

    def vector_for(self, unit_id: str) -> Optional[Vector]:
        return self._vectors.get(unit_id)

    def store(self, unit: TextUnit, vector: Vector) -> bool:
        cached = self._vectors.get(unit.id)
        if cached is not None:
            # Keep the first vector, but a rebuilt unit still gets it
            unit.embedding = cached
            return False
        self._vectors[unit.id] = vector
        unit.embedding = vector
        return True

    async def embed(self, text: str) -> Optional[Vector]:
        if self.provider is None:
            return None
        cleaned = (text or "").strip()
        if len(cleaned) < self.config.min_embed_chars:
            console.log("[yellow]Text too short for embedding[/yellow]")
            return None
        try:
            vectors = await self.provider.embed([cleaned])
        except MalformedEmbeddingResponse as e:
            console.log(f"[red]Invalid embedding response: {e}[/red]")
            return None
        except Exception as e:
            console.log(f"[red]Embedding request failed: {e}[/red]")
            return None
        if not vectors or not vectors[0]:
            console.log("[red]Invalid embedding response: empty vector[/red]")
            return None
        return [float(x) for x in vectors[0]]

    async def populate(self, units: Sequence[TextUnit]) -> int:
        """Embed a bounded prefix of the corpus, one call at a time.

        Stops early after ``max_consecutive_failures`` failures in a row; vectors
        stored before that stay usable.
        """
        cfg = self.config
        if self.provider is None:
            console.log("[yellow]No embedding provider; corpus will be searched by keywords only[/yellow]")
            return 0

        batch = list(units[: cfg.embed_limit])
        console.log(f"[cyan]Creating embeddings for {len(batch)} units...[/cyan]")
        embedded = 0
        consecutive_failures = 0
        for i, unit in enumerate(batch):
            if i % 5 == 0:
                console.log(f"[cyan]Embedding progress: {i + 1}/{len(batch)} ({embedded} successful)[/cyan]")
            cached = self.vector_for(unit.id)
            if cached is not None:
                # Left over from an interrupted load
                unit.embedding = cached
                embedded += 1
                consecutive_failures = 0
                continue
            vector = await self.embed(unit.body)
            if vector is not None:
                self.store(unit, vector)
                embedded += 1
                consecutive_failures = 0
            else:
                consecutive_failures += 1
                if consecutive_failures >= cfg.max_consecutive_failures:
                    console.log("[red]Too many consecutive embedding failures, stopping[/red]")
                    break
            # Rate-limit courtesy between calls
            if cfg.embed_delay_s > 0 and i + 1 < len(batch):
                await asyncio.sleep(cfg.embed_delay_s)

        console.log(f"[green]Embedded {embedded}/{len(batch)} units[/green]")
        if embedded == 0:
            console.log("[yellow]No embeddings created; keyword search fallback will be used[/yellow]")
        return embedded
