"""Shared fakes for the retrieval tests. Nothing here touches the network."""
from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from podcast_rag.config import RetrievalConfig, Settings
from podcast_rag.embeddings import EmbeddingProvider, MalformedEmbeddingResponse
from podcast_rag.models import TextUnit
from podcast_rag.topics import Topic


class KeywordEmbeddingProvider(EmbeddingProvider):
    """Bag-of-stems vectors: one dimension per stem, value = occurrence count."""

    VOCAB = ("money", "rais", "pitch", "restaurant", "food", "gam", "market", "kitchen")

    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [[float(t.lower().count(stem)) for stem in self.VOCAB] for t in texts]


class MoneyEmbeddingProvider(EmbeddingProvider):
    """Same vector for everything mentioning money, an orthogonal one otherwise."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [[1.0, 0.0] if "money" in t.lower() else [0.0, 1.0] for t in texts]


class ConstantEmbeddingProvider(EmbeddingProvider):
    def __init__(self, vector: List[float]) -> None:
        self.vector = vector
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [list(self.vector) for _ in texts]


class FailingEmbeddingProvider(EmbeddingProvider):
    def __init__(self, exc: Optional[Exception] = None) -> None:
        self.exc = exc or ConnectionError("provider down")
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        raise self.exc


class MalformedEmbeddingProvider(EmbeddingProvider):
    def __init__(self, raise_error: bool = False) -> None:
        self.raise_error = raise_error

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if self.raise_error:
            raise MalformedEmbeddingResponse("no embedding field")
        return [[] for _ in texts]


class FakeCompleter:
    def __init__(self, reply: Optional[str] = "Here is what the guests said.") -> None:
        self.reply = reply
        self.calls: List[List[Dict[str, str]]] = []

    @property
    def available(self) -> bool:
        return self.reply is not None

    async def complete(self, messages: List[Dict[str, str]]) -> Optional[str]:
        self.calls.append(messages)
        return self.reply


def make_unit(
    source: str,
    index: int,
    text: str,
    topics=(),
    embedding: Optional[List[float]] = None,
    context_before: Optional[str] = None,
    context_after: Optional[str] = None,
) -> TextUnit:
    return TextUnit(
        source_document=source,
        sequence_index=index,
        text=text,
        topics=frozenset(topics),
        embedding=embedding,
        context_before=context_before,
        context_after=context_after,
    )


@pytest.fixture
def config() -> RetrievalConfig:
    return RetrievalConfig(embed_delay_s=0)


@pytest.fixture
def transcripts_dir(tmp_path):
    directory = tmp_path / "transcripts"
    directory.mkdir()
    return directory


@pytest.fixture
def make_settings(config):
    def _make(directory) -> Settings:
        return Settings(transcripts_dir=str(directory), retrieval=config)

    return _make


@pytest.fixture
def restaurant_units():
    return [
        make_unit("ep1", 0, "Our restaurant kitchen cut food waste in half last year.", [Topic.RESTAURANT]),
        make_unit("ep2", 0, "Mobile gaming studios live and die by retention.", [Topic.GAMING]),
    ]
