"""Retrieval-augmented question answering over podcast transcripts."""

from .chunking import Chunker
from .config import RetrievalConfig, ScoreWeights, Settings, load_settings
from .corpus import Corpus, CorpusState
from .embeddings import EmbeddingCache, EmbeddingProvider, build_embedding_provider
from .generation import ChatCompleter, build_messages
from .models import Confidence, RetrievalCandidate, Speaker, TextUnit
from .retrieval import RetrievalResult, Retriever, fuse
from .scoring import cosine_similarity, lexical_score
from .service import Answer, AnswerStatus, PodcastQA, QueryValidationError, validate_query
from .topics import Topic, TopicTagger, expand_query

__all__ = [
    "Answer",
    "AnswerStatus",
    "ChatCompleter",
    "Chunker",
    "Confidence",
    "Corpus",
    "CorpusState",
    "EmbeddingCache",
    "EmbeddingProvider",
    "PodcastQA",
    "QueryValidationError",
    "RetrievalCandidate",
    "RetrievalConfig",
    "RetrievalResult",
    "Retriever",
    "ScoreWeights",
    "Settings",
    "Speaker",
    "TextUnit",
    "Topic",
    "TopicTagger",
    "build_embedding_provider",
    "build_messages",
    "cosine_similarity",
    "expand_query",
    "fuse",
    "lexical_score",
    "load_settings",
    "validate_query",
]
