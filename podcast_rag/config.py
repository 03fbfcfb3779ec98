import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


DEFAULT_TRANSCRIPTS_DIR = os.path.join("public", "transcripts")
DEFAULT_COMPLETION_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_COMPLETION_MODEL = "llama-3.1-8b-instant"
DEFAULT_EMBEDDING_MODELS = {
    "openai": "text-embedding-3-small",
    "sentence-transformers": "all-MiniLM-L6-v2",
}
DEFAULT_HOST_ALIASES = ["Host", "Interviewer"]

MAX_QUERY_CHARS = 500


@dataclass
class ScoreWeights:
    """Composite relevance weights. Must sum to 1.0 to keep scores in [0, 1]."""

    semantic: float = 0.4
    lexical: float = 0.3
    topic: float = 0.2
    context: float = 0.1


@dataclass
class RetrievalConfig:
    # Chunking
    chunking_mode: str = "smart"  # "smart" | "fixed"
    max_section_chars: int = 800
    target_chunk_chars: int = 600
    min_chunk_chars: int = 50
    min_sentence_chars: int = 20
    context_chars: int = 100
    fixed_chunk_chars: int = 500
    host_aliases: List[str] = field(default_factory=lambda: list(DEFAULT_HOST_ALIASES))
    host_match_threshold: float = 90.0

    # Bulk embedding at corpus load
    embed_limit: int = 50
    embed_delay_s: float = 0.5
    max_consecutive_failures: int = 5
    min_embed_chars: int = 10

    # Retrieval stages
    semantic_floor: float = 0.2
    semantic_top_n: int = 8
    lexical_floor: float = 0.2
    lexical_top_n: int = 5
    final_floor: float = 0.3
    high_confidence: float = 0.7
    medium_confidence: float = 0.5
    phrase_bonus: float = 2.0
    top_k: int = 3
    weights: ScoreWeights = field(default_factory=ScoreWeights)


@dataclass
class Settings:
    transcripts_dir: str = DEFAULT_TRANSCRIPTS_DIR
    openai_api_key: Optional[str] = None
    completion_api_key: Optional[str] = None
    completion_base_url: str = DEFAULT_COMPLETION_BASE_URL
    completion_model: str = DEFAULT_COMPLETION_MODEL
    embedding_provider: str = "openai"
    embedding_model: Optional[str] = None
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)


def parse_aliases(raw: Optional[str]) -> List[str]:
    if not raw:
        return list(DEFAULT_HOST_ALIASES)
    aliases = [a.strip() for a in raw.split(",")]
    return [a for a in aliases if a]


def load_settings(transcripts_dir: Optional[str] = None) -> Settings:
    """Build Settings from the environment (and a .env file, if present)."""
    load_dotenv()
    retrieval = RetrievalConfig(host_aliases=parse_aliases(os.getenv("PODCAST_RAG_HOST_ALIASES")))
    return Settings(
        transcripts_dir=transcripts_dir or os.getenv("PODCAST_RAG_TRANSCRIPTS_DIR") or DEFAULT_TRANSCRIPTS_DIR,
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        completion_api_key=os.getenv("GROQ_API_KEY") or None,
        completion_base_url=os.getenv("PODCAST_RAG_COMPLETION_BASE_URL") or DEFAULT_COMPLETION_BASE_URL,
        completion_model=os.getenv("PODCAST_RAG_COMPLETION_MODEL") or DEFAULT_COMPLETION_MODEL,
        embedding_provider=(os.getenv("PODCAST_RAG_EMBEDDING_PROVIDER") or "openai").lower(),
        embedding_model=os.getenv("PODCAST_RAG_EMBEDDING_MODEL") or None,
        retrieval=retrieval,
    )
