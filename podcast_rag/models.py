from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional

from .topics import Topic


Vector = List[float]


class Speaker(str, Enum):
    HOST = "host"
    GUEST = "guest"
    UNKNOWN = "unknown"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def make_unit_id(source_document: str, sequence_index: int) -> str:
    return f"{source_document}::chunk::{sequence_index:05d}"


@dataclass
class TextUnit:
    """One retrievable span of transcript text.

    Created once at corpus load. Only ``embedding`` is ever written afterwards,
    by the bulk embedding pass.
    """

    source_document: str
    sequence_index: int
    text: str
    topics: FrozenSet[Topic] = frozenset()
    speaker: Speaker = Speaker.UNKNOWN
    speaker_name: Optional[str] = None
    timestamp: Optional[str] = None
    context_before: Optional[str] = None
    context_after: Optional[str] = None
    embedding: Optional[Vector] = field(default=None, repr=False)

    @property
    def id(self) -> str:
        return make_unit_id(self.source_document, self.sequence_index)

    @property
    def body(self) -> str:
        """Text without its leading speaker label; what tagging and scoring look at."""
        if self.speaker_name:
            label = f"{self.speaker_name}:"
            if self.text.startswith(label):
                return self.text[len(label) :].lstrip()
        return self.text

    @property
    def context(self) -> str:
        parts = [p for p in (self.context_before, self.context_after) if p]
        return " ".join(parts)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_document": self.source_document,
            "sequence_index": self.sequence_index,
            "text": self.text,
            "num_chars": len(self.text),
            "topics": sorted(t.value for t in self.topics),
            "speaker": self.speaker.value,
            "speaker_name": self.speaker_name,
            "timestamp": self.timestamp,
            "context_before": self.context_before,
            "context_after": self.context_after,
            "embedded": self.embedding is not None,
        }


@dataclass
class RetrievalCandidate:
    unit: TextUnit
    relevance_score: float
    confidence: Confidence
    explanation: str

    def to_dict(self) -> dict:
        out = self.unit.to_dict()
        out.update(
            {
                "score": round(self.relevance_score, 4),
                "confidence": self.confidence.value,
                "explanation": self.explanation,
            }
        )
        return out
