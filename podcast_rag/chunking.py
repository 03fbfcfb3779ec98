import re
import textwrap
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from rapidfuzz import fuzz as rf_fuzz, process as rf_process

from .config import RetrievalConfig
from .models import Speaker, TextUnit
from .topics import TopicTagger


TIMESTAMP_RE = re.compile(r"\[(?:\d{1,2}:)?\d{1,2}:\d{2}\]")

# Speaker label at line start (diarized labels like speaker_0: and names like Robert Reese:),
# optionally preceded by a bracketed timestamp
SPEAKER_RE = re.compile(
    r"^\s*(?:\[(?:\d{1,2}:)?\d{1,2}:\d{2}\]\s*)?(speaker_\d+|[A-Z][a-zA-Z]+(?:\s+[A-Z][a-zA-Z]+)*):\s*"
)

SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


def read_text_file(path: str) -> str:
    with open(path, "r", encoding="utf-8", errors="ignore") as f:
        return f.read()


def strip_line_number_prefixes(text: str) -> str:
    # Some exports prefix every line with L123:
    return "\n".join(re.sub(r"^L\d+:", "", line) for line in text.splitlines())


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"\r\n?", "\n", text)
    # collapse 3+ newlines to 2
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def extract_speaker_label(text: str) -> Optional[str]:
    m = SPEAKER_RE.match(text)
    if m:
        return m.group(1)
    return None


def split_sections(text: str) -> List[str]:
    """Split on blank lines and on lines that open with a speaker label.

    Lines inside a section are joined with single spaces.
    """
    sections: List[str] = []
    buf: List[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            if buf:
                sections.append(" ".join(buf))
                buf = []
            continue
        if buf and SPEAKER_RE.match(stripped):
            sections.append(" ".join(buf))
            buf = []
        buf.append(stripped)
    if buf:
        sections.append(" ".join(buf))
    return sections


@dataclass
class _Piece:
    text: str
    speaker: Speaker = Speaker.UNKNOWN
    speaker_name: Optional[str] = None
    timestamp: Optional[str] = None


class Chunker:
    """Turns one transcript into ordered TextUnits.

    ``smart`` mode follows speaker turns and paragraphs, re-splitting long
    sections at sentence boundaries. ``fixed`` mode cuts every N characters and
    carries no speaker or timestamp metadata.
    """

    def __init__(self, config: Optional[RetrievalConfig] = None, tagger: Optional[TopicTagger] = None) -> None:
        self.config = config or RetrievalConfig()
        self.tagger = tagger
        self._host_keys = [a.strip().lower() for a in self.config.host_aliases if a.strip()]

    def chunk(self, raw_text: str, source_id: str) -> List[TextUnit]:
        if self.config.chunking_mode == "fixed":
            pieces = self._fixed_pieces(raw_text)
        elif self.config.chunking_mode == "smart":
            pieces = self._smart_pieces(raw_text)
        else:
            raise ValueError(f"Unsupported chunking mode: {self.config.chunking_mode}")
        return self._build_units(pieces, source_id)

    def resolve_speaker(self, name: Optional[str]) -> Tuple[Speaker, Optional[str]]:
        if not name:
            return Speaker.UNKNOWN, None
        key = name.strip().lower()
        if key in self._host_keys:
            return Speaker.HOST, name
        # Tolerate transcription typos in host names
        if self._host_keys:
            best = rf_process.extractOne(
                key,
                self._host_keys,
                scorer=rf_fuzz.ratio,
                score_cutoff=self.config.host_match_threshold,
            )
            if best:
                return Speaker.HOST, name
        return Speaker.GUEST, name

    # -----------------------------
    # Smart mode
    # -----------------------------

    def _smart_pieces(self, raw_text: str) -> List[_Piece]:
        cfg = self.config
        text = normalize_whitespace(strip_line_number_prefixes(raw_text))
        pieces: List[_Piece] = []
        for section in split_sections(text):
            ts_match = TIMESTAMP_RE.search(section)
            timestamp = ts_match.group(0)[1:-1] if ts_match else None
            body = re.sub(r"\s+", " ", TIMESTAMP_RE.sub("", section)).strip()
            if len(body) < cfg.min_chunk_chars:
                continue

            speaker, speaker_name = self.resolve_speaker(extract_speaker_label(body))

            if len(body) <= cfg.max_section_chars:
                bodies = [body]
            else:
                bodies = self._pack_sentences(body)

            for b in bodies:
                pieces.append(_Piece(b, speaker, speaker_name, timestamp))
        return pieces

    def _pack_sentences(self, body: str) -> List[str]:
        cfg = self.config
        packed: List[str] = []
        buf = ""
        for sentence in SENTENCE_SPLIT_RE.split(body):
            sentence = sentence.strip()
            if len(sentence) < cfg.min_sentence_chars:
                continue
            # A single run-on sentence longer than the target is wrapped on whitespace
            parts = [sentence]
            if len(sentence) > cfg.target_chunk_chars:
                parts = textwrap.wrap(sentence, width=cfg.target_chunk_chars)
            for part in parts:
                candidate = f"{buf} {part}" if buf else part
                if buf and len(candidate) > cfg.target_chunk_chars:
                    packed.append(buf)
                    buf = part
                else:
                    buf = candidate
        if buf:
            packed.append(buf)
        return [p for p in packed if len(p) >= cfg.min_chunk_chars]

    # -----------------------------
    # Fixed-width mode
    # -----------------------------

    def _fixed_pieces(self, raw_text: str) -> List[_Piece]:
        size = self.config.fixed_chunk_chars
        pieces: List[_Piece] = []
        for start in range(0, len(raw_text), size):
            piece = raw_text[start : start + size].strip()
            if len(piece) >= self.config.min_chunk_chars:
                pieces.append(_Piece(piece))
        return pieces

    def _build_units(self, pieces: Sequence[_Piece], source_id: str) -> List[TextUnit]:
        width = self.config.context_chars
        units = [
            TextUnit(
                source_document=source_id,
                sequence_index=i,
                text=piece.text,
                speaker=piece.speaker,
                speaker_name=piece.speaker_name,
                timestamp=piece.timestamp,
            )
            for i, piece in enumerate(pieces)
        ]
        # Topics and context use the label-free body
        for i, unit in enumerate(units):
            if self.tagger:
                unit.topics = self.tagger.tag(unit.body)
            if i > 0:
                unit.context_before = units[i - 1].body[-width:]
            if i + 1 < len(units):
                unit.context_after = units[i + 1].body[:width]
        return units
