import asyncio
import os
import pathlib
import time
from enum import Enum
from typing import Dict, List, Optional

from .chunking import Chunker, read_text_file
from .console import console
from .embeddings import EmbeddingCache
from .models import TextUnit


class CorpusState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    ERROR = "error"


class CorpusLoadError(Exception):
    pass


def list_transcript_txts(root: str) -> List[str]:
    files: List[str] = []
    for fn in os.listdir(root):
        path = os.path.join(root, fn)
        if fn.lower().endswith(".txt") and os.path.isfile(path):
            files.append(str(pathlib.Path(path).resolve()))
    files.sort()
    return files


class Corpus:
    """The transcript units for this process, loaded and embedded exactly once.

    ``initialize`` is idempotent: after it reaches READY or ERROR every later call
    returns immediately without touching the directory again. Units are
    read-only once READY.
    """

    def __init__(self, directory: str, chunker: Chunker, embeddings: EmbeddingCache) -> None:
        self.directory = directory
        self.chunker = chunker
        self.embeddings = embeddings
        self.units: List[TextUnit] = []
        self.state = CorpusState.PENDING
        self.error: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self.state is CorpusState.READY

    async def initialize(self) -> "Corpus":
        if self.state is not CorpusState.PENDING:
            return self
        async with self._lock:
            if self.state is not CorpusState.PENDING:
                return self
            t_start = time.time()
            console.log(f"[cyan]Initializing transcript corpus from {self.directory}[/cyan]")
            try:
                units = self._load_units()
                await self.embeddings.populate(units)
            except asyncio.CancelledError:
                # Stay PENDING; vectors stored so far are reused by the next attempt
                console.log("[yellow]Corpus load cancelled, will retry on next call[/yellow]")
                raise
            except CorpusLoadError as e:
                self._fail(str(e))
                return self
            except Exception as e:
                self._fail(f"Initialization failed: {e}")
                return self
            self.units = units
            self.state = CorpusState.READY
            console.log(f"[green]Corpus ready: {len(units)} units ({time.time() - t_start:.2f}s)[/green]")
        return self

    def _fail(self, reason: str) -> None:
        self.error = reason
        self.state = CorpusState.ERROR
        console.log(f"[red]{reason}[/red]")

    def _load_units(self) -> List[TextUnit]:
        if not os.path.isdir(self.directory):
            raise CorpusLoadError(f"Cannot access transcript directory: {self.directory}")
        try:
            files = list_transcript_txts(self.directory)
        except OSError as e:
            raise CorpusLoadError(f"Cannot access transcript directory: {self.directory} ({e})") from e
        if not files:
            raise CorpusLoadError("No .txt transcript files found")

        console.log(f"Found {len(files)} transcript files")
        units: List[TextUnit] = []
        for file_path in files:
            source_id = pathlib.Path(file_path).stem
            try:
                raw = read_text_file(file_path)
            except OSError as e:
                console.log(f"[yellow]Error reading {os.path.basename(file_path)}: {e}[/yellow]")
                continue
            doc_units = self.chunker.chunk(raw, source_id)
            if not doc_units:
                console.log(f"[yellow]Skipping {os.path.basename(file_path)}: no usable content[/yellow]")
                continue
            console.log(f"Processed {os.path.basename(file_path)}: {len(doc_units)} units")
            units.extend(doc_units)

        if not units:
            raise CorpusLoadError("No valid content chunks created from transcripts")
        return units

    def snapshot(self) -> Dict:
        return {
            "ready": self.ready,
            "state": self.state.value,
            "error": self.error,
            "total_units": len(self.units),
            "embedded_units": sum(1 for u in self.units if u.embedding is not None),
        }
