import asyncio
import os
import pathlib
import sys
from typing import Optional

import orjson
import typer
from rich import print as rprint
from rich.table import Table

from podcast_rag.chunking import Chunker, read_text_file
from podcast_rag.config import Settings, load_settings
from podcast_rag.console import console
from podcast_rag.service import Answer, AnswerStatus, PodcastQA, QueryValidationError, validate_query
from podcast_rag.topics import TopicTagger


app = typer.Typer(add_completion=False, no_args_is_help=True)

CHUNKING_MODES = ("smart", "fixed")


# -----------------------------
# Utilities
# -----------------------------


def to_absolute_path(path_str: str) -> str:
    return str(pathlib.Path(path_str).expanduser().resolve())


def write_json(payload: dict) -> None:
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8") + "\n")


def build_settings(
    transcripts_dir: Optional[str],
    mode: str,
    embed_limit: Optional[int] = None,
    top_k: Optional[int] = None,
) -> Settings:
    if mode not in CHUNKING_MODES:
        raise typer.BadParameter(f"mode must be one of: {', '.join(CHUNKING_MODES)}")
    settings = load_settings(transcripts_dir=to_absolute_path(transcripts_dir) if transcripts_dir else None)
    settings.retrieval.chunking_mode = mode
    if embed_limit is not None:
        settings.retrieval.embed_limit = embed_limit
    if top_k is not None:
        settings.retrieval.top_k = top_k
    return settings


def check_question(question: str) -> str:
    try:
        return validate_query(question)
    except QueryValidationError as e:
        raise typer.BadParameter(str(e), param_hint="QUESTION") from e


def render_answer(answer: Answer, json_output: bool, show_answer: bool = True) -> None:
    if json_output:
        write_json(answer.to_dict())
    else:
        if show_answer and answer.text:
            color = "green" if answer.status is AnswerStatus.OK else "yellow"
            rprint(f"[bold {color}]{answer.status.value}[/bold {color}]")
            rprint(answer.text)
        if answer.candidates:
            table = Table(title="Snippets")
            table.add_column("Score", justify="right")
            table.add_column("Confidence")
            table.add_column("Episode")
            table.add_column("Speaker")
            table.add_column("Snippet")
            for c in answer.candidates:
                table.add_row(
                    f"{c.relevance_score:.3f}",
                    c.confidence.value,
                    c.unit.source_document,
                    c.unit.speaker_name or c.unit.speaker.value,
                    c.unit.text[:100],  # Truncate snippet for readability
                )
            console.print(table)
    if answer.status is AnswerStatus.ERROR:
        raise typer.Exit(code=1)


# -----------------------------
# Commands
# -----------------------------


@app.command()
def preview(
    file_path: str = typer.Argument(..., help="Path to a single transcript .txt file"),
    mode: str = typer.Option("smart", help="Chunking mode: smart (speaker/paragraph aware) or fixed."),
    json_output: bool = typer.Option(True, help="Print structured JSON output."),
):
    """Preview the units one transcript would produce, without embedding anything."""
    file_path_abs = to_absolute_path(file_path)
    if not os.path.isfile(file_path_abs):
        rprint(f"[bold red]File not found[/bold red]: {file_path_abs}")
        raise typer.Exit(code=1)
    settings = build_settings(None, mode)
    chunker = Chunker(settings.retrieval, TopicTagger())
    source = pathlib.Path(file_path_abs).stem
    units = chunker.chunk(read_text_file(file_path_abs), source)

    out = {
        "file": file_path_abs,
        "source": source,
        "mode": mode,
        "units": [u.to_dict() for u in units],
        "total_units": len(units),
    }

    if json_output:
        write_json(out)
    else:
        table = Table(title=f"Preview: {source}")
        table.add_column("#", justify="right")
        table.add_column("Chars", justify="right")
        table.add_column("Speaker")
        table.add_column("Topics")
        table.add_column("Preview")
        for u in units:
            table.add_row(
                str(u.sequence_index),
                str(len(u.text)),
                u.speaker_name or u.speaker.value,
                ", ".join(sorted(t.value for t in u.topics)),
                u.text,
            )
        console.print(table)


@app.command()
def search(
    question: str = typer.Argument(..., help="User question."),
    transcripts_dir: Optional[str] = typer.Option(None, help="Folder of transcript .txt files."),
    top_k: int = typer.Option(3, help="Number of snippets to return."),
    mode: str = typer.Option("smart", help="Chunking mode: smart or fixed."),
    embed_limit: int = typer.Option(50, help="Embed at most this many units at startup."),
    json_output: bool = typer.Option(True, help="Print structured JSON response."),
):
    """Retrieve ranked transcript snippets without composing an answer."""
    question = check_question(question)
    settings = build_settings(transcripts_dir, mode, embed_limit=embed_limit, top_k=top_k)
    qa = PodcastQA.from_settings(settings)
    answer = asyncio.run(qa.search(question, top_k=top_k))
    render_answer(answer, json_output, show_answer=answer.status is not AnswerStatus.OK)


@app.command()
def ask(
    question: str = typer.Argument(..., help="User question."),
    transcripts_dir: Optional[str] = typer.Option(None, help="Folder of transcript .txt files."),
    top_k: int = typer.Option(3, help="Number of snippets to feed the answer."),
    mode: str = typer.Option("smart", help="Chunking mode: smart or fixed."),
    embed_limit: int = typer.Option(50, help="Embed at most this many units at startup."),
    json_output: bool = typer.Option(True, help="Print structured JSON response."),
):
    """Answer a question from the podcast transcripts."""
    question = check_question(question)
    settings = build_settings(transcripts_dir, mode, embed_limit=embed_limit, top_k=top_k)
    qa = PodcastQA.from_settings(settings)
    answer = asyncio.run(qa.ask(question, top_k=top_k))
    render_answer(answer, json_output)


@app.command()
def status(
    transcripts_dir: Optional[str] = typer.Option(None, help="Folder of transcript .txt files."),
    mode: str = typer.Option("smart", help="Chunking mode: smart or fixed."),
    embed_limit: int = typer.Option(50, help="Embed at most this many units at startup."),
):
    """Load the corpus and print readiness, unit counts and credential availability."""
    settings = build_settings(transcripts_dir, mode, embed_limit=embed_limit)
    qa = PodcastQA.from_settings(settings)
    asyncio.run(qa.initialize())
    write_json(qa.status())


if __name__ == "__main__":
    app()
