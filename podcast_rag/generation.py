from typing import Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import DEFAULT_COMPLETION_BASE_URL, DEFAULT_COMPLETION_MODEL, Settings
from .console import console
from .models import RetrievalCandidate, Speaker


Message = Dict[str, str]

SYSTEM_PROMPT = (
    "You are an expert podcast analyst who provides deep, actionable insights. When answering:\n\n"
    "**QUALITY OVER QUANTITY:**\n"
    "- Only use content that directly and meaningfully relates to the question\n"
    "- If content seems forced or tangentially related, ignore it completely\n"
    "- Better to say \"insufficient information\" than use irrelevant content\n\n"
    "**DEEP ANALYSIS:**\n"
    "- Don't just summarize - analyze WHY things matter\n"
    "- Connect insights to practical implications\n"
    "- Show cause-and-effect relationships\n\n"
    "**STRUCTURE YOUR RESPONSE:**\n"
    "1. **Direct Answer**: Clear, specific response to the question\n"
    "2. **Key Insights**: 2-3 deep, interconnected points with analysis\n"
    "3. **Strategic Implications**: What this means for someone taking action\n"
    "4. **Next Steps**: Specific, actionable recommendations\n\n"
    "**CONFIDENCE:**\n"
    "- Each excerpt is labelled high, medium or low confidence\n"
    "- Lean on high-confidence excerpts and hedge claims that rest only on low-confidence ones\n\n"
    "**TONE:**\n"
    "- Confident and insightful, like a strategic consultant who really understands the space\n\n"
    "If you truly don't have relevant information, give a brief response and suggest what type "
    "of content would be more helpful."
)


def describe_speaker(candidate: RetrievalCandidate) -> str:
    unit = candidate.unit
    if unit.speaker is Speaker.HOST:
        return f"{unit.speaker_name} (host)" if unit.speaker_name else "Host"
    if unit.speaker is Speaker.GUEST:
        return f"{unit.speaker_name} (guest)" if unit.speaker_name else "Guest"
    return "Unknown Speaker"


def build_messages(question: str, candidates: Sequence[RetrievalCandidate]) -> List[Message]:
    blocks = []
    for c in candidates:
        header = f"## From: {c.unit.source_document}"
        meta = f"Speaker: {describe_speaker(c)} | Confidence: {c.confidence.value}"
        if c.unit.timestamp:
            meta += f" | At: {c.unit.timestamp}"
        blocks.append(f"{header}\n{meta}\n{c.unit.text}")
    context = "\n\n---\n\n".join(blocks)

    user_content = (
        f"Podcast content:\n\n{context}\n\n"
        f"Question: {question}\n\n"
        "Provide deep, strategic analysis based on this content. Focus on insights that would actually "
        "help someone make decisions or take action. Ignore any content that doesn't directly relate "
        "to the question."
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_content},
    ]


class ChatCompleter:
    """Chat-completion collaborator. ``complete`` returns None instead of raising."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_COMPLETION_BASE_URL,
        model: str = DEFAULT_COMPLETION_MODEL,
        max_tokens: int = 800,
        temperature: float = 0.3,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url) if api_key else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatCompleter":
        if not settings.completion_api_key:
            console.log("[yellow]GROQ_API_KEY not set; answer generation disabled[/yellow]")
        return cls(
            api_key=settings.completion_api_key,
            base_url=settings.completion_base_url,
            model=settings.completion_model,
        )

    @property
    def available(self) -> bool:
        return self.client is not None

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((openai.RateLimitError, openai.APIConnectionError)),
    )
    async def _create(self, messages: List[Message]):
        return await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

    async def complete(self, messages: List[Message]) -> Optional[str]:
        if self.client is None:
            return None
        try:
            resp = await self._create(messages)
        except openai.AuthenticationError:
            console.log("[red]Authentication error: check your GROQ_API_KEY[/red]")
            return None
        except Exception as e:
            console.log(f"[red]Completion request failed: {e}[/red]")
            return None
        choices = getattr(resp, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            console.log("[yellow]No content in completion response[/yellow]")
            return None
        console.log(f"[cyan]Generated response ({len(content)} chars)[/cyan]")
        return content.strip()
