import math
import re
from typing import List, Optional, Sequence


STOPWORDS = {
    "the",
    "and",
    "for",
    "with",
    "about",
    "from",
    "that",
    "this",
    "what",
    "when",
    "your",
    "into",
    "have",
    "how",
    "are",
    "can",
    "you",
    "some",
    "like",
    "give",
    "back",
    "then",
    "them",
    "will",
    "they",
    "their",
    "there",
    "over",
}


def extract_keywords(question: str, max_terms: Optional[int] = None) -> List[str]:
    # Content words only: case-folded, longer than 2 chars, deduplicated in order
    q = question.lower()
    q = re.sub(r"[^a-z0-9\s]", " ", q)
    tokens = [t for t in q.split() if len(t) > 2 and t not in STOPWORDS]
    seen = set()
    out: List[str] = []
    for t in tokens:
        if t not in seen:
            out.append(t)
            seen.add(t)
        if max_terms is not None and len(out) >= max_terms:
            break
    return out


def lexical_score(query: str, text: str, phrase_bonus: float = 2.0) -> float:
    """Length-weighted keyword overlap between query and text, in [0, 1].

    Each query keyword contributes occurrences * (len / 10). The verbatim query
    adds ``phrase_bonus``. Below 30% keyword coverage the score is halved.
    Normalized by 2 * keyword count so the result does not depend on text length.
    """
    keywords = extract_keywords(query)
    if not keywords or not text:
        return 0.0

    text_lower = text.lower()
    score = 0.0
    matched = 0
    for word in keywords:
        occurrences = text_lower.count(word)
        if occurrences:
            score += occurrences * (len(word) / 10)
            matched += 1

    phrase = query.strip().lower()
    if phrase and phrase in text_lower:
        score += phrase_bonus

    if matched / len(keywords) < 0.3:
        score *= 0.5

    return max(0.0, min(score / (len(keywords) * 2), 1.0))


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = 0.0
    mag_a = 0.0
    mag_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        mag_a += x * x
        mag_b += y * y
    magnitude = math.sqrt(mag_a * mag_b)
    if magnitude <= 0:
        return 0.0
    # Guard float drift past the unit interval
    return max(-1.0, min(dot / magnitude, 1.0))
