"""Text helpers for parsing model output and preparing spoken text."""
import json
import re
from typing import Any, List, Optional

_NUMBERING_RE = re.compile(r"^\s*(?:(?:q(?:uestion)?\s*)?\d+\s*[.):-]|[-*•–]|#+)\s*", re.IGNORECASE)
_BULLET_SPLIT_RE = re.compile(r"(?:^|\n)\s*(?:[-*•–]|\d+[.)])\s+")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+(?=[A-Z0-9\"'])")


def _first_json(content: str, opener: str) -> Optional[Any]:
    """Decode the first JSON value starting with opener found in content."""
    if not content:
        return None
    decoder = json.JSONDecoder()
    index = content.find(opener)
    while index != -1:
        try:
            value, _ = decoder.raw_decode(content, index)
            return value
        except json.JSONDecodeError:
            index = content.find(opener, index + 1)
    return None


def extract_json_object(content: str) -> Optional[dict]:
    """Return the first JSON object embedded in model output, or None."""
    value = _first_json(content, "{")
    return value if isinstance(value, dict) else None


def extract_json_array(content: str) -> Optional[list]:
    """Return the first JSON array embedded in model output, or None."""
    value = _first_json(content, "[")
    return value if isinstance(value, list) else None


def voice_safe(text: str) -> str:
    """Strip characters that a speech synthesizer would read out literally."""
    text = text.replace("/", " or ").replace("&", " and ")
    text = re.sub(r"[*_#`~|<>\[\]{}\\^]", " ", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def split_question_lines(content: str, min_length: int = 10) -> List[str]:
    """Fallback parser: one question per line, numbering stripped, noise dropped."""
    questions = []
    for line in content.splitlines():
        line = _NUMBERING_RE.sub("", line).strip().strip('",').strip()
        if len(line) < min_length:
            continue
        if line.endswith(":"):
            continue
        questions.append(line)
    return questions


def normalize_points(value: Any) -> List[str]:
    """Turn prose or lists from the model into a flat list of points.

    Bullet markers are tried first, then sentence boundaries.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        points: List[str] = []
        for item in value:
            points.extend(normalize_points(item))
        return points

    text = str(value).strip()
    if not text:
        return []

    parts = [part.strip() for part in _BULLET_SPLIT_RE.split(text)]
    parts = [part for part in parts if part]
    if len(parts) <= 1:
        parts = [part.strip() for part in _SENTENCE_SPLIT_RE.split(text) if part.strip()]
    return [re.sub(r"\s+", " ", part) for part in parts]


def clamp_score(value: Any, low: int = 0, high: int = 100) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return low
    return max(low, min(high, score))
