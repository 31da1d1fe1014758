"""Screenplay: assistant text split into speakable text and an emotion tag."""

from __future__ import annotations

import re
from dataclasses import dataclass

_EMOTION_TAG = re.compile(r"\[([a-z]+)\]\s*", re.IGNORECASE)


@dataclass(frozen=True)
class Screenplay:
    text: str
    emotion: str | None = None


def text_to_screenplay(text: str) -> Screenplay:
    """Take the first ``[word]`` tag as the emotion and strip every tag."""
    match = _EMOTION_TAG.search(text)
    if not match:
        return Screenplay(text=text)
    return Screenplay(
        text=_EMOTION_TAG.sub("", text).strip(),
        emotion=match.group(1).lower(),
    )


def screenplay_to_text(screenplay: Screenplay) -> str:
    if screenplay.emotion:
        return f"[{screenplay.emotion}] {screenplay.text}"
    return screenplay.text
