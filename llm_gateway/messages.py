from __future__ import annotations  # Provider-neutral chat turn model

from typing import List, Literal, Sequence

from pydantic import BaseModel


class ChatTurn(BaseModel):  # One prior turn handed to a provider adapter
    role: Literal["user", "assistant"]
    content: str


def preview(prompt: str, limit: int = 120) -> str:  # First non-empty line, clipped for logging
    for line in prompt.splitlines():
        text = line.strip()
        if text:
            return text if len(text) <= limit else text[: limit - 3] + "..."
    return ""


def non_empty(turns: Sequence[ChatTurn]) -> List[ChatTurn]:
    return [turn for turn in turns if turn.content.strip()]


__all__ = ["ChatTurn", "non_empty", "preview"]
