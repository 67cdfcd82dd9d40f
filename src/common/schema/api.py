"""APIリクエスト/レスポンススキーマ."""

from typing import Any

from pydantic import BaseModel, Field

from src.common.defs.critique import Scores
from src.common.defs.validation import Termination


class ChatRequest(BaseModel):
    """チャットリクエスト."""

    message: str = Field(min_length=1)
    thread_id: str | None = None
    filters: dict[str, Any] = Field(default_factory=dict)


class ChatResponse(BaseModel):
    """チャットレスポンス."""

    thread_id: str
    message: str
    passed: bool
    termination: Termination | None = None
    loops: int = 0
    scores: Scores | None = None
