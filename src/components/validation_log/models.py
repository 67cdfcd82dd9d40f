"""検証ログレコードのモデル定義."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.common.defs.validation import ValidationLoop, ValidationResult


class LoopLogRecord(BaseModel):
    """ValidationLoop 1件分のログ."""

    kind: Literal["loop"] = "loop"
    thread_id: str
    question: str
    response: str
    loop: ValidationLoop
    logged_at: datetime = Field(default_factory=datetime.now)


class ResultLogRecord(BaseModel):
    """ValidationResultのログ."""

    kind: Literal["result"] = "result"
    thread_id: str
    question: str
    initial_response: str
    duration_ms: int
    result: ValidationResult
    logged_at: datetime = Field(default_factory=datetime.now)
