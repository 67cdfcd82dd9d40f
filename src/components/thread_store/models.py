"""会話スレッドのモデル定義."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ThreadMessage(BaseModel):
    """スレッド内の1メッセージ."""

    id: str
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime = Field(default_factory=datetime.now)


class ConversationThread(BaseModel):
    """1つの会話スレッド. メッセージは古い順に保持する."""

    thread_id: str
    messages: list[ThreadMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
