"""回答品質評価（Critique）の結果を表すデータモデルの定義."""

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field, field_validator


class Dimension(StrEnum):
    """評価観点. 定義順が最低スコア判定時の優先順となる."""

    RELEVANCE = "relevance"
    COMPLETENESS = "completeness"
    DATA_ACCURACY = "data_accuracy"
    FOLLOW_UP = "follow_up"
    PRESENTATION_QUALITY = "presentation_quality"


class LowestScore(BaseModel):
    """最もスコアの低い評価観点."""

    category: Dimension
    score: int


class Scores(BaseModel):
    """5観点の評価スコア（各0〜100）."""

    relevance: int = 0
    completeness: int = 0
    data_accuracy: int = 0
    follow_up: int = 0
    presentation_quality: int = 0

    @field_validator("*", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        if value is None:
            return 0
        return max(0, min(100, int(value)))

    def items(self) -> list[tuple[Dimension, int]]:
        """観点とスコアのペアを固定順で返す."""
        return [(dimension, getattr(self, dimension.value)) for dimension in Dimension]

    def total(self) -> int:
        """スコアの合計値を返す."""
        return sum(score for _, score in self.items())

    def average(self) -> float:
        """スコアの平均値を返す."""
        return self.total() / len(Dimension)

    def lowest(self) -> LowestScore:
        """最低スコアの観点を返す. 同点の場合は固定順で先の観点を優先する."""
        category, score = min(self.items(), key=lambda item: item[1])
        return LowestScore(category=category, score=score)

    def capped(self, dimension: Dimension, cap: int) -> "Scores":
        """指定観点をcap以下に抑えたコピーを返す."""
        current = getattr(self, dimension.value)
        return self.model_copy(update={dimension.value: min(current, cap)})


class CritiqueIssue(BaseModel):
    """評価で検出された問題点."""

    type: str
    description: str
    severity: Literal["critical", "warning", "info"]
    example: str | None = None


Action = Literal["approve", "regenerate", "ask_clarification"]


class CritiqueResult(BaseModel):
    """1回の品質評価の結果.

    lowest_scoreとpassedはscoresから都度算出するため、
    スコアを上書きしても常に整合する.
    """

    scores: Scores = Field(default_factory=Scores)
    threshold: int = 85
    action: Action = "regenerate"
    issues: list[CritiqueIssue] = Field(default_factory=list)
    clarification_questions: list[str] = Field(default_factory=list)
    regeneration_hints: list[str] = Field(default_factory=list)
    improved_response: str | None = None

    @computed_field
    @property
    def lowest_score(self) -> LowestScore:
        """最低スコアの観点."""
        return self.scores.lowest()

    @computed_field
    @property
    def passed(self) -> bool:
        """全観点が閾値以上であればTrue."""
        return all(score >= self.threshold for _, score in self.scores.items())


class ChatMessage(BaseModel):
    """会話履歴の1メッセージ."""

    role: Literal["user", "assistant"]
    content: str


class CritiqueContext(BaseModel):
    """評価時に参照する呼び出し元のコンテキスト."""

    has_filters: bool = False
    mentioned_entities: list[str] = Field(default_factory=list)
    prior_messages: list[ChatMessage] = Field(default_factory=list)
    filters: dict[str, Any] = Field(default_factory=dict)
