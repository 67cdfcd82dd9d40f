"""フィードバックループによる検証結果を表すデータモデルの定義."""

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from src.common.defs.critique import CritiqueResult, Scores


class Termination(StrEnum):
    """検証ループの終了状態."""

    APPROVED = "approved"
    CLARIFYING = "clarifying"
    EXHAUSTED = "exhausted"


class ValidationLoop(BaseModel):
    """1イテレーション分の記録. 生成後は変更しない."""

    model_config = ConfigDict(frozen=True)

    loop_number: int
    critique_result: CritiqueResult
    improvement_hints: list[str] = Field(default_factory=list)
    score_improvement: int = 0
    timestamp: datetime = Field(default_factory=datetime.now)


class ProgressiveHint(BaseModel):
    """再生成1回分の改善指示. levelが上がるほど具体的になる."""

    level: Literal[1, 2, 3]
    hints: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)
    template: str | None = None


class ValidationResult(CritiqueResult):
    """フィードバックループ全体の結果.

    トップレベルの評価フィールドは最終ループのCritiqueResultの値を持つ.
    """

    loops: list[ValidationLoop] = Field(default_factory=list)
    final_loop: int = 0
    total_improvement: int = 0
    best_response: str = ""
    best_scores: Scores = Field(default_factory=Scores)
    failure_patterns: list[str] = Field(default_factory=list)
    success_patterns: list[str] = Field(default_factory=list)
    termination: Termination = Termination.EXHAUSTED
    final_response: str = ""
