"""共通の型定義をエクスポートする."""

from src.common.defs.critique import (
    ChatMessage,
    CritiqueContext,
    CritiqueIssue,
    CritiqueResult,
    Dimension,
    LowestScore,
    Scores,
)
from src.common.defs.validation import (
    ProgressiveHint,
    Termination,
    ValidationLoop,
    ValidationResult,
)

__all__ = [
    "ChatMessage",
    "CritiqueContext",
    "CritiqueIssue",
    "CritiqueResult",
    "Dimension",
    "LowestScore",
    "Scores",
    "ProgressiveHint",
    "Termination",
    "ValidationLoop",
    "ValidationResult",
]
