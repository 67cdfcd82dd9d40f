"""エージェント層のエクスポート."""

from src.application.agents.critique import CritiqueEngine, LLMGrader
from src.application.agents.generator import ThreadAnswerGenerator
from src.application.agents.hints import HintBuilder
from src.application.agents.validator import FeedbackLoopController

__all__ = [
    "CritiqueEngine",
    "LLMGrader",
    "HintBuilder",
    "ThreadAnswerGenerator",
    "FeedbackLoopController",
]
