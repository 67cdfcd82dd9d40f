"""評価と再生成を繰り返して回答品質を収束させるフィードバックループ."""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from src.application.agents.critique import DUPLICATE_HINT, CritiqueEngine
from src.application.agents.generator import AnswerGenerator
from src.application.agents.hints import HintBuilder
from src.common.config.settings import ValidationConfig
from src.common.defs.critique import (
    CritiqueContext,
    CritiqueIssue,
    CritiqueResult,
    Dimension,
    Scores,
)
from src.common.defs.errors import (
    GenerationFailed,
    GradingUnavailable,
    InvalidConfig,
    PersistenceFailed,
    ValidationRunFailed,
)
from src.common.defs.validation import Termination, ValidationLoop, ValidationResult
from src.components.entity_extraction.extractor import EntityExtractor
from src.components.validation_log.models import LoopLogRecord, ResultLogRecord
from src.components.validation_log.store import LogRecord, ValidationLogStore

logger = logging.getLogger(__name__)

EARLY_EXIT_AVERAGE = 85
EARLY_EXIT_MIN_SCORE = 65
DIMINISHING_IMPROVEMENT = 5
DIMINISHING_AVERAGE = 75
DUPLICATE_CAP = 50

GRADING_FALLBACK_HINT = "回答を見直し、質問への直接的な回答と正確な補助金データを含めて再生成してください"


@dataclass
class _RunState:
    """1回のrun()内でのみ使う可変状態."""

    current_answer: str
    best_answer: str
    best_scores: Scores = field(default_factory=Scores)
    previous_scores: Scores = field(default_factory=Scores)
    loops: list[ValidationLoop] = field(default_factory=list)
    failure_patterns: list[str] = field(default_factory=list)
    success_patterns: list[str] = field(default_factory=list)
    termination: Termination = Termination.EXHAUSTED


class FeedbackLoopController:
    """Critique → 再生成のサイクルを制御し、最良の回答を選ぶコントローラ.

    状態はrun()の呼び出しごとに閉じており、インスタンスは複数リクエストで
    共有できる.
    """

    def __init__(
        self,
        critique_engine: CritiqueEngine,
        hint_builder: HintBuilder,
        extractor: EntityExtractor,
        config: ValidationConfig | None = None,
        log_store: ValidationLogStore | None = None,
    ) -> None:
        """FeedbackLoopControllerを初期化する.

        Args:
            critique_engine: 回答評価エンジン
            hint_builder: 再生成ヒントビルダー
            extractor: 重複再チェック用のエンティティ抽出器
            config: 検証ループ設定
            log_store: 検証ログの保存先. Noneの場合は保存しない

        Raises:
            InvalidConfig: 設定値が範囲外の場合
        """
        config = config or ValidationConfig()
        if config.max_loops < 1:
            msg = f"max_loopsは1以上である必要があります: {config.max_loops}"
            raise InvalidConfig(msg)
        if config.score_improvement_threshold < 0:
            msg = f"score_improvement_thresholdは0以上である必要があります: {config.score_improvement_threshold}"
            raise InvalidConfig(msg)
        self.critique_engine = critique_engine
        self.hint_builder = hint_builder
        self.extractor = extractor
        self.config = config
        self.log_store = log_store

    def run(
        self,
        question: str,
        initial_answer: str,
        thread_id: str,
        answer_generator: AnswerGenerator,
        context: CritiqueContext | None = None,
        base_instructions: str = "",
        cancel_event: threading.Event | None = None,
    ) -> ValidationResult:
        """フィードバックループを実行する.

        Args:
            question: ユーザーの質問
            initial_answer: 最初に生成された回答
            thread_id: 会話スレッドID
            answer_generator: 再生成に使う回答生成器
            context: 評価時のコンテキスト
            base_instructions: 再生成指示の前に付与する呼び出し元の指示
            cancel_event: セットされるとループを打ち切るイベント

        Returns:
            検証結果. 打ち切られた場合もそれまでの最良の回答を含む

        Raises:
            ValidationRunFailed: 予期しないエラーで検証を継続できない場合
        """
        start = time.monotonic()
        state = _RunState(current_answer=initial_answer, best_answer=initial_answer)
        try:
            self._loop(
                state,
                question,
                thread_id,
                answer_generator,
                context or CritiqueContext(),
                base_instructions,
                lambda: self._cancelled(start, cancel_event),
            )
            result = self._build_result(state)
        except Exception as e:
            logger.exception("Validation run failed for thread %s", thread_id)
            msg = f"検証ループの実行に失敗しました: {type(e).__name__}"
            raise ValidationRunFailed(msg, partial_answer=state.best_answer) from e

        duration_ms = int((time.monotonic() - start) * 1000)
        self._persist(
            ResultLogRecord(
                thread_id=thread_id,
                question=question,
                initial_response=initial_answer,
                duration_ms=duration_ms,
                result=result,
            )
        )
        self._log(
            "Completed in %dms with %d loops (%s), total improvement: %d",
            duration_ms,
            result.final_loop,
            result.termination,
            result.total_improvement,
        )
        return result

    def _loop(
        self,
        state: _RunState,
        question: str,
        thread_id: str,
        answer_generator: AnswerGenerator,
        context: CritiqueContext,
        base_instructions: str,
        cancelled: Callable[[], bool],
    ) -> None:
        max_loops = self.config.max_loops

        if self.extractor.find_duplicates(state.current_answer):
            state.failure_patterns.append("Initial response contains duplicate subsidies")

        for loop_number in range(1, max_loops + 1):
            if cancelled():
                state.failure_patterns.append(f"Loop {loop_number}: cancelled before critique")
                return
            self._log("Starting loop %d/%d", loop_number, max_loops)

            try:
                critique = self.critique_engine.critique(question, state.current_answer, context)
                failure_reason = None
            except GradingUnavailable:
                logger.warning("Grading unavailable on loop %d", loop_number, exc_info=True)
                critique = self._grading_fallback()
                failure_reason = f"Loop {loop_number}: grading unavailable"
            critique = self._recheck_duplicates(state.current_answer, critique)

            total = critique.scores.total()
            score_improvement = total - state.previous_scores.total() if loop_number > 1 else 0
            if total > state.best_scores.total():
                state.best_answer = state.current_answer
                state.best_scores = critique.scores

            loop = ValidationLoop(
                loop_number=loop_number,
                critique_result=critique,
                improvement_hints=list(critique.regeneration_hints),
                score_improvement=score_improvement,
            )
            state.loops.append(loop)
            self._persist(
                LoopLogRecord(
                    thread_id=thread_id,
                    question=question,
                    response=state.current_answer,
                    loop=loop,
                )
            )

            if critique.passed:
                state.success_patterns.append(
                    f"Loop {loop_number}: All scores >= {critique.threshold}"
                )
                self._log("Loop %d passed with scores: %s", loop_number, critique.scores)
                state.termination = Termination.APPROVED
                return

            average = critique.scores.average()
            if average >= EARLY_EXIT_AVERAGE and critique.lowest_score.score >= EARLY_EXIT_MIN_SCORE:
                state.success_patterns.append(
                    f"Loop {loop_number}: High average score ({average:.1f})"
                )
                self._log("Early exit: high average score %.1f", average)
                state.termination = Termination.APPROVED
                return

            lowest = critique.lowest_score
            state.failure_patterns.append(
                failure_reason or f"Loop {loop_number}: {lowest.category} = {lowest.score}"
            )

            if loop_number == max_loops or (
                loop_number > 1 and score_improvement < self.config.score_improvement_threshold
            ):
                self._log(
                    "Ending loops. Final loop: %d, improvement: %d", loop_number, score_improvement
                )
                state.termination = Termination.EXHAUSTED
                return

            if (
                loop_number > 1
                and score_improvement < DIMINISHING_IMPROVEMENT
                and average >= DIMINISHING_AVERAGE
            ):
                state.failure_patterns.append(
                    f"Loop {loop_number}: diminishing returns (improvement: {score_improvement})"
                )
                self._log("Early exit: diminishing returns (improvement: %d)", score_improvement)
                state.termination = Termination.EXHAUSTED
                return

            if critique.action != "regenerate":
                state.termination = (
                    Termination.CLARIFYING
                    if critique.action == "ask_clarification"
                    else Termination.APPROVED
                )
                return

            if cancelled():
                state.failure_patterns.append(f"Loop {loop_number}: cancelled before regeneration")
                state.termination = Termination.EXHAUSTED
                return

            hints = self.hint_builder.build_hints(loop_number, critique, state.loops)
            instructions = self.hint_builder.build_instructions(critique, hints, state.loops)
            self._log("Regenerating with progressive hints level %d", hints.level)
            try:
                state.current_answer = answer_generator.regenerate(
                    thread_id, base_instructions + instructions
                )
            except GenerationFailed as e:
                logger.warning("Regeneration failed on loop %d: %s", loop_number, e)
                state.failure_patterns.append(f"Loop {loop_number}: regeneration aborted ({e})")
                state.termination = Termination.EXHAUSTED
                return
            state.previous_scores = critique.scores
            self._log(
                "Generated intermediate response for loop %d (%d chars)",
                loop_number,
                len(state.current_answer),
            )

    def _recheck_duplicates(self, answer: str, critique: CritiqueResult) -> CritiqueResult:
        """評価結果とは独立に重複を検査し、data_accuracyを再度抑える."""
        duplicates = self.extractor.find_duplicates(answer)
        if not duplicates or critique.scores.data_accuracy <= DUPLICATE_CAP:
            return critique
        self._log("Duplicate subsidies detected: %s", duplicates)
        return critique.model_copy(
            update={
                "scores": critique.scores.capped(Dimension.DATA_ACCURACY, DUPLICATE_CAP),
                "action": "regenerate",
                "regeneration_hints": [*critique.regeneration_hints, DUPLICATE_HINT],
                "issues": [
                    *critique.issues,
                    CritiqueIssue(
                        type="duplicate",
                        description="回答に重複した補助金が含まれています",
                        severity="critical",
                    ),
                ],
            }
        )

    def _grading_fallback(self) -> CritiqueResult:
        return CritiqueResult(
            threshold=self.config.pass_threshold,
            action="regenerate",
            issues=[
                CritiqueIssue(
                    type="grading",
                    description="評価LLMが利用できなかったため、この回答は未評価です",
                    severity="warning",
                )
            ],
            regeneration_hints=[GRADING_FALLBACK_HINT],
        )

    def _build_result(self, state: _RunState) -> ValidationResult:
        if not state.loops:
            return ValidationResult(
                threshold=self.config.pass_threshold,
                best_response=state.best_answer,
                failure_patterns=state.failure_patterns,
                success_patterns=state.success_patterns,
                termination=Termination.EXHAUSTED,
                final_response=state.best_answer,
            )

        last = state.loops[-1].critique_result
        if state.termination == Termination.APPROVED:
            final_response = state.current_answer
            if last.action == "approve" and last.improved_response:
                final_response = last.improved_response
        elif state.termination == Termination.CLARIFYING:
            final_response = state.current_answer
        else:
            final_response = state.best_answer

        return ValidationResult(
            **{name: getattr(last, name) for name in CritiqueResult.model_fields},
            loops=state.loops,
            final_loop=len(state.loops),
            total_improvement=state.best_scores.total()
            - state.loops[0].critique_result.scores.total(),
            best_response=state.best_answer,
            best_scores=state.best_scores,
            failure_patterns=state.failure_patterns,
            success_patterns=state.success_patterns,
            termination=state.termination,
            final_response=final_response,
        )

    def _cancelled(self, start: float, cancel_event: threading.Event | None) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        timeout = self.config.timeout_seconds
        return timeout is not None and time.monotonic() - start >= timeout

    def _persist(self, record: LogRecord) -> None:
        if self.log_store is None:
            return
        try:
            self.log_store.append(record)
        except (PersistenceFailed, OSError):
            logger.exception("Failed to persist validation log for %s", record.thread_id)

    def _log(self, msg: str, *args: object) -> None:
        if self.config.enable_logging:
            logger.info(msg, *args)
