"""補助金チャットワークフローの動作確認スクリプト.

1件の質問を回答生成 → フィードバックループ検証まで実行し、
ループごとの評価結果をログに出力する.

Usage:
    python -m src.scripts.run_validation
    python -m src.scripts.run_validation --question "東京都のIT企業が使える補助金を全て教えて"
"""

import argparse
import sys

from dotenv import load_dotenv

from src.common.config.settings import load_config
from src.common.defs.validation import ValidationResult
from src.common.di.container import Container
from src.common.lib.logging import getLogger

logger = getLogger(__name__)

DEFAULT_QUESTION = "スタートアップが使える補助金を教えてください"


def parse_args() -> argparse.Namespace:
    """コマンドライン引数をパースする."""
    parser = argparse.ArgumentParser(description="補助金回答の検証ループ実行")
    parser.add_argument("--question", default=DEFAULT_QUESTION, help="ユーザーの質問")
    parser.add_argument("--thread-id", default=None, help="継続する会話スレッドID")
    return parser.parse_args()


def setup() -> Container:
    """DIコンテナを初期化して返す."""
    load_dotenv()
    config = load_config()
    container = Container()
    container.config.from_dict(config.model_dump())
    return container


def log_result(result: ValidationResult) -> None:
    """検証結果のループ履歴をログに出力する."""
    logger.info("=" * 60)
    logger.info("Termination: %s (loops=%d)", result.termination, result.final_loop)
    for loop in result.loops:
        critique = loop.critique_result
        logger.info(
            "  Loop %d: action=%s lowest=%s(%d) improvement=%d",
            loop.loop_number,
            critique.action,
            critique.lowest_score.category,
            critique.lowest_score.score,
            loop.score_improvement,
        )
        for issue in critique.issues:
            logger.info("    [%s] %s: %s", issue.severity, issue.type, issue.description)
    logger.info("Best scores: %s", result.best_scores.model_dump())
    logger.info("Total improvement: %d", result.total_improvement)
    logger.info("Failure patterns: %s", result.failure_patterns)
    logger.info("Success patterns: %s", result.success_patterns)
    logger.info("=" * 60)


def main() -> None:
    """質問1件に対してワークフローを実行する."""
    args = parse_args()
    try:
        logger.info("Initializing container...")
        container = setup()
        workflow = container.chat_workflow()

        logger.info("Question: %s", args.question)
        state = workflow.run(message=args.question, thread_id=args.thread_id)

        result = state.get("result")
        if result is not None:
            log_result(result)
        logger.info("Thread: %s", state["thread_id"])
        logger.info("Response:\n%s", state["response"])

    except Exception:
        logger.exception("Failed to run validation workflow")
        sys.exit(1)


if __name__ == "__main__":
    main()
