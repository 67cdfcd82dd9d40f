"""補助金アシスタントのエラー型定義."""


class SubsidyAssistantError(Exception):
    """アプリケーション共通の基底例外."""


class GradingUnavailable(SubsidyAssistantError):
    """評価LLMに到達できない、または応答を解析できない場合の例外."""


class GenerationFailed(SubsidyAssistantError):
    """回答生成LLMが新しい回答を生成できなかった場合の例外."""


class PersistenceFailed(SubsidyAssistantError):
    """検証ログの書き込みに失敗した場合の例外."""


class InvalidConfig(SubsidyAssistantError, ValueError):
    """設定値が範囲外または解析不能な場合の例外."""


class ValidationRunFailed(SubsidyAssistantError):
    """検証ループ全体が失敗した場合の例外.

    Attributes:
        partial_answer: 失敗時点で得られている最良の回答（存在しない場合はNone）
    """

    def __init__(self, message: str, partial_answer: str | None = None) -> None:
        """ValidationRunFailedを初期化する.

        Args:
            message: エラーメッセージ
            partial_answer: 最良の部分回答
        """
        super().__init__(message)
        self.partial_answer = partial_answer
