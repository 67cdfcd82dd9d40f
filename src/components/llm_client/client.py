"""LangChain ChatModelを使用したLLMリクエストクライアント."""

import logging
from typing import TypeVar

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def create_chat_model(provider: str, model: str, **kwargs) -> BaseChatModel:  # noqa: ANN003
    """プロバイダ名からChatModelを生成するファクトリ.

    Args:
        provider: プロバイダ名（openai / bedrock / azure）
        model: モデル名
        **kwargs: 追加のキーワード引数

    Returns:
        ChatModelインスタンス

    Raises:
        ValueError: 未知のプロバイダが指定された場合
    """
    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=model, **kwargs)
    if provider == "azure":
        from langchain_openai import AzureChatOpenAI

        return AzureChatOpenAI(model=model, **kwargs)
    if provider == "bedrock":
        from langchain_aws import ChatBedrock

        return ChatBedrock(model_id=model, **kwargs)
    msg = f"Unknown provider: {provider}"
    raise ValueError(msg)


class LLMClient:
    """LangChainのChatModelをラップするクライアントクラス."""

    def __init__(self, chat_model: BaseChatModel) -> None:
        """LLMClientを初期化する.

        Args:
            chat_model: LangChainのChatModel
        """
        self.chat_model = chat_model

    def invoke_text(self, messages: list[BaseMessage]) -> str:
        """メッセージリストでLLMにリクエストを送信し、応答本文を返す.

        Args:
            messages: メッセージリスト

        Returns:
            応答本文. 本文が文字列以外の場合は文字列化する.

        Raises:
            Exception: LLMリクエストが失敗した場合
        """
        try:
            response: AIMessage = self.chat_model.invoke(messages)
        except Exception:
            logger.exception("LLM request failed")
            raise
        content = response.content
        if isinstance(content, str):
            return content
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )

    def invoke_structured(
        self,
        messages: list[BaseMessage],
        schema: type[T],
    ) -> T:
        """メッセージリストでLLMにリクエストを送信し、構造化された出力を得る.

        Args:
            messages: メッセージリスト
            schema: 出力スキーマ（Pydantic BaseModel）

        Returns:
            構造化されたLLMの応答

        Raises:
            Exception: LLMリクエストが失敗した場合
        """
        try:
            structured_llm = self.chat_model.with_structured_output(schema)
            return structured_llm.invoke(messages)
        except Exception:
            logger.exception("Structured LLM request failed")
            raise
