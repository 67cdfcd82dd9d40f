"""LangGraphベースの補助金チャットワークフロー."""

import json
import logging
from typing import Any, TypedDict

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from src.application.agents.generator import ThreadAnswerGenerator
from src.application.agents.validator import FeedbackLoopController
from src.common.defs.critique import ChatMessage, CritiqueContext
from src.common.defs.errors import GenerationFailed, ValidationRunFailed
from src.common.defs.validation import Termination, ValidationResult
from src.components.auto_filter.generator import AutoFilterGenerator
from src.components.entity_extraction.extractor import EntityExtractor
from src.components.thread_store.store import ThreadStore

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = (
    "申し訳ございません。回答の生成中にエラーが発生しました。"
    "しばらくしてから再度お試しください。"
)


class ChatState(TypedDict, total=False):
    """ワークフローの状態定義."""

    message: str
    thread_id: str | None
    filters: dict[str, Any]
    context: CritiqueContext
    answer: str | None
    result: ValidationResult | None
    partial_answer: str | None
    response: str


def format_clarification(questions: list[str]) -> str:
    """深掘り質問を回答末尾に付与するブロックを作る."""
    if not questions:
        return ""
    numbered = "\n".join(f"{i}. {q}" for i, q in enumerate(questions, start=1))
    return (
        "\n\nより最適な補助金をご提案するため、以下について教えていただけますか？\n\n"
        f"{numbered}\n\n"
        "これらの情報をいただければ、より具体的で有益な補助金情報をご提供できます。"
    )


def format_filter_instructions(filters: dict[str, Any]) -> str:
    """フィルター条件を回答生成用の追加指示に変換する."""
    if not filters:
        return ""
    return (
        "ユーザーが指定した以下の条件に合う補助金を優先してください:\n"
        f"{json.dumps(filters, ensure_ascii=False, indent=2)}\n"
    )


class SubsidyChatWorkflow:
    """質問受付から回答生成・品質検証・最終整形までのワークフロー."""

    def __init__(
        self,
        thread_store: ThreadStore,
        generator: ThreadAnswerGenerator,
        controller: FeedbackLoopController,
        extractor: EntityExtractor,
        auto_filter: AutoFilterGenerator,
    ) -> None:
        """SubsidyChatWorkflowを初期化する.

        Args:
            thread_store: 会話スレッドストア
            generator: 回答生成エージェント
            controller: フィードバックループコントローラ
            extractor: 既出の補助金名を抽出する抽出器
            auto_filter: フィルター未指定時に質問文から条件を作る生成器
        """
        self.thread_store = thread_store
        self.generator = generator
        self.controller = controller
        self.extractor = extractor
        self.auto_filter = auto_filter

    def build(self) -> CompiledStateGraph:
        """ワークフローグラフを構築・コンパイルする.

        Returns:
            コンパイル済みStateGraph
        """
        graph = StateGraph(ChatState)
        graph.add_node("prepare_thread", self._prepare_thread)
        graph.add_node("generate", self._generate)
        graph.add_node("validate", self._validate)
        graph.add_node("finalize", self._finalize)
        graph.set_entry_point("prepare_thread")
        graph.add_edge("prepare_thread", "generate")
        graph.add_conditional_edges(
            "generate",
            lambda state: "validate" if state.get("answer") else "finalize",
            {"validate": "validate", "finalize": "finalize"},
        )
        graph.add_edge("validate", "finalize")
        graph.add_edge("finalize", END)
        return graph.compile()

    def run(
        self,
        message: str,
        thread_id: str | None = None,
        filters: dict[str, Any] | None = None,
    ) -> ChatState:
        """1ターン分のワークフローを実行し、最終状態を返す."""
        return self.build().invoke(
            {"message": message, "thread_id": thread_id, "filters": filters or {}}
        )

    def _prepare_thread(self, state: ChatState) -> dict:
        """スレッドを用意し、これまでの会話から評価コンテキストを作るノード."""
        thread = self.thread_store.create(state.get("thread_id"))
        prior = [ChatMessage(role=m.role, content=m.content) for m in thread.messages]
        mentioned: list[str] = []
        for m in thread.messages:
            if m.role == "assistant":
                mentioned.extend(e.name for e in self.extractor.extract(m.content))
        filters = state.get("filters") or self._auto_filters(state["message"])
        context = CritiqueContext(
            has_filters=bool(filters),
            mentioned_entities=list(dict.fromkeys(mentioned)),
            prior_messages=prior,
            filters=filters,
        )
        return {"thread_id": thread.thread_id, "filters": filters, "context": context}

    def _auto_filters(self, message: str) -> dict[str, Any]:
        generated = self.auto_filter.generate(message)
        if generated is None:
            return {}
        filters = generated.to_dict()
        logger.info("Using auto-generated filters: %s", sorted(filters))
        return filters

    def _generate(self, state: ChatState) -> dict:
        """最初の回答を生成するノード."""
        try:
            answer = self.generator.generate(
                state["thread_id"],
                state["message"],
                format_filter_instructions(state.get("filters") or {}),
            )
        except GenerationFailed:
            logger.exception("Initial generation failed for thread %s", state["thread_id"])
            return {"answer": None}
        return {"answer": answer}

    def _validate(self, state: ChatState) -> dict:
        """フィードバックループで回答を検証するノード."""
        try:
            result = self.controller.run(
                question=state["message"],
                initial_answer=state["answer"],
                thread_id=state["thread_id"],
                answer_generator=self.generator,
                context=state["context"],
                base_instructions=format_filter_instructions(state.get("filters") or {}),
            )
        except ValidationRunFailed as e:
            logger.warning("Validation failed, falling back to partial answer: %s", e)
            return {"result": None, "partial_answer": e.partial_answer or state["answer"]}
        return {"result": result}

    def _finalize(self, state: ChatState) -> dict:
        """ユーザーに返す回答テキストを決定するノード."""
        if not state.get("answer"):
            return {"response": APOLOGY_MESSAGE}

        result = state.get("result")
        if result is None:
            return {"response": state.get("partial_answer") or state["answer"]}

        response = result.final_response or result.best_response or state["answer"]
        if result.termination == Termination.CLARIFYING:
            response += format_clarification(result.clarification_questions)
        return {"response": response}
