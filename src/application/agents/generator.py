"""回答生成エージェントとプロンプト構築の実装."""

import logging
import textwrap
from pathlib import Path
from typing import Protocol

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from src.common.defs.errors import GenerationFailed
from src.components.llm_client.client import LLMClient
from src.components.subsidy_search.models import SearchQuery, SearchResult
from src.components.subsidy_search.search import SubsidySearch
from src.components.thread_store.models import ConversationThread
from src.components.thread_store.store import ThreadStore

logger = logging.getLogger(__name__)


class AnswerGenerator(Protocol):
    """会話スレッドに対して新しい回答を生成する機能のインターフェース."""

    def regenerate(self, thread_id: str, instructions: str) -> str:
        """追加指示を踏まえて同じスレッドで回答を再生成する.

        Raises:
            GenerationFailed: 回答を生成できなかった場合
        """
        ...


class AnswerPromptBuilder:
    """回答生成用システムプロンプトの読み込みと構築を行うビルダー."""

    def __init__(self, prompts_dir: str = "prompts/generator") -> None:
        """AnswerPromptBuilderを初期化する.

        Args:
            prompts_dir: プロンプトテンプレートディレクトリのパス
        """
        self.prompts_dir = Path(prompts_dir)

    def build(self, results: list[SearchResult], instructions: str = "") -> str:
        """検索結果と追加指示からシステムプロンプトを構築する.

        Args:
            results: 参照する補助金の検索結果
            instructions: 呼び出し元からの追加指示

        Returns:
            構築されたプロンプト文字列
        """
        template = self._load_template()
        return template.format(
            context=self._format_context(results),
            instructions=instructions.strip() or "(追加指示なし)",
        )

    def _load_template(self) -> str:
        default_template_path = self.prompts_dir / "default.txt"
        if default_template_path.exists():
            return default_template_path.read_text(encoding="utf-8")

        logger.warning("No generator template found. Using fallback template.")
        return self._fallback_template()

    def _fallback_template(self) -> str:
        return textwrap.dedent(
            """
            あなたは日本の補助金・助成金に詳しいアドバイザーです.
            以下の補助金データだけを根拠に、ユーザーの質問に回答してください.

            ## 回答ルール
            - 冒頭で「申請可能な補助金は○○件です。」と件数を明示する
            - 補助金名は太字で「**1. 補助金名**」の形式にし、同じ補助金を二度提案しない
            - 補助金額と公式URLは補助金データの値をそのまま記載する
            - 最後にユーザーの状況を深掘りする質問を添える

            ## 補助金データ
            {context}

            ## 追加指示
            {instructions}
            """
        ).strip()

    def _format_context(self, results: list[SearchResult]) -> str:
        if not results:
            return "(該当する補助金データはありません)"

        blocks = []
        for result in results:
            record = result.subsidy
            lines = [f"- {record.name} (ID: {record.id})"]
            if record.summary:
                lines.append(f"  概要: {record.summary}")
            if record.reference_amount is not None:
                lines.append(f"  補助金額: 最大{record.reference_amount:,}円")
            if record.reference_url:
                lines.append(f"  URL: {record.reference_url}")
            if record.categories:
                lines.append(f"  カテゴリー: {', '.join(record.categories)}")
            blocks.append("\n".join(lines))
        return "\n".join(blocks)


class ThreadAnswerGenerator:
    """会話スレッドの履歴と補助金データからLLMで回答を生成するエージェント."""

    def __init__(
        self,
        llm_client: LLMClient,
        thread_store: ThreadStore,
        search: SubsidySearch,
        prompt_builder: AnswerPromptBuilder,
        top_k: int = 10,
    ) -> None:
        """ThreadAnswerGeneratorを初期化する.

        Args:
            llm_client: 回答生成用LLMクライアント
            thread_store: 会話スレッドストア
            search: 補助金検索エンジン
            prompt_builder: プロンプト構築ビルダー
            top_k: プロンプトに含める補助金の件数
        """
        self.llm_client = llm_client
        self.thread_store = thread_store
        self.search = search
        self.prompt_builder = prompt_builder
        self.top_k = top_k

    def generate(self, thread_id: str, question: str, instructions: str = "") -> str:
        """ユーザーの質問をスレッドに追加し、最初の回答を生成する.

        Args:
            thread_id: スレッドID
            question: ユーザーの質問
            instructions: 追加指示

        Returns:
            生成された回答

        Raises:
            GenerationFailed: 回答を生成できなかった場合
        """
        self.thread_store.append(thread_id, "user", question)
        return self._run(thread_id, question, instructions)

    def regenerate(self, thread_id: str, instructions: str) -> str:
        """スレッドの最新の質問に対して、追加指示付きで回答を再生成する.

        Raises:
            GenerationFailed: 回答を生成できなかった場合
        """
        try:
            thread = self.thread_store.get(thread_id)
        except KeyError as e:
            msg = f"再生成対象のスレッドが存在しません: {thread_id}"
            raise GenerationFailed(msg) from e
        question = next(
            (m.content for m in reversed(thread.messages) if m.role == "user"),
            "",
        )
        return self._run(thread_id, question, instructions)

    def _run(self, thread_id: str, question: str, instructions: str) -> str:
        marker = self.thread_store.last_assistant_message_id(thread_id)
        results = self.search.search(SearchQuery(query_text=question, top_k=self.top_k))
        system_prompt = self.prompt_builder.build(results, instructions)
        messages = [
            SystemMessage(content=system_prompt),
            *self._history_messages(self.thread_store.get(thread_id)),
        ]

        try:
            answer = self.llm_client.invoke_text(messages)
        except Exception as e:
            msg = "回答の生成に失敗しました"
            raise GenerationFailed(msg) from e
        if not answer.strip():
            msg = "LLMが空の回答を返しました"
            raise GenerationFailed(msg)

        self.thread_store.append(thread_id, "assistant", answer)
        latest = self.thread_store.latest_assistant_message_since(thread_id, marker)
        if latest is None:
            msg = f"新しい回答がスレッドに見つかりません: {thread_id}"
            raise GenerationFailed(msg)
        logger.debug("Generated answer for %s (%d chars)", thread_id, len(latest.content))
        return latest.content

    def _history_messages(self, thread: ConversationThread) -> list[BaseMessage]:
        return [
            HumanMessage(content=m.content) if m.role == "user" else AIMessage(content=m.content)
            for m in thread.messages
        ]
