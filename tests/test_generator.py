"""回答生成エージェントのテスト."""

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from src.application.agents.generator import AnswerPromptBuilder, ThreadAnswerGenerator
from src.common.defs.errors import GenerationFailed
from src.components.llm_client.client import LLMClient
from src.components.subsidy_search.search import SubsidySearch
from src.components.thread_store.store import ThreadStore
from tests.fakes import StubLLMClient, make_index


def build_generator(llm_client, tmp_path) -> tuple[ThreadAnswerGenerator, ThreadStore]:  # noqa: ANN001
    store = ThreadStore()
    generator = ThreadAnswerGenerator(
        llm_client=llm_client,
        thread_store=store,
        search=SubsidySearch(make_index(5)),
        prompt_builder=AnswerPromptBuilder(str(tmp_path)),
        top_k=3,
    )
    return generator, store


def test_generate_appends_question_and_answer(tmp_path):
    client = LLMClient(FakeListChatModel(responses=["最初の回答"]))
    generator, store = build_generator(client, tmp_path)

    answer = generator.generate("t1", "創業に使える補助金は？")

    assert answer == "最初の回答"
    assert [(m.role, m.content) for m in store.get("t1").messages] == [
        ("user", "創業に使える補助金は？"),
        ("assistant", "最初の回答"),
    ]


def test_regenerate_returns_newest_answer_and_passes_instructions(tmp_path):
    client = StubLLMClient(text="最初の回答")
    generator, store = build_generator(client, tmp_path)
    generator.generate("t1", "創業に使える補助金は？")

    client.text = "改善した回答"
    answer = generator.regenerate("t1", "【再生成理由】件数が不足しています")

    assert answer == "改善した回答"
    system, *history = client.messages[-1]
    assert isinstance(system, SystemMessage)
    assert "【再生成理由】件数が不足しています" in system.content
    assert "## 補助金データ" in system.content
    assert isinstance(history[0], HumanMessage)
    assert isinstance(history[1], AIMessage)
    assert history[1].content == "最初の回答"
    assert len(store.get("t1").messages) == 3


def test_llm_error_raises_generation_failed(tmp_path):
    generator, _ = build_generator(StubLLMClient(text=RuntimeError("rate limited")), tmp_path)

    with pytest.raises(GenerationFailed):
        generator.generate("t1", "質問")


def test_empty_answer_raises_generation_failed(tmp_path):
    generator, store = build_generator(StubLLMClient(text="   "), tmp_path)

    with pytest.raises(GenerationFailed):
        generator.generate("t1", "質問")
    assert store.last_assistant_message_id("t1") is None


def test_regenerate_unknown_thread_raises_generation_failed(tmp_path):
    generator, _ = build_generator(StubLLMClient(text="回答"), tmp_path)

    with pytest.raises(GenerationFailed):
        generator.regenerate("missing", "指示")


def test_prompt_builder_uses_template_file(tmp_path):
    (tmp_path / "default.txt").write_text("DATA:{context}\nEXTRA:{instructions}", encoding="utf-8")
    builder = AnswerPromptBuilder(str(tmp_path))

    prompt = builder.build([], "")

    assert prompt == "DATA:(該当する補助金データはありません)\nEXTRA:(追加指示なし)"
