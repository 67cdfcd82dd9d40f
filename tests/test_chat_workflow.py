"""チャットワークフローのテスト."""

from src.application.agents.critique import CritiqueEngine, GraderVerdict
from src.application.agents.generator import AnswerPromptBuilder, ThreadAnswerGenerator
from src.application.agents.hints import HintBuilder
from src.application.agents.validator import FeedbackLoopController
from src.application.workflows.chat_workflow import (
    APOLOGY_MESSAGE,
    SubsidyChatWorkflow,
    format_clarification,
)
from src.common.config.settings import ValidationConfig
from src.common.defs.validation import Termination
from src.components.auto_filter.generator import AutoFilterGenerator
from src.components.entity_extraction.extractor import PatternEntityExtractor
from src.components.subsidy_search.search import SubsidySearch
from src.components.thread_store.store import ThreadStore
from tests.fakes import (
    FakeCritiqueEngine,
    FakeGrader,
    StubLLMClient,
    make_answer,
    make_critique,
    make_index,
    make_scores,
    subsidy_name,
    uniform_scores,
)


def build_workflow(llm_client, engine, tmp_path, max_loops: int = 2):  # noqa: ANN001
    store = ThreadStore()
    extractor = PatternEntityExtractor()
    generator = ThreadAnswerGenerator(
        llm_client=llm_client,
        thread_store=store,
        search=SubsidySearch(make_index(10)),
        prompt_builder=AnswerPromptBuilder(str(tmp_path)),
    )
    controller = FeedbackLoopController(
        critique_engine=engine,
        hint_builder=HintBuilder(),
        extractor=extractor,
        config=ValidationConfig(max_loops=max_loops),
    )
    return SubsidyChatWorkflow(store, generator, controller, extractor, AutoFilterGenerator()), store


def test_approved_answer_is_returned(tmp_path):
    grader = FakeGrader(GraderVerdict(scores=uniform_scores(92), action="approve"))
    engine = CritiqueEngine(grader, make_index(10), PatternEntityExtractor())
    workflow, _ = build_workflow(StubLLMClient(text=make_answer(3)), engine, tmp_path)

    state = workflow.run("創業に使える補助金は？", filters={"region": "東京都"})

    assert state["response"] == make_answer(3)
    assert state["result"].termination == Termination.APPROVED
    assert state["thread_id"].startswith("thread_")
    assert state["context"].has_filters


def test_clarifying_result_appends_questions(tmp_path):
    critique = make_critique(
        make_scores(90, 40, 90, 90, 90),
        action="ask_clarification",
        clarification_questions=["業種を教えてください", "従業員数を教えてください"],
    )
    workflow, _ = build_workflow(
        StubLLMClient(text="回答です"), FakeCritiqueEngine(critique), tmp_path
    )

    state = workflow.run("補助金を知りたい")

    assert state["response"].startswith("回答です\n\nより最適な補助金をご提案するため")
    assert "1. 業種を教えてください\n2. 従業員数を教えてください" in state["response"]


def test_exhausted_result_returns_best_answer(tmp_path):
    client = StubLLMClient(text="最初の回答")
    engine = FakeCritiqueEngine(
        make_critique(uniform_scores(60)),
        make_critique(uniform_scores(50)),
    )
    workflow, _ = build_workflow(client, engine, tmp_path)

    original_regenerate = workflow.generator.regenerate

    def regenerate(thread_id, instructions):  # noqa: ANN001
        client.text = "悪化した回答"
        return original_regenerate(thread_id, instructions)

    workflow.generator.regenerate = regenerate
    state = workflow.run("創業に使える補助金は？")

    assert state["result"].termination == Termination.EXHAUSTED
    assert state["response"] == "最初の回答"


def test_validation_failure_falls_back_to_partial_answer(tmp_path):
    workflow, _ = build_workflow(
        StubLLMClient(text="部分的な回答"), FakeCritiqueEngine(RuntimeError("bug")), tmp_path
    )

    state = workflow.run("質問")

    assert state["result"] is None
    assert state["response"] == "部分的な回答"


def test_generation_failure_returns_apology(tmp_path):
    workflow, _ = build_workflow(
        StubLLMClient(text=RuntimeError("down")),
        FakeCritiqueEngine(make_critique(uniform_scores(90))),
        tmp_path,
    )

    state = workflow.run("質問")

    assert state["response"] == APOLOGY_MESSAGE
    assert "result" not in state or state["result"] is None


def test_prior_answers_become_mentioned_entities(tmp_path):
    engine = FakeCritiqueEngine(make_critique(uniform_scores(90), action="approve"))
    workflow, store = build_workflow(StubLLMClient(text=make_answer(2)), engine, tmp_path)

    first = workflow.run("創業に使える補助金は？")
    second = workflow.run("他にもありますか？", thread_id=first["thread_id"])

    context = second["context"]
    assert context.mentioned_entities == [subsidy_name(1), subsidy_name(2)]
    assert [m.role for m in context.prior_messages] == ["user", "assistant"]
    assert len(store.get(first["thread_id"]).messages) == 4


def test_format_clarification_empty():
    assert format_clarification([]) == ""


def test_filters_are_generated_from_question_when_missing(tmp_path):
    client = StubLLMClient(text=make_answer(2))
    engine = FakeCritiqueEngine(make_critique(uniform_scores(90), action="approve"))
    workflow, _ = build_workflow(client, engine, tmp_path)

    state = workflow.run("渋谷区で創業する従業員5名以下の会社が使える補助金は？")

    assert state["context"].has_filters
    assert state["filters"]["area"] == {"prefecture": "東京都", "cities": ["渋谷区"]}
    assert state["filters"]["purpose"]["main_categories"] == ["startup"]
    assert state["filters"]["company"]["employee_max"] == 5
    system_prompt = client.messages[0][0].content
    assert "ユーザーが指定した以下の条件に合う補助金を優先してください" in system_prompt
    assert "渋谷区" in system_prompt


def test_caller_filters_take_precedence_over_generated(tmp_path):
    engine = FakeCritiqueEngine(make_critique(uniform_scores(90), action="approve"))
    workflow, _ = build_workflow(StubLLMClient(text=make_answer(2)), engine, tmp_path)

    state = workflow.run("東京都で創業したい", filters={"region": "大阪府"})

    assert state["filters"] == {"region": "大阪府"}


def test_question_without_conditions_has_no_filters(tmp_path):
    engine = FakeCritiqueEngine(make_critique(uniform_scores(90), action="approve"))
    workflow, _ = build_workflow(StubLLMClient(text=make_answer(2)), engine, tmp_path)

    state = workflow.run("補助金を知りたい")

    assert state["filters"] == {}
    assert not state["context"].has_filters
