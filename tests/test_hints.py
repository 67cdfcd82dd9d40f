"""再生成ヒントビルダーのテスト."""

from src.application.agents.hints import RESPONSE_TEMPLATE, HintBuilder
from src.common.defs.critique import Dimension
from src.common.defs.validation import ValidationLoop
from tests.fakes import make_critique, make_scores


def loop(number: int, critique) -> ValidationLoop:  # noqa: ANN001
    return ValidationLoop(loop_number=number, critique_result=critique)


LOW_ACCURACY = make_critique(
    make_scores(90, 80, 40, 90, 90),
    regeneration_hints=["最低でも20件以上の補助金を検索・提示してください"],
)
LOW_COMPLETENESS = make_critique(make_scores(90, 50, 90, 90, 60))


def test_level_follows_loop_number_and_caps_at_three():
    builder = HintBuilder()
    levels = [builder.build_hints(n, LOW_ACCURACY, []).level for n in range(1, 6)]
    assert levels == [1, 2, 3, 3, 3]


def test_level_one_has_base_and_source_directives():
    hints = HintBuilder().build_hints(1, LOW_ACCURACY, [loop(1, LOW_ACCURACY)])

    assert "ユーザーの質問に直接的に回答してください" in hints.hints
    assert any("重複して提案しないでください" in h for h in hints.hints)
    assert "補助金データから正確に情報を抽出してください" in hints.hints
    assert "最低でも20件以上の補助金を検索・提示してください" in hints.hints
    assert hints.examples == []
    assert hints.template is None


def test_level_one_skips_source_directives_for_other_dimensions():
    hints = HintBuilder().build_hints(1, LOW_COMPLETENESS, [])
    assert "補助金データから正確に情報を抽出してください" not in hints.hints


def test_level_two_adds_examples_and_failure_directives():
    history = [loop(1, LOW_COMPLETENESS), loop(2, LOW_ACCURACY)]

    hints = HintBuilder().build_hints(2, LOW_ACCURACY, history)

    assert hints.level == 2
    assert any("申請可能な補助金は○○件です" in e for e in hints.examples)
    assert any("検索キーワードを拡張してください" in h for h in hints.hints)
    assert any("必ず5件の補助金を提案してください" in h for h in hints.hints)
    assert hints.template is None


def test_level_three_adds_template_recurring_and_success_areas():
    history = [loop(1, LOW_ACCURACY), loop(2, LOW_ACCURACY), loop(3, LOW_ACCURACY)]

    hints = HintBuilder().build_hints(3, LOW_ACCURACY, history)

    assert hints.template == RESPONSE_TEMPLATE
    assert f"{Dimension.DATA_ACCURACY}の改善に特に注意してください（3回失敗）" in hints.hints
    assert any(
        h.startswith("以下の項目は良好です") and "relevance" in h and "data_accuracy" not in h
        for h in hints.hints
    )


def test_hints_are_not_repeated():
    hints = HintBuilder().build_hints(3, LOW_ACCURACY, [loop(1, LOW_ACCURACY)])
    assert len(hints.hints) == len(set(hints.hints))


def test_disabled_progressive_hints_use_critique_hints_only():
    builder = HintBuilder(enable_progressive_hints=False)

    hints = builder.build_hints(3, LOW_ACCURACY, [loop(1, LOW_ACCURACY)])

    assert hints.level == 1
    assert hints.hints == LOW_ACCURACY.regeneration_hints
    assert hints.template is None


def test_disabled_failure_analysis_omits_history_directives():
    history = [loop(1, LOW_ACCURACY), loop(2, LOW_ACCURACY)]
    builder = HintBuilder(enable_failure_analysis=False)

    hints = builder.build_hints(3, LOW_ACCURACY, history)
    instructions = builder.build_instructions(LOW_ACCURACY, hints, history)

    assert not any("検索キーワードを拡張してください" in h for h in hints.hints)
    assert not any("回失敗" in h for h in hints.hints)
    assert "【過去の試行からの注意点】" not in instructions


def test_instructions_contain_all_sections():
    builder = HintBuilder()
    history = [loop(1, LOW_COMPLETENESS), loop(2, LOW_ACCURACY), loop(3, LOW_ACCURACY)]
    hints = builder.build_hints(3, LOW_ACCURACY, history)

    instructions = builder.build_instructions(LOW_ACCURACY, hints, history)

    assert "【再生成理由】\ndata_accuracyのスコアが40点でした。" in instructions
    assert "- data_accuracy: 40点" in instructions
    assert "- completeness: 80点" not in instructions
    assert "【レベル3の改善指示】" in instructions
    assert "【具体例】" in instructions
    assert "【推奨テンプレート】" in instructions
    assert "- 試行1: completenessで失敗" in instructions
    assert "- 試行3: data_accuracyで失敗" in instructions
    assert "特にdata_accuracyの改善に重点を置いてください。" in instructions


def test_level_one_instructions_have_no_examples_or_template():
    builder = HintBuilder()
    hints = builder.build_hints(1, LOW_ACCURACY, [])

    instructions = builder.build_instructions(LOW_ACCURACY, hints, [])

    assert "【レベル1の改善指示】" in instructions
    assert "【具体例】" not in instructions
    assert "【推奨テンプレート】" not in instructions
    assert "【過去の試行からの注意点】" not in instructions


def test_past_attempts_list_every_failed_loop():
    near_miss = make_critique(make_scores(90, 80, 90, 90, 90))
    history = [loop(1, near_miss), loop(2, LOW_ACCURACY)]
    builder = HintBuilder()
    hints = builder.build_hints(2, LOW_ACCURACY, history)

    instructions = builder.build_instructions(LOW_ACCURACY, hints, history)

    assert "- 試行1: completenessで失敗" in instructions
    assert "- 試行2: data_accuracyで失敗" in instructions


def test_past_attempts_header_is_omitted_without_failures():
    passing = make_critique(make_scores(90, 90, 90, 90, 90))
    builder = HintBuilder()
    hints = builder.build_hints(2, LOW_ACCURACY, [loop(1, passing)])

    instructions = builder.build_instructions(LOW_ACCURACY, hints, [loop(1, passing)])

    assert "【過去の試行からの注意点】" not in instructions
