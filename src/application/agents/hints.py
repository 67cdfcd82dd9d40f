"""再生成用の段階的ヒントと改善指示文の構築."""

import textwrap
from collections import Counter

from src.common.defs.critique import CritiqueResult, Dimension
from src.common.defs.validation import ProgressiveHint, ValidationLoop

BASE_DIRECTIVES = (
    "ユーザーの質問に直接的に回答してください",
    "必要な情報をすべて含めてください",
    "正確なデータを使用してください",
    "【重要】同じ補助金を重複して提案しないでください。各補助金は一度だけ提案してください",
)
DATA_SOURCE_DIRECTIVES = (
    "補助金データから正確に情報を抽出してください",
    "複数の異なる補助金を提案してください",
    "補助金名とIDが異なることを確認してください",
)
FRAMING_EXAMPLES = (
    "冒頭: 「申請可能な補助金は○○件です。」",
    "各補助金に: （マッチ度: 85点/100点）内訳：地域(30/30)...",
)
FAILURE_DIRECTIVES: dict[Dimension, tuple[str, ...]] = {
    Dimension.DATA_ACCURACY: (
        "検索キーワードを拡張してください（例：「スタートアップ」→「創業,起業,新事業」）",
        "categoriesフィールドも検索対象に含めてください",
    ),
    Dimension.COMPLETENESS: (
        "必ず5件の補助金を提案してください（3-4件では不十分）",
        "各補助金について詳細な説明を含めてください",
    ),
}

LOW_SCORE = 70
GOOD_SCORE = 85
RECURRING_FAILURES = 2

RESPONSE_TEMPLATE = textwrap.dedent(
    """
    【推奨回答構造】
    1. 冒頭（必須）
       「申請可能な補助金は○○件です。」
       「補助金の一部として以下のようなものがあります。」

    2. 補助金リスト（必ず5件）
       各補助金の形式：

       **1. 補助金名**（マッチ度: ○○点/100点）
       内訳：地域(○/○)、カテゴリー(○/○)、金額(○/○)、企業規模(○/○)、その他(○/10)
       - 対象者：具体的な条件
       - 補助金額：上限○○万円（補助率○/○）
       - 対象経費：具体的な使途
       - 申請期限：○月○日まで
       - なぜ適しているか：ユーザーの状況に合わせた理由
       - [公式サイトで詳細を見る](公式URL)

    3. 締めくくり（必須）
       「より最適な補助金をご提案するため、以下について教えていただけますか？」
       - 質問1
       - 質問2
       - 質問3
    """
).strip()


def failed_categories(history: list[ValidationLoop]) -> Counter[Dimension]:
    """不合格だったループの最低スコア観点を数える."""
    return Counter(
        loop.critique_result.lowest_score.category
        for loop in history
        if not loop.critique_result.passed
    )


def recurring_failures(history: list[ValidationLoop]) -> Counter[Dimension]:
    """最低スコアが70点未満だったループの観点を数える."""
    return Counter(
        loop.critique_result.lowest_score.category
        for loop in history
        if loop.critique_result.lowest_score.score < LOW_SCORE
    )


class HintBuilder:
    """ループ回数に応じて具体性を上げる再生成ヒントのビルダー.

    レベル1は基本指示、レベル2は具体例と過去の失敗傾向に応じた指示、
    レベル3は推奨テンプレートと繰り返し失敗している観点への注意を加える.
    """

    def __init__(
        self,
        enable_progressive_hints: bool = True,
        enable_failure_analysis: bool = True,
    ) -> None:
        """HintBuilderを初期化する.

        Args:
            enable_progressive_hints: Falseの場合は評価器のヒントのみを使う
            enable_failure_analysis: Falseの場合は履歴に基づく指示を省く
        """
        self.enable_progressive_hints = enable_progressive_hints
        self.enable_failure_analysis = enable_failure_analysis

    def build_hints(
        self,
        loop_number: int,
        critique: CritiqueResult,
        history: list[ValidationLoop],
    ) -> ProgressiveHint:
        """ループ番号と評価結果からProgressiveHintを生成する.

        Args:
            loop_number: 1始まりのループ番号
            critique: 今回の評価結果
            history: 今回分を含むループ履歴

        Returns:
            再生成用のヒント
        """
        if not self.enable_progressive_hints:
            return ProgressiveHint(level=1, hints=list(critique.regeneration_hints))

        level = min(max(loop_number, 1), 3)
        hints: list[str] = list(BASE_DIRECTIVES)
        examples: list[str] = []
        template: str | None = None

        if critique.lowest_score.category == Dimension.DATA_ACCURACY:
            hints.extend(DATA_SOURCE_DIRECTIVES)
        hints.extend(critique.regeneration_hints)

        if level >= 2:
            examples.extend(FRAMING_EXAMPLES)
            if self.enable_failure_analysis:
                failed = failed_categories(history)
                for dimension, directives in FAILURE_DIRECTIVES.items():
                    if failed[dimension]:
                        hints.extend(directives)

        if level >= 3:
            template = RESPONSE_TEMPLATE
            if self.enable_failure_analysis:
                for dimension, count in recurring_failures(history).items():
                    if count >= RECURRING_FAILURES:
                        hints.append(f"{dimension}の改善に特に注意してください（{count}回失敗）")
            good = [d.value for d, score in critique.scores.items() if score >= GOOD_SCORE]
            if good:
                hints.append(f"以下の項目は良好です、維持してください: {', '.join(good)}")

        return ProgressiveHint(
            level=level,
            hints=list(dict.fromkeys(hints)),
            examples=examples,
            template=template,
        )

    def build_instructions(
        self,
        critique: CritiqueResult,
        hints: ProgressiveHint,
        history: list[ValidationLoop],
    ) -> str:
        """評価結果とヒントから再生成指示の文字列を組み立てる.

        Args:
            critique: 今回の評価結果
            hints: build_hintsで生成したヒント
            history: ループ履歴

        Returns:
            アシスタントへの追加指示
        """
        lowest = critique.lowest_score
        lines = [
            "",
            "【再生成理由】",
            f"{lowest.category}のスコアが{lowest.score}点でした。",
            "",
            "【改善が必要な項目】",
        ]
        lines.extend(
            f"- {dimension}: {score}点"
            for dimension, score in critique.scores.items()
            if score < LOW_SCORE
        )

        lines += ["", f"【レベル{hints.level}の改善指示】"]
        lines.extend(f"- {hint}" for hint in hints.hints)

        if hints.examples:
            lines += ["", "【具体例】"]
            lines.extend(f"- {example}" for example in hints.examples)

        if hints.template:
            lines += ["", "【推奨テンプレート】", hints.template]

        failed_loops = [loop for loop in history if not loop.critique_result.passed]
        if failed_loops and self.enable_failure_analysis:
            lines += ["", "【過去の試行からの注意点】"]
            lines.extend(
                f"- 試行{loop.loop_number}: {loop.critique_result.lowest_score.category}で失敗"
                for loop in failed_loops
            )

        lines += [
            "",
            "上記の点を改善して、再度回答を生成してください。",
            f"特に{lowest.category}の改善に重点を置いてください。",
            "",
        ]
        return "\n".join(lines)
