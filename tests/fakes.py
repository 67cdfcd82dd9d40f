"""テストで注入する偽実装とデータ生成ヘルパー."""

from src.application.agents.critique import GraderVerdict, ValidationFindings
from src.common.defs.critique import CritiqueContext, CritiqueResult, Scores
from src.common.defs.errors import GenerationFailed
from src.components.subsidy_index.models import SubsidyRecord
from src.components.subsidy_index.store import SubsidyIndex


def make_scores(
    relevance: int = 90,
    completeness: int = 90,
    data_accuracy: int = 90,
    follow_up: int = 90,
    presentation_quality: int = 90,
) -> Scores:
    """5観点のScoresを作る."""
    return Scores(
        relevance=relevance,
        completeness=completeness,
        data_accuracy=data_accuracy,
        follow_up=follow_up,
        presentation_quality=presentation_quality,
    )


def uniform_scores(value: int) -> Scores:
    """全観点が同じ値のScoresを作る."""
    return make_scores(value, value, value, value, value)


def make_critique(scores: Scores, action: str = "regenerate", **kwargs) -> CritiqueResult:  # noqa: ANN003
    """CritiqueResultを作る."""
    return CritiqueResult(scores=scores, action=action, **kwargs)


def subsidy_name(i: int) -> str:
    """テスト用の補助金名. 番号は2桁で揃え、互いに前方一致しない."""
    return f"サンプル{i:02d}補助金"


def make_index(count: int = 30, amount: int = 5_000_000) -> SubsidyIndex:
    """subsidy_name(1..count)を持つインデックスを作る."""
    return SubsidyIndex(
        [
            SubsidyRecord(
                id=f"sub-{i:02d}",
                name=subsidy_name(i),
                summary=f"テスト用の補助金{i}",
                reference_amount=amount,
                reference_url=f"https://example.go.jp/subsidies/{i:02d}",
                categories=["startup"] if i % 2 else ["digitalization"],
            )
            for i in range(1, count + 1)
        ]
    )


def make_answer(count: int, names: list[str] | None = None, amount: str = "最大500万円") -> str:
    """「申請可能な補助金はN件です」で始まる番号付き回答を作る."""
    names = names if names is not None else [subsidy_name(i) for i in range(1, count + 1)]
    lines = [f"申請可能な補助金は{len(names)}件です。", ""]
    for i, name in enumerate(names, start=1):
        lines.append(f"{i}. **{name}** {amount}")
        lines.append("- 対象者：中小企業")
    lines.append("")
    lines.append("より最適な補助金をご提案するため、業種を教えていただけますか？")
    return "\n".join(lines)


class FakeGrader:
    """決められた判定を順に返す評価器."""

    def __init__(self, *verdicts: GraderVerdict | Exception) -> None:
        self.verdicts = list(verdicts) or [GraderVerdict(scores=uniform_scores(90), action="approve")]
        self.calls: list[tuple[str, str, ValidationFindings, CritiqueContext]] = []

    def grade(
        self,
        question: str,
        answer: str,
        findings: ValidationFindings,
        context: CritiqueContext,
    ) -> GraderVerdict:
        self.calls.append((question, answer, findings, context))
        verdict = self.verdicts.pop(0) if len(self.verdicts) > 1 else self.verdicts[0]
        if isinstance(verdict, Exception):
            raise verdict
        return verdict


class FakeCritiqueEngine:
    """決められたCritiqueResultを順に返すエンジン. 最後の要素は繰り返す."""

    def __init__(self, *results: CritiqueResult | Exception) -> None:
        self.results = list(results)
        self.answers: list[str] = []

    def critique(
        self,
        question: str,
        answer: str,
        context: CritiqueContext | None = None,
    ) -> CritiqueResult:
        self.answers.append(answer)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeAnswerGenerator:
    """再生成のたびに用意した回答を順に返す生成器."""

    def __init__(self, *answers: str | Exception, on_regenerate=None) -> None:  # noqa: ANN001
        self.answers = list(answers)
        self.instructions: list[str] = []
        self.on_regenerate = on_regenerate

    def regenerate(self, thread_id: str, instructions: str) -> str:
        self.instructions.append(instructions)
        if self.on_regenerate is not None:
            self.on_regenerate()
        if not self.answers:
            msg = "no more answers"
            raise GenerationFailed(msg)
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


class StubLLMClient:
    """invoke_text / invoke_structured の戻り値を差し替えるLLMClient."""

    def __init__(self, text: str | Exception = "", structured: object = None) -> None:
        self.text = text
        self.structured = structured
        self.messages: list[list] = []

    def invoke_text(self, messages: list) -> str:
        self.messages.append(messages)
        if isinstance(self.text, Exception):
            raise self.text
        return self.text

    def invoke_structured(self, messages: list, schema: type) -> object:
        self.messages.append(messages)
        if isinstance(self.structured, Exception):
            raise self.structured
        return self.structured
