"""回答品質を評価するCritiqueエンジンとプロンプト構築の実装."""

import json
import logging
import re
import textwrap
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from src.common.defs.critique import (
    Action,
    CritiqueContext,
    CritiqueIssue,
    CritiqueResult,
    Dimension,
    Scores,
)
from src.common.defs.errors import GradingUnavailable
from src.components.entity_extraction.extractor import EntityExtractor, parse_amount
from src.components.entity_extraction.models import ExtractedEntity
from src.components.llm_client.client import LLMClient
from src.components.subsidy_index.store import SubsidyIndex

logger = logging.getLogger(__name__)

EXHAUSTIVE_MARKERS = re.compile(r"全て|すべて|全部|一覧|列挙|list\s+all|all\s+(?:the\s+)?subsidies", re.IGNORECASE)
IT_MARKERS = re.compile(
    r"(?<![A-Za-z])IT(?![A-Za-z])|デジタル|DX|システム|ソフトウェア|(?i:software|digital)"
)
CITATION_MARK = re.compile(r"【\d+:\d+†[^】]*】")
AMOUNT_TOLERANCE = 0.1
DUPLICATE_HINT = "同じ補助金を重複して提案しています。各補助金は一度だけ提案してください"


class ValidationFindings(BaseModel):
    """評価LLMに渡すルールベース検証結果のスナップショット."""

    extracted_entities: list[str] = Field(default_factory=list)
    proposed_count: int = 0
    invalid_entities: list[str] = Field(default_factory=list)
    incorrect_details: list[str] = Field(default_factory=list)
    duplicate_entities: list[str] = Field(default_factory=list)

    @property
    def has_invalid_entities(self) -> bool:
        """実在しない補助金が含まれていればTrue."""
        return bool(self.invalid_entities)

    @property
    def has_incorrect_details(self) -> bool:
        """金額やURLの誤りがあればTrue."""
        return bool(self.incorrect_details)


class GraderVerdict(BaseModel):
    """評価LLMの構造化出力モデル."""

    scores: Scores = Field(
        default_factory=Scores,
        description="relevance, completeness, data_accuracy, follow_up, presentation_quality の0〜100の整数",
    )
    action: Action = Field(
        default="regenerate",
        description="approve / regenerate / ask_clarification のいずれか",
    )
    issues: list[CritiqueIssue] = Field(default_factory=list)
    clarification_questions: list[str] = Field(
        default_factory=list,
        description="ask_clarificationの場合にユーザーへ尋ねる深掘り質問",
    )
    regeneration_hints: list[str] = Field(
        default_factory=list,
        description="regenerateの場合の再生成ヒント",
    )
    improved_response: str | None = Field(
        default=None,
        description="引用表記の削除など軽微な修正のみで済む場合の修正版全文",
    )


class Grader(Protocol):
    """回答を採点する評価器のインターフェース."""

    def grade(
        self,
        question: str,
        answer: str,
        findings: ValidationFindings,
        context: CritiqueContext,
    ) -> GraderVerdict:
        """回答を採点する.

        Raises:
            GradingUnavailable: 評価器に到達できない、または出力を解析できない場合
        """
        ...


class CritiquePromptBuilder:
    """評価用プロンプトテンプレートの読み込みと構築を行うビルダー."""

    def __init__(self, prompts_dir: str = "prompts/critique") -> None:
        """CritiquePromptBuilderを初期化する.

        Args:
            prompts_dir: プロンプトテンプレートディレクトリのパス
        """
        self.prompts_dir = Path(prompts_dir)

    def build_instructions(self, threshold: int) -> str:
        """評価者へのシステム指示を構築する.

        Args:
            threshold: 合格点

        Returns:
            システム指示文字列
        """
        template_path = self.prompts_dir / "reviewer.txt"
        if template_path.exists():
            template = template_path.read_text(encoding="utf-8")
        else:
            logger.debug("No reviewer template found. Using fallback template.")
            template = self._fallback_instructions()
        return template.replace("{threshold}", str(threshold))

    def build_review_prompt(
        self,
        question: str,
        answer: str,
        context: CritiqueContext,
        has_duplicates: bool,
    ) -> str:
        """評価対象の質問・回答・会話文脈をまとめたプロンプトを構築する.

        Args:
            question: ユーザーの質問
            answer: 評価対象の回答
            context: 呼び出し元のコンテキスト
            has_duplicates: 回答内に重複した補助金があるか

        Returns:
            構築されたプロンプト文字列
        """
        sections = [f"【ユーザーの質問】\n{question}", f"【アシスタントの回答】\n{answer}"]

        if context.prior_messages:
            history = "\n".join(f"{m.role}: {m.content}" for m in context.prior_messages)
            sections.append(f"【会話履歴】\n{history}")

        if context.has_filters and context.filters:
            filters = json.dumps(context.filters, ensure_ascii=False, indent=2)
            sections.append(f"【適用されたフィルター】\n{filters}")

        if context.mentioned_entities:
            mentioned = "\n".join(f"- {name}" for name in context.mentioned_entities)
            sections.append(f"【これまでに提案済みの補助金】\n{mentioned}")

        if has_duplicates:
            sections.append("【警告】回答に重複した補助金が含まれています。")
        else:
            sections.append("【確認】補助金の重複はありません。")

        return "\n\n".join(sections)

    def _fallback_instructions(self) -> str:
        return textwrap.dedent(
            """
            あなたは補助金アドバイザーの回答品質を厳格に評価するレビューエージェントです。
            ユーザーが最高品質の情報を得られるよう、高い基準で評価してください。

            【評価基準と合格ライン】
            すべての項目で{threshold}点以上が必要です。{threshold}点未満がある場合は不合格となります。

            【評価項目】
            1. relevance: ユーザーの質問に直接回答しているか、意図を正しく理解しているか
            2. completeness: 必要な情報（金額、条件、期限等）がすべて含まれているか
               曖昧な質問の場合は深掘り質問をしているか
            3. data_accuracy: 提案された補助金が実在し、金額やURLが正確か
               同じ補助金を重複して提案していないか、総数とマッチ度を明示しているか
            4. follow_up: ユーザーが次のアクションを取りやすいか
            5. presentation_quality: 情報が構造化され読みやすいか

            【特別チェック項目】
            - 既に提案済みの補助金を再度提案している場合は data_accuracy を下げてください
            - 補助金の件数を明示していない場合は data_accuracy を50点以下にしてください
            - アシスタントから渡されるデータ検証結果を必ず考慮してください

            【形式的な問題のチェック】
            - 【4:0†source】のような引用表記が含まれている場合は、削除した版を
              improved_response に入れてください

            【アクション決定ロジック】
            1. すべて{threshold}点以上 → approve
            2. completenessが{threshold}点未満 → ask_clarification（clarification_questionsを付与）
            3. それ以外で{threshold}点未満 → regenerate（regeneration_hintsを付与）
            4. 引用表記のみの問題 → approve + improved_response
            """
        ).strip()


class LLMGrader:
    """LLMの構造化出力で回答を採点する評価器."""

    def __init__(
        self,
        llm_client: LLMClient,
        prompt_builder: CritiquePromptBuilder,
        threshold: int = 85,
    ) -> None:
        """LLMGraderを初期化する.

        Args:
            llm_client: 評価用LLMクライアント
            prompt_builder: プロンプト構築ビルダー
            threshold: 合格点
        """
        self.llm_client = llm_client
        self.prompt_builder = prompt_builder
        self.threshold = threshold

    def grade(
        self,
        question: str,
        answer: str,
        findings: ValidationFindings,
        context: CritiqueContext,
    ) -> GraderVerdict:
        """LLMに採点を依頼し、構造化された判定を返す.

        Raises:
            GradingUnavailable: LLM呼び出しの失敗、または出力が判定スキーマに合わない場合
        """
        messages = [
            SystemMessage(content=self.prompt_builder.build_instructions(self.threshold)),
            HumanMessage(
                content=self.prompt_builder.build_review_prompt(
                    question,
                    answer,
                    context,
                    has_duplicates=bool(findings.duplicate_entities),
                )
            ),
            AIMessage(content=f"データ検証結果:\n{findings.model_dump_json(indent=2)}"),
        ]
        try:
            verdict = self.llm_client.invoke_structured(messages, GraderVerdict)
        except Exception as e:
            msg = "評価LLMの呼び出しに失敗しました"
            raise GradingUnavailable(msg) from e
        if not isinstance(verdict, GraderVerdict):
            msg = f"評価LLMの出力を解析できません: {type(verdict).__name__}"
            raise GradingUnavailable(msg)
        return verdict


@dataclass(frozen=True)
class RuleInput:
    """上書きルールの判定材料."""

    question: str
    answer: str
    findings: ValidationFindings
    is_exhaustive: bool
    is_it: bool

    @property
    def count(self) -> int:
        """回答が提示している件数."""
        return self.findings.proposed_count


@dataclass(frozen=True)
class CapRule:
    """data_accuracyを上限capに抑え、再生成を強制する上書きルール."""

    name: str
    predicate: Callable[[RuleInput], bool]
    cap: int
    describe: Callable[[RuleInput], str]
    hint: str | None = None
    example: Callable[[RuleInput], str | None] = lambda _: None
    issue_type: str = "data_source"


OVERRIDE_RULES: tuple[CapRule, ...] = (
    CapRule(
        name="exhaustive_request_too_few",
        predicate=lambda r: r.is_exhaustive and not r.is_it and r.count < 20,
        cap=25,
        describe=lambda r: f"全て列挙の要求に対して提案件数が少なすぎます（{r.count}件のみ）",
        hint="最低でも20件以上の補助金を検索・提示してください。複数のカテゴリーを横断的に検索してください",
    ),
    CapRule(
        name="it_exhaustive_request_too_few",
        predicate=lambda r: r.is_exhaustive and r.is_it and r.count < 8,
        cap=60,
        describe=lambda r: f"IT関連の全て列挙要求に対して提案件数が少なすぎます（{r.count}件のみ）",
        hint="IT関連補助金は10件存在します。最低でも8件以上を提示してください",
    ),
    CapRule(
        name="it_request_too_few",
        predicate=lambda r: r.is_it and not r.is_exhaustive and r.count <= 5,
        cap=35,
        describe=lambda r: f"IT関連補助金の提案件数が少なすぎます（{r.count}件のみ）",
        hint="digitalization以外のカテゴリー（startup、expansion等）からもIT企業が活用できる補助金を探してください",
    ),
    CapRule(
        name="invalid_entities",
        predicate=lambda r: r.findings.has_invalid_entities,
        cap=40,
        describe=lambda r: f"実在しない補助金が含まれています: {', '.join(r.findings.invalid_entities)}",
        hint="補助金データに実在する補助金のみを、正式名称で提案してください",
    ),
    CapRule(
        name="incorrect_details",
        predicate=lambda r: r.findings.has_incorrect_details,
        cap=60,
        describe=lambda _: "補助金の詳細情報（金額、条件等）に誤りがあります",
        hint="補助金額やURLは補助金データの値をそのまま記載してください",
        example=lambda r: "; ".join(r.findings.incorrect_details),
    ),
    CapRule(
        name="duplicate_entities",
        predicate=lambda r: bool(r.findings.duplicate_entities),
        cap=30,
        describe=lambda r: f"回答に重複した補助金が含まれています: {', '.join(r.findings.duplicate_entities)}",
        issue_type="duplicate",
        hint=DUPLICATE_HINT,
    ),
)


class CritiqueEngine:
    """回答を多観点で評価し、ルールベースの上書きを適用するエンジン.

    処理順序:
        1. 回答から補助金名を抽出
        2. リファレンスデータで実在性・金額・URLを検証
        3. 同一回答内の重複を検出
        4. 評価器で採点
        5. 上書きルールを適用（capはminで合成）
        6. 最低スコアと合否を再計算
    """

    def __init__(
        self,
        grader: Grader,
        index: SubsidyIndex,
        extractor: EntityExtractor,
        threshold: int = 85,
        rules: tuple[CapRule, ...] = OVERRIDE_RULES,
    ) -> None:
        """CritiqueEngineを初期化する.

        Args:
            grader: 採点を行う評価器
            index: 補助金リファレンスインデックス
            extractor: エンティティ抽出器
            threshold: 合格点
            rules: 上書きルール（評価順）
        """
        self.grader = grader
        self.index = index
        self.extractor = extractor
        self.threshold = threshold
        self.rules = rules

    def critique(
        self,
        question: str,
        answer: str,
        context: CritiqueContext | None = None,
    ) -> CritiqueResult:
        """回答を評価してCritiqueResultを返す.

        Args:
            question: ユーザーの質問
            answer: 評価対象の回答
            context: 呼び出し元のコンテキスト

        Returns:
            評価結果

        Raises:
            GradingUnavailable: 評価器が利用できない場合
        """
        context = context or CritiqueContext()
        findings = self.collect_findings(answer)

        verdict = self.grader.grade(question, answer, findings, context)

        rule_input = RuleInput(
            question=question,
            answer=answer,
            findings=findings,
            is_exhaustive=bool(EXHAUSTIVE_MARKERS.search(question)),
            is_it=bool(IT_MARKERS.search(question)),
        )
        result = self.apply_rules(
            CritiqueResult(
                scores=verdict.scores,
                threshold=self.threshold,
                action=verdict.action,
                issues=list(verdict.issues),
                clarification_questions=list(verdict.clarification_questions),
                regeneration_hints=list(verdict.regeneration_hints),
                improved_response=verdict.improved_response,
            ),
            rule_input,
        )
        result = self._strip_citations(result, answer)

        logger.info(
            "Critique: action=%s lowest=%s(%d) passed=%s",
            result.action,
            result.lowest_score.category,
            result.lowest_score.score,
            result.passed,
        )
        return result

    def collect_findings(self, answer: str) -> ValidationFindings:
        """抽出・実在性検証・重複検出の結果をまとめる."""
        entities = self.extractor.extract(answer)
        invalid, incorrect = self._validate_entities(entities)
        return ValidationFindings(
            extracted_entities=[e.name for e in entities],
            proposed_count=self.extractor.proposed_count(answer),
            invalid_entities=invalid,
            incorrect_details=incorrect,
            duplicate_entities=self.extractor.find_duplicates(answer),
        )

    def apply_rules(self, result: CritiqueResult, rule_input: RuleInput) -> CritiqueResult:
        """上書きルールを順に評価し、成立したものを適用する.

        各ルールはdata_accuracyをcap以下に抑え、actionをregenerateにし、
        issueとヒントを追加する. 複数成立した場合は最も低いcapが残る.
        """
        scores = result.scores
        issues = list(result.issues)
        hints = list(result.regeneration_hints)
        action = result.action

        for rule in self.rules:
            if not rule.predicate(rule_input):
                continue
            logger.debug("Override rule fired: %s (cap=%d)", rule.name, rule.cap)
            scores = scores.capped(Dimension.DATA_ACCURACY, rule.cap)
            action = "regenerate"
            issues.append(
                CritiqueIssue(
                    type=rule.issue_type,
                    description=rule.describe(rule_input),
                    severity="critical",
                    example=rule.example(rule_input),
                )
            )
            if rule.hint and rule.hint not in hints:
                hints.append(rule.hint)

        return result.model_copy(
            update={
                "scores": scores,
                "action": action,
                "issues": issues,
                "regeneration_hints": hints,
            }
        )

    def _validate_entities(
        self, entities: list[ExtractedEntity]
    ) -> tuple[list[str], list[str]]:
        invalid: list[str] = []
        incorrect: list[str] = []
        for entity in entities:
            record = self.index.find(entity.name)
            if record is None:
                invalid.append(entity.name)
                continue

            if entity.amount and record.reference_amount:
                claimed = parse_amount(entity.amount)
                actual = record.reference_amount
                if claimed is not None and abs(claimed - actual) > actual * AMOUNT_TOLERANCE:
                    incorrect.append(
                        f"{entity.name}: 金額が不正確（提示: {entity.amount}, 実際: {actual:,}円）"
                    )

            if entity.url and record.reference_url and entity.url != record.reference_url:
                incorrect.append(f"{entity.name}: URLが不正確")

        if invalid:
            logger.info("Entities not found in index: %s", invalid[:3])
        return invalid, incorrect

    def _strip_citations(self, result: CritiqueResult, answer: str) -> CritiqueResult:
        """引用表記のみの軽微な問題は、評価器が修正版を返さなくても機械的に除去する."""
        if result.improved_response or not CITATION_MARK.search(answer):
            return result
        return result.model_copy(
            update={
                "improved_response": CITATION_MARK.sub("", answer),
                "issues": [
                    *result.issues,
                    CritiqueIssue(
                        type="citation",
                        description="回答にファイル検索の引用表記が含まれています",
                        severity="info",
                    ),
                ],
            }
        )
