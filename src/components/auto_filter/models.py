"""補助金検索フィルターのモデル定義."""

from typing import Any, Literal

from pydantic import BaseModel, Field

CompanySize = Literal["micro", "small", "medium", "large"]
DeadlineStatus = Literal["accepting", "upcoming"]


class AreaFilter(BaseModel):
    """地域フィルター."""

    prefecture: str | None = None
    cities: list[str] = Field(default_factory=list)
    include_nationwide: bool = False


class AmountFilter(BaseModel):
    """補助金額と補助率のフィルター. 金額は円単位."""

    min: int | None = None
    max: int | None = None
    preset_range: str | None = None
    subsidy_rate_min: int | None = None
    subsidy_rate_max: int | None = None


class PurposeFilter(BaseModel):
    """目的カテゴリーと関連キーワード."""

    main_categories: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)


class CompanyFilter(BaseModel):
    """企業規模・従業員数・特別条件."""

    company_size: CompanySize | None = None
    special_conditions: list[str] = Field(default_factory=list)
    employee_min: int | None = None
    employee_max: int | None = None


class DeadlineFilter(BaseModel):
    """申請期限フィルター."""

    status: DeadlineStatus
    days_until_deadline_max: int | None = None


class SubsidyFilter(BaseModel):
    """質問から生成した検索フィルター全体."""

    purpose: PurposeFilter | None = None
    amount: AmountFilter | None = None
    area: AreaFilter | None = None
    company: CompanyFilter | None = None
    deadline: DeadlineFilter | None = None

    def to_dict(self) -> dict[str, Any]:
        """設定された条件だけを持つ辞書に変換する."""
        return self.model_dump(exclude_none=True, exclude_defaults=True)
