"""補助金リファレンスデータのモデル定義."""

from pydantic import BaseModel, Field


class SubsidyRecord(BaseModel):
    """実在する補助金1件の参照情報."""

    id: str
    name: str
    summary: str = ""
    reference_amount: int | None = None
    reference_url: str | None = None
    categories: list[str] = Field(default_factory=list)

    @property
    def searchable_text(self) -> str:
        """検索対象とするテキスト."""
        return " ".join([self.name, self.summary, *self.categories])
