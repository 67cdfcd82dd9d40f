"""補助金検索用のモデル定義."""

from pydantic import BaseModel

from src.components.subsidy_index.models import SubsidyRecord


class SearchQuery(BaseModel):
    """検索クエリを表すモデル."""

    query_text: str
    top_k: int = 10
    category_filter: list[str] | None = None


class SearchResult(BaseModel):
    """検索結果を表すモデル."""

    subsidy: SubsidyRecord
    vector_score: float
    bm25_score: float
    combined_score: float
