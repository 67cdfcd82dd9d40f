"""エンティティ抽出結果のモデル定義."""

from pydantic import BaseModel


class ExtractedEntity(BaseModel):
    """回答本文から抽出された補助金候補."""

    name: str
    amount: str | None = None
    url: str | None = None
