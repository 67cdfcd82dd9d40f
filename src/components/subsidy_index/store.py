"""補助金マスターインデックスの読み込みと名称検索."""

import json
import logging
import unicodedata
from pathlib import Path
from typing import Any

from src.components.entity_extraction.extractor import parse_amount
from src.components.subsidy_index.models import SubsidyRecord

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """名称比較用にNFKC正規化・前後空白除去・casefoldを行う."""
    return unicodedata.normalize("NFKC", name).strip().casefold()


class SubsidyIndex:
    """起動時に一度だけ読み込む読み取り専用の補助金インデックス."""

    def __init__(self, records: list[SubsidyRecord] | None = None) -> None:
        """SubsidyIndexを初期化する.

        Args:
            records: 補助金レコードのリスト
        """
        self.records = list(records or [])
        self._by_name = {normalize_name(record.name): record for record in self.records}

    @classmethod
    def from_file(cls, index_path: str) -> "SubsidyIndex":
        """マスターインデックスJSONからインデックスを生成する.

        JSONはidをキーとするオブジェクト、またはレコードのリストを受け付ける.
        ファイルが存在しない場合は空のインデックスを返す.

        Args:
            index_path: マスターインデックスのパス

        Returns:
            SubsidyIndexインスタンス
        """
        path = Path(index_path)
        if not path.exists():
            logger.warning("Subsidy index not found: %s. Using empty index.", path)
            return cls()
        data = json.loads(path.read_text(encoding="utf-8"))
        raw_records = data.values() if isinstance(data, dict) else data
        records = [cls._to_record(raw) for raw in raw_records]
        logger.info("Loaded %d subsidies from index", len(records))
        return cls(records)

    @staticmethod
    def _to_record(raw: dict[str, Any]) -> SubsidyRecord:
        amount = raw.get("reference_amount", raw.get("maxAmount"))
        if isinstance(amount, str):
            amount = parse_amount(amount)
        return SubsidyRecord(
            id=str(raw.get("id", raw.get("name", ""))),
            name=raw["name"],
            summary=raw.get("summary", "") or "",
            reference_amount=amount,
            reference_url=raw.get("reference_url", raw.get("url")),
            categories=list(raw.get("categories", []) or []),
        )

    def find(self, name: str) -> SubsidyRecord | None:
        """名称が一致する補助金を返す. 一致しなければNone."""
        return self._by_name.get(normalize_name(name))

    def __len__(self) -> int:
        return len(self.records)
