"""回答本文から補助金名などの候補エンティティを抽出する."""

import logging
import re
from collections import Counter
from typing import Protocol

from src.components.entity_extraction.models import ExtractedEntity

logger = logging.getLogger(__name__)

ENTITY_SUFFIX = r"(?:補助金|助成金|支援金|事業|基金)"

ENTITY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"「([^」]+{ENTITY_SUFFIX}[^」]*)」"),
    re.compile(rf"【([^】]+{ENTITY_SUFFIX}[^】]*)】"),
    re.compile(rf"\*\*([^*]+{ENTITY_SUFFIX}[^*]*)\*\*"),
    re.compile(rf"^\d+\.\s*\*\*([^*]+{ENTITY_SUFFIX}[^*]*)\*\*", re.MULTILINE),
    re.compile(rf"^\d+\.\s+(?!\*\*)(.+{ENTITY_SUFFIX}[^（(\s：:、。]*)", re.MULTILINE),
)

COUNT_CLAIM_PATTERN = re.compile(r"申請可能な補助金は\s*(\d+)\s*件です")
AMOUNT_PATTERN = re.compile(r"([\d,]+)(万)?円")
LIST_NUMBER_PREFIX = re.compile(r"^\d+\.\s*")


def parse_amount(text: str) -> int | None:
    """「最大1,000万円」のような金額表記を円単位の整数に変換する.

    Args:
        text: 金額表記

    Returns:
        円単位の金額. 解析できない場合はNone.
    """
    match = AMOUNT_PATTERN.search(text)
    if not match:
        return None
    digits = match.group(1).replace(",", "")
    if not digits:
        return None
    amount = int(digits)
    return amount * 10_000 if match.group(2) else amount


def _clean_name(raw: str) -> str:
    name = raw.strip().strip("*").strip()
    return LIST_NUMBER_PREFIX.sub("", name)


class EntityExtractor(Protocol):
    """回答本文からエンティティを抽出するインターフェース."""

    def extract(self, text: str) -> list[ExtractedEntity]:
        """重複を除いたエンティティを出現順に返す."""
        ...

    def find_duplicates(self, text: str) -> list[str]:
        """同一回答内で2回以上提示されたエンティティ名を返す."""
        ...

    def proposed_count(self, text: str) -> int:
        """回答が提示しているエンティティ件数を返す."""
        ...


class PatternEntityExtractor:
    """正規表現パターンによるエンティティ抽出器.

    「」【】で囲まれた名称、太字の名称、番号付きリストの見出しのうち
    補助金・助成金などの接尾語を含むものを補助金名とみなす.
    """

    def extract(self, text: str) -> list[ExtractedEntity]:
        """回答本文から補助金候補を抽出する.

        名称の完全一致で重複を除き、最初の出現順を保つ.
        金額とURLは名称と同じ行の後方から取得する.

        Args:
            text: 回答本文

        Returns:
            抽出されたエンティティのリスト
        """
        entities: list[ExtractedEntity] = []
        seen: set[str] = set()
        for pattern in ENTITY_PATTERNS:
            for match in pattern.finditer(text):
                name = _clean_name(match.group(1))
                if not name or name in seen:
                    continue
                seen.add(name)
                entities.append(
                    ExtractedEntity(
                        name=name,
                        amount=self._find_after(text, name, r"(最大[\d,]+万?円|[\d,]+万?円)"),
                        url=self._find_after(text, name, r"(https?://[^\s)）]+)"),
                    )
                )
        logger.debug("Extracted %d unique entities", len(entities))
        return entities

    def find_duplicates(self, text: str) -> list[str]:
        """2回以上提示された補助金名を返す.

        書式を問わず全パターンの出現を数える. 「1. **名称**」のように
        複数パターンが重なって一致した箇所は1回の出現として扱う.

        Args:
            text: 回答本文

        Returns:
            重複している名称のリスト（初出順）
        """
        mentions = self._mentions(text)
        counts = Counter(mentions)
        duplicates = list(dict.fromkeys(name for name in mentions if counts[name] > 1))
        if duplicates:
            logger.info("Duplicate entities detected: %s", duplicates)
        return duplicates

    def _mentions(self, text: str) -> list[str]:
        spans: list[tuple[int, int, str]] = []
        for pattern in ENTITY_PATTERNS:
            for match in pattern.finditer(text):
                name = _clean_name(match.group(1)).strip("「」【】").strip()
                if name:
                    spans.append((match.start(), match.end(), name))
        spans.sort(key=lambda span: (span[0], -span[1]))

        mentions: list[str] = []
        covered_until = -1
        for start, end, name in spans:
            if start < covered_until:
                continue
            mentions.append(name)
            covered_until = end
        return mentions

    def proposed_count(self, text: str) -> int:
        """提示件数を返す.

        「申請可能な補助金はN件です」の明示があればNを、なければ抽出件数を返す.
        """
        match = COUNT_CLAIM_PATTERN.search(text)
        if match:
            return int(match.group(1))
        return len(self.extract(text))

    def _find_after(self, text: str, name: str, value_pattern: str) -> str | None:
        match = re.search(rf"{re.escape(name)}[^\n]*?{value_pattern}", text)
        return match.group(1) if match else None
