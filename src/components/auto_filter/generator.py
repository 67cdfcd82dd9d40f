"""ユーザーの質問文から補助金検索フィルターを自動生成する."""

import logging
import re

from src.components.auto_filter.models import (
    AmountFilter,
    AreaFilter,
    CompanyFilter,
    DeadlineFilter,
    PurposeFilter,
    SubsidyFilter,
)

logger = logging.getLogger(__name__)

CATEGORY_LABELS: dict[str, str] = {
    "equipment": "設備投資",
    "employment": "人材・雇用",
    "research": "研究開発",
    "expansion": "販路拡大・PR",
    "startup": "創業・新事業",
    "digitalization": "DX・IT導入",
    "environment": "環境・エネルギー",
    "welfare": "福祉・健康",
}

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "equipment": ("設備投資", "設備", "機械", "装置", "導入", "更新", "改修"),
    "employment": ("人材", "雇用", "採用", "育成", "研修", "正社員", "人件費"),
    "research": ("研究開発", "研究", "開発", "R&D", "技術", "イノベーション", "実証実験"),
    "expansion": ("販路拡大", "販路", "マーケティング", "PR", "展示会", "海外展開", "輸出"),
    "startup": ("創業", "起業", "スタートアップ", "新事業", "ベンチャー", "開業"),
    "digitalization": ("IT", "DX", "デジタル", "システム", "IoT", "AI", "IT導入", "ソフトウェア"),
    "environment": ("環境", "エネルギー", "省エネ", "脱炭素", "SDGs", "カーボンニュートラル", "CO2"),
    "welfare": ("福祉", "介護", "医療", "健康", "高齢者", "障害者", "バリアフリー"),
}

CATEGORY_SYNONYMS: dict[str, tuple[str, ...]] = {
    "equipment": ("機器", "施設", "ハード"),
    "employment": ("人手不足", "人材確保", "リクルート", "働き方改革"),
    "research": ("技術開発", "商品開発", "製品開発", "新技術"),
    "expansion": ("営業", "セールス", "顧客開拓", "市場開拓"),
    "startup": ("独立", "新規事業", "第二創業"),
    "digitalization": ("デジタル化", "ICT", "システム化", "オンライン化"),
    "environment": ("グリーン", "エコ", "再生可能エネルギー", "循環型"),
    "welfare": ("ヘルスケア", "社会福祉", "地域福祉", "ウェルビーイング"),
}

# (パターン, 種別, 倍率). 後に一致したものが前の値を上書きする.
AMOUNT_PATTERNS: tuple[tuple[re.Pattern[str], str, int], ...] = (
    (re.compile(r"(\d+)\s*万円?\s*以下"), "max", 10_000),
    (re.compile(r"(\d+)\s*万円?\s*以上"), "min", 10_000),
    (re.compile(r"(\d+)\s*百万円?\s*以下"), "max", 1_000_000),
    (re.compile(r"(\d+)\s*百万円?\s*以上"), "min", 1_000_000),
    (re.compile(r"(\d+)\s*千万円?\s*以下"), "max", 10_000_000),
    (re.compile(r"(\d+)\s*千万円?\s*以上"), "min", 10_000_000),
    (re.compile(r"(\d+)\s*万円?\s*[~〜]\s*(\d+)\s*万円?"), "range", 10_000),
)

AMOUNT_PRESETS: dict[str, tuple[tuple[str, ...], int | None, int | None]] = {
    "under_100k": (("10万以下", "少額", "小額"), None, 100_000),
    "under_1m": (("100万以下", "百万以下"), None, 1_000_000),
    "1m_5m": (("100万から500万", "中規模"), 1_000_000, 5_000_000),
    "5m_10m": (("500万から1000万", "大規模"), 5_000_000, 10_000_000),
    "over_10m": (("1000万以上", "高額", "大型"), 10_000_000, None),
}

SUBSIDY_RATE_PATTERN = re.compile(r"(\d+)\s*[%％]\s*(以上|以下)?")

PREFECTURES = ("東京都", "大阪府", "神奈川県", "埼玉県", "千葉県", "愛知県", "北海道", "福岡県")
TOKYO_CITIES = (
    "千代田区", "中央区", "港区", "新宿区", "文京区", "台東区",
    "墨田区", "江東区", "品川区", "目黒区", "大田区", "世田谷区",
    "渋谷区", "中野区", "杉並区", "豊島区", "北区", "荒川区",
    "板橋区", "練馬区", "足立区", "葛飾区", "江戸川区",
)
NATIONWIDE_MARKERS = ("全国", "どこでも")

EMPLOYEE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(\d+)\s*[名人]\s*以下"), "max"),
    (re.compile(r"(\d+)\s*[名人]\s*以上"), "min"),
    (re.compile(r"(\d+)\s*[名人]\s*[~〜]\s*(\d+)\s*[名人]"), "range"),
    (re.compile(r"社員数\s*(\d+)\s*[名人]"), "max"),
    (re.compile(r"従業員数?\s*(\d+)\s*[名人]"), "max"),
)

COMPANY_SIZE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "micro": ("個人事業", "フリーランス", "副業", "個人", "マイクロ"),
    "small": ("小規模", "小企業", "零細"),
    "medium": ("中小企業", "中企業", "SME", "中堅"),
    "large": ("大企業", "大手", "大規模"),
}

SPECIAL_CONDITIONS: dict[str, tuple[str, ...]] = {
    "woman_owned": ("女性経営", "女性起業", "女性社長", "女性代表"),
    "young_entrepreneur": ("若手", "若い", "若年", "39歳以下", "35歳以下", "U40", "U35"),
    "succession": ("事業承継", "後継", "継承", "引き継ぎ", "代替わり"),
    "nonprofit": ("NPO", "ＮＰＯ", "非営利", "公益", "社会福祉法人"),
}

DEADLINE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "accepting": ("受付中", "申請中", "募集中", "現在募集", "今申請できる"),
    "upcoming": ("もうすぐ", "今後", "予定", "来月", "来週"),
    "urgent": ("急ぎ", "締切間近", "締切迫る", "残りわずか"),
}
URGENT_DEADLINE_DAYS = 14


def _contains(text: str, keyword: str) -> bool:
    return keyword.lower() in text


class AutoFilterGenerator:
    """質問文のキーワードから検索フィルターを組み立てる.

    目的カテゴリー、金額、地域、企業規模・従業員数・特別条件、申請期限の
    各条件を部分一致で検出する. 何も検出できなければNoneを返す.
    """

    def generate(self, message: str) -> SubsidyFilter | None:
        """質問文からフィルターを生成する.

        Args:
            message: ユーザーの質問

        Returns:
            生成したフィルター. 条件が1つも無ければNone.
        """
        lowered = message.lower()
        subsidy_filter = SubsidyFilter(
            purpose=self._detect_purpose(lowered),
            amount=self._detect_amount(message),
            area=self._detect_area(message),
            company=self._detect_company(message),
            deadline=self._detect_deadline(lowered),
        )
        if not subsidy_filter.to_dict():
            return None
        logger.debug("Auto-generated filters: %s", subsidy_filter.to_dict())
        return subsidy_filter

    def _detect_purpose(self, lowered: str) -> PurposeFilter | None:
        categories: list[str] = []
        matched_keywords: list[str] = []
        for category_id, keywords in CATEGORY_KEYWORDS.items():
            hits = [k for k in keywords if _contains(lowered, k)]
            matched_keywords.extend(hits)
            label_hit = _contains(lowered, CATEGORY_LABELS[category_id])
            synonym_hit = any(_contains(lowered, s) for s in CATEGORY_SYNONYMS[category_id])
            if hits or label_hit or synonym_hit:
                categories.append(category_id)
        if not categories:
            return None

        related = [k for category_id in categories for k in CATEGORY_KEYWORDS[category_id]]
        return PurposeFilter(
            main_categories=categories,
            keywords=list(dict.fromkeys([*matched_keywords, *related])),
        )

    def _detect_amount(self, message: str) -> AmountFilter | None:
        amount = AmountFilter()
        for pattern, kind, multiplier in AMOUNT_PATTERNS:
            match = pattern.search(message)
            if not match:
                continue
            if kind in ("min", "range"):
                amount.min = int(match.group(1)) * multiplier
            if kind == "max":
                amount.max = int(match.group(1)) * multiplier
            if kind == "range":
                amount.max = int(match.group(2)) * multiplier

        lowered = message.lower()
        for preset_id, (keywords, preset_min, preset_max) in AMOUNT_PRESETS.items():
            if any(keyword in lowered for keyword in keywords):
                amount.preset_range = preset_id
                if preset_min is not None:
                    amount.min = preset_min
                if preset_max is not None:
                    amount.max = preset_max

        rate = SUBSIDY_RATE_PATTERN.search(message)
        if rate:
            value = int(rate.group(1))
            if rate.group(2) != "以下":
                amount.subsidy_rate_min = value
            if rate.group(2) != "以上":
                amount.subsidy_rate_max = value

        return amount if amount.model_dump(exclude_none=True) else None

    def _detect_area(self, message: str) -> AreaFilter | None:
        prefecture = next((p for p in PREFECTURES if p in message), None)
        cities = [city for city in TOKYO_CITIES if city in message]
        if cities and prefecture is None:
            prefecture = "東京都"
        nationwide = any(marker in message for marker in NATIONWIDE_MARKERS)
        if prefecture is None and not cities and not nationwide:
            return None
        return AreaFilter(prefecture=prefecture, cities=cities, include_nationwide=nationwide)

    def _detect_company(self, message: str) -> CompanyFilter | None:
        lowered = message.lower()
        company = CompanyFilter()

        for pattern, kind in EMPLOYEE_PATTERNS:
            match = pattern.search(message)
            if not match:
                continue
            if kind in ("min", "range"):
                company.employee_min = int(match.group(1))
            if kind == "max":
                company.employee_max = int(match.group(1))
            if kind == "range":
                company.employee_max = int(match.group(2))
            break

        company.company_size = next(
            (
                size
                for size, keywords in COMPANY_SIZE_KEYWORDS.items()
                if any(_contains(lowered, k) for k in keywords)
            ),
            None,
        )
        company.special_conditions = [
            condition
            for condition, keywords in SPECIAL_CONDITIONS.items()
            if any(_contains(lowered, k) for k in keywords)
        ]

        if company == CompanyFilter():
            return None
        return company

    def _detect_deadline(self, lowered: str) -> DeadlineFilter | None:
        for status, keywords in DEADLINE_KEYWORDS.items():
            if not any(_contains(lowered, k) for k in keywords):
                continue
            if status == "urgent":
                return DeadlineFilter(
                    status="accepting", days_until_deadline_max=URGENT_DEADLINE_DAYS
                )
            return DeadlineFilter(status=status)
        return None
