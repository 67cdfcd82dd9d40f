"""補助金インデックスのテスト."""

import json

from src.components.subsidy_index.models import SubsidyRecord
from src.components.subsidy_index.store import SubsidyIndex, normalize_name


def test_normalize_name_folds_width_and_case():
    assert normalize_name(" ＩＴ導入補助金 ") == normalize_name("it導入補助金")


def test_from_file_accepts_object_keyed_by_id(tmp_path):
    path = tmp_path / "master-index.json"
    path.write_text(
        json.dumps(
            {
                "sub-1": {
                    "id": "sub-1",
                    "name": "ものづくり補助金",
                    "summary": "設備投資を支援",
                    "maxAmount": "最大1,250万円",
                    "url": "https://example.go.jp/monodukuri",
                    "categories": ["manufacturing"],
                },
                "sub-2": {"name": "IT導入補助金", "maxAmount": 4_500_000},
            },
            ensure_ascii=False,
        ),
        encoding="utf-8",
    )

    index = SubsidyIndex.from_file(str(path))

    assert len(index) == 2
    record = index.find("ものづくり補助金")
    assert record.reference_amount == 12_500_000
    assert record.reference_url == "https://example.go.jp/monodukuri"
    assert index.find("ＩＴ導入補助金").reference_amount == 4_500_000


def test_from_file_accepts_list(tmp_path):
    path = tmp_path / "index.json"
    path.write_text(
        json.dumps([{"id": "a", "name": "創業支援事業", "reference_amount": 2_000_000}]),
        encoding="utf-8",
    )

    index = SubsidyIndex.from_file(str(path))

    assert index.find("創業支援事業").id == "a"


def test_missing_file_yields_empty_index(tmp_path):
    index = SubsidyIndex.from_file(str(tmp_path / "missing.json"))

    assert len(index) == 0
    assert index.find("ものづくり補助金") is None


def test_searchable_text_includes_categories():
    record = SubsidyRecord(id="x", name="IT導入補助金", summary="ITツール", categories=["digitalization"])
    assert "digitalization" in record.searchable_text
