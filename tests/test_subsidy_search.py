"""補助金ハイブリッド検索のテスト."""

from langchain_core.embeddings import Embeddings

from src.components.subsidy_index.models import SubsidyRecord
from src.components.subsidy_index.store import SubsidyIndex
from src.components.subsidy_search.embedding_client import EmbeddingClient
from src.components.subsidy_search.models import SearchQuery
from src.components.subsidy_search.search import SubsidySearch, tokenize

RECORDS = [
    SubsidyRecord(id="it", name="IT導入補助金", summary="ITツールの導入費用を補助", categories=["digitalization"]),
    SubsidyRecord(id="mono", name="ものづくり補助金", summary="設備投資を支援", categories=["manufacturing"]),
    SubsidyRecord(id="start", name="創業支援事業", summary="スタートアップの創業費用", categories=["startup"]),
]


class KeywordEmbeddings(Embeddings):
    """キーワードの有無をベクトル化する決定的なEmbeddings."""

    KEYWORDS = ("IT", "設備", "創業")

    def __init__(self) -> None:
        self.document_calls = 0

    def _vector(self, text: str) -> list[float]:
        return [1.0 if k in text else 0.0 for k in self.KEYWORDS]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls += 1
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


def test_tokenize_splits_words_and_bigrams():
    tokens = tokenize("IT導入 補助金")
    assert "it" in tokens
    assert "導入" in tokens
    assert "補助" in tokens
    assert "助金" in tokens


def test_bm25_only_search_ranks_matching_record_first():
    search = SubsidySearch(SubsidyIndex(RECORDS))

    results = search.search(SearchQuery(query_text="設備投資", top_k=2))

    assert len(results) == 2
    assert results[0].subsidy.id == "mono"
    assert results[0].vector_score == 0.0


def test_hybrid_search_uses_embeddings():
    embeddings = KeywordEmbeddings()
    search = SubsidySearch(SubsidyIndex(RECORDS), EmbeddingClient(embeddings), alpha=1.0)

    results = search.search(SearchQuery(query_text="創業"))

    assert results[0].subsidy.id == "start"
    assert results[0].combined_score == results[0].vector_score


def test_category_filter_limits_candidates():
    search = SubsidySearch(SubsidyIndex(RECORDS))

    results = search.search(SearchQuery(query_text="補助金", category_filter=["startup"]))

    assert [r.subsidy.id for r in results] == ["start"]


def test_empty_index_returns_no_results():
    assert SubsidySearch(SubsidyIndex()).search(SearchQuery(query_text="補助金")) == []


def test_embedding_client_caches_documents():
    embeddings = KeywordEmbeddings()
    client = EmbeddingClient(embeddings)

    first = client.embed_documents(["IT", "設備"])
    second = client.embed_documents(["設備", "IT"])

    assert embeddings.document_calls == 1
    assert second == [first[1], first[0]]
