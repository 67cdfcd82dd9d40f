"""Numpyベクトル近傍探索とBM25を組み合わせた補助金ハイブリッド検索."""

import re

import numpy as np
from rank_bm25 import BM25Okapi

from src.components.subsidy_index.models import SubsidyRecord
from src.components.subsidy_index.store import SubsidyIndex
from src.components.subsidy_search.embedding_client import EmbeddingClient
from src.components.subsidy_search.models import SearchQuery, SearchResult

_WORD = re.compile(r"[A-Za-z0-9]+")
_NON_SPACE = re.compile(r"[^\sA-Za-z0-9、。・「」【】（）()]+")


def tokenize(text: str) -> list[str]:
    """BM25用にテキストをトークン化する.

    英数字は単語単位、それ以外（日本語）は文字bigram単位に分割する.

    Args:
        text: 対象テキスト

    Returns:
        トークンのリスト
    """
    tokens = [word.lower() for word in _WORD.findall(text)]
    for chunk in _NON_SPACE.findall(text):
        if len(chunk) == 1:
            tokens.append(chunk)
        tokens.extend(chunk[i : i + 2] for i in range(len(chunk) - 1))
    return tokens


def _normalize(scores: np.ndarray) -> np.ndarray:
    min_s, max_s = scores.min(), scores.max()
    if max_s > min_s:
        return (scores - min_s) / (max_s - min_s)
    return np.ones_like(scores, dtype=float) * 0.5


class SubsidySearch:
    """補助金インデックスに対するハイブリッド検索エンジン."""

    def __init__(
        self,
        index: SubsidyIndex,
        embedding_client: EmbeddingClient | None = None,
        alpha: float = 0.5,
    ) -> None:
        """SubsidySearchを初期化する.

        Args:
            index: 検索対象の補助金インデックス
            embedding_client: embedding生成クライアント. Noneの場合はBM25のみ
            alpha: ベクトルスコアの重み（0〜1）
        """
        self.index = index
        self.embedding_client = embedding_client
        self.alpha = alpha

    def search(self, query: SearchQuery) -> list[SearchResult]:
        """ハイブリッド検索を実行する.

        Args:
            query: 検索クエリ

        Returns:
            統合スコア降順のSearchResultリスト
        """
        candidates = self._filter_candidates(query, self.index.records)
        if not candidates:
            return []

        bm25_scores = self._bm25_search(query.query_text, candidates)
        if self.embedding_client is None:
            vector_scores = np.zeros(len(candidates))
            alpha = 0.0
        else:
            vector_scores = self._vector_search(query.query_text, candidates)
            alpha = self.alpha

        results = [
            SearchResult(
                subsidy=record,
                vector_score=float(vs),
                bm25_score=float(bs),
                combined_score=float(alpha * vs + (1 - alpha) * bs),
            )
            for record, vs, bs in zip(candidates, vector_scores, bm25_scores, strict=True)
        ]
        results.sort(key=lambda r: r.combined_score, reverse=True)
        return results[: query.top_k]

    def _filter_candidates(
        self, query: SearchQuery, records: list[SubsidyRecord]
    ) -> list[SubsidyRecord]:
        if not query.category_filter:
            return list(records)
        wanted = set(query.category_filter)
        return [r for r in records if wanted.intersection(r.categories)]

    def _vector_search(self, query_text: str, candidates: list[SubsidyRecord]) -> np.ndarray:
        query_embedding = np.array(self.embedding_client.embed_query(query_text))
        doc_embeddings = np.array(
            self.embedding_client.embed_documents([r.searchable_text for r in candidates])
        )
        norms = np.linalg.norm(doc_embeddings, axis=1) * np.linalg.norm(query_embedding)
        norms = np.where(norms == 0, 1, norms)
        return _normalize(np.dot(doc_embeddings, query_embedding) / norms)

    def _bm25_search(self, query_text: str, candidates: list[SubsidyRecord]) -> np.ndarray:
        corpus = [tokenize(r.searchable_text) or [""] for r in candidates]
        bm25 = BM25Okapi(corpus)
        return _normalize(np.asarray(bm25.get_scores(tokenize(query_text)), dtype=float))
