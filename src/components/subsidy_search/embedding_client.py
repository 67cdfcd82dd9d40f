"""LangChain Embeddingsモデルのラッパー."""

import threading

from langchain_core.embeddings import Embeddings


class EmbeddingClient:
    """LangChainのEmbeddingsモデルをラップするクライアントクラス.

    補助金インデックスは起動後に変化しないため、文書側のembeddingは
    テキスト単位でキャッシュする.
    """

    def __init__(self, model: Embeddings) -> None:
        """EmbeddingClientを初期化する.

        Args:
            model: LangChainのEmbeddingsモデル
        """
        self.model = model
        self._cache: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def embed_query(self, text: str) -> list[float]:
        """クエリテキストのembeddingを生成する."""
        return self.model.embed_query(text)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """複数ドキュメントのembeddingを返す. 未計算のものだけモデルに問い合わせる.

        Args:
            texts: ドキュメントテキストのリスト

        Returns:
            textsと同順のembeddingベクトルのリスト
        """
        with self._lock:
            missing = [t for t in dict.fromkeys(texts) if t not in self._cache]
        if missing:
            vectors = self.model.embed_documents(missing)
            with self._lock:
                self._cache.update(zip(missing, vectors, strict=True))
        with self._lock:
            return [self._cache[t] for t in texts]
