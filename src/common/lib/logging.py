"""ロギング設定ユーティリティ."""

import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def getLogger(name: str) -> logging.Logger:
    """指定された名前のロガーを取得する.

    呼び出し時にlogging.basicConfig()を実行してから、ロガーを返す.
    ログレベルは環境変数LOG_LEVELで指定でき、既定はINFO.

    Args:
        name: ロガー名（通常は__name__を使用）

    Returns:
        ロガーインスタンス
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )
    return logging.getLogger(name)
