"""検証ループのログをJSON Lines形式で追記保存するストア."""

import json
import re
from pathlib import Path
from typing import Annotated

from pydantic import Field, TypeAdapter

from src.common.defs.errors import PersistenceFailed
from src.components.validation_log.models import LoopLogRecord, ResultLogRecord

LogRecord = Annotated[LoopLogRecord | ResultLogRecord, Field(discriminator="kind")]

_record_adapter: TypeAdapter[LogRecord] = TypeAdapter(LogRecord)
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class ValidationLogStore:
    """スレッドごとに1ファイルへ検証ログを追記するストア."""

    def __init__(self, data_dir: str = "data/validation_logs") -> None:
        """ValidationLogStoreを初期化する.

        Args:
            data_dir: ログファイルの保存ディレクトリ
        """
        self.data_dir = Path(data_dir)

    def _path(self, thread_id: str) -> Path:
        return self.data_dir / f"{_UNSAFE_CHARS.sub('_', thread_id)}.jsonl"

    def append(self, record: LogRecord) -> None:
        """ログレコードを1行追記する.

        Args:
            record: 保存するレコード

        Raises:
            PersistenceFailed: 書き込みに失敗した場合
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            with self._path(record.thread_id).open("a", encoding="utf-8") as f:
                f.write(record.model_dump_json() + "\n")
        except OSError as e:
            msg = f"検証ログの書き込みに失敗: {record.thread_id}"
            raise PersistenceFailed(msg) from e

    def load(self, thread_id: str) -> list[LogRecord]:
        """スレッドのログレコードを保存順に読み込む. ファイルが無ければ空リスト."""
        path = self._path(thread_id)
        if not path.exists():
            return []
        lines = path.read_text(encoding="utf-8").splitlines()
        return [_record_adapter.validate_python(json.loads(line)) for line in lines if line]
