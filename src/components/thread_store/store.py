"""会話スレッドのインメモリストア."""

import threading
import uuid
from collections import OrderedDict
from typing import Literal

from src.components.thread_store.models import ConversationThread, ThreadMessage


class ThreadStore:
    """会話スレッドを保持するスレッドセーフなインメモリストア.

    返却するConversationThreadはコピーであり、更新はappend経由で行う.
    保持するスレッド数はmax_threadsまでで、超えた場合は最も長く
    更新されていないスレッドから破棄する.
    """

    def __init__(self, max_threads: int = 1000) -> None:
        """ThreadStoreを初期化する.

        Args:
            max_threads: 保持するスレッドの上限数
        """
        self.max_threads = max_threads
        self._threads: OrderedDict[str, ConversationThread] = OrderedDict()
        self._lock = threading.Lock()

    def create(self, thread_id: str | None = None) -> ConversationThread:
        """新しいスレッドを作成する. 既存IDの場合は既存スレッドを返す."""
        thread_id = thread_id or f"thread_{uuid.uuid4().hex}"
        with self._lock:
            return self._touch(thread_id).model_copy(deep=True)

    def get(self, thread_id: str) -> ConversationThread:
        """スレッドを取得する.

        Raises:
            KeyError: スレッドが存在しない場合
        """
        with self._lock:
            if thread_id not in self._threads:
                msg = f"スレッドが見つからない: {thread_id}"
                raise KeyError(msg)
            return self._threads[thread_id].model_copy(deep=True)

    def append(
        self,
        thread_id: str,
        role: Literal["user", "assistant"],
        content: str,
    ) -> ThreadMessage:
        """スレッドにメッセージを追加する. スレッドが無ければ作成する."""
        message = ThreadMessage(id=f"msg_{uuid.uuid4().hex}", role=role, content=content)
        with self._lock:
            self._touch(thread_id).messages.append(message)
        return message

    def last_assistant_message_id(self, thread_id: str) -> str | None:
        """最新のアシスタントメッセージのIDを返す. 無ければNone."""
        with self._lock:
            thread = self._threads.get(thread_id)
            if thread is None:
                return None
            for message in reversed(thread.messages):
                if message.role == "assistant":
                    return message.id
        return None

    def latest_assistant_message_since(
        self,
        thread_id: str,
        marker_id: str | None,
    ) -> ThreadMessage | None:
        """marker_idより後に追加された最新のアシスタントメッセージを返す.

        marker_idがNoneの場合はスレッド内の最新のアシスタントメッセージを返す.
        マーカー以降にアシスタントメッセージが無ければNone.

        Args:
            thread_id: スレッドID
            marker_id: 基準となるメッセージID

        Returns:
            新しいアシスタントメッセージ、またはNone
        """
        with self._lock:
            thread = self._threads.get(thread_id)
            if thread is None:
                return None
            for message in reversed(thread.messages):
                if marker_id is not None and message.id == marker_id:
                    return None
                if message.role == "assistant":
                    return message.model_copy()
        return None

    def _touch(self, thread_id: str) -> ConversationThread:
        # ロック取得済みで呼び出す
        thread = self._threads.setdefault(thread_id, ConversationThread(thread_id=thread_id))
        self._threads.move_to_end(thread_id)
        while len(self._threads) > self.max_threads:
            self._threads.popitem(last=False)
        return thread
