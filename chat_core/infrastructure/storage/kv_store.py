"""基于嵌入式有序键值库的持久化会话存储。

底层是单个 SQLite 文件中的一张 kv 表（WITHOUT ROWID，按 key 有序）：

- 消息序列：key = 会话 UUID 的 16 字节原始值，value = {role, content} 数组的 JSON。
- 标题：key = "<uuid 文本>:title" 的 UTF-8 编码，value = 标题原始字节。

每次调用单独打开连接，可在任意线程中使用。
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional
from uuid import UUID

from chat_core.domain.conversation import (
    ConversationId,
    ConversationStore,
    new_conversation_id,
    seed_message,
)
from chat_core.domain.exceptions import NotFoundError, StorageError
from chat_core.domain.models import Message


DB_FILENAME = "conversations.db"
TITLE_SUFFIX = ":title"


def _messages_key(conversation_id: ConversationId) -> bytes:
    return conversation_id.bytes


def _title_key(conversation_id: ConversationId) -> bytes:
    return f"{conversation_id}{TITLE_SUFFIX}".encode("utf-8")


def _encode_messages(messages: List[Message]) -> bytes:
    return json.dumps([m.to_dict() for m in messages], ensure_ascii=False).encode("utf-8")


def _decode_messages(conversation_id: ConversationId, blob: bytes) -> List[Message]:
    try:
        data = json.loads(bytes(blob).decode("utf-8"))
        if not isinstance(data, list):
            raise ValueError("stored conversation is not a list")
        return [Message.from_dict(item) for item in data]
    except ValueError as e:
        # json.JSONDecodeError 与 UnicodeDecodeError 均为 ValueError 子类
        raise StorageError(
            code="STORE_READ_ERROR",
            message=f"corrupted conversation {conversation_id}: {e}",
        )


class KVConversationStore(ConversationStore):
    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._db_path = self._root / DB_FILENAME
        with self._conn() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key BLOB PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"
            )

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        """打开一个自动提交模式的连接，事务由调用方显式控制。"""

        try:
            conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        except sqlite3.Error as e:
            raise StorageError(code="STORE_OPEN_ERROR", message=str(e))
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(code="STORE_WRITE_ERROR", message=str(e))
        finally:
            conn.close()

    def _get(self, conn: sqlite3.Connection, key: bytes) -> Optional[bytes]:
        row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return None if row is None else row[0]

    def start_conversation(self, hint: Optional[str] = None) -> ConversationId:
        cid = new_conversation_id()
        self.store_conversation(cid, [seed_message(hint)])
        return cid

    def store_message(self, conversation_id: ConversationId, message: Message) -> None:
        key = _messages_key(conversation_id)
        with self._conn() as conn:
            # BEGIN IMMEDIATE 先拿写锁，读-改-写期间其它写者等待
            conn.execute("BEGIN IMMEDIATE")
            try:
                blob = self._get(conn, key)
                messages = [] if blob is None else _decode_messages(conversation_id, blob)
                messages.append(message)
                conn.execute(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    (key, _encode_messages(messages)),
                )
            except Exception:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def store_conversation(self, conversation_id: ConversationId, messages: List[Message]) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (_messages_key(conversation_id), _encode_messages(messages)),
            )

    def get_conversation(self, conversation_id: ConversationId) -> List[Message]:
        with self._conn() as conn:
            blob = self._get(conn, _messages_key(conversation_id))
        if blob is None:
            raise NotFoundError(code="CONVERSATION_NOT_FOUND", message=f"conversation {conversation_id} not found")
        return _decode_messages(conversation_id, blob)

    def get_conversations(self) -> List[ConversationId]:
        """全表扫描，按 key 形状过滤掉标题键。"""

        with self._conn() as conn:
            rows = conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        ids: List[ConversationId] = []
        for (key,) in rows:
            key = bytes(key)
            if len(key) == 16:
                ids.append(UUID(bytes=key))
        return ids

    def store_title(self, conversation_id: ConversationId, title: str) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO kv (key, value) VALUES (?, ?)",
                (_title_key(conversation_id), title.encode("utf-8")),
            )

    def set_title(self, conversation_id: ConversationId, title: str) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (_title_key(conversation_id), title.encode("utf-8")),
            )

    def get_title(self, conversation_id: ConversationId) -> Optional[str]:
        with self._conn() as conn:
            blob = self._get(conn, _title_key(conversation_id))
        if blob is None:
            return None
        try:
            return bytes(blob).decode("utf-8")
        except UnicodeDecodeError as e:
            raise StorageError(code="STORE_READ_ERROR", message=f"corrupted title {conversation_id}: {e}")
