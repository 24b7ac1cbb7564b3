"""Queue sink — enqueues serialized envelopes on a bounded FIFO.

Two backends:

1. **SQLite queue** (``db_path`` provided): persistent, survives process
   restart; consumers on another process can ``receive`` from the same
   file.
2. **In-memory deque** (``db_path`` is None): volatile, for tests and
   single-process deployments.

Both are bounded by ``max_depth``; a full queue rejects the envelope with
``DeliveryError``.
"""

from __future__ import annotations

import collections
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from signalpost.core.codec import decode_envelope, serialize
from signalpost.models.destinations import SinkCapability
from signalpost.models.envelopes import DeliveryEnvelope
from signalpost.models.routing import DeliveryAck
from signalpost.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)


class QueueSink:
    """Bounded FIFO queue of delivery envelopes.

    Parameters
    ----------
    name:
        Queue name; the sink is named ``queue:<name>``.
    max_depth:
        Maximum number of messages waiting in the queue.
    db_path:
        Path to a SQLite database file for persistent storage.  When
        ``None``, an in-memory deque is used.
    """

    def __init__(
        self,
        name: str,
        *,
        max_depth: int = 1024,
        db_path: Path | str | None = None,
    ) -> None:
        self._name = name
        self._max_depth = max_depth
        self._lock = threading.Lock()
        self._memory: collections.deque[tuple[int, bytes]] = collections.deque()
        self._next_id = 1
        self._closed = False

        self._db: sqlite3.Connection | None = None
        if db_path is not None:
            path = Path(db_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._db = sqlite3.connect(str(path), check_same_thread=False)
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS queue ("
                "  id INTEGER PRIMARY KEY AUTOINCREMENT,"
                "  payload BLOB NOT NULL,"
                "  created_at TEXT DEFAULT (datetime('now'))"
                ")"
            )
            self._db.commit()
            logger.info(
                "QueueSink %s: using SQLite queue at %s (max_depth=%d).",
                name,
                path,
                max_depth,
            )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def sink_name(self) -> str:
        return f"queue:{self._name}"

    @property
    def capability(self) -> SinkCapability:
        return SinkCapability.ENQUEUE

    @property
    def is_persistent(self) -> bool:
        return self._db is not None

    @property
    def depth(self) -> int:
        """Number of messages waiting in the queue."""
        with self._lock:
            return self._depth_unlocked()

    # ------------------------------------------------------------------
    # Sink API
    # ------------------------------------------------------------------

    def deliver(self, envelope: DeliveryEnvelope) -> DeliveryAck:
        """Serialize and enqueue *envelope*.

        Raises
        ------
        DeliveryError
            If the queue is full or closed.
        """
        payload = serialize(envelope)
        with self._lock:
            if self._closed:
                raise DeliveryError(f"Queue {self._name} is closed.")
            depth = self._depth_unlocked()
            if depth >= self._max_depth:
                raise DeliveryError(
                    f"Queue {self._name} is full (depth={depth}). "
                    f"Envelope for invocation {envelope.invocation_id} rejected."
                )
            message_id = self._push(payload)

        logger.debug(
            "QueueSink %s: enqueued invocation %s as message %s (depth=%d).",
            self._name,
            envelope.invocation_id,
            message_id,
            depth + 1,
        )
        return DeliveryAck(
            sink_name=self.sink_name,
            message_id=str(message_id),
            detail={"depth": depth + 1},
        )

    # ------------------------------------------------------------------
    # Consumer API
    # ------------------------------------------------------------------

    def receive_raw(self) -> bytes | None:
        """Dequeue the oldest message as raw JSON bytes, or ``None``."""
        with self._lock:
            return self._pop()

    def receive(self) -> DeliveryEnvelope | None:
        """Dequeue and decode the oldest envelope, or ``None`` if empty."""
        raw = self.receive_raw()
        if raw is None:
            return None
        return decode_envelope(raw)

    def drain(self, *, max_messages: int = 100) -> list[DeliveryEnvelope]:
        """Dequeue up to *max_messages* envelopes, oldest first."""
        messages: list[DeliveryEnvelope] = []
        for _ in range(max_messages):
            envelope = self.receive()
            if envelope is None:
                break
            messages.append(envelope)
        return messages

    def close(self) -> None:
        """Release the SQLite connection; in-memory messages are discarded."""
        with self._lock:
            if self._db is not None:
                self._db.close()
                self._db = None
            self._memory.clear()
            self._closed = True
        logger.info("QueueSink %s: closed.", self._name)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> QueueSink:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        backend = "sqlite" if self._db is not None else "memory"
        return f"QueueSink(name={self._name!r}, backend={backend})"

    # ------------------------------------------------------------------
    # Internal: backend operations (caller holds the lock)
    # ------------------------------------------------------------------

    def _depth_unlocked(self) -> int:
        if self._db is not None:
            row = self._db.execute("SELECT COUNT(*) FROM queue").fetchone()
            return row[0] if row else 0
        return len(self._memory)

    def _push(self, payload: bytes) -> int:
        if self._db is not None:
            cursor = self._db.execute(
                "INSERT INTO queue (payload) VALUES (?)", (payload,)
            )
            self._db.commit()
            return int(cursor.lastrowid)
        message_id = self._next_id
        self._next_id += 1
        self._memory.append((message_id, payload))
        return message_id

    def _pop(self) -> bytes | None:
        if self._closed:
            return None
        if self._db is not None:
            row = self._db.execute(
                "SELECT id, payload FROM queue ORDER BY id LIMIT 1"
            ).fetchone()
            if row is None:
                return None
            row_id, payload = row
            self._db.execute("DELETE FROM queue WHERE id = ?", (row_id,))
            self._db.commit()
            return bytes(payload)
        if self._memory:
            _, payload = self._memory.popleft()
            return payload
        return None
