"""Session and conversation-turn persistence with bounded history reads."""

from __future__ import annotations

import datetime
import sqlite3
from collections.abc import Iterator, Mapping, Sequence
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any

from .config import config
from .models import ConversationTurn, Role, Session

logger = config.get_logger(__name__)


def _now() -> str:
    return datetime.datetime.now(tz=datetime.UTC).isoformat()


def build_history_messages(
    turns: Sequence[ConversationTurn], max_turns: int = 5
) -> list[dict[str, str]]:
    """Map the most recent turns onto chat-completion messages.

    Returns:
        Up to ``max_turns`` messages, oldest first, with ``user`` and
        ``assistant`` roles.
    """
    if max_turns <= 0:
        return []
    return [
        {
            "role": "assistant" if turn.role == Role.ASSISTANT else "user",
            "content": turn.content,
        }
        for turn in turns[-max_turns:]
    ]


class SQLiteConversationStore:
    """Append-only conversation log backed by SQLite.

    Each operation opens its own connection, so one instance can be shared by
    concurrent requests.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store and ensure the schema exists."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn

    def _create_tables(self) -> None:
        """Create session and conversation tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    last_activity TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    tokens_used INTEGER DEFAULT 0,
                    chunks_retrieved INTEGER DEFAULT 0,
                    max_similarity REAL DEFAULT 0,
                    FOREIGN KEY (session_id) REFERENCES sessions(session_id)
                        ON DELETE CASCADE
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_session "
                "ON conversations(session_id, id)"
            )

    @staticmethod
    def _touch(conn: sqlite3.Connection, session_id: str, now: str) -> None:
        conn.execute(
            "INSERT OR IGNORE INTO sessions (session_id, created_at, last_activity) "
            "VALUES (?, ?, ?)",
            (session_id, now, now),
        )
        conn.execute(
            "UPDATE sessions SET last_activity = ? WHERE session_id = ?",
            (now, session_id),
        )

    def touch_session(self, session_id: str) -> None:
        """Create the session if needed and bump its last activity."""
        with self._connect() as conn:
            self._touch(conn, session_id, _now())

    def record_turn(
        self,
        session_id: str,
        role: Role | str,
        content: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> ConversationTurn:
        """Append a turn to the session log.

        Args:
            session_id: Session the turn belongs to.
            role: ``user`` or ``assistant``.
            content: Message text.
            metadata: Optional ``tokens_used``, ``chunks_retrieved`` and
                ``max_similarity`` values; each defaults to 0.

        Returns:
            The stored turn.

        Raises:
            ValueError: If role is not a known role.
        """
        role = Role(role)
        metadata = metadata or {}
        turn = ConversationTurn(
            session_id=session_id,
            role=role,
            content=content,
            timestamp=_now(),
            tokens_used=int(metadata.get("tokens_used", 0) or 0),
            chunks_retrieved=int(metadata.get("chunks_retrieved", 0) or 0),
            max_similarity=float(metadata.get("max_similarity", 0.0) or 0.0),
        )

        try:
            with self._connect() as conn:
                self._touch(conn, session_id, turn.timestamp)
                conn.execute(
                    """
                    INSERT INTO conversations (
                        session_id, role, content, timestamp,
                        tokens_used, chunks_retrieved, max_similarity
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        turn.session_id,
                        turn.role.value,
                        turn.content,
                        turn.timestamp,
                        turn.tokens_used,
                        turn.chunks_retrieved,
                        turn.max_similarity,
                    ),
                )
        except sqlite3.Error:
            logger.exception("Failed to record %s turn for session %s", role, session_id)
            raise

        return turn

    def read_history(self, session_id: str, limit: int = 10) -> list[ConversationTurn]:
        """Read the most recent turns of a session.

        Returns:
            At most ``limit`` turns in chronological order.
        """
        if limit <= 0:
            return []

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT session_id, role, content, timestamp,
                       COALESCE(tokens_used, 0), COALESCE(chunks_retrieved, 0),
                       COALESCE(max_similarity, 0.0)
                FROM conversations
                WHERE session_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (session_id, limit),
            ).fetchall()

        return [
            ConversationTurn(
                session_id=row[0],
                role=Role(row[1]),
                content=row[2],
                timestamp=row[3],
                tokens_used=row[4],
                chunks_retrieved=row[5],
                max_similarity=row[6],
            )
            for row in reversed(rows)
        ]

    def session_stats(self, session_id: str) -> dict[str, Any]:
        """Aggregate usage figures for one session.

        Returns:
            Message count, total tokens, average similarity and the first and
            last message timestamps.
        """
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*),
                       COALESCE(SUM(tokens_used), 0),
                       AVG(max_similarity),
                       MIN(timestamp),
                       MAX(timestamp)
                FROM conversations
                WHERE session_id = ?
                """,
                (session_id,),
            ).fetchone()

        return {
            "message_count": row[0],
            "total_tokens": row[1],
            "avg_similarity": row[2],
            "first_message": row[3],
            "last_message": row[4],
        }

    def active_sessions(self) -> list[Session]:
        """List sessions, most recently active first."""
        with self._connect() as conn:
            rows = conn.execute("""
                SELECT s.session_id, s.created_at, s.last_activity,
                       (SELECT COUNT(*) FROM conversations c
                        WHERE c.session_id = s.session_id)
                FROM sessions s
                ORDER BY s.last_activity DESC
            """).fetchall()

        return [
            Session(
                session_id=row[0],
                created_at=row[1],
                last_activity=row[2],
                message_count=row[3],
            )
            for row in rows
        ]

    def cleanup_old_sessions(self, days_old: int = 30) -> int:
        """Delete sessions idle for more than ``days_old`` days, with their turns.

        Returns:
            Number of sessions removed.
        """
        cutoff = (
            datetime.datetime.now(tz=datetime.UTC) - datetime.timedelta(days=days_old)
        ).isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM sessions WHERE last_activity < ?", (cutoff,)
            )
            removed = cursor.rowcount

        logger.info("Removed %d sessions idle for over %d days", removed, days_old)
        return removed
