"""SQLite store; conditional writes are `UPDATE ... WHERE status = 'pending'`."""

import asyncio
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3
from typing import Any, TypeVar

import structlog
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from approvalhub.models.message import Message, MessageKind, MessageStatus, ProviderName
from approvalhub.models.workflow import Workflow, WorkflowStatus, WorkflowType

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS workflows (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    subject_ref TEXT NOT NULL,
    requested_by TEXT NOT NULL,
    payload TEXT NOT NULL,
    approver_groups TEXT NOT NULL,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    resolved_by TEXT,
    resolved_at TEXT,
    notes TEXT
);
CREATE INDEX IF NOT EXISTS idx_workflows_status_expires ON workflows(status, expires_at);

CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    provider TEXT NOT NULL,
    recipient TEXT NOT NULL,
    kind TEXT NOT NULL,
    content TEXT NOT NULL,
    status TEXT NOT NULL,
    sent_at TEXT,
    provider_message_id TEXT,
    error TEXT,
    workflow_id TEXT,
    recorded_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_workflow ON messages(workflow_id);

CREATE TABLE IF NOT EXISTS ct_claims (
    ct_number TEXT PRIMARY KEY,
    subject_ref TEXT NOT NULL,
    claimed_at TEXT NOT NULL
);
"""


def _ts(value: datetime | None) -> str | None:
    """UTC ISO-8601, so that string comparison in SQL orders correctly."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, sqlite3.OperationalError) and "locked" in str(error).lower()


class SQLiteApprovalStore:
    """ApprovalStore on a SQLite file shared by every worker process."""

    def __init__(self, path: str | Path, busy_timeout: float = 5.0) -> None:
        self.path = str(path)
        self.busy_timeout = busy_timeout
        self._init_db()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.path, timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
            conn.commit()
        logger.info("SQLite store ready", path=self.path)

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
        reraise=True,
    )
    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(func, *args)

    # Workflows

    def _insert_workflow(self, workflow: Workflow) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO workflows (id, type, subject_ref, requested_by, payload,
                    approver_groups, status, created_at, expires_at, resolved_by,
                    resolved_at, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    workflow.id,
                    workflow.type.value,
                    workflow.subject_ref,
                    workflow.requested_by,
                    json.dumps(workflow.payload, default=str),
                    json.dumps(workflow.approver_groups),
                    workflow.status.value,
                    _ts(workflow.created_at),
                    _ts(workflow.expires_at),
                    workflow.resolved_by,
                    _ts(workflow.resolved_at),
                    workflow.notes,
                ),
            )
            conn.commit()

    async def insert_workflow(self, workflow: Workflow) -> None:
        await self._run(self._insert_workflow, workflow)

    @staticmethod
    def _row_to_workflow(row: sqlite3.Row) -> Workflow:
        return Workflow(
            id=row["id"],
            type=WorkflowType(row["type"]),
            subject_ref=row["subject_ref"],
            requested_by=row["requested_by"],
            payload=json.loads(row["payload"]),
            approver_groups=json.loads(row["approver_groups"]),
            status=WorkflowStatus(row["status"]),
            created_at=_dt(row["created_at"]),  # type: ignore[arg-type]
            expires_at=_dt(row["expires_at"]),  # type: ignore[arg-type]
            resolved_by=row["resolved_by"],
            resolved_at=_dt(row["resolved_at"]),
            notes=row["notes"],
        )

    def _get_workflow(self, workflow_id: str) -> Workflow | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM workflows WHERE id = ?", (workflow_id,)).fetchone()
        return self._row_to_workflow(row) if row is not None else None

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        return await self._run(self._get_workflow, workflow_id)

    def _list_workflows(self, status: WorkflowStatus | None, limit: int) -> list[Workflow]:
        query = "SELECT * FROM workflows"
        params: tuple[Any, ...] = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (status.value,)
        query += " ORDER BY created_at DESC LIMIT ?"
        with self._connect() as conn:
            rows = conn.execute(query, (*params, limit)).fetchall()
        return [self._row_to_workflow(row) for row in rows]

    async def list_workflows(
        self, status: WorkflowStatus | None = None, limit: int = 100
    ) -> list[Workflow]:
        return await self._run(self._list_workflows, status, limit)

    def _resolve_if_pending(
        self,
        workflow_id: str,
        status: WorkflowStatus,
        resolved_by: str | None,
        resolved_at: datetime,
        notes: str | None,
    ) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE workflows
                SET status = ?, resolved_by = ?, resolved_at = ?, notes = ?
                WHERE id = ? AND status = 'pending'
                """,
                (status.value, resolved_by, _ts(resolved_at), notes, workflow_id),
            )
            conn.commit()
            return cursor.rowcount == 1

    async def resolve_if_pending(
        self,
        workflow_id: str,
        status: WorkflowStatus,
        resolved_by: str,
        resolved_at: datetime,
        notes: str | None,
    ) -> bool:
        return await self._run(
            self._resolve_if_pending, workflow_id, status, resolved_by, resolved_at, notes
        )

    async def expire_if_pending(self, workflow_id: str, now: datetime) -> bool:
        return await self._run(
            self._resolve_if_pending, workflow_id, WorkflowStatus.EXPIRED, None, now, None
        )

    def _expire_overdue(self, now: datetime) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE workflows
                SET status = 'expired', resolved_at = ?
                WHERE status = 'pending' AND expires_at < ?
                """,
                (_ts(now), _ts(now)),
            )
            conn.commit()
            return cursor.rowcount

    async def expire_overdue(self, now: datetime) -> int:
        return await self._run(self._expire_overdue, now)

    # Messages

    def _insert_message(self, message: Message) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO messages (id, provider, recipient, kind, content, status,
                    sent_at, provider_message_id, error, workflow_id, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.provider.value,
                    message.recipient,
                    message.kind.value,
                    message.content,
                    message.status.value,
                    _ts(message.sent_at),
                    message.provider_message_id,
                    message.error,
                    message.workflow_id,
                    _ts(datetime.now(timezone.utc)),
                ),
            )
            conn.commit()

    async def insert_message(self, message: Message) -> None:
        await self._run(self._insert_message, message)

    def _list_messages(self, workflow_id: str | None, limit: int) -> list[Message]:
        query = "SELECT * FROM messages"
        params: tuple[Any, ...] = ()
        if workflow_id is not None:
            query += " WHERE workflow_id = ?"
            params = (workflow_id,)
        query += " ORDER BY recorded_at DESC, rowid DESC LIMIT ?"
        with self._connect() as conn:
            rows = conn.execute(query, (*params, limit)).fetchall()
        return [
            Message(
                id=row["id"],
                provider=ProviderName(row["provider"]),
                recipient=row["recipient"],
                kind=MessageKind(row["kind"]),
                content=row["content"],
                status=MessageStatus(row["status"]),
                sent_at=_dt(row["sent_at"]),
                provider_message_id=row["provider_message_id"],
                error=row["error"],
                workflow_id=row["workflow_id"],
            )
            for row in reversed(rows)
        ]

    async def list_messages(self, workflow_id: str | None = None, limit: int = 100) -> list[Message]:
        return await self._run(self._list_messages, workflow_id, limit)

    # CT numbers

    def _claim_ct_number(self, ct_number: str, subject_ref: str) -> str | None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO ct_claims (ct_number, subject_ref, claimed_at) VALUES (?, ?, ?)",
                (ct_number, subject_ref, _ts(datetime.now(timezone.utc))),
            )
            conn.commit()
            row = conn.execute(
                "SELECT subject_ref FROM ct_claims WHERE ct_number = ?", (ct_number,)
            ).fetchone()
        owner = row["subject_ref"]
        return None if owner == subject_ref else owner

    async def claim_ct_number(self, ct_number: str, subject_ref: str) -> str | None:
        return await self._run(self._claim_ct_number, ct_number, subject_ref)

    async def close(self) -> None:
        return None


__all__ = ["SQLiteApprovalStore"]
