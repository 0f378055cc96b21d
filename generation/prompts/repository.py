"""Persistence for prompt versions, snapshots and the audit trail.

Records are append-only: a new version is a new row and the previous active
row is only flagged inactive.  The store performs its compare-then-write
inside ``transaction()``.
"""
import asyncio
import copy
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, Field

from generation.models import UseCase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PromptRecord(BaseModel):
    """One version of a use-case prompt."""
    id: Optional[int] = None
    use_case: UseCase
    content: str
    version: int = Field(..., ge=1)
    active: bool = True
    provider: Optional[str] = None
    model: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class PromptVersionSnapshot(BaseModel):
    """Immutable copy of a record, kept for history and rollback."""
    prompt_id: int
    use_case: UseCase
    version: int
    content: str
    provider: Optional[str] = None
    model: Optional[str] = None
    editor: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class PromptAuditEntry(BaseModel):
    action: Literal["update", "rollback"]
    use_case: UseCase
    editor: Optional[str] = None
    from_version: int
    to_version: int
    created_at: datetime = Field(default_factory=_utcnow)


class PromptRepository(Protocol):
    def transaction(self): ...

    async def find_latest(self, use_case: UseCase) -> Optional[PromptRecord]: ...

    async def create_version(self, record: PromptRecord) -> PromptRecord: ...

    async def append_snapshot(self, snapshot: PromptVersionSnapshot) -> None: ...

    async def list_snapshots(self, use_case: UseCase, limit: int = 20) -> List[PromptVersionSnapshot]: ...

    async def find_snapshot(self, use_case: UseCase, version: int) -> Optional[PromptVersionSnapshot]: ...

    async def append_audit(self, entry: PromptAuditEntry) -> None: ...

    async def list_audit(self, use_case: UseCase) -> List[PromptAuditEntry]: ...


class InMemoryPromptRepository:
    """Process-local repository; a failed transaction restores the prior state."""

    def __init__(self) -> None:
        self._records: List[PromptRecord] = []
        self._snapshots: List[PromptVersionSnapshot] = []
        self._audit: List[PromptAuditEntry] = []
        self._next_id = 1
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            saved = (copy.deepcopy(self._records), list(self._snapshots), list(self._audit), self._next_id)
            try:
                yield
            except BaseException:
                self._records, self._snapshots, self._audit, self._next_id = saved
                raise

    async def find_latest(self, use_case: UseCase) -> Optional[PromptRecord]:
        candidates = [r for r in self._records if r.use_case == use_case]
        if not candidates:
            return None
        active = [r for r in candidates if r.active]
        return max(active or candidates, key=lambda r: r.version).model_copy()

    async def create_version(self, record: PromptRecord) -> PromptRecord:
        for existing in self._records:
            if existing.use_case == record.use_case:
                existing.active = False
        stored = record.model_copy(update={"id": self._next_id, "active": True})
        self._next_id += 1
        self._records.append(stored)
        return stored.model_copy()

    async def append_snapshot(self, snapshot: PromptVersionSnapshot) -> None:
        self._snapshots.append(snapshot)

    async def list_snapshots(self, use_case: UseCase, limit: int = 20) -> List[PromptVersionSnapshot]:
        matching = [s for s in self._snapshots if s.use_case == use_case]
        return sorted(matching, key=lambda s: s.version, reverse=True)[:limit]

    async def find_snapshot(self, use_case: UseCase, version: int) -> Optional[PromptVersionSnapshot]:
        for snapshot in self._snapshots:
            if snapshot.use_case == use_case and snapshot.version == version:
                return snapshot
        return None

    async def append_audit(self, entry: PromptAuditEntry) -> None:
        self._audit.append(entry)

    async def list_audit(self, use_case: UseCase) -> List[PromptAuditEntry]:
        return [e for e in self._audit if e.use_case == use_case]


class SqlitePromptRepository:
    """SQLite-backed repository; ``transaction()`` maps to ``BEGIN IMMEDIATE``."""

    def __init__(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._init_db()
        self._lock = asyncio.Lock()
        self._tx_conn: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        conn = self._connect()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS prompt_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    use_case TEXT NOT NULL,
                    content TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    provider TEXT,
                    model TEXT,
                    created_by TEXT,
                    updated_by TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (use_case, version)
                );
                CREATE TABLE IF NOT EXISTS prompt_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    prompt_id INTEGER NOT NULL REFERENCES prompt_records(id),
                    use_case TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    provider TEXT,
                    model TEXT,
                    editor TEXT,
                    created_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS prompt_audit (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    action TEXT NOT NULL,
                    use_case TEXT NOT NULL,
                    editor TEXT,
                    from_version INTEGER NOT NULL,
                    to_version INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_snapshots_use_case ON prompt_snapshots(use_case, version);
            """)
        finally:
            conn.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            conn = self._connect()
            conn.execute("BEGIN IMMEDIATE")
            self._tx_conn = conn
            try:
                yield
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")
            finally:
                self._tx_conn = None
                conn.close()

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        if self._tx_conn is not None:
            return self._tx_conn.execute(sql, params).fetchall()
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()

    def _execute(self, sql: str, params: tuple = ()) -> int:
        if self._tx_conn is None:
            raise RuntimeError("writes must run inside transaction()")
        return self._tx_conn.execute(sql, params).lastrowid

    @staticmethod
    def _record(row: sqlite3.Row) -> PromptRecord:
        data: Dict = dict(row)
        data["active"] = bool(data["active"])
        return PromptRecord.model_validate(data)

    # ------------------------------------------------------------------
    async def find_latest(self, use_case: UseCase) -> Optional[PromptRecord]:
        rows = self._query(
            "SELECT * FROM prompt_records WHERE use_case = ? ORDER BY active DESC, version DESC LIMIT 1",
            (use_case.value,),
        )
        return self._record(rows[0]) if rows else None

    async def create_version(self, record: PromptRecord) -> PromptRecord:
        self._execute("UPDATE prompt_records SET active = 0 WHERE use_case = ?", (record.use_case.value,))
        row_id = self._execute(
            "INSERT INTO prompt_records (use_case, content, version, active, provider, model, "
            "created_by, updated_by, created_at, updated_at) VALUES (?, ?, ?, 1, ?, ?, ?, ?, ?, ?)",
            (
                record.use_case.value, record.content, record.version, record.provider, record.model,
                record.created_by, record.updated_by,
                record.created_at.isoformat(), record.updated_at.isoformat(),
            ),
        )
        return record.model_copy(update={"id": row_id, "active": True})

    async def append_snapshot(self, snapshot: PromptVersionSnapshot) -> None:
        self._execute(
            "INSERT INTO prompt_snapshots (prompt_id, use_case, version, content, provider, model, editor, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                snapshot.prompt_id, snapshot.use_case.value, snapshot.version, snapshot.content,
                snapshot.provider, snapshot.model, snapshot.editor, snapshot.created_at.isoformat(),
            ),
        )

    async def list_snapshots(self, use_case: UseCase, limit: int = 20) -> List[PromptVersionSnapshot]:
        rows = self._query(
            "SELECT prompt_id, use_case, version, content, provider, model, editor, created_at "
            "FROM prompt_snapshots WHERE use_case = ? ORDER BY version DESC LIMIT ?",
            (use_case.value, limit),
        )
        return [PromptVersionSnapshot.model_validate(dict(row)) for row in rows]

    async def find_snapshot(self, use_case: UseCase, version: int) -> Optional[PromptVersionSnapshot]:
        rows = self._query(
            "SELECT prompt_id, use_case, version, content, provider, model, editor, created_at "
            "FROM prompt_snapshots WHERE use_case = ? AND version = ?",
            (use_case.value, version),
        )
        return PromptVersionSnapshot.model_validate(dict(rows[0])) if rows else None

    async def append_audit(self, entry: PromptAuditEntry) -> None:
        self._execute(
            "INSERT INTO prompt_audit (action, use_case, editor, from_version, to_version, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (entry.action, entry.use_case.value, entry.editor, entry.from_version, entry.to_version,
             entry.created_at.isoformat()),
        )

    async def list_audit(self, use_case: UseCase) -> List[PromptAuditEntry]:
        rows = self._query(
            "SELECT action, use_case, editor, from_version, to_version, created_at "
            "FROM prompt_audit WHERE use_case = ? ORDER BY id",
            (use_case.value,),
        )
        return [PromptAuditEntry.model_validate(dict(row)) for row in rows]
