"""SQLite-backed implementation of the star gate record store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from stargate.clients.store import Where
from stargate.models.schema import get_collection

_SQL_OPERATORS = {"eq": "=", "lt": "<"}

# Lookups the services run on every request or sign-in.
_INDEXED_FIELDS = ("userId", "token", "expiresAt")


def _to_storage(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    # Fixed width so ISO strings order the same way as the instants they encode.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _default_json_serializer(value: Any) -> Any:
    if isinstance(value, datetime):
        return _to_storage(value)
    raise TypeError(f"Type {type(value)!r} not serializable")


def _sql_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return _to_storage(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _json_path(field: str) -> str:
    return f"json_extract(data, '$.{field}')"


class SQLiteStore:
    """Document store using a single table keyed by (collection, id)."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS star_gate_records (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )
            for field in _INDEXED_FIELDS:
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_star_gate_records_{field} "
                    f"ON star_gate_records (collection, {_json_path(field)})"
                )

    @staticmethod
    def _encode(document: Dict[str, Any]) -> str:
        return json.dumps(document, default=_default_json_serializer)

    @staticmethod
    def _decode(collection: str, raw: str) -> Dict[str, Any]:
        document = json.loads(raw)
        for field in get_collection(collection).date_fields:
            value = document.get(field)
            if isinstance(value, str):
                parsed = datetime.fromisoformat(value)
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                document[field] = parsed
        return document

    @staticmethod
    def _where_sql(
        collection: str, where: Sequence[Where]
    ) -> Tuple[str, List[Any]]:
        """Translate filter clauses into a WHERE fragment and its parameters."""
        fields = get_collection(collection).fields
        clauses = ["collection = ?"]
        params: List[Any] = [collection]
        for clause in where:
            if clause.field not in fields:
                raise KeyError(f"Unknown field {clause.field!r} in {collection}")
            operator = _SQL_OPERATORS.get(clause.operator)
            if operator is None:
                raise ValueError(f"Unsupported operator: {clause.operator}")
            column = "id" if clause.field == "id" else _json_path(clause.field)
            if clause.value is None:
                if clause.operator != "eq":
                    raise ValueError("Only equality comparisons accept None")
                clauses.append(f"{column} IS NULL")
                continue
            clauses.append(f"{column} {operator} ?")
            params.append(_sql_value(clause.value))
        return " AND ".join(clauses), params

    def _find_many_sync(
        self, collection: str, where: Sequence[Where], limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        condition, params = self._where_sql(collection, where)
        query = f"SELECT data FROM star_gate_records WHERE {condition}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._decode(collection, row["data"]) for row in rows]

    def _get_sync(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT data FROM star_gate_records WHERE collection = ? AND id = ?",
                (collection, record_id),
            ).fetchone()
        if not row:
            return None
        return self._decode(collection, row["data"])

    def _create_sync(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        get_collection(collection)
        record_id = data.get("id")
        if not record_id:
            raise ValueError("Record must include an 'id' field")
        encoded = self._encode(data)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO star_gate_records (collection, id, data)
                VALUES (?, ?, ?)
                ON CONFLICT(collection, id) DO UPDATE SET data = excluded.data
                """,
                (collection, record_id, encoded),
            )
        return self._decode(collection, encoded)

    def _update_sync(
        self, collection: str, record_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        existing = self._get_sync(collection, record_id)
        if existing is None:
            return None
        existing.update(changes)
        encoded = self._encode(existing)
        with self._transaction() as conn:
            conn.execute(
                "UPDATE star_gate_records SET data = ? WHERE collection = ? AND id = ?",
                (encoded, collection, record_id),
            )
        return self._decode(collection, encoded)

    def _delete_sync(self, collection: str, record_id: str) -> None:
        get_collection(collection)
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM star_gate_records WHERE collection = ? AND id = ?",
                (collection, record_id),
            )

    async def find_one(
        self, collection: str, where: Sequence[Where]
    ) -> Optional[Dict[str, Any]]:
        matches = await asyncio.to_thread(self._find_many_sync, collection, where, 1)
        return matches[0] if matches else None

    async def find_many(
        self, collection: str, where: Sequence[Where] = ()
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._find_many_sync, collection, where)

    async def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._create_sync, collection, data)

    async def update(
        self, collection: str, record_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(
            self._update_sync, collection, record_id, changes
        )

    async def delete(self, collection: str, record_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, collection, record_id)


__all__ = ["SQLiteStore"]
