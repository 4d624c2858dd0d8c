"""
🛟 RESILIENT STORE
==================
Remote-with-local-fallback persistence for one logical table.

Every write lands in an in-process arena first and is then mirrored to the
remote backend on a best-effort basis. Reads ask the remote backend and
overlay the arena on top of what comes back; if the remote read fails the
arena alone answers. Remote failures are logged and never reach the caller,
so within one process the arena is the ground truth.

Partial updates on a row the arena has never seen first pull that row from
the remote, so the update survives a refused remote write. Deletes the
remote refused are remembered and hidden from later remote reads.
"""

import copy
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from loguru import logger


Row = Dict[str, Any]


def _sort_key(column: str) -> Callable[[Row], Any]:
    def key(row: Row):
        value = row.get(column)
        return (value is not None, value if value is not None else "")
    return key


def _matches(row: Row, filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    for col, val in filters.items():
        if isinstance(val, (list, tuple, set)):
            if row.get(col) not in val:
                return False
        elif row.get(col) != val:
            return False
    return True


class ResilientTable:
    """
    One table of the store: a local arena plus a best-effort remote mirror.

    Usage:
        from database.store import ResilientTable

        leads = ResilientTable("leads")
        leads.upsert({"id": "lead-1", "status": "DISCOVERED"})
        leads.update("lead-1", {"status": "SAVED"})
        rows = leads.select(order_by="discovered_at", descending=True)

    Args:
        table: Remote table name
        remote: Backend exposing the ``DatabaseConnection`` methods. Defaults
            to the shared Supabase connection.
    """

    def __init__(self, table: str, remote: Any = None):
        if remote is None:
            from database.connection import db
            remote = db
        self.table = table
        self.remote = remote
        self._arena: Dict[str, Row] = {}
        self._lock = threading.RLock()
        # ids deleted here but possibly still held remotely
        self._deleted: Set[str] = set()
        # set when a remote clear failed: remote rows are stale until the next clear
        self._local_only = False

    # ===================================
    # REMOTE SIDE CHANNEL
    # ===================================

    def _mirror(self, operation: str, call: Callable[[], Any]) -> bool:
        """Run a remote write, swallowing any failure. Returns True on success."""
        try:
            call()
            return True
        except Exception as e:
            logger.warning(f"⚠️ Remote {operation} on {self.table} failed, kept locally: {e}")
            return False

    def _hidden(self, id: Any) -> bool:
        """True when a remote row with this id must not be served."""
        return self._local_only or id in self._deleted

    def _adopt(self, ids: List[str]) -> None:
        """Copy remote-only rows into the arena so local writes can land on them."""
        with self._lock:
            missing = [i for i in ids if i not in self._arena and not self._hidden(i)]
        if not missing:
            return

        rows = self._remote_rows(
            lambda: self.remote.query(self.table, filters={"id": missing})
        )
        if not rows:
            return

        with self._lock:
            for row in rows:
                id = row.get("id")
                if id in missing and not self._hidden(id):
                    self._arena.setdefault(id, row)

    def _remote_rows(self, call: Callable[[], Optional[List[Row]]]) -> Optional[List[Row]]:
        """Run a remote read; ``None`` means the caller must use the arena alone."""
        try:
            rows = call()
        except Exception as e:
            logger.debug(f"Remote read on {self.table} failed, serving local rows: {e}")
            return None
        if rows is None:
            return None
        return [dict(r) for r in rows]

    # ===================================
    # WRITES
    # ===================================

    def insert(self, record: Row) -> Row:
        """Store a new row. The row must carry an ``id``."""
        row = copy.deepcopy(record)
        with self._lock:
            self._arena[row["id"]] = row
            self._deleted.discard(row["id"])
        self._mirror("insert", lambda: self.remote.insert(self.table, row))
        return copy.deepcopy(row)

    def upsert(self, record: Row) -> Row:
        """Insert the row or replace the stored row with the same ``id``."""
        row = copy.deepcopy(record)
        with self._lock:
            self._arena[row["id"]] = row
            self._deleted.discard(row["id"])
        self._mirror("upsert", lambda: self.remote.upsert(self.table, row, conflict_columns=["id"]))
        return copy.deepcopy(row)

    def update(self, id: str, fields: Row) -> Optional[Row]:
        """
        Apply a partial update to one row.

        A row held only remotely is copied into the arena first. Returns the
        updated local row, or None when neither side holds it (the remote
        update is still attempted).
        """
        fields = copy.deepcopy(fields)
        self._adopt([id])
        with self._lock:
            row = self._arena.get(id)
            if row is not None:
                row.update(fields)
                result = copy.deepcopy(row)
            else:
                result = None
        self._mirror("update", lambda: self.remote.update(self.table, id, fields))
        return result

    def update_many(self, ids: Iterable[str], fields: Row) -> int:
        """Apply the same partial update to every row in ``ids``; returns rows updated."""
        ids = list(ids)
        if not ids:
            return 0
        fields = copy.deepcopy(fields)
        self._adopt(ids)
        hits = 0
        with self._lock:
            for id in ids:
                row = self._arena.get(id)
                if row is not None:
                    row.update(copy.deepcopy(fields))
                    hits += 1
        self._mirror("batch update", lambda: self.remote.update_many(self.table, ids, fields))
        return hits

    def delete(self, id: str) -> bool:
        with self._lock:
            existed = self._arena.pop(id, None) is not None
        if not self._mirror("delete", lambda: self.remote.delete(self.table, id)):
            with self._lock:
                self._deleted.add(id)
        return existed

    def replace_all(self, records: Iterable[Row]) -> List[Row]:
        """Drop every row and store ``records`` in their place."""
        rows = [copy.deepcopy(r) for r in records]
        with self._lock:
            self._arena = {r["id"]: r for r in rows}
            self._deleted.clear()
        cleared = self._mirror("clear", lambda: self.remote.delete_all(self.table))
        with self._lock:
            self._local_only = not cleared
        if rows:
            self._mirror("bulk insert", lambda: self.remote.insert_many(self.table, rows))
        return copy.deepcopy(rows)

    # ===================================
    # READS
    # ===================================

    def select(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Row]:
        """
        Query rows, remote first, with the arena overlaid by ``id``.

        Args:
            filters: column:value equality filters (lists mean "in")
            order_by: Column to sort by
            descending: Sort direction
            limit: Maximum rows to return after merging
        """
        remote_order = None
        if order_by:
            remote_order = f"-{order_by}" if descending else order_by

        remote_rows = self._remote_rows(
            lambda: self.remote.query(
                self.table,
                filters=filters,
                order_by=remote_order,
                limit=limit,
            )
        )

        with self._lock:
            local_rows = [copy.deepcopy(r) for r in self._arena.values() if _matches(r, filters)]
            if remote_rows is not None:
                remote_rows = [r for r in remote_rows if not self._hidden(r.get("id"))]

        if remote_rows is None:
            merged = local_rows
        else:
            merged = remote_rows
            positions = {r.get("id"): i for i, r in enumerate(merged)}
            for row in local_rows:
                idx = positions.get(row["id"])
                if idx is None:
                    positions[row["id"]] = len(merged)
                    merged.append(row)
                else:
                    merged[idx] = row

        if order_by:
            merged.sort(key=_sort_key(order_by), reverse=descending)
        if limit is not None:
            merged = merged[:limit]
        return merged

    def select_by_id(self, id: str) -> Optional[Row]:
        """Local row if held, otherwise the remote row, otherwise None."""
        with self._lock:
            row = self._arena.get(id)
            if row is not None:
                return copy.deepcopy(row)
            if self._hidden(id):
                return None
        try:
            return self.remote.get_by_id(self.table, id)
        except Exception as e:
            logger.debug(f"Remote lookup of {id} on {self.table} failed: {e}")
            return None

    def local_rows(self) -> List[Row]:
        """Snapshot of the arena in insertion order."""
        with self._lock:
            return [copy.deepcopy(r) for r in self._arena.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._arena)
