import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from supabase import Client

from ..domain.errors import HistoryForbidden, HistoryNotFound
from ..domain.model import HistoryEntry, Score
from ..services.typing import parse_datetime, to_iso

TABLE = "quiz_history"


class HistoryRepository(Protocol):
    def append(self, user_id: str, result: Score, completed_at: datetime) -> str: ...

    def list(self, user_id: str, *, descending: bool = True, limit: Optional[int] = None) -> List[HistoryEntry]: ...

    def get(self, user_id: str, entry_id: str) -> HistoryEntry: ...

    def remove(self, user_id: str, entry_id: str) -> None: ...


def _row_to_entry(row: dict) -> HistoryEntry:
    return HistoryEntry(
        id=str(row["id"]),
        user_id=row["user_id"],
        score=int(row["score"]),
        incorrect=int(row["incorrect"]),
        unanswered=int(row["unanswered"]),
        total=int(row["total"]),
        completed_at=parse_datetime(row["completed_at"]),
    )


class SupabaseHistoryRepository:
    def __init__(self, client: Client) -> None:
        self.client = client

    def append(self, user_id: str, result: Score, completed_at: datetime) -> str:
        # no .select()/.single() after insert; supabase-py v2 returns the row in data
        res = (
            self.client.table(TABLE)
            .insert(
                {
                    "user_id": user_id,
                    "score": result.correct,
                    "incorrect": result.incorrect,
                    "unanswered": result.unanswered,
                    "total": result.total,
                    "completed_at": to_iso(completed_at),
                }
            )
            .execute()
        )
        if not res.data or not isinstance(res.data, list) or "id" not in res.data[0]:
            raise RuntimeError("Insert quiz_history failed: no returned id")
        return str(res.data[0]["id"])

    def list(self, user_id: str, *, descending: bool = True, limit: Optional[int] = None) -> List[HistoryEntry]:
        query = (
            self.client.table(TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("completed_at", desc=descending)
        )
        if limit is not None:
            query = query.limit(limit)
        res = query.execute()
        return [_row_to_entry(row) for row in res.data or []]

    def _owned_row(self, user_id: str, entry_id: str) -> dict:
        res = (
            self.client.table(TABLE)
            .select("*")
            .eq("id", entry_id)
            .limit(1)
            .execute()
        )
        if not res.data:
            raise HistoryNotFound(entry_id)
        row = res.data[0]
        if row["user_id"] != user_id:
            raise HistoryForbidden(entry_id)
        return row

    def get(self, user_id: str, entry_id: str) -> HistoryEntry:
        return _row_to_entry(self._owned_row(user_id, entry_id))

    def remove(self, user_id: str, entry_id: str) -> None:
        self._owned_row(user_id, entry_id)
        # scoped by user_id as well as id
        self.client.table(TABLE).delete().eq("id", entry_id).eq("user_id", user_id).execute()


class InMemoryHistoryRepository:
    def __init__(self) -> None:
        self._entries: Dict[str, HistoryEntry] = {}
        self._lock = threading.Lock()

    def append(self, user_id: str, result: Score, completed_at: datetime) -> str:
        entry_id = str(uuid.uuid4())
        with self._lock:
            self._entries[entry_id] = HistoryEntry(
                id=entry_id,
                user_id=user_id,
                score=result.correct,
                incorrect=result.incorrect,
                unanswered=result.unanswered,
                total=result.total,
                completed_at=completed_at,
            )
        return entry_id

    def list(self, user_id: str, *, descending: bool = True, limit: Optional[int] = None) -> List[HistoryEntry]:
        with self._lock:
            items = [e for e in self._entries.values() if e.user_id == user_id]
        items.sort(key=lambda e: e.completed_at, reverse=descending)
        return items[:limit] if limit is not None else items

    def get(self, user_id: str, entry_id: str) -> HistoryEntry:
        with self._lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            raise HistoryNotFound(entry_id)
        if entry.user_id != user_id:
            raise HistoryForbidden(entry_id)
        return entry

    def remove(self, user_id: str, entry_id: str) -> None:
        self.get(user_id, entry_id)
        with self._lock:
            self._entries.pop(entry_id, None)
