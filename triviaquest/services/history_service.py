from typing import Optional

from .typing import to_iso
from ..domain.model import HistoryEntry
from ..repositories.history_repository import HistoryRepository


def entry_to_dict(e: HistoryEntry) -> dict:
    return {
        "id": e.id,
        "score": e.score,
        "incorrect": e.incorrect,
        "unanswered": e.unanswered,
        "total": e.total,
        "percentage": e.percentage,
        "completedAt": to_iso(e.completed_at),
    }


class HistoryService:
    def __init__(self, repo: HistoryRepository, list_limit: Optional[int] = None) -> None:
        self.repo = repo
        self.list_limit = list_limit

    def list_entries(self, user_id: str, descending: bool = True) -> list[dict]:
        items = self.repo.list(user_id, descending=descending, limit=self.list_limit)
        return [entry_to_dict(e) for e in items]

    def get_entry(self, user_id: str, entry_id: str) -> dict:
        return entry_to_dict(self.repo.get(user_id, entry_id))

    def delete_entry(self, user_id: str, entry_id: str) -> None:
        self.repo.remove(user_id, entry_id)
