from typing import Literal

from fastapi import APIRouter, HTTPException, status

from ....domain.errors import HistoryForbidden, HistoryNotFound
from ....schemas.quiz_schemas import HistoryEntryOut
from ...deps import HistoryServiceDep, IdentityDep

router = APIRouter(prefix="/history", tags=["history"])

# plain def: the Supabase client blocks, so these run in the threadpool


@router.get("", response_model=list[HistoryEntryOut])
def list_history(svc: HistoryServiceDep, identity: IdentityDep, order: Literal["desc", "asc"] = "desc"):
    return svc.list_entries(identity.user_id, descending=order == "desc")


@router.get("/{entry_id}", response_model=HistoryEntryOut)
def get_history_entry(entry_id: str, svc: HistoryServiceDep, identity: IdentityDep):
    try:
        return svc.get_entry(identity.user_id, entry_id)
    except HistoryNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="History entry not found")
    except HistoryForbidden:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your history entry")


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_history_entry(entry_id: str, svc: HistoryServiceDep, identity: IdentityDep):
    try:
        svc.delete_entry(identity.user_id, entry_id)
    except HistoryNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="History entry not found")
    except HistoryForbidden:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your history entry")
    return None
