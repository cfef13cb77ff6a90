"""Monitor API endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from ..schemas.monitor import MonitorRecord
from ..services.store import SqlMonitorStore, StoreError

router = APIRouter(prefix="/api/monitors", tags=["monitors"])


def get_store(request: Request) -> SqlMonitorStore:
    return request.app.state.store


@router.get("", response_model=List[MonitorRecord])
async def list_monitors(store: SqlMonitorStore = Depends(get_store)):
    """List monitor definitions as stored, with their last result."""
    try:
        return await store.list_monitors()
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
