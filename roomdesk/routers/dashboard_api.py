import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from ..services.availability import snapshot
from ..services.refresh import RefreshOrchestrator

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])

# ==== Schemas ====

class PropertyOut(BaseModel):
    id: int
    name: Optional[str] = None

class RoomStatusOut(BaseModel):
    id: int
    name: Optional[str] = None
    booked: bool

class CategoryOut(BaseModel):
    name: Optional[str] = None
    rooms: List[RoomStatusOut]

class DashboardOut(BaseModel):
    properties: List[PropertyOut]
    selected_property_index: int
    property: Optional[dict] = None
    date: datetime.date
    total: int
    available: int
    booked: int
    categories: List[CategoryOut]
    online: bool
    auto_refresh: bool
    realtime: bool
    loading: bool
    error: Optional[str] = None
    blocking_error: bool
    notice: Optional[str] = None
    last_refresh: Optional[str] = None

class ToggleOut(BaseModel):
    room_id: int
    outcome: str
    message: Optional[str] = None
    state: DashboardOut

class SelectPropertyIn(BaseModel):
    index: int

class SelectDateIn(BaseModel):
    date: datetime.date

class AutoRefreshIn(BaseModel):
    enabled: bool

class VisibilityIn(BaseModel):
    visible: bool

# ==== Helpers ====

def get_session(request: Request) -> RefreshOrchestrator:
    session = getattr(request.app.state, "dashboard", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Dashboard session is not running")
    return session

# ==== State & selection ====

@router.get("", response_model=DashboardOut)
async def dashboard_state(session: RefreshOrchestrator = Depends(get_session)):
    return snapshot(session.state)

@router.post("/property", response_model=DashboardOut)
async def select_property(payload: SelectPropertyIn, session: RefreshOrchestrator = Depends(get_session)):
    try:
        await session.select_property(payload.index)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return snapshot(session.state)

@router.post("/date", response_model=DashboardOut)
async def select_date(payload: SelectDateIn, session: RefreshOrchestrator = Depends(get_session)):
    await session.select_date(payload.date)
    return snapshot(session.state)

# ==== Commands ====

@router.post("/rooms/{room_id}/toggle", response_model=ToggleOut)
async def toggle_room(room_id: int, session: RefreshOrchestrator = Depends(get_session)):
    try:
        result = await session.toggle_room(room_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Room not found")
    return {
        "room_id": room_id,
        "outcome": result.outcome.value,
        "message": result.message,
        "state": snapshot(session.state),
    }

@router.post("/refresh", response_model=DashboardOut)
async def manual_refresh(session: RefreshOrchestrator = Depends(get_session)):
    await session.manual_refresh()
    return snapshot(session.state)

@router.post("/auto-refresh", response_model=DashboardOut)
async def set_auto_refresh(payload: AutoRefreshIn, session: RefreshOrchestrator = Depends(get_session)):
    session.set_auto_refresh(payload.enabled)
    return snapshot(session.state)

@router.post("/notice/dismiss", response_model=DashboardOut)
async def dismiss_notice(session: RefreshOrchestrator = Depends(get_session)):
    session.dismiss_notice()
    return snapshot(session.state)

# ==== Host lifecycle signals ====

@router.post("/signals/online", response_model=DashboardOut)
async def signal_online(session: RefreshOrchestrator = Depends(get_session)):
    await session.set_online(True)
    return snapshot(session.state)

@router.post("/signals/offline", response_model=DashboardOut)
async def signal_offline(session: RefreshOrchestrator = Depends(get_session)):
    await session.set_online(False)
    return snapshot(session.state)

@router.post("/signals/visibility", response_model=DashboardOut)
async def signal_visibility(payload: VisibilityIn, session: RefreshOrchestrator = Depends(get_session)):
    session.on_visibility(payload.visible)
    return snapshot(session.state)

@router.post("/signals/focus", response_model=DashboardOut)
async def signal_focus(session: RefreshOrchestrator = Depends(get_session)):
    session.on_focus()
    return snapshot(session.state)
