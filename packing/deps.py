from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from packing.core.errors import SessionNotFoundError
from packing.db.session import get_app_session
from packing.services.drafts import DraftStore
from packing.services.session import PackingSession, SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    """The app-wide registry of open packing sessions (created on startup)."""
    return request.app.state.packing_sessions


def get_draft_store(db: Session = Depends(get_app_session)) -> DraftStore:
    return DraftStore(db)


def get_packing_session(order_no: str, registry: SessionRegistry = Depends(get_registry)) -> PackingSession:
    """Resolve the open session for the order in the path, 404 if none is open."""
    try:
        return registry.get(order_no)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
