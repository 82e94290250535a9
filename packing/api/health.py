# packing/api/health.py
from fastapi import APIRouter, Request

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health")
def health_check(request: Request):
    """Heartbeat plus the number of packing sessions currently open."""
    registry = getattr(request.app.state, "packing_sessions", None)
    return {"status": "ok", "open_sessions": len(registry) if registry is not None else 0}
