"""
Health endpoints.

GET /health       - liveness
GET /health/imap  - mailbox lane status, recent errors and session uptime
"""

from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health():
    """Liveness check."""
    return {"status": "healthy"}


@router.get("/imap")
def imap_health(request: Request):
    """Mailbox lane health snapshot."""
    pipeline = request.app.state.pipeline
    status = pipeline.health.snapshot()
    uptime = pipeline.manager.uptime
    return {
        "status": "connected" if status.connected else "disconnected",
        **status.to_dict(),
        "uptimeSeconds": round(uptime, 1) if uptime is not None else None,
    }
