"""Admin endpoints for pool and admission introspection."""

from typing import Dict

from fastapi import APIRouter, Request

admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/status")
async def get_status(request: Request) -> Dict[str, object]:
    """Get key pool health plus admission bookkeeping."""
    state = request.app.state
    now = state.clock()
    status = state.key_manager.get_status(now)
    admission = state.admission
    status["trackedIdentities"] = admission.tracked_identities()
    status["quotaLimit"] = admission.quota_limit
    status["quotaWindowSeconds"] = admission.quota_window
    return status


@admin_router.post("/reset-quotas")
async def reset_quotas(request: Request) -> Dict[str, object]:
    """Roll the quota window over immediately."""
    reset = await request.app.state.reaper.sweep_quotas()
    return {"message": "Quotas reset successfully", "identities": reset}
