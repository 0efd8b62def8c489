from fastapi import APIRouter, Depends

from tradespark.backend.client import BackendClient
from tradespark.core.dependencies import get_app_user_id, get_user_backend
from tradespark.stats.schemas import DashboardResponse
from tradespark.stats.stats import get_dashboard_stats

router = APIRouter(prefix="/api", tags=["Statistics"])


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    backend: BackendClient = Depends(get_user_backend),
    user_id: str = Depends(get_app_user_id),
):
    data = await get_dashboard_stats(backend, user_id)
    return {
        "success": True,
        "data": data
    }
