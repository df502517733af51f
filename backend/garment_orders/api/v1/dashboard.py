"""Dashboard summary endpoint."""

from fastapi import APIRouter

from garment_orders.api.deps import CurrentCaller, OrderServiceDep
from garment_orders.schemas.orders import DashboardStatsEnvelope

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/stats",
    response_model=DashboardStatsEnvelope,
    summary="Catalogue and order totals",
)
async def get_dashboard_stats(
    caller: CurrentCaller,
    service: OrderServiceDep,
) -> DashboardStatsEnvelope:
    counts = await service.get_dashboard_counts()
    return DashboardStatsEnvelope(stats=counts)
