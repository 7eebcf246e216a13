"""Dashboard endpoints: tier statistics for the viewer's role."""

from fastapi import APIRouter, Depends, HTTPException, Query

from codeboard.dependencies import get_dispatcher, get_viewer_id
from codeboard.metrics.dispatcher import AggregationDispatcher
from codeboard.metrics.schemas import DashboardState, Role, Tier

router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])

TIER_BY_ROLE = {
    Role.STUDENT: Tier.PERSONAL,
    Role.TEAM_LEAD: Tier.TEAM,
    Role.ADVISOR: Tier.SECTION,
    Role.HOD: Tier.DEPARTMENT,
    Role.ADMIN: Tier.SYSTEM,
}


@router.get("/stats", response_model=DashboardState)
async def dashboard_stats(
    role: Role = Query(...),
    viewer_id: str = Depends(get_viewer_id),
    dispatcher: AggregationDispatcher = Depends(get_dispatcher),
) -> DashboardState:
    """Statistics for the tier ``role`` sees. 503 with retry context if the store fails."""
    state = await dispatcher.load(role, viewer_id)
    if state is None or state.error is not None:
        detail = state.error.model_dump(mode="json") if state and state.error else "Dashboard load superseded"
        raise HTTPException(status_code=503, detail=detail)
    return state


@router.get("/tiers")
async def dashboard_tiers() -> dict[str, str]:
    """Which tier each role's dashboard shows."""
    return {role.value: tier.value for role, tier in TIER_BY_ROLE.items()}
