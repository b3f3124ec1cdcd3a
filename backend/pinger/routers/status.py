"""Status overview API for dashboard."""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import Target
from ..schemas.status import StatusOverview, TargetSummary
from ..services.registry import fetch_last_results
from ..services.websocket_manager import websocket_manager
from ..utils.auth import require_api_key

router = APIRouter(prefix="/api/status", tags=["status"], dependencies=[Depends(require_api_key)])


@router.get("/overview", response_model=StatusOverview)
async def get_status_overview(db: AsyncSession = Depends(get_db)):
    """Get dashboard overview data."""
    result = await db.execute(select(Target).order_by(Target.id.desc()))
    targets = result.scalars().all()

    counts = {"UP": 0, "DOWN": 0, "UNKNOWN": 0}
    summaries = []

    for target in targets:
        latest = await fetch_last_results(db, target.id, 1)
        latest = latest[0] if latest else None
        current_status = latest.status if latest else "UNKNOWN"

        if current_status in counts:
            counts[current_status] += 1
        else:
            counts["UNKNOWN"] += 1

        summaries.append(TargetSummary(
            id=target.id,
            name=target.name,
            type=target.type,
            enabled=target.enabled,
            status=current_status,
            latency_ms=latest.latency_ms if latest else None,
            last_check=latest.created_at.isoformat() if latest else None,
        ))

    return StatusOverview(
        total_targets=len(targets),
        targets_up=counts["UP"],
        targets_down=counts["DOWN"],
        targets_unknown=counts["UNKNOWN"],
        live_connections=websocket_manager.connection_count,
        targets=summaries,
    )
