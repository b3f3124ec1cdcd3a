"""Target CRUD API endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import Target
from ..schemas.result import CheckResultResponse
from ..schemas.target import (
    TargetCreate,
    TargetUpdate,
    TargetResponse,
    TargetWithStatus,
    TargetTestResponse,
)
from ..services.checker import checker_service
from ..services.registry import fetch_last_results, MAX_RESULTS_WINDOW
from ..utils.auth import require_api_key
from ..utils.db_utils import retry_on_lock
from ..utils.endpoints import validate_endpoint

router = APIRouter(prefix="/api/targets", tags=["targets"], dependencies=[Depends(require_api_key)])
results_router = APIRouter(prefix="/api/results", tags=["results"], dependencies=[Depends(require_api_key)])


async def _get_target_or_404(db: AsyncSession, target_id: int) -> Target:
    result = await db.execute(select(Target).where(Target.id == target_id))
    target = result.scalar_one_or_none()
    if not target:
        raise HTTPException(status_code=404, detail="Target not found")
    return target


async def _with_latest(db: AsyncSession, target: Target) -> TargetWithStatus:
    latest = await fetch_last_results(db, target.id, 1)
    data = TargetResponse.model_validate(target).model_dump()
    return TargetWithStatus(
        **data,
        latest_result=CheckResultResponse.model_validate(latest[0]) if latest else None,
    )


@router.get("", response_model=List[TargetWithStatus])
async def list_targets(db: AsyncSession = Depends(get_db)):
    """List all targets, newest first, with their latest result."""
    result = await db.execute(select(Target).order_by(Target.id.desc()))
    targets = result.scalars().all()
    return [await _with_latest(db, target) for target in targets]


@router.post("", response_model=TargetResponse, status_code=201)
async def create_target(target: TargetCreate, db: AsyncSession = Depends(get_db)):
    """Create a new target."""
    db_target = Target(
        name=target.name,
        type=target.type,
        endpoint=target.endpoint,
        frequency_sec=target.frequency_sec,
        timeout_ms=target.timeout_ms,
        expected_code=target.expected_code,
        alert_email=target.alert_email or None,
        enabled=target.enabled,
    )
    db.add(db_target)

    await retry_on_lock(db.commit)
    await db.refresh(db_target)

    return TargetResponse.model_validate(db_target)


@router.get("/{target_id}", response_model=TargetWithStatus)
async def get_target(target_id: int, db: AsyncSession = Depends(get_db)):
    """Get a specific target by ID."""
    target = await _get_target_or_404(db, target_id)
    return await _with_latest(db, target)


@router.put("/{target_id}", response_model=TargetResponse)
async def update_target(
    target_id: int,
    update: TargetUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a target. Changes apply from the scheduler's next tick."""
    target = await _get_target_or_404(db, target_id)

    changes = update.model_dump(exclude_unset=True)
    if changes.get("enabled") is None:
        changes.pop("enabled", None)
    for field in ("name", "type", "endpoint", "frequency_sec", "timeout_ms"):
        if field in changes and changes[field] is None:
            changes.pop(field)

    # The endpoint must still make sense for the (possibly new) check type
    new_type = changes.get("type", target.type)
    new_endpoint = changes.get("endpoint", target.endpoint)
    try:
        changes["endpoint"] = validate_endpoint(new_type, new_endpoint)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if "alert_email" in changes:
        changes["alert_email"] = changes["alert_email"] or None

    for field, value in changes.items():
        setattr(target, field, value)

    await retry_on_lock(db.commit)
    await db.refresh(target)

    return TargetResponse.model_validate(target)


@router.delete("/{target_id}", status_code=204)
async def delete_target(target_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a target together with its results."""
    target = await _get_target_or_404(db, target_id)
    await db.delete(target)
    await retry_on_lock(db.commit)


@router.post("/{target_id}/test", response_model=TargetTestResponse)
async def test_target(target_id: int, db: AsyncSession = Depends(get_db)):
    """Run the target's probe once without storing the result."""
    target = await _get_target_or_404(db, target_id)
    probe = await checker_service.run_probe(target)
    return TargetTestResponse(
        ok=probe.ok,
        status=probe.status,
        latency_ms=probe.latency_ms,
        code=probe.code,
        message=probe.message,
    )


@results_router.get("/{target_id}", response_model=List[CheckResultResponse])
async def get_target_results(
    target_id: int,
    limit: Optional[int] = Query(default=MAX_RESULTS_WINDOW, ge=1, le=MAX_RESULTS_WINDOW),
    db: AsyncSession = Depends(get_db),
):
    """Latest results for a target, newest first."""
    await _get_target_or_404(db, target_id)
    results = await fetch_last_results(db, target_id, limit)
    return [CheckResultResponse.model_validate(r) for r in results]
