"""
Design API endpoints

CRUD over the merged local/cloud design collection.
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from typing import Any, Dict

from price_tag.errors import NotAuthenticated
from price_tag.models.design import DesignRecord
from price_tag.storage.sync import Synchronizer
from web.backend.deps import get_synchronizer
from web.backend.models.design import DesignListResponse, DesignResponse, SyncResponse

router = APIRouter()


async def find_design(sync: Synchronizer, design_id: str) -> DesignRecord:
    """Local copy first, then the caller's cloud copy"""
    record = await sync.local.get(design_id)
    if record is None and sync.remote is not None:
        try:
            record = await sync.remote.get(design_id)
        except NotAuthenticated:
            record = None
    if record is None:
        raise HTTPException(status_code=404, detail="Design not found")
    return record


@router.get("/", response_model=DesignListResponse)
async def list_designs(sync: Synchronizer = Depends(get_synchronizer)):
    """
    List all designs.

    Local and cloud designs merged by id (product name when there is no id);
    the cloud copy wins.
    """
    merged = await sync.load_merged()
    return DesignListResponse(
        success=True,
        designs=[record.to_payload() for record in merged.designs],
        total=len(merged.designs),
        remote_error=merged.remote_error,
    )


@router.post("/sync", response_model=SyncResponse)
async def sync_designs(
    concurrency: int = Query(1, ge=1, le=16),
    sync: Synchronizer = Depends(get_synchronizer),
):
    """Upload every local design to the cloud"""
    tally = await sync.sync_local_to_remote(concurrency=concurrency)
    return SyncResponse(
        success=tally.failed == 0,
        succeeded=tally.succeeded,
        failed=tally.failed,
        errors=tally.errors,
    )


@router.get("/{design_id}", response_model=DesignResponse)
async def get_design(design_id: str, sync: Synchronizer = Depends(get_synchronizer)):
    """
    Get a specific design by ID.

    Args:
        design_id: Design ID
    """
    record = await find_design(sync, design_id)
    return DesignResponse(
        success=True,
        message="Design retrieved successfully",
        design=record.to_payload(),
    )


@router.post("/", response_model=DesignResponse)
async def save_design(
    payload: Dict[str, Any] = Body(...),
    cloud: bool = Query(False, description="Also upload to the cloud"),
    sync: Synchronizer = Depends(get_synchronizer),
):
    """
    Save a design.

    Creates the design when it has no id yet, otherwise replaces it.
    """
    record = DesignRecord.from_payload(payload)
    outcome = await sync.save(record, cloud=cloud)
    return DesignResponse(
        success=True,
        message="Design saved successfully" if outcome.cloud_error is None else "Design saved locally only",
        design=outcome.record.to_payload(),
        cloud_error=outcome.cloud_error,
    )


@router.delete("/{design_id}")
async def delete_design(
    design_id: str,
    cloud: bool = Query(False, description="Also delete the cloud copy"),
    sync: Synchronizer = Depends(get_synchronizer),
):
    """
    Delete a design.

    Args:
        design_id: Design ID
    """
    if not await sync.delete(design_id, cloud=cloud):
        raise HTTPException(status_code=404, detail="Design not found")
    return {
        "success": True,
        "message": "Design deleted successfully"
    }
