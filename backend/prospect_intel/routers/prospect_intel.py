"""
Prospect Intel Router - Scan ingestion and prospect intelligence API

Endpoints to start a scan over a raw prospect source, poll its progress, and
read the resulting prospect entities with their AI intelligence.
"""

import logging
from typing import Optional, List, Dict, Any
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from prospect_intel.deps import get_current_user
from prospect_intel.models.prospect_intel import SourceType
from prospect_intel.services.prospect_intel_service import (
    ProspectIntelService,
    get_prospect_intel_service,
)
from prospect_intel.utils.errors import handle_exception, raise_not_found

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prospect-intel", tags=["prospect-intel"])


# =============================================================================
# Request/Response Models
# =============================================================================

class ScanStartRequest(BaseModel):
    """Request to start a scan over one raw source."""
    source_type: SourceType = Field(..., description="Where the raw data came from")
    raw_payload: Dict[str, Any] = Field(default_factory=dict, description="Source data, shape depends on source_type")

    class Config:
        json_schema_extra = {
            "example": {
                "source_type": "paste_text",
                "raw_payload": {"text": "Pedro Reyes, 09171234567\nAna Cruz, ana@example.com"}
            }
        }


class ScanStartResponse(BaseModel):
    """Response when starting a scan."""
    scan_id: str
    status: str
    message: str


class ScanStatusResponse(BaseModel):
    """Latest persisted status of a scan."""
    scan_id: str
    status: str
    state: str
    context: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class ProspectIntelResponse(BaseModel):
    """One prospect with its latest intel and history."""
    entity: Dict[str, Any]
    intel: Optional[Dict[str, Any]] = None
    history: List[Dict[str, Any]] = []


class ProspectListResponse(BaseModel):
    prospects: List[Dict[str, Any]]
    total_count: int


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/scans", response_model=ScanStartResponse, status_code=202)
async def start_scan(
    request: ScanStartRequest,
    current_user: dict = Depends(get_current_user),
    service: ProspectIntelService = Depends(get_prospect_intel_service),
):
    """
    Start a scan over a raw prospect source.

    The scan runs in the background. Poll GET /scans/{scan_id} for progress.
    """
    user_id = current_user["sub"]
    try:
        scan_id = await service.start_scan(user_id, request.source_type.value, request.raw_payload)
    except HTTPException:
        raise
    except Exception as e:
        raise handle_exception(e, "scan_start", user_id=user_id)

    return ScanStartResponse(
        scan_id=scan_id,
        status="pending",
        message="Scan started. Poll /prospect-intel/scans/{scan_id} for progress."
    )


@router.get("/scans/{scan_id}", response_model=ScanStatusResponse)
async def get_scan_status(
    scan_id: str,
    current_user: dict = Depends(get_current_user),
    service: ProspectIntelService = Depends(get_prospect_intel_service),
):
    """Get the latest status and state snapshot of a scan."""
    user_id = current_user["sub"]
    try:
        status = await service.get_scan_status(scan_id, user_id=user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise handle_exception(e, "scan_status", user_id=user_id, resource_id=scan_id)

    return ScanStatusResponse(**status)


@router.get("/prospects", response_model=ProspectListResponse)
async def list_prospects(
    q: Optional[str] = Query(None, description="Case-insensitive name filter"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(get_current_user),
    service: ProspectIntelService = Depends(get_prospect_intel_service),
):
    """List the user's prospects with their latest intel, optionally filtered by name."""
    user_id = current_user["sub"]
    try:
        if q:
            prospects = await service.search_prospects(user_id, q, limit=limit)
        else:
            prospects = await service.list_prospects(user_id, limit=limit)
    except HTTPException:
        raise
    except Exception as e:
        raise handle_exception(e, "list_prospects", user_id=user_id)

    return ProspectListResponse(prospects=prospects, total_count=len(prospects))


@router.get("/prospects/{prospect_id}", response_model=ProspectIntelResponse)
async def get_prospect_intel(
    prospect_id: str,
    current_user: dict = Depends(get_current_user),
    service: ProspectIntelService = Depends(get_prospect_intel_service),
):
    """Get one prospect with its intelligence and discovery history."""
    user_id = current_user["sub"]
    try:
        result = await service.get_prospect_intel(user_id, prospect_id)
    except HTTPException:
        raise
    except Exception as e:
        raise handle_exception(e, "get_prospect_intel", user_id=user_id, resource_id=prospect_id)

    if not result["entity"]:
        raise_not_found("Prospect", prospect_id)

    return ProspectIntelResponse(**result)
