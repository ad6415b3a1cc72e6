"""
Discovery routes: live look-ups along the money trail of an ALN.

Every route requires a bearer token. Nothing is written to the database.
"""

from datetime import date
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from backend.app.api.auth import get_current_user_id
from backend.app.api.models import (
    AwardTrackResponse, DiscoverySearchRequest, DiscoverySearchResponse, OpportunitiesResponse,
    StageResponse, SupplementaryTrackResponse, TrailRequest, TrailResponse
)
from backend.app.services.discovery_service import DiscoveryService, StageOutcome
from fetchers.classifier import prefixes_for_verticals
from fetchers.exceptions import ConfigurationError, UpstreamError

logger = structlog.get_logger()

router = APIRouter(dependencies=[Depends(get_current_user_id)])

_discovery_service: Optional[DiscoveryService] = None


def get_discovery_service() -> DiscoveryService:
    """Shared service instance; its HTTP sessions are reused across requests."""
    global _discovery_service
    if _discovery_service is None:
        _discovery_service = DiscoveryService()
    return _discovery_service


def _dump(items: List[Any]) -> List[Dict[str, Any]]:
    return [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in items]


def _require_aln(aln: Optional[str]) -> str:
    if not aln or not aln.strip():
        raise HTTPException(status_code=400, detail="ALN is required")
    return aln.strip()


def _upstream_failure(e: UpstreamError) -> HTTPException:
    logger.warning("discovery_upstream_failed", provider=e.provider, error=str(e))
    return HTTPException(status_code=502, detail=str(e))


def _stage_response(outcome: StageOutcome) -> StageResponse:
    return StageResponse(
        ok=outcome.ok,
        results=_dump(outcome.results),
        total_count=outcome.total_count,
        error=outcome.error,
    )


@router.post("/search", response_model=DiscoverySearchResponse)
def search_listings(
    body: DiscoverySearchRequest,
    service: DiscoveryService = Depends(get_discovery_service)
):
    """Assistance listings published in a window, narrowed by ALN prefix or vertical."""
    prefixes = body.aln_prefixes or prefixes_for_verticals(body.verticals or [])

    try:
        found = service.discover_listings(
            start_date=body.start_date,
            end_date=body.end_date,
            aln_prefixes=prefixes,
        )
    except ConfigurationError as e:
        logger.error("discovery_misconfigured", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))
    except UpstreamError as e:
        raise _upstream_failure(e)

    return DiscoverySearchResponse(
        results=found.results,
        total_before_filter=found.total_before_filter,
        aln_prefixes=prefixes,
    )


@router.post("/trail", response_model=TrailResponse)
async def money_trail(
    body: TrailRequest,
    service: DiscoveryService = Depends(get_discovery_service)
):
    """Opportunities, prime awards and sub-awards for one ALN, fetched concurrently."""
    aln = _require_aln(body.aln)
    trail = await service.track_money_trail(aln, body.start_date, body.end_date)

    return TrailResponse(
        aln=aln,
        opportunities=_stage_response(trail["opportunities"]),
        prime_awards=_stage_response(trail["prime_awards"]),
        subawards=_stage_response(trail["subawards"]),
    )


@router.get("/opportunities", response_model=OpportunitiesResponse)
def track_opportunities(
    aln: Optional[str] = Query(None, description="Assistance Listing Number"),
    service: DiscoveryService = Depends(get_discovery_service)
):
    aln = _require_aln(aln)
    try:
        return OpportunitiesResponse(results=service.track_opportunities(aln))
    except UpstreamError as e:
        raise _upstream_failure(e)


@router.get("/prime-awards", response_model=AwardTrackResponse)
def track_prime_awards(
    aln: Optional[str] = Query(None, description="Assistance Listing Number"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: DiscoveryService = Depends(get_discovery_service)
):
    aln = _require_aln(aln)
    try:
        track = service.track_prime_awards(aln, start_date, end_date)
    except UpstreamError as e:
        raise _upstream_failure(e)
    return AwardTrackResponse(results=_dump(track.results), total_count=track.total_count)


@router.get("/subawards", response_model=AwardTrackResponse)
def track_subawards(
    aln: Optional[str] = Query(None, description="Assistance Listing Number(s), comma-separated"),
    keywords: Optional[str] = Query(None, description="Free-text keyword phrase"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    state: Optional[str] = Query(None, description="Place-of-performance state code, or ALL"),
    agencies: Optional[List[str]] = Query(None, description="Awarding top-tier agency names"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(100, ge=1, le=100, description="Results per page"),
    service: DiscoveryService = Depends(get_discovery_service)
):
    """Sub-awards by ALN, keywords, or both; keyword-only searches need no ALN."""
    aln = aln.strip() if aln else None
    keywords = keywords.strip() if keywords else None
    if not aln and not keywords:
        raise HTTPException(status_code=400, detail="ALN or keywords is required")

    try:
        track = service.track_subawards(
            aln,
            start_date,
            end_date,
            limit=limit,
            keywords=keywords,
            state=state,
            agencies=agencies,
            page=page,
        )
    except UpstreamError as e:
        raise _upstream_failure(e)
    return AwardTrackResponse(
        results=_dump(track.results),
        total_count=track.total_count,
        page=track.page,
        has_next=track.has_next,
    )


@router.get("/nih", response_model=SupplementaryTrackResponse)
def track_nih(
    aln: Optional[str] = Query(None, description="Assistance Listing Number"),
    service: DiscoveryService = Depends(get_discovery_service)
):
    aln = _require_aln(aln)
    try:
        return SupplementaryTrackResponse(results=service.track_nih(aln))
    except UpstreamError as e:
        raise _upstream_failure(e)


@router.get("/nsf", response_model=SupplementaryTrackResponse)
def track_nsf(
    aln: Optional[str] = Query(None, description="Assistance Listing Number"),
    service: DiscoveryService = Depends(get_discovery_service)
):
    aln = _require_aln(aln)
    try:
        return SupplementaryTrackResponse(results=service.track_nsf(aln))
    except UpstreamError as e:
        raise _upstream_failure(e)
