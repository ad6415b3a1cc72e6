"""
FastAPI routes for the Grant Trail API.
"""

import asyncio
import json
import queue
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Type

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from backend.app.api.auth import get_current_user_id, get_optional_user_id, require_admin
from backend.app.api.discovery import router as discovery_router
from backend.app.api.models import (
    AssignmentRequest, AssignmentResponse, ClearDataResponse, FetchRequestBody,
    FetchStartedResponse, FundingMetricsResponse, FundingRecordListResponse,
    FundingRecordResponse, GrantTypeResponse, HealthResponse, OrganizationDetailResponse,
    OrganizationListResponse, OrganizationResponse, ProgressResponse, SavedSearchCreate,
    SavedSearchResponse, SavedSubawardSearchCreate, SavedSubawardSearchResponse,
    SubAwardResponse, VerticalResponse
)
from backend.app.config import API_VERSION, PROGRESS_STREAM_TIMEOUT_SECONDS
from backend.app.db.session import get_db
from backend.app.models import (
    FundingRecord, GrantType, Organization, RepAssignment, SavedSearch,
    SavedSubawardSearch, SubAward, Vertical
)
from backend.app.services.admin_service import AdminRequired, AdminService, BulkDeleteError
from backend.app.services.funding_query import FundingFilters, funding_metrics, funding_records_query
from backend.app.services.ingestion import JOBS, FetchRequest, IngestionJob
from backend.app.services.progress import TERMINAL_STATUSES, get_snapshot, progress_broker

logger = structlog.get_logger()

# Create router
router = APIRouter()
router.include_router(discovery_router, prefix="/discovery", tags=["Discovery"])

# Seconds between keep-alive comments on an idle event stream
STREAM_KEEPALIVE_SECONDS = 15.0


def get_jobs() -> Dict[str, Type[IngestionJob]]:
    """Registry of fetch jobs by route name."""
    return JOBS


def convert_record_to_response(record: FundingRecord, subaward_count: int = 0) -> FundingRecordResponse:
    """Convert FundingRecord model to API response."""
    return FundingRecordResponse(
        id=record.id,
        organization_id=record.organization_id,
        organization_name=record.organization.name,
        state=record.organization.state,
        vertical=record.vertical.name,
        grant_type=record.grant_type.name if record.grant_type else None,
        amount=record.amount,
        status=record.status,
        fiscal_year=record.fiscal_year,
        date_range_start=record.date_range_start,
        date_range_end=record.date_range_end,
        action_date=record.action_date,
        cfda_code=record.cfda_code,
        source=record.source,
        notes=record.notes,
        external_award_id=record.external_award_id,
        external_internal_id=record.external_internal_id,
        subaward_count=subaward_count,
    )


def subaward_counts(db: Session, record_ids: List[uuid.UUID]) -> Dict[uuid.UUID, int]:
    if not record_ids:
        return {}
    rows = (
        db.query(SubAward.funding_record_id, func.count(SubAward.id))
        .filter(SubAward.funding_record_id.in_(record_ids))
        .group_by(SubAward.funding_record_id)
        .all()
    )
    return {record_id: count for record_id, count in rows}


def load_organization(db: Session, organization_id: uuid.UUID) -> Organization:
    organization = db.query(Organization).filter(Organization.id == organization_id).first()
    if not organization:
        raise HTTPException(status_code=404, detail="Organization not found")
    return organization


@router.get("/health", response_model=HealthResponse)
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint."""
    try:
        total_organizations = db.query(Organization).count()
        total_funding_records = db.query(FundingRecord).count()

        return HealthResponse(
            status="healthy",
            version=API_VERSION,
            database_connected=True,
            total_organizations=total_organizations,
            total_funding_records=total_funding_records
        )
    except SQLAlchemyError as e:
        logger.error("health_check_failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            version=API_VERSION,
            database_connected=False,
            total_organizations=0,
            total_funding_records=0
        )


@router.get("/verticals", response_model=List[VerticalResponse])
async def list_verticals(db: Session = Depends(get_db)):
    return db.query(Vertical).order_by(Vertical.name).all()


@router.get("/grant-types", response_model=List[GrantTypeResponse])
async def list_grant_types(db: Session = Depends(get_db)):
    return db.query(GrantType).order_by(GrantType.name).all()


@router.get("/organizations", response_model=OrganizationListResponse)
async def list_organizations(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    state: Optional[str] = Query(None, description="Filter by two-letter state code"),
    name: Optional[str] = Query(None, description="Filter by name fragment"),
    db: Session = Depends(get_db)
):
    """List organizations with pagination and filtering."""
    query = db.query(Organization).options(joinedload(Organization.assignment))

    if state:
        query = query.filter(Organization.state == state.upper())

    if name:
        query = query.filter(Organization.name.ilike(f"%{name}%"))

    total = query.count()
    organizations = (
        query.order_by(Organization.name)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    return OrganizationListResponse(
        organizations=[OrganizationResponse.model_validate(org) for org in organizations],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/organizations/{organization_id}", response_model=OrganizationDetailResponse)
async def get_organization(organization_id: uuid.UUID, db: Session = Depends(get_db)):
    """Organization with all of its funding records."""
    organization = load_organization(db, organization_id)

    records = (
        db.query(FundingRecord)
        .options(
            joinedload(FundingRecord.organization),
            joinedload(FundingRecord.vertical),
            joinedload(FundingRecord.grant_type),
        )
        .filter(FundingRecord.organization_id == organization_id)
        .order_by(FundingRecord.fiscal_year.desc(), FundingRecord.amount.desc())
        .all()
    )
    counts = subaward_counts(db, [r.id for r in records])

    return OrganizationDetailResponse(
        organization=OrganizationResponse.model_validate(organization),
        funding_records=[convert_record_to_response(r, counts.get(r.id, 0)) for r in records],
        total_funding=sum((r.amount for r in records), Decimal("0")),
    )


@router.put("/organizations/{organization_id}/assignment", response_model=AssignmentResponse)
async def assign_rep(
    organization_id: uuid.UUID,
    body: AssignmentRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Assign (or reassign) a rep to an organization."""
    load_organization(db, organization_id)

    assignment = (
        db.query(RepAssignment)
        .filter(RepAssignment.organization_id == organization_id)
        .first()
    )
    if assignment is None:
        assignment = RepAssignment(organization_id=organization_id)
        db.add(assignment)

    assignment.rep_id = body.rep_id or user_id
    assignment.assigned_by = user_id
    assignment.notes = body.notes
    db.commit()
    db.refresh(assignment)

    logger.info("rep_assigned", organization_id=str(organization_id), rep_id=assignment.rep_id)
    return assignment


@router.delete("/organizations/{organization_id}/assignment", status_code=204)
async def unassign_rep(
    organization_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    deleted = (
        db.query(RepAssignment)
        .filter(RepAssignment.organization_id == organization_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        raise HTTPException(status_code=404, detail="Assignment not found")
    logger.info("rep_unassigned", organization_id=str(organization_id), by=user_id)


def funding_filters(
    state: Optional[str] = Query(None, description="Two-letter state code"),
    vertical: Optional[List[str]] = Query(None, description="Vertical names"),
    source: Optional[str] = Query(None, description="Data source label"),
    organization_id: Optional[uuid.UUID] = Query(None, description="Organization id"),
    start_date: Optional[date] = Query(None, description="Award date window start"),
    end_date: Optional[date] = Query(None, description="Award date window end"),
    strict: bool = Query(False, description="Only records with an action date"),
) -> FundingFilters:
    return FundingFilters(
        state=state,
        verticals=vertical,
        source=source,
        organization_id=organization_id,
        start_date=start_date,
        end_date=end_date,
        strict_action_date=strict,
    )


@router.get("/funding-records", response_model=FundingRecordListResponse)
async def list_funding_records(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=500, description="Items per page"),
    filters: FundingFilters = Depends(funding_filters),
    db: Session = Depends(get_db)
):
    """Funding records matching the dashboard filters, largest first."""
    query = funding_records_query(db, filters)

    total = query.count()
    total_amount = funding_metrics(db, filters)["total_funding"]
    records = (
        query.options(
            joinedload(FundingRecord.organization),
            joinedload(FundingRecord.vertical),
            joinedload(FundingRecord.grant_type),
        )
        .order_by(FundingRecord.amount.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    counts = subaward_counts(db, [r.id for r in records])

    return FundingRecordListResponse(
        records=[convert_record_to_response(r, counts.get(r.id, 0)) for r in records],
        total=total,
        total_amount=total_amount,
        page=page,
        page_size=page_size
    )


@router.get("/funding-records/metrics", response_model=FundingMetricsResponse)
async def get_funding_metrics(
    filters: FundingFilters = Depends(funding_filters),
    db: Session = Depends(get_db)
):
    return FundingMetricsResponse(**funding_metrics(db, filters))


@router.get("/funding-records/{record_id}/subawards", response_model=List[SubAwardResponse])
async def list_subawards(record_id: uuid.UUID, db: Session = Depends(get_db)):
    """Sub-awards passed through from one prime award."""
    record = db.query(FundingRecord).filter(FundingRecord.id == record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Funding record not found")

    subawards = (
        db.query(SubAward)
        .options(joinedload(SubAward.recipient_organization))
        .filter(SubAward.funding_record_id == record_id)
        .order_by(SubAward.amount.desc())
        .all()
    )
    return [
        SubAwardResponse(
            id=s.id,
            funding_record_id=s.funding_record_id,
            recipient_organization_id=s.recipient_organization_id,
            recipient_name=s.recipient_organization.name,
            recipient_state=s.recipient_organization.state,
            recipient_city=s.recipient_organization.city,
            amount=s.amount,
            award_date=s.award_date,
            description=s.description,
        )
        for s in subawards
    ]


@router.post("/fetch/{source}", response_model=FetchStartedResponse)
async def start_fetch(
    source: str,
    body: FetchRequestBody,
    background_tasks: BackgroundTasks,
    user_id: Optional[str] = Depends(get_optional_user_id),
    jobs: Dict[str, Type[IngestionJob]] = Depends(get_jobs)
):
    """
    Start an ingestion job in the background.

    The progress row exists before this returns, so the session id can be
    polled or streamed immediately.
    """
    job_class = jobs.get(source)
    if job_class is None:
        raise HTTPException(status_code=404, detail=f"Unknown fetch source: {source}")

    if not body.state or not body.state.strip():
        raise HTTPException(status_code=400, detail="State is required")

    request = FetchRequest(
        state=body.state.strip().upper(),
        start_date=body.start_date,
        end_date=body.end_date,
        session_id=body.session_id or str(uuid.uuid4()),
        user_id=user_id,
    )

    job = job_class()
    job.begin(request)
    background_tasks.add_task(job.run, request)

    logger.info(
        "fetch_scheduled",
        source=job.source,
        state=request.state,
        session_id=request.session_id,
        user_id=user_id,
    )
    return FetchStartedResponse(
        success=True,
        session_id=request.session_id,
        message=job.started_message,
    )


@router.get("/progress/{session_id}", response_model=ProgressResponse)
async def get_progress(session_id: str, db: Session = Depends(get_db)):
    snapshot = get_snapshot(db, session_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Progress session not found")
    return snapshot


def _sse(snapshot: dict) -> str:
    return f"data: {json.dumps(snapshot, default=str)}\n\n"


@router.get("/progress/{session_id}/events")
async def stream_progress(session_id: str, db: Session = Depends(get_db)):
    """
    Server-sent events for one fetch session.

    Sends the current snapshot, then every update until the job reaches a
    terminal status or the stream ceiling is hit.
    """
    # Subscribe before reading the snapshot so no update falls in between
    subscription = progress_broker.subscribe(session_id)
    snapshot = get_snapshot(db, session_id)
    if snapshot is None:
        progress_broker.unsubscribe(session_id, subscription)
        raise HTTPException(status_code=404, detail="Progress session not found")

    async def event_stream():
        loop = asyncio.get_running_loop()
        deadline = loop.time() + PROGRESS_STREAM_TIMEOUT_SECONDS
        try:
            yield _sse(snapshot)
            if snapshot["status"] in TERMINAL_STATUSES:
                return

            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    logger.info("progress_stream_timeout", session_id=session_id)
                    return
                try:
                    update = await asyncio.to_thread(
                        subscription.get, True, min(remaining, STREAM_KEEPALIVE_SECONDS)
                    )
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue

                yield _sse(update)
                if update["status"] in TERMINAL_STATUSES:
                    return
        finally:
            progress_broker.unsubscribe(session_id, subscription)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/saved-searches", response_model=List[SavedSearchResponse])
async def list_saved_searches(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    return (
        db.query(SavedSearch)
        .filter(SavedSearch.user_id == user_id)
        .order_by(SavedSearch.created_at.desc())
        .all()
    )


@router.post("/saved-searches", response_model=SavedSearchResponse, status_code=201)
async def create_saved_search(
    body: SavedSearchCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    saved = SavedSearch(user_id=user_id, **body.model_dump())
    db.add(saved)
    db.commit()
    db.refresh(saved)
    return saved


@router.delete("/saved-searches/{search_id}", status_code=204)
async def delete_saved_search(
    search_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    deleted = (
        db.query(SavedSearch)
        .filter(SavedSearch.id == search_id, SavedSearch.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        raise HTTPException(status_code=404, detail="Saved search not found")


@router.get("/saved-subaward-searches", response_model=List[SavedSubawardSearchResponse])
async def list_saved_subaward_searches(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    return (
        db.query(SavedSubawardSearch)
        .filter(SavedSubawardSearch.user_id == user_id)
        .order_by(SavedSubawardSearch.created_at.desc())
        .all()
    )


@router.post("/saved-subaward-searches", response_model=SavedSubawardSearchResponse, status_code=201)
async def create_saved_subaward_search(
    body: SavedSubawardSearchCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    saved = SavedSubawardSearch(user_id=user_id, **body.model_dump())
    db.add(saved)
    db.commit()
    db.refresh(saved)
    return saved


@router.delete("/saved-subaward-searches/{search_id}", status_code=204)
async def delete_saved_subaward_search(
    search_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    deleted = (
        db.query(SavedSubawardSearch)
        .filter(SavedSubawardSearch.id == search_id, SavedSubawardSearch.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        raise HTTPException(status_code=404, detail="Saved search not found")


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("/admin/clear-data", response_model=ClearDataResponse)
async def clear_all_data(
    request: Request,
    user_id: str = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Delete every organization, funding record, sub-award, progress row and saved search."""
    try:
        deleted = AdminService(db).clear_all_data(user_id, client_ip(request))
    except AdminRequired:
        raise HTTPException(status_code=403, detail="Admin privileges required for this operation")
    except BulkDeleteError as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete {e.table}: {e.detail}")

    return ClearDataResponse(success=True, deleted=deleted)
