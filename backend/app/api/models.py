"""
Pydantic models for API requests and responses.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from fetchers.models import AssistanceListing, GrantOpportunity


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    version: str
    database_connected: bool
    total_organizations: int
    total_funding_records: int


class VerticalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None


class GrantTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    federal_agency: Optional[str] = None
    cfda_code: Optional[str] = None
    grant_type: Optional[str] = None


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_id: uuid.UUID
    rep_id: str
    assigned_by: Optional[str] = None
    notes: Optional[str] = None
    assigned_at: datetime


class AssignmentRequest(BaseModel):
    """Assign a rep to an organization; defaults to the caller."""
    rep_id: Optional[str] = Field(None, description="Rep user id (defaults to the caller)")
    notes: Optional[str] = None


class OrganizationResponse(BaseModel):
    """Organization information response model."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    state: str
    city: Optional[str] = None
    address: Optional[str] = None
    zip_code: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    annual_revenue: Optional[Decimal] = None
    employee_count: Optional[int] = None
    last_updated: Optional[date] = None
    assignment: Optional[AssignmentResponse] = None


class OrganizationListResponse(BaseModel):
    """Response model for listing organizations."""
    organizations: List[OrganizationResponse]
    total: int
    page: int
    page_size: int


class FundingRecordResponse(BaseModel):
    """Funding record with its organization and vertical names resolved."""
    id: uuid.UUID
    organization_id: uuid.UUID
    organization_name: str
    state: str
    vertical: str
    grant_type: Optional[str] = None
    amount: Decimal
    status: str
    fiscal_year: int
    date_range_start: Optional[date] = None
    date_range_end: Optional[date] = None
    action_date: Optional[date] = None
    cfda_code: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    external_award_id: Optional[str] = None
    external_internal_id: Optional[str] = None
    subaward_count: int = 0


class FundingRecordListResponse(BaseModel):
    records: List[FundingRecordResponse]
    total: int
    total_amount: Decimal
    page: int
    page_size: int


class FundingMetricsResponse(BaseModel):
    """Dashboard headline figures for a filter set."""
    total_organizations: int
    total_funding: Decimal
    avg_funding: Decimal
    total_records: int


class OrganizationDetailResponse(BaseModel):
    organization: OrganizationResponse
    funding_records: List[FundingRecordResponse]
    total_funding: Decimal


class SubAwardResponse(BaseModel):
    id: uuid.UUID
    funding_record_id: uuid.UUID
    recipient_organization_id: uuid.UUID
    recipient_name: str
    recipient_state: str
    recipient_city: Optional[str] = None
    amount: Decimal
    award_date: Optional[date] = None
    description: Optional[str] = None


class FetchRequestBody(BaseModel):
    """Body of a fetch trigger. `state` is checked by the route so a missing value is a 400."""
    state: Optional[str] = Field(None, description="Two-letter state code or ALL")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    session_id: Optional[str] = Field(None, description="Client-chosen progress session id")


class FetchStartedResponse(BaseModel):
    success: bool
    session_id: str
    message: str


class ProgressResponse(BaseModel):
    session_id: str
    state: str
    source: str
    status: str
    total_pages: int
    current_page: int
    records_inserted: int
    errors: List[str]
    message: Optional[str] = None
    updated_at: Optional[str] = None


class DiscoverySearchRequest(BaseModel):
    """Listing discovery over a publication window."""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    aln_prefixes: Optional[List[str]] = Field(None, description="ALN agency prefixes, e.g. ['93']")
    verticals: Optional[List[str]] = Field(None, description="Vertical names mapped to ALN prefixes")


class DiscoverySearchResponse(BaseModel):
    results: List[AssistanceListing]
    total_before_filter: int
    aln_prefixes: List[str]


class OpportunitiesResponse(BaseModel):
    results: List[GrantOpportunity]


class AwardTrackResponse(BaseModel):
    results: List[Dict[str, Any]]
    total_count: int
    page: int = 1
    has_next: bool = False


class SupplementaryTrackResponse(BaseModel):
    results: List[Dict[str, Any]]


class TrailRequest(BaseModel):
    aln: Optional[str] = Field(None, description="Assistance Listing Number, e.g. 93.044")
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class StageResponse(BaseModel):
    ok: bool
    results: List[Dict[str, Any]] = Field(default_factory=list)
    total_count: Optional[int] = None
    error: Optional[str] = None


class TrailResponse(BaseModel):
    """Money trail for one ALN; each stage succeeds or fails on its own."""
    aln: str
    opportunities: StageResponse
    prime_awards: StageResponse
    subawards: StageResponse


class SavedSearchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    state: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    source: Optional[str] = None
    verticals: Optional[List[str]] = None


class SavedSearchResponse(SavedSearchCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime


class SavedSubawardSearchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    cfda_number: Optional[str] = None
    keywords: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class SavedSubawardSearchResponse(SavedSubawardSearchCreate):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime


class ClearDataResponse(BaseModel):
    success: bool
    deleted: Dict[str, int]
