"""
Data models for normalized upstream records.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from fetchers.utils import first_present, normalize_name, parse_amount, parse_date

# Field lists requested from spending_by_award. Names differ when `subawards: true`.
PRIME_AWARD_FIELDS: List[str] = [
    "Award ID",
    "Internal ID",
    "generated_internal_id",
    "Recipient Name",
    "Recipient Location",
    "Award Amount",
    "Award Type",
    "Awarding Agency",
    "Awarding Sub Agency",
    "Start Date",
    "End Date",
    "Action Date",
    "Description",
    "CFDA Number",
    "CFDA Title",
]

SUB_AWARD_FIELDS: List[str] = [
    "Sub-Award ID",
    "Sub-Awardee Name",
    "Prime Recipient Name",
    "Sub-Award Amount",
    "Sub-Award Date",
    "Sub-Award Description",
    "Sub-Award Primary Place of Performance",
    "Prime Award ID",
]


class PrimeAwardHit(BaseModel):
    """One row of a USAspending spending_by_award search (prime view)."""

    award_id: Optional[str] = None
    internal_id: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_state: Optional[str] = None
    amount: Decimal = Decimal("0")
    award_type: Optional[str] = None
    agency: Optional[str] = None
    sub_agency: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    action_date: Optional[date] = None
    description: Optional[str] = None
    cfda_number: Optional[str] = None
    cfda_title: Optional[str] = None

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "PrimeAwardHit":
        location = record.get("Recipient Location")
        recipient_state = None
        if isinstance(location, dict):
            recipient_state = first_present(location, "state_code", "state")

        internal_id = first_present(record, "Internal ID", "internal_id", "generated_internal_id")
        start = parse_date(record.get("Start Date"))

        return cls(
            award_id=record.get("Award ID") or None,
            internal_id=str(internal_id) if internal_id is not None else None,
            recipient_name=normalize_name(record.get("Recipient Name")),
            recipient_state=recipient_state,
            amount=parse_amount(record.get("Award Amount")),
            award_type=record.get("Award Type"),
            agency=record.get("Awarding Agency"),
            sub_agency=record.get("Awarding Sub Agency"),
            start_date=start,
            end_date=parse_date(record.get("End Date")),
            action_date=parse_date(record.get("Action Date")) or start,
            description=record.get("Description"),
            cfda_number=record.get("CFDA Number"),
            cfda_title=record.get("CFDA Title"),
        )

    @property
    def subaward_lookup_id(self) -> Optional[str]:
        """Identifier accepted by the /subawards/ endpoint."""
        return self.internal_id or self.award_id


class SubAwardHit(BaseModel):
    """One row of a spending_by_award search with `subawards: true`."""

    sub_award_id: str = ""
    sub_awardee_name: str = "Unknown"
    prime_recipient_name: str = "Unknown"
    prime_award_id: str = ""
    amount: Decimal = Decimal("0")
    award_date: Optional[date] = None
    city: str = ""
    state_code: str = ""
    description: str = ""

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "SubAwardHit":
        pop = record.get("Sub-Award Primary Place of Performance")
        city, state_code = "", ""
        if isinstance(pop, dict):
            city = pop.get("city") or pop.get("city_name") or ""
            state_code = pop.get("state_code") or pop.get("state") or ""
        elif isinstance(pop, str):
            # Sometimes returned as "City, ST"
            parts = [p.strip() for p in pop.split(",")]
            city = parts[0] if parts else ""
            state_code = parts[1] if len(parts) > 1 else ""

        return cls(
            sub_award_id=str(record.get("Sub-Award ID") or ""),
            sub_awardee_name=record.get("Sub-Awardee Name") or "Unknown",
            prime_recipient_name=record.get("Prime Recipient Name") or "Unknown",
            prime_award_id=str(record.get("Prime Award ID") or ""),
            amount=parse_amount(record.get("Sub-Award Amount")),
            award_date=parse_date(record.get("Sub-Award Date")),
            city=city,
            state_code=state_code,
            description=record.get("Sub-Award Description") or record.get("Description") or "",
        )


class AwardSubAward(BaseModel):
    """One sub-award returned by the /subawards/ endpoint for a single prime award."""

    recipient_name: Optional[str] = None
    amount: Decimal = Decimal("0")
    action_date: Optional[date] = None
    description: Optional[str] = None
    recipient_state: Optional[str] = None
    recipient_city: Optional[str] = None

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "AwardSubAward":
        return cls(
            recipient_name=normalize_name(first_present(
                record,
                "sub_awardee_or_recipient_legal_business_name",
                "sub_awardee_or_recipient_legal_entity_name",
                "sub_awardee_or_recipient_legal",
                "recipient_name",
                "subawardee_name",
            )),
            amount=parse_amount(first_present(record, "subaward_amount", "amount")),
            action_date=parse_date(first_present(
                record, "sub_action_date", "action_date", "subaward_action_date"
            )),
            description=first_present(record, "subaward_description", "description"),
            recipient_state=first_present(
                record,
                "sub_legal_entity_state_code",
                "sub_awardee_or_recipient_legal_entity_state_code",
                "recipient_location_state_code",
            ),
            recipient_city=first_present(
                record,
                "sub_legal_entity_city_name",
                "sub_awardee_or_recipient_legal_entity_city_name",
                "recipient_location_city_name",
            ),
        )


class GrantOpportunity(BaseModel):
    """A Grants.gov search2 opportunity hit."""

    id: str
    number: str
    title: str = "Untitled Grant"
    agency: str = "Unknown Agency"
    open_date: Optional[date] = None
    close_date: Optional[date] = None
    status: str = ""
    aln_list: List[str] = Field(default_factory=list)
    funding_instruments: List[str] = Field(default_factory=list)
    link: str = ""

    @classmethod
    def from_api(cls, hit: Dict[str, Any]) -> "GrantOpportunity":
        opp_id = str(first_present(hit, "id", "number") or "")
        number = str(first_present(hit, "number", "id") or "")

        alns = hit.get("alnist") or hit.get("cfdaList") or []
        if isinstance(alns, str):
            alns = [a.strip() for a in alns.split(",") if a.strip()]
        if not alns and hit.get("aln"):
            alns = [hit["aln"]]

        instruments = hit.get("fundingInstruments") or []
        if isinstance(instruments, str):
            instruments = [instruments]
        instruments = [
            (i.get("description") or i.get("id") or "") if isinstance(i, dict) else str(i)
            for i in instruments
        ]

        return cls(
            id=opp_id,
            number=number,
            title=hit.get("title") or "Untitled Grant",
            agency=first_present(hit, "agencyName", "agency", "agencyCode") or "Unknown Agency",
            open_date=parse_date(first_present(hit, "openDate", "postDate")),
            close_date=parse_date(hit.get("closeDate")),
            status=hit.get("oppStatus") or "",
            aln_list=list(alns),
            funding_instruments=list(instruments),
            link=f"https://www.grants.gov/search-results-detail/{opp_id}" if opp_id else "",
        )

    @property
    def primary_aln(self) -> Optional[str]:
        return self.aln_list[0] if self.aln_list else None


class AssistanceListing(BaseModel):
    """A SAM.gov assistance listing (the ALN catalogue entry)."""

    aln: str = "N/A"
    title: str = "Untitled"
    agency: str = "Unknown"
    link: str = ""
    posted_date: str = ""
    close_date: str = ""
    type: str = "Federal Assistance Listing"

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "AssistanceListing":
        listing_id = item.get("assistanceListingId")
        return cls(
            aln=first_present(item, "assistanceListingId", "programNumber") or "N/A",
            title=first_present(item, "title", "programTitle") or "Untitled",
            agency=first_present(item, "organizationName", "department") or "Unknown",
            link=f"https://sam.gov/fal/{listing_id}/view" if listing_id else "",
            posted_date=item.get("publishedDate") or "",
            close_date=item.get("archiveDate") or "",
        )
