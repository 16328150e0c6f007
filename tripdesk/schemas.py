import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .commands import BookingAction, ListingAction, ProviderAction, ReviewAction, TicketAction


# --- Query filters ---
# Every filter is an optional raw string. Parsing happens in filters.py so a
# malformed value narrows nothing instead of failing the request.
class FilterBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    search: Optional[str] = None
    sort: Optional[str] = None
    page: Optional[str] = None
    limit: Optional[str] = None


class ListingFilters(FilterBase):
    status: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    price_range: Optional[str] = Field(None, alias="priceRange")
    rating: Optional[str] = None
    owner: Optional[str] = None
    guide: Optional[str] = None
    # Tours are typed by category
    category: Optional[str] = None


class BookingFilters(FilterBase):
    status: Optional[str] = None
    type: Optional[str] = None
    price_range: Optional[str] = Field(None, alias="priceRange")
    date_from: Optional[str] = Field(None, alias="dateFrom")
    date_to: Optional[str] = Field(None, alias="dateTo")


class ReviewFilters(FilterBase):
    status: Optional[str] = None
    service_type: Optional[str] = Field(None, alias="serviceType")
    rating: Optional[str] = None
    has_response: Optional[str] = Field(None, alias="hasResponse")
    date_from: Optional[str] = Field(None, alias="dateFrom")
    date_to: Optional[str] = Field(None, alias="dateTo")


class TicketFilters(FilterBase):
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    assigned_to: Optional[str] = Field(None, alias="assignedTo")
    user_type: Optional[str] = Field(None, alias="userType")
    escalated: Optional[str] = None
    date_from: Optional[str] = Field(None, alias="dateFrom")
    date_to: Optional[str] = Field(None, alias="dateTo")


class ApprovalFilters(FilterBase):
    status: Optional[str] = "pending"
    type: Optional[str] = None


class ProviderFilters(FilterBase):
    status: Optional[str] = "pending"
    type: Optional[str] = None


class UserFilters(FilterBase):
    role: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[str] = Field(None, alias="dateFrom")
    date_to: Optional[str] = Field(None, alias="dateTo")


class AuditFilters(FilterBase):
    action: Optional[str] = None
    # Actor id, or a name/email fragment
    user: Optional[str] = None
    resource: Optional[str] = None
    date_from: Optional[str] = Field(None, alias="dateFrom")
    date_to: Optional[str] = Field(None, alias="dateTo")


# --- Action bodies ---
class ActionBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    reason: Optional[str] = None


class ListingActionRequest(ActionBase):
    action: ListingAction


class ProviderActionRequest(ActionBase):
    action: ProviderAction


class BookingActionRequest(ActionBase):
    action: BookingAction


class ReviewActionRequest(ActionBase):
    action: ReviewAction
    content: Optional[str] = None


class TicketActionRequest(ActionBase):
    action: TicketAction
    assignee_id: Optional[int] = Field(None, alias="assigneeId")
    status: Optional[str] = None
    priority: Optional[str] = None
    message: Optional[str] = None


class ActionResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None


# --- Read models ---
class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    role: str

    class Config:
        from_attributes = True


class PageMeta(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ListingRef(BaseModel):
    id: int
    kind: str
    title: str
    city: str


class ListingRow(BaseModel):
    id: int
    kind: str
    title: str
    type: str
    city: str
    price: float
    approval_status: str
    display_status: str
    available: bool
    is_featured: bool
    average_rating: float
    rejection_reason: Optional[str] = None
    owner: Optional[UserSummary] = None
    created_at: datetime.datetime

    booking_count: int
    review_count: int
    total_revenue: float
    last_booking_at: Optional[datetime.datetime] = None
    days_active: int
    utilization_rate: float


class ListingPage(BaseModel):
    items: list[ListingRow]
    pagination: PageMeta
    counts: dict[str, int]
    top_performers: list[ListingRow]
    cities: list[str]
    filters: dict[str, Any]


class BookingRow(BaseModel):
    id: int
    booking_type: str
    status: str
    total_price: float
    start_date: datetime.date
    end_date: datetime.date
    nights: int
    guests: int
    cancellation_reason: Optional[str] = None
    created_at: datetime.datetime
    confirmed_at: Optional[datetime.datetime] = None
    cancelled_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None
    customer: Optional[UserSummary] = None
    listing: Optional[ListingRef] = None


class BookingPage(BaseModel):
    items: list[BookingRow]
    pagination: PageMeta
    counts: dict[str, int]
    revenue: dict[str, float]
    filters: dict[str, Any]


class ReviewRow(BaseModel):
    id: int
    service_type: str
    rating: int
    content: str
    response: Optional[str] = None
    is_hidden: bool
    is_flagged: bool
    is_featured: bool
    hidden_reason: Optional[str] = None
    created_at: datetime.datetime
    user: Optional[UserSummary] = None
    listing: Optional[ListingRef] = None


class ReviewPage(BaseModel):
    items: list[ReviewRow]
    pagination: PageMeta
    stats: dict[str, float]
    rating_distribution: dict[str, int]
    service_types: dict[str, int]
    filters: dict[str, Any]


class MessageRow(BaseModel):
    id: int
    sender_type: str
    content: str
    is_internal: bool
    created_at: datetime.datetime
    sender: Optional[UserSummary] = None


class TicketRow(BaseModel):
    id: int
    subject: str
    status: str
    priority: str
    category: str
    is_escalated: bool
    satisfaction_rating: Optional[int] = None
    created_at: datetime.datetime
    assigned_at: Optional[datetime.datetime] = None
    resolved_at: Optional[datetime.datetime] = None
    closed_at: Optional[datetime.datetime] = None
    user: Optional[UserSummary] = None
    assigned_to: Optional[UserSummary] = None
    message_count: int = 0


class TicketDetail(TicketRow):
    description: str
    escalation_reason: Optional[str] = None
    messages: list[MessageRow]


class TicketPage(BaseModel):
    items: list[TicketRow]
    pagination: PageMeta
    status_counts: dict[str, int]
    priority_counts: dict[str, int]
    category_counts: dict[str, int]
    escalated: int
    average_satisfaction: float
    filters: dict[str, Any]


class ApprovalItem(BaseModel):
    id: int
    kind: str
    title: str
    type: str
    city: str
    price: float
    approval_status: str
    rejection_reason: Optional[str] = None
    owner: Optional[UserSummary] = None
    created_at: datetime.datetime


class ApprovalQueue(BaseModel):
    items: list[ApprovalItem]
    pagination: PageMeta
    kind_counts: dict[str, int]
    status_counts: dict[str, int]
    filters: dict[str, Any]


class ProviderRow(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    business_name: Optional[str] = None
    business_email: Optional[str] = None
    status: str
    verified: bool
    active: bool
    rejection_reason: Optional[str] = None
    created_at: datetime.datetime


class ProviderPage(BaseModel):
    items: list[ProviderRow]
    pagination: PageMeta
    counts: dict[str, int]
    filters: dict[str, Any]


class UserRow(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: str
    business_name: Optional[str] = None
    verified: bool
    active: bool
    created_at: datetime.datetime
    last_active_at: Optional[datetime.datetime] = None
    booking_count: int = 0
    review_count: int = 0


class UserPage(BaseModel):
    items: list[UserRow]
    pagination: PageMeta
    role_counts: dict[str, int]
    status_counts: dict[str, int]
    filters: dict[str, Any]


class AuditRow(BaseModel):
    id: int
    action: str
    description: str
    resource_type: str
    resource_id: Optional[int] = None
    ip_address: str
    user_agent: str
    created_at: datetime.datetime
    actor: Optional[UserSummary] = None


class ActorActivity(BaseModel):
    actor_id: int
    actor: Optional[UserSummary] = None
    count: int


class AuditPage(BaseModel):
    items: list[AuditRow]
    pagination: PageMeta
    action_counts: dict[str, int]
    actor_counts: list[ActorActivity]
    filters: dict[str, Any]


class Dashboard(BaseModel):
    users: dict[str, int]
    listings: dict[str, int]
    pending_approvals: dict[str, int]
    bookings: dict[str, int]
    open_tickets: int
    total_revenue: float


class GrowthBucket(BaseModel):
    start: datetime.datetime
    end: datetime.datetime
    new_users: int
    bookings: int
    revenue: float


class GrowthReport(BaseModel):
    period: int
    buckets: list[GrowthBucket]
    growth_rates: dict[str, float]
    retention: dict[str, float]
    forecast: list[dict[str, float]]
    by_service_type: dict[str, dict[str, float]]
