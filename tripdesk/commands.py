"""
Admin command handlers.

Every status-changing admin action is a member of one of the action enums
below and maps to exactly one handler; the tables are checked for
completeness at import time. A command runs inside a single transaction:

1. load the entity (unknown id -> ``NotFoundError``)
2. check the action's required fields (-> ``ValidationError``)
3. check the transition against the entity's current state
   (-> ``InvalidTransitionError``)
4. apply the change and append the audit row

Nothing is written unless every step succeeds.
"""

import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import audit, models
from .crud import unit_of_work
from .exceptions import InvalidTransitionError, NotFoundError, TripDeskError, ValidationError
from .kinds import ListingKind
from .metrics import provider_status

logger = logging.getLogger("tripdesk.commands")


# --- Actions ---
class ListingAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    FEATURE = "feature"
    UNFEATURE = "unfeature"


class ProviderAction(str, Enum):
    VERIFY = "verify"
    REJECT = "reject"
    SUSPEND = "suspend"
    REACTIVATE = "reactivate"


class BookingAction(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"


class ReviewAction(str, Enum):
    HIDE = "hide"
    UNHIDE = "unhide"
    EDIT = "edit"
    FEATURE = "feature"
    UNFEATURE = "unfeature"
    DISMISS_FLAG = "dismiss_flag"
    REMOVE = "remove"


class TicketAction(str, Enum):
    ASSIGN = "assign"
    UPDATE_STATUS = "update_status"
    UPDATE_PRIORITY = "update_priority"
    ADD_MESSAGE = "add_message"
    ADD_NOTE = "add_note"
    ESCALATE = "escalate"
    RESOLVE = "resolve"
    CLOSE = "close"


# --- State machines ---
BookingStatus = models.BookingStatus
ApprovalStatus = models.ApprovalStatus
TicketStatus = models.TicketStatus

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

# Approval states each listing action may start from
LISTING_ACTION_SOURCES = {
    ListingAction.APPROVE: {
        ApprovalStatus.PENDING,
        ApprovalStatus.UNDER_REVIEW,
        ApprovalStatus.REQUIRES_CHANGES,
        ApprovalStatus.REJECTED,
    },
    ListingAction.REJECT: {
        ApprovalStatus.PENDING,
        ApprovalStatus.UNDER_REVIEW,
        ApprovalStatus.REQUIRES_CHANGES,
        ApprovalStatus.APPROVED,
    },
    ListingAction.REQUEST_CHANGES: {ApprovalStatus.PENDING, ApprovalStatus.UNDER_REVIEW},
    ListingAction.ACTIVATE: {ApprovalStatus.APPROVED},
    ListingAction.DEACTIVATE: {ApprovalStatus.APPROVED},
    ListingAction.FEATURE: {ApprovalStatus.APPROVED},
    ListingAction.UNFEATURE: set(ApprovalStatus),
}

TICKET_TRANSITIONS = {
    TicketStatus.NEW: {TicketStatus.ASSIGNED, TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED},
    TicketStatus.ASSIGNED: {TicketStatus.IN_PROGRESS, TicketStatus.WAITING, TicketStatus.RESOLVED, TicketStatus.CLOSED},
    TicketStatus.IN_PROGRESS: {TicketStatus.WAITING, TicketStatus.RESOLVED, TicketStatus.CLOSED},
    TicketStatus.WAITING: {TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED},
    TicketStatus.RESOLVED: {TicketStatus.IN_PROGRESS, TicketStatus.CLOSED},
    TicketStatus.CLOSED: set(),
}

# provider_status() value -> states each provider action may start from
PROVIDER_ACTION_SOURCES = {
    ProviderAction.VERIFY: {"pending", "rejected"},
    ProviderAction.REJECT: {"pending", "verified"},
    ProviderAction.SUSPEND: {"pending", "verified", "rejected"},
    ProviderAction.REACTIVATE: {"suspended"},
}


@dataclass
class Invocation:
    """Everything a handler may touch while the transaction is open."""

    db: AsyncSession
    entity: Any
    request: Any
    actor: models.User
    now: datetime.datetime
    resource: str


Handler = Callable[[Invocation], Awaitable[str]]


# --- Shared checks ---
def require(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def ensure_state(call: Invocation, action: Enum, current, allowed: Iterable) -> None:
    if current not in allowed:
        state = current.value if isinstance(current, Enum) else str(current)
        raise InvalidTransitionError(call.resource.lower(), action.value.replace("_", " "), state.lower())


def _member(enum_cls, value: str, field: str):
    member = enum_cls.__members__.get(value.strip().upper())
    if member is None:
        raise ValidationError(f"Unknown {field} '{value}'")
    return member


def _move_booking(call: Invocation, action: BookingAction, target: BookingStatus) -> None:
    booking = call.entity
    ensure_state(call, action, booking.status, {
        source for source, targets in BOOKING_TRANSITIONS.items() if target in targets
    })
    booking.status = target


def _move_ticket(call: Invocation, action: TicketAction, target: TicketStatus) -> None:
    ticket = call.entity
    ensure_state(call, action, ticket.status, {
        source for source, targets in TICKET_TRANSITIONS.items() if target in targets
    })
    ticket.status = target
    if target == TicketStatus.RESOLVED:
        ticket.resolved_at = call.now
    elif target == TicketStatus.CLOSED:
        ticket.closed_at = call.now


# --- Booking handlers ---
async def confirm_booking(call: Invocation) -> str:
    _move_booking(call, BookingAction.CONFIRM, BookingStatus.CONFIRMED)
    call.entity.confirmed_at = call.now
    return "Booking confirmed successfully"


async def cancel_booking(call: Invocation) -> str:
    _move_booking(call, BookingAction.CANCEL, BookingStatus.CANCELLED)
    reason = (call.request.reason or "").strip()
    call.entity.cancellation_reason = reason or "Cancelled by admin"
    call.entity.cancelled_at = call.now
    return "Booking cancelled successfully"


async def complete_booking(call: Invocation) -> str:
    _move_booking(call, BookingAction.COMPLETE, BookingStatus.COMPLETED)
    call.entity.completed_at = call.now
    return "Booking marked as completed"


BOOKING_HANDLERS: dict[BookingAction, Handler] = {
    BookingAction.CONFIRM: confirm_booking,
    BookingAction.CANCEL: cancel_booking,
    BookingAction.COMPLETE: complete_booking,
}


# --- Listing handlers ---
def _check_listing(call: Invocation, action: ListingAction) -> None:
    ensure_state(call, action, call.entity.approval_status, LISTING_ACTION_SOURCES[action])


async def approve_listing(call: Invocation) -> str:
    _check_listing(call, ListingAction.APPROVE)
    listing = call.entity
    listing.approval_status = ApprovalStatus.APPROVED
    listing.approved_by_id = call.actor.id
    listing.approved_at = call.now
    listing.rejection_reason = None
    return f"{call.resource} approved successfully"


async def reject_listing(call: Invocation) -> str:
    reason = require(call.request.reason, "Rejection reason")
    _check_listing(call, ListingAction.REJECT)
    listing = call.entity
    listing.approval_status = ApprovalStatus.REJECTED
    listing.rejection_reason = reason
    listing.is_featured = False
    return f"{call.resource} rejected"


async def request_listing_changes(call: Invocation) -> str:
    reason = require(call.request.reason, "Change request details")
    _check_listing(call, ListingAction.REQUEST_CHANGES)
    call.entity.approval_status = ApprovalStatus.REQUIRES_CHANGES
    call.entity.rejection_reason = reason
    return f"Changes requested for {call.resource.lower()}"


async def activate_listing(call: Invocation) -> str:
    _check_listing(call, ListingAction.ACTIVATE)
    call.entity.available = True
    return f"{call.resource} activated"


async def deactivate_listing(call: Invocation) -> str:
    _check_listing(call, ListingAction.DEACTIVATE)
    call.entity.available = False
    return f"{call.resource} deactivated"


async def feature_listing(call: Invocation) -> str:
    _check_listing(call, ListingAction.FEATURE)
    call.entity.is_featured = True
    return f"{call.resource} featured"


async def unfeature_listing(call: Invocation) -> str:
    _check_listing(call, ListingAction.UNFEATURE)
    call.entity.is_featured = False
    return f"{call.resource} removed from featured"


LISTING_HANDLERS: dict[ListingAction, Handler] = {
    ListingAction.APPROVE: approve_listing,
    ListingAction.REJECT: reject_listing,
    ListingAction.REQUEST_CHANGES: request_listing_changes,
    ListingAction.ACTIVATE: activate_listing,
    ListingAction.DEACTIVATE: deactivate_listing,
    ListingAction.FEATURE: feature_listing,
    ListingAction.UNFEATURE: unfeature_listing,
}


# --- Provider handlers ---
def _check_provider(call: Invocation, action: ProviderAction) -> None:
    ensure_state(call, action, provider_status(call.entity), PROVIDER_ACTION_SOURCES[action])


async def verify_provider(call: Invocation) -> str:
    _check_provider(call, ProviderAction.VERIFY)
    call.entity.verified = True
    call.entity.rejection_reason = None
    return "Provider verified successfully"


async def reject_provider(call: Invocation) -> str:
    reason = require(call.request.reason, "Rejection reason")
    _check_provider(call, ProviderAction.REJECT)
    call.entity.verified = False
    call.entity.rejection_reason = reason
    return "Provider rejected"


async def suspend_provider(call: Invocation) -> str:
    _check_provider(call, ProviderAction.SUSPEND)
    call.entity.active = False
    return "Provider suspended"


async def reactivate_provider(call: Invocation) -> str:
    _check_provider(call, ProviderAction.REACTIVATE)
    call.entity.active = True
    return "Provider reactivated"


PROVIDER_HANDLERS: dict[ProviderAction, Handler] = {
    ProviderAction.VERIFY: verify_provider,
    ProviderAction.REJECT: reject_provider,
    ProviderAction.SUSPEND: suspend_provider,
    ProviderAction.REACTIVATE: reactivate_provider,
}


# --- Review handlers ---
def review_state(review: models.Review) -> str:
    return "hidden" if review.is_hidden else "published"


async def hide_review(call: Invocation) -> str:
    reason = require(call.request.reason, "Reason for hiding")
    review = call.entity
    ensure_state(call, ReviewAction.HIDE, review_state(review), {"published"})
    review.is_hidden = True
    review.is_featured = False
    review.hidden_reason = reason
    review.hidden_by_id = call.actor.id
    review.hidden_at = call.now
    return "Review hidden successfully"


async def unhide_review(call: Invocation) -> str:
    review = call.entity
    ensure_state(call, ReviewAction.UNHIDE, review_state(review), {"hidden"})
    review.is_hidden = False
    review.hidden_reason = None
    review.hidden_by_id = None
    review.hidden_at = None
    return "Review is visible again"


async def edit_review(call: Invocation) -> str:
    content = require(call.request.content, "Review content")
    review = call.entity
    review.content = content
    review.edited_by_id = call.actor.id
    review.edited_at = call.now
    return "Review updated successfully"


async def feature_review(call: Invocation) -> str:
    review = call.entity
    ensure_state(call, ReviewAction.FEATURE, review_state(review), {"published"})
    review.is_featured = True
    review.featured_by_id = call.actor.id
    review.featured_at = call.now
    return "Review featured"


async def unfeature_review(call: Invocation) -> str:
    review = call.entity
    review.is_featured = False
    review.featured_by_id = None
    review.featured_at = None
    return "Review removed from featured"


async def dismiss_review_flag(call: Invocation) -> str:
    review = call.entity
    ensure_state(call, ReviewAction.DISMISS_FLAG, "flagged" if review.is_flagged else "unflagged", {"flagged"})
    review.is_flagged = False
    return "Flag dismissed"


async def remove_review(call: Invocation) -> str:
    await call.db.delete(call.entity)
    return "Review removed permanently"


REVIEW_HANDLERS: dict[ReviewAction, Handler] = {
    ReviewAction.HIDE: hide_review,
    ReviewAction.UNHIDE: unhide_review,
    ReviewAction.EDIT: edit_review,
    ReviewAction.FEATURE: feature_review,
    ReviewAction.UNFEATURE: unfeature_review,
    ReviewAction.DISMISS_FLAG: dismiss_review_flag,
    ReviewAction.REMOVE: remove_review,
}


# --- Ticket handlers ---
def _ensure_open(call: Invocation, action: TicketAction, allowed=models.OPEN_TICKET_STATUSES) -> None:
    ensure_state(call, action, call.entity.status, allowed)


def _add_message(call: Invocation, content: str, sender_type: models.SenderType, internal: bool) -> None:
    call.db.add(
        models.SupportMessage(
            ticket_id=call.entity.id,
            sender_id=call.actor.id if sender_type == models.SenderType.ADMIN else None,
            sender_type=sender_type,
            content=content,
            is_internal=internal,
            created_at=call.now,
        )
    )


async def assign_ticket(call: Invocation) -> str:
    if call.request.assignee_id is None:
        raise ValidationError("Assignee is required")
    assignee = await call.db.get(models.User, call.request.assignee_id)
    if assignee is None or not assignee.active or assignee.role not in models.ADMIN_ROLES:
        raise ValidationError("Assignee must be an active admin")
    _ensure_open(call, TicketAction.ASSIGN)

    ticket = call.entity
    ticket.assigned_to_id = assignee.id
    ticket.assigned_at = call.now
    if ticket.status == TicketStatus.NEW:
        ticket.status = TicketStatus.ASSIGNED
    _add_message(call, f"Ticket assigned to {assignee.name}", models.SenderType.SYSTEM, internal=True)
    return f"Ticket assigned to {assignee.name}"


async def update_ticket_status(call: Invocation) -> str:
    target = _member(TicketStatus, require(call.request.status, "Status"), "status")
    _move_ticket(call, TicketAction.UPDATE_STATUS, target)
    return f"Ticket status updated to {target.value}"


async def update_ticket_priority(call: Invocation) -> str:
    priority = _member(models.TicketPriority, require(call.request.priority, "Priority"), "priority")
    _ensure_open(call, TicketAction.UPDATE_PRIORITY, set(TicketStatus) - {TicketStatus.CLOSED})
    call.entity.priority = priority
    return f"Ticket priority updated to {priority.value}"


async def add_ticket_message(call: Invocation) -> str:
    content = require(call.request.message, "Message")
    _ensure_open(call, TicketAction.ADD_MESSAGE, set(TicketStatus) - {TicketStatus.CLOSED})
    _add_message(call, content, models.SenderType.ADMIN, internal=False)
    return "Message sent"


async def add_ticket_note(call: Invocation) -> str:
    content = require(call.request.message, "Note")
    _ensure_open(call, TicketAction.ADD_NOTE, set(TicketStatus) - {TicketStatus.CLOSED})
    _add_message(call, content, models.SenderType.ADMIN, internal=True)
    return "Internal note added"


async def escalate_ticket(call: Invocation) -> str:
    reason = require(call.request.reason, "Escalation reason")
    ticket = call.entity
    _ensure_open(call, TicketAction.ESCALATE)
    if ticket.is_escalated:
        raise InvalidTransitionError("ticket", "escalate", "already escalated")
    ticket.is_escalated = True
    ticket.escalated_at = call.now
    ticket.escalation_reason = reason
    ticket.priority = models.TicketPriority.HIGH
    _add_message(call, f"Ticket escalated: {reason}", models.SenderType.SYSTEM, internal=True)
    return "Ticket escalated"


async def resolve_ticket(call: Invocation) -> str:
    _move_ticket(call, TicketAction.RESOLVE, TicketStatus.RESOLVED)
    return "Ticket resolved"


async def close_ticket(call: Invocation) -> str:
    _move_ticket(call, TicketAction.CLOSE, TicketStatus.CLOSED)
    return "Ticket closed"


TICKET_HANDLERS: dict[TicketAction, Handler] = {
    TicketAction.ASSIGN: assign_ticket,
    TicketAction.UPDATE_STATUS: update_ticket_status,
    TicketAction.UPDATE_PRIORITY: update_ticket_priority,
    TicketAction.ADD_MESSAGE: add_ticket_message,
    TicketAction.ADD_NOTE: add_ticket_note,
    TicketAction.ESCALATE: escalate_ticket,
    TicketAction.RESOLVE: resolve_ticket,
    TicketAction.CLOSE: close_ticket,
}


def _check_exhaustive(actions: type[Enum], handlers: dict) -> None:
    missing = [action.value for action in actions if action not in handlers]
    if missing:
        raise RuntimeError(f"No handler for {actions.__name__}: {', '.join(missing)}")


for _actions, _handlers in (
    (BookingAction, BOOKING_HANDLERS),
    (ListingAction, LISTING_HANDLERS),
    (ProviderAction, PROVIDER_HANDLERS),
    (ReviewAction, REVIEW_HANDLERS),
    (TicketAction, TICKET_HANDLERS),
):
    _check_exhaustive(_actions, _handlers)


# --- Execution ---
async def execute(
    session_factory: async_sessionmaker,
    model,
    resource: str,
    entity_id: int,
    request,
    handlers: dict,
    actor: models.User,
    context: audit.RequestContext,
    accept: Optional[Callable[[Any], bool]] = None,
) -> str:
    """
    Runs one command in one transaction and returns its success message.
    ``accept`` narrows which rows count as this resource (e.g. providers
    among all users); a row it rejects is reported as not found.
    """
    action = request.action
    try:
        async with unit_of_work(session_factory) as db:
            entity = await db.get(model, entity_id)
            if entity is None or (accept is not None and not accept(entity)):
                raise NotFoundError(resource, entity_id)

            call = Invocation(db=db, entity=entity, request=request, actor=actor, now=models.utcnow(), resource=resource)
            message = await handlers[action](call)

            description = message
            if request.reason:
                description = f"{message}. Reason: {request.reason.strip()}"
            audit.log_action(
                db,
                actor_id=actor.id,
                action=f"{resource.upper()}_{action.value.upper()}",
                description=description,
                context=context,
                resource_type=resource.upper(),
                resource_id=entity_id,
            )
    except TripDeskError as e:
        logger.warning(f"Admin {actor.id} {action.value} on {resource} {entity_id} refused: {e.message}")
        raise

    logger.info(f"Admin {actor.id} applied {action.value} to {resource} {entity_id}")
    return message


async def run_booking_action(session_factory, booking_id: int, request, actor, context) -> str:
    return await execute(
        session_factory, models.Booking, "Booking", booking_id, request, BOOKING_HANDLERS, actor, context
    )


async def run_listing_action(session_factory, kind: ListingKind, listing_id: int, request, actor, context) -> str:
    return await execute(
        session_factory, kind.model, kind.label, listing_id, request, LISTING_HANDLERS, actor, context
    )


async def run_provider_action(session_factory, provider_id: int, request, actor, context) -> str:
    return await execute(
        session_factory, models.User, "Provider", provider_id, request, PROVIDER_HANDLERS, actor, context,
        accept=lambda user: user.role in models.PROVIDER_ROLES,
    )


async def run_review_action(session_factory, review_id: int, request, actor, context) -> str:
    return await execute(
        session_factory, models.Review, "Review", review_id, request, REVIEW_HANDLERS, actor, context
    )


async def run_ticket_action(session_factory, ticket_id: int, request, actor, context) -> str:
    return await execute(
        session_factory, models.SupportTicket, "Ticket", ticket_id, request, TICKET_HANDLERS, actor, context
    )
