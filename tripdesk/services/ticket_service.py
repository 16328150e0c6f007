
from sqlalchemy import func
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from .. import models, schemas
from ..aggregates import Avg, Count, collect, gather_all, prefixed, status_count_specs, unprefixed
from ..crud import Collection
from ..exceptions import NotFoundError
from ..filters import ticket_predicate
from ..pagination import PageRequest, paginate, ticket_sort
from .views import echo, enum_value, page_meta, user_summary

SupportTicket = models.SupportTicket
SupportMessage = models.SupportMessage


def ticket_fields(ticket) -> dict:
    return dict(
        id=ticket.id,
        subject=ticket.subject,
        status=enum_value(ticket.status),
        priority=enum_value(ticket.priority),
        category=enum_value(ticket.category),
        is_escalated=ticket.is_escalated,
        satisfaction_rating=ticket.satisfaction_rating,
        created_at=ticket.created_at,
        assigned_at=ticket.assigned_at,
        resolved_at=ticket.resolved_at,
        closed_at=ticket.closed_at,
        user=user_summary(ticket.user),
        assigned_to=user_summary(ticket.assigned_to),
    )


def message_row(message) -> schemas.MessageRow:
    return schemas.MessageRow(
        id=message.id,
        sender_type=enum_value(message.sender_type),
        content=message.content,
        is_internal=message.is_internal,
        created_at=message.created_at,
        sender=user_summary(message.sender),
    )


def ticket_summary_specs(tickets: Collection) -> dict:
    rated = SupportTicket.satisfaction_rating.is_not(None) & SupportTicket.status.in_(
        (models.TicketStatus.RESOLVED, models.TicketStatus.CLOSED)
    )
    specs = {
        "escalated": Count(tickets, SupportTicket.is_escalated.is_(True)),
        "average_satisfaction": Avg(tickets, SupportTicket.satisfaction_rating, rated),
    }
    specs.update(prefixed("status:", status_count_specs(tickets, SupportTicket.status, models.TicketStatus)))
    specs.update(prefixed("priority:", status_count_specs(tickets, SupportTicket.priority, models.TicketPriority)))
    specs.update(prefixed("category:", status_count_specs(tickets, SupportTicket.category, models.TicketCategory)))
    return specs


async def message_counts(ticket_ids: list[int], session_factory: async_sessionmaker) -> dict[int, int]:
    if not ticket_ids:
        return {}
    grouped = await Collection(SupportMessage, session_factory).grouped(
        SupportMessage.ticket_id,
        {"messages": func.count(SupportMessage.id)},
        predicate=SupportMessage.ticket_id.in_(ticket_ids),
    )
    return {ticket_id: row["messages"] for ticket_id, row in grouped.items()}


async def load_tickets(filters: schemas.TicketFilters, session_factory: async_sessionmaker) -> schemas.TicketPage:
    tickets = Collection(SupportTicket, session_factory)
    page_request = PageRequest.of(filters.page, filters.limit)

    page, summary = await gather_all(
        paginate(tickets, ticket_predicate(filters), ticket_sort().resolve(filters.sort), page_request),
        collect(ticket_summary_specs(tickets)),
    )
    counts = await message_counts([ticket.id for ticket in page.items], session_factory)

    return schemas.TicketPage(
        items=[
            schemas.TicketRow(**ticket_fields(ticket), message_count=counts.get(ticket.id, 0))
            for ticket in page.items
        ],
        pagination=page_meta(page),
        status_counts=unprefixed("status:", summary),
        priority_counts=unprefixed("priority:", summary),
        category_counts=unprefixed("category:", summary),
        escalated=summary["escalated"],
        average_satisfaction=round(summary["average_satisfaction"], 2),
        filters=echo(filters),
    )


async def load_ticket(ticket_id: int, session_factory: async_sessionmaker) -> schemas.TicketDetail:
    ticket = await Collection(SupportTicket, session_factory).get(
        ticket_id, options=[selectinload(SupportTicket.messages)]
    )
    if ticket is None:
        raise NotFoundError("Ticket", ticket_id)
    return schemas.TicketDetail(
        **ticket_fields(ticket),
        message_count=len(ticket.messages),
        description=ticket.description,
        escalation_reason=ticket.escalation_reason,
        messages=[message_row(message) for message in ticket.messages],
    )
