"""create admin tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


userrole_enum = postgresql.ENUM(
    'CUSTOMER', 'PROPERTY_OWNER', 'VEHICLE_OWNER', 'TOUR_GUIDE', 'ADMIN', 'SUPER_ADMIN', name='userrole', create_type=False)
approvalstatus_enum = postgresql.ENUM(
    'PENDING', 'UNDER_REVIEW', 'REQUIRES_CHANGES', 'APPROVED', 'REJECTED', name='approvalstatus', create_type=False)
bookingstatus_enum = postgresql.ENUM('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED', name='bookingstatus', create_type=False)
servicetype_enum = postgresql.ENUM('PROPERTY', 'VEHICLE', 'TOUR', name='servicetype', create_type=False)
ticketstatus_enum = postgresql.ENUM(
    'NEW', 'ASSIGNED', 'IN_PROGRESS', 'WAITING', 'RESOLVED', 'CLOSED', name='ticketstatus', create_type=False)
ticketpriority_enum = postgresql.ENUM('LOW', 'MEDIUM', 'HIGH', name='ticketpriority', create_type=False)
ticketcategory_enum = postgresql.ENUM(
    'ACCOUNT', 'PAYMENT', 'BOOKING', 'TECHNICAL', 'LISTING', 'REVIEW_DISPUTE', 'POLICY',
    'FEATURE_REQUEST', 'OTHER', name='ticketcategory', create_type=False)
sendertype_enum = postgresql.ENUM('ADMIN', 'USER', 'SYSTEM', name='sendertype', create_type=False)

ENUM_TYPES = (
    userrole_enum,
    approvalstatus_enum,
    bookingstatus_enum,
    servicetype_enum,
    ticketstatus_enum,
    ticketpriority_enum,
    ticketcategory_enum,
    sendertype_enum,
)


def _listing_columns():
    """Columns every listing table shares."""
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('city', sa.String(length=120), nullable=False),
        sa.Column('approval_status', approvalstatus_enum, nullable=False),
        sa.Column('available', sa.Boolean(), nullable=False),
        sa.Column('is_featured', sa.Boolean(), nullable=False),
        sa.Column('average_rating', sa.Float(), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('approved_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('approved_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
    ]


def _index_listing(table: str, owner_column: str) -> None:
    for column in ('id', 'city', 'approval_status', 'created_at', owner_column):
        op.create_index(f'ix_{table}_{column}', table, [column])


def upgrade() -> None:
    """Upgrade schema."""
    # Types are created once up front; several tables share approvalstatus.
    # On SQLite these are plain VARCHAR columns and create() is a no-op.
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('role', userrole_enum, nullable=False),
        sa.Column('business_name', sa.String(length=200), nullable=True),
        sa.Column('business_email', sa.String(length=255), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('last_active_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'properties',
        *_listing_columns(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('base_price', sa.Float(), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
    )
    _index_listing('properties', 'owner_id')

    op.create_table(
        'vehicles',
        *_listing_columns(),
        sa.Column('brand', sa.String(length=100), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('base_price', sa.Float(), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
    )
    _index_listing('vehicles', 'owner_id')

    op.create_table(
        'tours',
        *_listing_columns(),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('price_per_person', sa.Float(), nullable=False),
        sa.Column('guide_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
    )
    _index_listing('tours', 'guide_id')

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_type', sa.String(length=20), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', bookingstatus_enum, nullable=False),
        sa.Column('total_price', sa.Float(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('guests', sa.Integer(), nullable=False),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('confirmed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.id'), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), sa.ForeignKey('vehicles.id'), nullable=True),
        sa.Column('tour_id', sa.Integer(), sa.ForeignKey('tours.id'), nullable=True),
    )
    for column in ('id', 'booking_type', 'customer_id', 'status', 'created_at', 'property_id', 'vehicle_id', 'tour_id'):
        op.create_index(f'ix_bookings_{column}', 'bookings', [column])

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('service_type', servicetype_enum, nullable=False),
        sa.Column('property_id', sa.Integer(), sa.ForeignKey('properties.id'), nullable=True),
        sa.Column('vehicle_id', sa.Integer(), sa.ForeignKey('vehicles.id'), nullable=True),
        sa.Column('tour_id', sa.Integer(), sa.ForeignKey('tours.id'), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('response', sa.Text(), nullable=True),
        sa.Column('is_hidden', sa.Boolean(), nullable=False),
        sa.Column('is_flagged', sa.Boolean(), nullable=False),
        sa.Column('is_featured', sa.Boolean(), nullable=False),
        sa.Column('hidden_reason', sa.Text(), nullable=True),
        sa.Column('hidden_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('hidden_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('edited_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('edited_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('featured_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('featured_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
    )
    for column in ('id', 'user_id', 'service_type', 'property_id', 'vehicle_id', 'tour_id', 'created_at'):
        op.create_index(f'ix_reviews_{column}', 'reviews', [column])

    op.create_table(
        'support_tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', ticketstatus_enum, nullable=False),
        sa.Column('priority', ticketpriority_enum, nullable=False),
        sa.Column('category', ticketcategory_enum, nullable=False),
        sa.Column('assigned_to_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assigned_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('is_escalated', sa.Boolean(), nullable=False),
        sa.Column('escalated_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('escalation_reason', sa.Text(), nullable=True),
        sa.Column('satisfaction_rating', sa.Integer(), nullable=True),
        sa.Column('resolved_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('closed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
    )
    for column in ('id', 'user_id', 'status', 'priority', 'category', 'assigned_to_id', 'created_at'):
        op.create_index(f'ix_support_tickets_{column}', 'support_tickets', [column])

    op.create_table(
        'support_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('support_tickets.id'), nullable=False),
        sa.Column('sender_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('sender_type', sendertype_enum, nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
    )
    op.create_index('ix_support_messages_id', 'support_messages', ['id'])
    op.create_index('ix_support_messages_ticket_id', 'support_messages', ['ticket_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=False),
        sa.Column('user_agent', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_resource', 'audit_logs', ['resource_type', 'resource_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'audit_logs',
        'support_messages',
        'support_tickets',
        'reviews',
        'bookings',
        'tours',
        'vehicles',
        'properties',
        'users',
    ):
        op.drop_table(table)

    # Named ENUM types only exist as separate objects on PostgreSQL
    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
