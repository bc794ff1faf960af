"""Initial migration

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    ]


def upgrade() -> None:
    # Create tenants table
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('subdomain', sa.String(100), nullable=False),
        sa.Column('custom_domain', sa.String(255)),
        sa.Column('status', sa.String(20), server_default=sa.text("'active'"), nullable=False),
        sa.Column('trial_ends_at', sa.DateTime),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'suspended', 'cancelled')", name='tenants_status_check'
        ),
    )
    op.create_index('ix_tenants_subdomain', 'tenants', ['subdomain'], unique=True)
    op.create_index('ix_tenants_custom_domain', 'tenants', ['custom_domain'], unique=True)

    # Create subscriptions table
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.Integer, sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan', sa.String(50), server_default=sa.text("'starter'"), nullable=False),
        sa.Column('status', sa.String(20), server_default=sa.text("'trialing'"), nullable=False),
        sa.Column('storage_limit_bytes', sa.BigInteger, nullable=False),
        sa.Column('gallery_limit', sa.Integer, nullable=False),
        sa.Column('extra_storage_bytes', sa.BigInteger, server_default=sa.text("0"), nullable=False),
        sa.Column('extra_galleries', sa.Integer, server_default=sa.text("0"), nullable=False),
        sa.Column('current_period_start', sa.DateTime),
        sa.Column('current_period_end', sa.DateTime),
        sa.Column('cancel_at_period_end', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('cancelled_at', sa.DateTime),
        sa.Column('external_customer_id', sa.String(255)),
        sa.Column('external_subscription_id', sa.String(255)),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('trialing', 'active', 'past_due', 'cancelled', 'paused')",
            name='subscriptions_status_check',
        ),
    )
    op.create_index('ix_subscriptions_tenant_id', 'subscriptions', ['tenant_id'], unique=True)
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index(
        'ix_subscriptions_external_subscription_id', 'subscriptions',
        ['external_subscription_id'], unique=True,
    )

    # Create subscription_addons table
    op.create_table(
        'subscription_addons',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.Integer, sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subscription_id', sa.Integer, sa.ForeignKey('subscriptions.id', ondelete='SET NULL')),
        sa.Column('addon_type', sa.String(20), nullable=False),
        sa.Column('external_subscription_id', sa.String(255), nullable=False),
        sa.Column('external_price_id', sa.String(255)),
        sa.Column('status', sa.String(20), server_default=sa.text("'active'"), nullable=False),
        sa.Column('quantity', sa.Integer, server_default=sa.text("1"), nullable=False),
        sa.Column('current_period_start', sa.DateTime),
        sa.Column('current_period_end', sa.DateTime),
        sa.Column('cancelled_at', sa.DateTime),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'past_due', 'cancelled', 'paused')",
            name='subscription_addons_status_check',
        ),
        sa.CheckConstraint(
            "addon_type IN ('storage', 'galleries')", name='subscription_addons_type_check'
        ),
        sa.CheckConstraint('quantity >= 1', name='subscription_addons_quantity_check'),
    )
    op.create_index('ix_subscription_addons_tenant_id', 'subscription_addons', ['tenant_id'])
    op.create_index('ix_subscription_addons_status', 'subscription_addons', ['status'])
    op.create_index(
        'ix_subscription_addons_external_subscription_id', 'subscription_addons',
        ['external_subscription_id'], unique=True,
    )

    # Create galleries table
    op.create_table(
        'galleries',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.Integer, sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_galleries_tenant_id', 'galleries', ['tenant_id'])

    # Create media_items table
    op.create_table(
        'media_items',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.Integer, sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('gallery_id', sa.Integer, sa.ForeignKey('galleries.id')),
        sa.Column('storage_key', sa.String(500), nullable=False),
        sa.Column('content_type', sa.String(100), nullable=False),
        sa.Column('size_bytes', sa.BigInteger),
        *_timestamps(),
    )
    op.create_index('ix_media_items_tenant_id', 'media_items', ['tenant_id'])
    op.create_index('ix_media_items_gallery_id', 'media_items', ['gallery_id'])

    # Create webhook_events table
    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('processed_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_webhook_events_event_id', 'webhook_events', ['event_id'], unique=True)


def downgrade() -> None:
    op.drop_table('webhook_events')
    op.drop_table('media_items')
    op.drop_table('galleries')
    op.drop_table('subscription_addons')
    op.drop_table('subscriptions')
    op.drop_table('tenants')
