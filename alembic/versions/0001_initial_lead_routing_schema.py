"""initial_lead_routing_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'webhook_sources',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('webhook_id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('lead_type', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('forwarding_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('total_leads', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_lead_at', sa.DateTime(), nullable=True),
        sa.Column('auto_forward_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_forwarded_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_webhook_sources_id', 'webhook_sources', ['id'])
    op.create_index('ix_webhook_sources_webhook_id', 'webhook_sources', ['webhook_id'], unique=True)

    op.create_table(
        'workspaces',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('outbound_webhook_url', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_workspaces_id', 'workspaces', ['id'])

    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('source_webhook_id', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True),
        sa.Column('zip_code', sa.String(length=10), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_contacts_id', 'contacts', ['id'])
    op.create_index('ix_contacts_source_webhook_id', 'contacts', ['source_webhook_id'])
    op.create_index('ix_contacts_email', 'contacts', ['email'])
    # One live contact per (source, phone); soft-deleted rows do not count
    op.create_index(
        'uq_contacts_source_phone_active',
        'contacts',
        ['source_webhook_id', 'phone'],
        unique=True,
        postgresql_where=sa.text('deleted_at IS NULL'),
        sqlite_where=sa.text('deleted_at IS NULL'),
    )

    op.create_table(
        'leads',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('contact_id', sa.Integer(), sa.ForeignKey('contacts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('source_webhook_id', sa.String(length=100), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('product_type', sa.String(length=100), nullable=True),
        sa.Column('zip_code', sa.String(length=10), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True),
        sa.Column('source', sa.String(length=255), nullable=True),
        sa.Column('workspace_id', sa.Integer(), sa.ForeignKey('workspaces.id', ondelete='SET NULL'), nullable=True),
        sa.Column('routing_rule_id', sa.Integer(), nullable=True),
        sa.Column('raw_payload', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='new'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_leads_id', 'leads', ['id'])
    op.create_index('ix_leads_contact_id', 'leads', ['contact_id'])
    op.create_index('ix_leads_source_webhook_id', 'leads', ['source_webhook_id'])
    op.create_index('ix_leads_email', 'leads', ['email'])
    op.create_index('ix_leads_product_type', 'leads', ['product_type'])
    op.create_index('ix_leads_zip_code', 'leads', ['zip_code'])
    op.create_index('ix_leads_workspace_id', 'leads', ['workspace_id'])
    op.create_index('ix_leads_status', 'leads', ['status'])

    op.create_table(
        'routing_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('workspace_id', sa.Integer(), sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source_webhook_id', sa.String(length=100), nullable=True),
        sa.Column('product_types', sa.JSON(), nullable=False),
        sa.Column('zip_codes', sa.JSON(), nullable=False),
        sa.Column('states', sa.JSON(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_routing_rules_id', 'routing_rules', ['id'])
    op.create_index('ix_routing_rules_workspace_id', 'routing_rules', ['workspace_id'])
    op.create_index('ix_routing_rules_source_webhook_id', 'routing_rules', ['source_webhook_id'])
    op.create_index('ix_routing_rules_source_priority', 'routing_rules', ['source_webhook_id', 'priority', 'id'])

    op.create_table(
        'forwarding_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('source_webhook_id', sa.String(length=100), nullable=False),
        sa.Column('target_webhook_id', sa.String(length=100), nullable=False),
        sa.Column('target_webhook_url', sa.Text(), nullable=False),
        sa.Column('product_types', sa.JSON(), nullable=False),
        sa.Column('zip_codes', sa.JSON(), nullable=False),
        sa.Column('states', sa.JSON(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('forward_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('forward_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_forwarded_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_forwarding_rules_id', 'forwarding_rules', ['id'])
    op.create_index('ix_forwarding_rules_source_webhook_id', 'forwarding_rules', ['source_webhook_id'])
    op.create_index('ix_forwarding_rules_source_priority', 'forwarding_rules', ['source_webhook_id', 'priority', 'id'])

    op.create_table(
        'forwarding_deliveries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('lead_id', sa.Integer(), nullable=False),
        sa.Column('contact_id', sa.Integer(), nullable=True),
        sa.Column('rule_id', sa.Integer(), nullable=False),
        sa.Column('source_webhook_id', sa.String(length=100), nullable=False),
        sa.Column('target_webhook_id', sa.String(length=100), nullable=False),
        sa.Column('target_webhook_url', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('next_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('matched_product', sa.String(length=100), nullable=True),
        sa.Column('matched_zip', sa.String(length=10), nullable=True),
        sa.Column('matched_state', sa.String(length=2), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('lead_id', 'target_webhook_url', name='uq_forwarding_deliveries_lead_target'),
    )
    op.create_index('ix_forwarding_deliveries_id', 'forwarding_deliveries', ['id'])
    op.create_index('ix_forwarding_deliveries_lead_id', 'forwarding_deliveries', ['lead_id'])
    op.create_index('ix_forwarding_deliveries_rule_id', 'forwarding_deliveries', ['rule_id'])
    op.create_index('ix_forwarding_deliveries_source_webhook_id', 'forwarding_deliveries', ['source_webhook_id'])
    op.create_index('ix_forwarding_deliveries_status', 'forwarding_deliveries', ['status'])

    op.create_table(
        'forwarding_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('delivery_id', sa.Integer(), nullable=True),
        sa.Column('lead_id', sa.Integer(), nullable=True),
        sa.Column('contact_id', sa.Integer(), nullable=True),
        sa.Column('rule_id', sa.Integer(), nullable=True),
        sa.Column('source_webhook_id', sa.String(length=100), nullable=False),
        sa.Column('target_webhook_id', sa.String(length=100), nullable=False),
        sa.Column('target_webhook_url', sa.Text(), nullable=False),
        sa.Column('forwarded_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('forward_status', sa.String(length=20), nullable=False),
        sa.Column('http_status_code', sa.Integer(), nullable=True),
        sa.Column('response_body', sa.Text(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('matched_product', sa.String(length=100), nullable=True),
        sa.Column('matched_zip', sa.String(length=10), nullable=True),
        sa.Column('matched_state', sa.String(length=2), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
    )
    op.create_index('ix_forwarding_log_id', 'forwarding_log', ['id'])
    op.create_index('ix_forwarding_log_delivery_id', 'forwarding_log', ['delivery_id'])
    op.create_index('ix_forwarding_log_lead_id', 'forwarding_log', ['lead_id'])
    op.create_index('ix_forwarding_log_source_forwarded_at', 'forwarding_log', ['source_webhook_id', 'forwarded_at'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('lead_id', sa.Integer(), sa.ForeignKey('leads.id', ondelete='SET NULL'), nullable=True),
        sa.Column('contact_id', sa.Integer(), sa.ForeignKey('contacts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('source_webhook_id', sa.String(length=100), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=20), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('service_type', sa.String(length=100), nullable=True),
        sa.Column('customer_zip', sa.String(length=10), nullable=True),
        sa.Column('customer_state', sa.String(length=2), nullable=True),
        sa.Column('appointment_date', sa.DateTime(), nullable=True),
        sa.Column('appointment_notes', sa.Text(), nullable=True),
        sa.Column('estimated_value', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('matched_workspace_id', sa.Integer(), sa.ForeignKey('workspaces.id', ondelete='SET NULL'), nullable=True),
        sa.Column('routing_method', sa.String(length=20), nullable=False, server_default='unrouted'),
        sa.Column('routing_rule_id', sa.Integer(), nullable=True),
        sa.Column('forward_status', sa.String(length=20), nullable=True),
        sa.Column('forward_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('forward_response', sa.Text(), nullable=True),
        sa.Column('forwarded_at', sa.DateTime(), nullable=True),
        sa.Column('raw_payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_appointments_id', 'appointments', ['id'])
    op.create_index('ix_appointments_lead_id', 'appointments', ['lead_id'])
    op.create_index('ix_appointments_matched_workspace_id', 'appointments', ['matched_workspace_id'])


def downgrade() -> None:
    op.drop_table('appointments')
    op.drop_table('forwarding_log')
    op.drop_table('forwarding_deliveries')
    op.drop_table('forwarding_rules')
    op.drop_table('routing_rules')
    op.drop_table('leads')
    op.drop_index('uq_contacts_source_phone_active', table_name='contacts')
    op.drop_table('contacts')
    op.drop_table('workspaces')
    op.drop_table('webhook_sources')
