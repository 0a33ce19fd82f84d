"""Lead routing schema: profiles, partner registry, lead matrix, consent ledger, submissions, marketplace

Revision ID: 3f6a9c1e2d84
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f6a9c1e2d84'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW = sa.text('(CURRENT_TIMESTAMP)')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('lead_profiles',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('report_id', sa.Text(), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('region', sa.Text(), nullable=False),
        sa.Column('client_name', sa.Text(), nullable=True),
        sa.Column('client_email', sa.Text(), nullable=True),
        sa.Column('client_phone', sa.Text(), nullable=True),
        sa.Column('issues', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('report_id'),
    )

    op.create_table('lead_assets',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('lead_profile_id', sa.Text(), nullable=False),
        sa.Column('kind', sa.Text(), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['lead_profile_id'], ['lead_profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_assets_lead_profile_id', 'lead_assets', ['lead_profile_id'])

    op.create_table('partners',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('region', sa.Text(), nullable=True),
        sa.Column('endpoint', sa.Text(), nullable=True),
        sa.Column('auth_type', sa.Text(), nullable=True),
        sa.Column('auth_config', sa.JSON(), nullable=True),
        sa.Column('allowed_channels', sa.JSON(), nullable=True),
        sa.Column('payout_amount', sa.Float(), nullable=True),
        sa.Column('payout_terms', sa.Text(), nullable=True),
        sa.Column('consent_text_version', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('is_priority', sa.Boolean(), nullable=True),
        sa.Column('last_assigned_at', sa.DateTime(), nullable=True),
        sa.Column('total_leads', sa.Integer(), nullable=True),
        sa.Column('converted_leads', sa.Integer(), nullable=True),
        sa.Column('seq', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_partners_category', 'partners', ['category'])
    op.create_index('ix_partners_seq', 'partners', ['seq'])

    op.create_table('state_partner_mappings',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('region', sa.Text(), nullable=False),
        sa.Column('category_key', sa.Text(), nullable=False),
        sa.Column('partner_id', sa.Text(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('region', 'category_key', 'priority', name='uq_state_category_priority'),
    )

    op.create_table('lead_matrix',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('report_id', sa.Text(), nullable=False),
        sa.Column('category_key', sa.Text(), nullable=False),
        sa.Column('partner_id', sa.Text(), nullable=True),
        sa.Column('is_interested', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('report_id', 'category_key', name='uq_report_category'),
    )
    op.create_index('ix_lead_matrix_report_id', 'lead_matrix', ['report_id'])

    op.create_table('consents',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('report_id', sa.Text(), nullable=False),
        sa.Column('category_key', sa.Text(), nullable=False),
        sa.Column('partner_id', sa.Text(), nullable=False),
        sa.Column('channel', sa.Text(), nullable=False),
        sa.Column('consent_type', sa.Text(), nullable=False),
        sa.Column('consent_text_version', sa.Text(), nullable=False),
        sa.Column('signature', sa.Text(), nullable=True),
        sa.Column('ip', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.Column('timezone', sa.Text(), nullable=True),
        sa.Column('gpc_signal', sa.Boolean(), nullable=True),
        sa.Column('portal_session_id', sa.Text(), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_consents_report_id', 'consents', ['report_id'])

    op.create_table('revocations',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('consent_id', sa.Text(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('method', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['consent_id'], ['consents.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_revocations_consent_id', 'revocations', ['consent_id'])

    op.create_table('lead_submissions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('report_id', sa.Text(), nullable=False),
        sa.Column('category_key', sa.Text(), nullable=False),
        sa.Column('partner_id', sa.Text(), nullable=False),
        sa.Column('idempotency_key', sa.Text(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('external_id', sa.Text(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('payout_expected', sa.Float(), nullable=True),
        sa.Column('payout_due_date', sa.Date(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('claimed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['partner_id'], ['partners.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key'),
    )
    op.create_index('ix_lead_submissions_report_id', 'lead_submissions', ['report_id'])
    op.create_index('ix_lead_submissions_status', 'lead_submissions', ['status'])

    op.create_table('contractors',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('company_name', sa.Text(), nullable=False),
        sa.Column('contact_name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('region', sa.Text(), nullable=True),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('service_areas', sa.JSON(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('is_priority', sa.Boolean(), nullable=True),
        sa.Column('last_assigned_at', sa.DateTime(), nullable=True),
        sa.Column('total_leads', sa.Integer(), nullable=True),
        sa.Column('converted_leads', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contractors_category', 'contractors', ['category'])

    op.create_table('contractor_leads',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('report_id', sa.Text(), nullable=True),
        sa.Column('customer_name', sa.Text(), nullable=False),
        sa.Column('customer_email', sa.Text(), nullable=True),
        sa.Column('customer_phone', sa.Text(), nullable=True),
        sa.Column('property_address', sa.Text(), nullable=False),
        sa.Column('region', sa.Text(), nullable=True),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('service_needed', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('priority', sa.Text(), nullable=True),
        sa.Column('source', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=True),
        sa.Column('is_flagged', sa.Boolean(), nullable=True),
        sa.Column('estimated_value', sa.Integer(), nullable=True),
        sa.Column('quote_amount', sa.Integer(), nullable=True),
        sa.Column('contractor_id', sa.Integer(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.Column('contacted_at', sa.DateTime(), nullable=True),
        sa.Column('quoted_at', sa.DateTime(), nullable=True),
        sa.Column('won_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['contractor_id'], ['contractors.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contractor_leads_report_id', 'contractor_leads', ['report_id'])

    op.create_table('distribution_rules',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lane', sa.Text(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('method', sa.Text(), nullable=False),
        sa.Column('scoring_weights', sa.JSON(), nullable=True),
        sa.Column('priority_ids', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('lane', 'category', name='uq_distribution_rule_lane_category'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('distribution_rules')
    op.drop_index('ix_contractor_leads_report_id', table_name='contractor_leads')
    op.drop_table('contractor_leads')
    op.drop_index('ix_contractors_category', table_name='contractors')
    op.drop_table('contractors')
    op.drop_index('ix_lead_submissions_status', table_name='lead_submissions')
    op.drop_index('ix_lead_submissions_report_id', table_name='lead_submissions')
    op.drop_table('lead_submissions')
    op.drop_index('ix_revocations_consent_id', table_name='revocations')
    op.drop_table('revocations')
    op.drop_index('ix_consents_report_id', table_name='consents')
    op.drop_table('consents')
    op.drop_index('ix_lead_matrix_report_id', table_name='lead_matrix')
    op.drop_table('lead_matrix')
    op.drop_table('state_partner_mappings')
    op.drop_index('ix_partners_seq', table_name='partners')
    op.drop_index('ix_partners_category', table_name='partners')
    op.drop_table('partners')
    op.drop_index('ix_lead_assets_lead_profile_id', table_name='lead_assets')
    op.drop_table('lead_assets')
    op.drop_table('lead_profiles')
