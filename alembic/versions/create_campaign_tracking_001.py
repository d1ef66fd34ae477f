"""create campaign tracking records and ad accounts

Revision ID: create_campaign_tracking_001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'create_campaign_tracking_001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create campaign_tracking_records table
    op.create_table(
        'campaign_tracking_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),

        # Identity
        sa.Column('campaign_id', sa.String(length=100), nullable=False),
        sa.Column('platform', sa.String(length=20), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=True),

        # Ad account
        sa.Column('external_account_id', sa.String(length=100), nullable=True),
        sa.Column('pixel_id', sa.String(length=100), nullable=True),
        sa.Column('page_ref', sa.String(length=100), nullable=True),
        sa.Column('instagram_actor_id', sa.String(length=100), nullable=True),

        # State machine
        sa.Column('processing_status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.Column('failed_step', sa.String(length=40), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('error_code', sa.String(length=100), nullable=True),
        sa.Column('retryable', sa.Boolean(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('step_claimed_at', sa.DateTime(), nullable=True),
        sa.Column('last_processed_at', sa.DateTime(), nullable=True),

        # Remote identifiers
        sa.Column('external_campaign_id', sa.String(length=255), nullable=True),
        sa.Column('external_campaign_name', sa.String(length=255), nullable=True),
        sa.Column('external_campaign_status', sa.String(length=40), nullable=True),
        sa.Column('external_budget_ref', sa.String(length=255), nullable=True),
        sa.Column('external_bidding_strategy_ref', sa.String(length=255), nullable=True),

        # Sub-resources
        sa.Column('targeting_units', sa.JSON(), nullable=False),
        sa.Column('creatives', sa.JSON(), nullable=False),
        sa.Column('ads', sa.JSON(), nullable=False),
        sa.Column('geo_targets', sa.JSON(), nullable=False),
        sa.Column('keyword_batches', sa.JSON(), nullable=False),
        sa.Column('keywords_added', sa.Boolean(), nullable=False, server_default=sa.false()),

        # Budget
        sa.Column('allocated_budget', sa.Float(), nullable=True),
        sa.Column('daily_budget', sa.BigInteger(), nullable=True),
        sa.Column('currency', sa.String(length=10), nullable=False, server_default='USD'),

        sa.Column('original_campaign_data', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),

        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('campaign_id', 'platform', name='uq_tracking_campaign_platform'),
    )

    # Create indexes
    op.create_index('ix_campaign_tracking_records_id', 'campaign_tracking_records', ['id'])
    op.create_index('ix_campaign_tracking_records_campaign_id', 'campaign_tracking_records', ['campaign_id'])
    op.create_index('ix_campaign_tracking_records_user_id', 'campaign_tracking_records', ['user_id'])
    op.create_index('ix_campaign_tracking_records_processing_status', 'campaign_tracking_records', ['processing_status'])

    # Create ad_accounts table
    op.create_table(
        'ad_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('platform', sa.String(length=20), nullable=False),
        sa.Column('external_account_id', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('currency', sa.String(length=10), nullable=True),
        sa.Column('pixel_or_conversion_id', sa.String(length=100), nullable=True),
        sa.Column('page_or_publisher_ref', sa.String(length=100), nullable=True),
        sa.Column('instagram_actor_id', sa.String(length=100), nullable=True),
        sa.Column('integration_status', sa.String(length=40), nullable=False, server_default='PENDING'),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_index('ix_ad_accounts_id', 'ad_accounts', ['id'])
    op.create_index('ix_ad_accounts_user_id', 'ad_accounts', ['user_id'])
    op.create_index('idx_ad_account_user_platform', 'ad_accounts', ['user_id', 'platform', 'is_primary'])


def downgrade():
    op.drop_index('idx_ad_account_user_platform', table_name='ad_accounts')
    op.drop_index('ix_ad_accounts_user_id', table_name='ad_accounts')
    op.drop_index('ix_ad_accounts_id', table_name='ad_accounts')
    op.drop_table('ad_accounts')

    op.drop_index('ix_campaign_tracking_records_processing_status', table_name='campaign_tracking_records')
    op.drop_index('ix_campaign_tracking_records_user_id', table_name='campaign_tracking_records')
    op.drop_index('ix_campaign_tracking_records_campaign_id', table_name='campaign_tracking_records')
    op.drop_index('ix_campaign_tracking_records_id', table_name='campaign_tracking_records')
    op.drop_table('campaign_tracking_records')
