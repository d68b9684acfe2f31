"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Connected Google accounts
    op.create_table(
        'google_accounts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.Integer(), nullable=True),
        sa.Column('scope', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    # Client reports
    op.create_table(
        'client_reports',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('client_name', sa.String(length=200), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=True),
        sa.Column('search_console_property_id', sa.String(length=500), nullable=True),
        sa.Column('ga4_property_id', sa.String(length=100), nullable=True),
        sa.Column('google_account_id', sa.Integer(), nullable=True),
        sa.Column('share_token', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['google_account_id'], ['google_accounts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('share_token')
    )

    # Tracked keywords
    op.create_table(
        'keywords',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('client_report_id', sa.Integer(), nullable=False),
        sa.Column('keyword', sa.String(length=500), nullable=False),
        sa.Column('tracking_status', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['client_report_id'], ['client_reports.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_keywords_report', 'keywords', ['client_report_id'])
    op.create_index('idx_keywords_unique', 'keywords', ['client_report_id', 'keyword'], unique=True)

    # Weekly keyword performance
    op.create_table(
        'keyword_performance',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('keyword_id', sa.Integer(), nullable=False),
        sa.Column('week_start_date', sa.Date(), nullable=False),
        sa.Column('week_end_date', sa.Date(), nullable=False),
        sa.Column('avg_position', sa.Float(), nullable=False),
        sa.Column('best_position', sa.Integer(), nullable=True),
        sa.Column('impressions', sa.Integer(), nullable=False),
        sa.Column('clicks', sa.Integer(), nullable=False),
        sa.Column('ctr', sa.Float(), nullable=False),
        sa.Column('ranking_url', sa.Text(), nullable=True),
        sa.Column('position_change', sa.Float(), nullable=True),
        sa.Column('data_source', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['keyword_id'], ['keywords.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_keyword_performance_keyword', 'keyword_performance', ['keyword_id'])
    op.create_index(
        'idx_keyword_performance_unique', 'keyword_performance', ['keyword_id', 'week_start_date'], unique=True
    )

    # Ranking alerts
    op.create_table(
        'keyword_alerts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('keyword_id', sa.Integer(), nullable=False),
        sa.Column('alert_type', sa.String(length=50), nullable=False),
        sa.Column('threshold', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_triggered', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['keyword_id'], ['keywords.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_keyword_alerts_unique', 'keyword_alerts', ['keyword_id', 'alert_type'], unique=True)

    # PageSpeed Insights cache
    op.create_table(
        'page_audits',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('strategy', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('raw_json', sa.JSON(), nullable=True),
        sa.Column('collected_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_page_audits_lookup', 'page_audits', ['url', 'strategy', 'source', 'collected_at'])

    # CrUX cache
    op.create_table(
        'cwv_measurements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('origin', sa.Text(), nullable=True),
        sa.Column('form_factor', sa.String(length=20), nullable=False),
        sa.Column('p75_lcp_ms', sa.Float(), nullable=True),
        sa.Column('p75_inp_ms', sa.Float(), nullable=True),
        sa.Column('p75_cls', sa.Float(), nullable=True),
        sa.Column('p75_fcp_ms', sa.Float(), nullable=True),
        sa.Column('p75_ttfb_ms', sa.Float(), nullable=True),
        sa.Column('grade', sa.String(length=1), nullable=True),
        sa.Column('window_start', sa.String(length=10), nullable=True),
        sa.Column('window_end', sa.String(length=10), nullable=True),
        sa.Column('collected_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_cwv_lookup', 'cwv_measurements', ['url', 'form_factor', 'collected_at'])

    # Report data cache
    op.create_table(
        'report_cache',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('report_id', sa.Integer(), nullable=False),
        sa.Column('data_type', sa.String(length=50), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['report_id'], ['client_reports.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_report_cache_lookup', 'report_cache', ['report_id', 'data_type'])

    # AI visibility
    op.create_table(
        'ai_visibility_profiles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('client_report_id', sa.Integer(), nullable=False),
        sa.Column('overall_score', sa.Integer(), nullable=False),
        sa.Column('sentiment_score', sa.Integer(), nullable=False),
        sa.Column('share_of_voice', sa.Integer(), nullable=False),
        sa.Column('citation_count', sa.Integer(), nullable=False),
        sa.Column('last_updated', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['client_report_id'], ['client_reports.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_report_id')
    )

    op.create_table(
        'ai_citations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('profile_id', sa.Integer(), nullable=False),
        sa.Column('platform', sa.String(length=50), nullable=False),
        sa.Column('query', sa.Text(), nullable=False),
        sa.Column('response_text', sa.Text(), nullable=True),
        sa.Column('citation_position', sa.Integer(), nullable=True),
        sa.Column('citation_context', sa.Text(), nullable=True),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('sentiment', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['profile_id'], ['ai_visibility_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_ai_citations_profile', 'ai_citations', ['profile_id', 'created_at'])

    # Application log
    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=200), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_logs_created_at', 'logs', ['created_at'])


def downgrade() -> None:
    op.drop_table('logs')
    op.drop_table('ai_citations')
    op.drop_table('ai_visibility_profiles')
    op.drop_table('report_cache')
    op.drop_table('cwv_measurements')
    op.drop_table('page_audits')
    op.drop_table('keyword_alerts')
    op.drop_table('keyword_performance')
    op.drop_table('keywords')
    op.drop_table('client_reports')
    op.drop_table('google_accounts')
