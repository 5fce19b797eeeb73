"""Initial DAM schema

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19 10:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector


# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b9d2'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    op.create_table(
        'tenants',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_tenants_name', 'tenants', ['name'], unique=True)

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('tenant_id', sa.String(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_profiles_tenant_id', 'profiles', ['tenant_id'])

    op.create_table(
        'folders',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('tenant_id', sa.String(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_folders_tenant_id', 'folders', ['tenant_id'])
    op.create_index('ix_folders_created_at', 'folders', ['created_at'])
    # Case-insensitive uniqueness backs the duplicate-folder check
    op.create_index(
        'uq_folders_tenant_lower_name',
        'folders',
        ['tenant_id', sa.text('lower(name)')],
        unique=True,
    )

    op.create_table(
        'assets',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('tenant_id', sa.String(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('folder_id', sa.String(), sa.ForeignKey('folders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('owner_id', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('file_path', sa.String(), nullable=False),
        sa.Column('file_type', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('embedding', Vector(768), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_assets_tenant_id', 'assets', ['tenant_id'])
    op.create_index('ix_assets_folder_id', 'assets', ['folder_id'])
    op.create_index('ix_assets_created_at', 'assets', ['created_at'])
    op.create_index('idx_assets_tenant_folder', 'assets', ['tenant_id', 'folder_id'])
    op.create_index(
        'ix_assets_embedding_cosine', 'assets', ['embedding'],
        postgresql_using='hnsw',
        postgresql_ops={'embedding': 'vector_cosine_ops'},
    )

    event_type = sa.Enum('view', 'download', 'upload', name='eventtype')
    op.create_table(
        'analytics_events',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('tenant_id', sa.String(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('asset_id', sa.String(), sa.ForeignKey('assets.id', ondelete='SET NULL'), nullable=True),
        sa.Column('event_type', event_type, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_analytics_events_tenant_id', 'analytics_events', ['tenant_id'])
    op.create_index('ix_analytics_events_asset_id', 'analytics_events', ['asset_id'])
    op.create_index('ix_analytics_events_event_type', 'analytics_events', ['event_type'])
    op.create_index('ix_analytics_events_created_at', 'analytics_events', ['created_at'])
    op.create_index('idx_analytics_events_tenant_type', 'analytics_events', ['tenant_id', 'event_type'])

    op.create_table(
        'verification_results',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content_type', sa.String(), nullable=False),
        sa.Column('content_url', sa.Text(), nullable=True),
        sa.Column('content_text', sa.Text(), nullable=True),
        sa.Column('analysis_result', sa.JSON(), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('is_fake', sa.Boolean(), nullable=False),
        sa.Column('detected_issues', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_verification_results_user_id', 'verification_results', ['user_id'])
    op.create_index('ix_verification_results_tenant_id', 'verification_results', ['tenant_id'])
    op.create_index('ix_verification_results_created_at', 'verification_results', ['created_at'])


def downgrade() -> None:
    op.drop_table('verification_results')
    op.drop_table('analytics_events')
    sa.Enum(name='eventtype').drop(op.get_bind(), checkfirst=True)
    op.drop_table('assets')
    op.drop_index('uq_folders_tenant_lower_name', table_name='folders')
    op.drop_table('folders')
    op.drop_table('profiles')
    op.drop_table('tenants')
