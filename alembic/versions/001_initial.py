"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Families table
    op.create_table(
        'families',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('brand', sa.String(length=64), nullable=False),
        sa.Column('family', sa.String(length=128), nullable=False),
        sa.Column('display_name', sa.String(length=256), nullable=False),
        sa.Column('attributes', postgresql.JSONB(astext_type=sa.Text()), nullable=False,
                  server_default=sa.text("'{}'::jsonb")),
        sa.Column('min_images_required', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('target_images', sa.Integer(), nullable=False, server_default='25'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='building'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('brand', 'family', name='uq_family_brand_family'),
        sa.CheckConstraint("status IN ('building', 'ready', 'locked')", name='ck_family_status'),
    )
    op.create_index('ix_families_status', 'families', ['status'])

    # Reference images table
    op.create_table(
        'reference_images',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('content_hash', sa.String(length=64), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=False),
        sa.Column('original_url', sa.Text(), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('width', sa.Integer(), nullable=False),
        sa.Column('height', sa.Integer(), nullable=False),
        sa.Column('content_type', sa.String(length=32), nullable=False),
        sa.Column('quality_score', sa.Numeric(precision=4, scale=2), nullable=True),
        sa.Column('source', sa.String(length=32), nullable=False, server_default='marketplace'),
        sa.Column('embedding', postgresql.ARRAY(sa.Float()), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('content_hash', name='uq_reference_image_content_hash'),
    )
    op.create_index('ix_reference_images_family_id', 'reference_images', ['family_id'])

    # Processed listings ledger
    op.create_table(
        'processed_listings',
        sa.Column('external_listing_id', sa.String(length=128), nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('condition', sa.String(length=64), nullable=False, server_default='unknown'),
        sa.Column('image_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('processed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('external_listing_id'),
    )


def downgrade() -> None:
    # Drop indexes
    op.drop_index('ix_reference_images_family_id', table_name='reference_images')
    op.drop_index('ix_families_status', table_name='families')

    # Drop tables
    op.drop_table('processed_listings')
    op.drop_table('reference_images')
    op.drop_table('families')
