"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

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
    # Properties table (language-agnostic)
    op.create_table(
        'properties',
        sa.Column('id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('brand_id', sa.BigInteger(), nullable=True),
        sa.Column('stars', sa.Integer(), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('lon', sa.Float(), nullable=True),
        sa.Column('country', sa.String(length=64), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('address_raw', sa.String(length=512), nullable=True),
        sa.Column('amenities', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('images', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('raw', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Localized fields, one row per (property, language)
    op.create_table(
        'property_i18n',
        sa.Column('property_id', sa.BigInteger(), nullable=False),
        sa.Column('lang', sa.String(length=10), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('policies', sa.Text(), nullable=True),
        sa.Column('address', sa.String(length=512), nullable=True),
        sa.Column('extras', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('property_id', 'lang'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE')
    )
    op.create_index('idx_i18n_lang', 'property_i18n', ['lang'])

    # Reviews table
    op.create_table(
        'reviews',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.BigInteger(), nullable=False),
        sa.Column('source_id', sa.String(length=191), nullable=False),
        sa.Column('author', sa.String(length=255), nullable=True),
        sa.Column('rating', sa.Numeric(precision=5, scale=2), nullable=True),
        sa.Column('lang', sa.String(length=10), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('text', sa.Text(), nullable=True),
        sa.Column('aspects', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('source', sa.String(length=64), server_default='cupid', nullable=False),
        sa.Column('raw', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('property_id', 'source', 'source_id', name='uq_reviews_natural')
    )
    op.create_index('idx_reviews_prop_created', 'reviews', ['property_id', 'created_at'])

    # Ingestion misses, one row per (property, reason)
    op.create_table(
        'ingest_misses',
        sa.Column('id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('http_status', sa.Integer(), nullable=False),
        sa.Column('seen_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', 'reason')
    )


def downgrade() -> None:
    op.drop_table('ingest_misses')
    op.drop_index('idx_reviews_prop_created', table_name='reviews')
    op.drop_table('reviews')
    op.drop_index('idx_i18n_lang', table_name='property_i18n')
    op.drop_table('property_i18n')
    op.drop_table('properties')
