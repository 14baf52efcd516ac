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
    # Products table
    op.create_table(
        'products',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('brand', sa.String(length=128), nullable=True),
        sa.Column('category_id', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('discontinued', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id')
    )

    # Retailers table
    op.create_table(
        'retailers',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('base_url', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('ships_from', sa.String(length=128), nullable=True),
        sa.Column('return_policy', sa.Text(), nullable=True),
        sa.Column('authorized_dealer', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id')
    )

    # Price listings table
    op.create_table(
        'price_listings',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('retailer_id', sa.String(length=64), nullable=False),
        sa.Column('external_id', sa.String(length=128), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('compare_at_price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='USD'),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('on_sale', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('product_url', sa.Text(), nullable=True),
        sa.Column('affiliate_url', sa.Text(), nullable=True),
        sa.Column('last_checked', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], ),
        sa.UniqueConstraint('product_id', 'retailer_id', 'external_id', name='uq_listing_product_retailer_sku')
    )

    # Price history table
    op.create_table(
        'price_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('retailer_id', sa.String(length=64), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], )
    )
    op.create_index('ix_price_history_product_recorded', 'price_history', ['product_id', 'recorded_at'])

    # Store products table
    op.create_table(
        'store_products',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('retailer_id', sa.String(length=64), nullable=False),
        sa.Column('canonical_product_id', sa.String(length=64), nullable=True),
        sa.Column('external_id', sa.String(length=128), nullable=False),
        sa.Column('title', sa.Text(), nullable=False, server_default=''),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('product_url', sa.Text(), nullable=True),
        sa.Column('affiliate_url', sa.Text(), nullable=True),
        sa.Column('raw_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], ),
        sa.ForeignKeyConstraint(['canonical_product_id'], ['products.id'], ),
        sa.UniqueConstraint('retailer_id', 'external_id', name='uq_store_product_retailer_sku')
    )
    op.create_index('ix_store_products_canonical', 'store_products', ['canonical_product_id'])

    # Retailer coupons table
    op.create_table(
        'retailer_coupons',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('retailer_id', sa.String(length=64), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('discount_type', sa.String(length=32), nullable=False),
        sa.Column('discount_value', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('min_purchase', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('auto_apply_url', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['retailer_id'], ['retailers.id'], )
    )


def downgrade() -> None:
    op.drop_table('retailer_coupons')
    op.drop_index('ix_store_products_canonical', table_name='store_products')
    op.drop_table('store_products')
    op.drop_index('ix_price_history_product_recorded', table_name='price_history')
    op.drop_table('price_history')
    op.drop_table('price_listings')
    op.drop_table('retailers')
    op.drop_table('products')
