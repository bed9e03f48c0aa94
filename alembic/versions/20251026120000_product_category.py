
from alembic import op
import sqlalchemy as sa

revision = "20251026120000"
down_revision = "20251019090000"

def upgrade():
    op.add_column('products', sa.Column('category', sa.String(length=120), nullable=True))
    op.create_index('ix_products_category', 'products', ['category'])

def downgrade():
    op.drop_index('ix_products_category', table_name='products')
    op.drop_column('products', 'category')
