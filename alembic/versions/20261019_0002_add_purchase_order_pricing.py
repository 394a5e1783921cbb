"""add purchase order pricing

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 15:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: Union[str, None] = "20261019_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "purchase_orders",
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )
    op.add_column(
        "purchase_order_items",
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )
    op.add_column(
        "purchase_order_items",
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )
    op.create_check_constraint(
        "ck_purchase_order_items_unit_price_non_negative", "purchase_order_items", "unit_price >= 0"
    )


def downgrade() -> None:
    op.drop_constraint(
        "ck_purchase_order_items_unit_price_non_negative", "purchase_order_items", type_="check"
    )
    op.drop_column("purchase_order_items", "total_price")
    op.drop_column("purchase_order_items", "unit_price")
    op.drop_column("purchase_orders", "total_amount")
