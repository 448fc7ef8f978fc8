"""create_refund_tables

Revision ID: 3f2a9c41d7e8
Revises:
Create Date: 2026-03-01 09:00:12.418223

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f2a9c41d7e8'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


OPEN_REFUND_PREDICATE = "status IN ('pending', 'processing')"


def upgrade() -> None:
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('customer_id', sa.Integer(), nullable=True, comment='下单客户ID'),
        sa.Column('store_owner_id', sa.Integer(), nullable=True, comment='店主ID'),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False, comment='订单总额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD', comment='货币代码 ISO-4217'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='履约状态'),
        sa.Column('refund_status', sa.String(length=20), nullable=False, server_default='none', comment='退款状态: none/requested/partial/completed'),
        sa.Column('payment_intent_id', sa.String(length=200), nullable=True, comment='支付引用'),
        sa.Column('customer_email', sa.String(length=255), nullable=True, comment='客户邮箱'),
        sa.Column('customer_name', sa.String(length=100), nullable=True, comment='客户姓名'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
        comment='订单表（退款流程只使用其中的金额、归属与退款状态）'
    )
    op.create_index('ix_orders_id', 'orders', ['id'], unique=False)
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'], unique=False)
    op.create_index('ix_orders_store_owner_id', 'orders', ['store_owner_id'], unique=False)
    op.create_index('ix_orders_refund_status', 'orders', ['refund_status'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('order_id', sa.Integer(), nullable=False, comment='订单ID'),
        sa.Column('product_id', sa.Integer(), nullable=False, comment='商品ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False, comment='单价'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'], unique=False)
    op.create_index('ix_order_items_order_product', 'order_items', ['order_id', 'product_id'], unique=False)

    op.create_table(
        'refunds',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('order_id', sa.Integer(), nullable=False, comment='订单ID'),
        sa.Column('customer_id', sa.Integer(), nullable=True, comment='订单所属客户ID'),
        sa.Column('store_owner_id', sa.Integer(), nullable=True, comment='店主ID（冗余）'),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, comment='退款金额'),
        sa.Column('reason', sa.Text(), nullable=False, comment='退款原因'),
        sa.Column('refund_type', sa.String(length=20), nullable=False, comment='退款类型: full/partial'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='退款状态: pending/processing/completed/failed/cancelled'),
        sa.Column('payment_intent_id', sa.String(length=200), nullable=True, comment='支付引用（创建时从订单复制）'),
        sa.Column('gateway_refund_id', sa.String(length=200), nullable=True, comment='网关退款ID'),
        sa.Column('requested_by', sa.String(length=20), nullable=False, server_default='customer', comment='发起方: customer/admin'),
        sa.Column('requested_by_id', sa.Integer(), nullable=True, comment='发起人ID'),
        sa.Column('processed_by_id', sa.Integer(), nullable=True, comment='处理人ID'),
        sa.Column('admin_notes', sa.Text(), nullable=True, comment='处理备注'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True, comment='处理完成时间'),
        sa.CheckConstraint('amount > 0', name='ck_refunds_amount_positive'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        comment='退款表'
    )
    op.create_index('ix_refunds_id', 'refunds', ['id'], unique=False)
    op.create_index('ix_refunds_order_id', 'refunds', ['order_id'], unique=False)
    op.create_index('ix_refunds_customer_id', 'refunds', ['customer_id'], unique=False)
    op.create_index('ix_refunds_store_owner_id', 'refunds', ['store_owner_id'], unique=False)
    op.create_index('ix_refunds_status', 'refunds', ['status'], unique=False)
    op.create_index('ix_refunds_gateway_refund_id', 'refunds', ['gateway_refund_id'], unique=False)
    op.create_index('ix_refunds_created_at', 'refunds', ['created_at'], unique=False)
    op.create_index('ix_refunds_status_updated', 'refunds', ['status', 'updated_at'], unique=False)
    # 每个订单最多一笔 pending/processing 的退款
    op.create_index(
        'uq_refunds_open_per_order',
        'refunds',
        ['order_id'],
        unique=True,
        postgresql_where=sa.text(OPEN_REFUND_PREDICATE),
    )

    op.create_table(
        'refund_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('refund_id', sa.Integer(), nullable=False, comment='退款ID'),
        sa.Column('product_id', sa.Integer(), nullable=False, comment='商品ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, comment='明细退款金额'),
        sa.Column('reason', sa.Text(), nullable=True, comment='明细原因'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.CheckConstraint('quantity > 0', name='ck_refund_items_quantity_positive'),
        sa.CheckConstraint('amount > 0', name='ck_refund_items_amount_positive'),
        sa.ForeignKeyConstraint(['refund_id'], ['refunds.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_refund_items_id', 'refund_items', ['id'], unique=False)
    op.create_index('ix_refund_items_refund_id', 'refund_items', ['refund_id'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='主键ID'),
        sa.Column('recipient_id', sa.Integer(), nullable=True, comment='接收人ID'),
        sa.Column('recipient_role', sa.String(length=20), nullable=False, comment='接收角色: admin/customer/store_owner'),
        sa.Column('title', sa.String(length=255), nullable=False, comment='标题'),
        sa.Column('body', sa.Text(), nullable=False, comment='内容'),
        sa.Column('category', sa.String(length=50), nullable=False, server_default='refund', comment='分类'),
        sa.Column('link', sa.String(length=500), nullable=True, comment='跳转链接'),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false', comment='是否已读'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.PrimaryKeyConstraint('id'),
        comment='站内通知表'
    )
    op.create_index('ix_notifications_id', 'notifications', ['id'], unique=False)
    op.create_index('ix_notifications_recipient', 'notifications', ['recipient_role', 'recipient_id', 'is_read'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_notifications_recipient', table_name='notifications')
    op.drop_index('ix_notifications_id', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('ix_refund_items_refund_id', table_name='refund_items')
    op.drop_index('ix_refund_items_id', table_name='refund_items')
    op.drop_table('refund_items')

    op.drop_index('uq_refunds_open_per_order', table_name='refunds', postgresql_where=sa.text(OPEN_REFUND_PREDICATE))
    op.drop_index('ix_refunds_status_updated', table_name='refunds')
    op.drop_index('ix_refunds_created_at', table_name='refunds')
    op.drop_index('ix_refunds_gateway_refund_id', table_name='refunds')
    op.drop_index('ix_refunds_status', table_name='refunds')
    op.drop_index('ix_refunds_store_owner_id', table_name='refunds')
    op.drop_index('ix_refunds_customer_id', table_name='refunds')
    op.drop_index('ix_refunds_order_id', table_name='refunds')
    op.drop_index('ix_refunds_id', table_name='refunds')
    op.drop_table('refunds')

    op.drop_index('ix_order_items_order_product', table_name='order_items')
    op.drop_index('ix_order_items_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_refund_status', table_name='orders')
    op.drop_index('ix_orders_store_owner_id', table_name='orders')
    op.drop_index('ix_orders_customer_id', table_name='orders')
    op.drop_index('ix_orders_id', table_name='orders')
    op.drop_table('orders')
