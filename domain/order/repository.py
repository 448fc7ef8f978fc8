"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Order, OrderRefundStatus


class OrderRepository(ABC):
    """订单仓储抽象接口"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单（含明细）"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """根据ID获取订单（含明细）"""
        pass

    @abstractmethod
    async def get_for_requester(self, order_id: int, customer_id: Optional[int]) -> Optional[Order]:
        """获取请求者可见的订单；customer_id 为空时不做归属过滤"""
        pass

    @abstractmethod
    async def set_refund_status(self, order_id: int, refund_status: OrderRefundStatus) -> bool:
        """更新订单退款状态，返回是否命中"""
        pass
