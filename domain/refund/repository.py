"""
退款仓储接口 - 定义退款数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from .entity import Refund, RefundItem, RefundStatus


class RefundRepository(ABC):
    """退款仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, refund: Refund) -> Refund:
        """创建退款记录（含部分退款明细）"""
        pass

    @abstractmethod
    async def get_by_id(self, refund_id: int, *, with_items: bool = False) -> Optional[Refund]:
        """根据ID获取退款"""
        pass

    @abstractmethod
    async def get_items(self, refund_id: int) -> List[RefundItem]:
        """获取部分退款明细"""
        pass

    @abstractmethod
    async def save_transition(self, refund: Refund, expected: RefundStatus) -> bool:
        """条件更新：仅当库中状态仍为 expected 时写入，返回是否更新成功"""
        pass

    @abstractmethod
    async def has_open_refund(self, order_id: int) -> bool:
        """订单是否存在 pending/processing 的退款"""
        pass

    @abstractmethod
    async def get_completed_amount(self, order_id: int) -> Decimal:
        """订单已完成的退款总额"""
        pass

    @abstractmethod
    async def get_latest_completed(self, order_id: int) -> Optional[Refund]:
        """订单最近一笔已完成的退款"""
        pass

    @abstractmethod
    async def list(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[RefundStatus] = None,
        store_owner_id: Optional[int] = None,
    ) -> List[Refund]:
        """分页列表（按创建时间倒序）"""
        pass

    @abstractmethod
    async def count(
        self,
        status: Optional[RefundStatus] = None,
        store_owner_id: Optional[int] = None,
    ) -> int:
        """统计数量"""
        pass

    @abstractmethod
    async def list_by_customer(self, customer_id: int) -> List[Refund]:
        """客户自己的退款（按创建时间倒序）"""
        pass

    @abstractmethod
    async def list_stale_processing(self, older_than: datetime, limit: int = 100) -> List[Refund]:
        """长时间停留在 processing 的退款，供对账任务使用"""
        pass
