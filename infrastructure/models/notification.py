"""
站内通知数据库模型
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Index
from datetime import datetime, timezone

from .base import Base


class NotificationModel(Base):
    """站内通知，recipient_id 为空表示发给整个角色"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, nullable=True, comment="接收人ID")
    recipient_role = Column(String(20), nullable=False, comment="接收角色: admin/customer/store_owner")
    title = Column(String(255), nullable=False, comment="标题")
    body = Column(Text, nullable=False, comment="内容")
    category = Column(String(50), nullable=False, default="refund", comment="分类")
    link = Column(String(500), nullable=True, comment="跳转链接")
    is_read = Column(Boolean, nullable=False, default=False, comment="是否已读")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    __table_args__ = (
        Index("ix_notifications_recipient", "recipient_role", "recipient_id", "is_read"),
    )

    def __repr__(self):
        return f"<NotificationModel(id={self.id}, role='{self.recipient_role}', title='{self.title}')>"
