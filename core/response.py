"""
统一响应格式定义
"""
from typing import Any, Optional, Generic, TypeVar
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from shared.codes import BusinessCode


T = TypeVar("T")


class ErrorDetail(BaseModel):
    """错误详情"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    message_key: Optional[str] = None
    locale: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        """序列化时间戳为 UTC ISO8601，统一使用 Z 结尾"""
        ts = timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        return ts.isoformat().replace("+00:00", "Z")


class Pagination(BaseModel):
    """分页信息"""
    page: int
    limit: int
    total: int
    pages: int


class Response(BaseModel, Generic[T]):
    """统一响应模型"""
    success: bool = True
    code: int
    message: str
    data: Optional[T] = None
    pagination: Optional[Pagination] = None
    error: Optional[ErrorDetail] = None

    def to_content(self) -> dict:
        """序列化为 JSON 响应体（camelCase，省略空的分页字段）"""
        content = self.model_dump(mode="json", by_alias=True)
        if content.get("pagination") is None:
            content.pop("pagination", None)
        return content


def success_response(
    data: Any = None,
    message: str = "Success",
    code: int = BusinessCode.SUCCESS
) -> Response:
    """
    创建成功响应

    Args:
        data: 返回数据
        message: 成功消息
        code: 业务状态码
    """
    return Response(
        success=True,
        code=code,
        message=message,
        data=data,
        error=None
    )


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
    locale: Optional[str] = None,
    message_key: Optional[str] = None,
) -> Response:
    """
    创建错误响应

    Args:
        code: 业务状态码
        message: 错误消息（已本地化）
        error_type: 错误类型
        details: 错误详情
        field: 错误字段
        request_id: 请求ID
        locale: 渲染消息时使用的语言
        message_key: i18n 消息键
    """
    return Response(
        success=False,
        code=code,
        message=message,
        data=None,
        error=ErrorDetail(
            type=error_type,
            details=details,
            field=field,
            request_id=request_id,
            locale=locale,
            message_key=message_key,
        )
    )


def paginated_response(
    items: list,
    total: int,
    page: int,
    limit: int,
    message: str = "Success"
) -> Response[list]:
    """
    创建分页响应

    Args:
        items: 数据列表
        total: 总数
        page: 当前页（从1开始）
        limit: 每页大小
        message: 成功消息
    """
    pages = (total + limit - 1) // limit if limit > 0 else 0

    return Response(
        success=True,
        code=BusinessCode.SUCCESS,
        message=message,
        data=items,
        pagination=Pagination(page=page, limit=limit, total=total, pages=pages),
        error=None
    )
