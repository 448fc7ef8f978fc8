"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        message_key: str | None = None,
        format_params: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key=message_key,
            format_params=format_params,
        )


class RefundValidationException(DomainValidationException):
    """退款请求参数非法（缺少字段、类型错误、明细缺失等）"""

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(message, field=field, details=details)
        self.error_type = "RefundValidationError"


class InvalidRefundAmountException(DomainValidationException):
    def __init__(self, amount, limit=None):
        details = {"amount": str(amount)}
        if limit is not None:
            details["limit"] = str(limit)
        super().__init__("Invalid refund amount", field="amount", details=details)
        self.code = BusinessCode.REFUND_INVALID_AMOUNT
        self.error_type = "InvalidRefundAmount"


class OrderNotFoundException(BusinessException):
    """订单不存在或不属于当前用户（刻意合并，避免泄露他人订单是否存在）"""

    def __init__(self, order_id: Optional[int] = None):
        details = {"order_id": order_id} if order_id is not None else None
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message="Order not found or unauthorized",
            error_type="OrderNotFound",
            details=details,
        )


class RefundNotFoundException(BusinessException):
    def __init__(self, refund_id: Optional[int] = None):
        details = {"refund_id": refund_id} if refund_id is not None else None
        super().__init__(
            code=BusinessCode.REFUND_NOT_FOUND,
            message="Refund not found",
            error_type="RefundNotFound",
            details=details,
        )


class InvalidRefundStateException(BusinessException):
    """状态不允许当前操作"""

    def __init__(
        self,
        message: str,
        *,
        code: int = BusinessCode.REFUND_INVALID_STATE,
        error_type: str = "InvalidRefundState",
        details: Optional[dict] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
        )


class CancelledOrderRefundException(InvalidRefundStateException):
    def __init__(self, order_id: int):
        super().__init__(
            "Cannot refund a cancelled order",
            error_type="CancelledOrder",
            details={"order_id": order_id},
        )


class OrderAlreadyRefundedException(InvalidRefundStateException):
    def __init__(self, order_id: int):
        super().__init__(
            "Order has already been refunded",
            code=BusinessCode.ORDER_ALREADY_REFUNDED,
            error_type="OrderAlreadyRefunded",
            details={"order_id": order_id},
        )


class RefundAlreadyOpenException(InvalidRefundStateException):
    def __init__(self, order_id: int):
        super().__init__(
            "A refund request for this order is already in progress",
            code=BusinessCode.REFUND_ALREADY_OPEN,
            error_type="RefundAlreadyOpen",
            details={"order_id": order_id},
        )


class RefundNotCancellableException(InvalidRefundStateException):
    def __init__(self, refund_id: int, status: str):
        super().__init__(
            "Refund not found or cannot be cancelled",
            code=BusinessCode.REFUND_NOT_CANCELLABLE,
            error_type="RefundNotCancellable",
            details={"refund_id": refund_id, "status": status},
        )


class RefundProcessingFailedException(BusinessException):
    """网关退款失败：失败已落库（status=failed）后再抛给调用方"""

    def __init__(self, refund_id: int, gateway_message: str):
        super().__init__(
            code=BusinessCode.REFUND_PROCESSING_FAILED,
            message=f"Refund processing failed: {gateway_message}",
            error_type="RefundProcessingFailed",
            details={"refund_id": refund_id, "gateway_message": gateway_message},
        )
        self.refund_id = refund_id
        self.gateway_message = gateway_message
