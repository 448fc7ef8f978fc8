"""
退款API路由 - FastAPI表现层

静态路径（admin/all、store-owner/all、customer/my-refunds）必须声明在 /{refund_id} 之前。
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from api.dependencies import (
    Actor,
    get_refund_service,
    require_admin,
    require_customer,
    require_customer_or_admin,
    require_store_owner,
)
from application.dtos.refunds import CancelRefundDTO, ProcessRefundDTO, RefundRequestDTO
from application.services.refund_service import RefundApplicationService
from core.config import settings
from core.i18n import t
from core.response import paginated_response, success_response
from domain.refund.entity import RefundStatus

router = APIRouter(
    prefix="/refunds",
    tags=["Refunds"]
)

_page = Query(1, ge=1, description="页码（从1开始）")
_limit = Query(
    settings.refund.default_page_size,
    ge=1,
    le=settings.refund.max_page_size,
    description="每页数量",
)


@router.post("/request", summary="发起退款")
async def request_refund(
    payload: RefundRequestDTO,
    actor: Actor = Depends(require_customer_or_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    """
    发起退款请求

    - **orderId**: 订单ID
    - **reason**: 退款原因
    - **refundType**: full（默认）或 partial
    - **items**: partial 时必填，每项含 productId / quantity / refundAmount / reason
    """
    # 管理员代客户发起时不做订单归属过滤
    requester_id = None if actor.is_admin else actor.id
    result = await service.request_refund(payload, requester_id=requester_id)
    return success_response(data=result, message=t("Refund request submitted successfully"))


@router.get("/admin/all", summary="退款列表（管理员）")
async def list_all_refunds(
    status: Optional[RefundStatus] = Query(None, description="按状态过滤"),
    page: int = _page,
    limit: int = _limit,
    actor: Actor = Depends(require_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    result = await service.list_refunds(status=status, page=page, limit=limit)
    return paginated_response(items=result.items, total=result.total, page=result.page, limit=result.limit)


@router.get("/store-owner/all", summary="本店退款列表")
async def list_store_refunds(
    status: Optional[RefundStatus] = Query(None, description="按状态过滤"),
    page: int = _page,
    limit: int = _limit,
    actor: Actor = Depends(require_store_owner),
    service: RefundApplicationService = Depends(get_refund_service),
):
    result = await service.list_store_refunds(actor.id, status=status, page=page, limit=limit)
    return paginated_response(items=result.items, total=result.total, page=result.page, limit=result.limit)


@router.get("/customer/my-refunds", summary="我的退款")
async def list_my_refunds(
    actor: Actor = Depends(require_customer),
    service: RefundApplicationService = Depends(get_refund_service),
):
    refunds = await service.list_customer_refunds(actor.id)
    return success_response(data=refunds)


@router.post("/store-owner/{refund_id}/process", summary="店主处理退款")
async def store_process_refund(
    refund_id: int,
    payload: Optional[ProcessRefundDTO] = Body(None),
    actor: Actor = Depends(require_store_owner),
    service: RefundApplicationService = Depends(get_refund_service),
):
    result = await service.process_refund(
        refund_id, actor_id=actor.id, notes=payload.admin_notes if payload else None, store_owner_id=actor.id
    )
    return success_response(data=result, message=t("Refund processed successfully"))


@router.post("/store-owner/{refund_id}/cancel", summary="店主取消退款")
async def store_cancel_refund(
    refund_id: int,
    payload: Optional[CancelRefundDTO] = Body(None),
    actor: Actor = Depends(require_store_owner),
    service: RefundApplicationService = Depends(get_refund_service),
):
    result = await service.cancel_refund(
        refund_id, actor_id=actor.id, reason=payload.cancel_reason if payload else None, store_owner_id=actor.id
    )
    return success_response(data=result, message=t("Refund cancelled successfully"))


@router.post("/{refund_id}/process", summary="处理退款（管理员）")
async def process_refund(
    refund_id: int,
    payload: Optional[ProcessRefundDTO] = Body(None),
    actor: Actor = Depends(require_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    """
    通过支付网关执行退款

    网关失败时退款记为 failed 并返回 500，订单退款状态保持 requested
    """
    result = await service.process_refund(refund_id, actor_id=actor.id, notes=payload.admin_notes if payload else None)
    return success_response(data=result, message=t("Refund processed successfully"))


@router.post("/{refund_id}/cancel", summary="取消退款（管理员）")
async def cancel_refund(
    refund_id: int,
    payload: Optional[CancelRefundDTO] = Body(None),
    actor: Actor = Depends(require_admin),
    service: RefundApplicationService = Depends(get_refund_service),
):
    result = await service.cancel_refund(refund_id, actor_id=actor.id, reason=payload.cancel_reason if payload else None)
    return success_response(data=result, message=t("Refund cancelled successfully"))


@router.get("/{refund_id}", summary="退款详情")
async def get_refund(
    refund_id: int,
    service: RefundApplicationService = Depends(get_refund_service),
):
    refund = await service.get_refund(refund_id)
    return success_response(data=refund)
