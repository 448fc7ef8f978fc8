"""
API依赖项 - 认证、授权与应用服务装配
"""
from dataclasses import dataclass
from typing import Callable, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.services.refund_service import RefundApplicationService
from core.config import settings
from core.exceptions import ForbiddenException, TokenExpiredException, UnauthorizedException
from core.logging_config import get_logger
import structlog


logger = get_logger(__name__)

ROLES = frozenset({"customer", "admin", "store_owner"})

# HTTP Bearer for direct API calls; missing credentials are reported as 401 by get_current_actor
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT issued by the marketplace auth service",
    auto_error=False,
)


@dataclass(frozen=True)
class Actor:
    """已认证的调用方（来自 JWT 的 sub 与 role）"""
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def decode_actor(token: str) -> Actor:
    """校验 JWT 并提取调用方"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredException()
    except jwt.PyJWTError as e:
        logger.info("token_rejected", error=str(e))
        raise UnauthorizedException("Invalid authentication credentials")

    role = payload.get("role")
    try:
        actor_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedException("Invalid authentication credentials")
    if role not in ROLES:
        raise UnauthorizedException("Invalid authentication credentials")
    return Actor(id=actor_id, role=role)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Actor:
    """从 Bearer token 中解析当前调用方"""
    if not credentials or not credentials.credentials:
        raise UnauthorizedException()
    actor = decode_actor(credentials.credentials)
    structlog.contextvars.bind_contextvars(actor_id=actor.id, actor_role=actor.role)
    return actor


def require_roles(*roles: str) -> Callable:
    """角色守卫：调用方角色不在 roles 中时返回 403"""
    allowed = frozenset(roles)

    async def _guard(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise ForbiddenException()
        return actor

    return _guard


require_admin = require_roles("admin")
require_store_owner = require_roles("store_owner")
require_customer = require_roles("customer")
require_customer_or_admin = require_roles("customer", "admin")


async def get_refund_service(request: Request) -> RefundApplicationService:
    """组合根在 lifespan 中把网关、通知与 UoW 工厂挂到 app.state 上"""
    state = request.app.state
    return RefundApplicationService(
        uow_factory=state.uow_factory,
        gateway=state.payment_gateway,
        notifier=state.notification_sink,
    )
