from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from tortoise.exceptions import DoesNotExist, ValidationError
from loguru import logger

from app.core.security.auth import decode_access_token
from app.models.user import User
from app.services.shipping import RateAggregator, ShipmentService, ShippingOrchestrator

jwt_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(jwt_bearer)
) -> User:
    """Получение текущего пользователя из JWT токена"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = payload.get("user_id")
        email = payload.get("sub")

        if user_id:
            user = await User.get(id=user_id)
        elif email:
            user = await User.get(email=email)
        else:
            raise credentials_exception
    except (JWTError, DoesNotExist, ValidationError, ValueError) as e:
        logger.error(f"Authentication error: {str(e)}")
        raise credentials_exception

    return user


async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    """Проверка активного пользователя"""
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inactive user"
        )
    return user


async def admin_required(user: User = Depends(get_current_active_user)) -> User:
    """Проверка прав администратора"""
    if not user.is_admin:
        logger.warning(f"Admin access denied for user: {user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return user


# Shipping services are built once in the app lifespan
def get_rate_aggregator(request: Request) -> RateAggregator:
    return request.app.state.rate_aggregator


def get_orchestrator(request: Request) -> ShippingOrchestrator:
    return request.app.state.shipping_orchestrator


def get_shipment_service(request: Request) -> ShipmentService:
    return request.app.state.shipment_service
