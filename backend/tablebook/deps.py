from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.repositories import PaymentGateway
from .infrastructure.payments import UnconfiguredPaymentGateway
from .infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemySettingsRepository
from .utils.auth import decode_access_token

_BEARER = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_config() -> Settings:
    return get_settings()


async def get_current_admin_id(
    authorization: str | None = Header(default=None),
    config: Settings = Depends(get_config),
) -> int:
    if authorization is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="not authenticated", headers=_BEARER)
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid auth scheme", headers=_BEARER)
    try:
        return decode_access_token(token.strip(), secret=config.auth_secret, algorithms=[config.auth_algorithm])
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token", headers=_BEARER) from exc


async def get_settings_repo(session: AsyncSession = Depends(get_session)) -> SqlAlchemySettingsRepository:
    return SqlAlchemySettingsRepository(session)


async def get_booking_repo(session: AsyncSession = Depends(get_session)) -> SqlAlchemyBookingRepository:
    return SqlAlchemyBookingRepository(session)


_payment_gateway: PaymentGateway = UnconfiguredPaymentGateway()


def get_payment_gateway() -> PaymentGateway:
    """Override through `app.dependency_overrides` to wire a real processor."""
    return _payment_gateway
