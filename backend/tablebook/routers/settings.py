import logging
from typing import Any, Callable, Mapping, TypeVar

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..deps import get_config, get_current_admin_id, get_session
from ..domain.calendar import (
    availability_settings_from_dict,
    availability_settings_to_dict,
    closure_settings_from_dict,
    closure_settings_to_dict,
)
from ..domain.capacity import capacity_model_from_dict, capacity_model_to_dict
from ..domain.confirmation import auto_confirmation_from_dict, auto_confirmation_to_dict
from ..domain.errors import DomainError, SettingsRejectedError, ValidationError
from ..domain.resolution import SettingSource
from ..infrastructure.repositories import SqlAlchemySettingsRepository
from ..schemas import SettingRead
from ..usecases import settings as settings_usecase
from ..utils.audit_log import emit_audit_log
from .errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])

T = TypeVar("T")


def _parse(parser: Callable[[Mapping[str, Any]], T], payload: Mapping[str, Any]) -> T:
    """Malformed payloads are reported in the same violations shape as failed validation."""
    try:
        return parser(payload)
    except ValidationError as exc:
        raise SettingsRejectedError([str(exc)]) from exc


def _audit_update(setting_key: str, admin_id: int) -> None:
    try:
        emit_audit_log(
            action="settings.updated",
            initiator="admin",
            admin_id=admin_id,
            extra={"setting_key": setting_key},
        )
    except RuntimeError:
        logger.warning("audit log failed for settings key %s", setting_key, exc_info=True)


@router.get("/closures", response_model=SettingRead)
async def get_closures(session: AsyncSession = Depends(get_session)) -> SettingRead:
    try:
        resolved = await settings_usecase.load_closure_settings(SqlAlchemySettingsRepository(session))
    except DomainError as exc:
        raise to_http_exception(exc)
    return SettingRead(value=closure_settings_to_dict(resolved.value), source=resolved.source)


@router.put("/closures", response_model=SettingRead)
async def put_closures(
    payload: dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> SettingRead:
    repo = SqlAlchemySettingsRepository(session)
    async with session.begin():
        try:
            saved = await settings_usecase.save_closure_settings(repo, _parse(closure_settings_from_dict, payload))
        except DomainError as exc:
            raise to_http_exception(exc)
    _audit_update(settings_usecase.CLOSURES_KEY, admin_id)
    return SettingRead(value=closure_settings_to_dict(saved), source=SettingSource.DATABASE)


@router.get("/availability", response_model=SettingRead)
async def get_availability(session: AsyncSession = Depends(get_session)) -> SettingRead:
    try:
        resolved = await settings_usecase.load_availability_settings(SqlAlchemySettingsRepository(session))
    except DomainError as exc:
        raise to_http_exception(exc)
    return SettingRead(value=availability_settings_to_dict(resolved.value), source=resolved.source)


@router.put("/availability", response_model=SettingRead)
async def put_availability(
    payload: dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> SettingRead:
    repo = SqlAlchemySettingsRepository(session)
    async with session.begin():
        try:
            settings = _parse(availability_settings_from_dict, payload)
            saved = await settings_usecase.save_availability_settings(repo, settings)
        except DomainError as exc:
            raise to_http_exception(exc)
    _audit_update(settings_usecase.AVAILABILITY_KEY, admin_id)
    return SettingRead(value=availability_settings_to_dict(saved), source=SettingSource.DATABASE)


@router.get("/capacity", response_model=SettingRead)
async def get_capacity(
    session: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_config),
) -> SettingRead:
    try:
        resolved = await settings_usecase.load_capacity_model(SqlAlchemySettingsRepository(session), config=config)
    except DomainError as exc:
        raise to_http_exception(exc)
    return SettingRead(value=capacity_model_to_dict(resolved.value), source=resolved.source)


@router.put("/capacity", response_model=SettingRead)
async def put_capacity(
    payload: dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> SettingRead:
    repo = SqlAlchemySettingsRepository(session)
    async with session.begin():
        try:
            saved = await settings_usecase.save_capacity_model(repo, _parse(capacity_model_from_dict, payload))
        except DomainError as exc:
            raise to_http_exception(exc)
    _audit_update(settings_usecase.CAPACITY_KEY, admin_id)
    return SettingRead(value=capacity_model_to_dict(saved), source=SettingSource.DATABASE)


@router.get("/auto-confirmation", response_model=SettingRead)
async def get_auto_confirmation(
    session: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_config),
) -> SettingRead:
    try:
        resolved = await settings_usecase.load_auto_confirmation(SqlAlchemySettingsRepository(session), config=config)
    except DomainError as exc:
        raise to_http_exception(exc)
    return SettingRead(value=auto_confirmation_to_dict(resolved.value), source=resolved.source)


@router.put("/auto-confirmation", response_model=SettingRead)
async def put_auto_confirmation(
    payload: dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> SettingRead:
    repo = SqlAlchemySettingsRepository(session)
    async with session.begin():
        try:
            saved = await settings_usecase.save_auto_confirmation(repo, _parse(auto_confirmation_from_dict, payload))
        except DomainError as exc:
            raise to_http_exception(exc)
    _audit_update(settings_usecase.AUTO_CONFIRMATION_KEY, admin_id)
    return SettingRead(value=auto_confirmation_to_dict(saved), source=SettingSource.DATABASE)
