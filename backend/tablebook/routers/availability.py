from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..deps import get_config, get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemySettingsRepository
from ..schemas import AvailabilityQuery, AvailabilityRead
from ..usecases import reservations as reservation_usecase

router = APIRouter(prefix="/availability", tags=["availability"])


@router.post("/check", response_model=AvailabilityRead)
async def check_availability(
    payload: AvailabilityQuery,
    session: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_config),
) -> AvailabilityRead:
    settings_repo = SqlAlchemySettingsRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    try:
        check = await reservation_usecase.check_availability(
            settings_repo,
            booking_repo,
            config=config,
            reservation_type=payload.reservation_type,
            reservation_date=payload.reservation_date,
            reservation_time=payload.reservation_time,
            party_size=payload.party_size,
        )
    except DomainError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return AvailabilityRead.from_check(check)
