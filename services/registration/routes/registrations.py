"""Rutas públicas de registro"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from shared.database.session import get_db
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.registration.models.registration import (
    RegistrationRequest,
    RegistrationResponse,
    RegistrationCreatedResponse,
    RegistrationStatusResponse,
)
from services.registration.services.admission_service import AdmissionService, count_registrations
from services.registration.services.settings_service import EventSettingsService
from services.tickets.codec import build_ticket


router = APIRouter()


def get_admission_service() -> AdmissionService:
    return AdmissionService()


@router.post("", response_model=RegistrationCreatedResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["registration"])
async def create_registration(
    request: Request,  # Necesario para rate limiter
    form: RegistrationRequest,
    db: AsyncSession = Depends(get_db),
    service: AdmissionService = Depends(get_admission_service)
):
    """
    Registrarse al concierto

    Público. Devuelve la inscripción y el ticket con su código QR.
    Los rechazos (campos vacíos, registro cerrado, cupo lleno, teléfono
    duplicado) se responden con un código de error específico.
    """
    registration = await service.register(db, form)

    return RegistrationCreatedResponse(
        registration=RegistrationResponse.model_validate(registration),
        ticket=build_ticket(registration),
    )


@router.get("/status", response_model=RegistrationStatusResponse)
async def get_registration_status(db: AsyncSession = Depends(get_db)):
    """Estado público del registro: habilitado y cupos restantes"""
    enabled = await EventSettingsService.is_registration_enabled(db)
    registered = await count_registrations(db)

    return RegistrationStatusResponse(
        registration_enabled=enabled,
        max_capacity=settings.MAX_REGISTRATIONS,
        registered=registered,
        remaining=max(settings.MAX_REGISTRATIONS - registered, 0),
    )
