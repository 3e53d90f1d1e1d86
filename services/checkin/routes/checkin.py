"""Rutas de check-in en puerta"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict
import asyncio
import logging

from shared.auth.dependencies import require_capability
from shared.auth.permissions import Capability
from shared.database.session import get_db
from shared.utils.errors import MalformedPayload
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.checkin.camera import decode_image
from services.checkin.models.checkin import CheckInRequest, CheckInResponse, ScanRequest
from services.checkin.services.checkin_service import CheckInService
from services.tickets.codec import decode
from services.tickets.models.ticket import TicketPayload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/decode", response_model=TicketPayload)
@limiter.limit(RATE_LIMITS["checkin"])
async def decode_scan(
    request: Request,
    scan: ScanRequest,
    current_user: Dict = Depends(require_capability(Capability.CHECKIN))
):
    """
    Decodificar el texto de un QR escaneado

    No consulta la base de datos: solo valida la estructura del ticket.
    Un QR inválido responde 422 con el código de error; el escaneo puede continuar.
    """
    return decode(scan.data)


@router.post("/decode-image", response_model=TicketPayload)
@limiter.limit(RATE_LIMITS["checkin"])
async def decode_scan_image(
    request: Request,
    current_user: Dict = Depends(require_capability(Capability.CHECKIN))
):
    """
    Decodificar una foto del QR (cuerpo: imagen PNG/JPEG)

    Para dispositivos que envían el frame en lugar del texto.
    """
    body = await request.body()
    text = await asyncio.to_thread(decode_image, body) if body else None
    if text is None:
        raise MalformedPayload()
    return decode(text)


@router.post("/confirm", response_model=CheckInResponse)
async def confirm_checkin(
    checkin: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.CHECKIN))
):
    """
    Confirmar el check-in de una inscripción

    Idempotente: confirmar dos veces deja checked_in en true sin error.
    """
    registration = await CheckInService.check_in(db, checkin.id)
    logger.info(f"Check-in #{registration.id} confirmado por {current_user.get('email')}")

    return CheckInResponse(
        id=registration.id,
        nombre=registration.nombre,
        telefono=registration.telefono,
        checked_in=registration.checked_in,
        message=f"{registration.nombre} ha sido registrado",
    )
