"""Codificación y decodificación del payload QR de los tickets"""
import base64
import io
import json
import logging
from typing import Any, Optional

import qrcode

from app.core.config import settings
from services.tickets.models.ticket import TicketPayload, TicketResponse
from shared.utils.errors import IncompleteFields, MalformedPayload

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "nombre")


def build_payload(registration: Any, event_name: Optional[str] = None) -> TicketPayload:
    """
    Construir el payload del ticket a partir de una inscripción

    Args:
        registration: Objeto con id, nombre y telefono (modelo SQLAlchemy o Pydantic)
        event_name: Identificador del evento (default: settings.EVENT_NAME)
    """
    return TicketPayload(
        id=registration.id,
        nombre=registration.nombre,
        telefono=registration.telefono,
        evento=event_name or settings.EVENT_NAME,
    )


def payload_to_text(payload: TicketPayload) -> str:
    """Serializar el payload como JSON determinista (claves ordenadas, solo ASCII)"""
    return json.dumps(payload.model_dump(), sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def render_qr_png(data: str) -> bytes:
    """
    Generar imagen PNG del código QR

    Args:
        data: Texto a codificar

    Returns:
        Bytes de la imagen PNG
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    img_buffer = io.BytesIO()
    img.save(img_buffer, format="PNG")
    return img_buffer.getvalue()


def encode(registration: Any, event_name: Optional[str] = None) -> bytes:
    """Codificar el ticket de una inscripción como imagen QR (PNG)"""
    text = payload_to_text(build_payload(registration, event_name))
    png = render_qr_png(text)
    logger.debug(f"QR generado para inscripción #{registration.id} ({len(png)} bytes)")
    return png


def encode_base64(registration: Any, event_name: Optional[str] = None) -> str:
    """PNG del ticket en base64 (para incrustar en JSON)"""
    return base64.b64encode(encode(registration, event_name)).decode("utf-8")


def build_ticket(registration: Any, event_name: Optional[str] = None) -> TicketResponse:
    """Ticket completo para respuestas JSON: payload, texto QR y PNG en base64"""
    payload = build_payload(registration, event_name)
    return TicketResponse(
        payload=payload,
        qr_text=payload_to_text(payload),
        qr_png_base64=encode_base64(registration, event_name),
    )


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def decode(text: str) -> TicketPayload:
    """
    Decodificar el texto escaneado de un QR

    Decodificación pura: no consulta el store.

    Raises:
        MalformedPayload: Si el texto no es un objeto JSON o el id no es entero
        IncompleteFields: Si falta el id o el nombre
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        raise MalformedPayload()

    if not isinstance(data, dict):
        raise MalformedPayload()

    missing = [field for field in REQUIRED_FIELDS if not _is_present(data.get(field))]
    if missing:
        raise IncompleteFields(f"Este código QR no es válido para el evento (faltan: {', '.join(missing)})")

    registration_id = data["id"]
    if isinstance(registration_id, bool) or not isinstance(registration_id, (int, str)):
        raise MalformedPayload()
    try:
        registration_id = int(registration_id)
    except ValueError:
        raise MalformedPayload()

    telefono = data.get("telefono")
    evento = data.get("evento")
    return TicketPayload(
        id=registration_id,
        nombre=str(data["nombre"]),
        telefono=None if telefono is None else str(telefono),
        evento=None if evento is None else str(evento),
    )
