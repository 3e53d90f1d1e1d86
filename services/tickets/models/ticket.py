"""Modelos Pydantic para tickets"""
from pydantic import BaseModel
from typing import Optional


class TicketPayload(BaseModel):
    """Datos embebidos en el código QR de una inscripción"""
    id: int
    nombre: str
    telefono: Optional[str] = None
    evento: Optional[str] = None


class TicketResponse(BaseModel):
    """Ticket listo para mostrar: payload + imagen QR en base64"""
    payload: TicketPayload
    qr_text: str
    qr_png_base64: str
