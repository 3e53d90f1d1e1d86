"""Modelos Pydantic para registro de asistentes"""
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from services.tickets.models.ticket import TicketResponse


class RegistrationRequest(BaseModel):
    """
    Formulario público de registro

    Los campos obligatorios se validan en el pipeline de admisión para
    devolver un error específico por campo en lugar de un 422 genérico.
    """
    nombre: str = ""
    telefono: str = ""
    direccion: str = ""
    iglesia: Optional[str] = None
    pastor: Optional[str] = None
    confirmado: bool = False


class RegistrationResponse(BaseModel):
    """Respuesta con información de una inscripción"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    nombre: str
    telefono: str
    direccion: str
    iglesia: Optional[str] = None
    pastor: Optional[str] = None
    confirmado: bool
    checked_in: bool
    created_at: datetime


class RegistrationCreatedResponse(BaseModel):
    """Respuesta al registrarse: inscripción + ticket"""
    registration: RegistrationResponse
    ticket: TicketResponse


class RegistrationStatusResponse(BaseModel):
    """Estado público del registro"""
    registration_enabled: bool
    max_capacity: int
    registered: int
    remaining: int
