"""Modelos Pydantic para administración"""
from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime

from services.registration.models.registration import RegistrationResponse
from shared.auth.permissions import Role


# ==================== REGISTRATIONS ====================

class RegistrationsSummary(BaseModel):
    """Totales del panel"""
    registered: int
    checked_in: int
    max_capacity: int
    remaining: int


class RegistrationsListResponse(BaseModel):
    """Respuesta con lista de inscripciones"""
    registrations: List[RegistrationResponse]
    summary: RegistrationsSummary


class UpdateRegistrationRequest(BaseModel):
    """Request para editar una inscripción (solo los campos enviados)"""
    nombre: Optional[str] = None
    telefono: Optional[str] = None
    direccion: Optional[str] = None
    iglesia: Optional[str] = None
    pastor: Optional[str] = None


class SetCheckInRequest(BaseModel):
    """Request para marcar o desmarcar el check-in"""
    checked_in: bool


class DeleteRegistrationResponse(BaseModel):
    """Respuesta al eliminar una inscripción"""
    message: str
    id: int


# ==================== SETTINGS ====================

class EventSettingsResponse(BaseModel):
    """Configuración del evento"""
    registration_enabled: bool
    max_capacity: int
    event_name: str


class UpdateRegistrationEnabledRequest(BaseModel):
    """Request para habilitar/deshabilitar el registro"""
    enabled: bool


# ==================== STAFF ====================

class StaffResponse(BaseModel):
    """Respuesta con información de un usuario del staff"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    display_name: Optional[str] = None
    roles: List[str]
    created_at: datetime


class StaffListResponse(BaseModel):
    """Respuesta con lista de staff"""
    staff: List[StaffResponse]


class AddRoleRequest(BaseModel):
    """Request para asignar un rol"""
    role: Role


class DeleteStaffResponse(BaseModel):
    """Respuesta al eliminar un usuario del staff"""
    message: str
    user_id: str
