"""Rutas de administración"""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict

from app.core.config import settings
from shared.database.session import get_db
from shared.database.models import Profile
from shared.auth.dependencies import require_capability
from shared.auth.permissions import Capability, Role
from shared.auth.supabase_client import SupabaseAuthClient, get_auth_client
from services.admin.models.admin import (
    RegistrationsListResponse,
    RegistrationsSummary,
    UpdateRegistrationRequest,
    SetCheckInRequest,
    DeleteRegistrationResponse,
    EventSettingsResponse,
    UpdateRegistrationEnabledRequest,
    StaffResponse,
    StaffListResponse,
    AddRoleRequest,
    DeleteStaffResponse,
)
from services.admin.services.registrations_admin_service import RegistrationsAdminService
from services.admin.services.staff_service import StaffService
from services.checkin.services.checkin_service import CheckInService
from services.registration.models.registration import RegistrationResponse
from services.registration.services.settings_service import EventSettingsService
from services.tickets.codec import encode


router = APIRouter()


def _staff_response(profile: Profile) -> StaffResponse:
    return StaffResponse(
        id=str(profile.id),
        email=profile.email,
        display_name=profile.display_name,
        roles=sorted(r.role for r in profile.roles),
        created_at=profile.created_at
    )


# ==================== REGISTRATIONS ====================

@router.get("/registrations", response_model=RegistrationsListResponse)
async def get_registrations(
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.VIEW_DASHBOARD))
):
    """
    Listar inscripciones con totales

    Requiere permiso view_dashboard (todos los roles del staff)
    """
    service = RegistrationsAdminService()

    registrations = await service.list_registrations(db)
    summary = await service.get_summary(db)

    return RegistrationsListResponse(
        registrations=[RegistrationResponse.model_validate(r) for r in registrations],
        summary=RegistrationsSummary(**summary)
    )


@router.get("/registrations/{registration_id}/ticket")
async def get_registration_ticket(
    registration_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.VIEW_DASHBOARD))
):
    """Imagen PNG del ticket (código QR) de una inscripción"""
    service = RegistrationsAdminService()
    registration = await service.get_registration(db, registration_id)

    return Response(
        content=encode(registration),
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="ticket-{registration.id}.png"'}
    )


@router.patch("/registrations/{registration_id}", response_model=RegistrationResponse)
async def update_registration(
    registration_id: int,
    request: UpdateRegistrationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.EDIT_REGISTRATIONS))
):
    """
    Editar una inscripción

    Requiere permiso edit_registrations
    """
    service = RegistrationsAdminService()
    registration = await service.update_registration(db, registration_id, request)
    return RegistrationResponse.model_validate(registration)


@router.delete("/registrations/{registration_id}", response_model=DeleteRegistrationResponse)
async def delete_registration(
    registration_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.EDIT_REGISTRATIONS))
):
    """
    Eliminar una inscripción

    Requiere permiso edit_registrations
    """
    service = RegistrationsAdminService()
    await service.delete_registration(db, registration_id)

    return DeleteRegistrationResponse(
        message="La inscripción ha sido eliminada exitosamente",
        id=registration_id
    )


@router.put("/registrations/{registration_id}/checkin", response_model=RegistrationResponse)
async def set_registration_checkin(
    registration_id: int,
    request: SetCheckInRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.CHECKIN))
):
    """
    Marcar o desmarcar el check-in desde el panel

    Requiere permiso checkin
    """
    registration = await CheckInService.set_checked_in(db, registration_id, request.checked_in)
    return RegistrationResponse.model_validate(registration)


# ==================== SETTINGS ====================

@router.get("/settings", response_model=EventSettingsResponse)
async def get_settings(
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.VIEW_DASHBOARD))
):
    """Configuración actual del evento"""
    return EventSettingsResponse(
        registration_enabled=await EventSettingsService.is_registration_enabled(db),
        max_capacity=settings.MAX_REGISTRATIONS,
        event_name=settings.EVENT_NAME
    )


@router.put("/settings/registration-enabled", response_model=EventSettingsResponse)
async def update_registration_enabled(
    request: UpdateRegistrationEnabledRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.MANAGE_SETTINGS))
):
    """
    Habilitar o deshabilitar nuevos registros

    Requiere permiso manage_settings
    """
    enabled = await EventSettingsService.set_registration_enabled(db, request.enabled)

    return EventSettingsResponse(
        registration_enabled=enabled,
        max_capacity=settings.MAX_REGISTRATIONS,
        event_name=settings.EVENT_NAME
    )


# ==================== STAFF ====================

@router.get("/staff", response_model=StaffListResponse)
async def get_staff(
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.MANAGE_STAFF))
):
    """
    Listar usuarios del staff con sus roles

    Requiere permiso manage_staff (solo super_admin)
    """
    service = StaffService()
    profiles = await service.list_staff(db)
    return StaffListResponse(staff=[_staff_response(p) for p in profiles])


@router.post("/staff/{user_id}/roles", response_model=StaffResponse)
async def add_staff_role(
    user_id: str,
    request: AddRoleRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.MANAGE_STAFF))
):
    """
    Asignar un rol a un usuario del staff

    Requiere permiso manage_staff. No permite cambiar los propios roles.
    """
    service = StaffService()

    try:
        profile = await service.add_role(
            db=db,
            user_id=user_id,
            role=request.role,
            current_user_id=current_user.get("user_id")
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")

    return _staff_response(profile)


@router.delete("/staff/{user_id}/roles/{role}", response_model=StaffResponse)
async def remove_staff_role(
    user_id: str,
    role: Role,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(require_capability(Capability.MANAGE_STAFF))
):
    """
    Quitar un rol a un usuario del staff

    Requiere permiso manage_staff. No permite cambiar los propios roles.
    """
    service = StaffService()

    try:
        profile = await service.remove_role(
            db=db,
            user_id=user_id,
            role=role,
            current_user_id=current_user.get("user_id")
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")

    return _staff_response(profile)


@router.delete("/staff/{user_id}", response_model=DeleteStaffResponse)
async def delete_staff(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    current_user: Dict = Depends(require_capability(Capability.MANAGE_STAFF))
):
    """
    Eliminar un usuario del staff (roles, perfil e identidad de Supabase Auth)

    Requiere permiso manage_staff. No permite eliminar el propio usuario.
    """
    service = StaffService(auth_client=auth_client)

    try:
        deleted = await service.delete_staff(
            db=db,
            user_id=user_id,
            current_user_id=current_user.get("user_id")
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")

    return DeleteStaffResponse(message="Usuario eliminado correctamente", user_id=user_id)
