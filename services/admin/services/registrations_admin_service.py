"""Servicio para administración de inscripciones"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from typing import Dict, List
import logging

from app.core.config import settings
from services.admin.models.admin import UpdateRegistrationRequest
from shared.database.models import Registration
from shared.utils.errors import DuplicatePhone, EmptyRequiredField, RegistrationNotFound
from shared.utils.timeouts import with_timeout

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "nombre": "El nombre es obligatorio",
    "telefono": "El teléfono es obligatorio",
    "direccion": "La dirección es obligatoria",
}


class RegistrationsAdminService:
    """Operaciones del panel sobre inscripciones"""

    async def list_registrations(self, db: AsyncSession) -> List[Registration]:
        """Listar inscripciones, más recientes primero"""
        stmt = select(Registration).order_by(Registration.created_at.desc(), Registration.id.desc())
        result = await with_timeout(db.execute(stmt), "list_registrations")
        return list(result.scalars().all())

    async def get_summary(self, db: AsyncSession) -> Dict[str, int]:
        """Totales de inscripciones y check-ins"""
        stmt = select(
            func.count(Registration.id),
            func.count(Registration.id).filter(Registration.checked_in.is_(True)),
        )
        result = await with_timeout(db.execute(stmt), "registrations_summary")
        registered, checked_in = result.one()

        return {
            "registered": registered,
            "checked_in": checked_in,
            "max_capacity": settings.MAX_REGISTRATIONS,
            "remaining": max(settings.MAX_REGISTRATIONS - registered, 0),
        }

    async def get_registration(self, db: AsyncSession, registration_id: int) -> Registration:
        """
        Obtener inscripción por ID

        Raises:
            RegistrationNotFound: Si no existe
        """
        stmt = select(Registration).where(Registration.id == registration_id)
        result = await with_timeout(db.execute(stmt), "find_registration")
        registration = result.scalar_one_or_none()

        if registration is None:
            raise RegistrationNotFound(registration_id)
        return registration

    async def update_registration(
        self,
        db: AsyncSession,
        registration_id: int,
        changes: UpdateRegistrationRequest
    ) -> Registration:
        """
        Editar los campos enviados de una inscripción

        Raises:
            RegistrationNotFound: Si no existe
            EmptyRequiredField: Si se vacía un campo obligatorio
            DuplicatePhone: Si el nuevo teléfono ya pertenece a otra inscripción
        """
        registration = await self.get_registration(db, registration_id)
        data = changes.model_dump(exclude_unset=True)

        for field, message in REQUIRED_FIELDS.items():
            if field in data and not (data[field] or "").strip():
                raise EmptyRequiredField(field, message)

        for field, value in data.items():
            if isinstance(value, str):
                value = value.strip()
            if field in ("iglesia", "pastor") and not value:
                value = None
            setattr(registration, field, value)

        try:
            await with_timeout(db.commit(), "update_registration")
        except IntegrityError:
            await db.rollback()
            raise DuplicatePhone()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(registration)
        logger.info(f"Inscripción #{registration_id} actualizada: {sorted(data)}")
        return registration

    async def delete_registration(self, db: AsyncSession, registration_id: int) -> None:
        """
        Eliminar una inscripción

        Raises:
            RegistrationNotFound: Si no existe
        """
        registration = await self.get_registration(db, registration_id)
        await db.delete(registration)
        try:
            await with_timeout(db.commit(), "delete_registration")
        except Exception:
            await db.rollback()
            raise
        logger.info(f"Inscripción #{registration_id} eliminada")
