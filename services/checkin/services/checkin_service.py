"""Servicio de check-in de inscripciones"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from shared.database.models import Registration
from shared.utils.errors import RegistrationNotFound
from shared.utils.timeouts import with_timeout

logger = logging.getLogger(__name__)


class CheckInService:
    """Transición de check-in sobre una inscripción"""

    @staticmethod
    async def set_checked_in(
        db: AsyncSession,
        registration_id: int,
        checked_in: bool
    ) -> Registration:
        """
        Fijar el estado de check-in de una inscripción

        Raises:
            RegistrationNotFound: Si la inscripción no existe
        """
        stmt = select(Registration).where(Registration.id == registration_id)
        result = await with_timeout(db.execute(stmt), "find_registration")
        registration = result.scalar_one_or_none()

        if registration is None:
            raise RegistrationNotFound(registration_id)

        registration.checked_in = checked_in
        await with_timeout(db.commit(), "update_checked_in")
        await db.refresh(registration)

        logger.info(f"Inscripción #{registration_id} checked_in={checked_in}")
        return registration

    @classmethod
    async def check_in(cls, db: AsyncSession, registration_id: int) -> Registration:
        """Marcar como ingresada. Idempotente: repetirlo no es un error."""
        return await cls.set_checked_in(db, registration_id, True)
