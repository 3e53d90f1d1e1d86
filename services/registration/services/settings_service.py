"""Servicio para la configuración del evento (event_settings)"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from shared.database.models import EventSetting
from shared.utils.timeouts import with_timeout

logger = logging.getLogger(__name__)

REGISTRATION_ENABLED_KEY = "registration_enabled"


class EventSettingsService:
    """Lectura y escritura de la bandera registration_enabled"""

    @staticmethod
    async def is_registration_enabled(db: AsyncSession) -> bool:
        """
        Leer registration_enabled desde el store.

        Si la fila no existe el registro se considera abierto.
        """
        stmt = select(EventSetting).where(EventSetting.key == REGISTRATION_ENABLED_KEY)
        result = await with_timeout(db.execute(stmt), "read_registration_enabled")
        setting = result.scalar_one_or_none()

        if setting is None:
            return True
        return setting.value.strip().lower() == "true"

    @staticmethod
    async def set_registration_enabled(db: AsyncSession, enabled: bool) -> bool:
        """Habilitar o deshabilitar nuevos registros"""
        stmt = select(EventSetting).where(EventSetting.key == REGISTRATION_ENABLED_KEY)
        result = await with_timeout(db.execute(stmt), "read_registration_enabled")
        setting = result.scalar_one_or_none()

        value = "true" if enabled else "false"
        if setting is None:
            db.add(EventSetting(key=REGISTRATION_ENABLED_KEY, value=value))
        else:
            setting.value = value

        await with_timeout(db.commit(), "write_registration_enabled")
        logger.info(f"Registro {'habilitado' if enabled else 'deshabilitado'}")
        return enabled
