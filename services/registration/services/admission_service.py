"""Servicio de admisión: valida y crea inscripciones al concierto"""
from contextlib import nullcontext
from dataclasses import dataclass
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from typing import AsyncContextManager, Awaitable, Callable, Optional, Sequence
import logging
import math

from app.core.config import settings
from services.registration.models.registration import RegistrationRequest
from services.registration.services.settings_service import EventSettingsService
from shared.cache.redis_client import DistributedLock
from shared.database.models import Registration
from shared.utils.errors import (
    CapacityReached,
    DuplicatePhone,
    EmptyRequiredField,
    RegistrationClosed,
)
from shared.utils.timeouts import with_timeout

logger = logging.getLogger(__name__)

ADMISSION_LOCK_KEY = "registrations:admission"
LOCKED_STORE_CALLS = 5
LOCK_EXPIRE_MARGIN_SECONDS = 5


@dataclass(frozen=True)
class AdmissionContext:
    """Datos de una solicitud leídos al inicio de cada invocación"""
    form: RegistrationRequest
    registration_enabled: bool
    max_capacity: int


AdmissionRule = Callable[[AsyncSession, AdmissionContext], Awaitable[None]]


def normalize_form(form: RegistrationRequest) -> RegistrationRequest:
    """Quitar espacios y convertir opcionales vacíos en None"""
    return RegistrationRequest(
        nombre=form.nombre.strip(),
        telefono=form.telefono.strip(),
        direccion=form.direccion.strip(),
        iglesia=(form.iglesia or "").strip() or None,
        pastor=(form.pastor or "").strip() or None,
        confirmado=form.confirmado,
    )


def check_required_fields(form: RegistrationRequest) -> None:
    """Regla 1: campos obligatorios y confirmación. No hace I/O."""
    if not form.nombre.strip():
        raise EmptyRequiredField("nombre", "El nombre es obligatorio")
    if not form.telefono.strip():
        raise EmptyRequiredField("telefono", "El teléfono es obligatorio")
    if not form.direccion.strip():
        raise EmptyRequiredField("direccion", "La dirección es obligatoria")
    if not form.confirmado:
        raise EmptyRequiredField("confirmado", "Debe confirmar su asistencia")


async def check_registration_open(db: AsyncSession, ctx: AdmissionContext) -> None:
    """Regla 2: el registro debe estar habilitado"""
    if not ctx.registration_enabled:
        raise RegistrationClosed()


async def count_registrations(db: AsyncSession) -> int:
    stmt = select(func.count()).select_from(Registration)
    result = await with_timeout(db.execute(stmt), "count_registrations")
    return result.scalar_one()


async def check_capacity(db: AsyncSession, ctx: AdmissionContext) -> None:
    """Regla 3: no superar el cupo máximo"""
    current = await count_registrations(db)
    if current >= ctx.max_capacity:
        raise CapacityReached(
            f"Lo sentimos, hemos alcanzado el límite de {ctx.max_capacity} registros."
        )


async def check_unique_phone(db: AsyncSession, ctx: AdmissionContext) -> None:
    """Regla 4: un registro por número de teléfono"""
    stmt = select(Registration.id).where(Registration.telefono == ctx.form.telefono).limit(1)
    result = await with_timeout(db.execute(stmt), "find_registration_by_phone")
    if result.scalar_one_or_none() is not None:
        raise DuplicatePhone()


STORE_RULES: Sequence[AdmissionRule] = (
    check_registration_open,
    check_capacity,
    check_unique_phone,
)


def admission_lock_expire() -> int:
    """
    TTL del lock de admisión en segundos.

    Cubre las llamadas al store hechas con el lock tomado (lectura de la
    configuración, conteo, búsqueda de teléfono, commit y refresh), cada una
    acotada por STORE_TIMEOUT_SECONDS, más un margen.
    """
    return math.ceil(LOCKED_STORE_CALLS * settings.STORE_TIMEOUT_SECONDS) + LOCK_EXPIRE_MARGIN_SECONDS


def default_lock_factory(key: str) -> AsyncContextManager:
    if not settings.ADMISSION_LOCK_ENABLED:
        return nullcontext()
    return DistributedLock(key, timeout=5, expire=admission_lock_expire())


class AdmissionService:
    """
    Pipeline ordenado de admisión.

    El primer rechazo gana y no se escribe nada. Las reglas que consultan el
    store corren dentro de un lock distribuido para que dos sesiones no
    intercalen chequeo e inserción; la restricción UNIQUE de telefono cubre
    además el caso de un lock deshabilitado.
    """

    def __init__(
        self,
        rules: Sequence[AdmissionRule] = STORE_RULES,
        lock_factory: Callable[[str], AsyncContextManager] = default_lock_factory,
        max_capacity: Optional[int] = None
    ):
        self.rules = rules
        self.lock_factory = lock_factory
        self.max_capacity = max_capacity if max_capacity is not None else settings.MAX_REGISTRATIONS

    async def register(self, db: AsyncSession, form: RegistrationRequest) -> Registration:
        """
        Validar y crear una inscripción

        Raises:
            EmptyRequiredField, RegistrationClosed, CapacityReached, DuplicatePhone
            NetworkTimeout: Si el store no responde a tiempo
        """
        check_required_fields(form)
        form = normalize_form(form)

        async with self.lock_factory(ADMISSION_LOCK_KEY):
            ctx = AdmissionContext(
                form=form,
                registration_enabled=await EventSettingsService.is_registration_enabled(db),
                max_capacity=self.max_capacity,
            )
            for rule in self.rules:
                await rule(db, ctx)

            registration = await self._insert(db, form)

        logger.info(f"Inscripción #{registration.id} creada para {registration.nombre}")
        return registration

    async def _insert(self, db: AsyncSession, form: RegistrationRequest) -> Registration:
        registration = Registration(
            nombre=form.nombre,
            telefono=form.telefono,
            direccion=form.direccion,
            iglesia=form.iglesia,
            pastor=form.pastor,
            confirmado=form.confirmado,
            checked_in=False,
        )
        db.add(registration)

        try:
            await with_timeout(db.commit(), "insert_registration")
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Teléfono duplicado detectado por el store al insertar: {form.telefono}")
            raise DuplicatePhone()
        except Exception:
            await db.rollback()
            raise

        await with_timeout(db.refresh(registration), "refresh_registration")
        return registration
