"""Servicio para gestión del staff y sus roles"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import List, Optional
from uuid import UUID
import logging

from shared.auth.permissions import Role
from shared.auth.supabase_client import SupabaseAuthClient
from shared.database.models import Profile, UserRole
from shared.utils.timeouts import with_timeout

logger = logging.getLogger(__name__)


def _parse_user_id(user_id: str) -> UUID:
    try:
        return UUID(str(user_id))
    except ValueError:
        raise ValueError("ID de usuario inválido")


class StaffService:
    """Operaciones sobre perfiles del staff y la tabla user_roles"""

    def __init__(self, auth_client: Optional[SupabaseAuthClient] = None):
        self.auth_client = auth_client

    async def list_staff(self, db: AsyncSession) -> List[Profile]:
        """
        Obtener todos los perfiles con sus roles

        Args:
            db: Sesión de base de datos

        Returns:
            Perfiles ordenados por fecha de creación (más recientes primero)
        """
        stmt = (
            select(Profile)
            .options(selectinload(Profile.roles))
            .order_by(Profile.created_at.desc())
        )
        result = await with_timeout(db.execute(stmt), "list_staff")
        return list(result.scalars().all())

    async def get_profile(self, db: AsyncSession, user_id: str) -> Optional[Profile]:
        stmt = (
            select(Profile)
            .options(selectinload(Profile.roles))
            .where(Profile.id == _parse_user_id(user_id))
        )
        result = await with_timeout(db.execute(stmt), "find_profile")
        return result.scalar_one_or_none()

    async def add_role(
        self,
        db: AsyncSession,
        user_id: str,
        role: Role,
        current_user_id: str
    ) -> Optional[Profile]:
        """
        Asignar un rol a un usuario del staff

        Returns:
            Perfil actualizado o None si no existe

        Raises:
            ValueError: Si se intenta modificar el propio usuario
        """
        if str(user_id) == str(current_user_id):
            raise ValueError("No puedes cambiar tus propios roles")

        profile = await self.get_profile(db, user_id)
        if profile is None:
            return None

        if role.value not in {r.role for r in profile.roles}:
            profile.roles.append(UserRole(user_id=profile.id, role=role.value))
            await with_timeout(db.commit(), "add_role")
            logger.info(f"Rol {role.value} asignado a {profile.email}")

        return await self.get_profile(db, user_id)

    async def remove_role(
        self,
        db: AsyncSession,
        user_id: str,
        role: Role,
        current_user_id: str
    ) -> Optional[Profile]:
        """
        Quitar un rol a un usuario del staff

        Returns:
            Perfil actualizado o None si no existe

        Raises:
            ValueError: Si se intenta modificar el propio usuario o no tiene el rol
        """
        if str(user_id) == str(current_user_id):
            raise ValueError("No puedes cambiar tus propios roles")

        profile = await self.get_profile(db, user_id)
        if profile is None:
            return None

        matching = [r for r in profile.roles if r.role == role.value]
        if not matching:
            raise ValueError(f"El usuario no tiene rol {role.value}")

        for user_role in matching:
            profile.roles.remove(user_role)
        await with_timeout(db.commit(), "remove_role")
        logger.info(f"Rol {role.value} removido de {profile.email}")

        return await self.get_profile(db, user_id)

    async def delete_staff(
        self,
        db: AsyncSession,
        user_id: str,
        current_user_id: str
    ) -> bool:
        """
        Eliminar un usuario del staff por completo: roles, perfil e identidad

        Returns:
            True si se eliminó, False si no existía

        Raises:
            ValueError: Si se intenta eliminar el propio usuario
        """
        if str(user_id) == str(current_user_id):
            raise ValueError("No puedes eliminar tu propio usuario")

        profile = await self.get_profile(db, user_id)
        if profile is None:
            return False

        profile_id, email = str(profile.id), profile.email
        await db.delete(profile)
        await with_timeout(db.commit(), "delete_profile")

        if self.auth_client is not None:
            await self.auth_client.delete_user(profile_id)

        logger.info(f"Usuario del staff eliminado: {email}")
        return True
