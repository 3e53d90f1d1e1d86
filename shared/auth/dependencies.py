"""Dependencies de autenticación para FastAPI"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List
from uuid import UUID
import logging

from shared.auth.jwt_handler import verify_token
from shared.auth.permissions import Capability, resolve_access
from shared.auth.supabase_client import SupabaseAuthClient, get_auth_client
from shared.database.models import UserRole
from shared.database.session import get_db
from shared.utils.errors import AccessDenied
from shared.utils.timeouts import with_timeout

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    auth_client: SupabaseAuthClient = Depends(get_auth_client)
) -> Dict:
    '''Obtener usuario actual desde token JWT'''
    token = credentials.credentials
    payload = await verify_token(token, auth_client)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Token inválido o expirado',
            headers={'WWW-Authenticate': 'Bearer'},
        )

    user_id = payload.get('sub')
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Token inválido: falta user_id',
        )

    return {
        'user_id': user_id,
        'email': payload.get('email'),
        'token': token,
    }


async def load_role_tags(db: AsyncSession, user_id: str) -> List[str]:
    '''Leer las etiquetas de rol de un usuario desde user_roles'''
    try:
        user_uuid = UUID(str(user_id))
    except ValueError:
        return []

    stmt = select(UserRole.role).where(UserRole.user_id == user_uuid)
    result = await with_timeout(db.execute(stmt), "load_roles")
    return list(result.scalars().all())


async def get_current_staff(
    current_user: Dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Dict:
    '''
    Resolver el nivel de acceso del usuario autenticado.

    Los roles se leen en cada request (sin caché), por lo que un cambio
    de roles o un cierre de sesión se refleja de inmediato.
    '''
    role_tags = await load_role_tags(db, current_user['user_id'])
    try:
        access = resolve_access(role_tags)
    except AccessDenied as e:
        logger.warning(f"Acceso denegado a {current_user.get('email')}: sin roles de staff")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    return {**current_user, 'access': access}


def require_capability(capability: Capability):
    '''Dependency factory: exigir una capacidad al staff autenticado'''

    async def dependency(staff: Dict = Depends(get_current_staff)) -> Dict:
        if not staff['access'].allows(capability):
            logger.warning(
                f"Acceso denegado a {staff.get('email')}: falta '{capability.value}' "
                f"(roles: {sorted(r.value for r in staff['access'].roles)})"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Se requiere el permiso '{capability.value}'"
            )
        return staff

    return dependency
