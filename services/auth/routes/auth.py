"""Rutas de sesión del staff"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, List
import logging

from shared.auth.dependencies import get_current_staff, get_current_user, load_role_tags
from shared.auth.permissions import AccessLevel, resolve_access
from shared.auth.supabase_client import SupabaseAuthClient, get_auth_client
from shared.database.session import get_db
from shared.utils.errors import AccessDenied
from shared.utils.rate_limiter import limiter, RATE_LIMITS

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    email: str
    password: str


class AccessResponse(BaseModel):
    """Nivel de acceso resuelto para la sesión"""
    user_id: str
    email: str
    roles: List[str]
    capabilities: List[str]


class LoginResponse(AccessResponse):
    access_token: str
    refresh_token: str
    expires_in: int


def _access_fields(user_id: str, email: str, access: AccessLevel) -> Dict:
    return {
        "user_id": str(user_id),
        "email": email or "",
        "roles": sorted(r.value for r in access.roles),
        "capabilities": sorted(c.value for c in access.capabilities),
    }


@router.post("/login", response_model=LoginResponse)
@limiter.limit(RATE_LIMITS["auth"])
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
    auth_client: SupabaseAuthClient = Depends(get_auth_client)
):
    """
    Iniciar sesión del staff

    Solo se entrega la sesión si el usuario tiene algún rol de staff;
    si no, se cierra la sesión recién creada.
    """
    session = await auth_client.sign_in(credentials.email, credentials.password)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciales inválidas"
        )

    user = session.get("user") or {}
    try:
        access = resolve_access(await load_role_tags(db, user.get("id")))
    except AccessDenied as e:
        await auth_client.sign_out(session["access_token"])
        logger.warning(f"Login sin roles de staff: {credentials.email}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    logger.info(f"Login de staff: {credentials.email}")
    return LoginResponse(
        access_token=session["access_token"],
        refresh_token=session.get("refresh_token", ""),
        expires_in=session.get("expires_in", 0),
        **_access_fields(user.get("id"), user.get("email") or credentials.email, access)
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current_user: Dict = Depends(get_current_user),
    auth_client: SupabaseAuthClient = Depends(get_auth_client)
):
    """Cerrar la sesión actual"""
    await auth_client.sign_out(current_user["token"])
    logger.info(f"Logout: {current_user.get('email')}")


@router.get("/session", response_model=AccessResponse)
async def get_session(staff: Dict = Depends(get_current_staff)):
    """
    Restaurar sesión: nivel de acceso del token actual

    Se re-evalúa en cada llamada a partir de user_roles.
    """
    return AccessResponse(**_access_fields(staff["user_id"], staff.get("email"), staff["access"]))
