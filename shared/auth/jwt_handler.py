"""Manejo de JWT tokens emitidos por Supabase Auth"""
from typing import Optional, Dict
from jose import JWTError, jwt
import logging

from app.core.config import settings
from shared.auth.supabase_client import SupabaseAuthClient

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"


def decode_token(token: str, secret: Optional[str] = None) -> Optional[Dict]:
    '''Decodificar y validar token JWT con el secret del proyecto'''
    secret = secret if secret is not None else settings.SUPABASE_JWT_SECRET
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE)
    except JWTError as e:
        logger.info(f"Token JWT inválido: {e}")
        return None


async def verify_token(token: str, auth_client: Optional[SupabaseAuthClient] = None) -> Optional[Dict]:
    '''
    Verificar token de Supabase Auth.

    Con SUPABASE_JWT_SECRET configurado la firma se valida localmente;
    si no, se delega al Auth server. No se cachea el resultado: cada
    request vuelve a validar la sesión.

    Returns:
        Claims normalizados (sub, email, user_metadata) o None
    '''
    if settings.SUPABASE_JWT_SECRET:
        return decode_token(token)

    client = auth_client or SupabaseAuthClient()
    user_data = await client.get_user(token)
    if user_data is None:
        return None

    return {
        'sub': user_data.get('id'),
        'email': user_data.get('email'),
        'user_metadata': user_data.get('user_metadata', {}),
    }
