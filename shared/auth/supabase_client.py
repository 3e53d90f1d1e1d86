"""Cliente de Supabase Auth: validación de tokens y sesiones del staff"""
import httpx
import logging
from typing import Optional, Dict

from app.core.config import settings
from shared.utils.errors import NetworkTimeout

logger = logging.getLogger(__name__)

AUTH_TIMEOUT_SECONDS = 5.0


class SupabaseAuthError(RuntimeError):
    """Supabase Auth respondió con un error inesperado"""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Supabase Auth {status_code}: {detail}")


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
        return data.get("error_description") or data.get("msg") or data.get("message") or response.text
    except ValueError:
        return response.text


class SupabaseAuthClient:
    """Operaciones de Supabase Auth usadas por el backend"""

    def __init__(
        self,
        url: Optional[str] = None,
        anon_key: Optional[str] = None,
        service_role_key: Optional[str] = None,
        timeout: float = AUTH_TIMEOUT_SECONDS
    ):
        self.url = (url if url is not None else settings.SUPABASE_URL).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.SUPABASE_ANON_KEY
        self.service_role_key = service_role_key if service_role_key is not None else settings.SUPABASE_SERVICE_ROLE_KEY
        self.timeout = timeout

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.url:
            raise SupabaseAuthError(500, "SUPABASE_URL no está configurado")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, f"{self.url}/auth/v1{path}", **kwargs)
        except httpx.TimeoutException:
            logger.error(f"Timeout llamando a Supabase Auth: {method} {path}")
            raise NetworkTimeout(f"supabase auth {path}")

    async def get_user(self, token: str) -> Optional[Dict]:
        """
        Validar un access token contra el Auth server.

        Returns:
            Datos del usuario o None si el token no es válido
        """
        response = await self._request(
            "GET",
            "/user",
            headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"}
        )
        if response.status_code == 200:
            return response.json()
        logger.info(f"Token rechazado por Supabase Auth ({response.status_code})")
        return None

    async def sign_in(self, email: str, password: str) -> Optional[Dict]:
        """
        Iniciar sesión con email y contraseña (grant_type=password)

        Returns:
            Sesión (access_token, refresh_token, user) o None si las credenciales son inválidas
        """
        response = await self._request(
            "POST",
            "/token?grant_type=password",
            headers={"apikey": self.anon_key, "Content-Type": "application/json"},
            json={"email": email, "password": password}
        )
        if response.status_code == 200:
            return response.json()
        if response.status_code in (400, 401):
            logger.info(f"Login fallido para {email}: {_error_detail(response)}")
            return None
        raise SupabaseAuthError(response.status_code, _error_detail(response))

    async def sign_out(self, token: str) -> None:
        """Cerrar la sesión asociada al token"""
        response = await self._request(
            "POST",
            "/logout",
            headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"}
        )
        if response.status_code not in (200, 204, 401):
            raise SupabaseAuthError(response.status_code, _error_detail(response))

    async def delete_user(self, user_id: str) -> None:
        """Eliminar la identidad de auth.users (requiere service role key)"""
        if not self.service_role_key:
            logger.warning(f"SUPABASE_SERVICE_ROLE_KEY no configurado; no se elimina {user_id} de Supabase Auth")
            return
        response = await self._request(
            "DELETE",
            f"/admin/users/{user_id}",
            headers={
                "apikey": self.service_role_key,
                "Authorization": f"Bearer {self.service_role_key}"
            }
        )
        if response.status_code not in (200, 204, 404):
            raise SupabaseAuthError(response.status_code, _error_detail(response))


def get_auth_client() -> SupabaseAuthClient:
    """Dependency para obtener el cliente de Supabase Auth"""
    return SupabaseAuthClient()
