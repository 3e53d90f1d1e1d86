"""Límite de tiempo para llamadas al almacenamiento"""
import asyncio
import logging
from typing import Any, Awaitable, Optional

from app.core.config import settings
from shared.utils.errors import NetworkTimeout

logger = logging.getLogger(__name__)


async def with_timeout(
    awaitable: Awaitable[Any],
    operation: str,
    timeout: Optional[float] = None
) -> Any:
    """
    Esperar una operación contra el store con un límite de tiempo

    Args:
        awaitable: Corrutina a ejecutar
        operation: Nombre de la operación (para logs y el mensaje de error)
        timeout: Segundos máximos (default: settings.STORE_TIMEOUT_SECONDS)

    Raises:
        NetworkTimeout: Si la operación no responde a tiempo
    """
    if timeout is None:
        timeout = settings.STORE_TIMEOUT_SECONDS

    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Timeout de {timeout:.1f}s en operación '{operation}'")
        raise NetworkTimeout(operation)
