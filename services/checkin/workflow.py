"""
Flujo de check-in en puerta.

Una sesión de escaneo toma la cámara, decodifica los QR que aparecen y,
tras la confirmación del operador, marca la inscripción como ingresada.

Estados:
    IDLE -> SCANNING                  start()
    SCANNING -> AWAITING_CONFIRMATION un QR válido (la cámara queda en pausa)
    AWAITING_CONFIRMATION -> CHECKED_IN  confirm() (libera la cámara)
    AWAITING_CONFIRMATION -> SCANNING    cancel()
    SCANNING / AWAITING_CONFIRMATION -> IDLE  close()
    SCANNING -> ERROR                 cámara no disponible (libera la cámara)
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

from services.tickets.codec import decode
from services.tickets.models.ticket import TicketPayload
from shared.utils.errors import CameraUnavailable, DecodeError

logger = logging.getLogger(__name__)


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CHECKED_IN = "checked_in"
    ERROR = "error"


class InvalidTransition(RuntimeError):
    def __init__(self, action: str, state: ScanState):
        self.action = action
        self.state = state
        super().__init__(f"No se puede '{action}' en estado {state.value}")


class Camera(Protocol):
    def open(self) -> None: ...
    def read_code(self) -> Optional[str]: ...
    def pause(self) -> None: ...
    def resume(self) -> None: ...
    def release(self) -> None: ...


class CheckInWorkflow:
    """Máquina de estados de una sesión de escaneo"""

    def __init__(
        self,
        camera: Camera,
        check_in: Callable[[int], Awaitable[Any]],
        on_rejected: Optional[Callable[[DecodeError], None]] = None,
        poll_interval: float = 0.1
    ):
        self.camera = camera
        self.check_in = check_in
        self.on_rejected = on_rejected
        self.poll_interval = poll_interval

        self.state = ScanState.IDLE
        self.pending: Optional[TicketPayload] = None
        self.last_checked_in: Optional[TicketPayload] = None
        self.error: Optional[CameraUnavailable] = None
        self._camera_lock = asyncio.Lock()

    async def start(self) -> None:
        """
        Tomar la cámara y comenzar a escanear

        Raises:
            CameraUnavailable: La sesión queda en ERROR y debe crearse otra
        """
        if self.state != ScanState.IDLE:
            raise InvalidTransition("start", self.state)

        async with self._camera_lock:
            try:
                await asyncio.to_thread(self.camera.open)
            except CameraUnavailable as e:
                self._fail(e)
                raise

        self.state = ScanState.SCANNING
        logger.info("Escaneo iniciado")

    def _fail(self, error: CameraUnavailable) -> None:
        logger.error(f"Error de cámara: {error}")
        self.state = ScanState.ERROR
        self.error = error
        self.pending = None
        self.camera.release()

    async def scan_once(self) -> Optional[TicketPayload]:
        """Procesar un frame. Devuelve el payload si quedó pendiente de confirmación."""
        if self.state != ScanState.SCANNING:
            return None

        async with self._camera_lock:
            if self.state != ScanState.SCANNING:
                return None
            try:
                text = await asyncio.to_thread(self.camera.read_code)
            except CameraUnavailable as e:
                self._fail(e)
                raise

        if text is None:
            return None
        return self.handle_scan(text)

    def handle_scan(self, text: str) -> Optional[TicketPayload]:
        """
        Aplicar un texto escaneado.

        Un QR inválido se reporta como rechazo y el escaneo continúa.
        """
        if self.state != ScanState.SCANNING:
            return None

        try:
            payload = decode(text)
        except DecodeError as e:
            logger.warning(f"QR rechazado ({e.code}): {e.message}")
            if self.on_rejected is not None:
                self.on_rejected(e)
            return None

        self.camera.pause()
        self.pending = payload
        self.state = ScanState.AWAITING_CONFIRMATION
        logger.info(f"Ticket #{payload.id} ({payload.nombre}) pendiente de confirmación")
        return payload

    async def run(self) -> Optional[TicketPayload]:
        """Escanear hasta que un ticket quede pendiente o la sesión se cierre"""
        while self.state == ScanState.SCANNING:
            payload = await self.scan_once()
            if payload is not None:
                return payload
            await asyncio.sleep(self.poll_interval)
        return self.pending

    async def confirm(self) -> TicketPayload:
        """
        Confirmar el check-in del ticket pendiente y cerrar la sesión.

        Si el check-in falla la sesión sigue esperando confirmación con el
        mismo ticket, y el error se propaga al llamador.
        """
        if self.state != ScanState.AWAITING_CONFIRMATION or self.pending is None:
            raise InvalidTransition("confirm", self.state)

        payload = self.pending
        await self.check_in(payload.id)

        if self.state != ScanState.AWAITING_CONFIRMATION:
            # close() durante el check-in: la sesión ya terminó
            logger.info(f"Check-in #{payload.id} registrado con la sesión cerrada")
            return payload

        self.pending = None
        self.last_checked_in = payload
        self.state = ScanState.CHECKED_IN
        async with self._camera_lock:
            self.camera.release()
        logger.info(f"Check-in confirmado: #{payload.id} {payload.nombre}")
        return payload

    def cancel(self) -> None:
        """Descartar el ticket pendiente y volver a escanear"""
        if self.state != ScanState.AWAITING_CONFIRMATION:
            raise InvalidTransition("cancel", self.state)

        logger.info(f"Check-in cancelado para #{self.pending.id}")
        self.pending = None
        self.camera.resume()
        self.state = ScanState.SCANNING

    async def close(self) -> None:
        """Cerrar la sesión. La cámara se libera siempre."""
        async with self._camera_lock:
            self.pending = None
            try:
                self.camera.release()
            finally:
                if self.state in (ScanState.SCANNING, ScanState.AWAITING_CONFIRMATION):
                    self.state = ScanState.IDLE

    async def __aenter__(self) -> "CheckInWorkflow":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
