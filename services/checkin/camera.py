import logging
import threading
from typing import Optional, Set, Union

import cv2
import numpy as np

from shared.utils.errors import CameraBusy, CameraUnavailable

logger = logging.getLogger(__name__)


def parse_source(source: str) -> Union[int, str]:
    """'0' -> índice de webcam; cualquier otra cosa es una URL (RTSP/HTTP) o archivo"""
    source = str(source).strip()
    return int(source) if source.isdigit() else source


class CameraManager:
    """
    Registro de cámaras en uso.
    Una fuente solo puede estar tomada por un escaneo a la vez.
    """

    def __init__(self):
        self.held: Set[str] = set()
        self.lock = threading.Lock()

    def claim(self, source: str) -> None:
        with self.lock:
            if source in self.held:
                raise CameraBusy()
            self.held.add(source)

    def release(self, source: str) -> None:
        with self.lock:
            self.held.discard(source)

    def is_held(self, source: str) -> bool:
        with self.lock:
            return source in self.held


# Global camera manager instance
camera_manager = CameraManager()


class QRCamera:
    """
    Cámara que entrega el texto de los códigos QR que ve.
    Soporta webcams (índice), streams RTSP/HTTP y archivos de video.
    """

    def __init__(self, source: str = "0", manager: Optional[CameraManager] = None):
        self.source = str(source)
        self.manager = manager or camera_manager
        self.capture: Optional[cv2.VideoCapture] = None
        self.detector = cv2.QRCodeDetector()
        self.paused = False

    @property
    def is_open(self) -> bool:
        return self.capture is not None

    def open(self) -> None:
        """
        Adquirir el dispositivo en exclusiva

        Raises:
            CameraBusy: Si otro escaneo ya tiene la cámara
            CameraUnavailable: Si no existe o no hay permiso
        """
        if self.capture is not None:
            return

        self.manager.claim(self.source)
        try:
            cap = cv2.VideoCapture(parse_source(self.source))
            if not cap.isOpened():
                cap.release()
                raise CameraUnavailable(f"No se pudo acceder a la cámara: {self.source}")
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)  # Minimal buffer
        except Exception:
            self.manager.release(self.source)
            raise

        self.capture = cap
        self.paused = False
        logger.info(f"✓ Cámara abierta: {self.source}")

    def read_code(self) -> Optional[str]:
        """
        Leer un frame y devolver el texto del QR visible, si hay uno

        Raises:
            CameraUnavailable: Si la cámara dejó de entregar frames
        """
        if self.capture is None:
            raise CameraUnavailable("La cámara no está abierta")
        if self.paused:
            return None

        ret, frame = self.capture.read()
        if not ret or frame is None:
            raise CameraUnavailable(f"No se pudo leer frame de la cámara {self.source}")

        return self.decode_frame(frame)

    def decode_frame(self, frame: np.ndarray) -> Optional[str]:
        data, points, _ = self.detector.detectAndDecode(frame)
        if points is None or not data:
            return None
        return data

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def release(self) -> None:
        """Liberar la cámara. Idempotente."""
        if self.capture is None:
            return
        try:
            self.capture.release()
        finally:
            self.capture = None
            self.paused = False
            self.manager.release(self.source)
            logger.info(f"✓ Cámara liberada: {self.source}")


def decode_image(png_bytes: bytes) -> Optional[str]:
    """Leer el texto de un QR a partir de una imagen codificada (PNG/JPEG)"""
    buffer = np.frombuffer(png_bytes, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        return None
    data, points, _ = cv2.QRCodeDetector().detectAndDecode(image)
    if points is None or not data:
        return None
    return data
