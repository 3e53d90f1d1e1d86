"""Errores de dominio con código estable y mensaje para el usuario"""
from typing import Optional


class AdmissionError(ValueError):
    """Rechazo de una solicitud de registro"""

    code = "admission_error"
    message = "No se pudo procesar el registro"
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class EmptyRequiredField(AdmissionError):
    code = "empty_required_field"
    message = "Faltan campos obligatorios"
    status_code = 400

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message)


class RegistrationClosed(AdmissionError):
    code = "registration_closed"
    message = "El registro está cerrado en este momento."
    status_code = 409


class CapacityReached(AdmissionError):
    code = "capacity_reached"
    message = "Lo sentimos, hemos alcanzado el límite de registros."
    status_code = 409


class DuplicatePhone(AdmissionError):
    code = "duplicate_phone"
    message = "Este número de teléfono ya está registrado para el evento."
    status_code = 409


class DecodeError(ValueError):
    """El texto escaneado no es un ticket válido"""

    code = "decode_error"
    message = "Este código QR no es válido para el evento"
    status_code = 422

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class MalformedPayload(DecodeError):
    code = "malformed_payload"
    message = "No se pudo leer el código QR"


class IncompleteFields(DecodeError):
    code = "incomplete_fields"
    message = "Este código QR no es válido para el evento"


class CameraUnavailable(RuntimeError):
    """No se pudo acceder a la cámara (no existe o permiso denegado)"""

    code = "camera_unavailable"
    message = "No se pudo acceder a la cámara"


class CameraBusy(CameraUnavailable):
    code = "camera_busy"
    message = "La cámara ya está siendo usada por otro escaneo"


class RegistrationNotFound(LookupError):
    code = "registration_not_found"
    message = "Inscripción no encontrada"
    status_code = 404

    def __init__(self, registration_id: int):
        self.registration_id = registration_id
        super().__init__(f"{self.message}: #{registration_id}")


class AccessDenied(PermissionError):
    code = "access_denied"
    message = "Acceso denegado"
    status_code = 403

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class NetworkTimeout(TimeoutError):
    code = "network_timeout"
    message = "El servidor tardó demasiado en responder. Inténtalo de nuevo."
    status_code = 504

    def __init__(self, operation: str = ""):
        self.operation = operation
        super().__init__(f"{self.message} ({operation})" if operation else self.message)
