"""Modelos Pydantic para check-in"""
from pydantic import BaseModel
from typing import Optional


class ScanRequest(BaseModel):
    """Texto leído del código QR"""
    data: str


class CheckInRequest(BaseModel):
    """Confirmación del operador"""
    id: int


class CheckInResponse(BaseModel):
    """Resultado del check-in"""
    id: int
    nombre: str
    telefono: Optional[str] = None
    checked_in: bool
    message: str
