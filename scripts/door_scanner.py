#!/usr/bin/env python3
"""Escáner de puerta: lee tickets QR con la cámara y confirma el check-in contra la API"""
import sys
import os
import asyncio
import argparse

import httpx

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

# Cargar variables de entorno
load_dotenv()

from app.core.config import settings
from services.checkin.camera import QRCamera
from services.checkin.workflow import CheckInWorkflow, ScanState
from shared.utils.errors import CameraUnavailable, DecodeError


class ApiCheckIn:
    """Confirma el check-in llamando a POST /api/v1/checkin/confirm"""

    def __init__(self, base_url: str, token: str):
        self.base_url = base_url.rstrip("/")
        self.token = token

    async def __call__(self, registration_id: int) -> dict:
        async with httpx.AsyncClient(timeout=settings.STORE_TIMEOUT_SECONDS) as client:
            response = await client.post(
                f"{self.base_url}/api/v1/checkin/confirm",
                headers={"Authorization": f"Bearer {self.token}"},
                json={"id": registration_id}
            )
        if response.status_code != 200:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise RuntimeError(f"{response.status_code}: {detail}")
        return response.json()


def report_rejected(error: DecodeError):
    print(f"⚠️  QR inválido: {error.message}")


async def ask(prompt: str) -> str:
    answer = await asyncio.to_thread(input, prompt)
    return answer.strip().lower()


async def scan_one(source: str, check_in: ApiCheckIn) -> bool:
    """
    Una sesión de escaneo: escanear, pedir confirmación y registrar.

    Returns:
        False si el operador pidió salir
    """
    workflow = CheckInWorkflow(QRCamera(source), check_in, on_rejected=report_rejected)

    async with workflow:
        print("📷 Apunta la cámara al código QR del ticket...")
        while workflow.state == ScanState.SCANNING:
            payload = await workflow.run()
            if payload is None:
                break

            print()
            print(f"   Nombre:   {payload.nombre}")
            print(f"   Teléfono: {payload.telefono or '-'}")
            print(f"   Evento:   {payload.evento or '-'}")
            answer = await ask("¿Confirmas el check-in? [s]í / [n]o / [q] salir: ")

            if answer in ("s", "si", "sí", "y"):
                try:
                    await workflow.confirm()
                    print(f"✅ ¡Check-in exitoso! {payload.nombre} ha sido registrado")
                except Exception as e:
                    print(f"❌ No se pudo realizar el check-in: {e}")
                    workflow.cancel()
            elif answer == "q":
                return False
            else:
                workflow.cancel()
                print("↩️  Cancelado, escaneando de nuevo...")

    return True


async def main(source: str, base_url: str, token: str) -> int:
    check_in = ApiCheckIn(base_url, token)
    try:
        while await scan_one(source, check_in):
            pass
    except CameraUnavailable as e:
        print(f"❌ {e}")
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Escáner QR de check-in en puerta")
    parser.add_argument("--camera", default=settings.CAMERA_SOURCE, help="Índice de webcam o URL RTSP/HTTP")
    parser.add_argument("--api", default=settings.API_BASE_URL, help="URL base de la API")
    parser.add_argument("--token", default=os.getenv("STAFF_TOKEN", ""), help="Token JWT del operador (o STAFF_TOKEN)")

    args = parser.parse_args()

    if not args.token:
        print("❌ Error: se requiere --token o STAFF_TOKEN (usa scripts/get_supabase_token.py)")
        sys.exit(1)

    print("=" * 60)
    print("🎫 Check-in en puerta")
    print("=" * 60)
    print(f"📷 Cámara: {args.camera}")
    print(f"🌐 API: {args.api}")
    print()

    try:
        sys.exit(asyncio.run(main(args.camera, args.api, args.token)))
    except KeyboardInterrupt:
        print("\n👋 Escáner detenido")
