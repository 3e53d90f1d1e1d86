#!/usr/bin/env python3
"""Script para obtener el token JWT de un operador del staff"""
import sys
import os
import asyncio
import argparse

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

# Cargar variables de entorno
load_dotenv()

from app.core.config import settings
from shared.auth.supabase_client import SupabaseAuthClient, SupabaseAuthError


async def get_token(email: str, password: str):
    """Iniciar sesión en Supabase Auth y devolver el access token"""
    if not settings.SUPABASE_ANON_KEY:
        print("❌ Error: SUPABASE_ANON_KEY no está configurado en .env")
        return None

    try:
        session = await SupabaseAuthClient().sign_in(email, password)
    except SupabaseAuthError as e:
        print(f"❌ Error de Supabase Auth: {e}")
        return None

    if session is None:
        print("❌ Error de login: credenciales inválidas")
        return None

    token = session.get("access_token")
    user = session.get("user", {})
    print("\n✅ Login exitoso!")
    print(f"   User ID: {user.get('id', 'N/A')}")
    print(f"\n🔑 Token JWT:")
    print(token)
    print(f"\n📋 Para usar con el escáner de puerta:")
    print(f'STAFF_TOKEN="{token}" python scripts/door_scanner.py')
    return token


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Obtener token JWT de Supabase Auth")
    parser.add_argument("--email", required=True, help="Email del usuario")
    parser.add_argument("--password", required=True, help="Contraseña del usuario")

    args = parser.parse_args()

    print("=" * 60)
    print("🔐 Obteniendo Token JWT de Supabase")
    print("=" * 60)
    print(f"📧 Email: {args.email}")
    print(f"🌐 Supabase URL: {settings.SUPABASE_URL}")

    token = asyncio.run(get_token(args.email, args.password))
    sys.exit(0 if token else 1)
