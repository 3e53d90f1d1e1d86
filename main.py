"""API Gateway principal - Punto de entrada de la aplicación"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
import os
import logging
from contextlib import asynccontextmanager

from shared.database.connection import init_db, close_db
from shared.cache.redis_client import init_redis, close_redis
from shared.auth.supabase_client import SupabaseAuthError
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler
from shared.utils.errors import (
    AdmissionError,
    DecodeError,
    NetworkTimeout,
    RegistrationNotFound,
)

# Configurar logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events de la aplicación"""
    # Startup
    logger.info("Iniciando aplicación...")
    await init_db(create_tables=os.getenv("DB_CREATE_TABLES", "false").lower() == "true")
    await init_redis()
    logger.info("Aplicación iniciada")
    yield
    # Shutdown
    logger.info("Cerrando aplicación...")
    await close_db()
    await close_redis()
    logger.info("Aplicación cerrada")


app = FastAPI(
    title="Registro Concierto API",
    description="Registro gratuito con cupo limitado, tickets QR y check-in en puerta",
    version="1.0.0",
    lifespan=lifespan
)

default_origins = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
cors_origins_str = os.getenv("CORS_ORIGINS", default_origins)

# En desarrollo, permitir todos los orígenes para facilitar testing
if os.getenv("APP_ENV", "development") == "development":
    logger.info("Modo desarrollo: CORS configurado para permitir todos los orígenes")
    allow_origins = ["*"]
    allow_credentials = False  # No se puede usar credentials con allow_origins=["*"]
else:
    cors_origins = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]
    allow_origins = cors_origins
    allow_credentials = True
    logger.info(f"CORS origins configurados: {allow_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def _error_response(status_code: int, code: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code, "detail": detail})


@app.exception_handler(AdmissionError)
async def admission_error_handler(request: Request, exc: AdmissionError):
    logger.info(f"Registro rechazado ({exc.code}): {exc.message}")
    content = {"error": exc.code, "detail": exc.message}
    if getattr(exc, "field", None):
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(DecodeError)
async def decode_error_handler(request: Request, exc: DecodeError):
    logger.warning(f"QR rechazado ({exc.code}): {exc.message}")
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RegistrationNotFound)
async def not_found_handler(request: Request, exc: RegistrationNotFound):
    return _error_response(exc.status_code, exc.code, str(exc))


@app.exception_handler(NetworkTimeout)
async def network_timeout_handler(request: Request, exc: NetworkTimeout):
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(SupabaseAuthError)
async def supabase_auth_error_handler(request: Request, exc: SupabaseAuthError):
    logger.error(f"Error de Supabase Auth: {exc}")
    return _error_response(502, "auth_provider_error", exc.detail)


# Incluir routers de cada servicio
from services.registration.routes.registrations import router as registrations_router
from services.checkin.routes.checkin import router as checkin_router
from services.admin.routes.admin import router as admin_router
from services.auth.routes.auth import router as auth_router

app.include_router(registrations_router, prefix="/api/v1/registrations", tags=["registrations"])
app.include_router(checkin_router, prefix="/api/v1/checkin", tags=["checkin"])
app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])
app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "service": "registro-concierto-api"}


@app.get("/ready")
async def ready():
    """Ready check endpoint - verifica conexiones"""
    try:
        from sqlalchemy import text
        from shared.database import connection
        async with connection.async_session_maker() as session:
            await session.execute(text("SELECT 1"))

        from shared.cache.redis_client import get_redis
        redis = await get_redis()
        await redis.ping()

        return {"status": "ready", "database": "connected", "redis": "connected"}
    except Exception as e:
        logger.error(f"Ready check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(e)})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=os.getenv("APP_DEBUG", "False").lower() == "true"
    )
