"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from loguru import logger

from intake_bridge.core.config import settings
from intake_bridge.infrastructure.database.session import init_db, close_db


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            # Configurar logging a archivo
            logger.add(
                settings.LOG_FILE,
                rotation="500 MB",
                retention="10 days",
                level=settings.LOG_LEVEL
            )

            _validate_config()

            # Inicializar base de datos (crea tablas si no existen)
            init_db()
            logger.info("Base de datos inicializada")

            # Directorio de cursores y cache de sesion
            settings.data_root.mkdir(parents=True, exist_ok=True)
            logger.info(f"Directorio de datos: {settings.data_root.resolve()}")

            logger.success("Aplicacion iniciada correctamente")

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida valores de configuracion que romperian los motores de sync."""
    warnings = []

    if settings.FETCH_MAX_REQUESTS_PER_RUN <= 0:
        warnings.append("FETCH_MAX_REQUESTS_PER_RUN <= 0 - los syncs no haran ningun request")
    if settings.FETCH_PAGE_DELAY_SECONDS < 1:
        warnings.append("FETCH_PAGE_DELAY_SECONDS < 1 - riesgo de 429 en la API de citas")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")

        # Cerrar conexiones de base de datos
        close_db()
        logger.info("Conexiones de base de datos cerradas")

        logger.success("Aplicacion cerrada correctamente")

    return shutdown


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Ciclo de vida de la aplicacion: startup antes de servir, shutdown al salir.
    """
    await startup_handler(app)()
    try:
        yield
    finally:
        await shutdown_handler(app)()
