"""
Gestión de sesiones de base de datos.

Los motores de sync son bucles síncronos (requests + sleep) que corren en un
thread aparte, por lo que el record store usa un engine SQLAlchemy síncrono
(psycopg v3 en producción, SQLite en tests).
"""
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from intake_bridge.core.config import settings


# Base para modelos de SQLAlchemy
Base = declarative_base()


def _create_engine_args(url: str) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL usa pool de conexiones, SQLite no lo soporta.
    """
    args = {
        "echo": settings.DEBUG,
        "future": True,
    }

    # Configuracion de pool solo para PostgreSQL
    if url.startswith("postgresql"):
        args.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,  # Verifica conexion antes de usar
        })
    elif url.startswith("sqlite"):
        # Los jobs usan el engine desde threads distintos al que lo creo
        args["connect_args"] = {"check_same_thread": False}

    return args


def build_engine(url: str) -> Engine:
    return create_engine(url, **_create_engine_args(url))


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


# Engine de base de datos
engine = build_engine(settings.effective_database_url)

# Session factory
SessionLocal = build_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """
    Generador de sesiones de base de datos.

    Yields:
        Session: Sesión de base de datos
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine = engine) -> None:
    """Inicializa la base de datos creando todas las tablas."""
    # Importa los modelos para que se registren en Base.metadata
    from intake_bridge.infrastructure.database import models  # noqa: F401

    Base.metadata.create_all(bind)


def close_db() -> None:
    """Cierra las conexiones de la base de datos."""
    engine.dispose()
