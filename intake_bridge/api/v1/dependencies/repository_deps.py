"""
Dependencias para inyección de repositorios.
"""
from intake_bridge.domain.repositories.record_store import IRecordStore
from intake_bridge.infrastructure.database.session import SessionLocal
from intake_bridge.infrastructure.repositories.sql_record_store import SqlRecordStore


def get_record_store() -> IRecordStore:
    """
    Dependencia para obtener el record store.

    El store abre y cierra su propia sesión por operación, por lo que los
    jobs en background pueden seguir usándolo después del request.

    Returns:
        IRecordStore: Record store sobre SQLAlchemy
    """
    return SqlRecordStore(SessionLocal)
