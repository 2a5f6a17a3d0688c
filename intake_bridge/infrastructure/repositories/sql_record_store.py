"""
Implementación del record store usando SQLAlchemy (engine síncrono).

UPSERT / insert-skip con `INSERT ... ON CONFLICT` del dialecto activo
(PostgreSQL en producción, SQLite en tests).
"""
from contextlib import contextmanager
from dataclasses import fields
from typing import Any, Dict, Iterable, Iterator, List, Optional, Type

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from intake_bridge.domain.entities.records import AppointmentRecord, LeadRecord, Owner
from intake_bridge.domain.repositories.record_store import IRecordStore
from intake_bridge.infrastructure.database.models import AppointmentModel, LeadModel, OwnerModel
from intake_bridge.shared.exceptions.domain import EntityNotFoundException
from intake_bridge.shared.exceptions.sync import PersistenceError

# Filas por sentencia (limite de parametros de SQLite)
_ROWS_PER_STATEMENT = 200

_OWNER_COLUMNS = {
    "name",
    "external_key",
    "intakeq_key",
    "intakeq_base_url",
    "vtiger_url",
    "vtiger_username",
    "vtiger_access_key",
    "active",
}

_IMMUTABLE_COLUMNS = {"id", "owner_id", "source_id", "created_at", "updated_at"}


def _normalized_email(column):
    return func.lower(func.trim(column))


def _chunks(rows: List[Dict[str, Any]], size: int) -> Iterator[List[Dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class SqlRecordStore(IRecordStore):
    """Record store sobre SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker):
        """
        Args:
            session_factory: sessionmaker ligado al engine
        """
        self._session_factory = session_factory

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error de base de datos: {e}")
            raise PersistenceError(f"Error de base de datos: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _insert_for(session: Session, model: Type):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise PersistenceError(f"Dialecto no soportado para upsert: {dialect}")

    # ------------------------------------------------------------------
    # Owners
    # ------------------------------------------------------------------

    def upsert_owner(self, values: Dict[str, Any]) -> Owner:
        data = {k: v for k, v in values.items() if k in _OWNER_COLUMNS}
        external_key = data.get("external_key")

        with self._session_scope() as session:
            db_owner = None
            if external_key:
                db_owner = session.execute(
                    select(OwnerModel).where(OwnerModel.external_key == external_key)
                ).scalar_one_or_none()

            if db_owner is None:
                db_owner = OwnerModel(**data)
                session.add(db_owner)
                logger.info(f"Owner creado: {data.get('name')}")
            else:
                for key, value in data.items():
                    if value is not None:
                        setattr(db_owner, key, value)
                logger.info(f"Owner {db_owner.id} actualizado por external_key")

            session.flush()
            session.refresh(db_owner)
            return self._to_owner(db_owner)

    def get_owner(self, owner_id: int) -> Optional[Owner]:
        with self._session_scope() as session:
            db_owner = session.get(OwnerModel, owner_id)
            return self._to_owner(db_owner) if db_owner else None

    def list_owners(self, active_only: bool = True) -> List[Owner]:
        with self._session_scope() as session:
            query = select(OwnerModel).order_by(OwnerModel.name)
            if active_only:
                query = query.where(OwnerModel.active.is_(True))
            return [self._to_owner(o) for o in session.execute(query).scalars().all()]

    def update_owner(self, owner_id: int, values: Dict[str, Any]) -> Owner:
        with self._session_scope() as session:
            db_owner = session.get(OwnerModel, owner_id)
            if db_owner is None:
                raise EntityNotFoundException("Owner", owner_id)

            for key, value in values.items():
                if key in _OWNER_COLUMNS:
                    setattr(db_owner, key, value)

            session.flush()
            session.refresh(db_owner)
            return self._to_owner(db_owner)

    def get_owner_stats(self, owner_id: int) -> Dict[str, Any]:
        with self._session_scope() as session:
            total_appointments = self._count(session, AppointmentModel, owner_id)
            total_leads = self._count(session, LeadModel, owner_id)

            lead_emails = (
                select(_normalized_email(LeadModel.email))
                .where(LeadModel.owner_id == owner_id, LeadModel.email.is_not(None))
            )
            matched = session.execute(
                select(func.count(AppointmentModel.id)).where(
                    AppointmentModel.owner_id == owner_id,
                    _normalized_email(AppointmentModel.contact_email).in_(lead_emails),
                )
            ).scalar_one()
            last_update = session.execute(
                select(func.max(AppointmentModel.updated_at)).where(AppointmentModel.owner_id == owner_id)
            ).scalar_one()

            return {
                "total_appointments": total_appointments,
                "total_leads": total_leads,
                "matched_appointments": matched,
                "unmatched_appointments": total_appointments - matched,
                "last_update": last_update,
            }

    # ------------------------------------------------------------------
    # Citas y leads
    # ------------------------------------------------------------------

    def upsert_appointments(self, owner_id: int, rows: Iterable[Dict[str, Any]]) -> int:
        # Dedupe dentro del lote: ON CONFLICT no admite la misma clave dos veces por sentencia
        unique = {row["source_id"]: {**row, "owner_id": owner_id} for row in rows}
        if not unique:
            return 0

        written = 0
        with self._session_scope() as session:
            for chunk in _chunks(list(unique.values()), _ROWS_PER_STATEMENT):
                stmt = self._insert_for(session, AppointmentModel).values(chunk)
                update_cols = {
                    col: stmt.excluded[col]
                    for col in chunk[0].keys()
                    if col not in _IMMUTABLE_COLUMNS
                }
                update_cols["updated_at"] = func.now()
                session.execute(
                    stmt.on_conflict_do_update(
                        index_elements=["owner_id", "source_id"],
                        set_=update_cols,
                    )
                )
                written += len(chunk)
        return written

    def insert_leads_skip_duplicates(self, owner_id: int, rows: Iterable[Dict[str, Any]]) -> int:
        unique = {row["source_id"]: {**row, "owner_id": owner_id} for row in rows}
        if not unique:
            return 0

        inserted = 0
        with self._session_scope() as session:
            for chunk in _chunks(list(unique.values()), _ROWS_PER_STATEMENT):
                stmt = self._insert_for(session, LeadModel).values(chunk)
                result = session.execute(
                    stmt.on_conflict_do_nothing(index_elements=["owner_id", "source_id"])
                )
                inserted += max(result.rowcount or 0, 0)
        return inserted

    def list_appointments(self, owner_id: int, *, skip: int = 0, limit: Optional[int] = None) -> List[AppointmentRecord]:
        with self._session_scope() as session:
            query = (
                select(AppointmentModel)
                .where(AppointmentModel.owner_id == owner_id)
                .order_by(AppointmentModel.id)
                .offset(skip)
            )
            if limit is not None:
                query = query.limit(limit)
            return [
                self._to_record(AppointmentRecord, a)
                for a in session.execute(query).scalars().all()
            ]

    def list_leads(self, owner_id: int, *, skip: int = 0, limit: Optional[int] = None) -> List[LeadRecord]:
        with self._session_scope() as session:
            query = (
                select(LeadModel)
                .where(LeadModel.owner_id == owner_id)
                .order_by(LeadModel.id)
                .offset(skip)
            )
            if limit is not None:
                query = query.limit(limit)
            return [
                self._to_record(LeadRecord, lead)
                for lead in session.execute(query).scalars().all()
            ]

    def count_appointments(self, owner_id: int) -> int:
        with self._session_scope() as session:
            return self._count(session, AppointmentModel, owner_id)

    def count_leads(self, owner_id: int) -> int:
        with self._session_scope() as session:
            return self._count(session, LeadModel, owner_id)

    def update_lead_crm_fields(
        self,
        lead_id: int,
        *,
        processed_flag: str,
        matched_count: str,
        summary_html: str,
    ) -> None:
        with self._session_scope() as session:
            db_lead = session.get(LeadModel, lead_id)
            if db_lead is None:
                raise EntityNotFoundException("Lead", lead_id)
            db_lead.processed_flag = processed_flag
            db_lead.matched_count = matched_count
            db_lead.summary_html = summary_html

    # ------------------------------------------------------------------
    # Conversión modelo -> entidad
    # ------------------------------------------------------------------

    @staticmethod
    def _count(session: Session, model: Type, owner_id: int) -> int:
        return session.execute(
            select(func.count(model.id)).where(model.owner_id == owner_id)
        ).scalar_one()

    @staticmethod
    def _to_record(entity_cls: Type, db_obj: Any) -> Any:
        values = {f.name: getattr(db_obj, f.name) for f in fields(entity_cls)}
        if values.get("raw_data") is None:
            values["raw_data"] = {}
        return entity_cls(**values)

    @staticmethod
    def _to_owner(db_owner: OwnerModel) -> Owner:
        return Owner(
            id=db_owner.id,
            name=db_owner.name,
            external_key=db_owner.external_key,
            intakeq_key=db_owner.intakeq_key,
            intakeq_base_url=db_owner.intakeq_base_url,
            vtiger_url=db_owner.vtiger_url,
            vtiger_username=db_owner.vtiger_username,
            vtiger_access_key=db_owner.vtiger_access_key,
            active=db_owner.active,
            created_at=db_owner.created_at,
            updated_at=db_owner.updated_at,
        )
