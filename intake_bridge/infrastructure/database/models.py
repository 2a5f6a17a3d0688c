"""
Modelos de base de datos (ORM).

owners 1 --- N appointments
owners 1 --- N leads

El nombre de la practica (owner) y el nombre del contacto de la cita son
columnas distintas: `owners.name` vs `appointments.contact_name`.
"""
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from intake_bridge.infrastructure.database.session import Base


class OwnerModel(Base):
    """
    Modelo de base de datos para owners (practicas/tenants).

    external_key es la identidad durable (UNIQUE, nullable); el nombre es
    metadata editable.
    """

    __tablename__ = "owners"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    external_key = Column(String(255), nullable=True, unique=True)

    # Credenciales API de citas
    intakeq_key = Column(String(255), nullable=True)
    intakeq_base_url = Column(String(512), nullable=True)

    # Credenciales CRM
    vtiger_url = Column(String(512), nullable=True)
    vtiger_username = Column(String(255), nullable=True)
    vtiger_access_key = Column(String(255), nullable=True)

    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Owner(id={self.id}, name={self.name})>"


class AppointmentModel(Base):
    """
    Modelo de base de datos para citas.

    Los timestamps se guardan en todas sus representaciones (epoch ms, ISO,
    local, local formateado) tal cual llegan: la UI y la reconciliacion
    recorren cadenas de fallback sobre ellas.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("owner_id", "source_id", name="uq_appointments_owner_source"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id", ondelete="CASCADE"), nullable=False, index=True)
    source_id = Column(String(64), nullable=False)

    # Contacto (paciente)
    contact_name = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=True, index=True)
    contact_phone = Column(String(64), nullable=True)
    contact_date_of_birth = Column(String(64), nullable=True)
    contact_source_id = Column(String(64), nullable=True)

    status = Column(String(100), nullable=True)
    start_date = Column(BigInteger, nullable=True)
    end_date = Column(BigInteger, nullable=True)
    start_date_iso = Column(String(64), nullable=True)
    end_date_iso = Column(String(64), nullable=True)
    start_date_local = Column(String(64), nullable=True)
    end_date_local = Column(String(64), nullable=True)
    start_date_local_formatted = Column(String(128), nullable=True)
    duration = Column(Integer, nullable=True)

    service_name = Column(String(255), nullable=True)
    service_id = Column(String(64), nullable=True)
    location_name = Column(String(255), nullable=True)
    location_id = Column(String(64), nullable=True)
    practitioner_name = Column(String(255), nullable=True)
    practitioner_email = Column(String(255), nullable=True)
    practitioner_id = Column(String(64), nullable=True)
    price = Column(Float, nullable=True)

    telehealth_info = Column(JSON, nullable=True)
    intake_id = Column(String(64), nullable=True)
    date_created = Column(BigInteger, nullable=True)
    created_by = Column(String(255), nullable=True)
    booked_by_client = Column(Boolean, nullable=True)
    last_modified = Column(BigInteger, nullable=True)
    attendance_confirmation_response = Column(String(100), nullable=True)
    reminder_type = Column(String(100), nullable=True)
    place_of_service = Column(String(255), nullable=True)

    full_cancellation_reason = Column(Text, nullable=True)
    cancellation_reason_note = Column(Text, nullable=True)
    cancellation_date = Column(BigInteger, nullable=True)
    invoice_id = Column(String(64), nullable=True)
    invoice_number = Column(String(64), nullable=True)

    custom_fields = Column(JSON, nullable=True)
    additional_clients = Column(JSON, nullable=True)
    raw_data = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Appointment(id={self.id}, source_id={self.source_id}, status={self.status})>"


class LeadModel(Base):
    """
    Modelo de base de datos para leads del CRM.

    processed_flag / matched_count / summary_html / stage reflejan los campos
    custom del CRM que escribe la reconciliacion.
    """

    __tablename__ = "leads"
    __table_args__ = (
        UniqueConstraint("owner_id", "source_id", name="uq_leads_owner_source"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id", ondelete="CASCADE"), nullable=False, index=True)
    source_id = Column(String(64), nullable=False)
    lead_no = Column(String(64), nullable=True)

    salutation = Column(String(32), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    secondary_email = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    mobile = Column(String(64), nullable=True)

    company = Column(String(255), nullable=True)
    designation = Column(String(255), nullable=True)
    lead_source = Column(String(100), nullable=True)
    lead_status = Column(String(100), nullable=True)
    assigned_user_id = Column(String(64), nullable=True)

    city = Column(String(255), nullable=True)
    state = Column(String(255), nullable=True)
    country = Column(String(255), nullable=True)
    code = Column(String(32), nullable=True)

    stage = Column(String(100), nullable=True)
    processed_flag = Column(String(16), nullable=True)
    matched_count = Column(String(16), nullable=True)
    summary_html = Column(Text, nullable=True)

    description = Column(Text, nullable=True)
    source_created_at = Column(DateTime, nullable=True)
    source_modified_at = Column(DateTime, nullable=True)
    raw_data = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Lead(id={self.id}, source_id={self.source_id}, email={self.email})>"
