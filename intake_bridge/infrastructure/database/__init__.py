"""
Configuración de base de datos.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from intake_bridge.infrastructure.database.models import (
    OwnerModel,
    AppointmentModel,
    LeadModel,
)
