"""
DTOs de los jobs de sincronizacion y cursores.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SyncRequestDTO(BaseModel):
    owner_id: int = Field(..., gt=0, description="ID interno del owner")


class SyncJobResponseDTO(BaseModel):
    """Respuesta inmediata al iniciar un job (202)."""
    job_id: str
    kind: str
    owner_id: int
    status: str
    message: str
    created_at: datetime


class SyncJobStatusDTO(BaseModel):
    """Estado actual del job (polling)."""
    job_id: str
    kind: str
    owner_id: int
    status: str
    message: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None


class CursorDTO(BaseModel):
    source: str
    position_key: str
    position: int
    records: int


class CursorsDTO(BaseModel):
    owner_id: int
    cursors: List[CursorDTO]
