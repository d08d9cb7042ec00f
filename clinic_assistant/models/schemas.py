"""
Record schemas for rows read from the data store.
Every field the formatter may print is optional; missing values render as a placeholder.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict


class AppointmentRecord(BaseModel):
    """
    Row of ``citas`` flattened with its patient and doctor joins.
    """

    id: Optional[int] = None
    numero_cita: Optional[str] = None
    fecha: Optional[date] = None
    hora: Optional[str] = None
    motivo: Optional[str] = None
    estado: Optional[str] = None
    paciente_id: Optional[int] = None
    paciente_nombre: Optional[str] = None
    doctor_id: Optional[int] = None
    doctor_nombre: Optional[str] = None
    especialidad: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AppointmentRecord":
        """
        Builds a record from a ``citas`` row with ``pacientes``/``doctores`` embeds.

        Args:
            row: Raw row as returned by the Supabase client

        Returns:
            Flattened appointment record
        """
        paciente = row.get("pacientes") or {}
        doctor = row.get("doctores") or {}
        numero = row.get("numero_cita")
        return cls(
            id=row.get("id"),
            numero_cita=str(numero) if numero is not None else None,
            fecha=row.get("fecha"),
            hora=row.get("hora"),
            motivo=row.get("motivo"),
            estado=row.get("estado"),
            paciente_id=row.get("paciente_id"),
            paciente_nombre=paciente.get("nombre"),
            doctor_id=row.get("doctor_id"),
            doctor_nombre=doctor.get("nombre"),
            especialidad=doctor.get("especialidad"),
        )


class DoctorRecord(BaseModel):
    id: Optional[int] = None
    nombre: Optional[str] = None
    especialidad: Optional[str] = None
    email: Optional[str] = None
    telefono: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ServicePrice(BaseModel):
    """Entry of the ``servicios`` price list."""

    nombre: Optional[str] = None
    descripcion: Optional[str] = None
    precio: Optional[Decimal] = None
    categoria: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class StatisticRecord(BaseModel):
    """
    Flat key/value row of ``estadisticas``.

    ``solo_medicos`` marks rows that only clinicians may see.
    """

    categoria: Optional[str] = None
    nombre: Optional[str] = None
    valor: Optional[float] = None
    periodo: Optional[str] = None
    descripcion: Optional[str] = None
    solo_medicos: bool = False

    model_config = ConfigDict(extra="ignore")


class MedicalInfoEntry(BaseModel):
    titulo: Optional[str] = None
    contenido: Optional[str] = None
    categoria: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class MedicalExcerpt(BaseModel):
    """Best matching medical-info entry, cut to a short excerpt."""

    titulo: Optional[str] = None
    excerpt: str
    score: int = Field(default=0, ge=0)


class GeneralInfoPayload(BaseModel):
    """
    Static or computed general information.

    ``data`` is a string, a mapping or a list depending on the category.
    """

    category: str
    subcategory: Optional[str] = None
    data: Any = None


class DayAvailability(BaseModel):
    fecha: date
    booked: int = Field(ge=0)
    available: int = Field(ge=0)


class AvailabilityPayload(BaseModel):
    capacity: int
    scope: str = "semana"
    days: list[DayAvailability] = Field(default_factory=list)


class AnalyticsPayload(BaseModel):
    """
    Result of an advanced analysis.

    Attributes:
        kind: Analysis identifier
        period: Period the analysis covers
        rows: One mapping per line of the analysis
        computed: True when calculated from appointments instead of read from ``estadisticas``
    """

    kind: str
    period: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    computed: bool = False
