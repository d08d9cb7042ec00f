"""
Supabase data access for the clinic collections.
Every query runs off the event loop with a timeout and fails with DatabaseError.
"""

import asyncio
from datetime import date
from typing import Any, Callable, Iterable, Optional

from supabase import Client

from clinic_assistant.utils.logger import get_logger
from clinic_assistant.utils.metrics import record_lookup

logger = get_logger(__name__)

APPOINTMENT_COLUMNS = (
    "id, numero_cita, fecha, hora, motivo, estado, paciente_id, doctor_id, "
    "pacientes(nombre), doctores(nombre, especialidad)"
)
DOCTOR_COLUMNS = "id, nombre, especialidad, email, telefono"
MAX_ROWS = 50


class DatabaseError(Exception):
    """Raised when database operations fail."""


class ClinicRepository:
    """
    Read-only queries over citas, pacientes, doctores, servicios,
    estadisticas and info_medica.
    """

    def __init__(self, client: Client, timeout: float = 5.0):
        """
        Initialize the repository.

        Args:
            client: Supabase client instance
            timeout: Seconds to wait for each query
        """
        self.client = client
        self.timeout = timeout

    async def _execute(self, operation: str, build_query: Callable[[], Any]) -> list[dict]:
        """
        Runs a query builder in a worker thread.

        Args:
            operation: Name used in logs
            build_query: Returns the query builder to execute

        Returns:
            Rows returned by the store

        Raises:
            DatabaseError: If the query fails or times out
        """
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(lambda: build_query().execute()),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            record_lookup(0, failed=True)
            logger.error("database_query_timeout", operation=operation, timeout=self.timeout)
            raise DatabaseError(f"{operation} exceeded timeout of {self.timeout}s") from e
        except Exception as e:
            record_lookup(0, failed=True)
            logger.error("database_query_failed", exc_info=True, operation=operation, error=str(e))
            raise DatabaseError(f"{operation} failed: {e}") from e

        rows = response.data or []
        record_lookup(len(rows))
        logger.info("database_query_completed", operation=operation, rows=len(rows))
        return rows

    # --- Appointments ---

    async def appointments_by_code(self, code: str, exact: bool = True) -> list[dict]:
        """
        Appointments whose number equals (or contains) the code.

        Args:
            code: Appointment number as typed by the user
            exact: Exact match when True, substring match otherwise
        """
        def build():
            query = self.client.table("citas").select(APPOINTMENT_COLUMNS)
            if exact:
                return query.eq("numero_cita", code)
            return query.ilike("numero_cita", f"%{code}%").limit(MAX_ROWS)

        operation = "appointments_by_code" if exact else "appointments_by_code_partial"
        return await self._execute(operation, build)

    async def search_appointments(
        self,
        patient_ids: Optional[Iterable[int]] = None,
        doctor_ids: Optional[Iterable[int]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        time: Optional[str] = None,
        topic: Optional[str] = None,
        status: Optional[str] = None,
        descending: bool = True,
        limit: int = MAX_ROWS,
    ) -> list[dict]:
        """
        Appointments filtered by any combination of criteria.

        Id filters are applied with ``in``; the date range is inclusive.
        """
        def build():
            query = self.client.table("citas").select(APPOINTMENT_COLUMNS)
            if patient_ids is not None:
                query = query.in_("paciente_id", sorted(patient_ids))
            if doctor_ids is not None:
                query = query.in_("doctor_id", sorted(doctor_ids))
            if date_from is not None:
                query = query.gte("fecha", date_from.isoformat())
            if date_to is not None:
                query = query.lte("fecha", date_to.isoformat())
            if time:
                query = query.like("hora", f"{time}%")
            if topic:
                query = query.ilike("motivo", f"%{topic}%")
            if status:
                query = query.eq("estado", status)
            return (
                query.order("fecha", desc=descending)
                .order("hora", desc=descending)
                .limit(limit)
            )

        return await self._execute("search_appointments", build)

    async def booked_dates(self, date_from: date, date_to: date) -> list[date]:
        """Dates of non-cancelled appointments in the range, one entry per appointment."""
        rows = await self._execute(
            "booked_dates",
            lambda: self.client.table("citas")
            .select("fecha, estado")
            .gte("fecha", date_from.isoformat())
            .lte("fecha", date_to.isoformat())
            .neq("estado", "cancelada"),
        )
        return [date.fromisoformat(str(row["fecha"])[:10]) for row in rows if row.get("fecha")]

    async def appointment_history(self, date_from: date) -> list[dict]:
        """Appointments since a date with specialty and patient birth date, for analytics."""
        return await self._execute(
            "appointment_history",
            lambda: self.client.table("citas")
            .select("fecha, paciente_id, estado, doctores(especialidad), pacientes(fecha_nacimiento)")
            .gte("fecha", date_from.isoformat())
            .neq("estado", "cancelada"),
        )

    # --- People ---

    async def find_patient_ids(self, name: str) -> set[int]:
        rows = await self._execute(
            "find_patient_ids",
            lambda: self.client.table("pacientes").select("id").ilike("nombre", f"%{name}%"),
        )
        return {row["id"] for row in rows}

    async def find_doctors(
        self,
        name: Optional[str] = None,
        specialty: Optional[str] = None,
        limit: int = MAX_ROWS,
    ) -> list[dict]:
        """
        Doctors whose name and/or specialty contain the given text.

        Args:
            name: Partial doctor name
            specialty: Partial specialty (accent-free stem)
            limit: Maximum rows
        """
        def build():
            query = self.client.table("doctores").select(DOCTOR_COLUMNS)
            if name:
                query = query.ilike("nombre", f"%{name}%")
            if specialty:
                query = query.ilike("especialidad", f"%{specialty}%")
            return query.order("nombre").limit(limit)

        return await self._execute("find_doctors", build)

    async def doctor_specialties(self) -> list[str]:
        rows = await self._execute(
            "doctor_specialties",
            lambda: self.client.table("doctores").select("especialidad"),
        )
        return [row["especialidad"] for row in rows if row.get("especialidad")]

    # --- Catalogues ---

    async def service_prices(self, name_filter: Optional[str] = None) -> list[dict]:
        def build():
            query = self.client.table("servicios").select("nombre, descripcion, precio, categoria")
            if name_filter:
                query = query.ilike("nombre", f"%{name_filter}%")
            return query.order("nombre")

        return await self._execute("service_prices", build)

    async def statistics(
        self,
        categoria: Optional[str] = None,
        nombre: Optional[str] = None,
        periodo: Optional[str] = None,
    ) -> list[dict]:
        """
        Rows of the flat ``estadisticas`` collection matching every given key.
        """
        def build():
            query = self.client.table("estadisticas").select("*")
            if categoria:
                query = query.eq("categoria", categoria)
            if nombre:
                query = query.eq("nombre", nombre)
            if periodo:
                query = query.eq("periodo", periodo)
            return query

        return await self._execute("statistics", build)

    async def medical_info(self) -> list[dict]:
        return await self._execute(
            "medical_info",
            lambda: self.client.table("info_medica").select("titulo, contenido, categoria"),
        )
