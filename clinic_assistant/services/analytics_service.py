"""
Advanced analyses computed from appointment history.
Used when the statistics collection has no precomputed row for the request.
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Callable, Optional

from clinic_assistant.database.supabase import ClinicRepository
from clinic_assistant.models.schemas import AnalyticsPayload
from clinic_assistant.utils.logger import get_logger

logger = get_logger(__name__)

PERIOD_DAYS = {"mes": 30, "trimestre": 90, "semestre": 180, "año": 365}

AGE_BANDS = (
    ("0-18", 0, 18),
    ("19-35", 19, 35),
    ("36-50", 36, 50),
    ("51-65", 51, 65),
    ("66+", 66, 200),
)

UNKNOWN_SPECIALTY = "Sin especialidad"


def _specialty(row: dict) -> str:
    doctor = row.get("doctores") or {}
    return doctor.get("especialidad") or UNKNOWN_SPECIALTY


def _age(birth: date, today: date) -> int:
    return today.year - birth.year - ((today.month, today.day) < (birth.month, birth.day))


def _age_band(age: int) -> Optional[str]:
    for label, low, high in AGE_BANDS:
        if low <= age <= high:
            return label
    return None


def appointments_by_specialty_trend(rows: list[dict]) -> list[dict]:
    """Monthly appointment counts per specialty, oldest month first."""
    counts: dict[tuple[str, str], int] = defaultdict(int)
    for row in rows:
        fecha = str(row.get("fecha") or "")[:7]
        if fecha:
            counts[(fecha, _specialty(row))] += 1
    return [
        {"mes": month, "especialidad": specialty, "citas": total}
        for (month, specialty), total in sorted(counts.items())
    ]


def reconsultation_rate(rows: list[dict]) -> list[dict]:
    """
    Share of patients seen more than once in the same specialty.

    Returns one row per specialty with ``tasa`` as a percentage (1 decimal).
    """
    visits: dict[str, dict[int, int]] = defaultdict(lambda: defaultdict(int))
    for row in rows:
        patient_id = row.get("paciente_id")
        if patient_id is not None:
            visits[_specialty(row)][patient_id] += 1

    result = []
    for specialty in sorted(visits):
        per_patient = visits[specialty]
        returning = sum(1 for count in per_patient.values() if count > 1)
        result.append(
            {
                "especialidad": specialty,
                "pacientes": len(per_patient),
                "reconsultas": returning,
                "tasa": round(100 * returning / len(per_patient), 1),
            }
        )
    return result


def age_visit_correlation(rows: list[dict], today: date) -> list[dict]:
    """Average number of appointments per patient for each age band."""
    per_patient: dict[int, int] = defaultdict(int)
    band_of: dict[int, str] = {}
    for row in rows:
        patient_id = row.get("paciente_id")
        birth_raw = (row.get("pacientes") or {}).get("fecha_nacimiento")
        if patient_id is None or not birth_raw:
            continue
        try:
            birth = date.fromisoformat(str(birth_raw)[:10])
        except ValueError:
            continue
        band = _age_band(_age(birth, today))
        if band is None:
            continue
        per_patient[patient_id] += 1
        band_of[patient_id] = band

    result = []
    for label, _, _ in AGE_BANDS:
        patients = [pid for pid, band in band_of.items() if band == label]
        if not patients:
            continue
        visits = sum(per_patient[pid] for pid in patients)
        result.append(
            {
                "grupo_edad": label,
                "pacientes": len(patients),
                "promedio_consultas": round(visits / len(patients), 2),
            }
        )
    return result


class AnalyticsService:
    """
    Computes advanced analyses over the appointments of a period.
    """

    def __init__(self, repository: ClinicRepository, clock: Callable[[], date] = date.today):
        """
        Initialize analytics service.

        Args:
            repository: Data access
            clock: Returns today's date (injectable for tests)
        """
        self.repository = repository
        self.clock = clock

    async def compute(self, kind: str, period: str) -> Optional[AnalyticsPayload]:
        """
        Computes an analysis for the period ending today.

        Args:
            kind: tendencia_citas_especialidad, tasa_reconsultas or correlacion_edad_consultas
            period: mes, trimestre, semestre or año

        Returns:
            Payload with at least one row, or None when there is no data

        Raises:
            DatabaseError: If the appointment history cannot be read
            ValueError: If the analysis kind is unknown
        """
        today = self.clock()
        since = today - timedelta(days=PERIOD_DAYS.get(period, 365))
        rows = await self.repository.appointment_history(since)

        if kind == "tendencia_citas_especialidad":
            result = appointments_by_specialty_trend(rows)
        elif kind == "tasa_reconsultas":
            result = reconsultation_rate(rows)
        elif kind == "correlacion_edad_consultas":
            result = age_visit_correlation(rows, today)
        else:
            raise ValueError(f"Unknown analysis: {kind}")

        logger.info("analytics_computed", kind=kind, period=period, source_rows=len(rows), rows=len(result))
        if not result:
            return None
        return AnalyticsPayload(kind=kind, period=period, rows=result, computed=True)
