"""
Intent variants produced by the classifier table.
Intents are derived from the current text only and never stored.
"""

from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional, Union

TaxType = Literal["IVA", "ISR"]
AnalyticsKind = Literal[
    "tendencia_citas_especialidad", "tasa_reconsultas", "correlacion_edad_consultas"
]
AnalyticsPeriod = Literal["mes", "trimestre", "semestre", "año"]


@dataclass(frozen=True)
class TotalRequest:
    """Sum of the prices mentioned so far."""


@dataclass(frozen=True)
class TaxRequest:
    """Total plus a tax line."""

    tax_type: TaxType = "IVA"
    rate_percent: int = 12


@dataclass(frozen=True)
class AppointmentByCode:
    """
    Appointment identified by its 4-digit number.

    ``code`` is None when the message refers to "my appointment" without a
    number; ``forgotten`` is set when the user says they lost the number.
    """

    code: Optional[str] = None
    forgotten: bool = False


@dataclass(frozen=True)
class AppointmentByAttributes:
    """Appointment(s) described by patient, doctor, date or reason."""

    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None
    specialty: Optional[str] = None
    date_approx: Optional[date] = None
    time: Optional[str] = None
    topic: Optional[str] = None
    forgot_code: bool = False

    def has_criteria(self) -> bool:
        return any(
            (self.patient_name, self.doctor_name, self.specialty, self.date_approx, self.time, self.topic)
        )


@dataclass(frozen=True)
class DoctorQuery:
    specialty: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class DoctorScheduleQuery:
    """A clinician asking for their own agenda."""

    period: Literal["hoy", "proximas", "pasadas", "todas"] = "proximas"
    status: Optional[str] = None


@dataclass(frozen=True)
class MedicalInfoQuery:
    topic_hint: Optional[str] = None


@dataclass(frozen=True)
class GeneralInfoQuery:
    category: str
    subcategory: Optional[str] = None


@dataclass(frozen=True)
class StatisticsQuery:
    domain: str
    period: Optional[str] = None
    filter_name: Optional[str] = None
    requires_clinician: bool = False


@dataclass(frozen=True)
class AdvancedAnalyticsQuery:
    kind: AnalyticsKind
    period: AnalyticsPeriod = "año"

    @property
    def requires_clinician(self) -> bool:
        return True


Intent = Union[
    TotalRequest,
    TaxRequest,
    AppointmentByCode,
    AppointmentByAttributes,
    DoctorScheduleQuery,
    DoctorQuery,
    MedicalInfoQuery,
    GeneralInfoQuery,
    StatisticsQuery,
    AdvancedAnalyticsQuery,
]

# Intents the structured lookup stage can answer, in the order it tries them
LOOKUP_INTENTS = (
    AppointmentByCode,
    AppointmentByAttributes,
    DoctorScheduleQuery,
    DoctorQuery,
    GeneralInfoQuery,
    AdvancedAnalyticsQuery,
    StatisticsQuery,
)

GATED_INTENTS = (StatisticsQuery, AdvancedAnalyticsQuery)
