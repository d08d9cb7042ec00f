"""
Models package exports for domain state, intents, lookup results and record schemas.
"""

from clinic_assistant.models.domain import (
    CallerIdentity,
    ConversationContext,
    MentionedPrice,
    ResolutionState,
    ResponseSource,
    Turn,
    TurnRequest,
    TurnResponse,
)
from clinic_assistant.models.intents import (
    AdvancedAnalyticsQuery,
    AppointmentByAttributes,
    AppointmentByCode,
    DoctorQuery,
    DoctorScheduleQuery,
    GeneralInfoQuery,
    Intent,
    MedicalInfoQuery,
    StatisticsQuery,
    TaxRequest,
    TotalRequest,
)
from clinic_assistant.models.results import (
    AmbiguousMultiple,
    Found,
    LookupFailed,
    LookupResult,
    NotFound,
)

__all__ = [
    "CallerIdentity",
    "ConversationContext",
    "MentionedPrice",
    "ResolutionState",
    "ResponseSource",
    "Turn",
    "TurnRequest",
    "TurnResponse",
    "AdvancedAnalyticsQuery",
    "AppointmentByAttributes",
    "AppointmentByCode",
    "DoctorQuery",
    "DoctorScheduleQuery",
    "GeneralInfoQuery",
    "Intent",
    "MedicalInfoQuery",
    "StatisticsQuery",
    "TaxRequest",
    "TotalRequest",
    "AmbiguousMultiple",
    "Found",
    "LookupFailed",
    "LookupResult",
    "NotFound",
]
