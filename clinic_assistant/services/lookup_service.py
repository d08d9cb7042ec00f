"""
Structured lookup adapter.

Turns intents into queries against the clinic data store and returns typed
LookupResult values. Store failures never escape: they become LookupFailed.
"""

import re
from datetime import date, timedelta
from typing import Callable, Optional

from clinic_assistant.database.supabase import ClinicRepository, DatabaseError
from clinic_assistant.models.domain import CallerIdentity, ConversationContext
from clinic_assistant.models.intents import (
    AdvancedAnalyticsQuery,
    AppointmentByAttributes,
    AppointmentByCode,
    DoctorQuery,
    DoctorScheduleQuery,
    GeneralInfoQuery,
    Intent,
    StatisticsQuery,
)
from clinic_assistant.models.results import (
    AmbiguousMultiple,
    Found,
    LookupFailed,
    LookupResult,
    NotFound,
)
from clinic_assistant.models.schemas import (
    AnalyticsPayload,
    AppointmentRecord,
    AvailabilityPayload,
    DayAvailability,
    DoctorRecord,
    GeneralInfoPayload,
    MedicalExcerpt,
    MedicalInfoEntry,
    ServicePrice,
    StatisticRecord,
)
from clinic_assistant.services.analytics_service import AnalyticsService
from clinic_assistant.utils.logger import get_logger
from clinic_assistant.utils.text import collapse_whitespace, normalize

logger = get_logger(__name__)

FORGOTTEN_CODE_WINDOW_DAYS = 7
SCHEDULE_LIMIT = 10
SENTENCE_END = re.compile(r"(?<=[.!?])\s+")

# Financial rows with these prefixes are clinician-only
RESTRICTED_FINANCIAL_PREFIXES = ("ingresos", "costo_tratamiento")


def is_visible_to_public(record: StatisticRecord) -> bool:
    """
    Whether a statistics row may be shown to a non-clinician.

    Hides rows flagged ``solo_medicos``, detailed financial figures and every
    trend except the re-consultation rate.
    """
    if record.solo_medicos:
        return False
    nombre = record.nombre or ""
    if record.categoria == "financiero" and any(p in nombre for p in RESTRICTED_FINANCIAL_PREFIXES):
        return False
    if record.categoria == "tendencias" and "reconsultas" not in nombre:
        return False
    return True


def make_excerpt(content: str, max_chars: int, sentences: int = 2) -> str:
    """First sentences of a text, cut at max_chars."""
    parts = SENTENCE_END.split(collapse_whitespace(content))
    excerpt = " ".join(parts[:sentences])
    if len(excerpt) > max_chars:
        excerpt = excerpt[: max_chars - 3].rstrip() + "..."
    return excerpt


class LookupService:
    """
    Resolves lookup-capable intents against the data store.
    """

    def __init__(
        self,
        repository: ClinicRepository,
        clinic_info: dict,
        analytics_service: Optional[AnalyticsService] = None,
        daily_capacity: int = 16,
        doctor_limit: int = 5,
        appointment_limit: int = 5,
        excerpt_chars: int = 400,
        clock: Callable[[], date] = date.today,
    ):
        """
        Initialize lookup service.

        Args:
            repository: Data access
            clinic_info: Static general-info table keyed by category
            analytics_service: Fallback computation for advanced analyses
            daily_capacity: Appointment slots offered per day
            doctor_limit: Max doctors returned per query
            appointment_limit: Max appointments listed per answer
            excerpt_chars: Max length of medical-info excerpts
            clock: Returns today's date (injectable for tests)
        """
        self.repository = repository
        self.clinic_info = clinic_info
        self.analytics_service = analytics_service or AnalyticsService(repository, clock)
        self.daily_capacity = daily_capacity
        self.doctor_limit = doctor_limit
        self.appointment_limit = appointment_limit
        self.excerpt_chars = excerpt_chars
        self.clock = clock
        self._handlers = {
            AppointmentByCode: self._appointment_by_code,
            AppointmentByAttributes: self._appointment_by_attributes,
            DoctorScheduleQuery: self._doctor_schedule,
            DoctorQuery: self._doctors,
            GeneralInfoQuery: self._general_info,
            StatisticsQuery: self._statistics,
            AdvancedAnalyticsQuery: self._advanced_analytics,
        }

    async def lookup(
        self,
        intent: Intent,
        caller_is_clinician: bool = False,
        context: Optional[ConversationContext] = None,
        caller_identity: Optional[CallerIdentity] = None,
    ) -> LookupResult:
        """
        Queries the store for an intent.

        Args:
            intent: Lookup-capable intent
            caller_is_clinician: Whether clinician-only rows may be returned
            context: Conversation context (supplies a remembered appointment number)
            caller_identity: Authenticated clinician, for agenda queries

        Returns:
            Found, NotFound, AmbiguousMultiple or LookupFailed

        Raises:
            TypeError: If the intent cannot be looked up
        """
        handler = self._handlers.get(type(intent))
        if handler is None:
            raise TypeError(f"No lookup for intent {type(intent).__name__}")

        try:
            result = await handler(
                intent,
                caller_is_clinician=caller_is_clinician,
                context=context,
                caller_identity=caller_identity,
            )
        except DatabaseError as e:
            logger.warning("lookup_failed", intent=type(intent).__name__, error=str(e))
            return LookupFailed(reason=str(e))

        logger.info("lookup_completed", intent=type(intent).__name__, result=type(result).__name__)
        return result

    # --- Appointments ---

    async def _appointment_by_code(self, intent: AppointmentByCode, context=None, **_) -> LookupResult:
        code = intent.code or (context.last_appointment_code if context else None)
        if not code:
            return NotFound()

        rows = await self.repository.appointments_by_code(code, exact=True)
        if not rows:
            rows = await self.repository.appointments_by_code(code, exact=False)

        if not rows:
            return NotFound(partial=f"No existe una cita con el número {code}.")
        if len(rows) > 1:
            return AmbiguousMultiple(count=len(rows))
        return Found(AppointmentRecord.from_row(rows[0]))

    async def _resolve_doctor_ids(self, intent: AppointmentByAttributes) -> Optional[set[int]]:
        """
        Doctor ids matching the requested name and specialty (intersected).

        Returns None when neither was requested and an empty set when nothing matched.
        """
        id_sets = []
        if intent.doctor_name:
            doctors = await self.repository.find_doctors(name=intent.doctor_name)
            id_sets.append({row["id"] for row in doctors})
        if intent.specialty:
            doctors = await self.repository.find_doctors(specialty=intent.specialty)
            id_sets.append({row["id"] for row in doctors})
        if not id_sets:
            return None
        return set.intersection(*id_sets)

    async def _appointment_by_attributes(
        self, intent: AppointmentByAttributes, **_
    ) -> LookupResult:
        if not intent.has_criteria():
            return NotFound()

        patient_ids = None
        if intent.patient_name:
            patient_ids = await self.repository.find_patient_ids(intent.patient_name)
            if not patient_ids:
                return NotFound(
                    partial=f"No hay pacientes registrados con el nombre {intent.patient_name}."
                )

        doctor_ids = await self._resolve_doctor_ids(intent)
        if doctor_ids is not None and not doctor_ids:
            return NotFound(partial="No se encontró un doctor con esos datos.")

        date_from = date_to = intent.date_approx
        if intent.date_approx and intent.forgot_code:
            window = timedelta(days=FORGOTTEN_CODE_WINDOW_DAYS)
            date_from, date_to = intent.date_approx - window, intent.date_approx + window

        rows = await self.repository.search_appointments(
            patient_ids=patient_ids,
            doctor_ids=doctor_ids,
            date_from=date_from,
            date_to=date_to,
            time=intent.time,
            topic=intent.topic,
        )
        if not rows:
            return NotFound()

        records = [AppointmentRecord.from_row(row) for row in rows]
        if intent.forgot_code:
            if len(records) > 1:
                return AmbiguousMultiple(count=len(records))
            return Found(records[0])
        return Found(records[: self.appointment_limit])

    async def _doctor_schedule(
        self, intent: DoctorScheduleQuery, caller_identity=None, **_
    ) -> LookupResult:
        if caller_identity is None:
            return NotFound()

        today = self.clock()
        date_from = date_to = None
        descending = False
        if intent.period == "hoy":
            date_from = date_to = today
        elif intent.period == "proximas":
            date_from = today
        elif intent.period == "pasadas":
            date_to = today - timedelta(days=1)
            descending = True

        rows = await self.repository.search_appointments(
            doctor_ids={caller_identity.doctor_id},
            date_from=date_from,
            date_to=date_to,
            status=intent.status,
            descending=descending,
            limit=SCHEDULE_LIMIT,
        )
        return Found([AppointmentRecord.from_row(row) for row in rows])

    # --- Doctors ---

    async def _doctors(self, intent: DoctorQuery, **_) -> LookupResult:
        rows = await self.repository.find_doctors(
            name=intent.name, specialty=intent.specialty, limit=self.doctor_limit
        )
        if not rows:
            return NotFound()
        return Found([DoctorRecord(**row) for row in rows])

    # --- General information ---

    async def _general_info(self, intent: GeneralInfoQuery, **_) -> LookupResult:
        if intent.category == "especialidades":
            specialties = await self.repository.doctor_specialties()
            distinct = sorted({s.strip() for s in specialties if s.strip()}, key=normalize)
            if not distinct:
                return NotFound()
            return Found(GeneralInfoPayload(category="especialidades", data=distinct))

        if intent.category == "precios":
            rows = await self.repository.service_prices(intent.subcategory)
            if not rows:
                return NotFound()
            return Found(
                GeneralInfoPayload(
                    category="precios",
                    subcategory=intent.subcategory,
                    data=[ServicePrice(**row) for row in rows],
                )
            )

        if intent.category == "disponibilidad":
            return Found(await self._availability(intent.subcategory or "semana"))

        data = self.clinic_info.get(intent.category)
        if data is None:
            return NotFound()
        if intent.subcategory and isinstance(data, dict) and intent.subcategory in data:
            data = data[intent.subcategory]
        return Found(
            GeneralInfoPayload(category=intent.category, subcategory=intent.subcategory, data=data)
        )

    async def _availability(self, scope: str) -> AvailabilityPayload:
        """
        Remaining slots per day: fixed capacity minus booked appointments.
        """
        today = self.clock()
        if scope == "hoy":
            days = [today]
        elif scope == "manana":
            days = [today + timedelta(days=1)]
        else:
            days = [today + timedelta(days=offset) for offset in range(7)]

        booked = await self.repository.booked_dates(days[0], days[-1])
        result = []
        for day in days:
            count = booked.count(day)
            result.append(
                DayAvailability(
                    fecha=day, booked=count, available=max(self.daily_capacity - count, 0)
                )
            )
        return AvailabilityPayload(capacity=self.daily_capacity, scope=scope, days=result)

    # --- Statistics ---

    async def _statistics(
        self, intent: StatisticsQuery, caller_is_clinician: bool = False, **_
    ) -> LookupResult:
        rows = await self.repository.statistics(
            categoria=intent.domain, nombre=intent.filter_name, periodo=intent.period
        )
        records = [StatisticRecord(**row) for row in rows]
        if not caller_is_clinician:
            records = [record for record in records if is_visible_to_public(record)]
        if not records:
            return NotFound()
        return Found(records)

    async def _advanced_analytics(self, intent: AdvancedAnalyticsQuery, **_) -> LookupResult:
        rows = await self.repository.statistics(
            categoria="analisis_avanzado", nombre=intent.kind, periodo=intent.period
        )
        if rows:
            return Found(
                AnalyticsPayload(
                    kind=intent.kind,
                    period=intent.period,
                    rows=[StatisticRecord(**row).model_dump() for row in rows],
                )
            )

        payload = await self.analytics_service.compute(intent.kind, intent.period)
        return Found(payload) if payload else NotFound()

    # --- Medical information ---

    async def search_medical_info(
        self, query: str, topic_hint: Optional[str] = None
    ) -> LookupResult:
        """
        Keyword-overlap search over medical-info titles and bodies.

        Each query word longer than three letters scores 1 when found in the
        body and 2 when found in the title; the best positive score wins.

        Args:
            query: User text
            topic_hint: Condition detected by the classifier

        Returns:
            Found(MedicalExcerpt), NotFound or LookupFailed
        """
        words = {word for word in re.findall(r"[a-z0-9]+", normalize(query)) if len(word) > 3}
        if topic_hint:
            words.add(normalize(topic_hint))
        if not words:
            return NotFound()

        try:
            rows = await self.repository.medical_info()
        except DatabaseError as e:
            logger.warning("medical_search_failed", error=str(e))
            return LookupFailed(reason=str(e))

        best: Optional[MedicalInfoEntry] = None
        best_score = 0
        for row in rows:
            entry = MedicalInfoEntry(**row)
            title = normalize(entry.titulo or "")
            body = normalize(entry.contenido or "")
            score = sum(2 * (word in title) + (word in body) for word in words)
            if score > best_score:
                best, best_score = entry, score

        if best is None or not best.contenido:
            return NotFound()

        logger.info("medical_info_matched", title=best.titulo, score=best_score)
        return Found(
            MedicalExcerpt(
                titulo=best.titulo,
                excerpt=make_excerpt(best.contenido, self.excerpt_chars),
                score=best_score,
            )
        )
