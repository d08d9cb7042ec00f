"""
Unit tests for LookupService.
Tests intent-to-query translation and the typed lookup outcomes.
"""

from datetime import date
from decimal import Decimal

import pytest

from clinic_assistant.models.domain import CallerIdentity, ConversationContext
from clinic_assistant.models.intents import (
    AdvancedAnalyticsQuery,
    AppointmentByAttributes,
    AppointmentByCode,
    DoctorQuery,
    DoctorScheduleQuery,
    GeneralInfoQuery,
    MedicalInfoQuery,
    StatisticsQuery,
)
from clinic_assistant.models.results import AmbiguousMultiple, Found, LookupFailed, NotFound
from clinic_assistant.models.schemas import (
    AnalyticsPayload,
    AppointmentRecord,
    AvailabilityPayload,
    MedicalExcerpt,
)
from clinic_assistant.services.lookup_service import is_visible_to_public, make_excerpt
from clinic_assistant.models.schemas import StatisticRecord
from tests.fakes import FakeSupabase, appointment_row


class TestAppointmentByCode:
    """Tests for appointment lookup by number."""

    @pytest.mark.asyncio
    async def test_exact_match(self, make_lookup_service):
        """Should return the flattened record when the number matches exactly."""
        # Arrange
        client = FakeSupabase({"citas": [[appointment_row("4821")]]})
        service = make_lookup_service(client)

        # Act
        result = await service.lookup(AppointmentByCode(code="4821"))

        # Assert
        assert isinstance(result, Found)
        record = result.payload
        assert isinstance(record, AppointmentRecord)
        assert record.numero_cita == "4821"
        assert record.doctor_nombre == "Ana Peláez"
        assert record.fecha == date(2025, 5, 15)
        assert client.queries[0].called("eq") == [("numero_cita", "4821")]

    @pytest.mark.asyncio
    async def test_single_partial_match_is_found(self, make_lookup_service):
        """Should accept the only substring match when no number matches exactly."""
        # Arrange
        client = FakeSupabase({"citas": [[], [appointment_row("1042")]]})
        service = make_lookup_service(client)

        # Act
        result = await service.lookup(AppointmentByCode(code="042"))

        # Assert
        assert isinstance(result, Found)
        assert result.payload.numero_cita == "1042"
        assert client.queries[1].called("ilike") == [("numero_cita", "%042%")]

    @pytest.mark.asyncio
    async def test_partial_match_with_several_rows_is_ambiguous(self, make_lookup_service):
        client = FakeSupabase({"citas": [[], [appointment_row("1482"), appointment_row("4821")]]})
        service = make_lookup_service(client)

        result = await service.lookup(AppointmentByCode(code="482"))

        assert result == AmbiguousMultiple(count=2)
        assert client.queries[1].called("ilike") == [("numero_cita", "%482%")]

    @pytest.mark.asyncio
    async def test_unknown_number(self, make_lookup_service):
        service = make_lookup_service(FakeSupabase({"citas": [[]]}))

        result = await service.lookup(AppointmentByCode(code="9999"))

        assert isinstance(result, NotFound)
        assert "9999" in result.partial

    @pytest.mark.asyncio
    async def test_uses_number_remembered_in_context(self, make_lookup_service):
        client = FakeSupabase({"citas": [[appointment_row("1234")]]})
        service = make_lookup_service(client)
        context = ConversationContext(last_appointment_code="1234")

        result = await service.lookup(AppointmentByCode(code=None), context=context)

        assert isinstance(result, Found)
        assert client.queries[0].called("eq") == [("numero_cita", "1234")]

    @pytest.mark.asyncio
    async def test_store_failure_becomes_lookup_failed(self, make_lookup_service):
        """Should never raise when the store fails."""
        service = make_lookup_service(FakeSupabase(error=RuntimeError("connection reset")))

        result = await service.lookup(AppointmentByCode(code="4821"))

        assert isinstance(result, LookupFailed)
        assert "connection reset" in result.reason


class TestAppointmentByAttributes:
    """Tests for appointment search by patient, doctor and date."""

    @pytest.mark.asyncio
    async def test_unknown_patient_keeps_partial_finding(self, make_lookup_service):
        client = FakeSupabase({"pacientes": [[]]})
        service = make_lookup_service(client)

        result = await service.lookup(AppointmentByAttributes(patient_name="Juan Perez"))

        assert isinstance(result, NotFound)
        assert "Juan Perez" in result.partial
        assert client.queries_for("citas") == []

    @pytest.mark.asyncio
    async def test_doctor_name_and_specialty_are_intersected(self, make_lookup_service):
        """Only doctors matching both the name and the specialty are searched."""
        # Arrange
        client = FakeSupabase(
            {
                "doctores": [[{"id": 1}, {"id": 2}], [{"id": 2}, {"id": 3}]],
                "citas": [[appointment_row("1234")]],
            }
        )
        service = make_lookup_service(client)
        intent = AppointmentByAttributes(doctor_name="Lopez", specialty="pediatr")

        # Act
        result = await service.lookup(intent)

        # Assert
        assert isinstance(result, Found)
        assert len(result.payload) == 1
        citas_query = client.queries_for("citas")[0]
        assert ("doctor_id", [2]) in citas_query.called("in_")

    @pytest.mark.asyncio
    async def test_forgotten_number_widens_the_date_window(self, make_lookup_service):
        client = FakeSupabase({"pacientes": [[{"id": 10}]], "citas": [[appointment_row("1234")]]})
        service = make_lookup_service(client)
        intent = AppointmentByAttributes(
            patient_name="Maria Lopez", date_approx=date(2025, 5, 15), forgot_code=True
        )

        result = await service.lookup(intent)

        assert isinstance(result, Found)
        assert isinstance(result.payload, AppointmentRecord)
        citas_query = client.queries_for("citas")[0]
        assert citas_query.called("gte") == [("fecha", "2025-05-08")]
        assert citas_query.called("lte") == [("fecha", "2025-05-22")]

    @pytest.mark.asyncio
    async def test_forgotten_number_with_several_matches(self, make_lookup_service):
        client = FakeSupabase(
            {"pacientes": [[{"id": 10}]], "citas": [[appointment_row("1234"), appointment_row("5678")]]}
        )
        service = make_lookup_service(client)

        result = await service.lookup(
            AppointmentByAttributes(patient_name="Maria Lopez", forgot_code=True)
        )

        assert result == AmbiguousMultiple(count=2)

    @pytest.mark.asyncio
    async def test_listing_is_capped(self, make_lookup_service):
        rows = [appointment_row(str(1000 + i)) for i in range(8)]
        service = make_lookup_service(FakeSupabase({"citas": [rows]}), appointment_limit=3)

        result = await service.lookup(AppointmentByAttributes(date_approx=date(2025, 5, 15)))

        assert len(result.payload) == 3


class TestDoctorLookups:
    """Tests for doctor and agenda lookups."""

    @pytest.mark.asyncio
    async def test_doctors_by_specialty(self, make_lookup_service):
        client = FakeSupabase(
            {"doctores": [[{"id": 1, "nombre": "Luis Ramírez", "especialidad": "Pediatría"}]]}
        )
        service = make_lookup_service(client, doctor_limit=5)

        result = await service.lookup(DoctorQuery(specialty="pediatr"))

        assert result.payload[0].nombre == "Luis Ramírez"
        query = client.queries[0]
        assert query.called("ilike") == [("especialidad", "%pediatr%")]
        assert query.called("limit") == [(5,)]

    @pytest.mark.asyncio
    async def test_agenda_for_today(self, make_lookup_service, today):
        client = FakeSupabase({"citas": [[appointment_row("1234", fecha=today.isoformat())]]})
        service = make_lookup_service(client)
        identity = CallerIdentity(doctor_id=7, name="Ana Peláez")

        result = await service.lookup(
            DoctorScheduleQuery(period="hoy"), caller_is_clinician=True, caller_identity=identity
        )

        assert isinstance(result, Found)
        query = client.queries[0]
        assert ("doctor_id", [7]) in query.called("in_")
        assert query.called("gte") == [("fecha", today.isoformat())]
        assert query.called("lte") == [("fecha", today.isoformat())]

    @pytest.mark.asyncio
    async def test_agenda_without_identity(self, make_lookup_service):
        client = FakeSupabase()
        service = make_lookup_service(client)

        result = await service.lookup(DoctorScheduleQuery(), caller_is_clinician=True)

        assert isinstance(result, NotFound)
        assert client.queries == []


class TestGeneralInfo:
    """Tests for static and computed general information."""

    @pytest.mark.asyncio
    async def test_static_schedule_for_saturday(self, make_lookup_service):
        client = FakeSupabase()
        service = make_lookup_service(client)

        result = await service.lookup(GeneralInfoQuery(category="horario", subcategory="sabado"))

        assert isinstance(result, Found)
        assert "8:00" in result.payload.data
        assert client.queries == []

    @pytest.mark.asyncio
    async def test_specialties_are_distinct_and_sorted(self, make_lookup_service):
        rows = [{"especialidad": s} for s in ("Pediatría", "Cardiología", "Pediatría", "")]
        service = make_lookup_service(FakeSupabase({"doctores": [rows]}))

        result = await service.lookup(GeneralInfoQuery(category="especialidades"))

        assert result.payload.data == ["Cardiología", "Pediatría"]

    @pytest.mark.asyncio
    async def test_prices_filtered_by_service(self, make_lookup_service):
        client = FakeSupabase({"servicios": [[{"nombre": "Consulta pediátrica", "precio": 200}]]})
        service = make_lookup_service(client)

        result = await service.lookup(GeneralInfoQuery(category="precios", subcategory="pediatr"))

        assert result.payload.data[0].precio == Decimal("200")
        assert client.queries[0].called("ilike") == [("nombre", "%pediatr%")]

    @pytest.mark.asyncio
    async def test_availability_subtracts_booked_appointments(self, make_lookup_service, today):
        """Remaining slots are the daily capacity minus the day's appointments."""
        # Arrange
        booked = [{"fecha": today.isoformat(), "estado": "pendiente"}] * 3
        service = make_lookup_service(FakeSupabase({"citas": [booked]}), daily_capacity=16)

        # Act
        result = await service.lookup(GeneralInfoQuery(category="disponibilidad", subcategory="semana"))

        # Assert
        payload = result.payload
        assert isinstance(payload, AvailabilityPayload)
        assert len(payload.days) == 7
        assert payload.days[0].fecha == today
        assert payload.days[0].available == 13
        assert payload.days[1].available == 16


class TestStatistics:
    """Tests for statistics and advanced analyses."""

    @pytest.mark.asyncio
    async def test_public_caller_does_not_see_restricted_rows(
        self, make_lookup_service, sample_statistics_rows
    ):
        service = make_lookup_service(FakeSupabase({"estadisticas": [sample_statistics_rows]}))

        result = await service.lookup(StatisticsQuery(domain="financiero"))

        assert [r.nombre for r in result.payload] == ["precio_promedio_consulta"]

    @pytest.mark.asyncio
    async def test_clinician_sees_every_row(self, make_lookup_service, sample_statistics_rows):
        service = make_lookup_service(FakeSupabase({"estadisticas": [sample_statistics_rows]}))

        result = await service.lookup(StatisticsQuery(domain="financiero"), caller_is_clinician=True)

        assert len(result.payload) == 3

    @pytest.mark.asyncio
    async def test_query_uses_every_given_key(self, make_lookup_service):
        client = FakeSupabase({"estadisticas": [[]]})
        service = make_lookup_service(client)

        result = await service.lookup(
            StatisticsQuery(domain="pacientes", period="mensual", filter_name="pacientes_nuevos"),
            caller_is_clinician=True,
        )

        assert isinstance(result, NotFound)
        assert client.queries[0].called("eq") == [
            ("categoria", "pacientes"),
            ("nombre", "pacientes_nuevos"),
            ("periodo", "mensual"),
        ]

    @pytest.mark.asyncio
    async def test_precomputed_analysis(self, make_lookup_service):
        row = {"categoria": "analisis_avanzado", "nombre": "tasa_reconsultas", "valor": 18.5, "periodo": "año"}
        client = FakeSupabase({"estadisticas": [[row]]})
        service = make_lookup_service(client)

        result = await service.lookup(AdvancedAnalyticsQuery(kind="tasa_reconsultas"))

        assert isinstance(result.payload, AnalyticsPayload)
        assert result.payload.computed is False
        assert client.queries_for("citas") == []

    @pytest.mark.asyncio
    async def test_analysis_computed_when_not_precomputed(self, make_lookup_service):
        """Should compute from appointment history when estadisticas has no row."""
        # Arrange
        history = [
            {"fecha": "2025-04-02", "paciente_id": 1, "doctores": {"especialidad": "Pediatría"}},
            {"fecha": "2025-04-20", "paciente_id": 1, "doctores": {"especialidad": "Pediatría"}},
            {"fecha": "2025-05-03", "paciente_id": 2, "doctores": {"especialidad": "Pediatría"}},
        ]
        client = FakeSupabase({"estadisticas": [[]], "citas": [history]})
        service = make_lookup_service(client)

        # Act
        result = await service.lookup(AdvancedAnalyticsQuery(kind="tasa_reconsultas", period="trimestre"))

        # Assert
        payload = result.payload
        assert payload.computed is True
        assert payload.rows == [
            {"especialidad": "Pediatría", "pacientes": 2, "reconsultas": 1, "tasa": 50.0}
        ]
        assert client.queries_for("citas")[0].called("gte") == [("fecha", "2025-02-11")]


class TestMedicalSearch:
    """Tests for keyword search over medical information."""

    @pytest.mark.asyncio
    async def test_best_scoring_entry_wins(self, make_lookup_service, sample_medical_rows):
        service = make_lookup_service(FakeSupabase({"info_medica": [sample_medical_rows]}))

        result = await service.search_medical_info("¿Cuáles son los síntomas del dengue?", "dengue")

        assert isinstance(result, Found)
        excerpt = result.payload
        assert isinstance(excerpt, MedicalExcerpt)
        assert excerpt.titulo == "Dengue"
        assert excerpt.excerpt.endswith("dolor muscular.")
        assert "emergencias" not in excerpt.excerpt

    @pytest.mark.asyncio
    async def test_no_overlap(self, make_lookup_service, sample_medical_rows):
        service = make_lookup_service(FakeSupabase({"info_medica": [sample_medical_rows]}))

        result = await service.search_medical_info("¿Qué es la varicela?")

        assert isinstance(result, NotFound)

    @pytest.mark.asyncio
    async def test_store_failure(self, make_lookup_service):
        service = make_lookup_service(FakeSupabase(error=TimeoutError("slow")))

        result = await service.search_medical_info("síntomas del dengue", "dengue")

        assert isinstance(result, LookupFailed)


@pytest.mark.asyncio
async def test_unsupported_intent_raises(make_lookup_service):
    service = make_lookup_service(FakeSupabase())

    with pytest.raises(TypeError):
        await service.lookup(MedicalInfoQuery(topic_hint="dengue"))


def test_visibility_rules():
    assert is_visible_to_public(StatisticRecord(categoria="tendencias", nombre="tasa_reconsultas"))
    assert not is_visible_to_public(StatisticRecord(categoria="tendencias", nombre="crecimiento_pacientes"))
    assert not is_visible_to_public(StatisticRecord(categoria="citas", nombre="x", solo_medicos=True))


def test_make_excerpt_truncates():
    excerpt = make_excerpt("Una oración muy larga " * 40 + ".", max_chars=50)

    assert len(excerpt) == 50
    assert excerpt.endswith("...")
