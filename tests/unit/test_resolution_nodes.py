"""
Unit tests for the resolution graph nodes and edges.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from clinic_assistant.graph.edges import route_after_classification, route_after_stage
from clinic_assistant.graph.nodes import ResolutionNodes
from clinic_assistant.models.domain import (
    CallerIdentity,
    ConversationContext,
    ResponseSource,
    Turn,
    TurnRequest,
)
from clinic_assistant.models.intents import (
    AppointmentByCode,
    DoctorScheduleQuery,
    StatisticsQuery,
)
from clinic_assistant.models.results import Found
from clinic_assistant.services.lookup_service import LookupService


@pytest.fixture
def lookup_service():
    """Mock lookup service for testing."""
    service = Mock(spec=LookupService)
    service.lookup = AsyncMock()
    service.search_medical_info = AsyncMock()
    return service


@pytest.fixture
def nodes(lookup_service, mock_llm_service):
    return ResolutionNodes(lookup_service=lookup_service, llm_service=mock_llm_service, history_window=2)


def state_for(text: str, clinician: bool = False, identity=None, **extra) -> dict:
    state = {
        "request": TurnRequest(text=text, caller_is_clinician=clinician, caller_identity=identity),
        "context": ConversationContext(),
    }
    state.update(extra)
    return state


class TestClassifyNode:
    """Tests for classification."""

    @pytest.mark.asyncio
    async def test_agenda_dropped_for_patients(self, nodes):
        result = await nodes.classify_node(state_for("mis citas de hoy"))

        assert not any(isinstance(i, DoctorScheduleQuery) for i in result["intents"])

    @pytest.mark.asyncio
    async def test_agenda_kept_for_identified_clinician(self, nodes):
        identity = CallerIdentity(doctor_id=7, name="Ana")

        result = await nodes.classify_node(state_for("mis citas de hoy", True, identity))

        assert result["intents"][0] == DoctorScheduleQuery(period="hoy")
        assert result["normalized"] == "mis citas de hoy"


class TestAccessGateNode:
    """Tests for the clinician-only gate."""

    @pytest.mark.asyncio
    async def test_public_statistics_pass(self, nodes):
        intents = [StatisticsQuery(domain="citas", requires_clinician=False)]

        assert await nodes.access_gate_node(state_for("x", intents=intents)) == {}

    @pytest.mark.asyncio
    async def test_clinician_statistics_are_denied_to_patients(self, nodes, lookup_service):
        intents = [StatisticsQuery(domain="pacientes", requires_clinician=True)]

        result = await nodes.access_gate_node(state_for("x", intents=intents))

        assert result["source"] == ResponseSource.COMPUTED
        lookup_service.lookup.assert_not_awaited()


class TestStructuredLookupNode:
    """Tests for the structured lookup stage."""

    @pytest.mark.asyncio
    async def test_asks_for_number_without_calling_the_store(self, nodes, lookup_service):
        result = await nodes.structured_lookup_node(
            state_for("mi cita", intents=[AppointmentByCode(code=None)])
        )

        assert result["source"] == ResponseSource.LOOKUP
        lookup_service.lookup.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_lookup_error_falls_through(self, nodes, lookup_service):
        lookup_service.lookup.side_effect = RuntimeError("bug")

        result = await nodes.structured_lookup_node(
            state_for("cita 1234", intents=[AppointmentByCode(code="1234")])
        )

        assert result == {}

    @pytest.mark.asyncio
    async def test_only_first_lookup_intent_is_tried(self, nodes, lookup_service):
        lookup_service.lookup.return_value = Found([])
        intents = [AppointmentByCode(code="1234"), StatisticsQuery(domain="citas")]

        await nodes.structured_lookup_node(state_for("x", intents=intents, partial_data=[]))

        assert lookup_service.lookup.await_count == 1
        assert lookup_service.lookup.call_args.args[0] == AppointmentByCode(code="1234")


class TestModelPrompt:
    """Tests for prompt construction."""

    def test_prompt_uses_last_turns_only(self, nodes):
        request = TurnRequest(
            text="¿Y los sábados?",
            prior_turns=(
                Turn("user", "primero"),
                Turn("user", "¿Abren los domingos?"),
                Turn("assistant", "No, los domingos cerramos."),
            ),
        )

        prompt = nodes._build_prompt({"request": request})

        assert "primero" not in prompt
        assert "Usuario: ¿Abren los domingos?" in prompt
        assert "Asistente: No, los domingos cerramos." in prompt
        assert prompt.endswith("¿Y los sábados?")

    def test_clinician_persona_names_the_doctor(self, nodes):
        state = state_for("x", True, CallerIdentity(doctor_id=7, name="Ana Peláez"))

        instructions = nodes._build_system_instructions(state)

        assert "Dr(a). Ana Peláez" in instructions


class TestEdges:
    """Tests for routing between stages."""

    def test_answered_stage_ends_the_turn(self):
        assert route_after_stage({"response": "listo"}) == "answered"
        assert route_after_stage({"response": None}) == "continue"

    def test_invalid_state_goes_to_canned_fallback(self):
        assert route_after_classification({"intents": []}) == "canned_fallback"
        assert route_after_classification({"intents": [], "context": ConversationContext()}) == "arithmetic"
