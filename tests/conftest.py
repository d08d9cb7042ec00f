"""
Shared test fixtures and configuration.
"""

import os
from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("GROQ_API_KEY", "test-groq-key")

from clinic_assistant.database.supabase import ClinicRepository  # noqa: E402
from clinic_assistant.services.llm_service import LLMService  # noqa: E402
from clinic_assistant.services.lookup_service import LookupService  # noqa: E402
from clinic_assistant.utils.prompts import load_clinic_info  # noqa: E402
from tests.fakes import FakeSupabase, appointment_row  # noqa: E402

# Monday
TODAY = date(2025, 5, 12)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def make_lookup_service():
    """Factory building a LookupService over a fake client with a fixed clock."""

    def factory(client: FakeSupabase, **kwargs) -> LookupService:
        repository = ClinicRepository(client, timeout=1)
        return LookupService(
            repository,
            clinic_info=load_clinic_info(),
            clock=lambda: TODAY,
            **kwargs,
        )

    return factory


@pytest.fixture
def mock_llm_service():
    """LLM service double that is available and answers with a fixed text."""
    service = Mock(spec=LLMService)
    service.is_available = AsyncMock(return_value=True)
    service.generate = AsyncMock(return_value="Respuesta del modelo.")
    return service


@pytest.fixture
def sample_appointment_row() -> dict:
    return appointment_row()


@pytest.fixture
def sample_statistics_rows() -> list[dict]:
    return [
        {"categoria": "financiero", "nombre": "precio_promedio_consulta", "valor": 185.5, "periodo": "mensual"},
        {"categoria": "financiero", "nombre": "ingresos_mensuales", "valor": 125000, "periodo": "mensual"},
        {"categoria": "financiero", "nombre": "costo_tratamiento_promedio", "valor": 950, "periodo": "mensual"},
    ]


@pytest.fixture
def sample_medical_rows() -> list[dict]:
    return [
        {
            "titulo": "Dengue",
            "contenido": (
                "El dengue es una enfermedad viral transmitida por el mosquito Aedes aegypti. "
                "Sus síntomas incluyen fiebre alta, dolor de cabeza y dolor muscular. "
                "Ante síntomas de alarma acuda a emergencias."
            ),
            "categoria": "enfermedades",
        },
        {
            "titulo": "Diabetes",
            "contenido": "La diabetes es una enfermedad crónica que eleva la glucosa en sangre.",
            "categoria": "enfermedades",
        },
    ]
