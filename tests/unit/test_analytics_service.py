"""
Unit tests for analytics_service.
Tests the analyses computed from appointment history.
"""

from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from clinic_assistant.database.supabase import ClinicRepository
from clinic_assistant.services.analytics_service import (
    AnalyticsService,
    age_visit_correlation,
    appointments_by_specialty_trend,
    reconsultation_rate,
)

TODAY = date(2025, 5, 12)


def visit(fecha: str, patient_id: int, specialty: str | None = "Pediatría", birth: str | None = None) -> dict:
    return {
        "fecha": fecha,
        "paciente_id": patient_id,
        "doctores": {"especialidad": specialty} if specialty else None,
        "pacientes": {"fecha_nacimiento": birth} if birth else None,
    }


class TestAnalyses:
    """Tests for the pure analysis functions."""

    def test_specialty_trend_counts_per_month(self):
        rows = [
            visit("2025-04-02", 1),
            visit("2025-04-20", 2),
            visit("2025-05-01", 3, "Cardiología"),
        ]

        assert appointments_by_specialty_trend(rows) == [
            {"mes": "2025-04", "especialidad": "Pediatría", "citas": 2},
            {"mes": "2025-05", "especialidad": "Cardiología", "citas": 1},
        ]

    def test_reconsultation_rate_per_specialty(self):
        rows = [
            visit("2025-04-02", 1),
            visit("2025-04-20", 1),
            visit("2025-04-21", 2),
            visit("2025-04-22", 3),
            visit("2025-04-23", 4, None),
        ]

        result = reconsultation_rate(rows)

        assert result == [
            {"especialidad": "Pediatría", "pacientes": 3, "reconsultas": 1, "tasa": 33.3},
            {"especialidad": "Sin especialidad", "pacientes": 1, "reconsultas": 0, "tasa": 0.0},
        ]

    def test_age_correlation_groups_by_band(self):
        rows = [
            visit("2025-01-10", 1, birth="2015-06-01"),
            visit("2025-02-10", 1, birth="2015-06-01"),
            visit("2025-03-10", 2, birth="1980-05-12"),
            visit("2025-03-11", 3, birth="not a date"),
        ]

        result = age_visit_correlation(rows, TODAY)

        assert result == [
            {"grupo_edad": "0-18", "pacientes": 1, "promedio_consultas": 2.0},
            {"grupo_edad": "36-50", "pacientes": 1, "promedio_consultas": 1.0},
        ]


class TestAnalyticsService:
    """Tests for the period handling of AnalyticsService."""

    @pytest.fixture
    def repository(self):
        repository = Mock(spec=ClinicRepository)
        repository.appointment_history = AsyncMock(return_value=[])
        return repository

    @pytest.mark.asyncio
    async def test_reads_history_for_the_period(self, repository):
        # Arrange
        repository.appointment_history.return_value = [visit("2025-05-01", 1)]
        service = AnalyticsService(repository, clock=lambda: TODAY)

        # Act
        payload = await service.compute("tendencia_citas_especialidad", "mes")

        # Assert
        repository.appointment_history.assert_awaited_once_with(date(2025, 4, 12))
        assert payload.computed is True
        assert payload.rows == [{"mes": "2025-05", "especialidad": "Pediatría", "citas": 1}]

    @pytest.mark.asyncio
    async def test_no_history_gives_none(self, repository):
        service = AnalyticsService(repository, clock=lambda: TODAY)

        assert await service.compute("tasa_reconsultas", "año") is None

    @pytest.mark.asyncio
    async def test_unknown_analysis(self, repository):
        service = AnalyticsService(repository, clock=lambda: TODAY)

        with pytest.raises(ValueError):
            await service.compute("churn", "año")
