"""
Unit tests for text normalization helpers.
"""

import pytest

from clinic_assistant.utils.text import contains_any, first_match, normalize, title_name


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("MÉDICO ", "medico"),
        ("  Pediatría", "pediatria"),
        ("¿Cuánto?", "¿cuanto?"),
        ("", ""),
    ],
)
def test_normalize(raw, expected):
    assert normalize(raw) == expected


def test_normalize_is_idempotent():
    text = "Olvidé mi número de cita"

    assert normalize(normalize(text)) == normalize(text)


def test_first_match_respects_table_order():
    table = {"precios": ("costo",), "financiero": ("costo de tratamiento",)}

    assert first_match("costo de tratamiento", table) == "precios"
    assert first_match("nada", table) is None


def test_contains_any():
    assert contains_any("hay cupo hoy", ("cupo", "espacio"))
    assert not contains_any("hay cupo hoy", ())


def test_title_name():
    assert title_name("ana   lucia  perez") == "Ana Lucia Perez"
