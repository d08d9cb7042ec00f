"""
Keyword/regex intent classifiers.

Each classifier is a pure function over normalized text returning an intent or
None. They are registered in CLASSIFIERS in priority order and all of them run
on every turn; the resolution chain decides which match wins.
"""

import re
from datetime import date
from typing import Callable, Optional

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
from clinic_assistant.services.pricing_service import classify_tax_question
from clinic_assistant.utils.text import contains_any, first_match, normalize, title_name

# --- Vocabularies ---

TOTAL_KEYWORDS = (
    "total",
    "suma",
    "sumar",
    "sumatoria",
    "cuanto es",
    "precio total",
    "costo total",
    "todo junto",
    "en total",
    "cuanto seria",
    "cuanto saldria",
    "cuanto sale todo",
)

# "total" used for counts rather than money
NON_PRICE_TOTALS = (
    "total de pacientes",
    "total de citas",
    "total de doctores",
    "total de medicos",
)

CODE_TRIGGERS = (
    "numero de cita",
    "cita numero",
    "cita no.",
    "cita #",
    "cita nro",
    "codigo de cita",
    "mi cita",
    "informacion de la cita",
    "detalles de cita",
    "detalles de la cita",
    "consultar cita",
    "buscar cita",
    "buscar mi cita",
    "estado de cita",
    "estado de la cita",
    "datos de mi cita",
)

FORGOT_CODE_TRIGGERS = (
    "olvide mi numero",
    "olvide el numero",
    "olvide mi codigo",
    "olvide el codigo",
    "no recuerdo el numero",
    "no recuerdo mi numero",
    "no recuerdo el codigo",
    "perdi mi numero",
    "perdi el numero",
    "no tengo el numero",
    "no tengo mi numero",
    "no se mi numero",
)

ATTRIBUTE_TRIGGERS = (
    "quien tiene cita",
    "quien tiene una cita",
    "que paciente tiene",
    "que pacientes tienen",
    "cita programada",
    "cita agendada",
    "citas programadas",
    "citas agendadas",
    "cita para",
    "consulta de",
    "consulta para",
    "cita con",
    "citas con",
)

# Phrasing about making a new appointment, handled as general info
BOOKING_PHRASES = (
    "agendar",
    "reservar",
    "sacar una cita",
    "sacar cita",
    "hacer una cita",
    "programar una cita",
    "pedir una cita",
    "pedir cita",
    "solicitar una cita",
    "quiero una cita",
    "necesito una cita",
)

PRICE_PHRASES = ("cuesta", "precio", "costo", "cuanto vale", "tarifa", "cuanto cobran")

COUNTING_PHRASES = ("cuantos", "cuantas", "promedio", "porcentaje", "estadistica")

TOPICS = (
    "glucemia",
    "diabetes",
    "presion",
    "hipertension",
    "cardiologia",
    "pediatria",
    "ginecologia",
    "dermatologia",
    "oftalmologia",
    "ultrasonido",
    "radiografia",
    "laboratorio",
    "covid",
    "dengue",
    "control prenatal",
    "vacuna",
)

# Search stem (accent-free, found inside the stored name) -> trigger words
SPECIALTIES: dict[str, tuple[str, ...]] = {
    "medicina general": ("medicina general", "medico general"),
    "pediatr": ("pediatr",),
    "cardiolog": ("cardiolog", "corazon"),
    "ginecolog": ("ginecolog", "obstetr"),
    "dermatolog": ("dermatolog",),
    "nutri": ("nutricion", "nutriolog"),
    "psicolog": ("psicolog",),
    "oftalmolog": ("oftalmolog",),
    "traumatolog": ("traumatolog",),
    "odontolog": ("odontolog", "dentista"),
    "neurolog": ("neurolog",),
}

DOCTOR_TRIGGERS = (
    "doctor",
    "doctora",
    "doctores",
    "especialista",
    "quien atiende",
    "medico",
    "medicos",
    "dr.",
    "dra.",
)

# A doctor query with no name or specialty only counts with listing phrasing
DOCTOR_LISTING_PHRASES = (
    "que doctores",
    "que medicos",
    "quienes son los doctores",
    "quienes son los medicos",
    "lista de doctores",
    "lista de medicos",
    "quien atiende",
    "especialista",
    "hay doctor",
    "hay medico",
    "algun doctor",
    "algun medico",
    "tienen doctor",
    "tienen medico",
)

SCHEDULE_TRIGGERS = (
    "mis citas",
    "mi agenda",
    "mis pacientes",
    "mis consultas",
    "citas para hoy",
    "citas de hoy",
    "agenda de hoy",
    "tengo citas",
    "citas pendientes",
    "proximas citas",
    "citas completadas",
    "citas canceladas",
)

MEDICAL_TRIGGERS = (
    "que es",
    "que son",
    "sintoma",
    "tratamiento",
    "causas",
    "causa de",
    "prevenir",
    "prevencion",
    "como se contagia",
    "como se trata",
    "signos de",
)

CONDITIONS = (
    "diabetes",
    "hipertension",
    "presion alta",
    "dengue",
    "covid",
    "zika",
    "chikungunya",
    "asma",
    "gripe",
    "influenza",
    "gastritis",
    "migrana",
    "anemia",
    "obesidad",
    "colesterol",
    "neumonia",
    "varicela",
    "embarazo",
    "glucemia",
)

GENERAL_INFO_TRIGGERS: dict[str, tuple[str, ...]] = {
    "horario": (
        "horario",
        "a que hora abren",
        "a que hora cierran",
        "hora de atencion",
        "horas de atencion",
        "abren",
        "cierran",
        "estan abiertos",
        "atienden el",
        "atienden los",
    ),
    "ubicacion": (
        "ubicacion",
        "direccion",
        "donde estan",
        "donde queda",
        "donde quedan",
        "donde se encuentra",
        "donde se ubica",
        "como llegar",
        "como llego",
        "mapa",
    ),
    "contacto": (
        "telefono",
        "contacto",
        "correo",
        "email",
        "whatsapp",
        "llamar",
    ),
    "documentos_registro": (
        "documentos",
        "registrarme",
        "registro",
        "que necesito llevar",
        "papeles",
        "requisitos",
    ),
    "metodos_pago": (
        "metodos de pago",
        "metodo de pago",
        "formas de pago",
        "forma de pago",
        "como pagar",
        "puedo pagar",
        "aceptan tarjeta",
        "tarjeta",
        "efectivo",
        "transferencia",
    ),
    "seguros_afiliados": ("seguro", "aseguradora", "poliza", "cobertura"),
    "proceso_cita": BOOKING_PHRASES,
    "especialidades": (
        "especialidades",
        "que servicios",
        "servicios ofrecen",
        "servicios tienen",
        "que atienden",
    ),
    "precios": (
        "precio",
        "cuanto cuesta",
        "cuanto vale",
        "costo",
        "tarifa",
        "cuanto cobran",
    ),
    "disponibilidad": (
        "disponibilidad",
        "espacios disponibles",
        "citas disponibles",
        "hay cupo",
        "cupos",
        "lugares disponibles",
        "hay espacio",
        "horarios disponibles",
    ),
}

SCHEDULE_DAYS: dict[str, tuple[str, ...]] = {
    "sabado": ("sabado",),
    "domingo": ("domingo",),
    "semana": ("lunes", "martes", "miercoles", "jueves", "viernes", "entre semana"),
}

# Most specific first: "consulta de pediatria" filters on pediatria
SERVICE_FILTERS = (
    "pediatr",
    "ginecolog",
    "cardiolog",
    "dermatolog",
    "nutri",
    "psicolog",
    "ultrasonido",
    "laboratorio",
    "radiograf",
    "vacuna",
    "examen",
    "prueba",
    "consulta",
)

STAT_TRIGGERS = (
    "cuantos",
    "cuantas",
    "promedio",
    "estadistica",
    "porcentaje",
    "reporte",
    "indice",
    "cantidad de",
    "numero de pacientes",
    "total de pacientes",
    "total de citas",
)

OWN_APPOINTMENT_PHRASES = (
    "mi cita",
    "mi consulta",
    "mi numero",
    "mi turno",
    "a que hora es",
    "cuando es mi",
)

STAT_DOMAINS: dict[str, tuple[str, ...]] = {
    "financiero": ("ingreso", "ganancia", "factura", "financ", "dinero", "costo de tratamiento"),
    "satisfaccion": ("satisfaccion", "satisfech", "calificacion", "encuesta", "opinion"),
    "temporada": ("temporada", "estacional", "epoca", "invierno", "verano", "lluvia"),
    "tendencias": ("tendencia", "crecimiento", "reconsulta", "evolucion"),
    "pacientes": ("paciente",),
    "medicos": ("doctor", "medico", "especialista"),
    "citas": ("cita", "consulta"),
    "requisitos": ("requisito", "documento"),
}

STAT_NAMES: dict[str, dict[str, tuple[str, ...]]] = {
    "pacientes": {
        "pacientes_nuevos": ("nuevo",),
        "edad_promedio_pacientes": ("edad",),
        "pacientes_atendidos": ("atendid",),
    },
    "citas": {
        "citas_canceladas": ("cancelad",),
        "citas_completadas": ("completad", "realizad"),
        "tiempo_espera_promedio": ("espera",),
        "citas_por_dia": ("por dia", "diari"),
    },
    "medicos": {
        "pacientes_por_medico": ("por medico", "por doctor"),
        "total_medicos": ("cuantos",),
    },
    "financiero": {
        "ingresos_mensuales": ("ingreso",),
        "costo_tratamiento_promedio": ("costo de tratamiento",),
        "precio_promedio_consulta": ("precio",),
    },
    "satisfaccion": {
        "calificacion_promedio": ("calificacion",),
        "satisfaccion_general": ("satisfaccion", "satisfech"),
    },
    "tendencias": {
        "tasa_reconsultas": ("reconsulta",),
        "crecimiento_pacientes": ("crecimiento",),
    },
    "temporada": {
        "enfermedades_temporada": ("enfermedad",),
    },
    "requisitos": {},
}

STAT_PERIODS: dict[str, re.Pattern] = {
    "diario": re.compile(r"\bhoy\b|\bdiari[oa]s?\b|\bpor dia\b"),
    "semanal": re.compile(r"\bsemana(l|s)?\b"),
    "mensual": re.compile(r"\bmes(es)?\b|\bmensual(es)?\b"),
    "trimestral": re.compile(r"\btrimestr(e|al)\b"),
    "anual": re.compile(r"\bano\b|\banual\b"),
}

CLINICIAN_STAT_DOMAINS = ("pacientes", "tendencias")

ANALYTICS_TRIGGERS = ("tendencia", "correlacion", "tasa de", "tasa")

ANALYTICS_PERIODS: dict[str, re.Pattern] = {
    "mes": re.compile(r"\bmes(es)?\b|\bmensual\b"),
    "trimestre": re.compile(r"\btrimestr(e|al)\b"),
    "semestre": re.compile(r"\bsemestr(e|al)\b"),
    "año": re.compile(r"\bano\b|\banual\b"),
}

# --- Extraction patterns ---

DATE_DMY = re.compile(r"\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\b")
DATE_YMD = re.compile(r"\b(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\b")
TIME_PATTERN = re.compile(r"\b(\d{1,2}):(\d{2})\b")
MONEY_PATTERN = re.compile(r"\bq\s*\d+(?:[.,]\d+)?")
PERCENT_PATTERN = re.compile(r"\d+\s*%")
PHONE_PATTERN = re.compile(r"(?<!\d)\d{4}[\s-]\d{4}(?!\d)")
YEAR_PATTERN = re.compile(r"\b(?:del|de|en|ano|el)\s+(?:19|20)\d{2}\b")
CODE_PATTERN = re.compile(r"(?<!\d)(\d{4})(?!\d)")

NAME_WORDS = r"([a-z]+(?:\s+[a-z]+){0,2})"
PATIENT_NAME_PATTERNS = (
    re.compile(r"\bpaciente\s+" + NAME_WORDS),
    re.compile(r"\ba nombre de\s+" + NAME_WORDS),
    re.compile(r"\b(?:me llamo|mi nombre es)\s+" + NAME_WORDS),
)
DOCTOR_NAME_PATTERNS = (
    re.compile(r"\bdoctora?\s+" + NAME_WORDS),
    re.compile(r"\bdra?\.\s*" + NAME_WORDS),
)

# Words that end a captured name
NAME_STOPWORDS = frozenset(
    {
        "a", "al", "con", "de", "del", "el", "en", "es", "esta", "la", "las", "lo", "los",
        "me", "mi", "para", "por", "que", "quien", "se", "su", "tiene", "tengo", "tenia",
        "y", "o", "cita", "citas", "consulta", "hoy", "manana", "ayer", "un", "una",
        "numero", "fecha", "hora", "pero", "porque", "ya", "no", "si", "atiende", "atienden",
        "estan", "disponible", "disponibles", "hay", "trabaja", "pasa", "da",
    }
)

# Words that look like names after "doctor" but are not
NOT_A_NAME = frozenset(
    {
        "general", "especialista", "pediatra", "cardiologo", "cardiologa", "ginecologo",
        "ginecologa", "dermatologo", "dermatologa", "psicologo", "psicologa", "nutricionista",
        "familiar", "disponible", "bueno", "buena",
    }
)


def _clean_name(captured: str) -> Optional[str]:
    words = []
    for word in captured.split():
        if word in NAME_STOPWORDS:
            break
        words.append(word)
    if not words or words[0] in NOT_A_NAME or len(words[0]) < 2:
        return None
    return title_name(" ".join(words))


def extract_date(text: str) -> Optional[date]:
    """
    Extracts the first valid date (DD/MM/YYYY, DD-MM-YY or YYYY-MM-DD).

    Two-digit years are read as 20YY. Impossible dates are ignored.
    """
    match = DATE_YMD.search(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = DATE_DMY.search(text)
        if not match:
            return None
        day, month, year = (int(g) for g in match.groups())
        if year < 100:
            year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def extract_time(text: str) -> Optional[str]:
    """Extracts the first ``HH:MM`` time, zero-padded."""
    for match in TIME_PATTERN.finditer(text):
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour < 24 and minute < 60:
            return f"{hour:02d}:{minute:02d}"
    return None


def extract_code(text: str) -> Optional[str]:
    """
    Extracts a 4-digit appointment number.

    Digits that belong to a phone number ("4644-9158"), a date, a time, a
    price, a percentage or a year ("del 2024") are not codes.
    """
    cleaned = PHONE_PATTERN.sub(" ", text)
    cleaned = DATE_YMD.sub(" ", cleaned)
    cleaned = DATE_DMY.sub(" ", cleaned)
    cleaned = TIME_PATTERN.sub(" ", cleaned)
    cleaned = MONEY_PATTERN.sub(" ", cleaned)
    cleaned = PERCENT_PATTERN.sub(" ", cleaned)
    cleaned = YEAR_PATTERN.sub(" ", cleaned)
    match = CODE_PATTERN.search(cleaned)
    return match.group(1) if match else None


def extract_doctor_name(text: str) -> Optional[str]:
    """Name following "doctor", "doctora", "dr." or "dra."."""
    for pattern in DOCTOR_NAME_PATTERNS:
        for match in pattern.finditer(text):
            name = _clean_name(match.group(1))
            if name and not extract_specialty(normalize(name)):
                return name
    return None


def extract_patient_name(text: str) -> Optional[str]:
    for pattern in PATIENT_NAME_PATTERNS:
        match = pattern.search(text)
        if match:
            name = _clean_name(match.group(1))
            if name:
                return name
    return None


def extract_specialty(text: str) -> Optional[str]:
    """Search stem of the first specialty mentioned."""
    return first_match(text, SPECIALTIES)


def extract_topic(text: str) -> Optional[str]:
    for topic in TOPICS:
        if topic in text:
            return topic
    return None


# --- Classifiers ---


def classify_total(text: str) -> Optional[TotalRequest]:
    if contains_any(text, COUNTING_PHRASES) or contains_any(text, NON_PRICE_TOTALS):
        return None
    return TotalRequest() if contains_any(text, TOTAL_KEYWORDS) else None


def classify_tax(text: str) -> Optional[TaxRequest]:
    return classify_tax_question(text)


def _attributes(text: str, forgot_code: bool) -> AppointmentByAttributes:
    return AppointmentByAttributes(
        patient_name=extract_patient_name(text),
        doctor_name=extract_doctor_name(text),
        specialty=extract_specialty(text),
        date_approx=extract_date(text),
        time=extract_time(text),
        topic=extract_topic(text),
        forgot_code=forgot_code,
    )


def classify_appointment_by_code(text: str) -> Optional[AppointmentByCode]:
    """
    Appointment referenced by number, by "my appointment", or with a lost number.

    A lost number accompanied by descriptive details is left to the
    by-attributes classifier.
    """
    if contains_any(text, BOOKING_PHRASES):
        return None
    if contains_any(text, FORGOT_CODE_TRIGGERS):
        if _attributes(text, forgot_code=True).has_criteria():
            return None
        return AppointmentByCode(code=None, forgotten=True)

    code = extract_code(text)
    if code:
        return AppointmentByCode(code=code)
    if contains_any(text, CODE_TRIGGERS):
        return AppointmentByCode(code=None)
    return None


def classify_appointment_by_attributes(text: str) -> Optional[AppointmentByAttributes]:
    """
    Appointment described by who, when or why.

    Triggers on relational phrasing ("quien tiene cita", "consulta de") or on a
    lost number together with at least one descriptive detail.
    """
    if contains_any(text, BOOKING_PHRASES):
        return None
    forgot_code = contains_any(text, FORGOT_CODE_TRIGGERS)
    if forgot_code:
        intent = _attributes(text, forgot_code=True)
        return intent if intent.has_criteria() else None

    if not contains_any(text, ATTRIBUTE_TRIGGERS):
        return None
    if contains_any(text, PRICE_PHRASES) or contains_any(text, COUNTING_PHRASES):
        return None
    return _attributes(text, forgot_code=False)


def classify_doctor_schedule(text: str) -> Optional[DoctorScheduleQuery]:
    if not contains_any(text, SCHEDULE_TRIGGERS) or contains_any(text, COUNTING_PHRASES):
        return None

    if "cancelad" in text:
        status = "cancelada"
    elif "completad" in text or "atendid" in text:
        status = "completada"
    elif "pendiente" in text:
        status = "pendiente"
    else:
        status = None

    if "hoy" in text:
        period = "hoy"
    elif contains_any(text, ("pasada", "anterior", "ayer")):
        period = "pasadas"
    elif contains_any(text, ("proxima", "siguiente", "manana", "pendiente")):
        period = "proximas"
    else:
        period = "todas" if status else "proximas"
    return DoctorScheduleQuery(period=period, status=status)


def classify_doctor(text: str) -> Optional[DoctorQuery]:
    text = text.replace("centro medico", "")
    if not contains_any(text, DOCTOR_TRIGGERS):
        return None
    if contains_any(text, COUNTING_PHRASES):
        return None

    specialty = extract_specialty(text)
    name = extract_doctor_name(text)
    if specialty or name or contains_any(text, DOCTOR_LISTING_PHRASES):
        return DoctorQuery(specialty=specialty, name=name)
    return None


def classify_medical_info(text: str) -> Optional[MedicalInfoQuery]:
    condition = next((c for c in CONDITIONS if c in text), None)
    if contains_any(text, MEDICAL_TRIGGERS) or condition:
        return MedicalInfoQuery(topic_hint=condition)
    return None


def classify_general_info(text: str) -> Optional[GeneralInfoQuery]:
    category = first_match(text, GENERAL_INFO_TRIGGERS)
    if category is None:
        return None

    subcategory = None
    if category == "horario":
        subcategory = first_match(text, SCHEDULE_DAYS)
    elif category == "precios":
        subcategory = next((s for s in SERVICE_FILTERS if s in text), None)
    elif category == "disponibilidad":
        if "hoy" in text:
            subcategory = "hoy"
        elif "manana" in text:
            subcategory = "manana"
        else:
            subcategory = "semana"
    return GeneralInfoQuery(category=category, subcategory=subcategory)


def classify_statistics(text: str) -> Optional[StatisticsQuery]:
    """
    Counting, average and report questions over the statistics collection.

    Questions about the user's own appointment are never statistics.
    """
    if contains_any(text, OWN_APPOINTMENT_PHRASES):
        return None
    if not contains_any(text, STAT_TRIGGERS):
        return None

    domain = first_match(text, STAT_DOMAINS)
    if domain is None:
        return None

    filter_name = first_match(text, STAT_NAMES.get(domain, {}))
    period = next((name for name, pattern in STAT_PERIODS.items() if pattern.search(text)), None)
    return StatisticsQuery(
        domain=domain,
        period=period,
        filter_name=filter_name,
        requires_clinician=domain in CLINICIAN_STAT_DOMAINS,
    )


def classify_advanced_analytics(text: str) -> Optional[AdvancedAnalyticsQuery]:
    if not contains_any(text, ANALYTICS_TRIGGERS):
        return None

    if "correlacion" in text and "edad" in text:
        kind = "correlacion_edad_consultas"
    elif "tasa" in text and "reconsulta" in text:
        kind = "tasa_reconsultas"
    elif "tendencia" in text and contains_any(text, ("especialidad", "cita")):
        kind = "tendencia_citas_especialidad"
    else:
        return None

    period = next(
        (name for name, pattern in ANALYTICS_PERIODS.items() if pattern.search(text)), "año"
    )
    return AdvancedAnalyticsQuery(kind=kind, period=period)


# Priority order: earlier entries win when several intents match
CLASSIFIERS: tuple[tuple[str, Callable[[str], Optional[Intent]]], ...] = (
    ("total", classify_total),
    ("tax", classify_tax),
    ("appointment_by_code", classify_appointment_by_code),
    ("appointment_by_attributes", classify_appointment_by_attributes),
    ("doctor_schedule", classify_doctor_schedule),
    ("doctor", classify_doctor),
    ("medical_info", classify_medical_info),
    ("general_info", classify_general_info),
    ("advanced_analytics", classify_advanced_analytics),
    ("statistics", classify_statistics),
)


def classify(text: str) -> list[Intent]:
    """
    Runs every classifier over the text.

    Args:
        text: User text (normalized here if it is not already)

    Returns:
        Matched intents in priority order (possibly empty)
    """
    normalized = normalize(text)
    intents = []
    for _, classifier in CLASSIFIERS:
        intent = classifier(normalized)
        if intent is not None:
            intents.append(intent)
    return intents


def primary_intent(intents: list[Intent]) -> Optional[Intent]:
    """Highest-priority intent, or None when nothing matched."""
    return intents[0] if intents else None
