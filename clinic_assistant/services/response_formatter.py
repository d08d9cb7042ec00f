"""
Renders lookup payloads as user-facing text.
Formatting never fails: missing fields render as a placeholder.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from clinic_assistant.models.intents import (
    AdvancedAnalyticsQuery,
    AppointmentByAttributes,
    DoctorScheduleQuery,
    Intent,
    StatisticsQuery,
)
from clinic_assistant.models.schemas import (
    AnalyticsPayload,
    AppointmentRecord,
    AvailabilityPayload,
    DoctorRecord,
    GeneralInfoPayload,
    MedicalExcerpt,
    ServicePrice,
    StatisticRecord,
)
from clinic_assistant.services.pricing_service import format_money
from clinic_assistant.utils.logger import get_logger
from clinic_assistant.utils.prompts import load_prompts

logger = get_logger(__name__)
PROMPTS = load_prompts()
MESSAGES = PROMPTS["messages"]
NA = MESSAGES["not_available"]

SPECIALTY_LABELS = {
    "medicina general": "Medicina General",
    "pediatr": "Pediatría",
    "cardiolog": "Cardiología",
    "ginecolog": "Ginecología",
    "dermatolog": "Dermatología",
    "nutri": "Nutrición",
    "psicolog": "Psicología",
    "oftalmolog": "Oftalmología",
    "traumatolog": "Traumatología",
    "odontolog": "Odontología",
    "neurolog": "Neurología",
}

SCHEDULE_PERIOD_LABELS = {
    "hoy": "para hoy",
    "proximas": "próximas",
    "pasadas": "pasadas",
    "todas": "registradas",
}

ANALYTICS_TITLES = {
    "tendencia_citas_especialidad": "Tendencia de citas por especialidad",
    "tasa_reconsultas": "Tasa de reconsultas por especialidad",
    "correlacion_edad_consultas": "Consultas promedio por grupo de edad",
}

MONEY_STATISTICS = ("ingresos", "costo", "precio")

WEEKDAYS = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    """``pluralize(1, "cita") == "1 cita"``, ``pluralize(3, "cita") == "3 citas"``."""
    word = singular if count == 1 else (plural or singular + "s")
    return f"{count} {word}"


def _value(value: Any) -> str:
    if value is None or value == "":
        return NA
    return str(value)


def _date(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value else NA


def _time(value: Optional[str]) -> str:
    return value[:5] if value else NA


def _humanize(name: Optional[str]) -> str:
    if not name:
        return NA
    text = name.replace("_", " ").strip()
    return text[:1].upper() + text[1:]


def _number(value: Optional[float]) -> str:
    if value is None:
        return NA
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"


def _statistic_value(record: StatisticRecord) -> str:
    if record.valor is None:
        return NA
    if any(word in (record.nombre or "") for word in MONEY_STATISTICS):
        return format_money(Decimal(str(record.valor)))
    if "tasa" in (record.nombre or "") or "porcentaje" in (record.nombre or ""):
        return f"{_number(record.valor)}%"
    return _number(record.valor)


def format_appointment(record: AppointmentRecord, include_patient: bool = False) -> str:
    """Appointment fields in fixed order: code, date, time, doctor, specialty, reason, status."""
    lines = [
        f"- Número de cita: {_value(record.numero_cita)}",
        f"- Fecha: {_date(record.fecha)}",
        f"- Hora: {_time(record.hora)}",
        f"- Doctor(a): {_value(record.doctor_nombre)}",
        f"- Especialidad: {_value(record.especialidad)}",
        f"- Motivo: {_value(record.motivo)}",
        f"- Estado: {_humanize(record.estado)}",
    ]
    if include_patient:
        lines.append(f"- Paciente: {_value(record.paciente_nombre)}")
    return "\n".join(lines)


def format_appointment_list(
    records: list[AppointmentRecord], include_patient: bool, empty_period: str = ""
) -> str:
    if not records:
        return MESSAGES["no_appointments"].format(period=empty_period).replace(" .", ".")
    blocks = [f"Encontré {pluralize(len(records), 'cita')}:"]
    for record in records:
        blocks.append(format_appointment(record, include_patient=include_patient))
    return "\n\n".join(blocks)


def format_doctors(doctors: list[DoctorRecord]) -> str:
    lines = [f"Encontré {pluralize(len(doctors), 'doctor', 'doctores')}:"]
    for doctor in doctors:
        lines.append(f"- Dr(a). {_value(doctor.nombre)} ({_value(doctor.especialidad)})")
    return "\n".join(lines)


def format_prices(services: list[ServicePrice]) -> str:
    lines = ["Precios de nuestros servicios:"]
    for service in services:
        price = format_money(service.precio) if service.precio is not None else NA
        lines.append(f"- {_value(service.nombre)}: {price}")
    return "\n".join(lines)


def format_availability(payload: AvailabilityPayload) -> str:
    def describe(day) -> str:
        slots = pluralize(day.available, "espacio disponible", "espacios disponibles")
        return f"{WEEKDAYS[day.fecha.weekday()].capitalize()} {_date(day.fecha)}: {slots}"

    if payload.scope in ("hoy", "manana") and payload.days:
        label = "Hoy" if payload.scope == "hoy" else "Mañana"
        day = payload.days[0]
        return (
            f"{label} ({_date(day.fecha)}) quedan "
            f"{pluralize(day.available, 'espacio disponible', 'espacios disponibles')} "
            f"de {payload.capacity}."
        )

    lines = ["Disponibilidad de citas para los próximos días:"]
    lines.extend(f"- {describe(day)}" for day in payload.days)
    return "\n".join(lines)


def format_general_info(payload: GeneralInfoPayload) -> str:
    data = payload.data
    category = payload.category

    if category == "precios":
        return format_prices(data or [])
    if isinstance(data, AvailabilityPayload):
        return format_availability(data)
    if category == "especialidades":
        return "Contamos con las siguientes especialidades: " + ", ".join(data or []) + "."
    if category == "horario":
        if isinstance(data, dict):
            return f"Nuestro horario de atención: {_value(data.get('completo'))}"
        return f"Horario: {_value(data)}"
    if category == "ubicacion" and isinstance(data, dict):
        text = f"Estamos en {_value(data.get('direccion'))}."
        if data.get("referencia"):
            text += f" {data['referencia']}."
        return text
    if category == "contacto" and isinstance(data, dict):
        return (
            f"Teléfono: {_value(data.get('telefono'))}\n"
            f"WhatsApp: {_value(data.get('whatsapp'))}\n"
            f"Correo: {_value(data.get('email'))}"
        )
    if category == "proceso_cita" and isinstance(data, list):
        steps = "\n".join(f"{i}. {step}" for i, step in enumerate(data, start=1))
        return f"Para agendar una cita:\n{steps}"

    headers = {
        "documentos_registro": "Para registrarse necesita:",
        "metodos_pago": "Aceptamos los siguientes métodos de pago:",
        "seguros_afiliados": "Tenemos convenio con:",
    }
    if isinstance(data, list):
        items = "\n".join(f"- {item}" for item in data)
        return f"{headers.get(category, _humanize(category) + ':')}\n{items}"
    return _value(data)


def format_statistics(records: list[StatisticRecord], intent: Optional[StatisticsQuery]) -> str:
    """
    A single sentence when one named statistic was requested, a labeled list otherwise.
    """
    if intent is not None and intent.filter_name and len(records) == 1:
        record = records[0]
        sentence = f"{_humanize(record.nombre)}: {_statistic_value(record)}"
        if record.periodo:
            sentence += f" ({record.periodo})"
        sentence += "."
        if record.descripcion:
            sentence += f" {record.descripcion}"
        return sentence

    domain = intent.domain if intent else (records[0].categoria if records else "")
    lines = [f"Estadísticas de {_humanize(domain).lower()}:"]
    for record in records:
        period = f" ({record.periodo})" if record.periodo else ""
        lines.append(f"- {_humanize(record.nombre)}: {_statistic_value(record)}{period}")
    return "\n".join(lines)


def format_analytics(payload: AnalyticsPayload) -> str:
    title = ANALYTICS_TITLES.get(payload.kind, _humanize(payload.kind))
    lines = [f"{title} (período: {payload.period}):"]
    for row in payload.rows:
        if payload.kind == "tendencia_citas_especialidad" and "mes" in row:
            lines.append(
                f"- {row['mes']} {_value(row.get('especialidad'))}: "
                f"{pluralize(int(row.get('citas') or 0), 'cita')}"
            )
        elif payload.kind == "tasa_reconsultas" and "tasa" in row:
            lines.append(
                f"- {_value(row.get('especialidad'))}: {row['tasa']}% "
                f"({row.get('reconsultas', 0)} de {pluralize(int(row.get('pacientes') or 0), 'paciente')})"
            )
        elif payload.kind == "correlacion_edad_consultas" and "grupo_edad" in row:
            lines.append(
                f"- {row['grupo_edad']} años: {row.get('promedio_consultas', NA)} consultas promedio "
                f"({pluralize(int(row.get('pacientes') or 0), 'paciente')})"
            )
        else:
            label = _humanize(row.get("nombre") or row.get("descripcion"))
            lines.append(f"- {label}: {_value(row.get('valor'))}")
    if payload.computed:
        lines.append("Calculado a partir de las citas registradas.")
    return "\n".join(lines)


def format_medical_excerpt(excerpt: MedicalExcerpt) -> str:
    title = f"{excerpt.titulo}: " if excerpt.titulo else ""
    return f"{title}{excerpt.excerpt}\n\n{MESSAGES['medical_disclaimer']}"


def _render(intent: Optional[Intent], payload: Any) -> str:
    if isinstance(payload, AppointmentRecord):
        return "Información de su cita:\n" + format_appointment(payload)
    if isinstance(payload, MedicalExcerpt):
        return format_medical_excerpt(payload)
    if isinstance(payload, GeneralInfoPayload):
        return format_general_info(payload)
    if isinstance(payload, AvailabilityPayload):
        return format_availability(payload)
    if isinstance(payload, AnalyticsPayload):
        return format_analytics(payload)
    if isinstance(payload, list):
        if isinstance(intent, DoctorScheduleQuery):
            return format_appointment_list(
                payload, include_patient=True, empty_period=SCHEDULE_PERIOD_LABELS.get(intent.period, "")
            )
        if not payload:
            return NA
        first = payload[0]
        if isinstance(first, AppointmentRecord):
            return format_appointment_list(
                payload, include_patient=isinstance(intent, AppointmentByAttributes)
            )
        if isinstance(first, DoctorRecord):
            return format_doctors(payload)
        if isinstance(first, StatisticRecord):
            return format_statistics(payload, intent if isinstance(intent, StatisticsQuery) else None)
        if isinstance(first, ServicePrice):
            return format_prices(payload)
    if isinstance(intent, AdvancedAnalyticsQuery):
        return ANALYTICS_TITLES.get(intent.kind, NA)
    return _value(payload)


def format_lookup(intent: Optional[Intent], payload: Any) -> str:
    """
    Renders a Found payload for the intent that produced it.

    Args:
        intent: Intent that was looked up (selects list layouts)
        payload: Found payload

    Returns:
        User-facing text; never raises
    """
    try:
        return _render(intent, payload)
    except Exception as e:
        logger.error(
            "format_failed",
            exc_info=True,
            payload_type=type(payload).__name__,
            error=str(e),
        )
        return MESSAGES["format_error"]


def format_ambiguous(count: int) -> str:
    return MESSAGES["ambiguous_appointments"].format(count=count)


def specialty_label(stem: Optional[str]) -> str:
    """Display name for a specialty search stem."""
    if not stem:
        return NA
    return SPECIALTY_LABELS.get(stem, _humanize(stem))
