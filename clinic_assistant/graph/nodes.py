"""
Graph nodes implementing the stages of the resolution chain.
Each stage either answers the turn or leaves the state untouched so the next one runs.
"""

import functools
import random
from typing import Optional

from clinic_assistant.models.domain import ResolutionState, ResponseSource, Turn
from clinic_assistant.models.intents import (
    GATED_INTENTS,
    LOOKUP_INTENTS,
    AppointmentByAttributes,
    AppointmentByCode,
    DoctorQuery,
    DoctorScheduleQuery,
    GeneralInfoQuery,
    MedicalInfoQuery,
    TaxRequest,
    TotalRequest,
)
from clinic_assistant.models.results import AmbiguousMultiple, Found, LookupFailed, NotFound
from clinic_assistant.services.context_service import absorb_model_reply
from clinic_assistant.services.intent_service import classify
from clinic_assistant.services.llm_service import LLMError, LLMService, LLMTimeoutError
from clinic_assistant.services.lookup_service import LookupService
from clinic_assistant.services.pricing_service import calculate_total
from clinic_assistant.services.response_formatter import (
    format_ambiguous,
    format_lookup,
    specialty_label,
)
from clinic_assistant.utils.logger import get_logger
from clinic_assistant.utils.metrics import end_stage_timing, start_stage_timing
from clinic_assistant.utils.prompts import load_prompts
from clinic_assistant.utils.text import contains_any, normalize

logger = get_logger(__name__)
PROMPTS = load_prompts()
MESSAGES = PROMPTS["messages"]

# General-info category -> canned topic
GENERAL_INFO_CANNED = {
    "horario": "horario",
    "ubicacion": "ubicacion",
    "contacto": "contacto",
    "documentos_registro": "documentos",
    "metodos_pago": "pago",
    "seguros_afiliados": "seguros",
    "proceso_cita": "cita",
    "especialidades": "especialidades",
    "precios": "precios",
    "disponibilidad": "disponibilidad",
}


def stage(name: str):
    """Logs and times a resolution stage."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, state: ResolutionState) -> dict:
            logger.info("node_started", node=name)
            start_stage_timing(name)
            try:
                return await func(self, state)
            finally:
                end_stage_timing(name)

        return wrapper

    return decorator


def _answer(text: str, source: ResponseSource) -> dict:
    return {"response": text, "source": source}


class ResolutionNodes:
    """
    Container for all graph node functions.
    Nodes are thin wrappers that delegate to services.
    """

    def __init__(
        self,
        lookup_service: LookupService,
        llm_service: Optional[LLMService] = None,
        history_window: int = 5,
        max_tokens: int = 200,
        temperature: float = 0.7,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize graph nodes with required services.

        Args:
            lookup_service: Structured lookups against the data store
            llm_service: External model (None disables the model stage)
            history_window: Prior turns included in the model prompt
            max_tokens: Reply length limit for the model
            temperature: Sampling temperature for the model
            rng: Random source for the fallback pool
        """
        self.lookup_service = lookup_service
        self.llm_service = llm_service
        self.history_window = history_window
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.rng = rng or random.Random()

    @stage("classify")
    async def classify_node(self, state: ResolutionState) -> dict:
        """Normalizes the text and runs the classifier table."""
        request = state["request"]
        normalized = normalize(request.text)
        intents = classify(normalized)

        # Agenda questions only make sense for an identified clinician
        if not (request.caller_is_clinician and request.caller_identity):
            intents = [i for i in intents if not isinstance(i, DoctorScheduleQuery)]

        logger.info("intents_classified", intents=[type(i).__name__ for i in intents])
        return {
            "normalized": normalized,
            "intents": intents,
            "partial_data": [],
            "response": None,
            "source": None,
        }

    @stage("arithmetic")
    async def arithmetic_node(self, state: ResolutionState) -> dict:
        """Totals and tax breakdowns computed from the prices in context."""
        intents = state.get("intents", [])
        tax = next((i for i in intents if isinstance(i, TaxRequest)), None)
        wants_total = any(isinstance(i, TotalRequest) for i in intents)
        if tax is None and not wants_total:
            return {}

        try:
            text = calculate_total(state["context"], with_tax=tax is not None, tax=tax)
        except Exception as e:
            logger.error("arithmetic_failed", exc_info=True, error=str(e))
            return {}
        return _answer(text, ResponseSource.COMPUTED)

    @stage("access_gate")
    async def access_gate_node(self, state: ResolutionState) -> dict:
        """Denies clinician-only statistics to other callers without touching the store."""
        if state["request"].caller_is_clinician:
            return {}

        gated = [
            i
            for i in state.get("intents", [])
            if isinstance(i, GATED_INTENTS) and i.requires_clinician
        ]
        if not gated:
            return {}

        logger.info("access_denied", intent=type(gated[0]).__name__)
        return _answer(MESSAGES["access_denied"], ResponseSource.COMPUTED)

    @stage("structured_lookup")
    async def structured_lookup_node(self, state: ResolutionState) -> dict:
        """
        Answers from the data store using the highest-priority lookup intent.
        Not-found and failures fall through with any partial finding kept for the model.
        """
        intent = next(
            (i for i in state.get("intents", []) if isinstance(i, LOOKUP_INTENTS)), None
        )
        if intent is None:
            return {}

        request = state["request"]
        context = state["context"]

        if isinstance(intent, AppointmentByCode):
            if intent.forgotten:
                return _answer(MESSAGES["forgotten_code"], ResponseSource.LOOKUP)
            if not intent.code and not context.last_appointment_code:
                return _answer(MESSAGES["ask_appointment_code"], ResponseSource.LOOKUP)
        if isinstance(intent, AppointmentByAttributes) and not intent.has_criteria():
            return _answer(MESSAGES["need_appointment_details"], ResponseSource.LOOKUP)

        try:
            result = await self.lookup_service.lookup(
                intent,
                caller_is_clinician=request.caller_is_clinician,
                context=context,
                caller_identity=request.caller_identity,
            )
        except Exception as e:
            logger.error("structured_lookup_failed", exc_info=True, error=str(e))
            return {}

        if isinstance(result, Found):
            return _answer(format_lookup(intent, result.payload), ResponseSource.LOOKUP)
        if isinstance(result, AmbiguousMultiple):
            return _answer(format_ambiguous(result.count), ResponseSource.LOOKUP)

        partial_data = list(state.get("partial_data", []))
        if isinstance(result, NotFound):
            if result.partial:
                partial_data.append(result.partial)
            elif isinstance(intent, DoctorQuery) and intent.specialty:
                partial_data.append(
                    f"No hay doctores registrados de {specialty_label(intent.specialty)}."
                )
        elif isinstance(result, LookupFailed):
            logger.warning("structured_lookup_fell_through", reason=result.reason)
        return {"partial_data": partial_data}

    @stage("medical_search")
    async def medical_search_node(self, state: ResolutionState) -> dict:
        """Keyword search over the medical-info collection."""
        intent = next(
            (i for i in state.get("intents", []) if isinstance(i, MedicalInfoQuery)), None
        )
        if intent is None:
            return {}

        try:
            result = await self.lookup_service.search_medical_info(
                state["request"].text, intent.topic_hint
            )
        except Exception as e:
            logger.error("medical_search_failed", exc_info=True, error=str(e))
            return {}

        if isinstance(result, Found):
            return _answer(format_lookup(intent, result.payload), ResponseSource.LOOKUP)
        return {}

    @stage("model_inference")
    async def model_inference_node(self, state: ResolutionState) -> dict:
        """Free-form answer from the external model, grounded on what was found so far."""
        if self.llm_service is None:
            return {}

        try:
            if not await self.llm_service.is_available():
                logger.warning("model_unavailable")
                return {}

            reply = await self.llm_service.generate(
                prompt=self._build_prompt(state),
                system_instructions=self._build_system_instructions(state),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except (LLMError, LLMTimeoutError) as e:
            logger.warning("model_inference_fell_through", error=str(e))
            return {}
        except Exception as e:
            logger.error("model_inference_failed", exc_info=True, error=str(e))
            return {}

        absorb_model_reply(state["context"], reply)
        return _answer(reply, ResponseSource.MODEL)

    @stage("canned_fallback")
    async def canned_fallback_node(self, state: ResolutionState) -> dict:
        """Topic-matched canned text, else a pick from the generic pool."""
        topic = self._canned_topic(state)
        if topic:
            return _answer(PROMPTS["canned_responses"][topic], ResponseSource.FALLBACK)

        identity = state["request"].caller_identity
        if state["request"].caller_is_clinician and identity:
            text = PROMPTS["clinician_fallback"].format(name=identity.name)
            return _answer(text, ResponseSource.FALLBACK)

        return _answer(self.rng.choice(PROMPTS["fallback_pool"]), ResponseSource.FALLBACK)

    def _canned_topic(self, state: ResolutionState) -> Optional[str]:
        for intent in state.get("intents", []):
            if isinstance(intent, GeneralInfoQuery):
                return GENERAL_INFO_CANNED.get(intent.category)
            if isinstance(intent, (AppointmentByCode, AppointmentByAttributes)):
                return "cita_numero"
            if isinstance(intent, DoctorQuery):
                return "especialidades"
            if isinstance(intent, MedicalInfoQuery) and intent.topic_hint in ("covid", "dengue"):
                return intent.topic_hint

        normalized = state.get("normalized", "")
        for topic, keywords in PROMPTS["canned_keywords"].items():
            if contains_any(normalized, keywords):
                return topic
        return None

    def _build_system_instructions(self, state: ResolutionState) -> str:
        request = state["request"]
        persona = PROMPTS["persona"]
        if request.caller_is_clinician:
            line = ""
            if request.caller_identity:
                line = persona["clinician_line"].format(name=request.caller_identity.name)
            sections = [persona["clinician_system"].format(clinician_line=line).strip()]
        else:
            sections = [persona["patient_system"].strip()]

        model_texts = PROMPTS["model"]
        if state.get("partial_data"):
            sections.append(
                model_texts["data_header"] + "\n" + "\n".join(f"- {d}" for d in state["partial_data"])
            )
        facts = state["context"].known_facts()
        if facts:
            sections.append(model_texts["facts_header"] + "\n" + "\n".join(f"- {f}" for f in facts))
        return "\n\n".join(sections)

    def _build_prompt(self, state: ResolutionState) -> str:
        model_texts = PROMPTS["model"]
        turns: tuple[Turn, ...] = state["request"].prior_turns
        recent = turns[-self.history_window:] if self.history_window else ()

        history = ""
        if recent:
            lines = [
                f"{model_texts['user_label'] if t.role == 'user' else model_texts['assistant_label']}: {t.text}"
                for t in recent
            ]
            history = model_texts["history_header"] + "\n" + "\n\n".join(lines)

        return model_texts["prompt_template"].format(
            history=history, message=state["request"].text
        ).strip()
