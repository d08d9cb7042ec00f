"""
Graph builder for the resolution chain.
Assembles services, nodes and edges into an executable LangGraph workflow.
"""

from typing import Optional

from supabase import create_client
from langgraph.graph import StateGraph, END

from clinic_assistant import config
from clinic_assistant.database.supabase import ClinicRepository
from clinic_assistant.graph.edges import route_after_classification, route_after_stage
from clinic_assistant.graph.nodes import ResolutionNodes
from clinic_assistant.models.domain import ResolutionState
from clinic_assistant.services.llm_service import GROQ_BASE_URL, LLMService, create_llm
from clinic_assistant.services.lookup_service import LookupService
from clinic_assistant.utils.logger import get_logger
from clinic_assistant.utils.prompts import load_clinic_info

logger = get_logger(__name__)

# Stage order of the chain; each entry falls through to the next one
STAGES = (
    "arithmetic",
    "access_gate",
    "structured_lookup",
    "medical_search",
    "model_inference",
)


def build_lookup_service(settings: config.Settings) -> LookupService:
    """Creates the Supabase-backed lookup service."""
    supabase = create_client(settings.supabase_url, settings.supabase_service_key)
    repository = ClinicRepository(supabase, timeout=settings.lookup_timeout)
    return LookupService(
        repository,
        clinic_info=load_clinic_info(),
        daily_capacity=settings.daily_appointment_capacity,
        doctor_limit=settings.doctor_result_limit,
        appointment_limit=settings.appointment_result_limit,
        excerpt_chars=settings.medical_excerpt_chars,
    )


def build_llm_service(settings: config.Settings) -> Optional[LLMService]:
    """
    Creates the model service, or None when no API key is configured.
    Groq-hosted models get an availability probe on the models endpoint.
    """
    api_key = settings.chat_api_key()
    if not api_key:
        logger.warning("llm_disabled", reason="missing_api_key", model=settings.chat_model)
        return None

    model = create_llm(
        model_name=settings.chat_model,
        api_key=api_key,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        base_url=settings.groq_base_url,
    )

    probe_url = None
    if "gpt" not in settings.chat_model and "gemini" not in settings.chat_model:
        probe_url = f"{(settings.groq_base_url or GROQ_BASE_URL).rstrip('/')}/models"

    return LLMService(
        model=model,
        max_retries=settings.llm_max_retries,
        timeout=settings.llm_timeout,
        rate_limit=settings.llm_rate_limit,
        probe_url=probe_url,
        api_key=api_key,
        probe_timeout=settings.llm_probe_timeout,
    )


def build_graph(
    lookup_service: Optional[LookupService] = None,
    llm_service: Optional[LLMService] = None,
    nodes: Optional[ResolutionNodes] = None,
):
    """
    Builds and compiles the resolution chain.

    Services not given are created from the application settings.

    Args:
        lookup_service: Structured lookup adapter
        llm_service: External model service
        nodes: Prebuilt nodes (overrides both services)

    Returns:
        Compiled graph ready for execution
    """
    logger.info("graph_components_initializing")

    if nodes is None:
        settings = config.get_settings()
        if lookup_service is None:
            lookup_service = build_lookup_service(settings)
        if llm_service is None:
            llm_service = build_llm_service(settings)
        nodes = ResolutionNodes(
            lookup_service=lookup_service,
            llm_service=llm_service,
            history_window=settings.history_window,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
        )

    logger.info("graph_workflow_building")
    workflow = StateGraph(ResolutionState)

    workflow.add_node("classify", nodes.classify_node)
    workflow.add_node("arithmetic", nodes.arithmetic_node)
    workflow.add_node("access_gate", nodes.access_gate_node)
    workflow.add_node("structured_lookup", nodes.structured_lookup_node)
    workflow.add_node("medical_search", nodes.medical_search_node)
    workflow.add_node("model_inference", nodes.model_inference_node)
    workflow.add_node("canned_fallback", nodes.canned_fallback_node)

    workflow.set_entry_point("classify")

    workflow.add_conditional_edges(
        "classify",
        route_after_classification,
        {"arithmetic": "arithmetic", "canned_fallback": "canned_fallback"},
    )

    next_stages = STAGES[1:] + ("canned_fallback",)
    for current, following in zip(STAGES, next_stages):
        workflow.add_conditional_edges(
            current,
            route_after_stage,
            {"answered": END, "continue": following},
        )

    workflow.add_edge("canned_fallback", END)

    logger.info("graph_compiling", stages=len(STAGES) + 2)
    return workflow.compile()
