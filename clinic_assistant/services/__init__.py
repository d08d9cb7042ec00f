"""
Services package exports for the business logic layer.
"""

from clinic_assistant.services.llm_service import LLMService, create_llm, LLMError, LLMTimeoutError
from clinic_assistant.services.pricing_service import (
    calculate_total,
    classify_tax_question,
    extract_prices,
    merge_prices,
)
from clinic_assistant.services.intent_service import classify, primary_intent, CLASSIFIERS
from clinic_assistant.services.context_service import absorb_turn, absorb_model_reply
from clinic_assistant.services.lookup_service import LookupService
from clinic_assistant.services.analytics_service import AnalyticsService
from clinic_assistant.services.response_formatter import format_lookup, format_ambiguous

__all__ = [
    "LLMService",
    "create_llm",
    "LLMError",
    "LLMTimeoutError",
    "calculate_total",
    "classify_tax_question",
    "extract_prices",
    "merge_prices",
    "classify",
    "primary_intent",
    "CLASSIFIERS",
    "absorb_turn",
    "absorb_model_reply",
    "LookupService",
    "AnalyticsService",
    "format_lookup",
    "format_ambiguous",
]
