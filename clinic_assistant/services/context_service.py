"""
Conversation context store.
Refreshes the caller-owned context from the transcript and the current turn.
"""

import copy
import re
from typing import Optional

from clinic_assistant.models.domain import ConversationContext, TurnRequest
from clinic_assistant.services.intent_service import (
    NAME_WORDS,
    extract_code,
    extract_doctor_name,
)
from clinic_assistant.services.pricing_service import extract_prices, merge_prices
from clinic_assistant.utils.logger import get_logger
from clinic_assistant.utils.text import normalize, title_name

logger = get_logger(__name__)

SELF_NAME_PATTERNS = (
    re.compile(r"\b(?:me llamo|mi nombre es)\s+" + NAME_WORDS),
    re.compile(r"\bsoy\s+" + NAME_WORDS),
)

# Words that follow "soy" without being a name
NOT_SELF_NAMES = frozenset(
    {
        "el", "la", "un", "una", "de", "del", "paciente", "nuevo", "nueva", "diabetico",
        "diabetica", "hipertenso", "hipertensa", "alergico", "alergica", "medico", "doctor",
        "doctora", "mama", "papa", "madre", "padre", "hijo", "hija", "esposo", "esposa",
        "asegurado", "asegurada", "mayor", "menor", "muy", "yo", "su", "tu", "familiar",
    }
)
NAME_TERMINATORS = frozenset(
    {"y", "de", "del", "con", "para", "tengo", "quiero", "necesito", "me", "mi", "el", "la", "que"}
)


def extract_user_name(text: str) -> Optional[str]:
    """
    Name the user gives for themself ("me llamo", "mi nombre es", "soy").

    Args:
        text: Normalized user text

    Returns:
        Title-cased name or None
    """
    for pattern in SELF_NAME_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        words = []
        for word in match.group(1).split():
            if word in NAME_TERMINATORS:
                break
            words.append(word)
        if words and words[0] not in NOT_SELF_NAMES:
            return title_name(" ".join(words))
    return None


def _absorb_user_text(context: ConversationContext, text: str) -> None:
    normalized = normalize(text)

    user_name = extract_user_name(normalized)
    if user_name:
        context.identified_user_name = user_name

    doctor_name = extract_doctor_name(normalized)
    if doctor_name:
        context.identified_doctor_name = doctor_name

    code = extract_code(normalized)
    if code:
        context.last_appointment_code = code


def absorb_turn(
    context: Optional[ConversationContext], request: TurnRequest
) -> ConversationContext:
    """
    Builds the context for this turn.

    The caller's context is copied, never mutated. Prices come from assistant
    turns; names and appointment numbers come from user turns, oldest first, so
    later mentions replace earlier ones.

    Args:
        context: Context returned by the previous turn (None on the first turn)
        request: Current turn

    Returns:
        Updated copy of the context
    """
    updated = copy.deepcopy(context) if context is not None else ConversationContext()

    for turn in request.prior_turns:
        if turn.role == "assistant":
            merge_prices(updated, extract_prices(turn.text))
        else:
            _absorb_user_text(updated, turn.text)

    _absorb_user_text(updated, request.text)
    updated.last_query = request.text

    logger.debug(
        "context_absorbed",
        prices=len(updated.mentioned_prices),
        has_code=updated.last_appointment_code is not None,
        has_user_name=updated.identified_user_name is not None,
    )
    return updated


def absorb_model_reply(context: ConversationContext, reply: str) -> None:
    """Merges prices quoted in a model reply into the context."""
    prices = extract_prices(reply)
    if prices:
        merge_prices(context, prices)
        logger.info("model_prices_absorbed", count=len(prices))
