"""
Turn interface of the clinic assistant.
Wraps the resolution graph and guarantees a user-safe answer for every turn.
"""

import copy
from typing import Optional

from clinic_assistant.graph.builder import build_graph
from clinic_assistant.models.domain import (
    ConversationContext,
    ResolutionState,
    ResponseSource,
    TurnRequest,
    TurnResponse,
)
from clinic_assistant.services.context_service import absorb_turn
from clinic_assistant.utils.logger import get_logger, new_correlation_id
from clinic_assistant.utils.metrics import MetricsTracker
from clinic_assistant.utils.prompts import load_prompts

logger = get_logger(__name__)
PROMPTS = load_prompts()
SAFE_MESSAGE = PROMPTS["messages"]["safe_error"]


class ClinicAssistant:
    """
    Resolves one user turn at a time.
    Holds no conversation state: the caller passes the context back on each turn.
    """

    def __init__(self, graph):
        """
        Args:
            graph: Compiled resolution graph (see graph.builder.build_graph)
        """
        self.graph = graph

    async def handle_turn(
        self, request: TurnRequest, context: Optional[ConversationContext] = None
    ) -> TurnResponse:
        """
        Resolves a turn through the fallback chain.

        Any failure that escapes the chain yields the fixed apology with the
        clinic phone number; raw errors never reach the user.

        Args:
            request: Current text, prior turns and caller role
            context: Context returned by the previous turn

        Returns:
            Response text, the stage kind that produced it and the updated context
        """
        correlation_id = new_correlation_id()
        metrics = MetricsTracker()
        logger.info(
            "turn_started",
            correlation_id=correlation_id,
            clinician=request.caller_is_clinician,
            prior_turns=len(request.prior_turns),
        )

        updated = _fallback_context(context, request)
        try:
            updated = absorb_turn(context, request)
            state: ResolutionState = {"request": request, "context": updated}
            result = await self.graph.ainvoke(state)
            text = result.get("response")
            source = result.get("source") or ResponseSource.FALLBACK
            updated = result.get("context", updated)
            if not text:
                raise RuntimeError("Resolution chain finished without a response")
        except Exception as e:
            logger.error("turn_failed", exc_info=True, error=str(e))
            text, source = SAFE_MESSAGE, ResponseSource.ERROR

        metrics.finalize(answered_by=source.value)
        return TurnResponse(text=text, source=source, context=updated)


def _fallback_context(
    context: Optional[ConversationContext], request: TurnRequest
) -> ConversationContext:
    """Caller context returned when the turn fails before the chain produces one."""
    fallback = copy.deepcopy(context) if context is not None else ConversationContext()
    fallback.last_query = request.text
    return fallback


def build_assistant() -> ClinicAssistant:
    """Builds an assistant wired to the configured data store and model."""
    return ClinicAssistant(build_graph())
