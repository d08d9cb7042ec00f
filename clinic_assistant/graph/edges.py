"""
Graph edge conditions for routing between stages.
A stage that produced a response ends the turn; otherwise the next stage runs.
"""

from clinic_assistant.models.domain import ResolutionState
from clinic_assistant.utils.logger import get_logger

logger = get_logger(__name__)


def route_after_stage(state: ResolutionState) -> str:
    """
    Ends the turn once a stage has answered.

    Args:
        state: Current resolution state

    Returns:
        "answered" if a response is set, "continue" otherwise
    """
    if state.get("response"):
        logger.info("turn_answered", source=getattr(state.get("source"), "value", None))
        return "answered"
    return "continue"


def route_after_classification(state: ResolutionState) -> str:
    """
    Sends the turn into the chain once the text was classified.
    Fails gracefully to the canned stage if classification left no usable state.

    Args:
        state: Current resolution state

    Returns:
        "arithmetic" normally, "canned_fallback" when the state is invalid
    """
    if "intents" not in state or "context" not in state:
        logger.error(
            "invalid_state_after_classification",
            error="State must contain intents and context",
            fallback="canned_fallback",
        )
        return "canned_fallback"
    return "arithmetic"
