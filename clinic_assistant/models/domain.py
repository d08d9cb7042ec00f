"""
Domain models for a conversation turn.
ResolutionState is the state object carried through the LangGraph resolution chain.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional
from typing_extensions import TypedDict

from clinic_assistant.utils.text import normalize

Role = Literal["user", "assistant"]


class ResponseSource(str, Enum):
    """Which stage of the resolution chain produced the final text."""

    COMPUTED = "computed"
    LOOKUP = "lookup"
    MODEL = "model"
    FALLBACK = "fallback"
    ERROR = "error"


@dataclass(frozen=True)
class Turn:
    """One message of the transcript supplied by the caller."""

    role: Role
    text: str


@dataclass(frozen=True)
class MentionedPrice:
    """
    A service price seen earlier in the conversation.

    Attributes:
        label: Service name as written in the message
        amount: Amount in quetzales
        includes_tax: True when the amount already carries IVA
    """

    label: str
    amount: Decimal
    includes_tax: bool = False

    @property
    def key(self) -> str:
        """Normalized label used for de-duplication."""
        return normalize(self.label)


@dataclass
class ConversationContext:
    """
    Facts accumulated across turns.
    Owned by the caller between turns, copied on entry and returned updated.
    """

    mentioned_prices: list[MentionedPrice] = field(default_factory=list)
    last_query: Optional[str] = None
    identified_user_name: Optional[str] = None
    identified_doctor_name: Optional[str] = None
    last_appointment_code: Optional[str] = None

    def known_facts(self) -> list[str]:
        """Human readable facts for the model prompt."""
        facts = []
        if self.identified_user_name:
            facts.append(f"El usuario se llama {self.identified_user_name}.")
        if self.identified_doctor_name:
            facts.append(f"Se mencionó al doctor(a) {self.identified_doctor_name}.")
        if self.last_appointment_code:
            facts.append(f"Número de cita mencionado: {self.last_appointment_code}.")
        if self.mentioned_prices:
            prices = ", ".join(f"{p.label}: Q{p.amount:.2f}" for p in self.mentioned_prices)
            facts.append(f"Precios mencionados: {prices}.")
        return facts


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated clinician talking to the assistant."""

    doctor_id: int
    name: str


@dataclass(frozen=True)
class TurnRequest:
    """
    Input of a single turn.

    Attributes:
        text: The new user message
        prior_turns: Earlier transcript, oldest first
        caller_is_clinician: True for the doctor portal
        caller_identity: Clinician identity when known
    """

    text: str
    prior_turns: tuple[Turn, ...] = ()
    caller_is_clinician: bool = False
    caller_identity: Optional[CallerIdentity] = None


@dataclass(frozen=True)
class TurnResponse:
    """Output of a single turn."""

    text: str
    source: ResponseSource
    context: ConversationContext


class ResolutionState(TypedDict, total=False):
    """
    State of the resolution chain for one turn.

    Attributes:
        request: The incoming turn
        context: Conversation context (already refreshed with this turn)
        normalized: Normalized user text
        intents: Every intent matched by the classifier table, in priority order
        response: Final text once a stage has answered
        source: Stage kind that produced the response
        partial_data: Structured snippets found on the way, handed to the model
    """

    request: TurnRequest
    context: ConversationContext
    normalized: str
    intents: list
    response: Optional[str]
    source: Optional[ResponseSource]
    partial_data: list[str]
