"""
Outcomes of a structured lookup.
"""

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Found:
    """Lookup succeeded; payload is a record, a list of records or a payload model."""

    payload: Any


@dataclass(frozen=True)
class NotFound:
    """
    Nothing matched.

    ``partial`` carries anything learned on the way (e.g. the patient exists
    but has no appointment) so the model stage can still use it.
    """

    partial: Optional[str] = None


@dataclass(frozen=True)
class AmbiguousMultiple:
    """More than one record matched where exactly one was expected."""

    count: int


@dataclass(frozen=True)
class LookupFailed:
    """The data store failed or timed out."""

    reason: str


LookupResult = Union[Found, NotFound, AmbiguousMultiple, LookupFailed]
