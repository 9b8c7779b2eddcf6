"""
errors.py
---------

Structured exceptions raised by psystair.

Every error carries three fields:
- origin  : the operation that failed (e.g. "MultiStairHandler.add_response")
- context : a human-readable description of the phase (e.g. "when adding a trial response")
- error   : the specific cause

Hierarchy
---------
PsyStairError
├── ConfigurationError   (fatal, construction time)
│   └── ConditionsError  (importing / selecting conditions)
└── InvalidResponseError (recoverable, the run continues)

Both leaf families also subclass ValueError, so callers that only care about
"bad input" can keep catching ValueError.
"""

from __future__ import annotations

from typing import Any


class PsyStairError(Exception):
    """
    Base class for structured psystair errors.

    Parameters
    ----------
    origin : str
        Name of the operation that raised.
    context : str
        Description of what was being done.
    error : Any
        The specific cause (usually a string).
    """

    def __init__(self, origin: str, context: str, error: Any) -> None:
        self.origin = origin
        self.context = context
        self.error = error
        super().__init__(f"{origin}: {context}: {error}")

    def to_dict(self) -> dict[str, Any]:
        """Return the origin/context/error triple as a dict."""
        return {"origin": self.origin, "context": self.context, "error": self.error}


class ConfigurationError(PsyStairError, ValueError):
    """Invalid construction arguments; the object is not usable afterwards."""


class ConditionsError(ConfigurationError):
    """A conditions resource could not be imported or a selection is invalid."""


class InvalidResponseError(PsyStairError, ValueError):
    """A trial response outside {0, 1}; no state was modified."""


def coerce_option(enum_cls, value: Any, *, origin: str, context: str):
    """
    Convert ``value`` to a member of ``enum_cls``.

    Accepts a member, its value (e.g. "fullRandom") or its name in any case
    (e.g. "FULL_RANDOM"). Anything else raises ConfigurationError.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        pass
    if isinstance(value, str) and value.upper() in enum_cls.__members__:
        return enum_cls[value.upper()]
    allowed = ", ".join(repr(member.value) for member in enum_cls)
    raise ConfigurationError(
        origin=origin,
        context=context,
        error=f"unknown {enum_cls.__name__}: {value!r}, please use one of: {allowed}",
    )
