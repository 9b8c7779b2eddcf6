"""
base.py
-------

Abstract base class for adaptive procedures (staircases).

An adaptive procedure proposes the next stimulus intensity, takes the
observer's response, and decides by itself when it has finished. The
MultiStairHandler interleaves several of them.

Attribute bag
-------------
Every procedure exposes an ordered set of named attributes through
``attribute_names()`` / ``attribute(name)``. These are the values copied
into each trial record by a MultiStairHandler, so they use the same
names as the condition fields (``startVal``, ``nTrials``, ...).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from typing import Any

import numpy as np

from psystair.utils.errors import InvalidResponseError

logger = logging.getLogger(__name__)


def validate_response(response: Any, origin: str) -> int:
    """
    Check that ``response`` is exactly 0 or 1.

    Booleans and floats are rejected.

    Raises
    ------
    InvalidResponseError
    """
    is_integer = isinstance(response, (int, np.integer)) and not isinstance(response, (bool, np.bool_))
    if not is_integer or response not in (0, 1):
        raise InvalidResponseError(
            origin=origin,
            context="when adding a trial response",
            error=f"the response must be either 0 or 1, got: {response!r}",
        )
    return int(response)


class AdaptiveProcedure(ABC):
    """
    Abstract interface for adaptive procedures.

    Parameters
    ----------
    name : str
        Name of the procedure (a condition's label).
    var_name : str
        Name of the manipulated variable (intensity, contrast, ...).
    n_trials : int or None
        Maximum (QUEST) or minimum (staircase) number of trials.
    extra_info : dict, optional
        Free-form information carried along, never exported per trial.
    data_sink : DataSink, optional
        Receiver of "<name>.response" records.

    Methods
    -------
    get_value() -> float
        Intensity to present on the next trial.
    add_response(response, value=None, notify=True)
        Record a response and update the estimate.

    Subclasses implement ``get_value`` and ``_update``.
    """

    def __init__(
        self,
        *,
        name: str,
        var_name: str,
        n_trials: int | None,
        extra_info: Mapping[str, Any] | None = None,
        data_sink: Any = None,
    ) -> None:
        self.name = name
        self.var_name = var_name
        self.n_trials = n_trials
        self.extra_info = dict(extra_info) if extra_info is not None else None
        self.data_sink = data_sink

        self.finished = False
        # intensities presented and responses received, one per completed trial
        self.intensities: list[float] = []
        self.data: list[int] = []

        self._attributes: dict[str, Any] = {}
        self._add_attribute("name", name)
        self._add_attribute("varName", var_name)
        self._add_attribute("nTrials", n_trials)

    # ------------------------------------------------------------------
    # Abstract methods (must be implemented by subclasses)
    # ------------------------------------------------------------------

    @abstractmethod
    def get_value(self) -> float:
        """Intensity to present on the next trial."""
        ...

    @abstractmethod
    def _update(self, response: int, intensity: float) -> None:
        """
        Update the estimate after a response and set ``finished`` when done.

        ``intensities`` and ``data`` already include this trial.
        """
        ...

    # ------------------------------------------------------------------
    # Trial interface
    # ------------------------------------------------------------------

    @property
    def intensity(self) -> float:
        return self.get_value()

    @property
    def n_completed(self) -> int:
        """Number of responses received so far."""
        return len(self.data)

    def add_response(self, response: int, value: float | None = None, notify: bool = True) -> None:
        """
        Record a response and update the procedure.

        Parameters
        ----------
        response : int
            1 = correct / detected, 0 = incorrect / not detected.
        value : float, optional
            Intensity actually presented, if it differs from ``get_value()``.
        notify : bool, default=True
            Whether to send "<name>.response" to the data sink.

        Raises
        ------
        InvalidResponseError
            If ``response`` is not exactly 0 or 1; nothing is recorded.
        """
        response = validate_response(response, f"{type(self).__name__}.add_response")

        if notify and self.data_sink is not None:
            self.data_sink.add_data(f"{self.name}.response", response)

        intensity = self.get_value() if value is None else float(value)
        self.intensities.append(intensity)
        self.data.append(response)
        logger.debug("%s: response=%d at %s=%s", self.name, response, self.var_name, intensity)

        self._update(response, intensity)

    def __iter__(self) -> Iterator[float]:
        """Yield the next intensity until the procedure has finished."""
        while not self.finished:
            yield self.get_value()

    # ------------------------------------------------------------------
    # Attribute bag
    # ------------------------------------------------------------------

    def _add_attribute(self, name: str, value: Any) -> None:
        self._attributes[name] = value

    def attribute_names(self) -> list[str]:
        """Names of the exported attributes, in declaration order."""
        names = list(self._attributes)
        if self.extra_info is not None:
            names.append("extraInfo")
        return names

    def attribute(self, name: str) -> Any:
        """Value of an exported attribute."""
        if name == "extraInfo":
            return self.extra_info
        try:
            return self._attributes[name]
        except KeyError:
            raise KeyError(f"{type(self).__name__} has no attribute {name!r}") from None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, finished={self.finished})"
