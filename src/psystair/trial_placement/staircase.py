"""
staircase.py
------------

Classical n-up / n-down staircase.

- Purely response-driven, 1D only.
- The value goes down after ``n_down`` consecutive correct responses and up
  after ``n_up`` consecutive incorrect ones.
- With ``apply_initial_rule`` the staircase follows a 1-up / 1-down rule
  until the first reversal, which quickly brings it near threshold.
- Step sizes may change at each reversal (``step_sizes`` as a list); the
  last step size is used once the list is exhausted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from psystair.trial_placement.base import AdaptiveProcedure
from psystair.utils.errors import ConfigurationError, coerce_option

logger = logging.getLogger(__name__)


class StepType(str, Enum):
    """How a step is applied to the current value."""

    # value *= 10 ** (step / 20)
    DB = "db"
    # value += step
    LINEAR = "lin"
    # value *= 10 ** step
    LOG = "log"


class Direction(str, Enum):
    START = "START"
    UP = "UP"
    DOWN = "DOWN"


class StairHandler(AdaptiveProcedure):
    """
    Staircase procedure.

    Parameters
    ----------
    var_name : str
        Name of the manipulated variable.
    start_val : float
        Starting stimulus intensity.
    step_sizes : float or sequence of float, default=4.0
        Step increment(s); the i-th entry is used after the i-th reversal.
    n_trials : int, default=0
        Minimum number of trials.
    n_reversals : int, optional
        Minimum number of reversals (default: ``len(step_sizes)``).
    n_up : int, default=1
        Consecutive incorrect responses before the value goes up.
    n_down : int, default=3
        Consecutive correct responses before the value goes down.
    apply_initial_rule : bool, default=True
        Use a 1-up / 1-down rule until the first reversal.
    step_type : StepType or str, default=StepType.DB
    min_val, max_val : float, optional
        Limits on the value.
    name : str, default="stair"
    extra_info : dict, optional
    data_sink : DataSink, optional

    Notes
    -----
    The staircase finishes once it has both ``n_reversals`` reversals and
    ``n_trials`` trials.

    Examples
    --------
    >>> stair = StairHandler("contrast", start_val=0.5, step_sizes=0.1,
    ...                      step_type="lin", n_trials=10, n_down=2)
    >>> stair.add_response(0)
    >>> round(stair.get_value(), 2)
    0.6
    """

    def __init__(
        self,
        var_name: str,
        start_val: float,
        step_sizes: float | Sequence[float] = 4.0,
        n_trials: int = 0,
        n_reversals: int | None = None,
        n_up: int = 1,
        n_down: int = 3,
        apply_initial_rule: bool = True,
        step_type: StepType | str = StepType.DB,
        min_val: float | None = None,
        max_val: float | None = None,
        name: str = "stair",
        extra_info: Mapping[str, Any] | None = None,
        data_sink: Any = None,
    ) -> None:
        super().__init__(
            name=name,
            var_name=var_name,
            n_trials=n_trials,
            extra_info=extra_info,
            data_sink=data_sink,
        )
        if isinstance(step_sizes, (int, float)):
            step_sizes = [step_sizes]
        self.step_sizes = [float(step) for step in step_sizes]
        if len(self.step_sizes) == 0:
            raise ConfigurationError(
                origin="StairHandler.__init__",
                context="when setting up the staircase",
                error="step_sizes must not be empty",
            )
        if n_up < 1 or n_down < 1:
            raise ConfigurationError(
                origin="StairHandler.__init__",
                context="when setting up the staircase",
                error=f"n_up and n_down must be at least 1, got {n_up} and {n_down}",
            )

        self.start_val = float(start_val)
        self.n_reversals = len(self.step_sizes) if n_reversals is None else n_reversals
        self.n_up = n_up
        self.n_down = n_down
        self.apply_initial_rule = apply_initial_rule
        self.step_type = coerce_option(
            StepType,
            step_type,
            origin="StairHandler.__init__",
            context="when setting up the staircase",
        )
        self.min_val = min_val
        self.max_val = max_val

        self._add_attribute("startVal", self.start_val)
        self._add_attribute("minVal", min_val)
        self._add_attribute("maxVal", max_val)
        self._add_attribute("nReversals", self.n_reversals)
        self._add_attribute("nUp", n_up)
        self._add_attribute("nDown", n_down)
        self._add_attribute("applyInitialRule", apply_initial_rule)
        self._add_attribute("stepType", self.step_type.value)
        self._add_attribute("stepSizes", list(self.step_sizes))

        self._variable_step = len(self.step_sizes) > 1
        self._current_step_size = self.step_sizes[0]
        self._stair_value = self.start_val
        # > 0: run of correct responses, < 0: run of incorrect ones
        self.correct_counter = 0
        self.reversal_points: list[int] = []
        self.reversal_intensities: list[float] = []
        self._initial_rule = False
        self.current_direction = Direction.START

    def get_value(self) -> float:
        return self._stair_value

    def _update(self, response: int, intensity: float) -> None:
        if len(self.data) > 1 and self.data[-2] == response:
            self.correct_counter += 1 if response == 1 else -1
        else:
            self.correct_counter = 1 if response == 1 else -1

        initial_phase = len(self.reversal_intensities) == 0 and self.apply_initial_rule
        if initial_phase:
            new_direction = Direction.DOWN if response == 1 else Direction.UP
        elif self.correct_counter >= self.n_down:
            new_direction = Direction.DOWN
        elif self.correct_counter <= -self.n_up:
            new_direction = Direction.UP
        else:
            new_direction = self.current_direction

        reversed_direction = (
            self.current_direction is not Direction.START and new_direction is not self.current_direction
        )
        self.current_direction = new_direction

        if reversed_direction:
            self.reversal_points.append(self.n_completed - 1)
            self._initial_rule = initial_phase
            self.reversal_intensities.append(intensity)
            logger.debug("%s: reversal %d at %s", self.name, len(self.reversal_intensities), intensity)

        if len(self.reversal_intensities) >= self.n_reversals and self.n_completed >= self.n_trials:
            self.finished = True
            logger.debug("%s: finished after %d trials", self.name, self.n_completed)
            return

        if reversed_direction and self._variable_step:
            index = min(len(self.reversal_intensities), len(self.step_sizes) - 1)
            self._current_step_size = self.step_sizes[index]

        if (len(self.reversal_intensities) == 0 or self._initial_rule) and self.apply_initial_rule:
            self._initial_rule = False
            if response == 1:
                self._decrease_value()
            else:
                self._increase_value()
        elif self.correct_counter >= self.n_down:
            self._decrease_value()
        elif self.correct_counter <= -self.n_up:
            self._increase_value()

        logger.debug("%s: estimated value for %s: %s", self.name, self.var_name, self._stair_value)

    def _increase_value(self) -> None:
        self.correct_counter = 0
        if self.step_type is StepType.DB:
            self._stair_value *= 10.0 ** (self._current_step_size / 20.0)
        elif self.step_type is StepType.LOG:
            self._stair_value *= 10.0**self._current_step_size
        else:
            self._stair_value += self._current_step_size
        if self.max_val is not None and self._stair_value > self.max_val:
            self._stair_value = self.max_val

    def _decrease_value(self) -> None:
        self.correct_counter = 0
        if self.step_type is StepType.DB:
            self._stair_value /= 10.0 ** (self._current_step_size / 20.0)
        elif self.step_type is StepType.LOG:
            self._stair_value /= 10.0**self._current_step_size
        else:
            self._stair_value -= self._current_step_size
        if self.min_val is not None and self._stair_value < self.min_val:
            self._stair_value = self.min_val
