"""
multi_stair.py
--------------

Interleave several adaptive procedures in a single trial loop.

MultiStairHandler builds one QuestHandler per condition and, on each trial,
picks which one runs next. Selection works in *passes*: a pass is the list
of unfinished procedures, ordered according to ``method``:

- sequential:  every procedure once, in condition order
- random:      every procedure once, shuffled
- fullRandom:  one procedure, drawn at random

Each selected trial is written into the first unset slot of the trial list
(and its Snapshot), so a data logger sees the procedure's label, intensity
and parameters alongside the response.

Examples
--------
>>> conditions = [
...     {"label": "low", "startVal": 0.3, "startValSd": 0.1},
...     {"label": "high", "startVal": 0.6, "startValSd": 0.1},
... ]
>>> stairs = MultiStairHandler("contrast", conditions=conditions, n_trials=20, random_seed=1)
>>> for trial in stairs:  # doctest: +SKIP
...     stairs.add_response(run_trial(stairs.intensity))
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from psystair.data.conditions import import_conditions
from psystair.data.trials import Trial, TrialHandler, TrialMethod
from psystair.trial_placement.base import AdaptiveProcedure, validate_response
from psystair.trial_placement.quest import QuestHandler
from psystair.utils.errors import ConfigurationError, PsyStairError, coerce_option
from psystair.utils.rng import RandomSequenceProvider

logger = logging.getLogger(__name__)

# attributes of a procedure that are never copied into trial records
_EXCLUDED_ATTRIBUTES = ("trialList", "extraInfo")


class StaircaseType(str, Enum):
    """Kind of procedure built for each condition."""

    # n-up / n-down staircase (not available in a MultiStairHandler yet)
    SIMPLE = "simple"
    QUEST = "quest"


class StaircaseStatus(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"


class MultiStairHandler(TrialHandler):
    """
    Handler running several staircases at once.

    Parameters
    ----------
    var_name : str
        Name of the variable manipulated by the staircases.
    stair_type : StaircaseType or str, default=StaircaseType.QUEST
    conditions : list of dict or str
        One condition per staircase, or the name of a conditions resource.
        Every condition needs ``label`` and ``startVal`` (and ``startValSd``
        for QUEST); other fields are passed on to the staircase.
    method : TrialMethod or str, default=TrialMethod.RANDOM
        How staircases are picked within a pass.
    n_trials : int, default=50
        Expected number of trials; the trial list grows if the staircases
        need more.
    random_seed : int or str, optional
        Seed of the scheduler's random generator (system entropy if None).
    name : str, default="multiStair"
    rng : RandomSequenceProvider, optional
        Generator to use instead of a seeded one.
    data_sink : DataSink, optional
    condition_loader : callable, optional
        Function turning a resource name into a list of conditions.

    Raises
    ------
    ConfigurationError
        If the conditions are invalid or a staircase cannot be built.
    """

    def __init__(
        self,
        var_name: str,
        stair_type: StaircaseType | str = StaircaseType.QUEST,
        conditions: list[Mapping[str, Any]] | str | None = None,
        method: TrialMethod | str = TrialMethod.RANDOM,
        n_trials: int = 50,
        random_seed: int | str | None = None,
        name: str = "multiStair",
        *,
        rng: RandomSequenceProvider | None = None,
        data_sink: Any = None,
        condition_loader: Callable[[str], list[Trial]] = import_conditions,
    ) -> None:
        if isinstance(n_trials, bool) or not isinstance(n_trials, int) or n_trials < 1:
            raise ConfigurationError(
                origin="MultiStairHandler.__init__",
                context="when preparing the staircases",
                error=f"n_trials must be a positive integer, got {n_trials!r}",
            )

        # a sequential TrialHandler over n_trials unset slots; randomness is
        # dealt with in _next_trial
        super().__init__(
            trial_list=[None] * n_trials,
            n_reps=1,
            method=TrialMethod.SEQUENTIAL,
            seed=random_seed,
            name=name,
            rng=rng,
            data_sink=data_sink,
            condition_loader=condition_loader,
        )

        self._multi_method = coerce_option(
            TrialMethod,
            method,
            origin="MultiStairHandler.__init__",
            context="when preparing the staircases",
        )
        self._stair_type = coerce_option(
            StaircaseType,
            stair_type,
            origin="MultiStairHandler.__init__",
            context="when preparing the staircases",
        )
        self._var_name = var_name
        self._n_trials = n_trials

        if isinstance(conditions, str):
            conditions = condition_loader(conditions)
        self._conditions = conditions

        self._staircases = self._prepare_staircases()
        self._current_pass: list[AdaptiveProcedure] = []
        self._current_staircase: AdaptiveProcedure | None = None

        self._next_trial()

    # ------------------------------------------------------------------
    # STATE
    # ------------------------------------------------------------------
    @property
    def var_name(self) -> str:
        return self._var_name

    @property
    def stair_type(self) -> StaircaseType:
        return self._stair_type

    @property
    def multi_method(self) -> TrialMethod:
        return self._multi_method

    @property
    def conditions(self) -> Any:
        return self._conditions

    @property
    def staircases(self) -> list[AdaptiveProcedure]:
        return self._staircases

    @property
    def current_staircase(self) -> AdaptiveProcedure | None:
        """The staircase of the current trial, None once finished."""
        return self._current_staircase

    @property
    def current_pass(self) -> tuple[AdaptiveProcedure, ...]:
        """Staircases still to run in the current pass."""
        return tuple(self._current_pass)

    @property
    def intensity(self) -> float | None:
        """Intensity of the current staircase, None once finished."""
        if self._current_staircase is None:
            return None
        return self._current_staircase.get_value()

    @property
    def status(self) -> StaircaseStatus:
        return StaircaseStatus.FINISHED if self.finished else StaircaseStatus.RUNNING

    def __next__(self) -> Trial | None:
        if self.finished:
            raise StopIteration
        return super().__next__()

    # ------------------------------------------------------------------
    # RESPONSES
    # ------------------------------------------------------------------
    def add_response(self, response: int, value: float | None = None) -> None:
        """
        Add a response to the current staircase and move on to the next trial.

        Parameters
        ----------
        response : int
            1 = correct / detected, 0 = incorrect / not detected.
        value : float, optional
            Intensity actually presented, if it differs from ``intensity``.

        Raises
        ------
        InvalidResponseError
            If ``response`` is not exactly 0 or 1 and the run has not finished.
        """
        # late responses are ignored without being checked
        if self.finished:
            logger.debug("%s: ignoring response %r, all staircases have finished", self.name, response)
            return

        response = validate_response(response, "MultiStairHandler.add_response")

        self.add_data(f"{self.name}.response", response)

        # the response was logged above, do not log it again
        self._current_staircase.add_response(response, value, notify=False)
        self._next_trial()

    # ------------------------------------------------------------------
    # PREPARATION
    # ------------------------------------------------------------------
    def _validate_conditions(self) -> None:
        def invalid(error: str) -> ConfigurationError:
            return ConfigurationError(
                origin="MultiStairHandler._validate_conditions",
                context="when validating the conditions",
                error=error,
            )

        if not isinstance(self._conditions, list) or len(self._conditions) == 0:
            raise invalid("conditions should be a non empty list of dicts")

        if self._stair_type is StaircaseType.SIMPLE:
            raise invalid("'simple' staircases are currently not supported")

        for condition in self._conditions:
            if not isinstance(condition, Mapping):
                raise invalid("one of the conditions is not a dict")
            if "startVal" not in condition:
                raise invalid("each condition should include a startVal field")
            if "label" not in condition:
                raise invalid("each condition should include a label field")
            if self._stair_type is StaircaseType.QUEST and "startValSd" not in condition:
                raise invalid("QUEST conditions must include a startValSd field")

    def _prepare_staircases(self) -> list[AdaptiveProcedure]:
        self._validate_conditions()

        staircases: list[AdaptiveProcedure] = []
        for condition in self._conditions:
            try:
                staircase = QuestHandler.from_condition(
                    condition,
                    self._var_name,
                    n_trials=self._n_trials,
                    rng=self._rng,
                )
            except (PsyStairError, ValueError, TypeError) as error:
                raise ConfigurationError(
                    origin="MultiStairHandler._prepare_staircases",
                    context=f"when preparing the staircase of condition {condition.get('label')!r}",
                    error=str(error),
                ) from error
            staircases.append(staircase)

        logger.debug("%s: prepared %d staircases", self.name, len(staircases))
        return staircases

    # ------------------------------------------------------------------
    # SCHEDULING
    # ------------------------------------------------------------------
    def _new_pass(self) -> list[AdaptiveProcedure]:
        current_pass = [staircase for staircase in self._staircases if not staircase.finished]

        if self._multi_method is TrialMethod.RANDOM:
            self._rng.shuffle(current_pass)
        elif self._multi_method is TrialMethod.FULL_RANDOM and len(current_pass) > 0:
            current_pass = [self._rng.choice(current_pass)]

        return current_pass

    def _next_trial(self) -> None:
        """Select the next staircase and write its trial into the trial list."""
        if len(self._current_pass) == 0:
            self._current_pass = self._new_pass()

        if len(self._current_pass) == 0:
            self._current_staircase = None
            self._finish()
            return

        self._current_staircase = self._current_pass.pop(0)
        value = self._current_staircase.get_value()
        logger.debug(
            "%s: selected staircase: %s, estimated value for %s: %s",
            self.name,
            self._current_staircase.name,
            self._var_name,
            value,
        )

        slot = self._first_unset_slot()
        if slot is None:
            slot = self._append_slot()
            logger.warning(
                "%s: the staircases need more than the %d trials planned, extending the trial list to %d",
                self.name,
                self._n_trials,
                len(self.trial_list),
            )
        self._fill_slot(slot, self._current_staircase, value)

    def _finish(self) -> None:
        # not the finished setter: only the last trial is flagged
        self._finished = True
        for t in range(len(self._snapshots) - 1):
            if self.trial_list[t + 1] is None:
                self._snapshots[t].finished = True
                break
        logger.debug("%s: all staircases have finished", self.name)

    def _first_unset_slot(self) -> int | None:
        for t, trial in enumerate(self.trial_list):
            if trial is None:
                return t
        return None

    def _trial_fields(self, staircase: AdaptiveProcedure, value: float) -> dict[str, Any]:
        fields: dict[str, Any] = {self._var_name: value, "intensity": value, "label": staircase.name}
        for attribute in staircase.attribute_names():
            # condition columns never override the staircase value or label
            if attribute == "name" or attribute in fields or attribute in _EXCLUDED_ATTRIBUTES:
                continue
            fields[attribute] = staircase.attribute(attribute)
        return fields

    def _fill_slot(self, t: int, staircase: AdaptiveProcedure, value: float) -> None:
        fields = self._trial_fields(staircase, value)
        self.trial_list[t] = {f"{self.name}.{key}": field_value for key, field_value in fields.items()}

        snapshot = self._snapshots[t]
        for key, field_value in fields.items():
            snapshot.record(key, field_value)
