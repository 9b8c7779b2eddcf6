"""
trials.py
---------

Trial sequencing.

defines:
- TrialMethod: ordering policy of a trial sequence
- Snapshot: state of a TrialHandler as of one trial position
- TrialHandler: iterator over a list of trials, repeated n_reps times

Notes
-----
- A trial is a plain dict mapping variable names to values. Unset trial
  slots are None; reading one never raises.
- One Snapshot exists per trial position and is created up front. A data
  logger can therefore read the snapshot of trial t after the handler has
  already moved on to trial t + 1.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from psystair.data.conditions import import_conditions
from psystair.utils.errors import ConfigurationError, coerce_option
from psystair.utils.rng import RandomSequenceProvider, as_provider

logger = logging.getLogger(__name__)

Trial = dict[str, Any]


class TrialMethod(str, Enum):
    """Ordering of the trials within and across repeats."""

    # conditions are presented in the order they are given
    SEQUENTIAL = "sequential"
    # conditions are shuffled within each repeat
    RANDOM = "random"
    # conditions are shuffled across all repeats
    FULL_RANDOM = "fullRandom"


@dataclass
class Snapshot:
    """
    State of a TrialHandler as of one trial position.

    Attributes
    ----------
    name : str
        Name of the handler the snapshot belongs to.
    n_stim : int
        Number of trials in the trial list.
    n_total : int
        Number of trials that will be run.
    n_remaining : int
        Number of trials remaining after this one.
    this_rep_n : int
        Repeat this trial belongs to.
    this_trial_n : int
        Position of this trial within its repeat.
    this_n : int
        Position of this trial in the whole run.
    this_index : int
        Index of this trial in the trial list.
    ran : bool
        Whether the handler has reached this trial.
    finished : bool
        Whether the loop finished at this trial.
    trial_attributes : list of str
        Names of the fields written into ``values`` for this trial.
    values : dict
        Per-trial fields written after the snapshot was created
        (e.g. by a MultiStairHandler).
    """

    name: str
    n_stim: int
    n_total: int
    n_remaining: int
    this_rep_n: int
    this_trial_n: int
    this_n: int
    this_index: int
    ran: bool = False
    finished: bool = False
    trial_attributes: list[str] = field(default_factory=list)
    values: dict[str, Any] = field(default_factory=dict)
    handler: TrialHandler | None = field(default=None, repr=False, compare=False)

    @property
    def order(self) -> int:
        """Position of the trial in the run once it ran, -1 before."""
        return self.this_n if self.ran else -1

    def record(self, field_name: str, value: Any) -> None:
        """Store a per-trial field and remember its name."""
        self.values[field_name] = value
        if field_name not in self.trial_attributes:
            self.trial_attributes.append(field_name)

    def get_current_trial(self) -> Trial | None:
        """Return the trial this snapshot refers to."""
        if self.handler is None:
            return None
        return self.handler.get_trial(self.this_index)

    def get_trial(self, index: int = 0) -> Trial | None:
        """Return the trial at ``index`` of the handler's trial list."""
        if self.handler is None:
            return None
        return self.handler.get_trial(index)

    def loop_attributes(self) -> dict[str, Any]:
        """
        Fields to log for this trial.

        Returns the standard loop counters, prefixed with the loop name,
        followed by the fields of the current trial.
        """
        attributes: dict[str, Any] = {
            f"{self.name}.thisRepN": self.this_rep_n,
            f"{self.name}.thisTrialN": self.this_trial_n,
            f"{self.name}.thisN": self.this_n,
            f"{self.name}.thisIndex": self.this_index,
            f"{self.name}.ran": int(self.ran),
            f"{self.name}.order": self.order,
        }
        current_trial = self.get_current_trial()
        if isinstance(current_trial, Mapping):
            attributes.update(current_trial)
        return attributes

    def __getitem__(self, field_name: str) -> Any:
        return self.values[field_name]

    def get(self, field_name: str, default: Any = None) -> Any:
        return self.values.get(field_name, default)


class TrialHandler:
    """
    Iterator over a list of trials.

    Parameters
    ----------
    trial_list : list of dict, str or None
        The trials, or the name of a conditions resource passed to
        ``condition_loader``. None or [] is a single unset trial.
    n_reps : int, default=1
        Number of repeats of the trial list.
    method : TrialMethod or str, default=TrialMethod.RANDOM
        Ordering policy.
    extra_info : dict, optional
        Additional information stored alongside the data (participant, session, ...).
    seed : int or str, optional
        Seed of the random generator (ignored if ``rng`` is given).
    name : str, default="trials"
        Name of the loop, used as a prefix when logging data.
    rng : RandomSequenceProvider, optional
        Random generator to use instead of a fresh seeded one.
    data_sink : DataSink, optional
        Receiver of ``add_data`` calls (e.g. an ExperimentData).
    condition_loader : callable, optional
        Function turning a resource name into a list of trials.

    Examples
    --------
    >>> handler = TrialHandler([{"ori": 0}, {"ori": 90}], n_reps=2, method="sequential")
    >>> [trial["ori"] for trial in handler]
    [0, 90, 0, 90]
    """

    def __init__(
        self,
        trial_list: list[Trial | None] | str | None = None,
        n_reps: int = 1,
        method: TrialMethod | str = TrialMethod.RANDOM,
        extra_info: Mapping[str, Any] | None = None,
        seed: int | str | None = None,
        name: str = "trials",
        *,
        rng: RandomSequenceProvider | None = None,
        data_sink: Any = None,
        condition_loader: Callable[[str], list[Trial]] = import_conditions,
    ) -> None:
        self.name = name
        self.extra_info = dict(extra_info or {})
        self.seed = seed
        self.method = coerce_option(
            TrialMethod,
            method,
            origin="TrialHandler.__init__",
            context="when preparing a sequence of trials",
        )
        if isinstance(n_reps, bool) or not isinstance(n_reps, int) or n_reps < 1:
            raise ConfigurationError(
                origin="TrialHandler.__init__",
                context="when preparing a sequence of trials",
                error=f"n_reps must be a positive integer, got {n_reps!r}",
            )
        self.n_reps = n_reps
        self.experiment_handler = data_sink
        self._condition_loader = condition_loader
        self._rng = as_provider(rng, seed)

        self.trial_list: list[Trial | None] = self._prepare_trial_list(trial_list)

        # number of stimuli
        self.n_stim = len(self.trial_list)
        # total number of trials that will be run
        self.n_total = self.n_reps * self.n_stim
        self.n_remaining = self.n_total
        # current repeat
        self.this_rep_n = 0
        # current trial within the current repeat
        self.this_trial_n = -1
        # number of trials started so far, minus one
        self.this_n = -1
        # index of the current trial in the trial list
        self.this_index = 0
        self.ran = False
        self.order = -1
        self.this_trial: Trial | None = None
        self._finished = False

        self._trial_sequence = self._prepare_sequence()
        self._snapshots = self._prepare_snapshots()

    # ------------------------------------------------------------------
    # ITERATION
    # ------------------------------------------------------------------
    def __iter__(self) -> TrialHandler:
        return self

    def __next__(self) -> Trial | None:
        if self.this_rep_n >= self.n_reps:
            raise StopIteration

        self.this_trial_n += 1
        self.this_n += 1
        self.n_remaining -= 1

        # start a new repeat
        if self.this_trial_n == self.n_stim:
            self.this_trial_n = 0
            self.this_rep_n += 1

        if self.this_rep_n >= self.n_reps:
            self.this_trial = None
            raise StopIteration

        self.this_index = self._trial_sequence[self.this_rep_n][self.this_trial_n]
        self.this_trial = self.trial_list[self.this_index]
        self.ran = True
        self.order = self.this_n
        self._snapshots[self.this_n].ran = True

        logger.debug(
            "%s: new trial (rep=%d, index=%d): %s",
            self.name,
            self.this_rep_n,
            self.this_index,
            self.this_trial,
        )
        return self.this_trial

    def for_each(self, callback: Callable[[Trial | None], Any]) -> None:
        """Call ``callback`` on every remaining trial of the sequence."""
        for trial in self:
            callback(trial)

    # ------------------------------------------------------------------
    # SNAPSHOTS
    # ------------------------------------------------------------------
    @property
    def snapshots(self) -> list[Snapshot]:
        """One snapshot per trial position."""
        return self._snapshots

    def get_snapshot(self) -> Snapshot:
        """
        Return the snapshot of the current trial position.

        Before iteration has started this is the snapshot of the first trial,
        once the sequence is exhausted it is the snapshot of the last one.
        """
        if self.this_n < 0:
            return self._snapshots[0]
        return self._snapshots[min(self.this_n, len(self._snapshots) - 1)]

    @property
    def finished(self) -> bool:
        return self._finished

    @finished.setter
    def finished(self, is_finished: bool) -> None:
        self._finished = is_finished
        for snapshot in self._snapshots:
            snapshot.finished = is_finished

    # ------------------------------------------------------------------
    # TRIAL ACCESS
    # ------------------------------------------------------------------
    def get_trial_index(self) -> int:
        return self.this_index

    def set_trial_index(self, index: int) -> None:
        self.this_index = index

    def get_attributes(self) -> list[str]:
        """
        Names of the trial attributes.

        All trials are assumed to share the attributes of the first one.
        """
        if self.n_stim == 0:
            return []
        first_trial = self.trial_list[0]
        if not isinstance(first_trial, Mapping):
            return []
        return list(first_trial.keys())

    def get_current_trial(self) -> Trial | None:
        return self.get_trial(self.this_index)

    def get_trial(self, index: int = 0) -> Trial | None:
        """Return the trial at ``index``, or None if out of range."""
        if index < 0 or index >= len(self.trial_list):
            return None
        return self.trial_list[index]

    def get_future_trial(self, n: int = 1) -> Trial | None:
        """
        Return the trial n positions after the current one, without advancing.

        Negative n looks backwards. Returns None beyond either end.
        """
        if self.this_index + n < 0 or n > self.n_remaining:
            return None
        return self.get_trial(self.this_index + n)

    def get_earlier_trial(self, n: int = -1) -> Trial | None:
        """Return the trial n positions before the current one (useful for n-back tasks)."""
        return self.get_future_trial(-abs(n))

    def add_data(self, key: str, value: Any) -> None:
        """Forward a key/value pair to the attached data sink, if any."""
        if self.experiment_handler is not None:
            self.experiment_handler.add_data(key, value)

    # ------------------------------------------------------------------
    # PREPARATION
    # ------------------------------------------------------------------
    def _prepare_trial_list(self, trial_list: Any) -> list[Trial | None]:
        if trial_list is None:
            return [None]
        if isinstance(trial_list, str):
            trial_list = self._condition_loader(trial_list)
        if isinstance(trial_list, (list, tuple)):
            return list(trial_list) if len(trial_list) > 0 else [None]
        raise ConfigurationError(
            origin="TrialHandler._prepare_trial_list",
            context="when preparing the trial list",
            error=f"unable to prepare trial list: unknown type: {type(trial_list).__name__}",
        )

    def _prepare_sequence(self) -> list[list[int]]:
        """
        Build the matrix of trial indices, one row per repeat.

        With 3 trials and 2 repeats:
        - sequential:  [[0, 1, 2], [0, 1, 2]]
        - random:      e.g. [[2, 0, 1], [1, 2, 0]]
        - fullRandom:  e.g. [[2, 2, 0], [1, 0, 1]]
        """
        indices = list(range(self.n_stim))

        if self.method is TrialMethod.SEQUENTIAL:
            return [list(indices) for _ in range(self.n_reps)]

        if self.method is TrialMethod.RANDOM:
            return [self._rng.shuffle(list(indices)) for _ in range(self.n_reps)]

        flat_sequence = list(self._rng.shuffle(indices * self.n_reps))
        return [
            flat_sequence[rep * self.n_stim : (rep + 1) * self.n_stim]
            for rep in range(self.n_reps)
        ]

    def _prepare_snapshots(self) -> list[Snapshot]:
        snapshots = []
        for rep, row in enumerate(self._trial_sequence):
            for trial_n, index in enumerate(row):
                this_n = rep * self.n_stim + trial_n
                snapshots.append(self._make_snapshot(rep, trial_n, this_n, index))
        return snapshots

    def _make_snapshot(self, rep: int, trial_n: int, this_n: int, index: int) -> Snapshot:
        return Snapshot(
            name=self.name,
            n_stim=self.n_stim,
            n_total=self.n_total,
            n_remaining=self.n_total - this_n - 1,
            this_rep_n=rep,
            this_trial_n=trial_n,
            this_n=this_n,
            this_index=index,
            handler=self,
        )

    def _append_slot(self) -> int:
        """
        Grow the trial list by one unset trial at the end of the last repeat.

        Returns the index of the new slot.
        """
        if self.n_reps != 1:
            raise RuntimeError("only a single-repeat trial list can grow")
        index = len(self.trial_list)
        self.trial_list.append(None)
        self.n_stim += 1
        self.n_total += 1
        self.n_remaining += 1
        self._trial_sequence[-1].append(index)
        self._snapshots.append(
            self._make_snapshot(
                rep=self.n_reps - 1,
                trial_n=len(self._trial_sequence[-1]) - 1,
                this_n=len(self._snapshots),
                index=index,
            )
        )
        return index
