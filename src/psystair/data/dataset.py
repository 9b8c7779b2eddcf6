"""
dataset.py
-----------

Core data containers for psystair.

defines:
- DataSink: protocol of anything that accepts ``add_data(key, value)``
- ExperimentData: in-memory sink collecting one row (entry) per trial

Notes
-----
- Handlers never write to disk themselves: they push key/value pairs to a
  DataSink. ExperimentData is the reference sink; see ``psystair.data.io``
  to save its rows to csv.
- Rows are plain dicts. Loop counters and per-trial fields are merged in
  from Snapshots when an entry is closed with ``next_entry``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from psystair.data.trials import Snapshot, TrialHandler

logger = logging.getLogger(__name__)


@runtime_checkable
class DataSink(Protocol):
    """
    Receiver of per-trial data.

    Any object with an ``add_data(key, value)`` method qualifies.
    """

    def add_data(self, key: str, value: Any) -> None: ...


class ExperimentData:
    """
    In-memory data sink, one entry per trial.

    Parameters
    ----------
    name : str, default="experiment"
        Name of the experiment, used when ``extra_info`` has no "expName".
    extra_info : dict, optional
        Information added to every entry (participant, session, date, ...).
    data_file_name : str, optional
        Base name of the data file. Defaults to
        "<participant>_<expName>_<date>".

    Attributes
    ----------
    keys : list of str
        Every key seen so far, in order of first appearance.
    entries : list of dict
        Closed entries.

    Examples
    --------
    >>> data = ExperimentData(extra_info={"participant": "p01"})
    >>> data.add_data("stairs.response", 1)
    >>> data.next_entry()
    >>> data.entries[0]["stairs.response"]
    1
    """

    def __init__(
        self,
        name: str = "experiment",
        extra_info: Mapping[str, Any] | None = None,
        data_file_name: str | None = None,
    ) -> None:
        self.extra_info: dict[str, Any] = dict(extra_info or {})

        self.experiment_name = _non_empty(self.extra_info.get("expName")) or name
        self.participant = _non_empty(self.extra_info.get("participant")) or "PARTICIPANT"
        self.session = _non_empty(self.extra_info.get("session")) or "SESSION"
        self.datetime = self.extra_info.get("date") or datetime.now().strftime("%Y-%m-%d_%Hh%M.%S.%f")[:-3]
        self.data_file_name = data_file_name or f"{self.participant}_{self.experiment_name}_{self.datetime}"

        self.keys: list[str] = []
        self.entries: list[dict[str, Any]] = []
        self._current_entry: dict[str, Any] = {}

        self._loops: list[TrialHandler] = []
        self._unfinished_loops: list[TrialHandler] = []

        self.experiment_ended = False

    # ------------------------------------------------------------------
    # LOOPS
    # ------------------------------------------------------------------
    def add_loop(self, loop: TrialHandler) -> None:
        """Attach a loop; its ``add_data`` calls will land in this sink."""
        self._loops.append(loop)
        self._unfinished_loops.append(loop)
        loop.experiment_handler = self

    def remove_loop(self, loop: TrialHandler) -> None:
        """Mark a loop as finished; it no longer contributes to ``next_entry()``."""
        if loop in self._unfinished_loops:
            self._unfinished_loops.remove(loop)

    # ------------------------------------------------------------------
    # DATA
    # ------------------------------------------------------------------
    def add_data(self, key: str, value: Any) -> None:
        """Add a key/value pair to the current entry (lists are stored as JSON)."""
        if key not in self.keys:
            self.keys.append(key)
        if isinstance(value, (list, tuple)):
            value = json.dumps(list(value))
        self._current_entry[key] = value

    def is_entry_empty(self) -> bool:
        """True if nothing was added since the last ``next_entry()``."""
        return len(self._current_entry) == 0

    @property
    def current_entry(self) -> dict[str, Any]:
        return self._current_entry

    def next_entry(self, snapshots: Snapshot | Iterable[Snapshot] | None = None) -> None:
        """
        Close the current entry and start a new one.

        Parameters
        ----------
        snapshots : Snapshot or iterable of Snapshot, optional
            Snapshots whose loop attributes are merged into the entry. If
            omitted, the current snapshot of every unfinished loop is used.
        """
        if snapshots is None:
            snapshots = [loop.get_snapshot() for loop in self._unfinished_loops]
        elif hasattr(snapshots, "loop_attributes"):
            snapshots = [snapshots]

        for snapshot in snapshots:
            for key, value in snapshot.loop_attributes().items():
                if key not in self.keys:
                    self.keys.append(key)
                self._current_entry[key] = value

        for key, value in self.extra_info.items():
            if key not in self.keys:
                self.keys.append(key)
            self._current_entry[key] = value

        self.entries.append(self._current_entry)
        logger.debug("closed entry %d with %d fields", len(self.entries) - 1, len(self._current_entry))
        self._current_entry = {}

    def __len__(self) -> int:
        """Return number of closed entries."""
        return len(self.entries)


def _non_empty(value: Any) -> str | None:
    return value if isinstance(value, str) and len(value) > 0 else None
