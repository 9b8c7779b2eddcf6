"""
psystair
========

Interleaved adaptive staircases for psychophysics experiments.

This package runs several adaptive procedures (QUEST or n-up / n-down
staircases) inside a single trial loop, picks which one goes next, and
records every trial, with the procedure's label and parameters, in a
data sink.

----------------------------------------------------------------------
Workflow
----------------------------------------------------------------------

Core design
-----------
1. TrialHandler (data/trials.py):
   - Iterates over a list of trials, repeated n_reps times.
   - Keeps one Snapshot per trial position for data logging.

2. AdaptiveProcedure (trial_placement/base.py):
   - Proposes the next intensity, takes a 0/1 response, decides when it
     has finished.
   - QuestHandler: Bayesian threshold estimate (model/quest.py).
   - StairHandler: classical n-up / n-down staircase.

3. MultiStairHandler (session/multi_stair.py):
   - One QuestHandler per condition.
   - Passes over the unfinished procedures: sequential, random or
     fullRandom.
   - Writes each selected trial into its own trial list.

4. RandomSequenceProvider (utils/rng.py):
   - Single seeded JAX PRNG stream behind every shuffle and selection,
     so a run with the same seed and responses replays identically.

Unified import style
--------------------
Top-level:
  from psystair import MultiStairHandler, QuestHandler, StairHandler
  from psystair import TrialHandler, ExperimentData, RandomSequenceProvider

Subpackages:
  from psystair.data import TrialHandler, TrialMethod, Snapshot, import_conditions
  from psystair.model import quest_create, quest_update, quest_quantile
  from psystair.trial_placement import QuestHandler, QuestConfig, StairHandler
  from psystair.session import MultiStairHandler, StaircaseType, StaircaseStatus
  from psystair.utils import ConfigurationError, InvalidResponseError

Data flow
---------
- MultiStairHandler fills trial t with "<name>.<varName>", "<name>.intensity",
  "<name>.label" and the procedure's other parameters.
- add_response(r) sends "<name>.response" to the data sink, updates the
  active procedure and selects the next one.
- ExperimentData.next_entry() closes the row, merging in the loop counters
  and trial fields from the current Snapshot.

----------------------------------------------------------------------
"""

from . import data as data
from . import model as model
from . import session as session
from . import trial_placement as trial_placement
from . import utils as utils
from .data.dataset import DataSink, ExperimentData
from .data.trials import Snapshot, TrialHandler, TrialMethod

# Experiment orchestration
from .session.multi_stair import MultiStairHandler, StaircaseStatus, StaircaseType

# Adaptive procedures
from .trial_placement.base import AdaptiveProcedure
from .trial_placement.quest import QuestConfig, QuestHandler, QuestMethod
from .trial_placement.staircase import StairHandler, StepType
from .utils.errors import (
    ConditionsError,
    ConfigurationError,
    InvalidResponseError,
    PsyStairError,
)
from .utils.rng import RandomSequenceProvider

__version__ = "0.1.0"

__all__ = [
    # Session orchestration
    "MultiStairHandler",
    "StaircaseType",
    "StaircaseStatus",
    # Adaptive procedures
    "AdaptiveProcedure",
    "QuestHandler",
    "QuestConfig",
    "QuestMethod",
    "StairHandler",
    "StepType",
    # Trial sequencing and data
    "TrialHandler",
    "TrialMethod",
    "Snapshot",
    "DataSink",
    "ExperimentData",
    # Randomness
    "RandomSequenceProvider",
    # Errors
    "PsyStairError",
    "ConfigurationError",
    "ConditionsError",
    "InvalidResponseError",
    # Subpackages
    "data",
    "model",
    "session",
    "trial_placement",
    "utils",
]
