"""
psystair.data
=============

submodule for handling trial sequences and experiment data.

Includes:
- trials: TrialHandler, Snapshot, TrialMethod
- conditions: import_conditions, select_from_list
- dataset: DataSink, ExperimentData
- io: save/load experiment entries
"""

from .conditions import import_conditions, select_from_list
from .dataset import DataSink, ExperimentData
from .io import load_entries_csv, save_entries_csv
from .trials import Snapshot, TrialHandler, TrialMethod

__all__ = [
    "TrialHandler",
    "TrialMethod",
    "Snapshot",
    "import_conditions",
    "select_from_list",
    "DataSink",
    "ExperimentData",
    "save_entries_csv",
    "load_entries_csv",
]
