"""
trial_placement
===============

Adaptive procedures: choose the intensity of the next trial from the
responses so far.

- AdaptiveProcedure: common interface (get_value / add_response / finished)
- QuestHandler: Bayesian threshold estimation (QUEST)
- StairHandler: n-up / n-down staircase

Examples
--------
>>> from psystair.trial_placement import QuestHandler
>>> quest = QuestHandler("contrast", start_val=0.5, start_val_sd=0.2, n_trials=30)
>>> quest.add_response(1)

>>> from psystair.trial_placement import StairHandler
>>> stair = StairHandler("contrast", start_val=0.5, step_sizes=[0.1, 0.05], step_type="lin")
"""

from psystair.trial_placement.base import AdaptiveProcedure, validate_response
from psystair.trial_placement.quest import QuestConfig, QuestHandler, QuestMethod
from psystair.trial_placement.staircase import Direction, StairHandler, StepType

__all__ = [
    "AdaptiveProcedure",
    "validate_response",
    "QuestHandler",
    "QuestConfig",
    "QuestMethod",
    "StairHandler",
    "StepType",
    "Direction",
]
