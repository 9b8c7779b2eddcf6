"""
model
=====

Psychometric models used by the adaptive procedures.

This subpackage provides:
- quest : the QUEST posterior over a threshold (Watson & Pelli, 1983),
  as an immutable QuestState and pure update / summary functions.
"""

from .quest import (
    QuestState,
    psychometric,
    quest_create,
    quest_mean,
    quest_mode,
    quest_quantile,
    quest_recompute,
    quest_sd,
    quest_simulate,
    quest_update,
)

__all__ = [
    "QuestState",
    "psychometric",
    "quest_create",
    "quest_recompute",
    "quest_update",
    "quest_mean",
    "quest_sd",
    "quest_mode",
    "quest_quantile",
    "quest_simulate",
]
