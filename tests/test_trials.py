"""
test_trials.py
--------------

Tests for TrialHandler sequencing and snapshots.
"""

import pytest

from psystair.data.trials import TrialHandler, TrialMethod
from psystair.utils.errors import ConfigurationError

TRIALS = [{"ori": 0}, {"ori": 45}, {"ori": 90}]


class TestSequencing:
    """Order of the trials for each method."""

    def test_sequential_order(self):
        handler = TrialHandler(TRIALS, n_reps=2, method="sequential")
        assert [trial["ori"] for trial in handler] == [0, 45, 90, 0, 45, 90]

    def test_random_shuffles_within_repeats(self):
        handler = TrialHandler(TRIALS, n_reps=4, method=TrialMethod.RANDOM, seed=3)
        orientations = [trial["ori"] for trial in handler]
        for rep in range(4):
            assert sorted(orientations[rep * 3 : (rep + 1) * 3]) == [0, 45, 90]

    def test_full_random_keeps_counts(self):
        handler = TrialHandler(TRIALS, n_reps=4, method="FULL_RANDOM", seed=3)
        orientations = [trial["ori"] for trial in handler]
        assert len(orientations) == 12
        assert all(orientations.count(ori) == 4 for ori in (0, 45, 90))

    @pytest.mark.parametrize("method", list(TrialMethod))
    def test_same_seed_same_order(self, method):
        a = [t["ori"] for t in TrialHandler(TRIALS, n_reps=3, method=method, seed=11)]
        b = [t["ori"] for t in TrialHandler(TRIALS, n_reps=3, method=method, seed=11)]
        assert a == b

    def test_exhausted_handler_keeps_raising(self):
        handler = TrialHandler(TRIALS, method="sequential")
        list(handler)
        with pytest.raises(StopIteration):
            next(handler)
        with pytest.raises(StopIteration):
            next(handler)

    def test_counters(self):
        handler = TrialHandler(TRIALS, n_reps=2, method="sequential")
        for _ in range(4):
            next(handler)
        assert handler.this_n == 3
        assert handler.this_rep_n == 1
        assert handler.this_trial_n == 0
        assert handler.n_remaining == 2

    def test_for_each(self):
        seen = []
        TrialHandler(TRIALS, method="sequential").for_each(seen.append)
        assert seen == TRIALS


class TestTrialList:
    """Trial list preparation and access."""

    def test_empty_list_is_one_unset_trial(self):
        handler = TrialHandler([])
        assert handler.trial_list == [None]
        assert list(handler) == [None]

    def test_invalid_type(self):
        with pytest.raises(ConfigurationError, match="unknown type"):
            TrialHandler(42)

    def test_invalid_method(self):
        with pytest.raises(ConfigurationError, match="please use one of"):
            TrialHandler(TRIALS, method="shuffled")

    def test_invalid_n_reps(self):
        with pytest.raises(ConfigurationError, match="n_reps"):
            TrialHandler(TRIALS, n_reps=0)

    def test_string_goes_through_loader(self):
        handler = TrialHandler("block1.csv", method="sequential", condition_loader=lambda name: [{"file": name}])
        assert next(handler) == {"file": "block1.csv"}

    def test_get_trial_out_of_range(self):
        handler = TrialHandler(TRIALS)
        assert handler.get_trial(3) is None
        assert handler.get_trial(-1) is None

    def test_future_and_earlier_trials(self):
        handler = TrialHandler(TRIALS, method="sequential")
        next(handler)
        next(handler)
        assert handler.get_future_trial(1) == {"ori": 90}
        assert handler.get_earlier_trial(1) == {"ori": 0}
        assert handler.get_future_trial(5) is None

    def test_get_attributes(self):
        assert TrialHandler(TRIALS).get_attributes() == ["ori"]
        assert TrialHandler(None).get_attributes() == []


class TestSnapshots:
    """One snapshot per trial position, created up front."""

    def test_one_snapshot_per_position(self):
        handler = TrialHandler(TRIALS, n_reps=2, method="sequential", name="block")
        assert len(handler.snapshots) == 6
        assert [s.this_n for s in handler.snapshots] == list(range(6))
        assert handler.snapshots[4].this_rep_n == 1
        assert handler.snapshots[4].this_trial_n == 1
        assert handler.snapshots[4].n_remaining == 1

    def test_snapshot_is_retained_after_moving_on(self):
        handler = TrialHandler(TRIALS, method="sequential", name="block")
        next(handler)
        first = handler.get_snapshot()
        next(handler)
        assert first.this_n == 0
        assert first.ran
        assert first.loop_attributes()["ori"] == 0
        assert handler.get_snapshot() is handler.snapshots[1]

    def test_loop_attributes(self):
        handler = TrialHandler(TRIALS, method="sequential", name="block")
        next(handler)
        attributes = handler.get_snapshot().loop_attributes()
        assert attributes["block.thisN"] == 0
        assert attributes["block.thisRepN"] == 0
        assert attributes["block.thisIndex"] == 0
        assert attributes["block.ran"] == 1
        assert attributes["block.order"] == 0

    def test_snapshot_after_exhaustion_is_the_last(self):
        handler = TrialHandler(TRIALS, n_reps=2, method="sequential")
        assert handler.get_snapshot() is handler.snapshots[0]
        list(handler)
        assert handler.get_snapshot() is handler.snapshots[-1]

    def test_order_before_running(self):
        handler = TrialHandler(TRIALS, method="sequential")
        assert handler.snapshots[2].order == -1

    def test_record_values(self):
        snapshot = TrialHandler(TRIALS).snapshots[0]
        snapshot.record("intensity", 0.4)
        snapshot.record("intensity", 0.5)
        assert snapshot["intensity"] == 0.5
        assert snapshot.trial_attributes == ["intensity"]
        assert snapshot.get("missing") is None

    def test_finished_propagates(self):
        handler = TrialHandler(TRIALS)
        handler.finished = True
        assert all(s.finished for s in handler.snapshots)


class TestGrowth:
    """Appending unset slots to a single-repeat list."""

    def test_append_slot(self):
        handler = TrialHandler([None, None], method="sequential")
        index = handler._append_slot()
        assert index == 2
        assert handler.trial_list == [None, None, None]
        assert handler.n_total == 3
        assert len(handler.snapshots) == 3
        assert handler.snapshots[2].this_index == 2

    def test_append_slot_requires_single_repeat(self):
        handler = TrialHandler([None], n_reps=2)
        with pytest.raises(RuntimeError, match="single-repeat"):
            handler._append_slot()
