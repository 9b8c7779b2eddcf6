"""
test_dataset.py
---------------

Tests for the in-memory data sink and csv export.
"""

from psystair.data.dataset import DataSink, ExperimentData
from psystair.data.io import load_entries_csv, save_entries_csv
from psystair.data.trials import TrialHandler


class TestExperimentData:
    """Entries, keys and loop attributes."""

    def test_is_a_data_sink(self, experiment_data):
        assert isinstance(experiment_data, DataSink)

    def test_file_name_from_extra_info(self, experiment_data):
        assert experiment_data.data_file_name == "p01_stairs_2024-01-01"

    def test_add_data_and_next_entry(self, experiment_data):
        assert experiment_data.is_entry_empty()
        experiment_data.add_data("key_resp.rt", 0.42)
        experiment_data.add_data("positions", [1, 2])
        assert not experiment_data.is_entry_empty()
        experiment_data.next_entry()
        assert len(experiment_data) == 1
        entry = experiment_data.entries[0]
        assert entry["key_resp.rt"] == 0.42
        assert entry["positions"] == "[1, 2]"
        assert entry["participant"] == "p01"
        assert experiment_data.is_entry_empty()

    def test_keys_in_order_of_appearance(self, experiment_data):
        experiment_data.add_data("b", 1)
        experiment_data.add_data("a", 2)
        experiment_data.add_data("b", 3)
        assert experiment_data.keys == ["b", "a"]

    def test_loop_attributes_are_merged(self, experiment_data):
        loop = TrialHandler([{"ori": 0}, {"ori": 90}], method="sequential", name="block")
        experiment_data.add_loop(loop)
        assert loop.experiment_handler is experiment_data

        next(loop)
        loop.add_data("resp", 1)
        experiment_data.next_entry()

        entry = experiment_data.entries[0]
        assert entry["resp"] == 1
        assert entry["ori"] == 0
        assert entry["block.thisN"] == 0

    def test_removed_loop_is_not_merged(self, experiment_data):
        loop = TrialHandler([{"ori": 0}], name="block")
        experiment_data.add_loop(loop)
        experiment_data.remove_loop(loop)
        experiment_data.add_data("resp", 0)
        experiment_data.next_entry()
        assert "block.thisN" not in experiment_data.entries[0]


class TestCsvExport:
    """Saving entries to disk."""

    def test_round_trip(self, experiment_data, tmp_path):
        experiment_data.add_data("resp", 1)
        experiment_data.next_entry()
        experiment_data.add_data("resp", 0)
        experiment_data.add_data("rt", 0.5)
        experiment_data.next_entry()

        path = save_entries_csv(experiment_data, tmp_path)
        assert path.name == "p01_stairs_2024-01-01.csv"

        rows = load_entries_csv(path)
        assert len(rows) == 2
        assert rows[0]["resp"] == "1"
        assert rows[0]["rt"] == ""
        assert rows[1]["rt"] == "0.5"
