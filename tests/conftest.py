"""
Central pytest configuration for this project.

This file is automatically discovered by pytest and is intended for:

- **Fixtures**: reusable objects or setup logic shared across multiple test files.
- **Pytest hooks**: project-wide customizations of pytest behavior (e.g., modifying CLI options, adding markers).

Notes
-----
- Contributors should
  install the package in editable mode (`pip install -e .`) so that imports are resolved
  consistently in local dev and CI environments.
- Keep this file focused on test setup. Do not add application logic here.
"""

import pytest

from psystair.data.dataset import ExperimentData
from psystair.utils.rng import RandomSequenceProvider


@pytest.fixture
def rng():
    """Seeded random generator."""
    return RandomSequenceProvider(1234)


@pytest.fixture
def two_conditions():
    """Two QUEST conditions, A starting above B."""
    return [
        {"label": "A", "startVal": 0.5, "startValSd": 0.1},
        {"label": "B", "startVal": 0.3, "startValSd": 0.1},
    ]


@pytest.fixture
def three_conditions():
    """Three QUEST conditions with their own trial counts."""
    return [
        {"label": "low", "startVal": 0.2, "startValSd": 0.2, "nTrials": 4},
        {"label": "mid", "startVal": 0.5, "startValSd": 0.2, "nTrials": 4},
        {"label": "high", "startVal": 0.8, "startValSd": 0.2, "nTrials": 4},
    ]


@pytest.fixture
def experiment_data():
    """In-memory data sink with fixed participant / date."""
    return ExperimentData(
        name="stairs",
        extra_info={"participant": "p01", "session": "001", "date": "2024-01-01"},
    )


@pytest.fixture
def conditions_csv(tmp_path):
    """A small conditions file on disk."""
    path = tmp_path / "conditions.csv"
    path.write_text(
        "label,startVal,startValSd,nTrials,orientations\n"
        "left,0.5,0.2,10,\"[0, 45]\"\n"
        "\n"
        "right,0.25,0.1,,\"[90, 135]\"\n"
        "up,1,0.3,5,\n",
        encoding="utf-8",
    )
    return path
