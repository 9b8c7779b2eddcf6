"""
io.py
-----

I/O utilities for saving and loading experiment data.

Supports:
- CSV for human-readable trial logs (one row per ExperimentData entry)

Notes
-----
- Files are written as UTF-8 with a BOM so that spreadsheet software picks
  up accented characters in participant or condition names.
- Values are read back as strings; conversion is left to the analysis code.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Union

from .dataset import ExperimentData

PathLike = Union[str, Path]


def save_entries_csv(data: ExperimentData, path: PathLike) -> Path:
    """
    Save the entries of an ExperimentData to a CSV file.

    Parameters
    ----------
    data : ExperimentData
    path : str or Path
        Output file, or a directory in which "<data_file_name>.csv" is created.

    Returns
    -------
    Path
        The file written.
    """
    path = Path(path)
    if path.is_dir():
        path = path / f"{data.data_file_name}.csv"

    header = list(data.keys)
    for entry in data.entries:
        for key in entry:
            if key not in header:
                header.append(key)

    with open(path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.DictWriter(f, fieldnames=header, restval="")
        writer.writeheader()
        for entry in data.entries:
            writer.writerow(entry)
    return path


def load_entries_csv(path: PathLike) -> list[dict[str, str]]:
    """
    Load entries saved with ``save_entries_csv``.

    Parameters
    ----------
    path : str or Path

    Returns
    -------
    list of dict
    """
    with open(path, newline="", encoding="utf-8-sig") as f:
        return [dict(row) for row in csv.DictReader(f)]
