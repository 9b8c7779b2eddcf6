"""
conditions.py
-------------

Loading experimental conditions from a resource.

A conditions resource is a table with one row per type of trial (or, for
a MultiStairHandler, one row per staircase) and one column per parameter.
The first row gives the parameter names.

Supported:
- .csv resources (UTF-8, a leading BOM is tolerated)

Cell values are converted where possible:
- numeric strings become int or float
- strings such as "[1, 2]" become lists
- empty cells become None

Examples
--------
>>> from psystair.data.conditions import import_conditions
>>> conditions = import_conditions("conditions.csv", selection="0:2")  # doctest: +SKIP
"""

from __future__ import annotations

import ast
import csv
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Union

from psystair.utils.errors import ConditionsError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SUPPORTED_EXTENSIONS = ("csv",)


def import_conditions(resource: PathLike, selection: Any = None) -> list[dict[str, Any]]:
    """
    Import a list of conditions from a resource.

    Parameters
    ----------
    resource : str or Path
        Path of the conditions resource.
    selection : int, str or list of int, optional
        Subset of rows to keep, see ``select_from_list``.

    Returns
    -------
    list of dict
        One mapping per selected row, keyed by the header fields.

    Raises
    ------
    ConditionsError
        If the resource cannot be read or parsed, or the selection is invalid.
    """
    path = Path(resource)
    extension = path.suffix.lstrip(".").lower()
    try:
        if extension not in SUPPORTED_EXTENSIONS:
            raise ValueError(f"extension: {extension or '<none>'} currently not supported")

        with open(path, newline="", encoding="utf-8-sig") as f:
            rows = [row for row in csv.reader(f) if any(cell.strip() for cell in row)]

        if not rows:
            raise ValueError("the resource should contain a header row")
        fields = [field.strip() for field in rows[0]]
        body = rows[1:]

        if selection is not None:
            body = select_from_list(body, selection)

        conditions = []
        for row in body:
            condition = {}
            for column, field in enumerate(fields):
                cell = row[column] if column < len(row) else ""
                condition[field] = _parse_cell(cell)
            conditions.append(condition)
    except ConditionsError:
        raise
    except (OSError, ValueError, csv.Error) as err:
        raise ConditionsError(
            origin="import_conditions",
            context=f"when importing conditions: {resource}",
            error=str(err),
        ) from err

    logger.debug("imported %d conditions from %s", len(conditions), path)
    return conditions


def select_from_list(items: Sequence[Any], selection: Any) -> list[Any]:
    """
    Select a subset of ``items``.

    ``selection`` can be:
    - an int, or a string holding one: ``5`` or ``"5"``
    - a list of indices: ``[1, 2, 3, 10]``
    - a comma-separated string: ``"1,5,10"``
    - a slice string, ``"start:stop"`` or ``"start:step:stop"``: ``"5:"``, ``"1:2:5"``

    Raises
    ------
    ConditionsError
        If the selection has an unsupported type or cannot be parsed.
    """
    try:
        if isinstance(selection, bool):
            raise TypeError("unknown selection type: bool")
        if isinstance(selection, int):
            return [items[selection]]
        if isinstance(selection, (list, tuple)):
            return [items[int(i)] for i in selection]
        if isinstance(selection, str):
            text = selection.strip()
            if "," in text:
                return [items[int(i)] for i in text.split(",") if i.strip()]
            if ":" in text:
                parts = [int(p) if p.strip() else None for p in text.split(":")]
                if len(parts) == 3:
                    start, step, stop = parts
                elif len(parts) == 2:
                    start, stop = parts
                    step = None
                else:
                    raise ValueError(f"invalid slice: {selection!r}")
                return list(items[slice(start, stop, step)])
            return [items[int(text)]]
        raise TypeError(f"unknown selection type: {type(selection).__name__}")
    except (TypeError, ValueError, IndexError) as err:
        raise ConditionsError(
            origin="select_from_list",
            context="when selecting entries from a list",
            error=str(err),
        ) from err


def _parse_cell(cell: str) -> Any:
    """Convert a raw csv cell into a number, a list, a string or None."""
    text = cell.strip()
    if text == "":
        return None

    if text.startswith("[") and text.endswith("]"):
        try:
            value = ast.literal_eval(text)
        except (ValueError, SyntaxError):
            return text
        return list(value) if isinstance(value, (list, tuple)) else value

    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text
