"""Load input records from JSON or YAML files.

Each file holds a list of records, or a mapping with a ``rows`` list
(the shape most warehouse exports use). JSON is a subset of YAML, so one
``yaml.safe_load`` reads both.
"""

import logging
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from query_radar.errors import InputFileError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def read_rows(path: str | Path) -> list[dict]:
    """Read a list of mappings from a JSON or YAML file."""
    path = Path(path)
    if not path.exists():
        raise InputFileError(f"Input file not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise InputFileError(f"Cannot parse {path}: {e}") from e

    if data is None:
        return []
    if isinstance(data, dict) and "rows" in data:
        data = data["rows"]
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise InputFileError(f"{path} must contain a list of records")
    return data


def load_records(path: str | Path | None, model: type[ModelT]) -> list[ModelT]:
    """Validate every row of ``path`` as ``model``. No path means no records."""
    if not path:
        return []
    rows = read_rows(path)
    records = []
    for i, row in enumerate(rows):
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            raise InputFileError(f"{path}: record {i} is not a valid {model.__name__}:\n{e}") from e
    logger.debug(f"Loaded {len(records)} {model.__name__} records from {path}")
    return records
