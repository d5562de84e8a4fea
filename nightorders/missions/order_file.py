"""
Mission files for Night Orders.

A mission file is YAML already in parsed-order shape:

    title: Add dark mode to settings
    objectives:
      - Users can toggle a dark theme
    steps:
      - id: 0
        description: Design color scheme
        role: coder
      - id: 1
        description: Create theme store
        role: coder
        depends_on: [0]
        expected: Store persists the selected theme
"""

import logging
from pathlib import Path
from typing import Union

import yaml

from ..errors import ParseError
from .mission_types import ParsedOrder

logger = logging.getLogger(__name__)


def parse_order_data(data: object, source: str = "<data>") -> ParsedOrder:
    """Validate raw mission-file data and build a ParsedOrder."""
    if not isinstance(data, dict):
        raise ParseError(f"{source}: expected a mapping at the top level")

    steps = data.get("steps")
    if not isinstance(steps, list) or not steps:
        raise ParseError(f"{source}: 'steps' must be a non-empty list")
    for index, step in enumerate(steps):
        if not isinstance(step, dict):
            raise ParseError(f"{source}: step #{index} must be a mapping")

    objectives = data.get("objectives") or []
    if not isinstance(objectives, list):
        raise ParseError(f"{source}: 'objectives' must be a list")

    try:
        order = ParsedOrder.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ParseError(f"{source}: {e}") from e

    logger.debug(f"[MISSION] Parsed {len(order.steps)} step(s) from {source}")
    return order


def load_order_file(path: Union[str, Path]) -> ParsedOrder:
    """
    Load a mission file.

    Raises:
        ParseError: If the file is not valid YAML or not a valid mission
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(f"{path}: invalid YAML: {e}") from e
    return parse_order_data(data, source=str(path))
