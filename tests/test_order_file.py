"""
Tests for mission-file loading.
"""

import pytest

from nightorders.errors import ParseError
from nightorders.missions.order_file import load_order_file, parse_order_data

MISSION_YAML = """
title: Add dark mode to settings
objectives:
  - Users can toggle a dark theme
  - Choice survives reloads
steps:
  - id: 0
    description: Design color scheme
    role: coder
  - id: 1
    description: Create theme store
    role: coder
    depends_on: [0]
    expected: Store persists the selected theme
  - id: 2
    description: Review the change
"""


class TestLoadOrderFile:
    """YAML mission files."""

    def test_load(self, tmp_path):
        path = tmp_path / "mission.yaml"
        path.write_text(MISSION_YAML)

        order = load_order_file(path)

        assert order.title == "Add dark mode to settings"
        assert order.objectives == ["Users can toggle a dark theme", "Choice survives reloads"]
        assert [s.step_id for s in order.steps] == [0, 1, 2]
        assert order.steps[1].dependencies == (0,)
        assert order.steps[1].expected_outcome == "Store persists the selected theme"
        assert order.steps[2].assigned_role == "executor"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("title: [unclosed\n")

        with pytest.raises(ParseError, match="invalid YAML"):
            load_order_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_order_file(tmp_path / "absent.yaml")


class TestParseOrderData:
    """Structural validation."""

    @pytest.mark.parametrize("data,message", [
        (["not", "a", "mapping"], "mapping"),
        ({"title": "x"}, "steps"),
        ({"title": "x", "steps": []}, "steps"),
        ({"title": "x", "steps": ["just text"]}, "step #0"),
        ({"title": "x", "objectives": "one", "steps": [{"id": 0}]}, "objectives"),
        ({"title": "x", "steps": [{"description": "no id"}]}, "missing an id"),
        ({"title": "x", "steps": [{"id": "zero"}]}, "invalid literal"),
    ])
    def test_rejects(self, data, message):
        with pytest.raises(ParseError, match=message):
            parse_order_data(data, source="inline")

    def test_default_title(self):
        order = parse_order_data({"steps": [{"id": 0, "description": "a"}]})
        assert order.title == "Untitled mission"
        assert order.objectives == []

    @pytest.mark.parametrize("depends_on,expected", [
        ("10", (10,)),
        (10, (10,)),
        (["10", 2], (10, 2)),
        (None, ()),
    ])
    def test_depends_on_forms(self, depends_on, expected):
        order = parse_order_data({"steps": [
            {"id": 2, "description": "a"},
            {"id": 10, "description": "b"},
            {"id": 11, "description": "c", "depends_on": depends_on},
        ]})

        assert order.steps[2].dependencies == expected

    def test_rejects_non_numeric_dependency(self):
        with pytest.raises(ParseError, match="invalid literal"):
            parse_order_data({"steps": [{"id": 0, "depends_on": "first"}]})
