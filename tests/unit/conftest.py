"""Shared test fixtures."""

import pytest

from questionnaire_designer.models.control import (
    ConditionType,
    ControlKind,
    ControlTree,
    Dependency,
    DependencyCondition,
    DependencyProperty,
)
from tests.unit.fakes import (
    FakeIdFactory,
    accordion_control,
    column_control,
    leaf,
    tab_control,
)


@pytest.fixture
def sample_tree() -> ControlTree:
    """Root canvas with one container of each kind between two text boxes.

    name
    tabs   [t1: agree, age] [t2: -]
    cols   [city] [-]
    acc    [s1: notes]  (s1 expanded)
    email
    """
    notes_rule = Dependency(
        id="dep-notes",
        target_control_id="agree",
        property=DependencyProperty.VISIBLE,
        condition=DependencyCondition(type=ConditionType.CHECKED),
        action_value=True,
    )
    return (
        leaf("name"),
        tab_control(
            "tabs",
            ("t1", (leaf("agree", ControlKind.CHECKBOX), leaf("age", ControlKind.NUMERIC))),
            ("t2", ()),
        ),
        column_control("cols", (leaf("city"),), ()),
        accordion_control(
            "acc",
            ("s1", (leaf("notes", visible=False, dependencies=(notes_rule,)),)),
            expanded_sections=frozenset({"s1"}),
        ),
        leaf("email"),
    )


@pytest.fixture
def flat_tree() -> ControlTree:
    """Five text boxes c0..c4 on the root canvas."""
    return tuple(leaf(f"c{i}") for i in range(5))


@pytest.fixture
def id_factory() -> FakeIdFactory:
    return FakeIdFactory()
