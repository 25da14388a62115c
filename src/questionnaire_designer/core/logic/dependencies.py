"""Dependency rules: compute effective visible/enabled/required per control."""

import math
from collections.abc import Mapping
from typing import Any

from loguru import logger

from questionnaire_designer.core.tree.navigation import flatten
from questionnaire_designer.models.control import (
    BOOLEAN_KINDS,
    ComputedState,
    ConditionType,
    Control,
    ControlKind,
    ControlTree,
    Dependency,
    DependencyCondition,
    DependencyProperty,
)


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return None if math.isnan(number) else number


def get_control_value(control: Control, form_values: Mapping[str, Any]) -> Any:
    """Coerce a raw form value according to the control's kind.

    Checkbox and toggle give a bool, numeric a float or None, text box and
    dropdown a string ("" when missing). Other kinds return the raw value.
    """
    raw = form_values.get(control.id)
    if control.kind in BOOLEAN_KINDS:
        return bool(raw)
    if control.kind is ControlKind.NUMERIC:
        return None if raw is None or raw == "" else _to_float(raw)
    if control.kind in (ControlKind.TEXT_BOX, ControlKind.DROPDOWN):
        return "" if raw is None else str(raw)
    return raw


def _texts(value: Any, *, boolean: bool) -> list[str]:
    """Lower-cased string forms of a value; lists give one entry per item."""
    if boolean:
        return ["true" if value else "false"]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_text(v) for v in value]
    return [_text(value)]


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).lower()


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) == 0
    return _text(value).strip() == ""


def evaluate_condition(condition: DependencyCondition, target: Control, value: Any) -> bool:
    """Evaluate one condition against a coerced value.

    Never raises: values that cannot be compared make the condition false.
    String comparisons are case-insensitive; ``equals`` holds when any of
    the target's values matches any of the condition values.
    """
    expected = [v.lower() for v in condition.value] or [""]
    first = expected[0]
    actual = _texts(value, boolean=target.kind in BOOLEAN_KINDS)

    match condition.type:
        case ConditionType.EQUALS:
            return any(a in expected for a in actual)
        case ConditionType.NOT_EQUALS:
            return not any(a in expected for a in actual)
        case ConditionType.CONTAINS:
            return any(first in a for a in actual)
        case ConditionType.NOT_CONTAINS:
            return not any(first in a for a in actual)
        case ConditionType.CHECKED:
            return bool(value)
        case ConditionType.UNCHECKED:
            return not value
        case ConditionType.FILLED:
            return not _is_blank(value)
        case ConditionType.EMPTY:
            return _is_blank(value)
        case ConditionType.GREATER_THAN | ConditionType.LESS_THAN:
            number = _to_float(value)
            bound = _to_float(condition.value[0]) if condition.value else None
            if number is None or bound is None:
                return False
            if condition.type is ConditionType.GREATER_THAN:
                return number > bound
            return number < bound
        case ConditionType.BETWEEN:
            number = _to_float(value)
            low = _to_float(condition.value[0]) if condition.value else None
            high_raw = condition.value[1] if len(condition.value) > 1 else condition.secondary_value
            high = _to_float(high_raw)
            if number is None or low is None or high is None:
                return False
            return low <= number <= high
    return False


def _apply(state: dict[DependencyProperty, bool], dependency: Dependency) -> None:
    action = dependency.action_value
    if dependency.property is DependencyProperty.REQUIRED:
        state[dependency.property] = True if action is None else action
    else:
        state[dependency.property] = False if action is None else action


def evaluate(tree: ControlTree, form_values: Mapping[str, Any]) -> dict[str, ComputedState]:
    """Compute the effective state of every control in the tree.

    Each control starts from its declared flags. Its rules run in order and
    each rule whose condition holds overwrites its property; later rules win.
    Conditions read raw form values only, so chains of dependent controls
    are not resolved transitively.
    """
    controls = flatten(tree)
    by_id = {c.id: c for c in controls}
    result: dict[str, ComputedState] = {}

    for control in controls:
        state = {
            DependencyProperty.VISIBLE: control.visible is not False,
            DependencyProperty.ENABLED: control.enabled is not False,
            DependencyProperty.REQUIRED: control.required is True,
        }
        for dependency in control.dependencies:
            target = by_id.get(dependency.target_control_id)
            if target is None:
                logger.warning(
                    "Dependency {} of {} references missing control {}",
                    dependency.id, control.id, dependency.target_control_id,
                )
                continue
            value = get_control_value(target, form_values)
            if evaluate_condition(dependency.condition, target, value):
                _apply(state, dependency)

        result[control.id] = ComputedState(
            visible=state[DependencyProperty.VISIBLE],
            enabled=state[DependencyProperty.ENABLED],
            required=state[DependencyProperty.REQUIRED],
        )
    return result


def find_dependents(tree: ControlTree, control_id: str) -> list[Control]:
    """Controls having at least one rule that reads ``control_id``."""
    return [
        c
        for c in flatten(tree)
        if any(d.target_control_id == control_id for d in c.dependencies)
    ]


def candidate_targets(tree: ControlTree, control_id: str) -> list[Control]:
    """Controls a rule on ``control_id`` may reference: every other input control."""
    return [c for c in flatten(tree) if c.id != control_id and not c.is_container]
