"""Convert control trees to and from the exported JSON shape."""

import copy
import json
from collections.abc import Iterable
from typing import Any

from loguru import logger

from questionnaire_designer.config import DEFAULT_MAX_SECTIONS
from questionnaire_designer.core.tree.factory import new_id
from questionnaire_designer.core.tree.mutation import normalize_tree
from questionnaire_designer.core.tree.validator import validate_tree
from questionnaire_designer.errors import MalformedControlError
from questionnaire_designer.models.control import (
    AccordionLayout,
    AccordionSection,
    AccordionSlots,
    ColumnSlots,
    ConditionType,
    Control,
    ControlKind,
    ControlTree,
    Dependency,
    DependencyCondition,
    DependencyProperty,
    Questionnaire,
    TabItem,
    TabSlots,
)
from questionnaire_designer.protocols import IdFactory


def _dependency_to_dict(dependency: Dependency) -> dict[str, Any]:
    condition: dict[str, Any] = {
        "type": dependency.condition.type.value,
        "value": list(dependency.condition.value),
    }
    if dependency.condition.secondary_value is not None:
        condition["secondaryValue"] = dependency.condition.secondary_value
    data: dict[str, Any] = {
        "id": dependency.id,
        "targetControlId": dependency.target_control_id,
        "property": dependency.property.value,
        "condition": condition,
    }
    if dependency.action_value is not None:
        data["actionValue"] = dependency.action_value
    return data


def control_to_dict(control: Control) -> dict[str, Any]:
    """Serialize one control and its slots recursively."""
    data: dict[str, Any] = {
        "id": control.id,
        "type": control.kind.value,
        "label": control.label,
        "required": control.required,
        "visible": control.visible,
        "enabled": control.enabled,
        "styles": dict(control.styles),
        "properties": copy.deepcopy(dict(control.properties)),
        "dependencies": [_dependency_to_dict(d) for d in control.dependencies],
    }

    slots = control.slots
    if isinstance(slots, TabSlots):
        data["position"] = slots.position
        data["activeTabIndex"] = slots.active_tab_index
        data["tabs"] = [
            {"id": t.id, "label": t.label, "controls": serialize(t.controls)} for t in slots.tabs
        ]
    elif isinstance(slots, AccordionSlots):
        data["layout"] = slots.layout.value
        data["allowMultipleExpanded"] = slots.allow_multiple_expanded
        data["maxSections"] = slots.max_sections
        data["expandedSections"] = [
            s.id for s in slots.sections if s.id in slots.expanded_sections
        ]
        data["sections"] = [
            {"id": s.id, "label": s.label, "controls": serialize(s.controls)}
            for s in slots.sections
        ]
    elif isinstance(slots, ColumnSlots):
        data["columns"] = slots.columns
        data["columnRatio"] = slots.column_ratio
        data["columnControls"] = [serialize(column) for column in slots.column_controls]
    return data


def serialize(tree: Iterable[Control]) -> list[dict[str, Any]]:
    """Serialize a tree (or any slot) to a list of plain dicts."""
    return [control_to_dict(c) for c in tree]


def _parse_condition(raw: dict[str, Any]) -> DependencyCondition:
    value = raw.get("value", [])
    if isinstance(value, str):
        value = [value]
    secondary = raw.get("secondaryValue")
    return DependencyCondition(
        type=ConditionType(raw["type"]),
        value=tuple(str(v) for v in value),
        secondary_value=None if secondary is None else str(secondary),
    )


def _parse_action_value(action: Any) -> bool | None:
    """Read ``actionValue`` as written by older exports: a bool or "true"/"false"."""
    if isinstance(action, bool):
        return action
    if isinstance(action, str):
        match action.strip().lower():
            case "true":
                return True
            case "false":
                return False
    if action is not None:
        logger.warning("Ignoring unrecognised actionValue {!r}", action)
    return None


def _parse_dependency(raw: dict[str, Any], id_factory: IdFactory) -> Dependency:
    return Dependency(
        id=raw.get("id") or id_factory(),
        target_control_id=raw["targetControlId"],
        property=DependencyProperty(raw["property"]),
        condition=_parse_condition(raw["condition"]),
        action_value=_parse_action_value(raw.get("actionValue")),
    )


def _parse_slots(kind: ControlKind, data: dict[str, Any], id_factory: IdFactory) -> Any:
    """Build the slot structure for ``kind``; None lets normalisation heal it."""
    if kind is ControlKind.TAB and "tabs" in data:
        return TabSlots(
            tabs=tuple(
                TabItem(
                    id=t.get("id") or id_factory(),
                    label=t.get("label", ""),
                    controls=_parse_controls(t.get("controls", []), id_factory),
                )
                for t in data["tabs"]
            ),
            active_tab_index=int(data.get("activeTabIndex", 0)),
            position=data.get("position", "top"),
        )
    if kind is ControlKind.ACCORDION and "sections" in data:
        sections = tuple(
            AccordionSection(
                id=s.get("id") or id_factory(),
                label=s.get("label", ""),
                controls=_parse_controls(s.get("controls", []), id_factory),
            )
            for s in data["sections"]
        )
        return AccordionSlots(
            sections=sections,
            layout=AccordionLayout(data.get("layout", AccordionLayout.VERTICAL.value)),
            allow_multiple_expanded=bool(data.get("allowMultipleExpanded", False)),
            expanded_sections=frozenset(data.get("expandedSections", [])),
            max_sections=int(data.get("maxSections", DEFAULT_MAX_SECTIONS)),
        )
    if kind is ControlKind.COLUMN_LAYOUT and "columnControls" in data:
        column_controls = tuple(
            _parse_controls(column, id_factory) for column in data["columnControls"]
        )
        return ColumnSlots(
            columns=int(data.get("columns", len(column_controls))),
            column_controls=column_controls,
            column_ratio=data.get("columnRatio", "equal"),
        )
    return None


def control_from_dict(data: dict[str, Any], *, id_factory: IdFactory = new_id) -> Control:
    """Parse one control dict. Slot structure is taken as is, not healed.

    Raises:
        MalformedControlError: If the id or type is missing or unknown.
    """
    control_id = data.get("id")
    if not control_id:
        msg = f"Control without id: {data.get('type')!r}"
        raise MalformedControlError(msg)
    try:
        kind = ControlKind(data.get("type"))
    except ValueError:
        msg = f"Control {control_id!r} has unknown type {data.get('type')!r}"
        raise MalformedControlError(msg) from None

    return Control(
        id=control_id,
        kind=kind,
        label=data.get("label", ""),
        required=bool(data.get("required", False)),
        visible=data.get("visible", True) is not False,
        enabled=data.get("enabled", True) is not False,
        styles=dict(data.get("styles") or {}),
        properties=copy.deepcopy(dict(data.get("properties") or {})),
        dependencies=tuple(
            _parse_dependency(d, id_factory) for d in data.get("dependencies") or []
        ),
        slots=_parse_slots(kind, data, id_factory),
    )


def _parse_controls(raw: Iterable[dict[str, Any]], id_factory: IdFactory) -> tuple[Control, ...]:
    return tuple(control_from_dict(c, id_factory=id_factory) for c in raw)


def deserialize(
    data: Iterable[dict[str, Any]],
    *,
    id_factory: IdFactory = new_id,
    max_depth: int | None = None,
) -> ControlTree:
    """Parse a list of control dicts into a healed, validated tree.

    Args:
        data: Root controls as produced by ``serialize``.
        id_factory: Source of ids for healed slots and id-less dependencies.
        max_depth: Nesting limit; defaults to the configured one.

    Returns:
        The control tree.

    Raises:
        MalformedControlError: On unknown control types or missing ids.
        DuplicateIdError: If an id appears twice.
        DepthExceededError: If containers nest deeper than allowed.
    """
    tree = normalize_tree(_parse_controls(data, id_factory), id_factory=id_factory)
    validate_tree(tree, max_depth=max_depth)
    return tree


def dumps(tree: ControlTree, *, indent: int | None = 2) -> str:
    return json.dumps(serialize(tree), indent=indent)


def loads(text: str, *, id_factory: IdFactory = new_id) -> ControlTree:
    data = json.loads(text)
    if not isinstance(data, list):
        msg = f"Expected a JSON list of controls, got {type(data).__name__}"
        raise ValueError(msg)
    return deserialize(data, id_factory=id_factory)


def questionnaire_to_dict(questionnaire: Questionnaire) -> dict[str, Any]:
    return {
        "id": questionnaire.id,
        "title": questionnaire.title,
        "description": questionnaire.description,
        "createdAt": questionnaire.created_at,
        "updatedAt": questionnaire.updated_at,
        "styles": copy.deepcopy(dict(questionnaire.styles)),
        "controls": serialize(questionnaire.controls),
    }


def parse_questionnaire(
    data: dict[str, Any], *, id_factory: IdFactory = new_id
) -> Questionnaire:
    """Parse a questionnaire document dict; ``id`` and ``title`` are required."""
    return Questionnaire(
        id=data["id"],
        title=data["title"],
        controls=deserialize(data.get("controls", []), id_factory=id_factory),
        description=data.get("description", ""),
        created_at=int(data.get("createdAt", 0)),
        updated_at=int(data.get("updatedAt", 0)),
        styles=copy.deepcopy(dict(data.get("styles") or {})),
    )
