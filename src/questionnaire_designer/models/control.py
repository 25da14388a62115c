"""Domain models for the questionnaire control tree."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ControlKind(StrEnum):
    """Closed set of control variants, valued as in the exported JSON."""

    TEXT_BOX = "textBox"
    CHECKBOX = "checkbox"
    RADIO_BUTTON = "radioButton"
    TOGGLE_SLIDER = "toggleSlider"
    NUMERIC = "numeric"
    DROPDOWN = "dropdown"
    ADDRESS = "address"
    PROTECTED_NUMBER = "protectedNumber"
    TAB = "tab"
    ACCORDION = "accordion"
    COLUMN_LAYOUT = "columnLayout"

    @property
    def is_container(self) -> bool:
        return self in CONTAINER_KINDS


CONTAINER_KINDS: frozenset[ControlKind] = frozenset(
    {ControlKind.TAB, ControlKind.ACCORDION, ControlKind.COLUMN_LAYOUT}
)

BOOLEAN_KINDS: frozenset[ControlKind] = frozenset({ControlKind.CHECKBOX, ControlKind.TOGGLE_SLIDER})


class SlotKind(StrEnum):
    ROOT = "root"
    TAB = "tab"
    SECTION = "section"
    COLUMN = "column"


class DependencyProperty(StrEnum):
    VISIBLE = "visible"
    ENABLED = "enabled"
    REQUIRED = "required"


class ConditionType(StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    BETWEEN = "between"
    CHECKED = "checked"
    UNCHECKED = "unchecked"
    FILLED = "filled"
    EMPTY = "empty"


class AccordionLayout(StrEnum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


@dataclass(frozen=True)
class DependencyCondition:
    """Condition part of a dependency rule.

    ``value`` holds one or more strings (several for checkbox groups);
    ``secondary_value`` is the upper bound for ``between`` when ``value``
    carries only the lower one.
    """

    type: ConditionType
    value: tuple[str, ...] = ()
    secondary_value: str | None = None


@dataclass(frozen=True)
class Dependency:
    """A rule changing one property of its owner based on another control's value.

    When the condition holds, ``visible``/``enabled`` become ``action_value``
    (False when unset) and ``required`` becomes ``action_value`` (True when unset).
    """

    id: str
    target_control_id: str
    property: DependencyProperty
    condition: DependencyCondition
    action_value: bool | None = None


@dataclass(frozen=True)
class SlotRef:
    """Address of one ordered slot: the root, a tab, a section, or a column."""

    container_id: str | None
    slot_kind: SlotKind
    slot_index: int = 0

    @property
    def is_root(self) -> bool:
        return self.slot_kind is SlotKind.ROOT


ROOT_SLOT = SlotRef(container_id=None, slot_kind=SlotKind.ROOT)


@dataclass(frozen=True)
class TabItem:
    id: str
    label: str
    controls: tuple["Control", ...] = ()


@dataclass(frozen=True)
class AccordionSection:
    id: str
    label: str
    controls: tuple["Control", ...] = ()


@dataclass(frozen=True)
class TabSlots:
    tabs: tuple[TabItem, ...]
    active_tab_index: int = 0
    position: str = "top"


@dataclass(frozen=True)
class AccordionSlots:
    sections: tuple[AccordionSection, ...]
    layout: AccordionLayout = AccordionLayout.VERTICAL
    allow_multiple_expanded: bool = False
    expanded_sections: frozenset[str] = frozenset()
    max_sections: int = 10


@dataclass(frozen=True)
class ColumnSlots:
    columns: int
    column_controls: tuple[tuple["Control", ...], ...]
    column_ratio: str = "equal"


ContainerSlots = TabSlots | AccordionSlots | ColumnSlots


@dataclass(frozen=True)
class Control:
    """A single node of the control tree, leaf or container.

    ``visible``/``enabled``/``required`` are the declared defaults; the
    effective values come from dependency evaluation. ``properties`` is an
    opaque, kind-specific bag and is treated as read-only.
    """

    id: str
    kind: ControlKind
    label: str = ""
    required: bool = False
    visible: bool = True
    enabled: bool = True
    styles: Mapping[str, str] = field(default_factory=dict)
    properties: Mapping[str, Any] = field(default_factory=dict)
    dependencies: tuple[Dependency, ...] = ()
    slots: ContainerSlots | None = None

    @property
    def is_container(self) -> bool:
        return self.kind.is_container


# The whole designer canvas: an ordered forest of root controls.
ControlTree = tuple[Control, ...]


@dataclass(frozen=True)
class Location:
    """Where a control currently sits in the tree."""

    slot: SlotRef
    index: int
    control: Control


@dataclass(frozen=True)
class ComputedState:
    """Effective state of a control after dependency evaluation."""

    visible: bool
    enabled: bool
    required: bool

    def as_dict(self) -> dict[str, bool]:
        return {"visible": self.visible, "enabled": self.enabled, "required": self.required}


@dataclass(frozen=True)
class Questionnaire:
    """A questionnaire document: metadata plus the control tree."""

    id: str
    title: str
    controls: ControlTree = ()
    description: str = ""
    created_at: int = 0
    updated_at: int = 0
    styles: Mapping[str, Any] = field(default_factory=dict)
