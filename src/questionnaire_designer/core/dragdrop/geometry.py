"""Plain geometry and drop-target records supplied by the rendering layer."""

from dataclasses import dataclass
from enum import StrEnum

from questionnaire_designer.models.control import ControlKind, SlotRef


class DropSide(StrEnum):
    BEFORE = "before"
    AFTER = "after"
    INSIDE = "inside"


class Orientation(StrEnum):
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


class TargetRole(StrEnum):
    """What a rendered drop-target element stands for."""

    # A control rendered inside some slot; drops land beside it (or inside, for containers).
    CONTROL = "control"
    # The placeholder shown by a slot with no controls.
    EMPTY_SLOT = "empty-slot"


@dataclass(frozen=True)
class Rect:
    """Bounding rectangle in viewport coordinates."""

    top: float
    left: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True)
class DropTargetElement:
    """One currently rendered drop target.

    Args:
        rect: Bounding rectangle of the element.
        slot: Slot that holds the element (for a placeholder: the empty slot itself).
        index: Index of the element within ``slot``; 0 for a placeholder.
        role: Whether the element is a control or an empty-slot placeholder.
        control_id: Id of the rendered control; None for placeholders.
        kind: Kind of the rendered control; None for placeholders.
        orientation: Stacking direction of ``slot``.
        inner_slots: For containers, the child slots in declaration order.
        inner_slot_lengths: Number of controls in each of ``inner_slots``.
        active_slot: For containers, the index into ``inner_slots`` that
            receives "inside" drops (active tab, first expanded section).
    """

    rect: Rect
    slot: SlotRef
    index: int = 0
    role: TargetRole = TargetRole.CONTROL
    control_id: str | None = None
    kind: ControlKind | None = None
    orientation: Orientation = Orientation.VERTICAL
    inner_slots: tuple[SlotRef, ...] = ()
    inner_slot_lengths: tuple[int, ...] = ()
    active_slot: int = 0


@dataclass(frozen=True)
class DropCandidate:
    """Resolver output: where a drop would land, and whether the strategy allows it."""

    slot: SlotRef
    index: int
    side: DropSide
    target_id: str | None = None
    accepted: bool = True

    @property
    def container_id(self) -> str | None:
        return self.slot.container_id


@dataclass(frozen=True)
class DragPreview:
    """Data the UI needs to draw a drag ghost."""

    title: str
    subtitle: str
    offset: int = 15
