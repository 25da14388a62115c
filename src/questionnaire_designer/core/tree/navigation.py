"""Tree navigation: lookup, traversal, breadcrumbs, siblings, depth."""

from collections.abc import Iterator

from questionnaire_designer.errors import NotFoundError
from questionnaire_designer.models.control import (
    ROOT_SLOT,
    AccordionSlots,
    ColumnSlots,
    Control,
    ControlTree,
    Location,
    SlotKind,
    SlotRef,
    TabSlots,
)


def iter_slots(control: Control) -> Iterator[tuple[SlotRef, tuple[Control, ...]]]:
    """Yield ``(slot_ref, controls)`` for every child slot of a container.

    Slots come in declaration order: tabs, sections or columns. Leaves and
    containers without slot structure yield nothing.
    """
    slots = control.slots
    if isinstance(slots, TabSlots):
        for i, tab in enumerate(slots.tabs):
            yield SlotRef(control.id, SlotKind.TAB, i), tab.controls
    elif isinstance(slots, AccordionSlots):
        for i, section in enumerate(slots.sections):
            yield SlotRef(control.id, SlotKind.SECTION, i), section.controls
    elif isinstance(slots, ColumnSlots):
        for i, column in enumerate(slots.column_controls):
            yield SlotRef(control.id, SlotKind.COLUMN, i), column


def slot_controls(control: Control, slot: SlotRef) -> tuple[Control, ...]:
    """Return the controls of one slot of ``control``."""
    for ref, controls in iter_slots(control):
        if ref == slot:
            return controls
    msg = f"Container {control.id!r} has no slot {slot.slot_kind.value}[{slot.slot_index}]"
    raise NotFoundError(msg)


def flatten(tree: ControlTree) -> list[Control]:
    """Return every control in pre-order, containers before their descendants."""
    result: list[Control] = []
    todo: list[Control] = list(reversed(tree))
    while todo:
        control = todo.pop()
        result.append(control)
        children = [c for _ref, slot in iter_slots(control) for c in slot]
        todo.extend(reversed(children))
    return result


def find_by_id(tree: ControlTree, control_id: str) -> Control | None:
    """Find a control anywhere in the tree, or None."""
    for control in flatten(tree):
        if control.id == control_id:
            return control
    return None


def require(tree: ControlTree, control_id: str) -> Control:
    """Like find_by_id, but raise NotFoundError when absent."""
    control = find_by_id(tree, control_id)
    if control is None:
        msg = f"Control {control_id!r} not found"
        raise NotFoundError(msg)
    return control


def collect_ids(tree: ControlTree) -> set[str]:
    return {c.id for c in flatten(tree)}


def count_controls(tree: ControlTree) -> int:
    return len(flatten(tree))


def _walk_locations(
    controls: tuple[Control, ...], slot: SlotRef, ancestors: tuple[Control, ...]
) -> Iterator[tuple[Location, tuple[Control, ...]]]:
    for index, control in enumerate(controls):
        yield Location(slot=slot, index=index, control=control), ancestors
        for child_slot, children in iter_slots(control):
            yield from _walk_locations(children, child_slot, (*ancestors, control))


def locate(tree: ControlTree, control_id: str) -> Location | None:
    """Return the slot and index currently holding ``control_id``."""
    for location, _ancestors in _walk_locations(tree, ROOT_SLOT, ()):
        if location.control.id == control_id:
            return location
    return None


def ancestors(tree: ControlTree, control_id: str) -> tuple[Control, ...]:
    """Return the containers enclosing a control, from the root down.

    Raises NotFoundError when the control is not in the tree.
    """
    for location, chain in _walk_locations(tree, ROOT_SLOT, ()):
        if location.control.id == control_id:
            return chain
    msg = f"Control {control_id!r} not found"
    raise NotFoundError(msg)


def get_slot(tree: ControlTree, slot: SlotRef) -> tuple[Control, ...]:
    """Return the controls held by ``slot``."""
    if slot.is_root:
        return tree
    if slot.container_id is None:
        msg = f"Slot {slot!r} has no container"
        raise NotFoundError(msg)
    return slot_controls(require(tree, slot.container_id), slot)


def siblings(
    tree: ControlTree, control_id: str, *, count: int = 3
) -> tuple[tuple[Control, ...], tuple[Control, ...]]:
    """Get up to ``count`` siblings before and after a control in its slot.

    Returns (siblings_before, siblings_after) tuples.
    """
    location = locate(tree, control_id)
    if location is None:
        msg = f"Control {control_id!r} not found"
        raise NotFoundError(msg)
    slot = get_slot(tree, location.slot)
    start = max(0, location.index - count)
    return slot[start : location.index], slot[location.index + 1 : location.index + 1 + count]


def is_descendant_of(tree: ControlTree, ancestor_id: str, control_id: str) -> bool:
    """True when ``control_id`` sits somewhere inside ``ancestor_id``'s slots."""
    ancestor = find_by_id(tree, ancestor_id)
    if ancestor is None:
        return False
    return any(c.id == control_id for c in flatten((ancestor,))[1:])


def slot_depth(tree: ControlTree, slot: SlotRef) -> int:
    """Number of containers enclosing ``slot`` (0 for the root slot)."""
    if slot.is_root or slot.container_id is None:
        return 0
    return len(ancestors(tree, slot.container_id)) + 1


def container_height(control: Control) -> int:
    """Container levels in a subtree, counting the control itself (a leaf is 0)."""
    if not control.is_container:
        return 0
    inner = [container_height(c) for _ref, slot in iter_slots(control) for c in slot]
    return 1 + max(inner, default=0)


def max_depth(tree: ControlTree) -> int:
    """Deepest container nesting in the whole tree."""
    return max((container_height(c) for c in tree), default=0)
