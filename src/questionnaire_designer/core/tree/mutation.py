"""Persistent structural updates of the control tree.

Every function takes a tree snapshot and returns a new one. Only the path
from the root to the changed slot is copied; untouched subtrees are shared
with the input snapshot, which is never modified.
"""

import copy
from collections.abc import Callable
from dataclasses import replace
from typing import Any, TypeVar

from loguru import logger

from questionnaire_designer.config import (
    DEFAULT_COLUMN_COUNT,
    DEFAULT_SECTION_LABEL,
    DEFAULT_TAB_LABEL,
)
from questionnaire_designer.core.dragdrop.geometry import DropSide
from questionnaire_designer.core.tree.factory import new_id
from questionnaire_designer.core.tree.navigation import (
    collect_ids,
    flatten,
    get_slot,
    iter_slots,
    locate,
    require,
    slot_controls,
)
from questionnaire_designer.core.tree.validator import check_move, validate_tree
from questionnaire_designer.errors import (
    DuplicateIdError,
    MalformedControlError,
    NotFoundError,
    SlotConstraintError,
)
from questionnaire_designer.models.control import (
    AccordionSection,
    AccordionSlots,
    ColumnSlots,
    Control,
    ControlKind,
    ControlTree,
    SlotKind,
    SlotRef,
    TabItem,
    TabSlots,
)
from questionnaire_designer.protocols import IdFactory

Slot = tuple[Control, ...]
SlotsT = TypeVar("SlotsT", TabSlots, AccordionSlots, ColumnSlots)


def insert_at(slot: Slot, index: int | None, control: Control) -> Slot:
    """Insert ``control`` into ``slot`` at ``index``.

    The index is clamped to ``[0, len(slot)]``; None appends.
    """
    if index is None:
        index = len(slot)
    index = max(0, min(index, len(slot)))
    return (*slot[:index], control, *slot[index:])


def replace_slot(control: Control, slot: SlotRef, controls: Slot) -> Control:
    """Return a copy of ``control`` whose ``slot`` holds ``controls``."""
    slots = control.slots
    i = slot.slot_index
    if isinstance(slots, TabSlots) and slot.slot_kind is SlotKind.TAB and 0 <= i < len(slots.tabs):
        tabs = list(slots.tabs)
        tabs[i] = replace(tabs[i], controls=controls)
        return replace(control, slots=replace(slots, tabs=tuple(tabs)))
    if (
        isinstance(slots, AccordionSlots)
        and slot.slot_kind is SlotKind.SECTION
        and 0 <= i < len(slots.sections)
    ):
        sections = list(slots.sections)
        sections[i] = replace(sections[i], controls=controls)
        return replace(control, slots=replace(slots, sections=tuple(sections)))
    if (
        isinstance(slots, ColumnSlots)
        and slot.slot_kind is SlotKind.COLUMN
        and 0 <= i < len(slots.column_controls)
    ):
        columns = list(slots.column_controls)
        columns[i] = controls
        return replace(control, slots=replace(slots, column_controls=tuple(columns)))
    msg = f"Container {control.id!r} has no slot {slot.slot_kind.value}[{i}]"
    raise NotFoundError(msg)


def _rewrite(
    controls: Slot, control_id: str, fn: Callable[[Control], Control]
) -> tuple[Slot, bool]:
    """Replace the control with ``control_id`` by ``fn(control)``, copying only its path."""
    for i, control in enumerate(controls):
        if control.id == control_id:
            return (*controls[:i], fn(control), *controls[i + 1 :]), True
        for ref, children in iter_slots(control):
            new_children, found = _rewrite(children, control_id, fn)
            if found:
                updated = replace_slot(control, ref, new_children)
                return (*controls[:i], updated, *controls[i + 1 :]), True
    return controls, False


def _rewrite_control(
    tree: ControlTree, control_id: str, fn: Callable[[Control], Control]
) -> ControlTree:
    new_tree, found = _rewrite(tree, control_id, fn)
    if not found:
        msg = f"Control {control_id!r} not found"
        raise NotFoundError(msg)
    return new_tree


def _update_slot(tree: ControlTree, slot: SlotRef, fn: Callable[[Slot], Slot]) -> ControlTree:
    if slot.is_root:
        return fn(tree)
    if slot.container_id is None:
        msg = f"Slot {slot!r} has no container"
        raise NotFoundError(msg)
    return _rewrite_control(
        tree,
        slot.container_id,
        lambda c: replace_slot(c, slot, fn(slot_controls(c, slot))),
    )


def insert_into(
    tree: ControlTree, slot: SlotRef, index: int | None, control: Control
) -> ControlTree:
    """Insert a control (with its subtree) into a slot of the tree.

    Raises DuplicateIdError when any id of the subtree is already in use.
    """
    new_ids = [c.id for c in flatten((control,))]
    if len(set(new_ids)) != len(new_ids):
        msg = f"Control {control.id!r} contains duplicate ids"
        raise DuplicateIdError(msg)
    clashes = sorted(set(new_ids) & collect_ids(tree))
    if clashes:
        msg = f"Ids already present in the tree: {clashes!r}"
        raise DuplicateIdError(msg)

    new_tree = _update_slot(tree, slot, lambda s: insert_at(s, index, control))
    logger.debug("Inserted {} {} into {}[{}]", control.kind.value, control.id, slot, index)
    return new_tree


def _remove(controls: Slot, control_id: str) -> tuple[Slot, Control | None]:
    for i, control in enumerate(controls):
        if control.id == control_id:
            return (*controls[:i], *controls[i + 1 :]), control
        for ref, children in iter_slots(control):
            new_children, removed = _remove(children, control_id)
            if removed is not None:
                updated = replace_slot(control, ref, new_children)
                return (*controls[:i], updated, *controls[i + 1 :]), removed
    return controls, None


def remove_by_id(tree: ControlTree, control_id: str) -> tuple[ControlTree, Control | None]:
    """Remove a control and its subtree.

    Returns (new_tree, removed_control). When the id is not in the tree the
    input tree is returned unchanged together with None.
    """
    new_tree, removed = _remove(tree, control_id)
    if removed is None:
        logger.debug("remove_by_id: {} not found", control_id)
        return tree, None
    return new_tree, removed


def move_by_id(
    tree: ControlTree,
    control_id: str,
    target_slot: SlotRef,
    target_index: int | None,
    *,
    side: DropSide | None = None,
    target_id: str | None = None,
    max_depth: int | None = None,
) -> ControlTree:
    """Move a control (identity preserved) to ``target_index`` of ``target_slot``.

    ``target_index`` is expressed in the index space of the tree *before*
    the move, as a drop resolver computes it. For a forward move inside the
    same slot the index is shifted down by one to account for the removal.
    Dropping a control on its own position, or immediately after itself, is
    a no-op and returns the input tree.

    Raises NotFoundError for unknown ids and a MoveError subclass when the
    move validator rejects the move.
    """
    location = locate(tree, control_id)
    if location is None:
        msg = f"Control {control_id!r} not found"
        raise NotFoundError(msg)

    check_move(
        tree,
        location.control,
        target_slot,
        side=side,
        target_id=target_id,
        max_depth=max_depth,
    )

    index = target_index
    if location.slot == target_slot:
        if index is None:
            index = len(get_slot(tree, target_slot))
        if index in (location.index, location.index + 1):
            logger.debug("Move of {} to its own position skipped", control_id)
            return tree
        if index > location.index:
            index -= 1

    without, removed = remove_by_id(tree, control_id)
    if removed is None:
        msg = f"Control {control_id!r} not found"
        raise NotFoundError(msg)
    new_tree = _update_slot(without, target_slot, lambda s: insert_at(s, index, removed))
    logger.debug(
        "Moved {} from {}[{}] to {}[{}]",
        control_id, location.slot, location.index, target_slot, index,
    )
    return new_tree


def _clone(control: Control, id_map: dict[str, str], id_factory: IdFactory) -> Control:
    dependencies = tuple(
        replace(
            d,
            id=id_factory(),
            target_control_id=id_map.get(d.target_control_id, d.target_control_id),
        )
        for d in control.dependencies
    )

    def clone_all(controls: Slot) -> Slot:
        return tuple(_clone(c, id_map, id_factory) for c in controls)

    slots = control.slots
    if isinstance(slots, TabSlots):
        slots = replace(
            slots,
            tabs=tuple(
                TabItem(id=id_factory(), label=t.label, controls=clone_all(t.controls))
                for t in slots.tabs
            ),
        )
    elif isinstance(slots, AccordionSlots):
        section_ids = {s.id: id_factory() for s in slots.sections}
        slots = replace(
            slots,
            sections=tuple(
                AccordionSection(
                    id=section_ids[s.id], label=s.label, controls=clone_all(s.controls)
                )
                for s in slots.sections
            ),
            expanded_sections=frozenset(
                section_ids[s] for s in slots.expanded_sections if s in section_ids
            ),
        )
    elif isinstance(slots, ColumnSlots):
        slots = replace(
            slots, column_controls=tuple(clone_all(col) for col in slots.column_controls)
        )

    return replace(
        control,
        id=id_map[control.id],
        styles=dict(control.styles),
        properties=copy.deepcopy(dict(control.properties)),
        dependencies=dependencies,
        slots=slots,
    )


def clone_subtree(control: Control, *, id_factory: IdFactory = new_id) -> Control:
    """Deep-copy a control and its descendants, assigning new ids throughout.

    Tabs, sections and dependency rules get new ids too. Dependencies that
    point at controls inside the copied subtree are re-pointed at the copies.
    """
    id_map = {c.id: id_factory() for c in flatten((control,))}
    return _clone(control, id_map, id_factory)


def duplicate_control(
    tree: ControlTree, control_id: str, *, id_factory: IdFactory = new_id
) -> tuple[ControlTree, Control]:
    """Insert a clone of a control directly after the original.

    Returns (new_tree, clone).
    """
    location = locate(tree, control_id)
    if location is None:
        msg = f"Control {control_id!r} not found"
        raise NotFoundError(msg)
    clone = clone_subtree(location.control, id_factory=id_factory)
    return insert_into(tree, location.slot, location.index + 1, clone), clone


def delete_control(tree: ControlTree, control_id: str) -> ControlTree:
    """Delete a control together with everything in its slots."""
    new_tree, removed = remove_by_id(tree, control_id)
    if removed is None:
        msg = f"Control {control_id!r} not found"
        raise NotFoundError(msg)
    logger.debug("Deleted {} ({} controls)", control_id, len(flatten((removed,))))
    return new_tree


def update_control(
    tree: ControlTree,
    control_id: str,
    *,
    max_depth: int | None = None,
    **changes: Any,
) -> ControlTree:
    """Apply property-panel changes to one control.

    The id cannot be changed. The result is normalised, so a changed
    ``slots`` value is healed to a consistent shape, and then validated:
    replacement slots that repeat an existing id or nest containers past
    ``max_depth`` raise DuplicateIdError or DepthExceededError.
    """
    if "id" in changes:
        msg = "Control ids are immutable"
        raise ValueError(msg)
    new_tree = _rewrite_control(
        tree, control_id, lambda c: normalize_control(replace(c, **changes))
    )
    validate_tree(new_tree, max_depth=max_depth)
    return new_tree


def _resize_columns(columns: tuple[Slot, ...], count: int) -> tuple[Slot, ...]:
    if len(columns) <= count:
        return (*columns, *(() for _ in range(count - len(columns))))
    kept = list(columns[:count])
    overflow = tuple(c for column in columns[count:] for c in column)
    if overflow:
        logger.debug(
            "Moving {} controls from removed columns into column {}", len(overflow), count - 1
        )
    kept[-1] = (*kept[-1], *overflow)
    return tuple(kept)


def normalize_control(control: Control, *, id_factory: IdFactory = new_id) -> Control:
    """Heal a container's slot structure; leaves are returned unchanged.

    Missing tabs or sections get a single default slot, column layouts get
    exactly ``columns`` slots, the active tab index is clamped and unknown
    ids are dropped from ``expanded_sections``. Slot structure of the wrong
    variant for the control's kind raises MalformedControlError.
    """
    slots = control.slots
    if not control.is_container:
        if slots is not None:
            msg = f"Leaf control {control.id!r} ({control.kind.value}) has child slots"
            raise MalformedControlError(msg)
        return control

    expected = {
        ControlKind.TAB: TabSlots,
        ControlKind.ACCORDION: AccordionSlots,
        ControlKind.COLUMN_LAYOUT: ColumnSlots,
    }[control.kind]
    if slots is not None and not isinstance(slots, expected):
        msg = f"Control {control.id!r} ({control.kind.value}) has {type(slots).__name__}"
        raise MalformedControlError(msg)

    if isinstance(slots, TabSlots) and slots.tabs:
        active = max(0, min(slots.active_tab_index, len(slots.tabs) - 1))
        if active != slots.active_tab_index:
            slots = replace(slots, active_tab_index=active)
    elif isinstance(slots, TabSlots) or (slots is None and control.kind is ControlKind.TAB):
        logger.debug("Tab {} has no tabs, creating a default one", control.id)
        default_tab = TabItem(id=id_factory(), label=DEFAULT_TAB_LABEL)
        if slots is None:
            slots = TabSlots(tabs=(default_tab,))
        else:
            slots = replace(slots, tabs=(default_tab,), active_tab_index=0)
    elif isinstance(slots, AccordionSlots) and slots.sections:
        known = {s.id for s in slots.sections}
        if not slots.expanded_sections <= known:
            slots = replace(slots, expanded_sections=slots.expanded_sections & known)
    elif isinstance(slots, AccordionSlots) or (
        slots is None and control.kind is ControlKind.ACCORDION
    ):
        logger.debug("Accordion {} has no sections, creating a default one", control.id)
        default_section = AccordionSection(id=id_factory(), label=DEFAULT_SECTION_LABEL)
        if slots is None:
            slots = AccordionSlots(sections=(default_section,))
        else:
            slots = replace(slots, sections=(default_section,), expanded_sections=frozenset())
    elif isinstance(slots, ColumnSlots):
        count = slots.columns if slots.columns >= 1 else DEFAULT_COLUMN_COUNT
        if count != slots.columns or len(slots.column_controls) != count:
            logger.debug("Column layout {} resized to {} columns", control.id, count)
            slots = replace(
                slots, columns=count, column_controls=_resize_columns(slots.column_controls, count)
            )
    else:
        logger.debug("Column layout {} has no columns, creating defaults", control.id)
        slots = ColumnSlots(
            columns=DEFAULT_COLUMN_COUNT,
            column_controls=tuple(() for _ in range(DEFAULT_COLUMN_COUNT)),
        )

    if slots is control.slots:
        return control
    return replace(control, slots=slots)


def _normalize_deep(control: Control, id_factory: IdFactory) -> Control:
    control = normalize_control(control, id_factory=id_factory)
    for ref, children in list(iter_slots(control)):
        healed = tuple(_normalize_deep(c, id_factory) for c in children)
        if any(a is not b for a, b in zip(healed, children, strict=True)):
            control = replace_slot(control, ref, healed)
    return control


def normalize_tree(tree: ControlTree, *, id_factory: IdFactory = new_id) -> ControlTree:
    """Apply normalize_control to every control in the tree."""
    return tuple(_normalize_deep(c, id_factory) for c in tree)


def _require_slots(
    tree: ControlTree, control_id: str, kind: ControlKind, slots_type: type[SlotsT]
) -> SlotsT:
    control = require(tree, control_id)
    if control.kind is not kind:
        msg = f"Control {control_id!r} is a {control.kind.value}, not a {kind.value}"
        raise SlotConstraintError(msg)
    slots = normalize_control(control).slots
    if not isinstance(slots, slots_type):
        msg = (
            f"Control {control_id!r} has {type(slots).__name__}, "
            f"expected {slots_type.__name__}"
        )
        raise MalformedControlError(msg)
    return slots


def _set_slots(tree: ControlTree, control_id: str, slots: Any) -> ControlTree:
    return _rewrite_control(tree, control_id, lambda c: replace(c, slots=slots))


def add_tab(
    tree: ControlTree,
    control_id: str,
    *,
    label: str | None = None,
    id_factory: IdFactory = new_id,
) -> ControlTree:
    """Append an empty tab to a Tab control."""
    slots = _require_slots(tree, control_id, ControlKind.TAB, TabSlots)
    tab = TabItem(id=id_factory(), label=label or f"Tab {len(slots.tabs) + 1}")
    return _set_slots(tree, control_id, replace(slots, tabs=(*slots.tabs, tab)))


def remove_tab(tree: ControlTree, control_id: str, tab_id: str) -> ControlTree:
    """Remove a tab and its controls; a Tab control keeps at least one tab."""
    slots = _require_slots(tree, control_id, ControlKind.TAB, TabSlots)
    if tab_id not in {t.id for t in slots.tabs}:
        msg = f"Tab {tab_id!r} not found in {control_id!r}"
        raise NotFoundError(msg)
    if len(slots.tabs) <= 1:
        msg = "A tab control must have at least one tab"
        raise SlotConstraintError(msg)
    removed_index = next(i for i, t in enumerate(slots.tabs) if t.id == tab_id)
    tabs = tuple(t for t in slots.tabs if t.id != tab_id)
    active = slots.active_tab_index
    if removed_index < active:
        active -= 1
    active = min(active, len(tabs) - 1)
    return _set_slots(tree, control_id, replace(slots, tabs=tabs, active_tab_index=active))


def set_active_tab(tree: ControlTree, control_id: str, index: int) -> ControlTree:
    slots = _require_slots(tree, control_id, ControlKind.TAB, TabSlots)
    if not 0 <= index < len(slots.tabs):
        msg = f"Tab index {index} out of range for {control_id!r}"
        raise SlotConstraintError(msg)
    return _set_slots(tree, control_id, replace(slots, active_tab_index=index))


def add_section(
    tree: ControlTree,
    control_id: str,
    *,
    label: str | None = None,
    id_factory: IdFactory = new_id,
) -> ControlTree:
    """Append an empty section to an Accordion, bounded by ``max_sections``."""
    slots = _require_slots(tree, control_id, ControlKind.ACCORDION, AccordionSlots)
    if len(slots.sections) >= slots.max_sections:
        msg = f"Accordion {control_id!r} already has {slots.max_sections} sections"
        raise SlotConstraintError(msg)
    section = AccordionSection(
        id=id_factory(), label=label or f"Section {len(slots.sections) + 1}"
    )
    return _set_slots(tree, control_id, replace(slots, sections=(*slots.sections, section)))


def remove_section(tree: ControlTree, control_id: str, section_id: str) -> ControlTree:
    """Remove a section and its controls; an Accordion keeps at least one section."""
    slots = _require_slots(tree, control_id, ControlKind.ACCORDION, AccordionSlots)
    if section_id not in {s.id for s in slots.sections}:
        msg = f"Section {section_id!r} not found in {control_id!r}"
        raise NotFoundError(msg)
    if len(slots.sections) <= 1:
        msg = "An accordion must have at least one section"
        raise SlotConstraintError(msg)
    return _set_slots(
        tree,
        control_id,
        replace(
            slots,
            sections=tuple(s for s in slots.sections if s.id != section_id),
            expanded_sections=slots.expanded_sections - {section_id},
        ),
    )


def toggle_section(tree: ControlTree, control_id: str, section_id: str) -> ControlTree:
    """Expand or collapse a section.

    Unless ``allow_multiple_expanded`` is set, expanding a section collapses
    the others.
    """
    slots = _require_slots(tree, control_id, ControlKind.ACCORDION, AccordionSlots)
    if section_id not in {s.id for s in slots.sections}:
        msg = f"Section {section_id!r} not found in {control_id!r}"
        raise NotFoundError(msg)
    if section_id in slots.expanded_sections:
        expanded = slots.expanded_sections - {section_id}
    elif slots.allow_multiple_expanded:
        expanded = slots.expanded_sections | {section_id}
    else:
        expanded = frozenset({section_id})
    return _set_slots(tree, control_id, replace(slots, expanded_sections=expanded))


def rename_slot(tree: ControlTree, slot: SlotRef, label: str) -> ControlTree:
    """Change the label of a tab or section."""
    if slot.container_id is None or slot.slot_kind not in (SlotKind.TAB, SlotKind.SECTION):
        msg = f"Slot {slot!r} has no label"
        raise SlotConstraintError(msg)
    control = require(tree, slot.container_id)
    slots = control.slots
    i = slot.slot_index
    if isinstance(slots, TabSlots) and slot.slot_kind is SlotKind.TAB and 0 <= i < len(slots.tabs):
        tabs = list(slots.tabs)
        tabs[i] = replace(tabs[i], label=label)
        return _set_slots(tree, control.id, replace(slots, tabs=tuple(tabs)))
    if (
        isinstance(slots, AccordionSlots)
        and slot.slot_kind is SlotKind.SECTION
        and 0 <= i < len(slots.sections)
    ):
        sections = list(slots.sections)
        sections[i] = replace(sections[i], label=label)
        return _set_slots(tree, control.id, replace(slots, sections=tuple(sections)))
    msg = f"Container {control.id!r} has no slot {slot.slot_kind.value}[{i}]"
    raise NotFoundError(msg)


def set_column_count(tree: ControlTree, control_id: str, columns: int) -> ControlTree:
    """Change the number of columns, resizing ``column_controls`` to match.

    Controls in columns that disappear are appended to the last remaining column.
    """
    if columns < 1:
        msg = f"A column layout needs at least one column, got {columns}"
        raise SlotConstraintError(msg)
    slots = _require_slots(tree, control_id, ControlKind.COLUMN_LAYOUT, ColumnSlots)
    return _set_slots(
        tree,
        control_id,
        replace(
            slots,
            columns=columns,
            column_controls=_resize_columns(slots.column_controls, columns),
        ),
    )
