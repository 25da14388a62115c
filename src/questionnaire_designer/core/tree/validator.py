"""Move validation: the gate every move and insert passes before touching the tree."""

from collections import Counter

from loguru import logger

from questionnaire_designer.config import resolve_max_depth
from questionnaire_designer.core.dragdrop.geometry import DropSide
from questionnaire_designer.core.tree.navigation import (
    container_height,
    flatten,
    max_depth as tree_max_depth,
    slot_depth,
)
from questionnaire_designer.errors import (
    CyclicMoveError,
    DepthExceededError,
    DuplicateIdError,
    InvalidContainerNestingError,
    TreeError,
)
from questionnaire_designer.models.control import Control, ControlTree, SlotRef


def check_move(
    tree: ControlTree,
    dragged: Control,
    target_slot: SlotRef,
    *,
    side: DropSide | None = None,
    target_id: str | None = None,
    max_depth: int | None = None,
) -> None:
    """Raise if placing ``dragged`` into ``target_slot`` is not allowed.

    Rules are checked in order and the first failing one raises:

    1. the target is the dragged control itself (CyclicMoveError);
    2. the target lies inside the dragged control (CyclicMoveError);
    3. a container is dropped on the "inside" side of a target
       (InvalidContainerNestingError);
    4. the resulting container nesting exceeds ``max_depth``
       (DepthExceededError).

    Args:
        tree: Current tree snapshot.
        dragged: The control being moved or inserted.
        target_slot: Slot that would receive the control.
        side: Side of the hovered target; None when moving programmatically.
        target_id: Id of the hovered control, when the drop was resolved against one.
        max_depth: Depth limit; defaults to the configured maximum.
    """
    limit = max_depth if max_depth is not None else resolve_max_depth()
    targets = [t for t in (target_slot.container_id, target_id) if t is not None]

    if dragged.id in targets:
        msg = f"Cannot drop control {dragged.id!r} onto itself"
        raise CyclicMoveError(msg)

    inner_ids = {c.id for c in flatten((dragged,))[1:]}
    for target in targets:
        if target in inner_ids:
            msg = f"Cannot drop control {dragged.id!r} into its own descendant {target!r}"
            raise CyclicMoveError(msg)

    if dragged.is_container and side is DropSide.INSIDE:
        msg = f"Container {dragged.id!r} ({dragged.kind.value}) cannot be nested inside a container"
        raise InvalidContainerNestingError(msg)

    depth = slot_depth(tree, target_slot) + container_height(dragged)
    if depth > limit:
        msg = f"Moving {dragged.id!r} would nest containers {depth} deep (max {limit})"
        raise DepthExceededError(msg)


def can_move(
    tree: ControlTree,
    dragged: Control,
    target_slot: SlotRef,
    *,
    side: DropSide | None = None,
    target_id: str | None = None,
    max_depth: int | None = None,
) -> bool:
    """Boolean form of check_move; unknown targets count as rejected."""
    try:
        check_move(
            tree, dragged, target_slot, side=side, target_id=target_id, max_depth=max_depth
        )
    except TreeError as e:
        logger.debug("Move of {} rejected: {}", dragged.id, e)
        return False
    return True


def validate_tree(tree: ControlTree, *, max_depth: int | None = None) -> None:
    """Check whole-tree invariants: unique ids and bounded container depth."""
    counts = Counter(c.id for c in flatten(tree))
    duplicates = sorted(control_id for control_id, n in counts.items() if n > 1)
    if duplicates:
        msg = f"Duplicate control ids: {duplicates!r}"
        raise DuplicateIdError(msg)

    limit = max_depth if max_depth is not None else resolve_max_depth()
    depth = tree_max_depth(tree)
    if depth > limit:
        msg = f"Containers nested {depth} deep (max {limit})"
        raise DepthExceededError(msg)
