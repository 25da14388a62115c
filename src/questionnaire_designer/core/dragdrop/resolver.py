"""Resolve a pointer position over rendered drop targets into a drop candidate."""

from collections.abc import Iterable
from dataclasses import replace

from questionnaire_designer.core.dragdrop.geometry import (
    DropCandidate,
    DropSide,
    DropTargetElement,
    TargetRole,
)
from questionnaire_designer.core.dragdrop.strategies import StrategyRegistry, default_registry
from questionnaire_designer.models.control import ControlKind


def deepest_target(
    elements: Iterable[DropTargetElement], pointer_x: float, pointer_y: float
) -> DropTargetElement | None:
    """Return the smallest element whose rectangle contains the pointer.

    Nested targets are smaller than their containers, so this picks the
    innermost one. On equal areas the element listed last wins, matching
    render order where children come after their parents.
    """
    best: DropTargetElement | None = None
    for element in elements:
        if not element.rect.contains(pointer_x, pointer_y):
            continue
        if best is None or element.rect.area <= best.rect.area:
            best = element
    return best


class DropResolver:
    """Compute where a drop would land. Never mutates anything.

    Cost is linear in the number of supplied elements, independent of the
    size of the control tree.
    """

    def __init__(self, registry: StrategyRegistry | None = None) -> None:
        self.registry = registry or default_registry()

    def resolve(
        self,
        pointer_x: float,
        pointer_y: float,
        elements: Iterable[DropTargetElement],
        *,
        dragged_kind: ControlKind | None = None,
    ) -> DropCandidate | None:
        """Return the drop candidate under the pointer, or None when over nothing.

        The candidate's ``accepted`` flag carries the hovered strategy's
        verdict for ``dragged_kind``; it is advisory only.
        """
        target = deepest_target(elements, pointer_x, pointer_y)
        if target is None:
            return None

        if target.role is TargetRole.EMPTY_SLOT:
            # The empty root canvas is not inside any container.
            side = DropSide.BEFORE if target.slot.is_root else DropSide.INSIDE
            candidate = DropCandidate(slot=target.slot, index=0, side=side)
            accepted = (
                dragged_kind is None or side is not DropSide.INSIDE or not dragged_kind.is_container
            )
            return candidate if accepted else replace(candidate, accepted=False)

        strategy = self.registry.strategy_for(target.kind)
        candidate = strategy.calculate_drop_position(target, pointer_x, pointer_y)
        if dragged_kind is not None and not strategy.validate_drop(dragged_kind, candidate.side):
            return replace(candidate, accepted=False)
        return candidate
