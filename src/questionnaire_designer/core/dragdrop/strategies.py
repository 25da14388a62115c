"""Drag and drop strategies keyed by the kind of the hovered control."""

from loguru import logger

from questionnaire_designer.config import CONTAINER_EDGE_FRACTION
from questionnaire_designer.core.dragdrop.geometry import (
    DragPreview,
    DropCandidate,
    DropSide,
    DropTargetElement,
    Orientation,
)
from questionnaire_designer.models.control import ControlKind
from questionnaire_designer.protocols import DropStrategy


def _along(element: DropTargetElement, pointer_x: float, pointer_y: float) -> tuple[float, float]:
    """Pointer offset and extent along the element's stacking direction."""
    rect = element.rect
    if element.orientation is Orientation.HORIZONTAL:
        return pointer_x - rect.left, rect.width
    return pointer_y - rect.top, rect.height


def _beside(element: DropTargetElement, side: DropSide) -> DropCandidate:
    index = element.index if side is DropSide.BEFORE else element.index + 1
    return DropCandidate(slot=element.slot, index=index, side=side, target_id=element.control_id)


class DefaultDropStrategy:
    """Leaf controls: drop before or after, split at the midpoint."""

    strategy_id = "default-strategy"

    def applicable_kinds(self) -> frozenset[ControlKind]:
        # Fallback for every kind without a dedicated strategy.
        return frozenset()

    def calculate_drop_position(
        self, element: DropTargetElement, pointer_x: float, pointer_y: float
    ) -> DropCandidate:
        offset, extent = _along(element, pointer_x, pointer_y)
        side = DropSide.BEFORE if offset < extent / 2 else DropSide.AFTER
        return _beside(element, side)

    def validate_drop(self, dragged_kind: ControlKind, side: DropSide) -> bool:
        return side is not DropSide.INSIDE

    def create_preview(self, dragged_kind: ControlKind, label: str) -> DragPreview:
        return DragPreview(title=label, subtitle=dragged_kind.value)


class ContainerDropStrategy:
    """Containers: edges drop beside the container, the middle band drops inside.

    With the default edge fraction this is the thirds heuristic: top third
    before, bottom third after, middle third into the receiving slot.
    """

    strategy_id = "container-strategy"
    kinds: frozenset[ControlKind] = frozenset()

    def applicable_kinds(self) -> frozenset[ControlKind]:
        return self.kinds

    def inside_slot(self, element: DropTargetElement, pointer_x: float, pointer_y: float) -> int:
        """Index into ``element.inner_slots`` that receives an inside drop."""
        return max(0, min(element.active_slot, len(element.inner_slots) - 1))

    def calculate_drop_position(
        self, element: DropTargetElement, pointer_x: float, pointer_y: float
    ) -> DropCandidate:
        offset, extent = _along(element, pointer_x, pointer_y)
        edge = extent * CONTAINER_EDGE_FRACTION
        if offset < edge:
            return _beside(element, DropSide.BEFORE)
        if offset > extent - edge:
            return _beside(element, DropSide.AFTER)
        if not element.inner_slots:
            logger.debug("Container {} rendered without slots", element.control_id)
            return _beside(element, DropSide.AFTER)

        i = self.inside_slot(element, pointer_x, pointer_y)
        lengths = element.inner_slot_lengths
        # Inside drops append to the receiving slot.
        index = lengths[i] if i < len(lengths) else 0
        return DropCandidate(
            slot=element.inner_slots[i],
            index=index,
            side=DropSide.INSIDE,
            target_id=element.control_id,
        )

    def validate_drop(self, dragged_kind: ControlKind, side: DropSide) -> bool:
        return side is not DropSide.INSIDE or not dragged_kind.is_container

    def create_preview(self, dragged_kind: ControlKind, label: str) -> DragPreview:
        return DragPreview(title=label, subtitle=f"{dragged_kind.value} container")


class TabDropStrategy(ContainerDropStrategy):
    """Tabs receive inside drops in the active tab."""

    strategy_id = "tab-strategy"
    kinds = frozenset({ControlKind.TAB})

    def create_preview(self, dragged_kind: ControlKind, label: str) -> DragPreview:
        return DragPreview(title=label, subtitle=f"Tab: {dragged_kind.value}", offset=20)


class AccordionDropStrategy(ContainerDropStrategy):
    """Accordions receive inside drops in the first expanded section."""

    strategy_id = "accordion-strategy"
    kinds = frozenset({ControlKind.ACCORDION})


class ColumnDropStrategy(ContainerDropStrategy):
    """Column layouts receive inside drops in the column under the pointer."""

    strategy_id = "column-strategy"
    kinds = frozenset({ControlKind.COLUMN_LAYOUT})

    def inside_slot(self, element: DropTargetElement, pointer_x: float, pointer_y: float) -> int:
        count = len(element.inner_slots)
        rect = element.rect
        if count <= 1 or rect.width <= 0:
            return 0
        band = int((pointer_x - rect.left) / rect.width * count)
        return max(0, min(band, count - 1))


class StrategyRegistry:
    """Maps control kinds to strategies, falling back to a default strategy."""

    def __init__(self, default: DropStrategy | None = None) -> None:
        self._strategies: dict[str, DropStrategy] = {}
        self._by_kind: dict[ControlKind, list[str]] = {}
        self._default: DropStrategy = default or DefaultDropStrategy()
        self.register(self._default)

    @property
    def default(self) -> DropStrategy:
        return self._default

    def register(self, strategy: DropStrategy) -> None:
        """Register a strategy under its id and for each of its kinds."""
        self._strategies[strategy.strategy_id] = strategy
        for kind in strategy.applicable_kinds():
            ids = self._by_kind.setdefault(kind, [])
            if strategy.strategy_id not in ids:
                ids.append(strategy.strategy_id)

    def strategy_for(self, kind: ControlKind | None) -> DropStrategy:
        """Return the first strategy registered for ``kind``, else the default."""
        if kind is not None:
            for strategy_id in self._by_kind.get(kind, []):
                strategy = self._strategies.get(strategy_id)
                if strategy is not None:
                    return strategy
        return self._default

    def strategies(self) -> list[DropStrategy]:
        return list(self._strategies.values())


def default_registry() -> StrategyRegistry:
    """Registry with the built-in tab, accordion and column strategies."""
    registry = StrategyRegistry()
    for strategy in (TabDropStrategy(), AccordionDropStrategy(), ColumnDropStrategy()):
        registry.register(strategy)
    return registry
