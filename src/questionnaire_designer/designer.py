"""Designer controller: owns the current tree snapshot and the drag session."""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from loguru import logger

from questionnaire_designer.config import resolve_max_depth
from questionnaire_designer.core.dragdrop import session as drag
from questionnaire_designer.core.dragdrop.geometry import (
    DragPreview,
    DropCandidate,
    DropTargetElement,
)
from questionnaire_designer.core.dragdrop.resolver import DropResolver
from questionnaire_designer.core.dragdrop.session import (
    IDLE_SESSION,
    DragPayload,
    DragSession,
    DropOutcome,
)
from questionnaire_designer.core.importer.json_codec import dumps, loads
from questionnaire_designer.core.logic.dependencies import evaluate
from questionnaire_designer.core.tree import mutation
from questionnaire_designer.core.tree.factory import create_control, new_id
from questionnaire_designer.core.tree.navigation import find_by_id, get_slot
from questionnaire_designer.core.tree.validator import check_move, validate_tree
from questionnaire_designer.errors import TreeError
from questionnaire_designer.models.control import (
    ROOT_SLOT,
    ComputedState,
    ControlKind,
    ControlTree,
    SlotRef,
)
from questionnaire_designer.protocols import IdFactory


class DesignerController:
    """Single owner of the designer state.

    UI events go in through ``start_drag``/``drag_over``/``drop``/``cancel``
    and the editing methods. Each successful change replaces ``tree`` with a
    new snapshot; failures leave it untouched. Editing methods report
    failures in their result dict instead of raising.
    """

    def __init__(
        self,
        tree: ControlTree = (),
        *,
        resolver: DropResolver | None = None,
        id_factory: IdFactory = new_id,
        max_depth: int | None = None,
    ) -> None:
        self.max_depth = max_depth if max_depth is not None else resolve_max_depth()
        self.id_factory = id_factory
        self.resolver = resolver or DropResolver()
        self.tree: ControlTree = mutation.normalize_tree(tuple(tree), id_factory=id_factory)
        validate_tree(self.tree, max_depth=self.max_depth)
        self.session: DragSession = IDLE_SESSION

    @classmethod
    def from_json(cls, text: str, **kwargs: Any) -> "DesignerController":
        id_factory = kwargs.get("id_factory", new_id)
        return cls(loads(text, id_factory=id_factory), **kwargs)

    def to_json(self) -> str:
        return dumps(self.tree)

    # --- Drag and drop ---

    def start_drag(self, payload: DragPayload) -> DragPreview:
        """Begin a drag and return the ghost preview for it."""
        self.session = drag.start_drag(self.session, payload, self.tree)
        label = payload.kind.value
        if not payload.is_new:
            control = find_by_id(self.tree, payload.id)
            if control is not None and control.label:
                label = control.label
        strategy = self.resolver.registry.strategy_for(payload.kind)
        return strategy.create_preview(payload.kind, label)

    def drag_over(
        self, pointer_x: float, pointer_y: float, elements: Iterable[DropTargetElement]
    ) -> DropCandidate | None:
        """Resolve the pointer and remember the candidate for ``drop``."""
        candidate = self.resolver.resolve(
            pointer_x, pointer_y, elements, dragged_kind=self.session.dragged_kind
        )
        self.session = drag.update_candidate(self.session, candidate)
        return candidate

    def drop(self) -> DropOutcome:
        outcome = drag.drop(
            self.session, self.tree, id_factory=self.id_factory, max_depth=self.max_depth
        )
        self.tree = outcome.tree
        self.session = outcome.session
        return outcome

    def cancel(self) -> None:
        self.session = drag.cancel(self.session)

    # --- Logic ---

    def evaluate(self, values: Mapping[str, Any]) -> dict[str, ComputedState]:
        return evaluate(self.tree, values)

    # --- Editing ---

    def _apply(self, action: str, fn: Callable[[ControlTree], ControlTree]) -> dict[str, Any]:
        try:
            new_tree = fn(self.tree)
        except (TreeError, ValueError) as e:
            logger.warning("{} failed: {}", action, e)
            return {"success": False, "error": str(e)}
        self.tree = new_tree
        return {"success": True}

    def add_control(
        self,
        kind: ControlKind,
        *,
        slot: SlotRef = ROOT_SLOT,
        index: int | None = None,
        label: str | None = None,
    ) -> dict[str, Any]:
        """Add a palette control without dragging; appends by default."""
        control = create_control(kind, label=label, id_factory=self.id_factory)

        def insert(tree: ControlTree) -> ControlTree:
            check_move(tree, control, slot, max_depth=self.max_depth)
            return mutation.insert_into(tree, slot, index, control)

        result = self._apply("add_control", insert)
        if result["success"]:
            result["control_id"] = control.id
        return result

    def delete_control(self, control_id: str) -> dict[str, Any]:
        result = self._apply("delete_control", lambda t: mutation.delete_control(t, control_id))
        if result["success"]:
            result["control_id"] = control_id
        return result

    def duplicate_control(self, control_id: str) -> dict[str, Any]:
        clones = []

        def duplicate(tree: ControlTree) -> ControlTree:
            new_tree, clone = mutation.duplicate_control(
                tree, control_id, id_factory=self.id_factory
            )
            clones.append(clone)
            return new_tree

        result = self._apply("duplicate_control", duplicate)
        if result["success"]:
            result["control_id"] = clones[0].id
        return result

    def update_control(self, control_id: str, **changes: Any) -> dict[str, Any]:
        if not changes:
            return {"success": False, "error": "No fields to update."}

        def update(tree: ControlTree) -> ControlTree:
            return mutation.update_control(
                tree, control_id, max_depth=self.max_depth, **changes
            )

        result = self._apply("update_control", update)
        if result["success"]:
            result["control_id"] = control_id
        return result

    def move_control(
        self, control_id: str, slot: SlotRef, index: int | None = None
    ) -> dict[str, Any]:
        """Move without dragging, e.g. from keyboard shortcuts; appends by default."""

        def move(tree: ControlTree) -> ControlTree:
            target = len(get_slot(tree, slot)) if index is None else index
            return mutation.move_by_id(tree, control_id, slot, target, max_depth=self.max_depth)

        return self._apply("move_control", move)

    def add_tab(self, control_id: str, label: str | None = None) -> dict[str, Any]:
        return self._apply(
            "add_tab",
            lambda t: mutation.add_tab(t, control_id, label=label, id_factory=self.id_factory),
        )

    def remove_tab(self, control_id: str, tab_id: str) -> dict[str, Any]:
        return self._apply("remove_tab", lambda t: mutation.remove_tab(t, control_id, tab_id))

    def set_active_tab(self, control_id: str, index: int) -> dict[str, Any]:
        return self._apply(
            "set_active_tab", lambda t: mutation.set_active_tab(t, control_id, index)
        )

    def add_section(self, control_id: str, label: str | None = None) -> dict[str, Any]:
        return self._apply(
            "add_section",
            lambda t: mutation.add_section(t, control_id, label=label, id_factory=self.id_factory),
        )

    def remove_section(self, control_id: str, section_id: str) -> dict[str, Any]:
        return self._apply(
            "remove_section", lambda t: mutation.remove_section(t, control_id, section_id)
        )

    def toggle_section(self, control_id: str, section_id: str) -> dict[str, Any]:
        return self._apply(
            "toggle_section", lambda t: mutation.toggle_section(t, control_id, section_id)
        )

    def rename_slot(self, slot: SlotRef, label: str) -> dict[str, Any]:
        return self._apply("rename_slot", lambda t: mutation.rename_slot(t, slot, label))

    def set_column_count(self, control_id: str, columns: int) -> dict[str, Any]:
        return self._apply(
            "set_column_count", lambda t: mutation.set_column_count(t, control_id, columns)
        )
