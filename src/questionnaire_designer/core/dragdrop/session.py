"""Drag session state machine as pure functions over an immutable value.

    idle --start_drag--> dragging --update_candidate--> dragging
    dragging --drop--> (dropping | cancelled) --> idle
    dragging --cancel--> idle

The tree is only read while dragging; ``drop`` computes the complete new
snapshot before anything is handed back, so a rejected drop leaves the
caller's tree untouched.
"""

from dataclasses import dataclass, replace
from enum import StrEnum

from loguru import logger

from questionnaire_designer.core.dragdrop.geometry import DropCandidate
from questionnaire_designer.core.tree.factory import create_control, new_id
from questionnaire_designer.core.tree.mutation import insert_into, move_by_id
from questionnaire_designer.core.tree.navigation import locate
from questionnaire_designer.core.tree.validator import check_move
from questionnaire_designer.errors import DragStateError, NotFoundError, TreeError
from questionnaire_designer.models.control import ControlKind, ControlTree, SlotRef
from questionnaire_designer.protocols import IdFactory


class DragState(StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPING = "dropping"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DragPayload:
    """What the pointer carries: an existing control, or a palette item when ``is_new``."""

    id: str
    kind: ControlKind
    is_new: bool = False


@dataclass(frozen=True)
class DragSession:
    state: DragState = DragState.IDLE
    dragged_id: str | None = None
    dragged_kind: ControlKind | None = None
    is_new_from_palette: bool = False
    source_slot: SlotRef | None = None
    source_index: int | None = None
    candidate: DropCandidate | None = None

    @property
    def is_active(self) -> bool:
        return self.state is DragState.DRAGGING


IDLE_SESSION = DragSession()


@dataclass(frozen=True)
class DropOutcome:
    """Result of ``drop``.

    ``result`` is DROPPING when the drop went through (even as a no-op) and
    CANCELLED when there was no candidate or the move was rejected, in which
    case ``error`` says why and ``tree`` is the unchanged input.
    """

    session: DragSession
    tree: ControlTree
    result: DragState
    control_id: str | None = None
    error: TreeError | None = None

    @property
    def applied(self) -> bool:
        return self.result is DragState.DROPPING


def start_drag(
    session: DragSession, payload: DragPayload, tree: ControlTree = ()
) -> DragSession:
    """Begin dragging. A still-active session is cancelled first."""
    if session.is_active:
        logger.warning("Drag of {} still active, cancelling it", session.dragged_id)
        session = cancel(session)

    source_slot: SlotRef | None = None
    source_index: int | None = None
    if not payload.is_new:
        location = locate(tree, payload.id)
        if location is None:
            msg = f"Dragged control {payload.id!r} not found"
            raise NotFoundError(msg)
        source_slot, source_index = location.slot, location.index

    logger.debug("Drag started: {} {} (new={})", payload.kind.value, payload.id, payload.is_new)
    return DragSession(
        state=DragState.DRAGGING,
        dragged_id=payload.id,
        dragged_kind=payload.kind,
        is_new_from_palette=payload.is_new,
        source_slot=source_slot,
        source_index=source_index,
    )


def update_candidate(session: DragSession, candidate: DropCandidate | None) -> DragSession:
    """Record the latest resolver output; the tree is not touched."""
    if not session.is_active:
        msg = f"Cannot update drop candidate in state {session.state.value!r}"
        raise DragStateError(msg)
    return replace(session, candidate=candidate)


def cancel(session: DragSession) -> DragSession:
    """Discard the drag. Always returns the idle session."""
    if session.is_active:
        logger.debug("Drag of {} cancelled", session.dragged_id)
    return IDLE_SESSION


def drop(
    session: DragSession,
    tree: ControlTree,
    *,
    id_factory: IdFactory = new_id,
    max_depth: int | None = None,
) -> DropOutcome:
    """Validate and apply the current candidate.

    Palette items become new controls with fresh ids; existing controls are
    moved with their identity preserved. Validation failures behave like a
    cancel and are reported in the outcome instead of raised.
    """
    if not session.is_active:
        msg = f"Cannot drop in state {session.state.value!r}"
        raise DragStateError(msg)

    candidate = session.candidate
    if candidate is None or session.dragged_id is None or session.dragged_kind is None:
        logger.debug("Drop without a candidate, cancelling")
        return DropOutcome(session=cancel(session), tree=tree, result=DragState.CANCELLED)

    try:
        if session.is_new_from_palette:
            control = create_control(session.dragged_kind, id_factory=id_factory)
            check_move(
                tree,
                control,
                candidate.slot,
                side=candidate.side,
                target_id=candidate.target_id,
                max_depth=max_depth,
            )
            new_tree = insert_into(tree, candidate.slot, candidate.index, control)
            control_id = control.id
        else:
            new_tree = move_by_id(
                tree,
                session.dragged_id,
                candidate.slot,
                candidate.index,
                side=candidate.side,
                target_id=candidate.target_id,
                max_depth=max_depth,
            )
            control_id = session.dragged_id
    except TreeError as e:
        logger.warning("Drop of {} rejected: {}", session.dragged_id, e)
        return DropOutcome(session=IDLE_SESSION, tree=tree, result=DragState.CANCELLED, error=e)

    logger.debug("Dropped {} into {}[{}]", control_id, candidate.slot, candidate.index)
    return DropOutcome(
        session=IDLE_SESSION, tree=new_tree, result=DragState.DROPPING, control_id=control_id
    )
