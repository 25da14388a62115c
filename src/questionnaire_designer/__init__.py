"""Headless engine for a drag-and-drop questionnaire designer."""

from questionnaire_designer.core.dragdrop.resolver import DropResolver
from questionnaire_designer.core.dragdrop.session import DragPayload, DragSession, DragState
from questionnaire_designer.designer import DesignerController
from questionnaire_designer.models.control import Control, ControlKind, SlotRef
from questionnaire_designer.protocols import DropStrategy, IdFactory

__all__ = [
    "Control",
    "ControlKind",
    "DesignerController",
    "DragPayload",
    "DragSession",
    "DragState",
    "DropResolver",
    "DropStrategy",
    "IdFactory",
    "SlotRef",
]
