"""Tests for the designer controller."""

import pytest

from questionnaire_designer.core.dragdrop.geometry import (
    DropSide,
    DropTargetElement,
    Rect,
)
from questionnaire_designer.core.dragdrop.session import DragPayload, DragState
from questionnaire_designer.core.tree.navigation import count_controls, find_by_id, get_slot
from questionnaire_designer.designer import DesignerController
from questionnaire_designer.errors import DragStateError, DuplicateIdError
from questionnaire_designer.models.control import (
    ROOT_SLOT,
    ColumnSlots,
    Control,
    ControlKind,
    ControlTree,
    SlotKind,
    SlotRef,
    TabSlots,
)
from tests.unit.fakes import FakeIdFactory, column_control, leaf

TAB_1 = SlotRef("tabs", SlotKind.TAB, 0)
TABS_ELEMENT = DropTargetElement(
    rect=Rect(top=0, left=0, width=400, height=300),
    slot=ROOT_SLOT,
    index=1,
    control_id="tabs",
    kind=ControlKind.TAB,
    inner_slots=(TAB_1, SlotRef("tabs", SlotKind.TAB, 1)),
    inner_slot_lengths=(2, 0),
)


@pytest.fixture
def designer(sample_tree: ControlTree) -> DesignerController:
    return DesignerController(sample_tree, id_factory=FakeIdFactory(), max_depth=5)


def test_drag_from_palette_into_tab(designer: DesignerController) -> None:
    preview = designer.start_drag(DragPayload("palette", ControlKind.TEXT_BOX, is_new=True))
    assert preview.subtitle == "textBox"

    candidate = designer.drag_over(200, 150, [TABS_ELEMENT])
    assert candidate is not None
    assert candidate.side is DropSide.INSIDE
    assert designer.session.candidate == candidate

    outcome = designer.drop()
    assert outcome.applied
    assert designer.tree is outcome.tree
    assert designer.session.state is DragState.IDLE
    assert [c.id for c in get_slot(designer.tree, TAB_1)] == ["agree", "age", "id-1"]


def test_preview_uses_control_label(designer: DesignerController) -> None:
    preview = designer.start_drag(DragPayload("tabs", ControlKind.TAB))
    assert preview.title == "tabs"
    assert preview.offset == 20


def test_rejected_drop_keeps_tree(designer: DesignerController) -> None:
    before = designer.tree
    designer.start_drag(DragPayload("palette", ControlKind.ACCORDION, is_new=True))
    candidate = designer.drag_over(200, 150, [TABS_ELEMENT])
    assert candidate is not None
    assert not candidate.accepted

    outcome = designer.drop()
    assert outcome.result is DragState.CANCELLED
    assert outcome.error is not None
    assert designer.tree is before


def test_drag_over_without_drag_raises(designer: DesignerController) -> None:
    with pytest.raises(DragStateError):
        designer.drag_over(10, 10, [TABS_ELEMENT])


def test_cancel(designer: DesignerController) -> None:
    designer.start_drag(DragPayload("name", ControlKind.TEXT_BOX))
    designer.cancel()
    assert designer.session.state is DragState.IDLE


def test_add_control_appends_to_root(designer: DesignerController) -> None:
    result = designer.add_control(ControlKind.CHECKBOX)
    assert result == {"success": True, "control_id": "id-1"}
    assert designer.tree[-1].id == "id-1"
    assert designer.tree[-1].label == "New checkbox"


def test_add_container_inside_tab(designer: DesignerController) -> None:
    result = designer.add_control(ControlKind.COLUMN_LAYOUT, slot=TAB_1, index=0)
    assert result["success"] is True
    assert get_slot(designer.tree, TAB_1)[0].kind is ControlKind.COLUMN_LAYOUT


def test_failed_edits_report_errors(designer: DesignerController) -> None:
    before = designer.tree

    result = designer.delete_control("missing")
    assert result["success"] is False
    assert "missing" in result["error"]

    result = designer.remove_section("acc", "s1")
    assert result["success"] is False
    assert "at least one section" in result["error"]

    assert designer.update_control("name") == {"success": False, "error": "No fields to update."}
    assert designer.tree is before


def test_duplicate_and_delete(designer: DesignerController) -> None:
    result = designer.duplicate_control("name")
    assert result["success"] is True
    clone_id = result["control_id"]
    assert [c.id for c in designer.tree][:2] == ["name", clone_id]

    assert designer.delete_control(clone_id)["success"] is True
    assert find_by_id(designer.tree, clone_id) is None


def test_update_control(designer: DesignerController) -> None:
    result = designer.update_control("email", label="E-mail", required=True)
    assert result == {"success": True, "control_id": "email"}
    email = find_by_id(designer.tree, "email")
    assert email is not None
    assert email.required


def test_update_control_cannot_duplicate_ids() -> None:
    designer = DesignerController((leaf("name"), column_control("cols", (), ())), max_depth=5)
    before = designer.tree

    slots = ColumnSlots(columns=2, column_controls=((leaf("name"),), ()))
    result = designer.update_control("cols", slots=slots)

    assert result["success"] is False
    assert "name" in result["error"]
    assert designer.tree is before
    assert count_controls(designer.tree) == 2


def test_move_control_appends_by_default(designer: DesignerController) -> None:
    assert designer.move_control("name", TAB_1)["success"] is True
    assert [c.id for c in get_slot(designer.tree, TAB_1)] == ["agree", "age", "name"]

    result = designer.move_control("tabs", TAB_1)
    assert result["success"] is False


def test_slot_editing(designer: DesignerController) -> None:
    assert designer.add_tab("tabs", "Extra")["success"] is True
    assert designer.set_active_tab("tabs", 2)["success"] is True
    assert designer.rename_slot(TAB_1, "Personal")["success"] is True
    slots = find_by_id(designer.tree, "tabs").slots  # type: ignore[union-attr]
    assert isinstance(slots, TabSlots)
    assert [t.label for t in slots.tabs] == ["Personal", "t2", "Extra"]
    assert slots.active_tab_index == 2

    assert designer.add_section("acc")["success"] is True
    assert designer.toggle_section("acc", "s1")["success"] is True
    assert designer.set_column_count("cols", 3)["success"] is True
    assert designer.remove_tab("tabs", "t2")["success"] is True
    assert count_controls(designer.tree) == 9


def test_evaluate(designer: DesignerController) -> None:
    assert designer.evaluate({"agree": True})["notes"].visible is True
    assert designer.evaluate({})["notes"].visible is False


def test_json_round_trip(designer: DesignerController) -> None:
    copy = DesignerController.from_json(designer.to_json(), max_depth=5)
    assert copy.tree == designer.tree


def test_constructor_heals_and_validates() -> None:
    tree = (Control(id="t", kind=ControlKind.TAB),)
    designer = DesignerController(tree, id_factory=FakeIdFactory())
    slots = designer.tree[0].slots
    assert isinstance(slots, TabSlots)
    assert slots.tabs[0].label == "New Tab"

    with pytest.raises(DuplicateIdError):
        DesignerController((leaf("a"), leaf("a")))
