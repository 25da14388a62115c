"""Tests for persistent structural updates of the control tree."""

import pytest

from questionnaire_designer.core.dragdrop.geometry import DropSide
from questionnaire_designer.core.tree.mutation import (
    add_section,
    add_tab,
    clone_subtree,
    delete_control,
    duplicate_control,
    insert_at,
    insert_into,
    move_by_id,
    normalize_control,
    normalize_tree,
    remove_by_id,
    remove_section,
    remove_tab,
    rename_slot,
    set_active_tab,
    set_column_count,
    toggle_section,
    update_control,
)
from questionnaire_designer.core.tree.navigation import (
    collect_ids,
    count_controls,
    find_by_id,
    flatten,
    get_slot,
    locate,
    require,
)
from questionnaire_designer.errors import (
    CyclicMoveError,
    DepthExceededError,
    DuplicateIdError,
    InvalidContainerNestingError,
    MalformedControlError,
    NotFoundError,
    SlotConstraintError,
)
from questionnaire_designer.models.control import (
    ROOT_SLOT,
    AccordionSlots,
    ColumnSlots,
    ConditionType,
    Control,
    ControlKind,
    ControlTree,
    Dependency,
    DependencyCondition,
    DependencyProperty,
    SlotKind,
    SlotRef,
    TabItem,
    TabSlots,
)
from tests.unit.fakes import FakeIdFactory, accordion_control, column_control, leaf, tab_control

TAB_1 = SlotRef("tabs", SlotKind.TAB, 0)
TAB_2 = SlotRef("tabs", SlotKind.TAB, 1)


def _ids(controls: tuple[Control, ...]) -> list[str]:
    return [c.id for c in controls]


def test_insert_at_clamps_index() -> None:
    a, b, c = leaf("a"), leaf("b"), leaf("c")
    assert _ids(insert_at((a, b), 10, c)) == ["a", "b", "c"]
    assert _ids(insert_at((a, b), -3, c)) == ["c", "a", "b"]
    assert _ids(insert_at((a, b), None, c)) == ["a", "b", "c"]
    assert _ids(insert_at((a, b), 1, c)) == ["a", "c", "b"]


def test_insert_into_root_shares_untouched_controls(sample_tree: ControlTree) -> None:
    new_tree = insert_into(sample_tree, ROOT_SLOT, 1, leaf("new"))
    assert _ids(new_tree) == ["name", "new", "tabs", "cols", "acc", "email"]
    assert new_tree[2] is sample_tree[1]
    assert count_controls(sample_tree) == 9


def test_insert_into_nested_slot(sample_tree: ControlTree) -> None:
    new_tree = insert_into(sample_tree, TAB_2, 0, leaf("new"))
    assert _ids(get_slot(new_tree, TAB_2)) == ["new"]
    assert new_tree[2] is sample_tree[2]
    assert get_slot(sample_tree, TAB_2) == ()


def test_insert_into_rejects_duplicate_ids(sample_tree: ControlTree) -> None:
    with pytest.raises(DuplicateIdError):
        insert_into(sample_tree, ROOT_SLOT, 0, leaf("age"))


def test_insert_into_unknown_container(sample_tree: ControlTree) -> None:
    with pytest.raises(NotFoundError):
        insert_into(sample_tree, SlotRef("missing", SlotKind.TAB, 0), 0, leaf("new"))


def test_remove_by_id_removes_subtree(sample_tree: ControlTree) -> None:
    new_tree, removed = remove_by_id(sample_tree, "tabs")
    assert removed is sample_tree[1]
    assert count_controls(new_tree) == count_controls(sample_tree) - 3
    assert find_by_id(new_tree, "age") is None


def test_remove_by_id_missing_returns_same_tree(sample_tree: ControlTree) -> None:
    new_tree, removed = remove_by_id(sample_tree, "missing")
    assert new_tree is sample_tree
    assert removed is None


def test_move_forward_in_same_slot_adjusts_index(flat_tree: ControlTree) -> None:
    assert _ids(move_by_id(flat_tree, "c2", ROOT_SLOT, 4)) == ["c0", "c1", "c3", "c2", "c4"]


def test_move_to_end_of_same_slot(flat_tree: ControlTree) -> None:
    # Dropping after the last element: the resolver reports index 5.
    assert _ids(move_by_id(flat_tree, "c2", ROOT_SLOT, 5)) == ["c0", "c1", "c3", "c4", "c2"]


def test_move_backward_in_same_slot(flat_tree: ControlTree) -> None:
    assert _ids(move_by_id(flat_tree, "c3", ROOT_SLOT, 1)) == ["c0", "c3", "c1", "c2", "c4"]


def test_move_onto_own_position_is_noop(flat_tree: ControlTree) -> None:
    assert move_by_id(flat_tree, "c2", ROOT_SLOT, 2) is flat_tree
    assert move_by_id(flat_tree, "c2", ROOT_SLOT, 3) is flat_tree


def test_move_between_slots_preserves_identity(sample_tree: ControlTree) -> None:
    new_tree = move_by_id(sample_tree, "name", TAB_2, 0)
    location = locate(new_tree, "name")
    assert location is not None
    assert location.slot == TAB_2
    assert location.control is sample_tree[0]
    assert collect_ids(new_tree) == collect_ids(sample_tree)
    assert count_controls(new_tree) == count_controls(sample_tree)


def test_move_out_of_container(sample_tree: ControlTree) -> None:
    new_tree = move_by_id(sample_tree, "city", ROOT_SLOT, 0)
    assert _ids(new_tree)[0] == "city"
    assert get_slot(new_tree, SlotRef("cols", SlotKind.COLUMN, 0)) == ()


def test_move_into_own_descendant_is_rejected(sample_tree: ControlTree) -> None:
    with pytest.raises(CyclicMoveError):
        move_by_id(sample_tree, "tabs", TAB_2, 0)
    assert locate(sample_tree, "tabs") is not None


def test_move_container_inside_is_rejected(sample_tree: ControlTree) -> None:
    with pytest.raises(InvalidContainerNestingError):
        move_by_id(sample_tree, "cols", TAB_2, 0, side=DropSide.INSIDE, target_id="tabs")


def test_move_unknown_control(sample_tree: ControlTree) -> None:
    with pytest.raises(NotFoundError):
        move_by_id(sample_tree, "missing", ROOT_SLOT, 0)


def test_clone_subtree_assigns_new_ids(sample_tree: ControlTree) -> None:
    tabs = require(sample_tree, "tabs")
    clone = clone_subtree(tabs, id_factory=FakeIdFactory("copy"))
    original_ids = {c.id for c in flatten((tabs,))}
    clone_ids = {c.id for c in flatten((clone,))}
    assert len(clone_ids) == len(original_ids)
    assert not clone_ids & original_ids
    assert [c.label for c in flatten((clone,))] == [c.label for c in flatten((tabs,))]
    assert isinstance(clone.slots, TabSlots)
    assert {t.id for t in clone.slots.tabs}.isdisjoint({"t1", "t2"})


def test_clone_subtree_repoints_internal_dependencies() -> None:
    rule = Dependency(
        id="r1",
        target_control_id="a",
        property=DependencyProperty.ENABLED,
        condition=DependencyCondition(type=ConditionType.CHECKED),
    )
    outside = Dependency(
        id="r2",
        target_control_id="elsewhere",
        property=DependencyProperty.VISIBLE,
        condition=DependencyCondition(type=ConditionType.FILLED),
    )
    group = column_control(
        "group",
        (leaf("a", ControlKind.CHECKBOX), leaf("b", dependencies=(rule, outside))),
    )
    clone = clone_subtree(group, id_factory=FakeIdFactory())
    assert isinstance(clone.slots, ColumnSlots)
    cloned_a, cloned_b = clone.slots.column_controls[0]
    assert cloned_b.dependencies[0].target_control_id == cloned_a.id
    assert cloned_b.dependencies[1].target_control_id == "elsewhere"
    assert cloned_b.dependencies[0].id != "r1"


def test_duplicate_control_inserts_after_original(sample_tree: ControlTree) -> None:
    new_tree, clone = duplicate_control(sample_tree, "age", id_factory=FakeIdFactory())
    assert _ids(get_slot(new_tree, TAB_1)) == ["agree", "age", clone.id]
    assert clone.label == "age"
    assert clone.kind is ControlKind.NUMERIC


def test_delete_control(sample_tree: ControlTree) -> None:
    new_tree = delete_control(sample_tree, "acc")
    assert find_by_id(new_tree, "notes") is None
    with pytest.raises(NotFoundError):
        delete_control(sample_tree, "missing")


def test_update_control(sample_tree: ControlTree) -> None:
    new_tree = update_control(sample_tree, "age", label="Age in years", required=True)
    age = require(new_tree, "age")
    assert age.label == "Age in years"
    assert age.required
    assert require(sample_tree, "age").label == "age"


def test_update_control_rejects_id_change(sample_tree: ControlTree) -> None:
    with pytest.raises(ValueError, match="immutable"):
        update_control(sample_tree, "age", id="other")


def test_update_control_rejects_slots_repeating_an_id(sample_tree: ControlTree) -> None:
    slots = ColumnSlots(columns=2, column_controls=((leaf("name"),), ()))
    with pytest.raises(DuplicateIdError, match="name"):
        update_control(sample_tree, "cols", slots=slots)


def test_update_control_rejects_slots_nesting_too_deep(sample_tree: ControlTree) -> None:
    nested = tab_control("inner", ("i1", ()))
    slots = ColumnSlots(columns=2, column_controls=((nested,), ()))
    with pytest.raises(DepthExceededError):
        update_control(sample_tree, "cols", slots=slots, max_depth=1)

    new_tree = update_control(sample_tree, "cols", slots=slots, max_depth=2)
    assert require(new_tree, "inner").kind is ControlKind.TAB


def test_normalize_creates_default_tab(id_factory: FakeIdFactory) -> None:
    healed = normalize_control(Control(id="t", kind=ControlKind.TAB), id_factory=id_factory)
    assert isinstance(healed.slots, TabSlots)
    assert [(t.id, t.label) for t in healed.slots.tabs] == [("id-1", "New Tab")]


def test_normalize_creates_default_section(id_factory: FakeIdFactory) -> None:
    control = Control(id="a", kind=ControlKind.ACCORDION, slots=AccordionSlots(sections=()))
    healed = normalize_control(control, id_factory=id_factory)
    assert isinstance(healed.slots, AccordionSlots)
    assert [s.label for s in healed.slots.sections] == ["New Section"]


def test_normalize_creates_default_columns() -> None:
    healed = normalize_control(Control(id="c", kind=ControlKind.COLUMN_LAYOUT))
    assert isinstance(healed.slots, ColumnSlots)
    assert healed.slots.column_controls == ((), ())


def test_normalize_grows_and_shrinks_columns() -> None:
    a, b = leaf("a"), leaf("b")
    grown = normalize_control(
        Control(
            id="c",
            kind=ControlKind.COLUMN_LAYOUT,
            slots=ColumnSlots(columns=3, column_controls=((a,),)),
        )
    )
    assert isinstance(grown.slots, ColumnSlots)
    assert grown.slots.column_controls == ((a,), (), ())

    shrunk = normalize_control(
        Control(
            id="c",
            kind=ControlKind.COLUMN_LAYOUT,
            slots=ColumnSlots(columns=1, column_controls=((a,), (b,))),
        )
    )
    assert isinstance(shrunk.slots, ColumnSlots)
    assert shrunk.slots.column_controls == ((a, b),)


def test_normalize_clamps_tab_index_and_expanded_sections() -> None:
    tabs = Control(
        id="t",
        kind=ControlKind.TAB,
        slots=TabSlots(tabs=(TabItem(id="t1", label="One"),), active_tab_index=4),
    )
    healed = normalize_control(tabs)
    assert isinstance(healed.slots, TabSlots)
    assert healed.slots.active_tab_index == 0

    acc = accordion_control("a", ("s1", ()), expanded_sections=frozenset({"s1", "gone"}))
    healed_acc = normalize_control(acc)
    assert isinstance(healed_acc.slots, AccordionSlots)
    assert healed_acc.slots.expanded_sections == frozenset({"s1"})


def test_normalize_leaves_consistent_control_untouched(sample_tree: ControlTree) -> None:
    assert normalize_control(sample_tree[1]) is sample_tree[1]
    assert normalize_control(sample_tree[0]) is sample_tree[0]


def test_normalize_rejects_wrong_slot_variant() -> None:
    bad = Control(
        id="t",
        kind=ControlKind.TAB,
        slots=ColumnSlots(columns=1, column_controls=((),)),
    )
    with pytest.raises(MalformedControlError):
        normalize_control(bad)
    with pytest.raises(MalformedControlError):
        normalize_control(
            Control(id="x", kind=ControlKind.TEXT_BOX, slots=TabSlots(tabs=()))
        )


def test_normalize_tree_heals_nested_containers(id_factory: FakeIdFactory) -> None:
    tree = (tab_control("outer", ("o1", (Control(id="inner", kind=ControlKind.ACCORDION),))),)
    healed = normalize_tree(tree, id_factory=id_factory)
    inner = require(healed, "inner")
    assert isinstance(inner.slots, AccordionSlots)
    assert len(inner.slots.sections) == 1


def test_add_and_remove_tabs(sample_tree: ControlTree, id_factory: FakeIdFactory) -> None:
    tree = add_tab(sample_tree, "tabs", id_factory=id_factory)
    slots = require(tree, "tabs").slots
    assert isinstance(slots, TabSlots)
    assert [t.label for t in slots.tabs][-1] == "Tab 3"

    tree = remove_tab(sample_tree, "tabs", "t1")
    slots = require(tree, "tabs").slots
    assert isinstance(slots, TabSlots)
    assert [t.id for t in slots.tabs] == ["t2"]
    assert find_by_id(tree, "agree") is None

    with pytest.raises(SlotConstraintError, match="at least one tab"):
        remove_tab(tree, "tabs", "t2")
    with pytest.raises(NotFoundError):
        remove_tab(sample_tree, "tabs", "t9")


def test_slot_edits_require_matching_kind(sample_tree: ControlTree) -> None:
    with pytest.raises(SlotConstraintError):
        add_tab(sample_tree, "cols")
    with pytest.raises(NotFoundError):
        add_tab(sample_tree, "missing")


def test_set_active_tab(sample_tree: ControlTree) -> None:
    tree = set_active_tab(sample_tree, "tabs", 1)
    slots = require(tree, "tabs").slots
    assert isinstance(slots, TabSlots)
    assert slots.active_tab_index == 1
    with pytest.raises(SlotConstraintError):
        set_active_tab(sample_tree, "tabs", 5)


def test_sections_are_bounded() -> None:
    tree = (accordion_control("a", ("s1", ()), max_sections=2),)
    tree = add_section(tree, "a", label="Extra")
    slots = require(tree, "a").slots
    assert isinstance(slots, AccordionSlots)
    assert [s.label for s in slots.sections] == ["s1", "Extra"]
    with pytest.raises(SlotConstraintError):
        add_section(tree, "a")


def test_remove_last_section_is_refused(sample_tree: ControlTree) -> None:
    with pytest.raises(SlotConstraintError, match="at least one section"):
        remove_section(sample_tree, "acc", "s1")


def test_remove_section_drops_expanded_id() -> None:
    tree = (accordion_control("a", ("s1", ()), ("s2", ()), expanded_sections=frozenset({"s2"})),)
    slots = require(remove_section(tree, "a", "s2"), "a").slots
    assert isinstance(slots, AccordionSlots)
    assert slots.expanded_sections == frozenset()


def test_toggle_section_single_expanded() -> None:
    tree = (accordion_control("a", ("s1", ()), ("s2", ()), expanded_sections=frozenset({"s1"})),)
    slots = require(toggle_section(tree, "a", "s2"), "a").slots
    assert isinstance(slots, AccordionSlots)
    assert slots.expanded_sections == frozenset({"s2"})

    slots = require(toggle_section(tree, "a", "s1"), "a").slots
    assert isinstance(slots, AccordionSlots)
    assert slots.expanded_sections == frozenset()


def test_toggle_section_multiple_expanded() -> None:
    tree = (
        accordion_control(
            "a",
            ("s1", ()),
            ("s2", ()),
            expanded_sections=frozenset({"s1"}),
            allow_multiple_expanded=True,
        ),
    )
    slots = require(toggle_section(tree, "a", "s2"), "a").slots
    assert isinstance(slots, AccordionSlots)
    assert slots.expanded_sections == frozenset({"s1", "s2"})


def test_rename_slot(sample_tree: ControlTree) -> None:
    tree = rename_slot(sample_tree, TAB_2, "Employment")
    slots = require(tree, "tabs").slots
    assert isinstance(slots, TabSlots)
    assert slots.tabs[1].label == "Employment"

    tree = rename_slot(sample_tree, SlotRef("acc", SlotKind.SECTION, 0), "More")
    acc = require(tree, "acc").slots
    assert isinstance(acc, AccordionSlots)
    assert acc.sections[0].label == "More"

    with pytest.raises(SlotConstraintError):
        rename_slot(sample_tree, SlotRef("cols", SlotKind.COLUMN, 0), "Left")


def test_set_column_count_keeps_every_control() -> None:
    tree = (column_control("c", (leaf("a"),), (leaf("b"),), (leaf("x"),)),)
    shrunk = set_column_count(tree, "c", 1)
    slots = require(shrunk, "c").slots
    assert isinstance(slots, ColumnSlots)
    assert slots.columns == 1
    assert [_ids(col) for col in slots.column_controls] == [["a", "b", "x"]]

    grown = set_column_count(tree, "c", 4)
    slots = require(grown, "c").slots
    assert isinstance(slots, ColumnSlots)
    assert [_ids(col) for col in slots.column_controls] == [["a"], ["b"], ["x"], []]

    with pytest.raises(SlotConstraintError):
        set_column_count(tree, "c", 0)


def test_remove_tab_before_active_keeps_selection() -> None:
    tabs = tab_control("tabs", ("t1", ()), ("t2", ()), ("t3", ()), active_tab_index=1)
    slots = require(remove_tab((tabs,), "tabs", "t1"), "tabs").slots
    assert isinstance(slots, TabSlots)
    assert slots.tabs[slots.active_tab_index].id == "t2"


def test_remove_active_last_tab_selects_previous() -> None:
    tabs = tab_control("tabs", ("t1", ()), ("t2", ()), ("t3", ()), active_tab_index=2)
    slots = require(remove_tab((tabs,), "tabs", "t3"), "tabs").slots
    assert isinstance(slots, TabSlots)
    assert slots.tabs[slots.active_tab_index].id == "t2"


def test_ids_stay_unique_across_edits(
    sample_tree: ControlTree, id_factory: FakeIdFactory
) -> None:
    tab_1 = SlotRef("tabs", SlotKind.TAB, 0)
    column_2 = SlotRef("cols", SlotKind.COLUMN, 1)

    tree = insert_into(sample_tree, tab_1, 0, leaf("phone"))
    tree = move_by_id(tree, "city", column_2, 0)
    tree = move_by_id(tree, "email", tab_1, 1)
    tabs_copy = clone_subtree(require(tree, "tabs"), id_factory=id_factory)
    tree = insert_into(tree, ROOT_SLOT, 0, tabs_copy)
    tree, _ = duplicate_control(tree, "acc", id_factory=id_factory)
    tree, _ = duplicate_control(tree, "phone", id_factory=id_factory)

    ids = collect_ids(tree)
    assert len(ids) == count_controls(tree)
    assert count_controls(tree) == count_controls(sample_tree) + 1 + 5 + 2 + 1
