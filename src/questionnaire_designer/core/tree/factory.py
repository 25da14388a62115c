"""Create new controls the way the palette does."""

import uuid
from typing import Any

from questionnaire_designer.config import DEFAULT_COLUMN_COUNT, DEFAULT_MAX_SECTIONS
from questionnaire_designer.models.control import (
    AccordionSection,
    AccordionSlots,
    ColumnSlots,
    Control,
    ControlKind,
    ContainerSlots,
    TabItem,
    TabSlots,
)
from questionnaire_designer.protocols import IdFactory


def new_id() -> str:
    """Return a fresh opaque control id."""
    return uuid.uuid4().hex


_COUNTRY_OPTIONS = [
    {"value": "US", "label": "United States"},
    {"value": "CA", "label": "Canada"},
    {"value": "GB", "label": "United Kingdom"},
    {"value": "FR", "label": "France"},
    {"value": "DE", "label": "Germany"},
    {"value": "IT", "label": "Italy"},
    {"value": "ES", "label": "Spain"},
    {"value": "AU", "label": "Australia"},
    {"value": "JP", "label": "Japan"},
    {"value": "CN", "label": "China"},
    {"value": "IN", "label": "India"},
    {"value": "BR", "label": "Brazil"},
    {"value": "MX", "label": "Mexico"},
]


def _address_fields(id_factory: IdFactory) -> list[dict[str, Any]]:
    return [
        {
            "id": id_factory(),
            "type": ControlKind.TEXT_BOX.value,
            "label": "Address Line 1",
            "required": True,
            "validation": {
                "minLength": 5,
                "maxLength": 100,
                "message": "Address must be between 5 and 100 characters",
            },
        },
        {
            "id": id_factory(),
            "type": ControlKind.TEXT_BOX.value,
            "label": "Address Line 2",
            "required": False,
            "validation": {
                "maxLength": 100,
                "message": "Address line 2 cannot exceed 100 characters",
            },
        },
        {
            "id": id_factory(),
            "type": ControlKind.TEXT_BOX.value,
            "label": "City",
            "required": True,
            "validation": {
                "minLength": 2,
                "maxLength": 50,
                "message": "City must be between 2 and 50 characters",
            },
        },
        {
            "id": id_factory(),
            "type": ControlKind.DROPDOWN.value,
            "label": "State/Province",
            "required": True,
            "dependsOn": "country",
            "options": [],
        },
        {
            "id": id_factory(),
            "type": ControlKind.TEXT_BOX.value,
            "label": "ZIP/Postal Code",
            "required": True,
            "validation": {
                "pattern": r"^\d{5}(-\d{4})?$",
                "message": "Please enter a valid ZIP code (e.g., 12345 or 12345-6789)",
            },
        },
        {
            "id": id_factory(),
            "type": ControlKind.DROPDOWN.value,
            "label": "Country",
            "required": True,
            "defaultValue": "US",
            "options": [dict(o) for o in _COUNTRY_OPTIONS],
        },
    ]


def default_properties(kind: ControlKind, *, id_factory: IdFactory = new_id) -> dict[str, Any]:
    """Kind-specific property defaults shown by the property panels."""
    if kind is ControlKind.ADDRESS:
        return {"fields": _address_fields(id_factory)}
    if kind in (ControlKind.DROPDOWN, ControlKind.RADIO_BUTTON):
        return {"options": []}
    if kind is ControlKind.NUMERIC:
        return {"min": 0, "max": 100, "step": 1}
    if kind is ControlKind.PROTECTED_NUMBER:
        return {"totalDigits": 10, "maskChar": "*", "showLastDigits": 0, "initiallyMasked": True}
    if kind is ControlKind.TEXT_BOX:
        return {"placeholder": "", "inputType": "text", "multiline": False}
    return {}


def default_slots(kind: ControlKind, *, id_factory: IdFactory = new_id) -> ContainerSlots | None:
    """Initial slot structure for a container kind; None for leaves."""
    if kind is ControlKind.TAB:
        return TabSlots(tabs=(TabItem(id=id_factory(), label="Tab 1"),))
    if kind is ControlKind.ACCORDION:
        return AccordionSlots(
            sections=(AccordionSection(id=id_factory(), label="Section 1"),),
            max_sections=DEFAULT_MAX_SECTIONS,
        )
    if kind is ControlKind.COLUMN_LAYOUT:
        return ColumnSlots(
            columns=DEFAULT_COLUMN_COUNT,
            column_controls=tuple(() for _ in range(DEFAULT_COLUMN_COUNT)),
        )
    return None


def create_control(
    kind: ControlKind,
    *,
    label: str | None = None,
    id_factory: IdFactory = new_id,
) -> Control:
    """Build a control as dropped from the palette, with a fresh id."""
    return Control(
        id=id_factory(),
        kind=kind,
        label=label if label is not None else f"New {kind.value}",
        required=False,
        visible=True,
        enabled=True,
        properties=default_properties(kind, id_factory=id_factory),
        slots=default_slots(kind, id_factory=id_factory),
    )
