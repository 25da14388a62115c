"""Exceptions raised by the control-tree engine."""


class TreeError(Exception):
    """Base class for structural errors; all of them leave the tree unchanged."""


class NotFoundError(TreeError, LookupError):
    """A control, container or slot id is absent from the tree."""


class MoveError(TreeError):
    """A proposed move or insert was rejected by the move validator."""


class CyclicMoveError(MoveError):
    """The target is the dragged control itself or one of its descendants."""


class DepthExceededError(MoveError):
    """The move would nest containers deeper than the configured maximum."""


class InvalidContainerNestingError(MoveError):
    """A container control was dropped inside another container."""


class MalformedControlError(TreeError, ValueError):
    """A control lacks the structure its kind requires and cannot be healed."""


class DuplicateIdError(TreeError, ValueError):
    """An id would appear twice in the tree."""


class SlotConstraintError(TreeError, ValueError):
    """A slot edit would break a container's slot-count constraints."""


class DragStateError(RuntimeError):
    """A drag session operation was called in the wrong state."""
