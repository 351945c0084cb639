"""
Undo/redo command log for canvas edits.

Each command type carries exactly the state needed to apply and invert
it. History is linear: a new edit discards the redo stack.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union

from ..exceptions import CommandError
from ..snapshot.markers import MarkerOverlay
from ..snapshot.nodes import FragmentNode
from ..utils.constants import MARKER_RESIZABLE


Placement = Tuple[Optional[str], Optional[str], Optional[str]]


@dataclass(eq=False)
class Delete:
    element: FragmentNode
    parent: FragmentNode
    next_sibling: Optional[FragmentNode] = None


@dataclass(eq=False)
class BatchDelete:
    """Several deletions undone and redone as one step."""
    deletions: List[Delete] = field(default_factory=list)


@dataclass(eq=False)
class Move:
    element: FragmentNode
    old_parent: FragmentNode
    old_next_sibling: Optional[FragmentNode]
    old_placement: Placement
    new_parent: FragmentNode
    new_placement: Placement
    new_next_sibling: Optional[FragmentNode] = None


@dataclass(eq=False)
class Resize:
    element: FragmentNode
    was_resizable: bool


@dataclass(eq=False)
class Add:
    element: FragmentNode
    parent: FragmentNode
    next_sibling: Optional[FragmentNode] = None


Command = Union[Delete, BatchDelete, Move, Resize, Add]


def delete_of(element: FragmentNode) -> Delete:
    """Build a Delete anchored at the element's current position."""
    if element.parent is None:
        raise CommandError("Element is not attached")
    return Delete(element, element.parent, element.next_sibling)


class CommandLog:
    """
    Undo and redo stacks over a fragment composition.
    """

    def __init__(self, markers: MarkerOverlay, on_change: Optional[Callable[[], None]] = None):
        """
        Initialize the log.

        Args:
            markers: Overlay holding the resizable flag of fragments
            on_change: Called after every apply, undo, redo, and clear
        """
        self.markers = markers
        self.on_change = on_change
        self.undo_stack: List[Command] = []
        self.redo_stack: List[Command] = []

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def apply(self, command: Command) -> Command:
        """Perform a new edit and record it."""
        self._forward(command)
        self.undo_stack.append(command)
        self.redo_stack = []
        self._changed()
        return command

    def undo(self) -> Optional[Command]:
        if not self.undo_stack:
            return None
        command = self.undo_stack.pop()
        self._inverse(command)
        self.redo_stack.append(command)
        self._changed()
        return command

    def redo(self) -> Optional[Command]:
        if not self.redo_stack:
            return None
        command = self.redo_stack.pop()
        self._forward(command)
        self.undo_stack.append(command)
        self._changed()
        return command

    def clear(self) -> None:
        self.undo_stack = []
        self.redo_stack = []
        self._changed()

    def _forward(self, command: Command) -> None:
        if isinstance(command, Delete):
            command.element.detach()
        elif isinstance(command, BatchDelete):
            for deletion in command.deletions:
                deletion.element.detach()
        elif isinstance(command, Move):
            command.new_parent.insert_before(command.element, command.new_next_sibling)
            command.element.set_placement(command.new_placement)
        elif isinstance(command, Resize):
            self.markers.add(command.element.uid, MARKER_RESIZABLE)
        elif isinstance(command, Add):
            command.parent.insert_before(command.element, command.next_sibling)
        else:
            raise CommandError(f"Unknown command: {command!r}")

    def _inverse(self, command: Command) -> None:
        if isinstance(command, Delete):
            command.parent.insert_before(command.element, command.next_sibling)
        elif isinstance(command, BatchDelete):
            # Later siblings first, so every anchor is back in place when needed
            for deletion in reversed(command.deletions):
                deletion.parent.insert_before(deletion.element, deletion.next_sibling)
        elif isinstance(command, Move):
            command.old_parent.insert_before(command.element, command.old_next_sibling)
            command.element.set_placement(command.old_placement)
        elif isinstance(command, Resize):
            if not command.was_resizable:
                self.markers.remove(command.element.uid, MARKER_RESIZABLE)
        elif isinstance(command, Add):
            command.element.detach()
        else:
            raise CommandError(f"Unknown command: {command!r}")
