"""Unit tests for the undo/redo command log."""

import pytest

from element_cloner.canvas.history import (
    Add,
    BatchDelete,
    CommandLog,
    Delete,
    Move,
    Resize,
    delete_of,
)
from element_cloner.exceptions import CommandError
from element_cloner.snapshot.markers import MarkerOverlay
from element_cloner.snapshot.nodes import FragmentNode
from element_cloner.utils.constants import MARKER_RESIZABLE

from conftest import fragment


class TestCommandLog:
    """Test apply/undo/redo over a small tree."""

    def setup_method(self):
        self.changes = 0
        self.markers = MarkerOverlay()
        self.log = CommandLog(self.markers, on_change=self._count)

        self.root = FragmentNode(tag='div')
        self.a = self.root.append(fragment(left=0))
        self.b = self.root.append(fragment(left=10))
        self.c = self.root.append(fragment(left=20))
        self.d = self.root.append(fragment(left=30))

    def _count(self):
        self.changes += 1

    def test_undo_inverts_delete(self):
        self.log.apply(delete_of(self.b))
        assert self.root.children == [self.a, self.c, self.d]

        self.log.undo()
        assert self.root.children == [self.a, self.b, self.c, self.d]

        self.log.redo()
        assert self.root.children == [self.a, self.c, self.d]
        assert self.changes == 3

    def test_new_edit_discards_redo(self):
        self.log.apply(delete_of(self.b))
        self.log.undo()
        assert self.log.can_redo

        self.log.apply(delete_of(self.c))
        assert not self.log.can_redo
        assert self.log.redo() is None

    def test_batch_delete_restores_order(self):
        command = BatchDelete([delete_of(self.b), delete_of(self.c)])
        self.log.apply(command)
        assert self.root.children == [self.a, self.d]

        self.log.undo()
        assert self.root.children == [self.a, self.b, self.c, self.d]

        self.log.redo()
        assert self.root.children == [self.a, self.d]

    def test_batch_delete_of_trailing_siblings(self):
        self.log.apply(BatchDelete([delete_of(self.c), delete_of(self.d)]))
        self.log.undo()
        assert self.root.children == [self.a, self.b, self.c, self.d]

    def test_move_round_trip(self):
        old = self.a.placement()
        self.log.apply(Move(
            element=self.a,
            old_parent=self.root,
            old_next_sibling=self.b,
            old_placement=old,
            new_parent=self.c,
            new_placement=('5px', '6px', 'absolute'),
        ))

        assert self.a.parent is self.c
        assert self.a.placement() == ('5px', '6px', 'absolute')

        self.log.undo()
        assert self.root.children == [self.a, self.b, self.c, self.d]
        assert self.a.placement() == old

    def test_move_restores_missing_placement(self):
        bare = self.root.append(FragmentNode(tag='span'))
        self.log.apply(Move(bare, self.root, None, bare.placement(), self.root, ('1px', '2px', 'absolute')))
        self.log.undo()
        assert 'top' not in bare.style
        assert 'position' not in bare.style

    def test_resize_toggles_marker(self):
        self.log.apply(Resize(self.a, was_resizable=False))
        assert self.markers.has(self.a.uid, MARKER_RESIZABLE)

        self.log.undo()
        assert not self.markers.has(self.a.uid, MARKER_RESIZABLE)

    def test_resize_undo_keeps_earlier_flag(self):
        self.markers.add(self.a.uid, MARKER_RESIZABLE)
        self.log.apply(Resize(self.a, was_resizable=True))
        self.log.undo()
        assert self.markers.has(self.a.uid, MARKER_RESIZABLE)

    def test_add_round_trip(self):
        extra = fragment()
        self.log.apply(Add(extra, self.root, self.a))
        assert self.root.children[0] is extra

        self.log.undo()
        assert extra.parent is None
        self.log.redo()
        assert self.root.children[0] is extra

    def test_empty_stacks_are_noops(self):
        assert self.log.undo() is None
        assert self.log.redo() is None
        assert self.changes == 0

    def test_unknown_command_raises(self):
        with pytest.raises(CommandError):
            self.log.apply(object())
        assert not self.log.can_undo

    def test_delete_of_detached_raises(self):
        with pytest.raises(CommandError):
            delete_of(fragment())

    def test_clear(self):
        self.log.apply(Delete(self.a, self.root, self.b))
        self.log.clear()
        assert not self.log.can_undo
        assert not self.log.can_redo


class TestInverseLaw:
    """Applying, undoing all, then redoing all reproduces the edited tree."""

    def shape(self, node):
        return (node.uid, node.placement(), [self.shape(c) for c in node.element_children])

    def test_mixed_sequence(self):
        markers = MarkerOverlay()
        log = CommandLog(markers)
        root = FragmentNode(tag='div')
        a, b, c = (root.append(fragment(left=i * 10)) for i in range(3))
        extra = fragment()
        initial = self.shape(root)

        log.apply(Add(extra, root, a))
        log.apply(Move(b, root, c, b.placement(), a, ('1px', '1px', 'absolute')))
        log.apply(Resize(c, was_resizable=False))
        log.apply(BatchDelete([delete_of(extra), delete_of(c)]))
        edited = self.shape(root)

        while log.undo():
            pass
        assert self.shape(root) == initial
        assert not markers.has(c.uid, MARKER_RESIZABLE)

        while log.redo():
            pass
        assert self.shape(root) == edited
        assert markers.has(c.uid, MARKER_RESIZABLE)
