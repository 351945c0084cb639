"""
Tree models for live page snapshots and frozen fragments.

VisualNode is the read-only view of a live element handed over by the host.
FragmentNode is the mutable, style-frozen copy owned by a composition.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag, Comment

from ..utils.geometry import Rect


TEXT_TAG = "#text"


@dataclass(eq=False)
class VisualNode:
    """
    A node of the host's live content tree, as seen at snapshot time.

    Identity is the host-assigned ``node_id``; two snapshots of the same
    live element share it.
    """
    node_id: str
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["VisualNode"] = field(default_factory=list)
    style: Dict[str, str] = field(default_factory=dict)
    pseudo: Dict[str, Dict[str, str]] = field(default_factory=dict)
    rect: Rect = field(default_factory=Rect)
    text: Optional[str] = None
    current_src: Optional[str] = None
    ancestor_ids: Tuple[str, ...] = ()
    parent: Optional["VisualNode"] = field(default=None, repr=False)

    def __post_init__(self):
        self.tag = self.tag.lower()
        for child in self.children:
            child.parent = self

    @property
    def is_text(self) -> bool:
        return self.tag == TEXT_TAG

    @property
    def element_children(self) -> List["VisualNode"]:
        return [c for c in self.children if not c.is_text]

    @property
    def id(self) -> str:
        return self.attributes.get('id', '')

    @property
    def class_list(self) -> List[str]:
        return self.attributes.get('class', '').split()

    @property
    def text_content(self) -> str:
        """Rendered text of the node (``innerText`` when the host supplied it)."""
        if self.text is not None:
            return self.text
        return ''.join(c.text_content for c in self.children)

    def iter_elements(self) -> Iterator["VisualNode"]:
        """Depth-first walk over this node and its element descendants."""
        if self.is_text:
            return
        yield self
        for child in self.children:
            yield from child.iter_elements()

    def ancestry(self) -> Iterator[str]:
        """Ids of every ancestor, nearest first, including those above the snapshot root."""
        node = self.parent
        root = self
        while node is not None:
            yield node.node_id
            root = node
            node = node.parent
        yield from root.ancestor_ids

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisualNode":
        """
        Build a snapshot tree from the host's serialized form.

        Args:
            data: Dictionary produced by the in-page snapshot script

        Returns:
            Root VisualNode
        """
        if data.get('tag') == TEXT_TAG:
            return cls(node_id=data.get('id', ''), tag=TEXT_TAG, text=data.get('text', ''))

        rect = data.get('rect') or {}
        return cls(
            node_id=str(data['id']),
            tag=data['tag'],
            attributes=dict(data.get('attributes') or {}),
            children=[cls.from_dict(c) for c in data.get('children') or []],
            style=dict(data.get('style') or {}),
            pseudo={k: dict(v) for k, v in (data.get('pseudo') or {}).items()},
            rect=Rect(
                rect.get('left', 0.0),
                rect.get('top', 0.0),
                rect.get('width', 0.0),
                rect.get('height', 0.0),
            ),
            text=data.get('text'),
            current_src=data.get('currentSrc') or None,
            ancestor_ids=tuple(str(a) for a in data.get('ancestors') or ()),
        )


_uid_counter = itertools.count(1)


def _next_uid() -> str:
    return f"f{next(_uid_counter)}"


def parse_style(text: Optional[str]) -> Dict[str, str]:
    """
    Parse an inline style attribute into an ordered mapping.

    Semicolons inside quotes or parentheses (``url("data:...;base64,...")``)
    do not split declarations.
    """
    result: Dict[str, str] = {}
    if not text:
        return result

    declarations = []
    depth = 0
    quote = None
    current = []
    for ch in text:
        if quote:
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth = max(0, depth - 1)
        elif ch == ';' and depth == 0:
            declarations.append(''.join(current))
            current = []
            continue
        current.append(ch)
    declarations.append(''.join(current))

    for decl in declarations:
        if ':' not in decl:
            continue
        name, value = decl.split(':', 1)
        name = name.strip().lower()
        value = value.strip()
        if name and value:
            result[name] = value
    return result


def format_style(style: Dict[str, str]) -> str:
    """Serialize a style mapping back into an inline style attribute."""
    return '; '.join(f"{name}: {value}" for name, value in style.items())


def parse_px(value: Optional[str]) -> Optional[float]:
    """Parse a ``12.5px`` length; other units yield None."""
    if not value:
        return None
    value = value.strip()
    if value.endswith('px'):
        value = value[:-2]
    try:
        return float(value)
    except ValueError:
        return None


def px(value: float) -> str:
    """Format a number as a CSS pixel length."""
    if float(value).is_integer():
        return f"{int(value)}px"
    return f"{value:g}px"


@dataclass(eq=False)
class FragmentNode:
    """
    A style-frozen, self-contained copy of a snapshot subtree.

    Fragments compare by identity, so they can live in selection sets and
    be referenced by undo commands.
    """
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    style: Dict[str, str] = field(default_factory=dict)
    children: List["FragmentNode"] = field(default_factory=list)
    text: str = ""
    source_id: Optional[str] = None
    natural_size: Tuple[float, float] = (0.0, 0.0)
    uid: str = field(default_factory=_next_uid)
    parent: Optional["FragmentNode"] = field(default=None, repr=False)

    def __post_init__(self):
        for child in self.children:
            child.parent = self

    @classmethod
    def text_node(cls, text: str) -> "FragmentNode":
        return cls(tag=TEXT_TAG, text=text)

    @property
    def is_text(self) -> bool:
        return self.tag == TEXT_TAG

    @property
    def element_children(self) -> List["FragmentNode"]:
        return [c for c in self.children if not c.is_text]

    @property
    def next_sibling(self) -> Optional["FragmentNode"]:
        if self.parent is None:
            return None
        siblings = self.parent.children
        index = siblings.index(self)
        if index + 1 < len(siblings):
            return siblings[index + 1]
        return None

    def class_list(self) -> List[str]:
        return self.attributes.get('class', '').split()

    def iter_elements(self) -> Iterator["FragmentNode"]:
        if self.is_text:
            return
        yield self
        for child in list(self.children):
            yield from child.iter_elements()

    def contains(self, other: "FragmentNode") -> bool:
        """True when ``other`` is this node or one of its descendants."""
        node = other
        while node is not None:
            if node is self:
                return True
            node = node.parent
        return False

    # --- tree edits ---------------------------------------------------------

    def append(self, child: "FragmentNode") -> "FragmentNode":
        child.detach()
        child.parent = self
        self.children.append(child)
        return child

    def prepend(self, child: "FragmentNode") -> "FragmentNode":
        child.detach()
        child.parent = self
        self.children.insert(0, child)
        return child

    def insert_before(self, child: "FragmentNode", reference: Optional["FragmentNode"]) -> "FragmentNode":
        """Insert ``child`` before ``reference``; append when the reference is gone."""
        child.detach()
        if reference is None or reference.parent is not self:
            return self.append(child)
        child.parent = self
        self.children.insert(self.children.index(reference), child)
        return child

    def detach(self) -> None:
        """Remove this node from its parent, if any."""
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    # --- geometry -----------------------------------------------------------

    def offset_rect(self) -> Rect:
        """
        Position and size relative to the parent.

        Position comes from the inline left/top; size from the inline
        width/height, falling back to the size measured at freeze time.
        """
        left = parse_px(self.style.get('left')) or 0.0
        top = parse_px(self.style.get('top')) or 0.0
        width = parse_px(self.style.get('width'))
        height = parse_px(self.style.get('height'))
        if width is None:
            width = self.natural_size[0]
        if height is None:
            height = self.natural_size[1]
        return Rect(left, top, width, height)

    def placement(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        """The (top, left, position) style triple used by move commands."""
        return (self.style.get('top'), self.style.get('left'), self.style.get('position'))

    def set_placement(self, placement: Tuple[Optional[str], Optional[str], Optional[str]]) -> None:
        for name, value in zip(('top', 'left', 'position'), placement):
            if value is None:
                self.style.pop(name, None)
            else:
                self.style[name] = value

    def place_at(self, left: float, top: float) -> None:
        """Absolutely position the node at a point of its parent's space."""
        self.style['position'] = 'absolute'
        self.style['left'] = px(left)
        self.style['top'] = px(top)

    # --- serialization ------------------------------------------------------

    def to_soup(self, soup: BeautifulSoup, skip: Collection["FragmentNode"] = ()):
        """Convert to a BeautifulSoup node owned by ``soup``, leaving out any node in ``skip``."""
        if self.is_text:
            return NavigableString(self.text)
        attrs = dict(self.attributes)
        if self.style:
            attrs['style'] = format_style(self.style)
        tag = soup.new_tag(self.tag, attrs=attrs)
        for child in self.children:
            if child not in skip:
                tag.append(child.to_soup(soup, skip))
        return tag

    def to_html(self) -> str:
        soup = BeautifulSoup('', 'html.parser')
        return str(self.to_soup(soup))

    @classmethod
    def from_tag(cls, tag) -> Optional["FragmentNode"]:
        """Convert a BeautifulSoup node; comments and other markup yield None."""
        if isinstance(tag, Comment):
            return None
        if isinstance(tag, NavigableString):
            return cls.text_node(str(tag))
        if not isinstance(tag, Tag):
            return None

        attributes = {}
        style: Dict[str, str] = {}
        for name, value in tag.attrs.items():
            if isinstance(value, list):
                value = ' '.join(value)
            if name == 'style':
                style = parse_style(value)
            else:
                attributes[name] = value

        children = []
        for child in tag.children:
            converted = cls.from_tag(child)
            if converted is not None:
                children.append(converted)
        return cls(tag=tag.name, attributes=attributes, style=style, children=children)

    @classmethod
    def from_html(cls, html: str) -> Optional["FragmentNode"]:
        """Parse the first element of an HTML snippet."""
        soup = BeautifulSoup(html, 'html.parser')
        first = soup.find(True)
        if first is None:
            return None
        return cls.from_tag(first)
