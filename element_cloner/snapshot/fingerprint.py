"""
Content fingerprints used to de-duplicate captured nodes.

The fingerprint is a djb2-style xor hash over a composite of the node's
text prefix, id, classes, attributes and child tags. It is not
cryptographic: collisions are possible and accepted.
"""

from typing import List

from .nodes import VisualNode
from ..utils.constants import FINGERPRINT_TEXT_PREFIX, MARKER_CLASSES


def _utf16_units(text: str) -> List[int]:
    data = text.encode('utf-16-le', errors='surrogatepass')
    return [data[i] | (data[i + 1] << 8) for i in range(0, len(data), 2)]


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def hash_units(units: List[int]) -> str:
    """
    Hash a sequence of UTF-16 code units.

    Every step is ``h = int32(h * 33) ^ unit`` starting from 5381; the
    result is written in base 16 with a leading ``-`` when negative.
    """
    h = 5381
    for unit in units:
        h = _to_int32(h * 33) ^ unit
    return format(h, 'x')


def hash_string(raw: str) -> str:
    return hash_units(_utf16_units(raw))


def fingerprint_source(node: VisualNode) -> List[int]:
    """The composite string a fingerprint is computed over, as UTF-16 units."""
    text_units = _utf16_units(node.text_content or '')[:FINGERPRINT_TEXT_PREFIX]

    classes = [c for c in dict.fromkeys(node.class_list) if c not in MARKER_CLASSES]
    attrs = '|'.join(f"{name}:{value}" for name, value in node.attributes.items())
    structure = '-'.join(child.tag.upper() for child in node.element_children)

    rest = f"_{node.id}_{'.'.join(classes)}_{attrs}_{structure}"
    return text_units + _utf16_units(rest)


def fingerprint(node: VisualNode) -> str:
    """
    Compute the dedup fingerprint of a live node.

    Args:
        node: Snapshot of the node

    Returns:
        Hex fingerprint string
    """
    return hash_units(fingerprint_source(node))
