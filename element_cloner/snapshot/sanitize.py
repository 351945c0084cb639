"""
Iframe sandbox normalization applied on freeze and on export.
"""

from typing import Optional

from bs4 import Tag

from .nodes import FragmentNode
from ..utils.log import get_logger


logger = get_logger("sanitize")

DEFAULT_SANDBOX = "allow-same-origin"


def sanitize_sandbox(sandbox: Optional[str]) -> str:
    """
    Compute a safe sandbox attribute value.

    A frame allowed both scripts and same-origin access can remove its own
    sandbox, so ``allow-scripts`` is dropped from that combination. A
    missing sandbox becomes ``allow-same-origin``. Anything else is kept.

    Args:
        sandbox: Current attribute value, None when absent

    Returns:
        The value to set
    """
    if sandbox is None:
        return DEFAULT_SANDBOX

    tokens = sandbox.split()
    if 'allow-scripts' in tokens and 'allow-same-origin' in tokens:
        return ' '.join(t for t in tokens if t != 'allow-scripts')
    return sandbox


def sanitize_iframe(node: FragmentNode) -> bool:
    """
    Re-sandbox a fragment iframe in place.

    Returns:
        True when the attribute was changed
    """
    if node.is_text or node.tag != 'iframe':
        return False
    current = node.attributes.get('sandbox')
    safe = sanitize_sandbox(current)
    if safe == current:
        return False
    node.attributes['sandbox'] = safe
    logger.debug(f"Sanitized iframe sandbox: {current!r} -> {safe!r}")
    return True


def sanitize_iframe_tag(tag: Tag) -> bool:
    """Re-sandbox a BeautifulSoup iframe tag in place."""
    if tag.name != 'iframe':
        return False
    current = tag.get('sandbox')
    if isinstance(current, list):
        current = ' '.join(current)
    safe = sanitize_sandbox(current)
    if safe == current:
        return False
    tag['sandbox'] = safe
    logger.debug(f"Sanitized iframe sandbox: {current!r} -> {safe!r}")
    return True
