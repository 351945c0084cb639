"""
Path and URL utilities for the element cloner.

Provides URL resolution, CSS url() handling, and output file management.
"""

import os
import re
import time
from typing import Optional
from urllib.parse import urljoin


# CSS url() pattern, first match wins
CSS_URL_PATTERN = re.compile(r'url\(\s*["\']?([^"\')]+)["\']?\s*\)')


def is_inline_url(url: str) -> bool:
    """Check whether a URL already carries its own data (data: or blob:)."""
    return url.startswith(('data:', 'blob:'))


def ensure_absolute(url: Optional[str], base_url: Optional[str]) -> Optional[str]:
    """
    Resolve a possibly relative URL against the page URL.

    Args:
        url: URL as written in the document
        base_url: URL of the document containing the reference

    Returns:
        Absolute URL, or the input unchanged when it is empty, inline,
        or cannot be resolved
    """
    if not url:
        return url

    url = url.strip()
    if is_inline_url(url) or not base_url:
        return url

    # Handle protocol-relative URLs
    if url.startswith('//'):
        scheme = base_url.split(':', 1)[0] if ':' in base_url else 'https'
        return f"{scheme}:{url}"

    try:
        return urljoin(base_url, url)
    except ValueError:
        return url


def extract_css_url(value: Optional[str]) -> Optional[str]:
    """
    Extract the first url() reference from a CSS value.

    Args:
        value: CSS value such as a background-image

    Returns:
        The referenced URL, or None
    """
    if not value:
        return None
    match = CSS_URL_PATTERN.search(value)
    if not match:
        return None
    return match.group(1).strip()


def css_url(url: str) -> str:
    """Format a URL as a quoted CSS url() value."""
    return f'url("{url}")'


def is_remote_reference(url: Optional[str]) -> bool:
    """Check whether a reference still points at the network or a blob."""
    if not url:
        return False
    return url.startswith(('http://', 'https://', 'blob:'))


def ensure_dir(path: str) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists
    """
    os.makedirs(path, exist_ok=True)


def export_filename(prefix: str = "universal-export") -> str:
    """
    Build a timestamped export file name.

    Args:
        prefix: File name prefix

    Returns:
        File name such as ``universal-export-1700000000000.html``
    """
    return f"{prefix}-{int(time.time() * 1000)}.html"


def write_export(html: str, output_dir: str, prefix: str = "universal-export") -> str:
    """
    Write an exported document to disk.

    Args:
        html: Document content
        output_dir: Directory to write into
        prefix: File name prefix

    Returns:
        Absolute path of the written file
    """
    ensure_dir(output_dir)
    path = os.path.abspath(os.path.join(output_dir, export_filename(prefix)))
    with open(path, 'w', encoding='utf-8') as f:
        f.write(html)
    return path
