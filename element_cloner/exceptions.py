"""
Exception types raised by the element cloner.

Most failures inside the core are local and recovered in place; these
exceptions cover the few conditions that are reported to a caller.
"""


class ElementClonerError(Exception):
    """Base class for element cloner errors."""


class HostError(ElementClonerError):
    """The browser host could not open or query a page."""


class CommandError(ElementClonerError):
    """An inbound command was unknown or carried an invalid payload."""


class ExportError(ElementClonerError):
    """An export could not be assembled."""
