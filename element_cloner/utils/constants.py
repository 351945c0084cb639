"""
Shared constants for the element cloner.

Contains common configuration values used across multiple modules.
"""

# Default user agent string for all HTTP requests
# Used by both the browser host and the asset fetcher
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Default asset request timeout in seconds
DEFAULT_TIMEOUT = 30

# Default page load timeout in milliseconds (for Playwright)
DEFAULT_PAGE_TIMEOUT = 30000

# Default concurrent asset fetches
DEFAULT_CONCURRENCY = 10

# Browser viewport used for capture and for the editor canvas
DEFAULT_VIEWPORT_WIDTH = 1920
DEFAULT_VIEWPORT_HEIGHT = 1080

# --- Capture -----------------------------------------------------------------

# Pixels scrolled per capture iteration
SCROLL_STEP = 300

# Seconds to wait for rendering / lazy-load after each scroll
SETTLE_INTERVAL = 1.0

# Characters of rendered text that take part in a fingerprint
FINGERPRINT_TEXT_PREFIX = 200

# Reveal animation
REVEAL_FRAME_INTERVAL = 1 / 30
REVEAL_VELOCITY_SMOOTHING = 0.8
REVEAL_VELOCITY_THRESHOLD = 0.2  # px/ms
REVEAL_LAG_RATIO = 0.25
REVEAL_CRAWL_STEP = 8
REVEAL_SWEEP_MS = 1500

# Guided full-page capture
GUIDED_POLL_INTERVAL = 0.25
GUIDED_MIN_OVERFLOW = 10

# --- Markers -----------------------------------------------------------------

# Prefix of ids owned by the cloner's own UI (never captured)
UI_ID_PREFIX = "ec-"

MARKER_HIGHLIGHT = "highlight"
MARKER_SELECTED = "selected"
MARKER_CAPTURED = "captured"
MARKER_EXPORT_SELECTED = "export-selected"
MARKER_DELETE_SELECTED = "delete-selected"
MARKER_RESIZABLE = "resizable"
MARKER_DRAGGING = "dragging"
MARKER_HOVER = "hover"

# Class names that may still show up on pages processed by older tooling
MARKER_CLASSES = frozenset({
    "mb-captured", "mb-highlight", "mb-selected",
    "ec-captured", "ec-highlight", "ec-selected",
})

# Colour fragments used by marker visuals; never copied into a snapshot
MARKER_COLORS = (
    "0, 255, 136",
    "98, 100, 167",
    "0, 81, 195",
    "34, 197, 94",
)

# --- Style snapshot ----------------------------------------------------------

# Resolved values that carry no information for a frozen copy
STYLE_SENTINELS = frozenset({"", "initial", "none", "unset"})

FROZEN_STYLE_PROPERTIES = (
    "display", "position", "top", "left", "right", "bottom",
    "width", "height", "min-width", "max-width", "min-height", "max-height",
    "margin", "padding", "border", "border-width", "border-color", "border-style", "border-radius",
    "background-color", "background-image", "background-size", "background-position", "background-repeat",
    "color", "font-family", "font-size", "font-weight", "line-height", "letter-spacing",
    "text-align", "text-transform", "text-decoration",
    "overflow", "visibility", "opacity", "box-shadow", "z-index",
    "flex", "flex-direction", "align-items", "justify-content", "flex-wrap", "flex-grow", "flex-shrink", "flex-basis",
    "grid-template-columns", "grid-template-rows", "gap",
    "transform", "transition", "cursor", "pointer-events",
    "box-sizing", "backdrop-filter", "filter", "mix-blend-mode", "object-fit",
)

PSEUDO_STYLE_PROPERTIES = (
    "position", "display", "color", "background", "width", "height",
    "top", "left", "right", "bottom", "margin", "padding", "border",
    "border-radius", "font-size", "font-weight",
)

# --- Canvas ------------------------------------------------------------------

ZOOM_MIN = 0.1
ZOOM_MAX = 5.0
ZOOM_STEP = 0.1
WHEEL_ZOOM_INTENSITY = 0.001
FIT_RATIO = 0.9
FIT_CEILING = 1.5
CROP_ZOOM_RATIO = 0.95
CROP_ZOOM_CEILING = 2.0
MIN_CROP_SIZE = 20

# Margin added around composed content when computing world bounds
WORLD_PADDING = 50

# Margin that must stay reachable when clamping pan
PAN_CLAMP_PADDING = 100

MINIMAP_WIDTH = 200
MINIMAP_HEIGHT = 150

# Initial column layout of fragments opened in the editor
EDITOR_COLUMN_PADDING = 40
EDITOR_COLUMN_GAP = 20

# --- Export ------------------------------------------------------------------

EXPORT_TITLE = "Universal Element Export"
EXPORT_ATTRIBUTION = "This is the Universal Element Cloner by Matthew Bubb"
