"""Scale preview-space style geometry to a target export resolution."""

import math
from dataclasses import dataclass

from freeqr import PREVIEW_SIZE
from freeqr.config import StyleConfig
from freeqr.errors import InvalidGeometry


@dataclass(frozen=True)
class ScaledGeometry:
    """Measurements for one export at one resolution, in output pixels."""

    resolution: int
    scale: float
    border_width: float
    radius: float
    margin: float
    image_margin: float
    qr_size: float

    @property
    def qr_offset(self) -> float:
        """Top-left offset that centers the symbol inside the frame."""
        return (self.resolution - self.qr_size) / 2

    @property
    def has_border(self) -> bool:
        return self.border_width > 0

    @property
    def stroke_inset(self) -> float:
        return self.border_width / 2

    @property
    def stroke_radius(self) -> float:
        """Corner radius of the inset border path, never negative."""
        return max(0.0, self.radius - self.border_width / 2)


def resolve_geometry(config: StyleConfig, resolution: int | None = None) -> ScaledGeometry:
    """Derive the scaled geometry of ``config`` at ``resolution``.

    Args:
        config: Style snapshot in preview units.
        resolution: Target edge length in pixels. Defaults to the
            configured download resolution.

    Returns:
        The ScaledGeometry for this export.

    Raises:
        InvalidGeometry: If the resolution is not positive or the border
            leaves no room for the symbol.
    """
    if resolution is None:
        resolution = config.download.resolution
    if not resolution > 0:
        raise InvalidGeometry(f"resolution must be positive, got {resolution}")

    scale = resolution / PREVIEW_SIZE
    border_width = config.frame.effective_width * scale
    qr_size = resolution - 2 * border_width
    if not qr_size > 0:
        raise InvalidGeometry(
            f"border of {border_width:.2f}px on each side leaves no room "
            f"for the QR code at {resolution}px"
        )

    return ScaledGeometry(
        resolution=resolution,
        scale=scale,
        border_width=border_width,
        radius=config.frame.radius * scale,
        margin=config.margin * scale,
        image_margin=config.image_options.margin * scale,
        qr_size=qr_size,
    )


ALL_CORNERS = (True, True, True, True)


def rounded_rect_path(
    x: float,
    y: float,
    width: float,
    height: float,
    radius: float,
    corners: tuple[bool, bool, bool, bool] = ALL_CORNERS,
) -> list[tuple[float, float]]:
    """Outline of a rounded rectangle as a closed polygon.

    Starts at the top edge just past the top-left corner and walks
    clockwise: each straight edge is followed by a quarter arc into the
    next edge. The radius is clamped to half the shorter side.

    Args:
        corners: Which of (top-left, top-right, bottom-right, bottom-left)
            are rounded; the others stay square.
    """
    r = max(0.0, min(radius, width / 2, height / 2))
    if r == 0 or not any(corners):
        return [(x, y), (x + width, y), (x + width, y + height), (x, y + height)]

    segments = max(2, min(90, math.ceil(r / 2)))
    top_left, top_right, bottom_right, bottom_left = corners
    # (rounded, arc center, start angle, square corner), clockwise in screen coordinates
    arcs = [
        (top_right, x + width - r, y + r, -90.0, (x + width, y)),
        (bottom_right, x + width - r, y + height - r, 0.0, (x + width, y + height)),
        (bottom_left, x + r, y + height - r, 90.0, (x, y + height)),
        (top_left, x + r, y + r, 180.0, (x, y)),
    ]

    points = [(x + r, y)] if top_left else []
    for rounded, cx, cy, start, square in arcs:
        if not rounded:
            points.append(square)
            continue
        for i in range(segments + 1):
            angle = math.radians(start + 90.0 * i / segments)
            points.append((cx + r * math.cos(angle), cy + r * math.sin(angle)))
    return points
