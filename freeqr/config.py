"""Style configuration for QR rendering and export.

All geometry here is in preview-space units, relative to the fixed
``PREVIEW_SIZE`` preview. A ``StyleConfig`` is immutable: every setter
returns a new, validated snapshot, so an export that holds one can never
see later edits.
"""

import json
import math
import os
from dataclasses import dataclass, field, replace
from enum import Enum

from PIL import ImageColor

from freeqr import DEFAULT_RESOLUTION, MAX_QR_DATA_LENGTH


class DotType(Enum):
    """Shape of the data modules."""

    DOTS = "dots"
    ROUNDED = "rounded"
    CLASSY = "classy"
    CLASSY_ROUNDED = "classy-rounded"
    SQUARE = "square"
    EXTRA_ROUNDED = "extra-rounded"


class CornerSquareType(Enum):
    """Shape of the outer ring of each finder pattern."""

    DOT = "dot"
    SQUARE = "square"
    EXTRA_ROUNDED = "extra-rounded"


class CornerDotType(Enum):
    """Shape of the inner 3x3 block of each finder pattern."""

    DOT = "dot"
    SQUARE = "square"


class ErrorCorrectionLevel(Enum):
    L = "L"
    M = "M"
    Q = "Q"
    H = "H"


def validate_color(value: str, name: str) -> str:
    """Return ``value`` unchanged if Pillow can parse it as a color.

    Raises:
        ValueError: If the value is not a valid color string.
    """
    try:
        ImageColor.getrgb(value)
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid color for {name}: {value!r}")
    return value


def _non_negative(value: float, name: str) -> float:
    if not math.isfinite(value) or value < 0:
        raise ValueError(f"{name} must be a finite non-negative number, got {value}")
    return value


# ---------------------------------------------------------------------------
# Sub-structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DotsOptions:
    color: str = "#000000"
    type: DotType = DotType.ROUNDED

    def __post_init__(self):
        validate_color(self.color, "dots")
        object.__setattr__(self, "type", DotType(self.type))


@dataclass(frozen=True)
class BackgroundOptions:
    color: str = "#ffffff"

    def __post_init__(self):
        validate_color(self.color, "background")


@dataclass(frozen=True)
class CornersSquareOptions:
    color: str = "#000000"
    type: CornerSquareType = CornerSquareType.EXTRA_ROUNDED

    def __post_init__(self):
        validate_color(self.color, "corner square")
        object.__setattr__(self, "type", CornerSquareType(self.type))


@dataclass(frozen=True)
class CornersDotOptions:
    color: str = "#000000"
    type: CornerDotType = CornerDotType.DOT

    def __post_init__(self):
        validate_color(self.color, "corner dot")
        object.__setattr__(self, "type", CornerDotType(self.type))


@dataclass(frozen=True)
class QROptions:
    error_correction: ErrorCorrectionLevel = ErrorCorrectionLevel.Q

    def __post_init__(self):
        object.__setattr__(self, "error_correction", ErrorCorrectionLevel(self.error_correction))


@dataclass(frozen=True)
class ImageOptions:
    """Overlay image placement.

    ``size`` is the overlay's share of the symbol width; ``margin`` is the
    clear space kept around it, in preview units.
    """

    margin: float = 5
    size: float = 0.4
    hide_background_dots: bool = True

    def __post_init__(self):
        _non_negative(self.margin, "image margin")
        if not 0 < self.size <= 1:
            raise ValueError(f"image size must be in (0, 1], got {self.size}")


@dataclass(frozen=True)
class FrameOptions:
    """Background card and border stroke around the symbol."""

    enabled: bool = True
    color: str = "#000000"
    width: float = 0
    radius: float = 20

    def __post_init__(self):
        validate_color(self.color, "frame")
        _non_negative(self.width, "frame width")
        _non_negative(self.radius, "frame radius")

    @property
    def effective_width(self) -> float:
        """Border width actually drawn; zero when the frame is disabled."""
        return self.width if self.enabled else 0


@dataclass(frozen=True)
class DownloadOptions:
    resolution: int = DEFAULT_RESOLUTION

    def __post_init__(self):
        if isinstance(self.resolution, bool) or not isinstance(self.resolution, int):
            raise ValueError(f"resolution must be an integer, got {self.resolution!r}")
        if self.resolution <= 0:
            raise ValueError(f"resolution must be positive, got {self.resolution}")


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StyleConfig:
    """Read-only snapshot of every visual parameter of a QR card."""

    data: str = "https://google.com"
    margin: float = 10
    image: str | None = None
    dots: DotsOptions = field(default_factory=DotsOptions)
    background: BackgroundOptions = field(default_factory=BackgroundOptions)
    corners_square: CornersSquareOptions = field(default_factory=CornersSquareOptions)
    corners_dot: CornersDotOptions = field(default_factory=CornersDotOptions)
    qr: QROptions = field(default_factory=QROptions)
    image_options: ImageOptions = field(default_factory=ImageOptions)
    frame: FrameOptions = field(default_factory=FrameOptions)
    download: DownloadOptions = field(default_factory=DownloadOptions)

    def __post_init__(self):
        if not self.data.strip():
            raise ValueError("QR data cannot be empty.")
        if len(self.data) > MAX_QR_DATA_LENGTH:
            raise ValueError(
                f"QR data too long ({len(self.data)} chars). "
                f"Maximum is {MAX_QR_DATA_LENGTH} characters."
            )
        _non_negative(self.margin, "margin")
        if 2 * self.frame.width >= self.download.resolution:
            raise ValueError(
                f"frame width {self.frame.width} leaves no room for the QR code "
                f"at resolution {self.download.resolution}"
            )

    # -- named setters -----------------------------------------------------

    def with_data(self, data: str) -> "StyleConfig":
        return replace(self, data=data)

    def with_margin(self, margin: float) -> "StyleConfig":
        return replace(self, margin=margin)

    def with_image(self, image: str | None) -> "StyleConfig":
        return replace(self, image=image)

    def with_dots(self, *, color: str | None = None, type: DotType | str | None = None) -> "StyleConfig":
        dots = DotsOptions(
            color=self.dots.color if color is None else color,
            type=self.dots.type if type is None else type,
        )
        return replace(self, dots=dots)

    def with_background(self, color: str) -> "StyleConfig":
        return replace(self, background=BackgroundOptions(color=color))

    def with_corners_square(
        self, *, color: str | None = None, type: CornerSquareType | str | None = None
    ) -> "StyleConfig":
        corners = CornersSquareOptions(
            color=self.corners_square.color if color is None else color,
            type=self.corners_square.type if type is None else type,
        )
        return replace(self, corners_square=corners)

    def with_corners_dot(
        self, *, color: str | None = None, type: CornerDotType | str | None = None
    ) -> "StyleConfig":
        corners = CornersDotOptions(
            color=self.corners_dot.color if color is None else color,
            type=self.corners_dot.type if type is None else type,
        )
        return replace(self, corners_dot=corners)

    def with_error_correction(self, level: ErrorCorrectionLevel | str) -> "StyleConfig":
        return replace(self, qr=QROptions(error_correction=level))

    def with_image_options(
        self,
        *,
        margin: float | None = None,
        size: float | None = None,
        hide_background_dots: bool | None = None,
    ) -> "StyleConfig":
        current = self.image_options
        options = ImageOptions(
            margin=current.margin if margin is None else margin,
            size=current.size if size is None else size,
            hide_background_dots=(
                current.hide_background_dots if hide_background_dots is None else hide_background_dots
            ),
        )
        return replace(self, image_options=options)

    def with_frame(
        self,
        *,
        enabled: bool | None = None,
        color: str | None = None,
        width: float | None = None,
        radius: float | None = None,
    ) -> "StyleConfig":
        current = self.frame
        frame = FrameOptions(
            enabled=current.enabled if enabled is None else enabled,
            color=current.color if color is None else color,
            width=current.width if width is None else width,
            radius=current.radius if radius is None else radius,
        )
        return replace(self, frame=frame)

    def with_resolution(self, resolution: int) -> "StyleConfig":
        return replace(self, download=DownloadOptions(resolution=resolution))

    # -- serialization -----------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "data": self.data,
            "margin": self.margin,
            "image": self.image,
            "dotsOptions": {"color": self.dots.color, "type": self.dots.type.value},
            "backgroundOptions": {"color": self.background.color},
            "cornersSquareOptions": {
                "color": self.corners_square.color,
                "type": self.corners_square.type.value,
            },
            "cornersDotOptions": {
                "color": self.corners_dot.color,
                "type": self.corners_dot.type.value,
            },
            "qrOptions": {"errorCorrectionLevel": self.qr.error_correction.value},
            "imageOptions": {
                "margin": self.image_options.margin,
                "size": self.image_options.size,
                "hideBackgroundDots": self.image_options.hide_background_dots,
            },
            "frameOptions": {
                "enabled": self.frame.enabled,
                "color": self.frame.color,
                "width": self.frame.width,
                "radius": self.frame.radius,
            },
            "downloadOptions": {"resolution": self.download.resolution},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StyleConfig":
        """Build a config from a preset dict, falling back to defaults for missing keys."""
        default = cls()
        dots = data.get("dotsOptions", {})
        corners_square = data.get("cornersSquareOptions", {})
        corners_dot = data.get("cornersDotOptions", {})
        image_options = data.get("imageOptions", {})
        frame = data.get("frameOptions", {})
        return cls(
            data=data.get("data", default.data),
            margin=data.get("margin", default.margin),
            image=data.get("image", default.image),
            dots=DotsOptions(
                color=dots.get("color", default.dots.color),
                type=dots.get("type", default.dots.type),
            ),
            background=BackgroundOptions(
                color=data.get("backgroundOptions", {}).get("color", default.background.color),
            ),
            corners_square=CornersSquareOptions(
                color=corners_square.get("color", default.corners_square.color),
                type=corners_square.get("type", default.corners_square.type),
            ),
            corners_dot=CornersDotOptions(
                color=corners_dot.get("color", default.corners_dot.color),
                type=corners_dot.get("type", default.corners_dot.type),
            ),
            qr=QROptions(
                error_correction=data.get("qrOptions", {}).get(
                    "errorCorrectionLevel", default.qr.error_correction
                ),
            ),
            image_options=ImageOptions(
                margin=image_options.get("margin", default.image_options.margin),
                size=image_options.get("size", default.image_options.size),
                hide_background_dots=image_options.get(
                    "hideBackgroundDots", default.image_options.hide_background_dots
                ),
            ),
            frame=FrameOptions(
                enabled=frame.get("enabled", default.frame.enabled),
                color=frame.get("color", default.frame.color),
                width=frame.get("width", default.frame.width),
                radius=frame.get("radius", default.frame.radius),
            ),
            download=DownloadOptions(
                resolution=data.get("downloadOptions", {}).get(
                    "resolution", default.download.resolution
                ),
            ),
        )


def load_preset(path: str) -> StyleConfig:
    """Load a style preset from a JSON file.

    Raises:
        FileNotFoundError: If the preset file doesn't exist.
        ValueError: If the file is not valid JSON or holds invalid values.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Preset not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Could not parse preset '{path}': {e}")

    if not isinstance(data, dict):
        raise ValueError(f"Preset '{path}' must contain a JSON object")
    return StyleConfig.from_dict(data)


def save_preset(config: StyleConfig, path: str) -> str:
    """Write ``config`` as a JSON preset and return the path."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
    return path


class LiveConfig:
    """Mutable holder for the configuration a UI is currently editing.

    Setters swap in a new snapshot; exports take ``snapshot()`` and are
    unaffected by anything that happens here afterwards.
    """

    def __init__(self, config: StyleConfig | None = None):
        self._config = config or StyleConfig()

    def snapshot(self) -> StyleConfig:
        return self._config

    def set_data(self, data: str) -> None:
        self._config = self._config.with_data(data)

    def set_margin(self, margin: float) -> None:
        self._config = self._config.with_margin(margin)

    def set_image(self, image: str | None) -> None:
        self._config = self._config.with_image(image)

    def set_dots(self, **changes) -> None:
        self._config = self._config.with_dots(**changes)

    def set_background(self, color: str) -> None:
        self._config = self._config.with_background(color)

    def set_corners_square(self, **changes) -> None:
        self._config = self._config.with_corners_square(**changes)

    def set_corners_dot(self, **changes) -> None:
        self._config = self._config.with_corners_dot(**changes)

    def set_error_correction(self, level: ErrorCorrectionLevel | str) -> None:
        self._config = self._config.with_error_correction(level)

    def set_image_options(self, **changes) -> None:
        self._config = self._config.with_image_options(**changes)

    def set_frame(self, **changes) -> None:
        self._config = self._config.with_frame(**changes)

    def set_resolution(self, resolution: int) -> None:
        self._config = self._config.with_resolution(resolution)
