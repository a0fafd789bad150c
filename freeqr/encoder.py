"""Symbol encoders: turn a payload and style into a transparent QR artifact.

The module matrix comes from a QR library (python-qrcode or segno); this
module only draws it. Raster artifacts are PNG bytes drawn with Pillow,
vector artifacts are SVG text built with svg.py. Both are confined to a
``size x size`` square with the quiet zone inside it and no background.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import qrcode
import svg
from PIL import Image, ImageColor, ImageDraw

from freeqr.config import (
    CornerDotType,
    CornersDotOptions,
    CornersSquareOptions,
    CornerSquareType,
    DotsOptions,
    DotType,
    ErrorCorrectionLevel,
    StyleConfig,
)
from freeqr.errors import EncodingFailure
from freeqr.geometry import ALL_CORNERS, ScaledGeometry, rounded_rect_path
from freeqr.image_utils import encode_png, load_overlay


FINDER_SIZE = 7

# Per dot type: corner radius as a fraction of the module size, and which
# corners (top-left, top-right, bottom-right, bottom-left) are rounded.
_DIAGONAL_CORNERS = (True, False, True, False)
_DOT_SHAPES = {
    DotType.SQUARE: (0.0, ALL_CORNERS),
    DotType.DOTS: (0.5, ALL_CORNERS),
    DotType.ROUNDED: (0.25, ALL_CORNERS),
    DotType.EXTRA_ROUNDED: (0.4, ALL_CORNERS),
    DotType.CLASSY: (0.35, _DIAGONAL_CORNERS),
    DotType.CLASSY_ROUNDED: (0.5, _DIAGONAL_CORNERS),
}

# Outer/inner radius of the finder ring, in modules
_CORNER_SQUARE_RADII = {
    CornerSquareType.SQUARE: (0.0, 0.0),
    CornerSquareType.EXTRA_ROUNDED: (2.5, 1.5),
    CornerSquareType.DOT: (3.5, 2.5),
}

_CORNER_DOT_RADII = {
    CornerDotType.SQUARE: 0.0,
    CornerDotType.DOT: 1.5,
}


class ArtifactKind(Enum):
    RASTER = "raster"
    VECTOR = "vector"


@dataclass(frozen=True)
class RasterArtifact:
    data: bytes
    size: int


@dataclass(frozen=True)
class VectorArtifact:
    text: str
    size: float


@dataclass(frozen=True)
class EncoderStyle:
    """Everything the encoder needs, with lengths already in output pixels.

    The background is always transparent; it is not part of this style.
    """

    data: str
    error_correction: ErrorCorrectionLevel
    dots: DotsOptions
    corners_square: CornersSquareOptions
    corners_dot: CornersDotOptions
    margin: float = 0.0
    image: str | None = None
    image_size: float = 0.4
    image_margin: float = 0.0
    hide_background_dots: bool = True

    @classmethod
    def for_export(cls, config: StyleConfig, geometry: ScaledGeometry) -> "EncoderStyle":
        """Style for an export request, with the quiet zone scaled to the export."""
        return cls(
            data=config.data,
            error_correction=config.qr.error_correction,
            dots=config.dots,
            corners_square=config.corners_square,
            corners_dot=config.corners_dot,
            margin=geometry.margin,
            image=config.image,
            image_size=config.image_options.size,
            image_margin=geometry.image_margin,
            hide_background_dots=config.image_options.hide_background_dots,
        )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Layout:
    """Where each module and the overlay land inside the artifact."""

    count: int
    origin: float
    module: float
    overlay_box: tuple[float, float, float, float] | None = None  # x, y, w, h
    overlay_image: Image.Image | None = None

    def cell(self, row: int, col: int) -> tuple[float, float]:
        return self.origin + col * self.module, self.origin + row * self.module

    def is_finder(self, row: int, col: int) -> bool:
        last = self.count - FINDER_SIZE
        return (row < FINDER_SIZE and (col < FINDER_SIZE or col >= last)) or (
            row >= last and col < FINDER_SIZE
        )

    def finder_origins(self) -> list[tuple[int, int]]:
        last = self.count - FINDER_SIZE
        return [(0, 0), (0, last), (last, 0)]

    def is_hidden(self, row: int, col: int, margin: float) -> bool:
        """True if the module center lies under the overlay (plus its margin)."""
        if self.overlay_box is None:
            return False
        x, y, w, h = self.overlay_box
        cx, cy = self.cell(row, col)
        cx += self.module / 2
        cy += self.module / 2
        return x - margin <= cx <= x + w + margin and y - margin <= cy <= y + h + margin


def _build_layout(matrix: list[list[bool]], style: EncoderStyle, size: float) -> _Layout:
    count = len(matrix)
    inner = size - 2 * style.margin
    if inner <= 0:
        raise EncodingFailure(
            f"quiet zone of {style.margin:.2f}px leaves no room for a {size:.2f}px symbol"
        )
    module = inner / count

    if not style.image:
        return _Layout(count=count, origin=style.margin, module=module)

    max_side = max(1, round(inner * style.image_size))
    try:
        overlay = load_overlay(style.image, max_side, max_side)
    except (FileNotFoundError, ValueError) as e:
        raise EncodingFailure(str(e))

    w, h = overlay.size
    box = ((size - w) / 2, (size - h) / 2, float(w), float(h))
    return _Layout(
        count=count,
        origin=style.margin,
        module=module,
        overlay_box=box,
        overlay_image=overlay,
    )


# ---------------------------------------------------------------------------
# Raster drawing
# ---------------------------------------------------------------------------

def _fill_shape(draw, x: float, y: float, side: float, radius: float, fill, corners=ALL_CORNERS) -> None:
    draw.polygon(rounded_rect_path(x, y, side, side, radius, corners), fill=fill)


def _draw_raster(matrix: list[list[bool]], layout: _Layout, style: EncoderStyle, size: int) -> bytes:
    img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    m = layout.module

    dot_color = ImageColor.getcolor(style.dots.color, "RGBA")
    radius_frac, corners = _DOT_SHAPES[style.dots.type]
    for row, line in enumerate(matrix):
        for col, dark in enumerate(line):
            if not dark or layout.is_finder(row, col):
                continue
            if style.hide_background_dots and layout.is_hidden(row, col, style.image_margin):
                continue
            x, y = layout.cell(row, col)
            _fill_shape(draw, x, y, m, radius_frac * m, dot_color, corners)

    square_color = ImageColor.getcolor(style.corners_square.color, "RGBA")
    center_color = ImageColor.getcolor(style.corners_dot.color, "RGBA")
    outer_r, inner_r = _CORNER_SQUARE_RADII[style.corners_square.type]
    dot_r = _CORNER_DOT_RADII[style.corners_dot.type]
    clear = (0, 0, 0, 0)
    for row, col in layout.finder_origins():
        x, y = layout.cell(row, col)
        _fill_shape(draw, x, y, 7 * m, outer_r * m, square_color)
        # Writing a transparent fill replaces pixels, punching out the ring's center
        _fill_shape(draw, x + m, y + m, 5 * m, inner_r * m, clear)
        _fill_shape(draw, x + 2 * m, y + 2 * m, 3 * m, dot_r * m, center_color)

    if layout.overlay_image is not None:
        ox, oy, _, _ = layout.overlay_box
        img.alpha_composite(layout.overlay_image, dest=(round(ox), round(oy)))

    return encode_png(img)


# ---------------------------------------------------------------------------
# Vector drawing
# ---------------------------------------------------------------------------

def _n(value: float) -> float:
    return round(value, 3)


def _rect_commands(x: float, y: float, w: float, h: float, r: float, corners=ALL_CORNERS) -> list:
    r = min(r, w / 2, h / 2)
    tl, tr, br, bl = (r if rounded else 0 for rounded in corners)
    cmds = [svg.M(_n(x + tl), _n(y)), svg.L(_n(x + w - tr), _n(y))]
    if tr:
        cmds.append(svg.Arc(_n(tr), _n(tr), 0, False, True, _n(x + w), _n(y + tr)))
    cmds.append(svg.L(_n(x + w), _n(y + h - br)))
    if br:
        cmds.append(svg.Arc(_n(br), _n(br), 0, False, True, _n(x + w - br), _n(y + h)))
    cmds.append(svg.L(_n(x + bl), _n(y + h)))
    if bl:
        cmds.append(svg.Arc(_n(bl), _n(bl), 0, False, True, _n(x), _n(y + h - bl)))
    cmds.append(svg.L(_n(x), _n(y + tl)))
    if tl:
        cmds.append(svg.Arc(_n(tl), _n(tl), 0, False, True, _n(x + tl), _n(y)))
    cmds.append(svg.Z())
    return cmds


def _draw_vector(matrix: list[list[bool]], layout: _Layout, style: EncoderStyle, size: float) -> str:
    m = layout.module
    radius_frac, corners = _DOT_SHAPES[style.dots.type]

    dot_commands = []
    for row, line in enumerate(matrix):
        for col, dark in enumerate(line):
            if not dark or layout.is_finder(row, col):
                continue
            if style.hide_background_dots and layout.is_hidden(row, col, style.image_margin):
                continue
            x, y = layout.cell(row, col)
            dot_commands.extend(_rect_commands(x, y, m, m, radius_frac * m, corners))

    elements: list[svg.Element] = []
    if dot_commands:
        elements.append(svg.Path(d=dot_commands, fill=style.dots.color))

    outer_r, inner_r = _CORNER_SQUARE_RADII[style.corners_square.type]
    dot_r = _CORNER_DOT_RADII[style.corners_dot.type]
    ring_commands, dot_commands = [], []
    for row, col in layout.finder_origins():
        x, y = layout.cell(row, col)
        ring_commands.extend(_rect_commands(x, y, 7 * m, 7 * m, outer_r * m))
        ring_commands.extend(_rect_commands(x + m, y + m, 5 * m, 5 * m, inner_r * m))
        dot_commands.extend(_rect_commands(x + 2 * m, y + 2 * m, 3 * m, 3 * m, dot_r * m))
    elements.append(svg.Path(d=ring_commands, fill=style.corners_square.color, fill_rule="evenodd"))
    elements.append(svg.Path(d=dot_commands, fill=style.corners_dot.color))

    if layout.overlay_image is not None:
        x, y, w, h = layout.overlay_box
        encoded = base64.b64encode(encode_png(layout.overlay_image)).decode("ascii")
        elements.append(
            svg.Image(
                x=_n(x), y=_n(y), width=_n(w), height=_n(h),
                href=f"data:image/png;base64,{encoded}",
            )
        )

    document = svg.SVG(
        width=_n(size),
        height=_n(size),
        viewBox=svg.ViewBoxSpec(0, 0, _n(size), _n(size)),
        elements=elements,
    )
    return document.as_str()


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------

class SymbolEncoder(ABC):
    """Abstract base class for QR symbol encoders."""

    @abstractmethod
    def matrix(self, data: str, level: ErrorCorrectionLevel) -> list[list[bool]]:
        """Return the module matrix for ``data`` without a quiet zone.

        Raises:
            EncodingFailure: If the data cannot be encoded.
        """
        ...

    @abstractmethod
    def name(self) -> str:
        ...

    def render(
        self,
        style: EncoderStyle,
        size: float,
        kind: ArtifactKind = ArtifactKind.RASTER,
    ) -> RasterArtifact | VectorArtifact:
        """Draw the symbol into a transparent ``size x size`` artifact.

        Raster artifacts are rounded to whole pixels; vector artifacts keep
        the exact logical size.
        """
        matrix = self.matrix(style.data, style.error_correction)
        if kind is ArtifactKind.RASTER:
            pixels = max(1, round(size))
            layout = _build_layout(matrix, style, pixels)
            return RasterArtifact(data=_draw_raster(matrix, layout, style, pixels), size=pixels)
        layout = _build_layout(matrix, style, size)
        return VectorArtifact(text=_draw_vector(matrix, layout, style, size), size=size)


class QRCodeEncoder(SymbolEncoder):
    """Encoder backed by python-qrcode."""

    _LEVELS = {
        ErrorCorrectionLevel.L: qrcode.constants.ERROR_CORRECT_L,
        ErrorCorrectionLevel.M: qrcode.constants.ERROR_CORRECT_M,
        ErrorCorrectionLevel.Q: qrcode.constants.ERROR_CORRECT_Q,
        ErrorCorrectionLevel.H: qrcode.constants.ERROR_CORRECT_H,
    }

    def name(self) -> str:
        return "python-qrcode"

    def matrix(self, data: str, level: ErrorCorrectionLevel) -> list[list[bool]]:
        qr = qrcode.QRCode(error_correction=self._LEVELS[level], border=0)
        try:
            qr.add_data(data)
            qr.make(fit=True)
        except (qrcode.exceptions.DataOverflowError, ValueError) as e:
            raise EncodingFailure(f"could not encode data: {e}")
        return [[bool(v) for v in row] for row in qr.get_matrix()]


class SegnoEncoder(SymbolEncoder):
    """Encoder backed by segno."""

    def name(self) -> str:
        return "segno"

    def matrix(self, data: str, level: ErrorCorrectionLevel) -> list[list[bool]]:
        import segno

        try:
            qr = segno.make(data, error=level.value.lower(), micro=False, boost_error=False)
        except (segno.DataOverflowError, ValueError) as e:
            raise EncodingFailure(f"could not encode data: {e}")
        return [[bool(v) for v in row] for row in qr.matrix]


def get_encoder(name: str = "qrcode") -> SymbolEncoder:
    """Factory function to get a symbol encoder.

    Args:
        name: One of "qrcode" or "segno".

    Returns:
        An encoder instance.
    """
    encoders = {
        "qrcode": QRCodeEncoder,
        "segno": SegnoEncoder,
    }

    if name not in encoders:
        raise ValueError(f"Unknown encoder '{name}'. Choose from: {', '.join(encoders.keys())}")

    return encoders[name]()
