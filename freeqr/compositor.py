"""Compose the final export: frame background, border, and the encoded symbol.

Both compositors reproduce the preview card at the export resolution. The
border stroke is centered on a path inset by half the stroke width, so the
whole stroke stays inside the frame.
"""

import asyncio
import xml.etree.ElementTree as ET

from PIL import Image, ImageColor, ImageDraw

from freeqr.config import StyleConfig
from freeqr.encoder import ArtifactKind, RasterArtifact, VectorArtifact
from freeqr.errors import EncodingFailure, ParseFailure, SurfaceFailure
from freeqr.geometry import ScaledGeometry, rounded_rect_path
from freeqr.image_utils import decode_png, encode_png

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)


def _fmt(value: float) -> str:
    """Compact number formatting for SVG attributes."""
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


class RasterCompositor:
    """Builds an RGBA PNG of exactly ``resolution x resolution`` pixels."""

    kind = ArtifactKind.RASTER

    async def compose(
        self,
        config: StyleConfig,
        geometry: ScaledGeometry,
        artifact: RasterArtifact,
    ) -> bytes:
        if not isinstance(artifact, RasterArtifact) or not artifact.data:
            raise EncodingFailure("encoder returned an empty raster artifact")
        try:
            symbol = await asyncio.to_thread(decode_png, artifact.data)
        except ValueError as e:
            raise EncodingFailure(str(e))
        canvas = self.draw(config, geometry, symbol)
        return encode_png(canvas)

    def draw(self, config: StyleConfig, geometry: ScaledGeometry, symbol: Image.Image) -> Image.Image:
        """Layer background, border and symbol onto a new surface."""
        size = geometry.resolution
        try:
            canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
            mask = Image.new("L", (size, size), 0) if geometry.has_border else None
        except (MemoryError, ValueError) as e:
            raise SurfaceFailure(f"could not allocate {size}x{size} surface: {e}")

        draw = ImageDraw.Draw(canvas)
        draw.polygon(
            rounded_rect_path(0, 0, size, size, geometry.radius),
            fill=ImageColor.getcolor(config.background.color, "RGBA"),
        )

        if geometry.has_border:
            canvas.paste(
                ImageColor.getcolor(config.frame.color, "RGBA"),
                mask=self._stroke_mask(geometry, mask),
            )

        draw_size = max(1, round(geometry.qr_size))
        if symbol.size != (draw_size, draw_size):
            symbol = symbol.resize((draw_size, draw_size), Image.LANCZOS)
        offset = round((size - draw_size) / 2)
        canvas.alpha_composite(symbol, dest=(offset, offset))
        return canvas

    @staticmethod
    def _stroke_mask(geometry: ScaledGeometry, mask: Image.Image) -> Image.Image:
        """Coverage of a stroke of ``border_width`` centered on the inset path.

        The stroke's outer edge is the inset path grown by half the width,
        its inner edge the path shrunk by half the width. Corners of a
        square path stay square. Draws into ``mask``, a blank "L" surface
        the size of the canvas.
        """
        size = geometry.resolution
        width = geometry.border_width
        inset = geometry.stroke_inset
        radius = geometry.stroke_radius
        half = width / 2

        outer_x = inset - half
        outer_side = size - 2 * outer_x
        outer_radius = radius + half if radius > 0 else 0.0

        inner_x = inset + half
        inner_side = size - 2 * inner_x
        inner_radius = max(0.0, radius - half)

        draw = ImageDraw.Draw(mask)
        draw.polygon(rounded_rect_path(outer_x, outer_x, outer_side, outer_side, outer_radius), fill=255)
        if inner_side > 0:
            draw.polygon(rounded_rect_path(inner_x, inner_x, inner_side, inner_side, inner_radius), fill=0)
        return mask


class VectorCompositor:
    """Builds an SVG document that nests the encoder's SVG inside the frame."""

    kind = ArtifactKind.VECTOR

    async def compose(
        self,
        config: StyleConfig,
        geometry: ScaledGeometry,
        artifact: VectorArtifact,
    ) -> bytes:
        return ET.tostring(self.build(config, geometry, artifact), encoding="utf-8", xml_declaration=True)

    def build(self, config: StyleConfig, geometry: ScaledGeometry, artifact: VectorArtifact) -> ET.Element:
        if not isinstance(artifact, VectorArtifact) or not artifact.text.strip():
            raise EncodingFailure("encoder returned an empty vector artifact")

        try:
            source = ET.fromstring(artifact.text)
        except ET.ParseError as e:
            raise ParseFailure(f"could not parse encoder SVG: {e}")
        if source.tag not in (f"{{{SVG_NS}}}svg", "svg"):
            raise ParseFailure(f"encoder output root is <{source.tag}>, expected <svg>")

        size = _fmt(geometry.resolution)
        qr_size = _fmt(geometry.qr_size)
        view_box = source.get("viewBox") or f"0 0 {qr_size} {qr_size}"

        document = ET.Element(
            f"{{{SVG_NS}}}svg",
            {"width": size, "height": size, "viewBox": f"0 0 {size} {size}"},
        )
        ET.SubElement(
            document,
            f"{{{SVG_NS}}}rect",
            {
                "x": "0",
                "y": "0",
                "width": size,
                "height": size,
                "rx": _fmt(geometry.radius),
                "ry": _fmt(geometry.radius),
                "fill": config.background.color,
            },
        )

        if geometry.has_border:
            inset = _fmt(geometry.stroke_inset)
            side = _fmt(geometry.resolution - geometry.border_width)
            ET.SubElement(
                document,
                f"{{{SVG_NS}}}rect",
                {
                    "x": inset,
                    "y": inset,
                    "width": side,
                    "height": side,
                    "rx": _fmt(geometry.stroke_radius),
                    "ry": _fmt(geometry.stroke_radius),
                    "fill": "none",
                    "stroke": config.frame.color,
                    "stroke-width": _fmt(geometry.border_width),
                },
            )

        offset = _fmt(geometry.qr_offset)
        nested = ET.SubElement(
            document,
            f"{{{SVG_NS}}}svg",
            {"x": offset, "y": offset, "width": qr_size, "height": qr_size, "viewBox": view_box},
        )
        nested.extend(list(source))
        return document
