import asyncio
import io
import xml.etree.ElementTree as ET

import pytest
from PIL import Image

from freeqr.compositor import RasterCompositor, VectorCompositor
from freeqr.config import StyleConfig
from freeqr.encoder import ArtifactKind, EncoderStyle, RasterArtifact, VectorArtifact
from freeqr.errors import EncodingFailure, ParseFailure, SurfaceFailure
from freeqr.geometry import resolve_geometry

SVG = "{http://www.w3.org/2000/svg}"

ENCODED_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="240" height="240" viewBox="0 0 37 37">'
    '<rect x="1" y="2" width="3" height="4" fill="#123456"/>'
    '<path d="M5 5h2v2h-2z" fill="#654321"/>'
    "</svg>"
)


def _compose_raster(config, encoder=None, artifact=None):
    geometry = resolve_geometry(config)
    if artifact is None:
        style = EncoderStyle.for_export(config, geometry)
        artifact = encoder.render(style, geometry.qr_size, ArtifactKind.RASTER)
    data = asyncio.run(RasterCompositor().compose(config, geometry, artifact))
    return Image.open(io.BytesIO(data))


def _compose_vector(config, text):
    geometry = resolve_geometry(config)
    artifact = VectorArtifact(text=text, size=geometry.qr_size)
    data = asyncio.run(VectorCompositor().compose(config, geometry, artifact))
    return ET.fromstring(data)


@pytest.mark.parametrize("resolution", [64, 300, 517, 1024])
@pytest.mark.parametrize("frame_width", [0, 7, 20])
def test_raster_output_is_exactly_resolution(encoder, resolution, frame_width):
    config = StyleConfig(data="size").with_resolution(resolution).with_frame(width=frame_width)
    img = _compose_raster(config, encoder)
    assert img.size == (resolution, resolution)
    assert img.mode == "RGBA"


def test_raster_layers_background_border_and_symbol(encoder):
    config = (
        StyleConfig(data="https://example.com", margin=10)
        .with_background("#ffffff")
        .with_frame(width=10, radius=30, color="#ff0000")
        .with_resolution(300)
    )
    img = _compose_raster(config, encoder)
    # Rounded corner outside the card is transparent
    assert img.getpixel((0, 0))[3] == 0
    # Border stroke spans the outer 10px of each edge
    assert img.getpixel((150, 2)) == (255, 0, 0, 255)
    assert img.getpixel((297, 150)) == (255, 0, 0, 255)
    # Quiet zone between border and symbol shows the background
    assert img.getpixel((150, 15)) == (255, 255, 255, 255)


def test_raster_without_border_shows_background_at_edge(encoder):
    config = (
        StyleConfig(data="https://example.com")
        .with_background("#00ff00")
        .with_frame(width=0, radius=0)
        .with_resolution(300)
    )
    img = _compose_raster(config, encoder)
    assert img.getpixel((0, 0)) == (0, 255, 0, 255)
    assert img.getpixel((150, 2)) == (0, 255, 0, 255)


def test_raster_disabled_frame_draws_no_border(encoder):
    config = (
        StyleConfig(data="https://example.com")
        .with_frame(enabled=False, width=10, radius=0, color="#ff0000")
        .with_resolution(300)
    )
    img = _compose_raster(config, encoder)
    assert img.getpixel((150, 2)) == (255, 255, 255, 255)


def test_raster_symbol_is_resized_and_centered():
    config = StyleConfig(data="x").with_frame(width=30, radius=0).with_resolution(300)
    symbol = Image.new("RGBA", (10, 10), (0, 0, 255, 255))
    buffer = io.BytesIO()
    symbol.save(buffer, format="PNG")
    img = _compose_raster(config, artifact=RasterArtifact(data=buffer.getvalue(), size=10))
    # qr area is 300 - 2 * 30 = 240px, offset 30
    assert img.getpixel((30, 30)) == (0, 0, 255, 255)
    assert img.getpixel((269, 269)) == (0, 0, 255, 255)
    assert img.getpixel((150, 29)) != (0, 0, 255, 255)
    assert img.getpixel((150, 270)) != (0, 0, 255, 255)


@pytest.mark.parametrize("data", [b"", b"definitely not a png"])
def test_raster_unusable_artifact_is_encoding_failure(config, data):
    with pytest.raises(EncodingFailure):
        _compose_raster(config, artifact=RasterArtifact(data=data, size=300))


def test_raster_stroke_mask_allocation_failure_is_surface_failure(monkeypatch):
    real_new = Image.new
    symbol = real_new("RGBA", (10, 10))

    def new(mode, *args, **kwargs):
        if mode == "L":
            raise MemoryError("out of memory")
        return real_new(mode, *args, **kwargs)

    monkeypatch.setattr(Image, "new", new)
    config = StyleConfig(data="x").with_frame(width=20).with_resolution(300)
    with pytest.raises(SurfaceFailure):
        RasterCompositor().draw(config, resolve_geometry(config), symbol)


def test_vector_document_structure():
    config = StyleConfig(data="x").with_frame(width=20, radius=30, color="#ff0000").with_resolution(300)
    root = _compose_vector(config, ENCODED_SVG)

    assert root.tag == f"{SVG}svg"
    assert root.get("width") == "300"
    assert root.get("height") == "300"
    assert root.get("viewBox") == "0 0 300 300"

    background, border, nested = list(root)
    assert background.tag == f"{SVG}rect"
    assert background.get("fill") == "#ffffff"
    assert background.get("rx") == "30"

    assert border.tag == f"{SVG}rect"
    assert border.get("fill") == "none"
    assert border.get("stroke") == "#ff0000"
    assert border.get("stroke-width") == "20"
    assert border.get("x") == "10"
    assert border.get("width") == "280"
    assert border.get("rx") == "20"

    assert nested.tag == f"{SVG}svg"
    assert nested.get("x") == "20"
    assert nested.get("width") == "260"


def test_vector_nested_content_is_verbatim():
    config = StyleConfig(data="x").with_frame(width=20).with_resolution(1024)
    nested = list(_compose_vector(config, ENCODED_SVG))[-1]

    assert nested.get("viewBox") == "0 0 37 37"
    rect, path = list(nested)
    assert rect.attrib == {"x": "1", "y": "2", "width": "3", "height": "4", "fill": "#123456"}
    assert path.get("d") == "M5 5h2v2h-2z"


def test_vector_without_border_has_no_border_shape():
    config = StyleConfig(data="x").with_frame(width=0).with_resolution(2048)
    root = _compose_vector(config, ENCODED_SVG)
    rects = [el for el in root if el.tag == f"{SVG}rect"]
    assert len(rects) == 1
    nested = root.find(f"{SVG}svg")
    assert nested.get("x") == "0"
    assert nested.get("width") == "2048"


def test_vector_missing_view_box_falls_back_to_draw_size():
    config = StyleConfig(data="x").with_frame(width=20).with_resolution(1024)
    text = '<svg xmlns="http://www.w3.org/2000/svg"><rect width="1" height="1"/></svg>'
    nested = list(_compose_vector(config, text))[-1]
    assert nested.get("viewBox") == "0 0 887.4667 887.4667"


def test_vector_stroke_radius_is_clamped():
    config = StyleConfig(data="x").with_frame(width=20, radius=4).with_resolution(300)
    border = list(_compose_vector(config, ENCODED_SVG))[1]
    assert border.get("rx") == "0"


@pytest.mark.parametrize("text", ["<svg", "<svg><g></svg>", "not xml at all"])
def test_vector_malformed_input_is_parse_failure(config, text):
    with pytest.raises(ParseFailure):
        _compose_vector(config, text)


def test_vector_non_svg_root_is_parse_failure(config):
    with pytest.raises(ParseFailure):
        _compose_vector(config, "<html><body/></html>")


def test_vector_empty_artifact_is_encoding_failure(config):
    with pytest.raises(EncodingFailure):
        _compose_vector(config, "   ")


def test_vector_real_encoder_output_round_trips(encoder, config):
    geometry = resolve_geometry(config)
    style = EncoderStyle.for_export(config, geometry)
    artifact = encoder.render(style, geometry.qr_size, ArtifactKind.VECTOR)
    encoded_view_box = ET.fromstring(artifact.text).get("viewBox")

    root = _compose_vector(config, artifact.text)
    nested = root.find(f"{SVG}svg")
    assert nested.get("viewBox") == encoded_view_box
    assert len(list(nested)) == len(list(ET.fromstring(artifact.text)))
