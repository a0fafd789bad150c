"""CLI entry point for FreeQR."""

import argparse
import asyncio
import sys
import threading
import time

from freeqr import DEFAULT_RESOLUTION, PREVIEW_SIZE, __version__
from freeqr.config import CornerDotType, CornerSquareType, DotType, ErrorCorrectionLevel


# ---------------------------------------------------------------------------
# Spinner for visual feedback during long exports
# ---------------------------------------------------------------------------

class Spinner:
    """Simple terminal spinner for long-running operations."""

    FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]

    def __init__(self, message: str = "Rendering..."):
        self._message = message
        self._running = False
        self._thread: threading.Thread | None = None

    def start(self) -> "Spinner":
        self._running = True
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join()
        # Clear spinner line
        sys.stderr.write("\r\033[K")
        sys.stderr.flush()

    def _spin(self) -> None:
        idx = 0
        while self._running:
            frame = self.FRAMES[idx % len(self.FRAMES)]
            sys.stderr.write(f"\r  {frame} {self._message}")
            sys.stderr.flush()
            idx += 1
            time.sleep(0.1)


def _choices(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="freeqr",
        description="Styled QR code generator with high-resolution PNG and SVG export.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Geometry flags (--margin, --frame-width, --frame-radius, --logo-margin) are in
preview units: the card is designed at {PREVIEW_SIZE}x{PREVIEW_SIZE} and scaled to --resolution.

Examples:
  # PNG and SVG at the default resolution
  python -m freeqr --data "https://example.com"

  # Framed card with a logo, 1024px PNG only
  python -m freeqr --data "https://example.com" --format png --resolution 1024 \\
    --frame-width 20 --frame-radius 30 --frame-color "#1e40af" --logo logo.png

  # Start from a saved preset and override the payload
  python -m freeqr --config brand.json --data "https://example.com/menu"
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    # Content
    parser.add_argument(
        "--data",
        default=None,
        help="URL or text to encode in the QR code. Default: https://google.com",
    )
    parser.add_argument(
        "--error-correction",
        default=None,
        choices=_choices(ErrorCorrectionLevel),
        help="Error correction level. Default: Q",
    )

    # Output
    parser.add_argument(
        "--format",
        default="both",
        choices=["png", "svg", "both"],
        help="Which artifacts to export. Default: both",
    )
    parser.add_argument(
        "--resolution",
        type=int,
        default=None,
        help=f"Output edge length in pixels. Default: {DEFAULT_RESOLUTION}",
    )
    parser.add_argument(
        "--output-dir", "-o",
        default=".",
        help="Directory to write exports into (default: current directory)",
    )

    # Style
    parser.add_argument("--margin", type=float, default=None, help="Quiet-zone margin. Default: 10")
    parser.add_argument("--dot-type", default=None, choices=_choices(DotType), help="Data module shape. Default: rounded")
    parser.add_argument("--dot-color", default=None, help="Data module color. Default: #000000")
    parser.add_argument("--background", default=None, help="Card background color. Default: #ffffff")
    parser.add_argument(
        "--corner-square-type", default=None, choices=_choices(CornerSquareType),
        help="Finder ring shape. Default: extra-rounded",
    )
    parser.add_argument("--corner-square-color", default=None, help="Finder ring color. Default: #000000")
    parser.add_argument(
        "--corner-dot-type", default=None, choices=_choices(CornerDotType),
        help="Finder center shape. Default: dot",
    )
    parser.add_argument("--corner-dot-color", default=None, help="Finder center color. Default: #000000")

    # Logo
    parser.add_argument("--logo", default=None, help="Image to place in the center of the code")
    parser.add_argument("--logo-margin", type=float, default=None, help="Clear space around the logo. Default: 5")

    # Frame
    parser.add_argument("--frame-width", type=float, default=None, help="Border stroke width. Default: 0")
    parser.add_argument("--frame-radius", type=float, default=None, help="Card corner radius. Default: 20")
    parser.add_argument("--frame-color", default=None, help="Border color. Default: #000000")
    parser.add_argument("--no-frame", action="store_true", help="Do not draw the border stroke")

    # Presets and backends
    parser.add_argument("--config", default=None, help="Load style from a JSON preset")
    parser.add_argument("--save-config", default=None, help="Write the resulting style to a JSON preset")
    parser.add_argument(
        "--encoder",
        default="qrcode",
        choices=["qrcode", "segno"],
        help="QR library used to build the module matrix. Default: qrcode",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Check that the exported PNG decodes (requires pyzbar)",
    )

    return parser


def build_config(args: argparse.Namespace):
    """Layer command-line flags over the preset (or the defaults)."""
    from freeqr.config import StyleConfig, load_preset

    config = load_preset(args.config) if args.config else StyleConfig()

    if args.data is not None:
        config = config.with_data(args.data)
    if args.margin is not None:
        config = config.with_margin(args.margin)
    if args.logo is not None:
        config = config.with_image(args.logo)
    if args.error_correction is not None:
        config = config.with_error_correction(args.error_correction)
    if args.dot_type is not None or args.dot_color is not None:
        config = config.with_dots(color=args.dot_color, type=args.dot_type)
    if args.background is not None:
        config = config.with_background(args.background)
    if args.corner_square_type is not None or args.corner_square_color is not None:
        config = config.with_corners_square(color=args.corner_square_color, type=args.corner_square_type)
    if args.corner_dot_type is not None or args.corner_dot_color is not None:
        config = config.with_corners_dot(color=args.corner_dot_color, type=args.corner_dot_type)
    if args.logo_margin is not None:
        config = config.with_image_options(margin=args.logo_margin)
    # Resolution first so a wide frame is checked against the new size
    if args.resolution is not None:
        config = config.with_resolution(args.resolution)
    config = config.with_frame(
        enabled=False if args.no_frame else None,
        color=args.frame_color,
        width=args.frame_width,
        radius=args.frame_radius,
    )
    return config


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    # Lazy imports for faster --help
    from freeqr.config import save_preset
    from freeqr.encoder import get_encoder
    from freeqr.errors import ExportError
    from freeqr.export import ExportFormat, ExportOrchestrator, FileSaveAction
    from freeqr.geometry import resolve_geometry
    from freeqr.image_utils import VerifyResult, verify_qr_scannable

    print(f"FreeQR v{__version__}")
    print("=" * 50)

    try:
        config = build_config(args)
    except (ValueError, FileNotFoundError) as e:
        print(f"\n  ERROR: {e}", file=sys.stderr)
        return 1

    if args.config:
        print(f"\n  Loaded preset: {args.config}")
    if args.save_config:
        save_preset(config, args.save_config)
        print(f"  ✓ Preset saved: {args.save_config}")

    if args.format == "both":
        formats = [ExportFormat.PNG, ExportFormat.SVG]
    else:
        formats = [ExportFormat(args.format)]

    failures: list = []
    orchestrator = ExportOrchestrator(
        encoder=get_encoder(args.encoder),
        save=FileSaveAction(args.output_dir),
        notify_failure=failures.append,
    )

    print(f"\n  Data:        {config.data}")
    print(f"  Resolution:  {config.download.resolution}px")
    try:
        geometry = resolve_geometry(config)
        print(f"  QR area:     {geometry.qr_size:.2f}px (border {geometry.border_width:.2f}px)")
    except ExportError:
        pass
    print(f"  Encoder:     {orchestrator.encoder.name()}")

    saved: dict = {}
    for step, fmt in enumerate(formats, start=1):
        print(f"\n[{step}/{len(formats)}] Exporting {fmt.value.upper()}...")
        spinner = Spinner(f"Rendering {fmt.value.upper()}...").start()
        start_time = time.time()
        try:
            path = asyncio.run(orchestrator.export(config, fmt))
        finally:
            spinner.stop()

        if path is None:
            for error in failures:
                print(f"  ERROR: {error.code}: {error.details}", file=sys.stderr)
            print("  Failed to generate high-quality export. Please try again.", file=sys.stderr)
            return 1

        elapsed = time.time() - start_time
        print(f"  ✓ Saved: {path} ({elapsed:.1f}s)")
        saved[fmt] = path

    if args.verify and ExportFormat.PNG in saved:
        print("\n  Verifying QR code scannability...")
        result, decoded = verify_qr_scannable(saved[ExportFormat.PNG])
        if result == VerifyResult.SCANNABLE:
            print(f"  ✓ QR code is SCANNABLE! Decoded: {decoded}")
        elif result == VerifyResult.SKIPPED:
            print("  ⊘ Verification skipped (pyzbar not installed)")
            print("    Install with: pip install pyzbar")
        else:
            print("  ⚠️  WARNING: QR code may not be scannable.")
            print("     Check color contrast or raise --error-correction.")

    print("\n✅ Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
