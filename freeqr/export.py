"""Export orchestration: single-flight pipeline from style snapshot to saved file.

Pipeline order for one export is fixed: resolve geometry, request the
symbol from the encoder, composite, save. The orchestrator suspends only
while the encoder renders, while a raster symbol is decoded, and while the
save action runs.
"""

import asyncio
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable

from freeqr import FILENAME_PREFIX
from freeqr.compositor import RasterCompositor, VectorCompositor
from freeqr.config import StyleConfig
from freeqr.encoder import EncoderStyle, SymbolEncoder, get_encoder
from freeqr.errors import ExportError, SaveFailure
from freeqr.geometry import resolve_geometry


class ExportState(Enum):
    IDLE = "idle"
    EXPORTING = "exporting"


class ExportFormat(Enum):
    PNG = "png"
    SVG = "svg"

    @property
    def extension(self) -> str:
        return self.value


@dataclass(frozen=True)
class ExportArtifact:
    """Final payload of one export, consumed once by the save action."""

    format: ExportFormat
    resolution: int
    payload: bytes


def export_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC instant with ``:`` and ``.`` replaced by ``-``.

    ``2026-10-17T12:34:56.789Z`` becomes ``2026-10-17T12-34-56-789Z``.
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def export_filename(fmt: ExportFormat, now: datetime | None = None) -> str:
    return f"{FILENAME_PREFIX}-{export_timestamp(now)}.{fmt.extension}"


SaveAction = Callable[[ExportArtifact], Awaitable[str]]


class FileSaveAction:
    """Writes artifacts into a directory using the export filename convention."""

    def __init__(self, output_dir: str = "."):
        self.output_dir = output_dir

    async def __call__(self, artifact: ExportArtifact) -> str:
        path = os.path.join(self.output_dir, export_filename(artifact.format))
        try:
            await asyncio.to_thread(self._write, path, artifact.payload)
        except OSError as e:
            raise SaveFailure(f"could not write {path}: {e}")
        return path

    @staticmethod
    def _write(path: str, payload: bytes) -> None:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        try:
            with open(path, "wb") as f:
                f.write(payload)
        except OSError:
            # Never leave a truncated file behind
            if os.path.exists(path):
                os.unlink(path)
            raise


def _print_failure(error: ExportError) -> None:
    print(f"  ERROR: export failed ({error.code}): {error.details}", file=sys.stderr)


def _print_log(message: str) -> None:
    print(f"  {message}", file=sys.stderr)


class ExportOrchestrator:
    """Runs at most one export at a time.

    A request made while another export is in flight is rejected and
    returns ``None`` immediately; it is never queued. Pipeline errors are
    reported once through ``notify_failure`` and never propagate; anything
    outside the ExportError taxonomy is reported as a plain ExportError.
    No file is saved for a failed export.

    Args:
        encoder: Symbol encoder used for every export.
        save: Coroutine that persists an artifact and returns its location.
        notify_failure: Called with the error when an export fails.
        log: Called with a message when a request is rejected.
    """

    def __init__(
        self,
        encoder: SymbolEncoder | None = None,
        save: SaveAction | None = None,
        notify_failure: Callable[[ExportError], None] = _print_failure,
        log: Callable[[str], None] = _print_log,
    ):
        self.encoder = encoder or get_encoder()
        self.save = save or FileSaveAction()
        self.notify_failure = notify_failure
        self.log = log
        self.state = ExportState.IDLE
        self._compositors = {
            ExportFormat.PNG: RasterCompositor(),
            ExportFormat.SVG: VectorCompositor(),
        }

    @property
    def busy(self) -> bool:
        return self.state is ExportState.EXPORTING

    async def export_raster(self, config: StyleConfig) -> str | None:
        """Export ``config`` as a PNG at its configured resolution."""
        return await self.export(config, ExportFormat.PNG)

    async def export_vector(self, config: StyleConfig) -> str | None:
        """Export ``config`` as an SVG at its configured resolution."""
        return await self.export(config, ExportFormat.SVG)

    async def export(self, config: StyleConfig, fmt: ExportFormat) -> str | None:
        """Run one export.

        Returns:
            The saved location, or None if the request was rejected or failed.
        """
        # Check-and-set before the first await keeps the flag race-free
        if self.state is ExportState.EXPORTING:
            self.log(f"Export already in progress; {fmt.value} request ignored")
            return None
        self.state = ExportState.EXPORTING

        try:
            artifact = await self._build(config, fmt)
            return await self.save(artifact)
        except ExportError as e:
            self.notify_failure(e)
            return None
        except Exception as e:
            self.notify_failure(ExportError(f"unexpected {type(e).__name__}: {e}"))
            return None
        finally:
            self.state = ExportState.IDLE

    async def _build(self, snapshot: StyleConfig, fmt: ExportFormat) -> ExportArtifact:
        compositor = self._compositors[fmt]
        geometry = resolve_geometry(snapshot)
        style = EncoderStyle.for_export(snapshot, geometry)
        symbol = await asyncio.to_thread(self.encoder.render, style, geometry.qr_size, compositor.kind)
        payload = await compositor.compose(snapshot, geometry, symbol)
        return ExportArtifact(format=fmt, resolution=geometry.resolution, payload=payload)
