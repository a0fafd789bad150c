"""Error types raised inside the export pipeline."""


class ExportError(Exception):
    """Base exception for export failures.

    Each subclass carries a stable ``code`` suitable for mapping to a
    user message.

    Args:
        details: Optional technical details for logs.
    """

    code = "export_failed"

    def __init__(self, details: str = "") -> None:
        super().__init__(f"{self.code}: {details}" if details else self.code)
        self.details = details


class InvalidGeometry(ExportError):
    """Scaled dimensions leave no drawable area for the QR symbol."""

    code = "invalid_geometry"


class EncodingFailure(ExportError):
    """The symbol encoder produced no usable artifact."""

    code = "encoding_failure"


class SurfaceFailure(ExportError):
    """A drawing surface could not be allocated at the target size."""

    code = "surface_failure"


class ParseFailure(ExportError):
    """Vector content returned by the encoder could not be parsed."""

    code = "parse_failure"


class SaveFailure(ExportError):
    """The finished artifact could not be written."""

    code = "save_failure"
