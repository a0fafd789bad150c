"""FreeQR — styled QR codes with high-resolution PNG and SVG export."""

__version__ = "1.0.0"

# Shared constants
PREVIEW_SIZE = 300  # Preview-space base size; all style geometry is in these units
DEFAULT_RESOLUTION = 2048
MAX_QR_DATA_LENGTH = 2953  # Max bytes at QR version 40, EC level L
FILENAME_PREFIX = "FreeQR"
