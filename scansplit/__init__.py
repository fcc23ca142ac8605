"""scansplit - find and crop the individual photos on a scanned page."""

__version__ = "0.1.0"
