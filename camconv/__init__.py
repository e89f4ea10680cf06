"""Conversions of raw camera frames to JPEG, BMP and packed 24-bit pixels."""

__version__ = "0.1.0"
__all__ = ["formats", "yuv", "jpeg_tables", "jpeg_encoder", "to_jpg", "to_bmp"]