"""Sanity checks on bitmap info headers against overflows and overruns."""

from __future__ import annotations

from dataclasses import dataclass

BI_RGB = 0
BI_BITFIELDS = 3

BITMAPINFOHEADER_SIZE = 40
RGBQUAD_SIZE = 4
DWORD_SIZE = 4

_MASK32 = 0xFFFFFFFF
_MAX_IMAGE = 0x40000000


@dataclass
class BitmapInfoHeader:
    """The fields of a BITMAPINFOHEADER."""

    size: int = BITMAPINFOHEADER_SIZE
    width: int = 0
    height: int = 0
    planes: int = 1
    bit_count: int = 0
    compression: int = BI_RGB
    size_image: int = 0
    x_pels_per_meter: int = 0
    y_pels_per_meter: int = 0
    clr_used: int = 0
    clr_important: int = 0


def multiply_check_overflow(a: int, b: int) -> int | None:
    """Product of two 32-bit unsigned values, or None if it overflows 32 bits."""
    a &= _MASK32
    b &= _MASK32
    product = (a * b) & _MASK32
    if a == 0 or product // a == b:
        return product
    return None


def validate_bitmap_info_header(header: BitmapInfoHeader, size: int) -> bool:
    """Whether ``header``, held in a block of ``size`` bytes, is safe to use.

    This is not a complete check; it guards against size calculations
    overflowing, oversized palettes and a header larger than its block.
    """
    if size < BITMAPINFOHEADER_SIZE or not BITMAPINFOHEADER_SIZE <= header.size <= 4096:
        return False

    if header.width == 0 or header.height == 0:
        return False

    bpp = 200
    if header.bit_count > bpp:
        return False

    height = abs(header.height) & _MASK32

    width_in_bits = multiply_check_overflow(bpp, header.width & _MASK32)
    if width_in_bits is None:
        return False

    width_in_bytes = (width_in_bits // 8 + 3) & ~3 & _MASK32

    size_image = multiply_check_overflow(width_in_bytes, height)
    if size_image is None:
        return False

    if size_image > _MAX_IMAGE or header.size_image > _MAX_IMAGE:
        return False

    if header.clr_used > 256:
        return False

    if header.clr_used == 0 and 0 < header.bit_count <= 8:
        clr_used = 1 << header.bit_count
    else:
        clr_used = header.clr_used

    masks = 3 * DWORD_SIZE if header.compression == BI_BITFIELDS else 0
    if size < header.size + clr_used * RGBQUAD_SIZE + masks:
        return False

    if header.compression in (BI_RGB, BI_BITFIELDS) and header.size_image != 0:
        bits = ((header.width & _MASK32) * (header.bit_count & _MASK32)) & _MASK32
        stride = (((bits + 31) & ~31) & _MASK32) // 8
        total = (height * stride) & _MASK32
        if total > header.size_image:
            return False

    return True