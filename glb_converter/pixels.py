"""Normalize decoded pixel buffers into tightly packed RGBA8.

Supported source layouts:
- 8-bit unsigned, 1 to 4 channels
- 16-bit unsigned little-endian, 1 to 4 channels (reduced with ``>> 8``)
- 32-bit float, 3 or 4 channels (scaled by 255 and truncated)

Channel expansion is the same for every sample type: one channel is replicated
into RGB, a second channel becomes alpha, and a missing alpha is 255.
"""

from __future__ import annotations

from enum import Enum

import numpy as np

from .errors import MalformedBufferError, UnsupportedPixelFormatError


class PixelFormat(str, Enum):
    R8 = "R8"
    R8G8 = "R8G8"
    R8G8B8 = "R8G8B8"
    R8G8B8A8 = "R8G8B8A8"
    R16 = "R16"
    R16G16 = "R16G16"
    R16G16B16 = "R16G16B16"
    R16G16B16A16 = "R16G16B16A16"
    R32G32B32FLOAT = "R32G32B32FLOAT"
    R32G32B32A32FLOAT = "R32G32B32A32FLOAT"


# (channel count, numpy sample dtype)
FORMAT_LAYOUTS: dict[PixelFormat, tuple[int, str]] = {
    PixelFormat.R8: (1, "u1"),
    PixelFormat.R8G8: (2, "u1"),
    PixelFormat.R8G8B8: (3, "u1"),
    PixelFormat.R8G8B8A8: (4, "u1"),
    PixelFormat.R16: (1, "<u2"),
    PixelFormat.R16G16: (2, "<u2"),
    PixelFormat.R16G16B16: (3, "<u2"),
    PixelFormat.R16G16B16A16: (4, "<u2"),
    PixelFormat.R32G32B32FLOAT: (3, "<f4"),
    PixelFormat.R32G32B32A32FLOAT: (4, "<f4"),
}

RGBA8_STRIDE = 4


def resolve_format(tag: PixelFormat | str) -> PixelFormat:
    if isinstance(tag, PixelFormat):
        return tag
    try:
        return PixelFormat(str(tag).upper())
    except ValueError:
        raise UnsupportedPixelFormatError(f"Unsupported pixel format '{tag}'.") from None


def bytes_per_pixel(fmt: PixelFormat | str) -> int:
    channels, dtype = FORMAT_LAYOUTS[resolve_format(fmt)]
    return channels * np.dtype(dtype).itemsize


def _samples_to_u8(samples: np.ndarray) -> np.ndarray:
    if samples.dtype.kind == "f":
        # No clamping: out-of-range values wrap like an 8-bit integer cast.
        scaled = np.nan_to_num(samples.astype(np.float64) * 255.0, nan=0.0, posinf=0.0, neginf=0.0)
        wrapped = np.fmod(np.trunc(scaled), 256.0).astype(np.int64) % 256
        return wrapped.astype(np.uint8)
    if samples.dtype.itemsize == 2:
        return (samples >> 8).astype(np.uint8)
    return samples.astype(np.uint8, copy=False)


def _expand_channels(pixels: np.ndarray) -> np.ndarray:
    count, channels = pixels.shape
    out = np.full((count, RGBA8_STRIDE), 255, dtype=np.uint8)
    if channels <= 2:
        out[:, 0] = pixels[:, 0]
        out[:, 1] = pixels[:, 0]
        out[:, 2] = pixels[:, 0]
        if channels == 2:
            out[:, 3] = pixels[:, 1]
    else:
        out[:, :channels] = pixels
    return out


def normalize_pixels(
    data: bytes | bytearray | memoryview,
    fmt: PixelFormat | str,
    width: int | None = None,
    height: int | None = None,
) -> bytes:
    pixel_format = resolve_format(fmt)
    channels, dtype = FORMAT_LAYOUTS[pixel_format]
    stride = channels * np.dtype(dtype).itemsize

    raw = bytes(data)
    if len(raw) % stride != 0:
        raise MalformedBufferError(
            f"{pixel_format.value} buffer of {len(raw)} bytes is not a multiple of the {stride}-byte pixel stride."
        )
    pixel_count = len(raw) // stride
    if width is not None and height is not None and pixel_count != width * height:
        raise MalformedBufferError(
            f"{pixel_format.value} buffer holds {pixel_count} pixels, expected {width}x{height}."
        )

    if pixel_format is PixelFormat.R8G8B8A8:
        return raw

    samples = np.frombuffer(raw, dtype=dtype).reshape(pixel_count, channels)
    return _expand_channels(_samples_to_u8(samples)).tobytes()
