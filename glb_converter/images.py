from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from .document import SceneDocument, decode_data_uri
from .errors import ImageDecodeError
from .pixels import PixelFormat, normalize_pixels


PIL_MODE_FORMATS: dict[str, PixelFormat] = {
    "L": PixelFormat.R8,
    "LA": PixelFormat.R8G8,
    "RGB": PixelFormat.R8G8B8,
    "RGBA": PixelFormat.R8G8B8A8,
    "I;16": PixelFormat.R16,
    "I;16L": PixelFormat.R16,
    "I;16B": PixelFormat.R16,
}


@dataclass
class ImageAsset:
    index: int
    width: int
    height: int
    pixels: bytes

    def metadata(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}


def raw_pixels(img: Image.Image) -> tuple[bytes, PixelFormat]:
    """Raw sample bytes of a decoded image plus the matching ``PixelFormat``.

    Modes without a direct format are converted to RGBA by Pillow.
    """
    fmt = PIL_MODE_FORMATS.get(img.mode)
    if fmt is None:
        return img.convert("RGBA").tobytes(), PixelFormat.R8G8B8A8
    data = img.tobytes()
    if img.mode == "I;16B":
        data = np.frombuffer(data, dtype=">u2").astype("<u2").tobytes()
    return data, fmt


def decode_encoded_image(index: int, encoded: bytes) -> ImageAsset:
    try:
        with Image.open(io.BytesIO(encoded)) as img:
            img.load()
            data, fmt = raw_pixels(img)
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Image {index}: cannot decode embedded data: {exc}") from exc
    return ImageAsset(index=index, width=width, height=height, pixels=normalize_pixels(data, fmt, width, height))


def decode_external_image(index: int, document: SceneDocument, uri: str) -> ImageAsset:
    path = document.resolve_uri(uri)
    try:
        with Image.open(path) as img:
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Image {index}: cannot open '{uri}': {exc}") from exc
    width, height = rgba.size
    return ImageAsset(index=index, width=width, height=height, pixels=rgba.tobytes())


def load_image(document: SceneDocument, index: int) -> ImageAsset:
    image = (document.gltf.images or [])[index]
    if image.bufferView is not None:
        return decode_encoded_image(index, document.buffer_view_bytes(image.bufferView))
    if image.uri:
        if image.uri.startswith("data:"):
            return decode_encoded_image(index, decode_data_uri(image.uri))
        return decode_external_image(index, document, image.uri)
    raise ImageDecodeError(f"Image {index} has neither a buffer view nor a URI.")
