"""Module with type hints for the `svdcompress` package.

Includes:

- `PixelBuffer` — anything that can be viewed as a flat sequence of 8-bit samples
- `ImageInfo` — dimensions and layout of a decoded image, as passed between the codec and the core
- `MAX_SAMPLE` — the largest 8-bit sample value
"""
from typing import Union as _Union

import numpy as _np
from typing_extensions import TypedDict as _TypedDict

__all__ = ["PixelBuffer", "ImageInfo", "MAX_SAMPLE"]

MAX_SAMPLE = 255  # Samples are 8-bit unsigned integers

PixelBuffer = _Union[bytes, bytearray, memoryview, _np.ndarray]


class ImageInfo(_TypedDict):
    """Layout of a decoded image. The pixel buffer that goes along with it holds `channels` interleaved samples per
    pixel, scanned row by row from the top-left corner.

    :ivar width: number of pixels per row
    :ivar height: number of rows
    :ivar channels: number of samples per pixel (e.g. 3 for RGB)
    :ivar mode: the Pillow mode string used to encode the buffer again (e.g. `RGB`, `LA`)
    :ivar bit_depth: bits per sample as seen by the core (always 8)
    """
    width: int
    height: int
    channels: int
    mode: str
    bit_depth: int
