"""Image file decoding and encoding with Pillow.

Includes:

- `read_image` — decode an image file into an 8-bit interleaved pixel buffer and its `ImageInfo`
- `write_image` — encode a pixel buffer back to an image file
- `output_format` — the Pillow encoder chosen for an output file suffix
- `mode_for_channels` — the Pillow mode used for a given number of 8-bit channels

Only fixed-width 8-bit modes reach the compression core: `L`, `LA`, `RGB` and `RGBA`. Other images are converted on
read: palette images are expanded to `RGB`/`RGBA`, bilevel images to `L`, 16-bit grayscale images are scaled down to
8 bits, and any other mode is converted to `RGB`.
"""
from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image

from svdcompress.exceptions import ImageFormatError, MalformedBufferError
from svdcompress.typing import ImageInfo, PixelBuffer

__all__ = ['read_image', 'write_image', 'output_format', 'mode_for_channels', 'SUPPORTED_MODES']

SUPPORTED_MODES = {'L': 1, 'LA': 2, 'RGB': 3, 'RGBA': 4}  # mode -> number of channels


def mode_for_channels(channels: int) -> str:
    """Return the Pillow mode for `channels` interleaved 8-bit samples per pixel."""
    for mode, num in SUPPORTED_MODES.items():
        if num == channels:
            return mode
    raise ValueError(f'No 8-bit image mode with {channels} channels. Supported modes: {SUPPORTED_MODES}.')


def output_format(path: str | Path) -> str:
    """Return the Pillow format name for writing to `path`, based on its file suffix.

    :raises ImageFormatError: if no Pillow encoder is registered for the suffix
    """
    suffix = Path(path).suffix.lower()
    fmt = Image.registered_extensions().get(suffix)
    if fmt is None or fmt not in Image.SAVE:
        raise ImageFormatError(f"Cannot write '{Path(path).name}': no image encoder for the suffix '{suffix}'.")
    return fmt


def _to_8bit(img: Image.Image) -> Image.Image:
    """Convert a decoded image to one of the `SUPPORTED_MODES`."""
    mode = img.mode
    if mode in SUPPORTED_MODES:
        return img
    elif mode == 'P':
        return img.convert('RGBA' if 'transparency' in img.info else 'RGB')
    elif mode == 'PA':
        return img.convert('RGBA')
    elif mode == '1':
        return img.convert('L')
    elif mode.startswith('I'):
        # 16-bit grayscale (PNG opens these as I;16 or I depending on the Pillow version)
        arr = np.asarray(img).astype(np.int64)
        if mode.startswith('I;16') or arr.max(initial=0) > 255:
            arr = np.clip(arr, 0, 65535) >> 8
        return Image.fromarray(arr.astype(np.uint8))
    else:
        return img.convert('RGB')


def read_image(path: str | Path) -> tuple[bytes, ImageInfo]:
    """Decode an image file.

    :param path: the image file to read
    :returns: the interleaved 8-bit pixel buffer (row by row from the top-left pixel) and the `ImageInfo` needed to
              interpret and re-encode it
    """
    with Image.open(Path(path)) as img:
        img.load()
        img = _to_8bit(img)
        info = ImageInfo(width=img.width, height=img.height, channels=SUPPORTED_MODES[img.mode], mode=img.mode,
                         bit_depth=8)
        return img.tobytes(), info


def write_image(path: str | Path, buffer: PixelBuffer, info: ImageInfo, **save_kwargs) -> Path:
    """Encode a pixel buffer to an image file. The format is inferred from the file suffix by Pillow.

    :param path: the image file to write
    :param buffer: `width * height * channels` interleaved 8-bit samples
    :param info: the `ImageInfo` describing the buffer; if `mode` is missing it is inferred from `channels`
    :param save_kwargs: extra options for the Pillow encoder (e.g. `optimize=True`)
    :returns: the path of the written file
    :raises MalformedBufferError: if the buffer length does not match `info`
    :raises ImageFormatError: if no encoder matches the file suffix (and no `format` is passed in `save_kwargs`)
    """
    width, height, channels = info['width'], info['height'], info['channels']
    mode = info.get('mode') or mode_for_channels(channels)
    if SUPPORTED_MODES.get(mode) != channels:
        raise ValueError(f"Image mode '{mode}' does not hold {channels} channel(s).")

    data = buffer.astype(np.uint8).tobytes() if isinstance(buffer, np.ndarray) else bytes(buffer)
    if len(data) != width * height * channels:
        raise MalformedBufferError(f'Pixel buffer holds {len(data)} samples, expected {width * height * channels} '
                                   f'(width={width}, height={height}, channels={channels}).')

    path = Path(path)
    if save_kwargs.get('format') is None:
        save_kwargs['format'] = output_format(path)
    Image.frombytes(mode, (width, height), data).save(path, **save_kwargs)
    return path
