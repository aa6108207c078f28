"""Conversion between interleaved 8-bit pixel buffers and per-channel matrices.

Includes:

- `extract` — split an interleaved pixel buffer into one `float64` matrix per channel
- `recombine` — interleave approximated channel matrices back into a pixel buffer
- `to_samples` — round and clamp a real-valued channel matrix to 8-bit samples
- `count_out_of_range` — count the values that `to_samples` will have to clamp

!!! Note "Matrix orientation"
    Channel matrices are indexed as `(row, col) = (y, x)` and have shape `(height, width)`. Buffers are scanned in
    row-major order (`y` outer, `x` inner) in both `extract` and `recombine`, so
    `recombine(extract(buf, w, h, c)) == buf` for every valid buffer.
"""
from __future__ import annotations

import numpy as np

from svdcompress.exceptions import FactorizationError, MalformedBufferError
from svdcompress.typing import MAX_SAMPLE, PixelBuffer

__all__ = ['extract', 'recombine', 'to_samples', 'count_out_of_range']


def _as_samples(buffer: PixelBuffer) -> np.ndarray:
    """View any supported buffer type as a flat `uint8` array (no copy for bytes-like objects)."""
    if isinstance(buffer, np.ndarray):
        arr = buffer.reshape(-1)
        if arr.dtype == np.uint8:
            return arr
        if not np.issubdtype(arr.dtype, np.integer):
            raise MalformedBufferError(f'Pixel buffer must hold integer samples, not {arr.dtype}.')
        if arr.size and (arr.min() < 0 or arr.max() > MAX_SAMPLE):
            raise MalformedBufferError(f'Pixel buffer samples must lie in [0, {MAX_SAMPLE}].')
        return arr.astype(np.uint8)
    try:
        return np.frombuffer(buffer, dtype=np.uint8)
    except TypeError as e:
        raise MalformedBufferError(f'Cannot read pixel samples from a {type(buffer).__name__}.') from e


def extract(buffer: PixelBuffer, width: int, height: int, channels: int) -> list[np.ndarray]:
    """Split an interleaved pixel buffer into `channels` matrices of shape `(height, width)`.

    :param buffer: `width * height * channels` bytes, one group of `channels` samples per pixel
    :param width: image width in pixels
    :param height: image height in pixels
    :param channels: number of samples per pixel
    :returns: a list of `float64` matrices, one per channel, with values in `[0, 255]`
    :raises MalformedBufferError: if the dimensions are not positive or the buffer length does not match them
    """
    for name, value in (('width', width), ('height', height), ('channels', channels)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
            raise MalformedBufferError(f'Image {name} must be a positive integer, got {value!r}.')

    samples = _as_samples(buffer)
    expected = width * height * channels
    if samples.size != expected:
        raise MalformedBufferError(f'Pixel buffer holds {samples.size} samples, expected {expected} '
                                   f'(width={width}, height={height}, channels={channels}).')

    pixels = samples.reshape(height, width, channels).astype(np.float64)
    return [np.ascontiguousarray(pixels[..., c]) for c in range(channels)]


def to_samples(matrix: np.ndarray) -> np.ndarray:
    """Round a real-valued channel matrix to the nearest integer and clamp it to `[0, 255]`.

    Rounding uses `numpy.rint`, which rounds half-way values to the nearest even integer (`0.5 -> 0`, `1.5 -> 2`,
    `2.5 -> 2`). Clamping happens after rounding, so `-0.4 -> 0` and `255.6 -> 255`.

    :param matrix: the approximated channel matrix
    :returns: a `uint8` array with the same shape as `matrix`
    :raises FactorizationError: if `matrix` holds non-finite values
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if not np.all(np.isfinite(matrix)):
        raise FactorizationError('Approximated channel contains non-finite values.')
    return np.clip(np.rint(matrix), 0, MAX_SAMPLE).astype(np.uint8)


def count_out_of_range(matrix: np.ndarray) -> int:
    """Number of entries of `matrix` that round to a value outside `[0, 255]`."""
    rounded = np.rint(np.asarray(matrix, dtype=np.float64))
    return int(np.count_nonzero((rounded < 0) | (rounded > MAX_SAMPLE)))


def recombine(matrices: list[np.ndarray]) -> bytes:
    """Interleave channel matrices back into a pixel buffer, in the same scan order used by `extract`.

    :param matrices: one `(height, width)` matrix per channel, all of the same shape
    :returns: `height * width * len(matrices)` bytes
    :raises MalformedBufferError: if no matrices are given or their shapes disagree
    :raises FactorizationError: if any matrix holds non-finite values
    """
    if len(matrices) == 0:
        raise MalformedBufferError('Need at least one channel matrix to recombine.')
    shapes = {np.shape(m) for m in matrices}
    if len(shapes) != 1:
        raise MalformedBufferError(f'All channel matrices must share the same shape, got {sorted(shapes)}.')
    if len(shape := shapes.pop()) != 2:
        raise MalformedBufferError(f'Channel matrices must be 2d, got shape {shape}.')

    channels = []
    for i, matrix in enumerate(matrices):
        try:
            channels.append(to_samples(matrix))
        except FactorizationError as e:
            raise FactorizationError('Approximated channel contains non-finite values.', channel=i) from e

    return np.stack(channels, axis=-1).tobytes()
