"""Errors raised by the compression pipeline.

Includes:

- `SVDCompressError` — base class for all package errors
- `MalformedBufferError` — pixel buffer inconsistent with the declared image dimensions
- `InvalidRankError` — target rank is not a positive integer
- `ImageFormatError` — no image encoder matches the output file suffix
- `FactorizationError` — the SVD of a channel could not be computed (or produced non-finite values)
"""
from __future__ import annotations

__all__ = ['SVDCompressError', 'MalformedBufferError', 'InvalidRankError', 'ImageFormatError',
           'FactorizationError']


class SVDCompressError(Exception):
    """Base class for errors raised by `svdcompress`."""


class MalformedBufferError(SVDCompressError, ValueError):
    """The pixel buffer length does not equal `width * height * channels`."""


class InvalidRankError(SVDCompressError, ValueError):
    """The target rank is not a positive integer."""


class ImageFormatError(SVDCompressError, ValueError):
    """No image encoder is registered for the output file suffix."""


class FactorizationError(SVDCompressError, RuntimeError):
    """Numerical failure while factorizing or reconstructing a channel matrix.

    :ivar channel: the index of the failing channel, if known
    """

    def __init__(self, message: str, channel: int = None):
        if channel is not None:
            message = f'Channel {channel}: {message}'
        super().__init__(message)
        self.channel = channel
