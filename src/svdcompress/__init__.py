"""Lossy image compression by truncated singular value decomposition (SVD).

- License - GPL-3.0

Every color channel of an image is treated as a `height x width` matrix and replaced by its best rank-`r`
approximation (in the Eckart-Young sense). From the bottom up, the `svdcompress` package has:

- **pixels** that convert an interleaved 8-bit buffer to one matrix per channel and back again (with rounding
  and clamping to `[0, 255]`),
- **compression** that factorizes a channel matrix into `(U, Σ, Vᵗ)` and builds the rank-`r` approximation, and an
- **image compressor** that runs the channels in parallel (fork-join) and reports per-channel statistics.

The primary top-level object that users of the `svdcompress` package will interact with is the `ImageCompressor`:

```python
from svdcompress import ImageCompressor

compressor = ImageCompressor(rank=20)
result, path = compressor.compress_image('cows.png', 'cows_r20.png')
print(f'PSNR: {result.psnr:.2f} dB, compression ratio: {result.compression_ratio:.2f}')
```

Compressor settings can be loaded and dumped to/from file with the `YamlLoader`, which understands the
`!ImageCompressor` yaml tag.
"""
from abc import ABC as _ABC
from abc import abstractmethod as _abstractmethod
from pathlib import Path as _Path
from typing import Any as _Any

import yaml as _yaml

from svdcompress.compression import Factorization, factorize, truncate
from svdcompress.compressor import ChannelReport, CompressionResult, ImageCompressor, compress_pixels
from svdcompress.exceptions import (FactorizationError, ImageFormatError, InvalidRankError, MalformedBufferError,
                                    SVDCompressError)
from svdcompress.pixels import extract, recombine

__version__ = "0.1.0"
__all__ = ['ImageCompressor', 'CompressionResult', 'ChannelReport', 'compress_pixels', 'Factorization', 'factorize',
           'truncate', 'extract', 'recombine', 'SVDCompressError', 'MalformedBufferError', 'InvalidRankError',
           'ImageFormatError', 'FactorizationError', 'FileLoader', 'YamlLoader']


class FileLoader(_ABC):
    """Common interface for loading and dumping `svdcompress` objects to/from file."""

    @classmethod
    @_abstractmethod
    def load(cls, stream: str | _Path | _Any):
        """Load an `svdcompress` object from a stream. If a file path is given, will attempt to open the file."""
        raise NotImplementedError

    @classmethod
    @_abstractmethod
    def dump(cls, obj, stream: str | _Path | _Any):
        """Save an `svdcompress` object to a stream. If a file path is given, will attempt to write to the file."""
        raise NotImplementedError


class YamlLoader(FileLoader):
    """YAML file loader for `svdcompress` objects."""

    @staticmethod
    def _yaml_loader():
        """Custom YAML loader that includes the `!ImageCompressor` tag."""
        class _Loader(_yaml.SafeLoader):
            pass
        _Loader.add_constructor(ImageCompressor.yaml_tag, ImageCompressor._yaml_constructor)
        return _Loader

    @staticmethod
    def _yaml_dumper():
        """Custom YAML dumper that includes the `!ImageCompressor` tag."""
        class _Dumper(_yaml.SafeDumper):
            pass
        _Dumper.add_representer(ImageCompressor, ImageCompressor._yaml_representer)
        return _Dumper

    @classmethod
    def load(cls, stream):
        try:
            path = _Path(stream)
            if not path.is_file():
                path = path.with_suffix('.yml')
            fd = open(path, 'r', encoding='utf-8')
        except (TypeError, ValueError, OSError):
            if isinstance(stream, _Path):
                raise
            return _yaml.load(stream, Loader=cls._yaml_loader())
        with fd:
            return _yaml.load(fd, Loader=cls._yaml_loader())

    @classmethod
    def dump(cls, obj, stream):
        try:
            fd = open(_Path(stream).with_suffix('.yml'), 'w', encoding='utf-8')
        except (TypeError, ValueError, OSError):
            return _yaml.dump(obj, stream, Dumper=cls._yaml_dumper(), allow_unicode=True, sort_keys=False)
        with fd:
            return _yaml.dump(obj, fd, Dumper=cls._yaml_dumper(), allow_unicode=True, sort_keys=False)
