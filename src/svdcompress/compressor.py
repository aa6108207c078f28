"""Low-rank compression of whole images. This is the main entry point of the package.

Includes:

- `ImageCompressor` — validated compression settings plus the per-channel fork-join pipeline
- `CompressionResult` — the compressed pixel buffer along with per-channel statistics
- `ChannelReport` — statistics for a single channel (singular values, retained energy, errors)
- `compress_pixels` — functional shortcut returning only the compressed pixel buffer

Every channel goes through `extract → factorize → truncate` on its own, so channels are submitted as independent
tasks to a `concurrent.futures.Executor` and joined before `recombine`. A failure on any channel fails the whole
image; no partial buffer is ever returned.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ALL_COMPLETED, Executor, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, ClassVar, Literal, Optional

import matplotlib.pyplot as plt
import numpy as np
import yaml
from pydantic import BaseModel, ConfigDict, Field

from svdcompress import io
from svdcompress.compression import Factorization, factorize, truncate
from svdcompress.exceptions import FactorizationError
from svdcompress.pixels import count_out_of_range, extract, recombine, to_samples
from svdcompress.serialize import Serializable
from svdcompress.typing import MAX_SAMPLE, PixelBuffer
from svdcompress.utils import check_rank, get_logger, mean_squared_error, psnr, relative_error

__all__ = ['ImageCompressor', 'CompressionResult', 'ChannelReport', 'compress_pixels']


@dataclass
class ChannelReport:
    """Statistics for one compressed channel.

    :ivar index: position of the channel within each pixel
    :ivar singular_values: all singular values of the channel matrix (descending)
    :ivar effective_rank: the number of singular triplets actually kept
    :ivar energy: fraction of `sum(Σ²)` kept by the truncation
    :ivar relative_error: relative L2 error of the real-valued approximation (`nan` for an all-zero channel)
    :ivar mse: mean squared error of the final 8-bit samples against the original samples
    :ivar clipped: number of samples that had to be clamped into `[0, 255]`
    """
    index: int
    singular_values: np.ndarray = field(repr=False)
    effective_rank: int
    energy: float
    relative_error: float
    mse: float
    clipped: int


@dataclass
class CompressionResult:
    """The output of `ImageCompressor.compress`.

    :ivar buffer: the compressed pixel buffer, same length and layout as the input buffer
    :ivar width: image width in pixels
    :ivar height: image height in pixels
    :ivar channels: number of samples per pixel
    :ivar rank: the requested rank
    :ivar effective_rank: the rank after clamping to `min(width, height)`
    :ivar reports: one `ChannelReport` per channel, in channel order
    :ivar original: the input pixel samples (used for whole-image error metrics)
    """
    buffer: bytes = field(repr=False)
    width: int
    height: int
    channels: int
    rank: int
    effective_rank: int
    reports: list[ChannelReport] = field(default_factory=list, repr=False)
    original: np.ndarray = field(default=None, repr=False)

    @property
    def lossless(self) -> bool:
        """Whether the requested rank reaches the full rank `min(width, height)` of every channel."""
        return self.effective_rank >= min(self.width, self.height)

    @property
    def storage_size(self) -> int:
        """Number of floats needed to store the truncated factors of all channels."""
        return self.channels * self.effective_rank * (self.width + self.height + 1)

    @property
    def compression_ratio(self) -> float:
        """Number of raw samples divided by the number of stored factor entries (> 1 means a smaller representation)."""
        return self.width * self.height * self.channels / self.storage_size

    @property
    def mse(self) -> float:
        """Mean squared error over all samples of the image."""
        return float(mean_squared_error(np.frombuffer(self.buffer, dtype=np.uint8), self.original))

    @property
    def psnr(self) -> float:
        """Peak signal-to-noise ratio (dB) over all samples of the image."""
        return psnr(np.frombuffer(self.buffer, dtype=np.uint8), self.original)

    def to_array(self) -> np.ndarray:
        """The compressed image as a `(height, width, channels)` `uint8` array."""
        return np.frombuffer(self.buffer, dtype=np.uint8).reshape(self.height, self.width, self.channels)

    def plot_spectrum(self, labels: list[str] = None, log_scale: bool = True):
        """Plot the singular values of each channel and mark the truncation rank.

        :param labels: a legend label for each channel (defaults to `channel 0`, `channel 1`, ...)
        :param log_scale: whether to use a log scale for the singular values
        :returns: `fig, ax` with the spectrum plot
        """
        labels = labels or [f'channel {report.index}' for report in self.reports]
        fig, ax = plt.subplots(figsize=(6, 5), layout='tight')
        for report, label in zip(self.reports, labels):
            sv = report.singular_values
            ax.plot(np.arange(1, len(sv) + 1), sv, '-', label=label)
        ax.axvline(self.effective_rank, color='k', linestyle='--', linewidth=1, label=f'rank = {self.effective_rank}')
        if log_scale:
            ax.set_yscale('log')
        ax.set_xlabel('Index')
        ax.set_ylabel('Singular value')
        ax.legend()
        return fig, ax


def _compress_channel(index: int, matrix: np.ndarray, rank: int, lapack_driver: str) -> tuple[np.ndarray, ChannelReport]:
    """Factorize and truncate a single channel; returns the approximated matrix and its report."""
    try:
        factorization: Factorization = factorize(matrix, lapack_driver=lapack_driver)
        approx = truncate(factorization, rank)
        samples = to_samples(approx)
    except FactorizationError as e:
        raise FactorizationError(str(e), channel=index) from e

    report = ChannelReport(index=index,
                           singular_values=factorization.s,
                           effective_rank=factorization.effective_rank(rank),
                           energy=factorization.energy(rank),
                           relative_error=float(relative_error(approx, matrix)),
                           mse=float(mean_squared_error(samples, matrix)),
                           clipped=count_out_of_range(approx))
    return approx, report


class ImageCompressor(BaseModel, Serializable):
    """Compress images by keeping the leading `rank` singular triplets of every color channel.

    An `ImageCompressor` can be saved/loaded from `.yml` files using the `!ImageCompressor` yaml tag.

    !!! Example
        ```python
        compressor = ImageCompressor(rank=20)
        result = compressor.compress(pixels, width=640, height=480, channels=3)
        print(result.psnr, result.compression_ratio)
        ```

    :ivar name: the name of the compressor (also used as the logger name)
    :ivar rank: the default number of singular triplets kept per channel, must be a positive integer (otherwise
                `InvalidRankError` is raised on construction or assignment); ranks larger than `min(width, height)`
                are clamped and give a lossless reconstruction
    :ivar max_workers: number of threads used to compress channels in parallel (defaults to one per channel);
                       set to 1 to compress channels sequentially
    :ivar lapack_driver: the LAPACK SVD routine, `gesdd` (fast) or `gesvd` (robust)

    :ivar _logger: logger object for the compressor
    """
    yaml_tag: ClassVar[str] = u'!ImageCompressor'
    model_config = ConfigDict(validate_assignment=True, arbitrary_types_allowed=True, validate_default=True)

    name: str = 'svdcompress'
    rank: int = 50
    max_workers: Optional[Annotated[int, Field(gt=0)]] = None
    lapack_driver: Literal['gesdd', 'gesvd'] = 'gesdd'

    _logger: Optional[logging.Logger] = None

    def __init__(self, /, **kwargs):
        if 'rank' in kwargs:
            kwargs['rank'] = check_rank(kwargs['rank'])
        super().__init__(**kwargs)

    def __setattr__(self, name, value):
        if name == 'rank':
            value = check_rank(value)
        super().__setattr__(name, value)

    @property
    def logger(self) -> logging.Logger:
        if self._logger is None:
            self._logger = get_logger(self.name, stdout=False)
        return self._logger

    @logger.setter
    def logger(self, logger: logging.Logger):
        self._logger = logger

    def set_logger(self, log_file: str | Path = None, stdout: bool = False, logger: logging.Logger = None,
                   level: int = logging.INFO):
        """Set a new `logging.Logger` object.

        :param log_file: log to this file (optional)
        :param stdout: whether to connect the logger to console
        :param logger: the logging object to use (this overrides the `log_file` and `stdout` arguments if set)
        :param level: the logging level to set the logger to (defaults to `logging.INFO`)
        """
        self._logger = logger or get_logger(self.name, log_file=log_file, stdout=stdout, level=level)

    def compress(self, buffer: PixelBuffer, width: int, height: int, channels: int, rank: int = None,
                 executor: Executor = None, logger: logging.Logger = None) -> CompressionResult:
        """Compress an interleaved 8-bit pixel buffer.

        :param buffer: `width * height * channels` samples, one group of `channels` samples per pixel, row by row
        :param width: image width in pixels
        :param height: image height in pixels
        :param channels: number of samples per pixel
        :param rank: override the compressor's `rank` for this call only
        :param executor: a `concurrent.futures.Executor` to run the channels on (optional; by default a thread pool
                         is created for the duration of this call)
        :param logger: a logger used for this call only (defaults to `self.logger`)
        :returns: the `CompressionResult`, whose `buffer` has the same length and layout as the input
        :raises InvalidRankError: if the rank is not a positive integer (checked before any other work)
        :raises MalformedBufferError: if the buffer does not match the given dimensions
        :raises FactorizationError: if any channel cannot be factorized
        """
        logger = logger or self.logger
        rank = check_rank(self.rank if rank is None else rank)

        t1 = time.time()
        matrices = extract(buffer, width, height, channels)
        original = np.stack(matrices, axis=-1).reshape(-1)
        logger.info(f'Extracted {channels} channel(s) of shape {(height, width)} in {time.time() - t1:.3f} s')

        effective_rank = min(rank, width, height)
        if effective_rank < rank:
            logger.debug(f'Rank {rank} exceeds min(width, height) = {effective_rank}; clamping to {effective_rank}')

        t1 = time.time()
        results = self._run_channels(matrices, rank, executor, logger)
        logger.info(f'Factorized and truncated {channels} channel(s) at rank {effective_rank} '
                    f'in {time.time() - t1:.3f} s')

        approximations = [approx for approx, _ in results]
        reports = [report for _, report in results]
        for report in reports:
            logger.debug(f'Channel {report.index}: energy kept {report.energy:.6f}, '
                         f'relative error {report.relative_error:.3e}')
            if report.clipped > 0:
                logger.warning(f'Channel {report.index}: clamped {report.clipped} sample(s) into [0, {MAX_SAMPLE}]')

        t1 = time.time()
        out = recombine(approximations)
        logger.info(f'Recombined {len(out)} bytes in {time.time() - t1:.3f} s')

        return CompressionResult(buffer=out, width=width, height=height, channels=channels, rank=rank,
                                 effective_rank=effective_rank, reports=reports, original=original)

    def _run_channels(self, matrices: list[np.ndarray], rank: int, executor: Executor | None,
                      logger: logging.Logger) -> list[tuple[np.ndarray, ChannelReport]]:
        """Fork one task per channel and join them all; re-raise the first channel error after the join."""
        if executor is None and (self.max_workers == 1 or len(matrices) == 1):
            try:
                return [_compress_channel(i, m, rank, self.lapack_driver) for i, m in enumerate(matrices)]
            except Exception:
                logger.error('Compression failed; no output will be produced.', exc_info=True)
                raise

        if executor is None:
            with ThreadPoolExecutor(max_workers=self.max_workers or len(matrices)) as pool:
                return self._run_channels(matrices, rank, pool, logger)

        futures = [executor.submit(_compress_channel, i, m, rank, self.lapack_driver) for i, m in enumerate(matrices)]
        wait(futures, timeout=None, return_when=ALL_COMPLETED)

        results = []
        for fs in futures:
            try:
                results.append(fs.result())
            except Exception:
                logger.error('Compression failed; no output will be produced.', exc_info=True)
                raise
        return results

    def compress_image(self, src: str | Path, dst: str | Path = None, rank: int = None, executor: Executor = None,
                       logger: logging.Logger = None) -> tuple[CompressionResult, Path]:
        """Read an image file, compress it, and write the result. Nothing is written if compression fails.

        :param src: path to the input image
        :param dst: path to the output image (defaults to `<src stem>_r<rank>.png` next to `src`)
        :param rank: override the compressor's `rank` for this call only
        :param executor: a `concurrent.futures.Executor` to run the channels on (optional)
        :param logger: a logger used for this call only (defaults to `self.logger`)
        :returns: the `CompressionResult` and the path of the written image
        :raises ImageFormatError: if `dst` has no known image suffix (checked before reading `src`)
        """
        logger = logger or self.logger
        rank = check_rank(self.rank if rank is None else rank)
        src = Path(src)
        dst = Path(dst) if dst is not None else src.with_name(f'{src.stem}_r{rank}.png')
        io.output_format(dst)

        logger.info(f'Decoding image {src}')
        buffer, info = io.read_image(src)
        logger.debug(f'Image info: {info}')

        result = self.compress(buffer, info['width'], info['height'], info['channels'], rank=rank,
                               executor=executor, logger=logger)

        logger.info(f'Encoding and saving image to {dst}')
        io.write_image(dst, result.buffer, info)
        return result, dst

    def serialize(self) -> dict:
        """Convert to a `dict` with only standard Python types for fields."""
        return {key: value for key, value in self.__dict__.items() if value is not None and not key.startswith('_')}

    @classmethod
    def deserialize(cls, serialized_data: dict) -> ImageCompressor:
        """Return an `ImageCompressor` from `dict` data. Let pydantic handle field validation and conversion."""
        if isinstance(serialized_data, ImageCompressor):
            return serialized_data
        return cls(**serialized_data)

    @staticmethod
    def _yaml_representer(dumper: yaml.Dumper, data: ImageCompressor) -> yaml.MappingNode:
        """Convert an `ImageCompressor` object (`data`) to a yaml MappingNode (i.e. a `dict`)."""
        return dumper.represent_mapping(ImageCompressor.yaml_tag, data.serialize())

    @staticmethod
    def _yaml_constructor(loader: yaml.Loader, node):
        """Convert the `!ImageCompressor` tag in yaml to an `ImageCompressor` object."""
        if isinstance(node, yaml.MappingNode):
            return ImageCompressor.deserialize(loader.construct_mapping(node, deep=True))
        elif isinstance(node, yaml.ScalarNode) and loader.construct_scalar(node) == '':
            return ImageCompressor()
        else:
            raise NotImplementedError(f'The "{ImageCompressor.yaml_tag}" yaml tag can only be used on a yaml '
                                      f'mapping, not a "{type(node)}".')


def compress_pixels(buffer: PixelBuffer, width: int, height: int, channels: int, rank: int, **kwargs) -> bytes:
    """Compress a pixel buffer at the given rank and return only the new pixel buffer.

    :param kwargs: extra settings for the `ImageCompressor` (e.g. `max_workers`, `lapack_driver`)
    """
    return ImageCompressor(rank=rank, **kwargs).compress(buffer, width, height, channels).buffer
