"""Provides some basic utilities for the package.

Includes:

- `check_rank` — validate a target rank before any work is done
- `relative_error` — compute the relative L2 error between two arrays
- `mean_squared_error` — compute the mean squared error between two arrays
- `psnr` — peak signal-to-noise ratio of an 8-bit reconstruction
- `get_logger` — logging utility with nice formatting
"""
from __future__ import annotations

import logging
import numbers
import sys
from pathlib import Path

import numpy as np

from svdcompress.exceptions import InvalidRankError
from svdcompress.typing import MAX_SAMPLE

__all__ = ['check_rank', 'relative_error', 'mean_squared_error', 'psnr', 'get_logger']

LOG_FORMATTER = logging.Formatter(u"%(asctime)s — [%(levelname)s] — %(name)-15s — %(message)s")


def check_rank(rank) -> int:
    """Return `rank` as an `int` if it is a positive integer, otherwise raise `InvalidRankError`."""
    if isinstance(rank, bool) or not isinstance(rank, numbers.Integral):
        raise InvalidRankError(f'Rank must be a positive integer, got {rank!r}.')
    if rank <= 0:
        raise InvalidRankError(f'Rank must be a positive integer, got {rank}.')
    return int(rank)


def relative_error(pred, targ, axis=None, skip_nan=False):
    """Compute the relative L2 error between two arrays along the given axis. Returns `nan` if the target is
    identically zero.

    :param pred: the predicted values
    :param targ: the target values
    :param axis: the axis along which to compute the error
    :param skip_nan: whether to skip NaN values in the error calculation
    :returns: the relative L2 error
    """
    pred = np.asarray(pred, dtype=np.float64)
    targ = np.asarray(targ, dtype=np.float64)
    with np.errstate(divide='ignore', invalid='ignore'):
        sum_func = np.nansum if skip_nan else np.sum
        err = np.sqrt(sum_func((pred - targ)**2, axis=axis) / sum_func(targ**2, axis=axis))
    return np.nan_to_num(err, nan=np.nan, posinf=np.nan, neginf=np.nan)


def mean_squared_error(pred, targ, axis=None) -> float | np.ndarray:
    """Mean squared error between `pred` and `targ` (computed in float64, so `uint8` inputs do not wrap)."""
    diff = np.asarray(pred, dtype=np.float64) - np.asarray(targ, dtype=np.float64)
    return np.mean(diff ** 2, axis=axis)


def psnr(pred, targ, peak: float = MAX_SAMPLE) -> float:
    """Peak signal-to-noise ratio in dB. Returns `inf` for an exact reconstruction."""
    mse = float(mean_squared_error(pred, targ))
    if mse == 0:
        return float('inf')
    return float(10 * np.log10(peak ** 2 / mse))


def get_logger(name: str, stdout: bool = True, log_file: str | Path = None,
               level: int = logging.INFO) -> logging.Logger:
    """Return a file/stdout logger with the given name. Any handlers already attached to the named logger are
    replaced, so calling this twice with the same name does not duplicate output.

    :param name: the name of the logger to return
    :param stdout: whether to add a stdout stream handler to the logger
    :param log_file: add file logging to this file (optional)
    :param level: the logging level to set
    :returns: the logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    if stdout:
        std_handler = logging.StreamHandler(sys.stdout)
        std_handler.setFormatter(LOG_FORMATTER)
        logger.addHandler(std_handler)
    if log_file is not None:
        f_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        f_handler.setLevel(level)
        f_handler.setFormatter(LOG_FORMATTER)
        logger.addHandler(f_handler)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger
