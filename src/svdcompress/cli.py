"""Command-line interface for compressing image files.

```shell
svdcompress cows.png -r 20 -o cows_r20.png --spectrum spectrum.png
```

Settings from a `--config` yaml file (an `!ImageCompressor` mapping, or a plain mapping of its fields) are
overridden by any options given on the command line.
"""
from __future__ import annotations

import logging
from pathlib import Path

import click
import matplotlib.pyplot as plt
import yaml
from pydantic import ValidationError

from svdcompress import YamlLoader, __version__
from svdcompress.compressor import ImageCompressor
from svdcompress.exceptions import SVDCompressError
from svdcompress.utils import get_logger

__all__ = ['main']

DEFAULT_RANK = 50


def _load_compressor(config: Path | None, **overrides) -> ImageCompressor:
    """Build an `ImageCompressor` from an optional yaml config file plus command-line overrides."""
    settings = {}
    if config is not None:
        try:
            loaded = YamlLoader.load(config)
        except yaml.YAMLError as e:
            raise click.BadParameter(f'Could not parse {config} as yaml: {e}', param_hint='--config') from e
        if isinstance(loaded, ImageCompressor):
            settings = loaded.serialize()
        elif isinstance(loaded, dict):
            settings = loaded
        elif loaded is not None:
            raise click.BadParameter(f'Expected a mapping of compressor settings, got {type(loaded).__name__}.',
                                     param_hint='--config')
    settings.update({key: value for key, value in overrides.items() if value is not None})
    settings.setdefault('rank', DEFAULT_RANK)
    return ImageCompressor.deserialize(settings)


@click.command()
@click.argument('src', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Output image (defaults to <input>_r<rank>.png).')
@click.option('--rank', '-r', type=int, default=None, help=f'Singular triplets kept per channel [default: {DEFAULT_RANK}].')
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None,
              help='Yaml file with compressor settings.')
@click.option('--workers', '-w', type=int, default=None, help='Number of channels compressed in parallel.')
@click.option('--driver', type=click.Choice(['gesdd', 'gesvd']), default=None, help='LAPACK SVD routine.')
@click.option('--log-file', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Also write the log to this file.')
@click.option('--verbose', '-v', is_flag=True, help='Show debug messages.')
@click.option('--spectrum', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Save a plot of the singular values of each channel to this file.')
@click.version_option(__version__, prog_name='svdcompress')
def main(src, output, rank, config, workers, driver, log_file, verbose, spectrum):
    """Compress the image SRC by keeping the leading singular values of every color channel."""
    logger = get_logger('svdcompress.cli', stdout=True, log_file=log_file,
                        level=logging.DEBUG if verbose else logging.INFO)
    try:
        compressor = _load_compressor(config, rank=rank, max_workers=workers, lapack_driver=driver)
        result, dst = compressor.compress_image(src, output, logger=logger)
    except (SVDCompressError, ValidationError, OSError) as e:
        logger.critical(f'Could not compress "{src}": {e}')
        raise click.ClickException(str(e)) from e

    logger.info(f'Wrote {dst} (rank {result.effective_rank}, PSNR {result.psnr:.2f} dB, '
                f'compression ratio {result.compression_ratio:.2f})')

    if spectrum is not None:
        fig, ax = result.plot_spectrum()
        fig.savefig(spectrum, dpi=150)
        plt.close(fig)
        logger.info(f'Saved singular value spectrum to {spectrum}')


if __name__ == '__main__':
    main()
