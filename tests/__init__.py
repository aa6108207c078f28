"""Tests for the `svdcompress` package. Ordered according to the following hierarchy of modules, with higher-level
modules dependent on the lower-levels.

Testing modules:

- `test_utils` - tests for the `svdcompress.utils` module including rank validation, error metrics, and logging.
- `test_serialize` - tests for the `svdcompress.serialize` module including serialization mixin classes.
- `test_pixels` - tests for the `svdcompress.pixels` module: extraction, rounding/clamping, and recombination.
- `test_compression` - tests for the `svdcompress.compression` module: factorization and rank truncation.
- `test_compressor` - tests for the `svdcompress.compressor` module: the full per-channel pipeline.
- `test_io` - tests for the `svdcompress.io` module: reading and writing image files with Pillow.
- `test_cli` - tests for the `svdcompress` command-line interface and yaml configuration.
"""
