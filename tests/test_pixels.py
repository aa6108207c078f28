"""Test conversion between pixel buffers and channel matrices."""
import numpy as np
import pytest

from svdcompress.exceptions import FactorizationError, MalformedBufferError
from svdcompress.pixels import count_out_of_range, extract, recombine, to_samples


def test_extract_orientation():
    """Matrices are (height, width) and indexed as [y, x], scanning the buffer row by row."""
    width, height, channels = 3, 2, 2
    buffer = bytes(range(width * height * channels))
    mats = extract(buffer, width, height, channels)

    assert len(mats) == channels
    for c, mat in enumerate(mats):
        assert mat.shape == (height, width)
        assert mat.dtype == np.float64
        for y in range(height):
            for x in range(width):
                assert mat[y, x] == buffer[(y * width + x) * channels + c]


def test_extract_inputs(rgb_pixels):
    """Bytes, bytearrays, memoryviews and numpy arrays all give the same matrices."""
    height, width, channels = rgb_pixels.shape
    buffers = [rgb_pixels.tobytes(), bytearray(rgb_pixels.tobytes()), memoryview(rgb_pixels.tobytes()), rgb_pixels,
               rgb_pixels.astype(np.int32)]
    expected = extract(buffers[0], width, height, channels)
    for buffer in buffers[1:]:
        for mat, exp in zip(extract(buffer, width, height, channels), expected):
            assert np.array_equal(mat, exp)


def test_malformed_buffer():
    with pytest.raises(MalformedBufferError):
        extract(bytes(11), 2, 2, 3)
    with pytest.raises(MalformedBufferError):
        extract(bytes(13), 2, 2, 3)
    with pytest.raises(MalformedBufferError):
        extract(bytes(0), 0, 2, 3)
    with pytest.raises(MalformedBufferError):
        extract(bytes(4), 2, 2, 0)
    with pytest.raises(MalformedBufferError):
        extract(np.full(4, 256), 2, 2, 1)
    with pytest.raises(MalformedBufferError):
        extract(np.zeros(4, dtype=np.float32), 2, 2, 1)
    with pytest.raises(MalformedBufferError):
        extract(12345, 2, 2, 1)


def test_round_trip(rgb_pixels):
    """Extracting and recombining without any approximation reproduces the buffer exactly."""
    height, width, channels = rgb_pixels.shape
    buffer = rgb_pixels.tobytes()
    assert recombine(extract(buffer, width, height, channels)) == buffer


def test_rounding_and_clamping():
    """Samples equal clamp(round(v), 0, 255), with half-way values rounded to the nearest even integer."""
    values = np.array([-300.0, -3.2, -0.5, 0.4, 0.5, 1.5, 2.5, 127.49, 127.5, 128.5, 254.5, 255.4, 255.5, 256.0, 1e6])
    expected = np.array([0, 0, 0, 0, 0, 2, 2, 127, 128, 128, 254, 255, 255, 255, 255], dtype=np.uint8)
    samples = to_samples(values)
    assert samples.dtype == np.uint8
    assert np.array_equal(samples, expected)
    assert np.array_equal(samples, np.clip(np.rint(values), 0, 255))
    assert count_out_of_range(values) == 5


def test_recombine_clamps():
    low = np.array([[-10.0, 0.0], [100.2, 300.0]])
    high = np.array([[255.5, 254.5], [1.5, -0.6]])
    out = recombine([low, high])
    assert out == bytes([0, 255, 0, 254, 100, 2, 255, 0])


def test_recombine_errors():
    with pytest.raises(MalformedBufferError):
        recombine([])
    with pytest.raises(MalformedBufferError):
        recombine([np.zeros((2, 3)), np.zeros((3, 2))])
    with pytest.raises(MalformedBufferError):
        recombine([np.zeros(4)])
    with pytest.raises(FactorizationError) as exc_info:
        recombine([np.zeros((2, 2)), np.full((2, 2), np.nan)])
    assert exc_info.value.channel == 1
