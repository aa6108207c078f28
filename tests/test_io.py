"""Test reading and writing image files."""
import numpy as np
import pytest
from PIL import Image

from svdcompress import ImageCompressor
from svdcompress.exceptions import ImageFormatError, InvalidRankError, MalformedBufferError
from svdcompress.io import mode_for_channels, output_format, read_image, write_image


def test_read_write_rgb(tmp_path, rgb_pixels):
    height, width, channels = rgb_pixels.shape
    path = tmp_path / 'image.png'
    Image.fromarray(rgb_pixels).save(path)

    buffer, info = read_image(path)
    assert info == {'width': width, 'height': height, 'channels': 3, 'mode': 'RGB', 'bit_depth': 8}
    assert buffer == rgb_pixels.tobytes()

    out = write_image(tmp_path / 'copy.png', buffer, info)
    assert out.exists()
    buffer2, info2 = read_image(out)
    assert buffer2 == buffer and info2 == info


@pytest.mark.parametrize('mode, channels', [('L', 1), ('LA', 2), ('RGBA', 4)])
def test_read_modes(tmp_path, mode, channels):
    rng = np.random.default_rng(11)
    shape = (5, 7) if channels == 1 else (5, 7, channels)
    arr = rng.integers(0, 256, size=shape, dtype=np.uint8)
    path = tmp_path / f'image_{mode}.png'
    Image.frombytes(mode, (7, 5), arr.tobytes()).save(path)

    buffer, info = read_image(path)
    assert info['mode'] == mode
    assert info['channels'] == channels
    assert buffer == arr.tobytes()


def test_palette_and_bilevel(tmp_path, rgb_pixels):
    path = tmp_path / 'palette.png'
    Image.fromarray(rgb_pixels).convert('P').save(path)
    buffer, info = read_image(path)
    assert info['mode'] == 'RGB' and info['channels'] == 3
    assert len(buffer) == info['width'] * info['height'] * 3

    path = tmp_path / 'bilevel.png'
    Image.fromarray(rgb_pixels).convert('1').save(path)
    buffer, info = read_image(path)
    assert info['mode'] == 'L'
    assert set(buffer) <= {0, 255}


def test_16bit_grayscale(tmp_path):
    arr = np.array([[0, 256], [65535, 4096]], dtype=np.uint16)
    path = tmp_path / 'gray16.png'
    Image.fromarray(arr).save(path)
    buffer, info = read_image(path)
    assert info['mode'] == 'L' and info['bit_depth'] == 8
    assert buffer == bytes([0, 1, 255, 16])


def test_write_errors(tmp_path):
    info = {'width': 2, 'height': 2, 'channels': 3, 'mode': 'RGB', 'bit_depth': 8}
    with pytest.raises(MalformedBufferError):
        write_image(tmp_path / 'bad.png', bytes(11), info)
    with pytest.raises(ValueError):
        write_image(tmp_path / 'bad.png', bytes(12), {**info, 'mode': 'RGBA'})
    assert not (tmp_path / 'bad.png').exists()

    no_mode = {'width': 2, 'height': 1, 'channels': 2}
    write_image(tmp_path / 'la.png', np.array([1, 2, 3, 4]), no_mode)
    assert read_image(tmp_path / 'la.png')[1]['mode'] == 'LA'

    for name in ['bad.xyz', 'no_suffix']:
        with pytest.raises(ImageFormatError):
            write_image(tmp_path / name, bytes(12), info)
        assert not (tmp_path / name).exists()
    write_image(tmp_path / 'forced.xyz', bytes(12), info, format='PNG')
    assert read_image(tmp_path / 'forced.xyz')[0] == bytes(12)
    assert output_format(tmp_path / 'out.JPG') == 'JPEG'

    assert mode_for_channels(3) == 'RGB'
    with pytest.raises(ValueError):
        mode_for_channels(5)


def test_compress_image(tmp_path, rgb_pixels):
    src = tmp_path / 'cows.png'
    Image.fromarray(rgb_pixels).save(src)

    result, dst = ImageCompressor(rank=3).compress_image(src)
    assert dst == tmp_path / 'cows_r3.png'
    buffer, info = read_image(dst)
    assert buffer == result.buffer
    assert info['mode'] == 'RGB'

    result, dst = ImageCompressor().compress_image(src, tmp_path / 'full.png', rank=1000)
    assert read_image(dst)[0] == rgb_pixels.tobytes()


def test_no_output_on_failure(tmp_path, rgb_pixels):
    src = tmp_path / 'cows.png'
    Image.fromarray(rgb_pixels).save(src)
    with pytest.raises(InvalidRankError):
        ImageCompressor().compress_image(src, tmp_path / 'out.png', rank=0)
    assert not (tmp_path / 'out.png').exists()
    with pytest.raises(ImageFormatError):
        ImageCompressor(rank=2).compress_image(src, tmp_path / 'out.xyz')
    assert not (tmp_path / 'out.xyz').exists()
