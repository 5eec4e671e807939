from __future__ import annotations

import cv2
import numpy as np
import pytest

import qrrender
import qrsymbol


@pytest.fixture
def matrix() -> qrsymbol.SymbolMatrix:
    return qrsymbol.encode('A')


def test_parse_color() -> None:
    assert qrrender.parse_color('#333') == (0x33, 0x33, 0x33)
    assert qrrender.parse_color('#0066cc') == (0xcc, 0x66, 0x00)
    assert qrrender.hex_color('#ABC') == '#aabbcc'
    for bad in ('', '#12', '#12345g', 'red', '#1234567'):
        with pytest.raises(ValueError):
            qrrender.parse_color(bad)


def test_image_has_quiet_zone_and_modules(matrix) -> None:
    image = qrrender.to_image(matrix, scale=8, foreground='#000000', background='#ffffff')
    assert image.shape == ((21 + 8) * 8, (21 + 8) * 8, 3)
    # quiet zone is background, the finder corner is foreground
    assert image[:32, :32].min() == 255
    assert image[32, 32].tolist() == [0, 0, 0]
    assert image[32 + 7, 32 + 7].tolist() == [0, 0, 0]
    assert image[32 + 8, 32 + 8].tolist() == [255, 255, 255]


def test_image_uses_caller_colors(matrix) -> None:
    image = qrrender.to_image(matrix, scale=1, border=4, foreground='#112233',
                              background='#ffeedd')
    assert image[0, 0].tolist() == [0xdd, 0xee, 0xff]
    assert image[4, 4].tolist() == [0x33, 0x22, 0x11]


def test_png_round_trips_through_opencv(matrix) -> None:
    data = qrrender.to_png(matrix, scale=2)
    assert data.startswith(b'\x89PNG')
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_GRAYSCALE)
    assert image.shape == ((21 + 8) * 2, (21 + 8) * 2)


def test_svg_markup(matrix) -> None:
    svg = qrrender.to_svg(matrix, scale=4, foreground='#333', background='#fff')
    assert svg.startswith('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 29 29"')
    assert 'width="116"' in svg
    assert 'fill="#333333"' in svg and 'fill="#ffffff"' in svg
    assert svg.count('h1v1h-1z') == int(np.count_nonzero(matrix.dark))
    assert 'M4 4h1v1h-1z' in svg


def test_text_preview(matrix) -> None:
    lines = qrrender.to_text(matrix, border=1).split('\n')
    assert len(lines) == 23
    assert lines[0] == '  ' * 23
    assert lines[1].startswith('  ' + '██' * 7)


def test_rejects_bad_geometry(matrix) -> None:
    with pytest.raises(ValueError):
        qrrender.to_image(matrix, scale=0)
    with pytest.raises(ValueError):
        qrrender.to_svg(matrix, border=-1)


def test_small_quiet_zone_is_logged(matrix, caplog) -> None:
    qrrender.to_svg(matrix, border=2)
    assert 'quiet zone' in caplog.text
