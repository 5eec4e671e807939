from __future__ import annotations

import cv2
import pytest
import qrcode
from qrcode.util import MODE_8BIT_BYTE, QRData

import qrrender
import qrsymbol

SAMPLES = [
    ('A', 1),
    ('https://example.com', 2),
    ('https://example.com/contact/' + 'a' * 60, 5),
    ('https://example.com/contact/' + 'b' * 120, 7),
    ('https://example.com/contact/' + 'c' * 180, 9),
    ('https://example.com/contact/' + 'd' * 243, 10),
]


def _decode(matrix: qrsymbol.SymbolMatrix) -> str:
    image = cv2.cvtColor(qrrender.to_image(matrix, scale=8), cv2.COLOR_BGR2GRAY)
    text, _, _ = cv2.QRCodeDetector().detectAndDecode(image)
    return text


def _reference(text: str, version: int, mask: int) -> list[list[bool]]:
    qr = qrcode.QRCode(version=version,
                       error_correction=qrcode.constants.ERROR_CORRECT_L,
                       border=0, mask_pattern=mask)
    qr.add_data(QRData(text.encode('utf-8'), mode=MODE_8BIT_BYTE))
    qr.make(fit=False)
    return [[bool(module) for module in row] for row in qr.get_matrix()]


# OpenCV's detector does not reliably read version 10 symbols
@pytest.mark.parametrize('text, version', [s for s in SAMPLES if s[1] < 10])
def test_symbols_decode_to_their_input(text: str, version: int) -> None:
    matrix = qrsymbol.encode(text)
    assert matrix.version.number == version
    assert _decode(matrix) == text


@pytest.mark.parametrize('text, version', SAMPLES)
def test_symbols_match_python_qrcode(text: str, version: int) -> None:
    matrix = qrsymbol.encode(text)
    assert matrix.version.number == version
    assert matrix.to_list() == _reference(text, version, matrix.mask)


def test_largest_payload_matches_python_qrcode() -> None:
    text = 'x' * 271
    matrix = qrsymbol.encode(text)
    assert matrix.version.number == 10
    for mask in range(8):
        candidate = qrsymbol.build_skeleton(matrix.version)
        content = qrsymbol.encode_data(text.encode('utf-8'), matrix.version)
        qrsymbol.place(candidate, qrsymbol.byte_bin(
            qrsymbol.ecc(qrsymbol.bin_codewords(content), matrix.version)))
        qrsymbol.apply_mask(candidate, mask)
        qrsymbol.format_string(candidate, mask)
        assert candidate.to_list() == _reference(text, 10, mask)


def test_colored_symbol_still_decodes() -> None:
    matrix = qrsymbol.encode('https://example.com')
    image = qrrender.to_image(matrix, scale=8, foreground='#333', background='#f5f5f5')
    text, _, _ = cv2.QRCodeDetector().detectAndDecode(cv2.cvtColor(image, cv2.COLOR_BGR2GRAY))
    assert text == 'https://example.com'
