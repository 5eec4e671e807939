import logging
import string

import cv2
import numpy as np

logger = logging.getLogger(__name__)

QUIET_ZONE = 4


def parse_color(value):
    """Return ``#rgb`` / ``#rrggbb`` as a BGR tuple, the channel order cv2 uses."""
    text = value.strip().lstrip('#')
    if len(text) == 3:
        text = ''.join(ch * 2 for ch in text)
    if len(text) != 6 or any(ch not in string.hexdigits for ch in text):
        raise ValueError('invalid colour {!r}'.format(value))
    r, g, b = (int(text[i:i + 2], 16) for i in (0, 2, 4))
    return b, g, r


def hex_color(value):
    b, g, r = parse_color(value)
    return '#{:02x}{:02x}{:02x}'.format(r, g, b)


def _check(scale, border):
    if scale < 1:
        raise ValueError('scale must be at least 1, got {}'.format(scale))
    if border < 0:
        raise ValueError('border must not be negative, got {}'.format(border))
    if border < QUIET_ZONE:
        logger.warning('quiet zone of %d modules is below the %d required for '
                       'reliable scanning', border, QUIET_ZONE)


def quiet_zones(matrix, border=QUIET_ZONE):
    return np.pad(matrix.dark, border, constant_values=False)


def to_image(matrix, scale=8, border=QUIET_ZONE, foreground='#000000',
             background='#ffffff'):
    _check(scale, border)
    dark = quiet_zones(matrix, border)
    output = np.empty(dark.shape + (3,), dtype=np.uint8)
    output[:] = parse_color(background)
    output[dark] = parse_color(foreground)
    side = dark.shape[0] * scale
    return cv2.resize(output, (side, side), interpolation=cv2.INTER_NEAREST)


def to_png(matrix, scale=8, border=QUIET_ZONE, foreground='#000000',
           background='#ffffff'):
    ok, buf = cv2.imencode('.png', to_image(matrix, scale, border,
                                            foreground, background))
    if not ok:
        raise RuntimeError('PNG encoding failed')
    return buf.tobytes()


def to_svg(matrix, scale=4, border=QUIET_ZONE, foreground='#000000',
           background='#ffffff'):
    _check(scale, border)
    side = matrix.size + 2 * border
    rows, cols = np.nonzero(matrix.dark)
    path = ''.join('M{} {}h1v1h-1z'.format(c + border, r + border)
                   for r, c in zip(rows.tolist(), cols.tolist()))
    return ('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {side} {side}" '
            'width="{px}" height="{px}" shape-rendering="crispEdges">'
            '<rect width="{side}" height="{side}" fill="{bg}"/>'
            '<path d="{path}" fill="{fg}"/></svg>').format(
                side=side, px=side * scale, bg=hex_color(background),
                fg=hex_color(foreground), path=path)


def to_text(matrix, border=QUIET_ZONE):
    _check(1, border)
    return '\n'.join(''.join('██' if j else '  ' for j in i)
                     for i in quiet_zones(matrix, border).tolist())
