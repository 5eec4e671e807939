import json
import logging
import sys
from dataclasses import dataclass

import cv2
import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

import qrrender

logger = logging.getLogger(__name__)

LIGHT, DARK, UNSET = 0, 1, 2

# ECL L indicator in the format information
EC_LEVEL_L = 0b01
FORMAT_GENERATOR = 0b10100110111
FORMAT_MASK = 0b101010000010010
VERSION_GENERATOR = 0b1111100100101

# Per version, ECL L: EC codewords per block, group 1 blocks, group 1 data
# codewords per block, group 2 blocks, group 2 data codewords per block
ECC = (
    (7, 1, 19, 0, 0),
    (10, 1, 34, 0, 0),
    (15, 1, 55, 0, 0),
    (20, 1, 80, 0, 0),
    (26, 1, 108, 0, 0),
    (18, 2, 68, 0, 0),
    (20, 2, 78, 0, 0),
    (24, 2, 97, 0, 0),
    (30, 2, 116, 0, 0),
    (18, 2, 68, 2, 69),
)
# Byte mode capacity
CAPACITY = (17, 32, 53, 78, 106, 134, 154, 192, 230, 271)
ALIGNMENT = (
    (),
    (6, 18),
    (6, 22),
    (6, 26),
    (6, 30),
    (6, 34),
    (6, 22, 38),
    (6, 24, 42),
    (6, 26, 46),
    (6, 28, 50),
)
REMAINDER = (0, 7, 7, 7, 7, 7, 0, 0, 0, 0)
GENERATOR_DEGREES = (7, 10, 13, 15, 16, 17, 18, 20, 22, 24, 26, 28, 30)


class EncodingError(ValueError):
    kind = 'EncodingError'


class TooLong(EncodingError):
    kind = 'TooLong'


class UnsupportedConfiguration(EncodingError):
    kind = 'UnsupportedConfiguration'


class InternalSizeMismatch(EncodingError):
    kind = 'InternalSizeMismatch'


def byte_bin(b):
    return ''.join('{:08b}'.format(i) for i in b)


def bin_codewords(content):
    return [int(content[i:i + 8], 2) for i in range(0, len(content), 8)]


def _gf_tables():
    exp = [0] * 512
    log = [0] * 256
    x = 1
    for i in range(255):
        exp[i] = x
        log[x] = i
        x <<= 1
        if x > 255:
            x ^= 0x11d
    for i in range(255, 512):
        exp[i] = exp[i - 255]
    return tuple(exp), tuple(log)


GF_EXP, GF_LOG = _gf_tables()


def gf_mul(a, b):
    if a == 0 or b == 0:
        return 0
    return GF_EXP[GF_LOG[a] + GF_LOG[b]]


def poly_mul(a, b):
    ans = [0] * (len(a) + len(b) - 1)
    for i in range(len(a)):
        for j in range(len(b)):
            ans[i + j] ^= gf_mul(a[i], b[j])
    return ans


def poly_remainder(dividend, divisor):
    """Remainder of dividend / divisor over GF(256).

    Coefficients are highest degree first and the divisor must be monic.
    """
    rem = list(dividend)
    steps = len(dividend) - len(divisor) + 1
    for i in range(steps):
        coef = rem[i]
        if coef == 0:
            continue
        for j in range(len(divisor)):
            rem[i + j] ^= gf_mul(divisor[j], coef)
    return rem[steps:]


def rs_generator(n):
    # (x + a^0)(x + a^1)...(x + a^(n-1))
    gen = [1]
    for i in range(n):
        gen = poly_mul(gen, [1, GF_EXP[i]])
    return tuple(gen)


GENERATORS = {n: rs_generator(n) for n in GENERATOR_DEGREES}


def generator(n):
    try:
        return GENERATORS[n]
    except KeyError:
        raise UnsupportedConfiguration(
            'no generator polynomial for {} EC codewords'.format(n)) from None


def reed_solomon(codewords, n):
    return poly_remainder(list(codewords) + [0] * n, generator(n))


@dataclass(frozen=True)
class VersionSpec:
    number: int
    size: int
    capacity: int
    data_codewords: int
    ec_codewords: int
    ec_per_block: int
    blocks: tuple
    generator: tuple
    alignment: tuple
    remainder_bits: int

    @property
    def count_bits(self):
        return 8 if self.number <= 9 else 16


def _versions():
    versions = []
    for i, (ec, g1, d1, g2, d2) in enumerate(ECC):
        blocks = (d1,) * g1 + (d2,) * g2
        versions.append(VersionSpec(
            number=i + 1,
            size=17 + 4 * (i + 1),
            capacity=CAPACITY[i],
            data_codewords=sum(blocks),
            ec_codewords=ec * len(blocks),
            ec_per_block=ec,
            blocks=blocks,
            generator=generator(ec),
            alignment=ALIGNMENT[i],
            remainder_bits=REMAINDER[i],
        ))
    return tuple(versions)


VERSIONS = _versions()


def select_version(length):
    for version in VERSIONS:
        if version.capacity >= length:
            return version
    raise TooLong('{} bytes exceeds the version {} capacity of {} bytes'.format(
        length, VERSIONS[-1].number, VERSIONS[-1].capacity))


def encode_data(data, version):
    goal = version.data_codewords * 8
    if len(data) >= 1 << version.count_bits:
        raise TooLong('{} bytes do not fit a {} bit count field'.format(
            len(data), version.count_bits))
    count = bin(len(data))[2:].zfill(version.count_bits)
    content = '0100' + count + byte_bin(data)
    if len(content) > goal:
        raise TooLong('{} bits exceed the {} data bits of version {}'.format(
            len(content), goal, version.number))
    content += '0' * min(4, goal - len(content))
    content += '0' * (-len(content) % 8)
    for i in range((goal - len(content)) // 8):
        content += '11101100' if i % 2 == 0 else '00010001'
    return content


def ecc(codewords, version):
    """Split data codewords into blocks and interleave them with their EC."""
    if len(codewords) != version.data_codewords:
        raise InternalSizeMismatch('{} data codewords, version {} needs {}'.format(
            len(codewords), version.number, version.data_codewords))
    blocks = []
    for n in version.blocks:
        blocks.append(codewords[:n])
        codewords = codewords[n:]
    ec_blocks = [reed_solomon(block, version.ec_per_block) for block in blocks]
    content = []
    for i in range(max(version.blocks)):
        for block in blocks:
            if i < len(block):
                content.append(block[i])
    for i in range(version.ec_per_block):
        for block in ec_blocks:
            content.append(block[i])
    return content


@dataclass(eq=False)
class SymbolMatrix:
    version: VersionSpec
    modules: np.ndarray
    reserved: np.ndarray
    mask: int = None

    @property
    def size(self):
        return self.version.size

    @property
    def dark(self):
        return self.modules == DARK

    def copy(self):
        return SymbolMatrix(self.version, self.modules.copy(),
                            self.reserved.copy(), self.mask)

    def to_list(self):
        return self.dark.tolist()


def _stamp(matrix, row, col, patch):
    # Never overwrite modules an earlier pattern already reserved
    h, w = patch.shape
    region = matrix.modules[row:row + h, col:col + w]
    free = ~matrix.reserved[row:row + h, col:col + w]
    region[free] = patch[free]
    matrix.reserved[row:row + h, col:col + w] = True


def finders(matrix):
    s = matrix.size
    for row, col in ((0, 0), (0, s - 7), (s - 7, 0)):
        top, left = max(row - 1, 0), max(col - 1, 0)
        bottom, right = min(row + 7, s - 1), min(col + 7, s - 1)
        cv2.rectangle(matrix.modules, (left, top), (right, bottom), LIGHT, -1)
        cv2.rectangle(matrix.modules, (col, row), (col + 6, row + 6), DARK, 1)
        cv2.rectangle(matrix.modules, (col + 2, row + 2), (col + 4, row + 4), DARK, -1)
        matrix.reserved[top:bottom + 1, left:right + 1] = True


def timing(matrix):
    for i in range(8, matrix.size - 8):
        bit = DARK if i % 2 == 0 else LIGHT
        for row, col in ((6, i), (i, 6)):
            if not matrix.reserved[row, col]:
                matrix.modules[row, col] = bit
                matrix.reserved[row, col] = True


def _alignment_patch():
    patch = np.full((5, 5), DARK, dtype=np.uint8)
    cv2.rectangle(patch, (1, 1), (3, 3), LIGHT, 1)
    return patch


def alignment_pattern(matrix):
    numbers = matrix.version.alignment
    patch = _alignment_patch()
    last = len(numbers) - 1
    for i, y in enumerate(numbers):
        for j, x in enumerate(numbers):
            if (i, j) in ((0, 0), (0, last), (last, 0)):
                continue
            _stamp(matrix, y - 2, x - 2, patch)


def reserve_format(matrix):
    s = matrix.size
    matrix.reserved[8, :9] = True
    matrix.reserved[:9, 8] = True
    matrix.reserved[8, s - 8:] = True
    matrix.reserved[s - 8:, 8] = True


def bch(data, gen, width):
    rem = bin(data << width)[2:]
    while len(rem) > width:
        rem = bin(int(rem, 2) ^ gen << (len(rem) - gen.bit_length()))[2:]
    return data << width | int(rem, 2)


def version_bits(number):
    return bch(number, VERSION_GENERATOR, 12)


def version_string(matrix):
    number = matrix.version.number
    if number < 7:
        return
    s = matrix.size
    bits = version_bits(number)
    for i in range(18):
        bit = (bits >> i) & 1
        a, b = s - 11 + i % 3, i // 3
        matrix.modules[b, a] = bit
        matrix.modules[a, b] = bit
        matrix.reserved[b, a] = True
        matrix.reserved[a, b] = True


def build_skeleton(version):
    s = version.size
    matrix = SymbolMatrix(version,
                          np.full((s, s), UNSET, dtype=np.uint8),
                          np.zeros((s, s), dtype=bool))
    finders(matrix)
    timing(matrix)
    alignment_pattern(matrix)
    reserve_format(matrix)
    version_string(matrix)
    # Dark module
    matrix.modules[s - 8, 8] = DARK
    matrix.reserved[s - 8, 8] = True
    return matrix


def place(matrix, content):
    s = matrix.size
    free = int(np.count_nonzero(~matrix.reserved))
    if free != len(content) + matrix.version.remainder_bits:
        raise InternalSizeMismatch(
            'version {} has {} data modules for {} bits and {} remainder bits'.format(
                matrix.version.number, free, len(content),
                matrix.version.remainder_bits))
    bits = iter(content)
    col = s - 1
    upward = True
    while col > 0:
        if col == 6:
            col -= 1
        rows = range(s - 1, -1, -1) if upward else range(s)
        for row in rows:
            for c in (col, col - 1):
                if not matrix.reserved[row, c]:
                    matrix.modules[row, c] = int(next(bits, '0'))
        col -= 2
        upward = not upward


MASKS = (
    lambda r, c: (r + c) % 2 == 0,
    lambda r, c: r % 2 == 0,
    lambda r, c: c % 3 == 0,
    lambda r, c: (r + c) % 3 == 0,
    lambda r, c: (r // 2 + c // 3) % 2 == 0,
    lambda r, c: (r * c) % 2 + (r * c) % 3 == 0,
    lambda r, c: ((r * c) % 2 + (r * c) % 3) % 2 == 0,
    lambda r, c: ((r + c) % 2 + (r * c) % 3) % 2 == 0,
)

FINDER_LIKE = np.array(((1, 0, 1, 1, 1, 0, 1, 0, 0, 0, 0),
                        (0, 0, 0, 0, 1, 0, 1, 1, 1, 0, 1)), dtype=np.uint8)


@dataclass(frozen=True)
class MaskCandidate:
    id: int
    penalty: int


def apply_mask(matrix, mask):
    rows, cols = np.indices(matrix.modules.shape)
    pattern = MASKS[mask](rows, cols) & ~matrix.reserved
    matrix.modules ^= pattern.astype(np.uint8)


def _runs(line):
    penalty = 0
    run = 1
    for i in range(1, len(line)):
        if line[i] == line[i - 1]:
            run += 1
            continue
        if run >= 5:
            penalty += run - 2
        run = 1
    if run >= 5:
        penalty += run - 2
    return penalty


def penalty_runs(grid):
    return (sum(_runs(row) for row in grid.tolist())
            + sum(_runs(col) for col in grid.T.tolist()))


def penalty_blocks(grid):
    corner = grid[:-1, :-1]
    same = ((corner == grid[1:, :-1]) & (corner == grid[:-1, 1:])
            & (corner == grid[1:, 1:]))
    return 3 * int(np.count_nonzero(same))


def penalty_finder_like(grid):
    if grid.shape[0] < 11:
        return 0
    count = 0
    for g in (grid, grid.T):
        windows = sliding_window_view(g, 11, axis=1)
        for pattern in FINDER_LIKE:
            count += int(np.count_nonzero(np.all(windows == pattern, axis=2)))
    return 40 * count


def penalty_balance(grid):
    total = grid.size
    dark = int(np.count_nonzero(grid))
    # whole 5% steps away from an even split
    return 10 * (abs(dark * 20 - total * 10) // total)


def penalty(grid):
    grid = np.asarray(grid, dtype=np.uint8)
    return (penalty_runs(grid) + penalty_blocks(grid)
            + penalty_finder_like(grid) + penalty_balance(grid))


def evaluate_masks(matrix):
    candidates = []
    for i in range(len(MASKS)):
        candidate = matrix.copy()
        apply_mask(candidate, i)
        format_string(candidate, i)
        candidates.append(MaskCandidate(i, penalty(candidate.dark)))
    return candidates


def best_mask(candidates):
    return min(candidates, key=lambda c: (c.penalty, c.id))


def select_mask(matrix):
    return best_mask(evaluate_masks(matrix))


def format_bits(mask):
    return bch(EC_LEVEL_L << 3 | mask, FORMAT_GENERATOR, 10) ^ FORMAT_MASK


FORMAT_BITS = tuple(format_bits(i) for i in range(len(MASKS)))


def format_string(matrix, mask):
    s = matrix.size
    m = matrix.modules
    bits = [(FORMAT_BITS[mask] >> i) & 1 for i in range(15)]
    # Around the top-left finder, skipping the timing row and column
    for i in range(6):
        m[i, 8] = bits[i]
    m[7, 8] = bits[6]
    m[8, 8] = bits[7]
    m[8, 7] = bits[8]
    for i in range(9, 15):
        m[8, 14 - i] = bits[i]
    # Split between the top-right and bottom-left finders
    for i in range(8):
        m[8, s - 1 - i] = bits[i]
    for i in range(8, 15):
        m[s - 15 + i, 8] = bits[i]


def encode(text):
    if isinstance(text, str):
        data = text.encode('utf-8')
    elif isinstance(text, (bytes, bytearray)):
        data = bytes(text)
    else:
        raise TypeError('expected str or bytes, got {}'.format(
            type(text).__name__))
    version = select_version(len(data))
    content = encode_data(data, version)
    content = byte_bin(ecc(bin_codewords(content), version))
    matrix = build_skeleton(version)
    place(matrix, content)
    best = select_mask(matrix)
    apply_mask(matrix, best.id)
    format_string(matrix, best.id)
    matrix.mask = best.id
    if np.any(matrix.modules == UNSET):
        raise InternalSizeMismatch('version {} left modules unwritten'.format(
            version.number))
    logger.debug('encoded %d bytes as version %d, mask %d (penalty %d)',
                 len(data), version.number, best.id, best.penalty)
    return matrix


def module_string(matrix):
    return ''.join(''.join(str(int(j)) for j in i) for i in matrix.dark)


def generate_qr(content):
    return module_string(encode(content))


def main():
    args = json.load(sys.stdin)
    if args.get('preview'):
        print(qrrender.to_text(encode(args['content'])))
    else:
        print(generate_qr(args['content']), end='')


if __name__ == '__main__':
    main()
