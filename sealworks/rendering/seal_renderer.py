"""
seal_renderer.py - Circular seal graphic for one token.

A seal is a 1000 x 1000 unit drawing centered on (500, 500):
- outer border ring
- QR code of SEAL_QR_URL_PREFIX + token, drawn as round dots, with the three
  finder patterns drawn as concentric rings
- a guard ring just outside the QR keep-out zone
- a deterministic "microdot" field seeded by sha256(token|version)

CRITICAL INVARIANTS:
- Output is a pure function of (token, url prefix, seal version)
- No decorative element is drawn inside the keep-out square (QR area plus a
  4-module quiet zone), so decoration can never break a scan
"""

import hashlib
import math
from dataclasses import dataclass

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from sealworks.config import settings
from .scene import Circle, Group, Scene

SEAL_SIZE = 1000.0
CENTER = SEAL_SIZE / 2

QR_HALF_SIZE = 170.0  # QR square spans 340 units around the center
MODULE_RADIUS_FACTOR = 0.42
FINDER_SIZE = 7
QUIET_ZONE_MODULES = 4

BORDER_RADIUS = 480.0
BORDER_STROKE = 12.0
GUARD_RING_STROKE = 3.0
MICRODOT_COUNT = 25
MICRODOT_SCALE = 3.0

# Smallest printed QR module, in pixels, that phone scanners decode reliably
MIN_PX_PER_MODULE = 3.0
# Minted tokens are always qr_ + 22 characters, so every seal has the same QR version
SAMPLE_TOKEN = "qr_" + "0" * 22


@dataclass(frozen=True)
class SealGeometry:
    module_count: int
    module_size: float
    qr_origin: float
    keepout_half: float  # half side of the keep-out square, centered on the seal
    microdot_inner: float
    microdot_outer: float

    def in_keepout(self, x: float, y: float, r: float = 0.0) -> bool:
        """True when a circle of radius r at (x, y) touches the keep-out square."""
        return abs(x - CENTER) - r < self.keepout_half and abs(y - CENTER) - r < self.keepout_half


@dataclass(frozen=True)
class RenderedSeal:
    token: str
    group: Group
    geometry: SealGeometry
    data_dot_count: int
    microdots: tuple

    @property
    def svg(self) -> str:
        scene = Scene(SEAL_SIZE, SEAL_SIZE, [self.group], comment=self.group.comment)
        return scene.to_svg()


def _is_finder_cell(row: int, col: int, size: int) -> bool:
    in_top = row < FINDER_SIZE
    in_left = col < FINDER_SIZE
    in_right = col >= size - FINDER_SIZE
    in_bottom = row >= size - FINDER_SIZE
    return (in_top and in_left) or (in_top and in_right) or (in_bottom and in_left)


def _finder(cx: float, cy: float, module: float) -> tuple:
    # Ring spans 2.5..3.5 modules and the core 1.5, keeping the 1:1:3:1:1 scan ratio
    return (
        Circle(cx, cy, module * 3.0, fill=None, stroke="#000", stroke_width=module),
        Circle(cx, cy, module * 1.5),
    )


def _hash_stream(seed: str, length: int) -> bytes:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    stream = digest
    while len(stream) < length:
        digest = hashlib.sha256(digest).digest()
        stream += digest
    return stream[:length]


class SealRenderer:
    def __init__(self, url_prefix: str | None = None, seal_version: str | None = None):
        self.url_prefix = url_prefix if url_prefix is not None else settings.SEAL_QR_URL_PREFIX
        self.seal_version = seal_version or settings.SEAL_VERSION

    def payload(self, token: str) -> str:
        return f"{self.url_prefix}{token}"

    def qr_matrix(self, token: str) -> list[list[bool]]:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=0)
        qr.add_data(self.payload(token))
        qr.make(fit=True)
        return [[bool(cell) for cell in row] for row in qr.get_matrix()]

    def min_dpi(self, diameter_in: float) -> int:
        """Lowest raster dpi that keeps MIN_PX_PER_MODULE at this seal diameter."""
        module_count = len(self.qr_matrix(SAMPLE_TOKEN))
        qr_width_in = diameter_in * 2 * QR_HALF_SIZE / SEAL_SIZE
        return math.ceil(MIN_PX_PER_MODULE * module_count / qr_width_in)

    def geometry(self, module_count: int) -> SealGeometry:
        module = 2 * QR_HALF_SIZE / module_count
        keepout_half = QR_HALF_SIZE + QUIET_ZONE_MODULES * module
        inner = keepout_half * math.sqrt(2) + GUARD_RING_STROKE * 2
        outer = BORDER_RADIUS - BORDER_STROKE
        return SealGeometry(
            module_count=module_count,
            module_size=module,
            qr_origin=CENTER - QR_HALF_SIZE,
            keepout_half=keepout_half,
            microdot_inner=inner,
            microdot_outer=outer,
        )

    def microdots(self, token: str, geometry: SealGeometry) -> tuple:
        stream = _hash_stream(f"{token}|{self.seal_version}", MICRODOT_COUNT * 2)
        span = geometry.microdot_outer - geometry.microdot_inner
        dots = []
        for i in range(MICRODOT_COUNT):
            x_byte, y_byte = stream[2 * i], stream[2 * i + 1]
            angle = (x_byte / 255) * math.pi * 2
            r = (1 + ((x_byte + y_byte) % 200) / 100) * MICRODOT_SCALE
            distance = geometry.microdot_inner + r + (y_byte / 255) * (span - 2 * r)
            cx = CENTER + math.cos(angle) * distance
            cy = CENTER + math.sin(angle) * distance
            if geometry.in_keepout(cx, cy, r):
                continue
            dots.append(Circle(round(cx, 3), round(cy, 3), round(r, 3)))
        return tuple(dots)

    def render(self, token: str) -> RenderedSeal:
        matrix = self.qr_matrix(token)
        size = len(matrix)
        geo = self.geometry(size)
        module = geo.module_size
        dot_r = module * MODULE_RADIUS_FACTOR

        data_dots = []
        for row in range(size):
            for col in range(size):
                if not matrix[row][col] or _is_finder_cell(row, col, size):
                    continue
                data_dots.append(
                    Circle(
                        geo.qr_origin + (col + 0.5) * module,
                        geo.qr_origin + (row + 0.5) * module,
                        dot_r,
                    )
                )
        if not data_dots:
            raise ValueError(f"QR rendering produced no modules for token ending {token[-8:]}")

        near = geo.qr_origin + FINDER_SIZE / 2 * module
        far = geo.qr_origin + (size - FINDER_SIZE / 2) * module
        finders = _finder(near, near, module) + _finder(far, near, module) + _finder(near, far, module)

        dots = self.microdots(token, geo)
        children = (
            Circle(CENTER, CENTER, BORDER_RADIUS, fill=None, stroke="#000", stroke_width=BORDER_STROKE),
            Circle(CENTER, CENTER, geo.microdot_inner - GUARD_RING_STROKE, fill=None, stroke="#000",
                   stroke_width=GUARD_RING_STROKE),
            Group(dots, element_id="microdots"),
            Group(tuple(data_dots) + finders, element_id="qr"),
        )
        group = Group(children, comment=f"seal version={self.seal_version} modules={size}")
        return RenderedSeal(
            token=token,
            group=group,
            geometry=geo,
            data_dot_count=len(data_dots),
            microdots=dots,
        )
