"""
Heatmap tile rendering.

Segments are projected into Web Mercator, clipped to the tile, and drawn
into an 8-bit intensity raster where each segment adds its traversal count.
A color gradient then maps intensity to RGBA.
"""

import math
import string
from io import BytesIO
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image

from activity_heatmap.services.polyline import GeoPoint
from activity_heatmap.services.segments import LatLng, Segment

TILE_SIZE = 512
MAX_ZOOM = 18

Color = Tuple[int, int, int, int]


class LinearGradient:
    """Color palette mapping intensity 0-255 to RGBA."""

    def __init__(self, stops: List[Tuple[int, Color]]):
        """
        Args:
            stops: (intensity, (r, g, b, a)) pairs in increasing intensity order
        """
        levels = np.arange(256)
        thresholds = [threshold for threshold, _ in stops]
        colors = np.array([color for _, color in stops], dtype=float)

        # np.interp holds the end colors flat outside the first and last stop
        self.palette = np.stack(
            [np.interp(levels, thresholds, colors[:, channel]) for channel in range(4)],
            axis=1,
        ).astype(np.uint8)

    def sample(self, value: int) -> Color:
        """Sample the gradient at a given intensity value (0-255)."""
        return tuple(int(c) for c in self.palette[min(255, max(0, value))])

    @staticmethod
    def from_hex_colors(min_color: str, mid_color: str, max_color: str, midpoint: int = 10) -> 'LinearGradient':
        """
        Create a gradient from hex color codes.

        Args:
            min_color: Hex color for a single traversal (e.g. "#ff0000")
            mid_color: Hex color at the midpoint intensity
            max_color: Hex color at full intensity
            midpoint: Intensity (1-254) where mid_color applies

        Raises:
            ValueError: If a color is not #rrggbb or #rrggbbaa
        """
        midpoint = max(2, min(254, midpoint))
        return LinearGradient([
            (0, (0, 0, 0, 0)),
            (1, parse_hex_color(min_color)),
            (midpoint, parse_hex_color(mid_color)),
            (255, parse_hex_color(max_color)),
        ])


def parse_hex_color(value: str) -> Color:
    """Convert #rrggbb or #rrggbbaa to an RGBA tuple."""
    digits = value.lstrip('#')
    if len(digits) not in (6, 8) or not all(c in string.hexdigits for c in digits):
        raise ValueError(f"Invalid hex color: {value}")
    channels = [int(digits[i:i + 2], 16) for i in range(0, len(digits), 2)]
    if len(channels) == 3:
        channels.append(255)
    return tuple(channels)


ORANGE = LinearGradient([
    (0, (0, 0, 0, 0)),
    (1, (252, 74, 26, 255)),
    (10, (247, 183, 51, 255)),
])

BLUE_RED = LinearGradient([
    (0, (0, 0, 0, 0)),
    (1, (63, 94, 251, 255)),
    (10, (252, 70, 107, 255)),
    (50, (255, 255, 255, 255)),
])

RED = LinearGradient([
    (0, (0, 0, 0, 0)),
    (1, (178, 10, 44, 255)),
    (10, (255, 251, 213, 255)),
    (50, (255, 255, 255, 255)),
])

GRADIENTS = {
    "orange": ORANGE,
    "blue_red": BLUE_RED,
    "red": RED,
}


class TileCoordinate:
    """A z/x/y slippy map tile in the Web Mercator projection."""

    EARTH_RADIUS = 6378137.0
    ORIGIN_SHIFT = math.pi * EARTH_RADIUS

    def __init__(self, x: int, y: int, z: int):
        self.x = x
        self.y = y
        self.z = z

    def is_valid(self) -> bool:
        """Check zoom range and that x/y fall inside the zoom level's grid."""
        if not 0 <= self.z <= MAX_ZOOM:
            return False
        limit = 2 ** self.z
        return 0 <= self.x < limit and 0 <= self.y < limit

    def bounds(self) -> Tuple[float, float, float, float]:
        """
        Get the Web Mercator bounds of this tile.

        Returns:
            (min_x, min_y, max_x, max_y) in Web Mercator meters
        """
        tile_span = 2.0 * self.ORIGIN_SHIFT / (2 ** self.z)
        min_x = self.x * tile_span - self.ORIGIN_SHIFT
        max_y = self.ORIGIN_SHIFT - self.y * tile_span
        return (min_x, max_y - tile_span, min_x + tile_span, max_y)

    def expanded_bounds(self, fraction: float) -> Tuple[float, float, float, float]:
        """Tile bounds grown by a fraction of the tile span on every side."""
        min_x, min_y, max_x, max_y = self.bounds()
        pad_x = (max_x - min_x) * fraction
        pad_y = (max_y - min_y) * fraction
        return (min_x - pad_x, min_y - pad_y, max_x + pad_x, max_y + pad_y)

    @staticmethod
    def latlng_to_mercator(lat: float, lng: float) -> Optional[Tuple[float, float]]:
        """
        Project WGS84 lat/lng to Web Mercator meters.

        Returns None at the poles, where the projection diverges.
        """
        if lat <= -90.0 or lat >= 90.0:
            return None

        x = math.radians(lng) * TileCoordinate.EARTH_RADIUS
        y = math.log(math.tan(math.pi / 4 + math.radians(lat) / 2)) * TileCoordinate.EARTH_RADIUS
        return (x, y)


class TileRasterizer:
    """Accumulates segment traversal counts onto one tile."""

    # Segments longer than this fraction of a tile are GPS jumps, not movement
    MAX_SEGMENT_FRACTION = 0.5

    def __init__(self, tile: TileCoordinate, size: int = TILE_SIZE):
        self.tile = tile
        self.size = size
        self.bounds = tile.bounds()
        self.pixels = np.zeros((size, size), dtype=np.uint8)

    def add_segment(self, start: LatLng, end: LatLng, weight: int = 1) -> bool:
        """
        Draw one segment, adding weight to every pixel it crosses.

        Returns:
            True if any part of the segment landed on the tile
        """
        a = TileCoordinate.latlng_to_mercator(*start)
        b = TileCoordinate.latlng_to_mercator(*end)
        if a is None or b is None:
            return False

        min_x, _, max_x, _ = self.bounds
        if math.hypot(b[0] - a[0], b[1] - a[1]) > (max_x - min_x) * self.MAX_SEGMENT_FRACTION:
            return False

        clipped = self._clip(a[0], a[1], b[0], b[1])
        if clipped is None:
            return False

        px0, py0 = self._to_pixel(clipped[0], clipped[1])
        px1, py1 = self._to_pixel(clipped[2], clipped[3])
        self._draw_line(px0, py0, px1, py1, weight)
        return True

    def add_segments(self, segments: Iterable[Segment]) -> int:
        """Draw aggregated segments; returns how many touched the tile."""
        return sum(1 for s in segments if self.add_segment(s.start, s.end, s.count))

    def add_track(self, points: Sequence[GeoPoint]) -> None:
        """Draw every consecutive pair of a track with weight 1."""
        for a, b in zip(points, points[1:]):
            self.add_segment((a.latitude, a.longitude), (b.latitude, b.longitude))

    def _clip(self, x0: float, y0: float, x1: float, y1: float) -> Optional[Tuple[float, float, float, float]]:
        """Clip a segment to the tile bounds (Liang-Barsky)."""
        min_x, min_y, max_x, max_y = self.bounds
        dx = x1 - x0
        dy = y1 - y0
        t_enter, t_exit = 0.0, 1.0

        for p, q in ((-dx, x0 - min_x), (dx, max_x - x0), (-dy, y0 - min_y), (dy, max_y - y0)):
            if p == 0:
                if q < 0:
                    return None
                continue
            t = q / p
            if p < 0:
                if t > t_exit:
                    return None
                t_enter = max(t_enter, t)
            else:
                if t < t_enter:
                    return None
                t_exit = min(t_exit, t)

        return (x0 + t_enter * dx, y0 + t_enter * dy, x0 + t_exit * dx, y0 + t_exit * dy)

    def _to_pixel(self, mx: float, my: float) -> Tuple[int, int]:
        min_x, min_y, max_x, max_y = self.bounds
        last = self.size - 1
        # round() keeps the same mercator point on the same pixel in adjacent tiles
        px = round((mx - min_x) / (max_x - min_x) * last)
        py = round((max_y - my) / (max_y - min_y) * last)
        return (max(0, min(last, px)), max(0, min(last, py)))

    def _draw_line(self, x0: int, y0: int, x1: int, y1: int, weight: int) -> None:
        steps = max(abs(x1 - x0), abs(y1 - y0)) + 1
        xs = np.rint(np.linspace(x0, x1, steps)).astype(np.intp)
        ys = np.rint(np.linspace(y0, y1, steps)).astype(np.intp)

        # A pixel counts once per segment
        cells = np.unique(np.stack([ys, xs], axis=1), axis=0)
        rows, cols = cells[:, 0], cells[:, 1]

        total = self.pixels[rows, cols].astype(np.int32) + weight
        self.pixels[rows, cols] = np.minimum(total, 255).astype(np.uint8)

    def render(self, gradient: LinearGradient) -> Image.Image:
        """Map intensities through the gradient into an RGBA image."""
        return Image.fromarray(gradient.palette[self.pixels])

    def render_to_png(self, gradient: LinearGradient) -> bytes:
        """Render the raster to PNG bytes."""
        buffer = BytesIO()
        self.render(gradient).save(buffer, format='PNG', optimize=True)
        return buffer.getvalue()


def empty_tile_png(size: int = TILE_SIZE) -> bytes:
    """Generate a transparent PNG tile."""
    buffer = BytesIO()
    Image.new('RGBA', (size, size), (0, 0, 0, 0)).save(buffer, format='PNG')
    return buffer.getvalue()
