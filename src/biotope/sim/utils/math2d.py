from __future__ import annotations

import math

from pygame.math import Vector2


def _safe_normalize(vector: Vector2) -> Vector2:
    return _safe_normalize_xy(vector.x, vector.y)


def _safe_normalize_xy(x: float, y: float) -> Vector2:
    magnitude_sq = x * x + y * y
    if magnitude_sq < 1e-10:
        return Vector2()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector2(x * inv, y * inv)


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def _heading_from_velocity(vector: Vector2) -> float:
    if vector.length_squared() < 1e-12:
        return 0.0
    return math.atan2(vector.y, vector.x)


def wrap_axis(delta: float, extent: float) -> float:
    """Fold a coordinate delta onto the shorter path around a wrapped axis."""
    if extent <= 0.0:
        return delta
    half = extent * 0.5
    if delta > half:
        delta -= extent
    elif delta < -half:
        delta += extent
    return delta


def toroidal_delta_xy(
    from_x: float, from_y: float, to_x: float, to_y: float, width: float, height: float
) -> tuple[float, float]:
    return wrap_axis(to_x - from_x, width), wrap_axis(to_y - from_y, height)


def toroidal_delta(origin: Vector2, target: Vector2, width: float, height: float) -> Vector2:
    dx, dy = toroidal_delta_xy(origin.x, origin.y, target.x, target.y, width, height)
    return Vector2(dx, dy)


def toroidal_distance(a: Vector2, b: Vector2, width: float, height: float) -> float:
    dx, dy = toroidal_delta_xy(a.x, a.y, b.x, b.y, width, height)
    return math.sqrt(dx * dx + dy * dy)


def wrap_position(position: Vector2, width: float, height: float) -> Vector2:
    """Wrap ``position`` into ``[0, width) x [0, height)`` in place."""
    x = position.x % width if width > 0.0 else position.x
    y = position.y % height if height > 0.0 else position.y
    # float modulo can land exactly on the extent for tiny negative inputs
    if x >= width:
        x = 0.0
    if y >= height:
        y = 0.0
    position.update(x, y)
    return position


def point_segment_distance_xy(px: float, py: float, ax: float, ay: float, bx: float, by: float) -> float:
    seg_x = bx - ax
    seg_y = by - ay
    length_sq = seg_x * seg_x + seg_y * seg_y
    if length_sq <= 1e-12:
        return math.hypot(px - ax, py - ay)
    t = ((px - ax) * seg_x + (py - ay) * seg_y) / length_sq
    t = _clamp_value(t, 0.0, 1.0)
    closest_x = ax + seg_x * t
    closest_y = ay + seg_y * t
    return math.hypot(px - closest_x, py - closest_y)


def direction_from_degrees(degrees: float) -> Vector2:
    vector = Vector2()
    vector.from_polar((1.0, degrees))
    return vector
