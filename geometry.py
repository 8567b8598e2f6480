import math
from typing import Tuple

from pose_types import Landmark


def _to_xy(lm: Landmark) -> Tuple[float, float]:
    return lm.x, lm.y


def distance_2d(a: Landmark, b: Landmark) -> float:
    ax, ay = _to_xy(a)
    bx, by = _to_xy(b)
    return math.hypot(ax - bx, ay - by)


def distance_3d(a: Landmark, b: Landmark) -> float:
    return math.sqrt((a.x - b.x) ** 2 + (a.y - b.y) ** 2 + (a.z - b.z) ** 2)


def midpoint(a: Landmark, b: Landmark) -> Landmark:
    return Landmark(
        (a.x + b.x) / 2.0,
        (a.y + b.y) / 2.0,
        (a.z + b.z) / 2.0,
        min(a.visibility, b.visibility),
    )


def angle_from_vertical(p1: Landmark, p2: Landmark) -> float:
    # 0 degrees when p1 sits straight above or below p2.
    dx = abs(p2.x - p1.x)
    dy = abs(p2.y - p1.y)
    return math.degrees(math.atan2(dx, dy))


def vertical_delta(a: Landmark, b: Landmark) -> float:
    # Positive when a is lower (greater y) than b in image coordinates.
    return a.y - b.y
