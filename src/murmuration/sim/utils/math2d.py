from __future__ import annotations

import math

from pygame.math import Vector2, Vector3

from .quat import Quat

BASE_FORWARD = Vector3(0.0, 1.0, 0.0)


def _offset3(origin: Vector2, target: Vector2) -> Vector3:
    return Vector3(target.x - origin.x, target.y - origin.y, 0.0)


def _forward(orientation: Quat) -> Vector3:
    return orientation.rotate(BASE_FORWARD)


def _forward_xy(orientation: Quat) -> tuple[float, float]:
    forward = orientation.rotate(BASE_FORWARD)
    return forward.x, forward.y


def _heading_from_orientation(orientation: Quat) -> float:
    fx, fy = _forward_xy(orientation)
    if fx * fx + fy * fy < 1e-12:
        return 0.0
    return math.atan2(fy, fx)


def _mean_position(positions: list[Vector2]) -> Vector2:
    sum_x = 0.0
    sum_y = 0.0
    for pos in positions:
        sum_x += pos.x
        sum_y += pos.y
    count = len(positions)
    return Vector2(sum_x / count, sum_y / count)


def _mean_quat(rotations: list[Quat]) -> Quat:
    sx = sy = sz = sw = 0.0
    for q in rotations:
        sx += q.x
        sy += q.y
        sz += q.z
        sw += q.w
    inv = 1.0 / len(rotations)
    return Quat(sx * inv, sy * inv, sz * inv, sw * inv)
