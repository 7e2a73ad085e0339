from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from pygame.math import Vector3

if TYPE_CHECKING:
    from ..core.rng import DeterministicRng

# Rotations smaller than this many radians count as identity.
_NEAR_IDENTITY_ANGLE = 0.0028471446


@dataclass(frozen=True, slots=True)
class Quat:
    """Quaternion with components ``x, y, z`` (vector part) and ``w`` (scalar).

    Instances are immutable. Arithmetic is component-wise except ``q * r``
    between two quaternions, which is the Hamilton product (apply ``r`` then
    ``q``). Only unit quaternions represent rotations; scaled quaternions
    appear as intermediate blend terms.
    """

    x: float
    y: float
    z: float
    w: float

    IDENTITY: ClassVar["Quat"]

    @staticmethod
    def from_axis_angle(axis: Vector3, angle: float) -> "Quat":
        half = angle * 0.5
        s = math.sin(half)
        return Quat(axis.x * s, axis.y * s, axis.z * s, math.cos(half))

    @staticmethod
    def from_rotation_z(angle: float) -> "Quat":
        half = angle * 0.5
        return Quat(0.0, 0.0, math.sin(half), math.cos(half))

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.z, self.w)

    def dot(self, other: "Quat") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z + self.w * other.w

    def length_squared(self) -> float:
        return self.dot(self)

    def length(self) -> float:
        return math.sqrt(self.length_squared())

    def is_finite(self) -> bool:
        return all(math.isfinite(c) for c in (self.x, self.y, self.z, self.w))

    def is_near_identity(self) -> bool:
        w = min(1.0, abs(self.w))
        return 2.0 * math.acos(w) < _NEAR_IDENTITY_ANGLE

    def normalize(self) -> "Quat":
        inv = 1.0 / self.length()
        return Quat(self.x * inv, self.y * inv, self.z * inv, self.w * inv)

    def normalize_or(self, fallback: "Quat") -> "Quat":
        length_sq = self.length_squared()
        if not math.isfinite(length_sq) or length_sq < 1e-24:
            return fallback
        return self.normalize()

    def rotate(self, v: Vector3) -> Vector3:
        # v' = v (w² - |b|²) + 2 b (v·b) + 2 w (b × v)
        bx, by, bz, w = self.x, self.y, self.z, self.w
        b2 = bx * bx + by * by + bz * bz
        vb = v.x * bx + v.y * by + v.z * bz
        cx = by * v.z - bz * v.y
        cy = bz * v.x - bx * v.z
        cz = bx * v.y - by * v.x
        k = w * w - b2
        return Vector3(
            v.x * k + bx * 2.0 * vb + cx * 2.0 * w,
            v.y * k + by * 2.0 * vb + cy * 2.0 * w,
            v.z * k + bz * 2.0 * vb + cz * 2.0 * w,
        )

    def __add__(self, other: "Quat") -> "Quat":
        return Quat(self.x + other.x, self.y + other.y, self.z + other.z, self.w + other.w)

    def __mul__(self, other: "Quat | float") -> "Quat":
        if isinstance(other, Quat):
            ax, ay, az, aw = self.x, self.y, self.z, self.w
            bx, by, bz, bw = other.x, other.y, other.z, other.w
            return Quat(
                aw * bx + ax * bw + ay * bz - az * by,
                aw * by - ax * bz + ay * bw + az * bx,
                aw * bz + ax * by - ay * bx + az * bw,
                aw * bw - ax * bx - ay * by - az * bz,
            )
        scalar = float(other)
        return Quat(self.x * scalar, self.y * scalar, self.z * scalar, self.w * scalar)

    def __rmul__(self, scalar: float) -> "Quat":
        return self * float(scalar)

    def __truediv__(self, scalar: float) -> "Quat":
        inv = 1.0 / scalar
        return Quat(self.x * inv, self.y * inv, self.z * inv, self.w * inv)


Quat.IDENTITY = Quat(0.0, 0.0, 0.0, 1.0)
HALF_TURN_Z = Quat.from_rotation_z(math.pi)


def angle_between(u: Vector3, v: Vector3) -> float:
    """Unsigned angle in ``[0, pi]``; NaN when either vector has zero length."""
    denom_sq = u.length_squared() * v.length_squared()
    if denom_sq <= 0.0:
        return math.nan
    cos_angle = u.dot(v) / math.sqrt(denom_sq)
    return math.acos(max(-1.0, min(1.0, cos_angle)))


def rotation_from_to(u: Vector3, v: Vector3, rng: "DeterministicRng") -> Quat:
    """Unit rotation taking direction ``u`` onto direction ``v``.

    When the rotation is undefined or negligible (parallel, anti-parallel or
    zero-length inputs) a fair coin from ``rng`` picks between the identity
    and a half turn about z.
    """
    axis = u.cross(v)
    angle = angle_between(u, v)
    axis_length_sq = axis.length_squared()
    if axis_length_sq > 0.0 and math.isfinite(angle):
        q = Quat.from_axis_angle(axis / math.sqrt(axis_length_sq), angle).normalize()
        if q.is_finite() and not q.is_near_identity():
            return q
    if rng.next_bool():
        return Quat.IDENTITY
    return HALF_TURN_Z


def orientation_from_forward(forward_x: float, forward_y: float) -> Quat:
    """Pure z rotation turning the base forward ``(0, 1)`` toward ``(forward_x, forward_y)``."""
    if forward_x == 0.0 and forward_y == 0.0:
        return Quat.IDENTITY
    return Quat.from_rotation_z(math.atan2(-forward_x, forward_y))
