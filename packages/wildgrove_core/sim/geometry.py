"""Minimal 3D vector math for straight-line movement."""

from __future__ import annotations

from dataclasses import dataclass
import math


@dataclass(frozen=True)
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scaled(self, factor: float) -> "Vec3":
        return Vec3(self.x * factor, self.y * factor, self.z * factor)

    def flat(self) -> "Vec3":
        return Vec3(self.x, 0.0, self.z)

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def distance_sq(self, other: "Vec3") -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return dx * dx + dy * dy + dz * dz

    def distance(self, other: "Vec3") -> float:
        return math.sqrt(self.distance_sq(other))

    def planar_distance(self, other: "Vec3") -> float:
        dx = self.x - other.x
        dz = self.z - other.z
        return math.sqrt(dx * dx + dz * dz)

    def normalized(self) -> "Vec3":
        size = self.length()
        if size <= 0.0:
            return Vec3()
        return self.scaled(1.0 / size)

    def with_y(self, y: float) -> "Vec3":
        return Vec3(self.x, float(y), self.z)

    def as_dict(self) -> dict[str, float]:
        return {"x": round(self.x, 3), "y": round(self.y, 3), "z": round(self.z, 3)}

    def label(self) -> str:
        return f"({self.x:.1f}, {self.y:.1f}, {self.z:.1f})"
