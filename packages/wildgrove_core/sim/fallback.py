"""Deterministic recovery behavior: roam near home."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable
import math
import random

from .geometry import Vec3

if TYPE_CHECKING:
    from .agent import Agent


TerrainFn = Callable[[float, float], float]
FALLBACK_INTENT = "Exploring (fallback)"


class FallbackPolicy:
    def __init__(self, *, terrain_height: TerrainFn, rng: random.Random | None = None) -> None:
        self._terrain_height = terrain_height
        self._rng = rng or random.Random()

    def pick_destination(self, home: Vec3, roam_radius: float) -> Vec3:
        angle = self._rng.random() * math.pi * 2.0
        distance = self._rng.random() * max(0.0, float(roam_radius))
        x = home.x + math.cos(angle) * distance
        z = home.z + math.sin(angle) * distance
        return Vec3(x, self._terrain_height(x, z), z)

    def apply(self, agent: "Agent", reason: str) -> Vec3:
        destination = self.pick_destination(agent.home, agent.roam_radius)
        agent.begin_fallback_roam(destination, intent=FALLBACK_INTENT, reason=reason)
        return destination
