"""Particle pool and fixed-step integrator.

The world is strictly 2D: positions and velocities are (N, 2) arrays and z is
implicitly 0. The pool size only changes on init().

Numeric guards that keep the integration stable (all empirically tuned):

- timeScale = min(dt / (1000/60), 2.0), so a stalled tick injects at most
  twice the per-step impulse;
- central attraction only for d > 1.0;
- per-well forces only for d > 0.1, with soft caps max(d*0.1, 0.5) on gravity
  and max(d*0.05, 0.1) on lensing;
- particles past 2 * particle_spread are respawned or reflected back inside.
"""

from enum import IntEnum

import numpy as np

from simulation.state import FieldSnapshot

REFERENCE_STEP_MS = 1000.0 / 60.0
MAX_TIME_SCALE = 2.0

OUTER_FRACTION = 0.7
RESPAWN_PROBABILITY = 0.3
BOUNCE_DAMPING = 0.5
BOUNCE_INSET = 0.9


class ColorClass(IntEnum):
    """Force-response band of a particle. Fixed at init, never re-derived."""
    RED = 0
    GREEN = 1
    BLUE = 2


def time_scale(delta_ms):
    """Ratio of delta_ms to the 60 Hz reference step, clamped to [0, 2]."""
    return min(max(delta_ms, 0.0) / REFERENCE_STEP_MS, MAX_TIME_SCALE)


class ParticleField:
    def __init__(self, config):
        self.config = None
        self.rng = None
        self.positions = None
        self.velocities = None
        self.color_classes = None
        self.init(config)

    def __len__(self):
        return len(self.positions)

    @property
    def count(self):
        return len(self.positions)

    def init(self, config):
        """(Re)allocate the pool from config. The count is clamped to the configured bounds."""
        self.config = config
        self.rng = np.random.default_rng(config.seed)
        count = config.clamp_particle_count(config.particle_count)
        self.positions = np.zeros((count, 2))
        self.velocities = np.zeros((count, 2))
        self.color_classes = self.rng.integers(0, len(ColorClass), count).astype(np.int8)
        self._spawn(np.arange(count))

    def _spawn(self, idx):
        """Place particles idx at fresh orbital positions with tangential velocity."""
        count = len(idx)
        if count == 0:
            return
        spread, prism_radius, speed = (self.config.particle_spread, self.config.prism_radius,
                                       self.config.initial_speed)

        outer = self.rng.random(count) < OUTER_FRACTION
        u = self.rng.random(count)
        radius = np.where(outer, prism_radius * 0.5 + spread * np.sqrt(u * 0.8),
                          prism_radius * np.sqrt(u))
        theta = self.rng.random(count) * 2.0 * np.pi
        x, y = radius * np.cos(theta), radius * np.sin(theta)

        orbital = speed * (0.8 + 0.4 * self.rng.random(count))
        safe_radius = np.where(radius > 0.1, radius, 1.0)
        velocities = np.column_stack((-y / safe_radius * orbital, x / safe_radius * orbital))
        isotropic = (self.rng.random((count, 2)) - 0.5) * speed
        near_origin = radius <= 0.1
        velocities[near_origin] = isotropic[near_origin]

        self.positions[idx] = np.column_stack((x, y))
        self.velocities[idx] = velocities

    def step(self, delta_ms, players, global_gravity=None):
        """Advance one tick. players is an id -> GravityWell mapping; returns timeScale."""
        scale = time_scale(delta_ms)
        gravity = self.config.gravity_strength if global_gravity is None else global_gravity
        dv = np.zeros_like(self.velocities)

        distance = np.hypot(self.positions[:, 0], self.positions[:, 1])
        far = distance > 1.0
        pull = 0.01 * gravity / (distance[far] ** 2) * scale
        dv[far] -= self.positions[far] / distance[far, None] * pull[:, None]

        for _, well in sorted(players.items()):
            self._apply_well(well, dv, scale)

        self.velocities += dv
        self.velocities *= self.config.velocity_damping ** scale
        self.positions += self.velocities * scale
        self._enforce_boundary()
        return scale

    def _apply_well(self, well, dv, scale):
        offset = np.array([well.x, well.y]) - self.positions
        distance = np.hypot(offset[:, 0], offset[:, 1])
        idx = np.nonzero(distance > 0.1)[0]
        if len(idx) == 0:
            return
        distance = distance[idx]
        direction = offset[idx] / distance[:, None]

        pull = (well.gravity_strength / np.maximum(distance * 0.1, 0.5)
                + well.lensing_strength / np.maximum(distance * 0.05, 0.1)) * scale
        dv[idx] += direction * pull[:, None]

        radius = well.prism_radius
        if radius <= 0:
            return
        inside = distance < radius
        if inside.any():
            self._disperse(well, dv, scale, idx[inside], distance[inside], direction[inside])
        rim = ~inside & (distance < radius * 1.5)
        if rim.any():
            falloff = np.maximum(0.0, 1.0 - (distance[rim] - radius) / (radius * 0.5))
            force = 0.1 * well.prism_strength * falloff * scale
            wobble = 0.8 + 0.4 * self.rng.random((len(falloff), 2))
            dv[idx[rim]] += direction[rim] * force[:, None] * wobble

    def _disperse(self, well, dv, scale, idx, distance, direction):
        """Outward prism push inside the radius, split into three spectral bands."""
        dispersion = well.prism_dispersion
        effect = well.prism_strength * 1.5
        classes = self.color_classes[idx]

        color_factor = np.array([0.7 - dispersion * 0.15, 1.0, 1.3 + dispersion * 0.2])[classes]
        perp_factor = np.array([0.6, 0.3, 0.7])[classes] * dispersion * scale
        sign = np.array([-1.0, 0.0, 1.0])[classes]
        green = classes == ColorClass.GREEN
        sign[green] = self.rng.choice((-1.0, 1.0), size=int(green.sum()))

        force = (distance / well.prism_radius) * scale * effect * color_factor
        tangent = np.column_stack((-direction[:, 1], direction[:, 0])) * sign[:, None]
        jitter = (self.rng.random((len(idx), 2)) - 0.5) * (force * 0.4 * dispersion)[:, None]

        dv[idx] += (-direction * force[:, None]
                    + tangent * (np.abs(force) * perp_factor * effect)[:, None]
                    + jitter)

    def _enforce_boundary(self):
        limit = self.config.particle_spread * 2.0
        distance = np.hypot(self.positions[:, 0], self.positions[:, 1])
        out = np.nonzero(distance > limit)[0]
        if len(out) == 0:
            return
        respawn = self.rng.random(len(out)) < RESPAWN_PROBABILITY
        self._spawn(out[respawn])

        bounce = out[~respawn]
        normal = self.positions[bounce] / distance[bounce, None]
        dot = np.einsum("ij,ij->i", self.velocities[bounce], normal)
        self.velocities[bounce] = (self.velocities[bounce] - 2.0 * dot[:, None] * normal) * BOUNCE_DAMPING
        self.positions[bounce] = normal * limit * BOUNCE_INSET

    def get_snapshot(self):
        return FieldSnapshot(self.positions.copy(), self.velocities.copy(), self.color_classes.copy())
