import math
from dataclasses import dataclass
from typing import List, NamedTuple, Sequence

import numpy as np
from numba import njit

# Type constants
TYPE_A = 0
TYPE_B = 1
TYPE_PRODUCT = 2

TYPE_NAMES = {TYPE_A: "A", TYPE_B: "B", TYPE_PRODUCT: "PRODUCT"}


class InvariantViolation(AssertionError):
    """A tick left the store in a state the physics can never produce."""


@dataclass
class ParticleStore:
    """Flat struct-of-arrays particle state, one row per particle."""
    ids: np.ndarray     # (n,) int64
    pos: np.ndarray     # (n, 2) float64
    vel: np.ndarray     # (n, 2) float64
    types: np.ndarray   # (n,) int32

    def __len__(self):
        return len(self.ids)

    def copy(self) -> "ParticleStore":
        return ParticleStore(self.ids.copy(), self.pos.copy(), self.vel.copy(), self.types.copy())


class ParticleSeed(NamedTuple):
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    type: int = TYPE_A


class Stats(NamedTuple):
    count_a: int
    count_b: int
    count_product: int

    @property
    def total(self) -> int:
        return self.count_a + self.count_b + self.count_product

    def to_dict(self):
        return {"countA": self.count_a, "countB": self.count_b, "countProduct": self.count_product}


def empty_store() -> ParticleStore:
    return ParticleStore(
        ids=np.zeros(0, dtype=np.int64),
        pos=np.zeros((0, 2), dtype=np.float64),
        vel=np.zeros((0, 2), dtype=np.float64),
        types=np.zeros(0, dtype=np.int32),
    )


def create_particles(count, bounds, speed_scale, radius, rng=None) -> ParticleStore:
    """
    Populate `count` particles uniformly inside [radius, bound - radius] on
    each axis, velocity components uniform in [-speed_scale/2, speed_scale/2],
    type A or B by a fair coin. No particle starts as a product.
    """
    if count <= 0:
        return empty_store()
    if rng is None:
        rng = np.random.default_rng()

    pos = np.empty((count, 2), dtype=np.float64)
    pos[:, 0] = rng.uniform(radius, bounds.width - radius, count)
    pos[:, 1] = rng.uniform(radius, bounds.height - radius, count)

    half = speed_scale / 2.0
    vel = rng.uniform(-half, half, (count, 2))

    types = np.where(rng.random(count) < 0.5, TYPE_A, TYPE_B).astype(np.int32)

    return ParticleStore(
        ids=np.arange(count, dtype=np.int64),
        pos=pos,
        vel=vel,
        types=types,
    )


def store_from_layout(seeds: Sequence[ParticleSeed]) -> ParticleStore:
    """Build a store from explicit particle placements; ids follow seed order."""
    if len(seeds) == 0:
        return empty_store()
    for seed in seeds:
        if seed.type not in TYPE_NAMES:
            raise ValueError(f"unknown particle type {seed.type!r}")
    return ParticleStore(
        ids=np.arange(len(seeds), dtype=np.int64),
        pos=np.array([(s.x, s.y) for s in seeds], dtype=np.float64),
        vel=np.array([(s.vx, s.vy) for s in seeds], dtype=np.float64),
        types=np.array([s.type for s in seeds], dtype=np.int32),
    )


@njit(cache=True)
def react(type_i, type_j):
    """A + B (either order) -> Product + Product; any other pairing is inert."""
    a = int(type_i)
    b = int(type_j)
    if (a == TYPE_A and b == TYPE_B) or (a == TYPE_B and b == TYPE_A):
        return TYPE_PRODUCT, TYPE_PRODUCT
    return a, b


@njit(cache=True)
def _clamp(value, lo, hi):
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


@njit(cache=True)
def integrate_numba(pos, vel, width, height, radius):
    x_max = width - radius
    y_max = height - radius
    for i in range(len(pos)):
        pos[i, 0] += vel[i, 0]
        pos[i, 1] += vel[i, 1]

        # Wall bounce: reflect first, then clamp back inside
        if pos[i, 0] <= radius or pos[i, 0] >= x_max:
            vel[i, 0] = -vel[i, 0]
            pos[i, 0] = _clamp(pos[i, 0], radius, x_max)
        if pos[i, 1] <= radius or pos[i, 1] >= y_max:
            vel[i, 1] = -vel[i, 1]
            pos[i, 1] = _clamp(pos[i, 1], radius, y_max)


@njit(cache=True)
def resolve_collisions_numba(pos, vel, types, reaction_dist, width, height, radius):
    """
    Sequential pairwise contact pass, ascending i then ascending j.

    Each contact swaps the along-normal velocity components (equal-mass
    elastic bounce), pushes both particles apart by half the overlap and
    applies the reaction rule to the pair's types as they were before this
    pair was processed. Later pairs see the updated state of earlier ones.

    Returns (contacts, reactions) for the pass.
    """
    n = len(pos)
    x_max = width - radius
    y_max = height - radius
    contacts = 0
    reactions = 0

    for i in range(n):
        for j in range(i + 1, n):
            dx = pos[i, 0] - pos[j, 0]
            dy = pos[i, 1] - pos[j, 1]
            dist = math.sqrt(dx * dx + dy * dy)

            if dist < reaction_dist:
                type_i = types[i]
                type_j = types[j]

                angle = math.atan2(dy, dx)
                sin = math.sin(angle)
                cos = math.cos(angle)

                # Rotate into the collision frame
                vx1 = vel[i, 0] * cos + vel[i, 1] * sin
                vy1 = vel[i, 1] * cos - vel[i, 0] * sin
                vx2 = vel[j, 0] * cos + vel[j, 1] * sin
                vy2 = vel[j, 1] * cos - vel[j, 0] * sin

                # Swap normal components and rotate back
                vel[i, 0] = vx2 * cos - vy1 * sin
                vel[i, 1] = vy1 * cos + vx2 * sin
                vel[j, 0] = vx1 * cos - vy2 * sin
                vel[j, 1] = vy2 * cos + vx1 * sin

                # Separate to prevent sticking
                half = (reaction_dist - dist) / 2.0
                pos[i, 0] = _clamp(pos[i, 0] + half * cos, radius, x_max)
                pos[i, 1] = _clamp(pos[i, 1] + half * sin, radius, y_max)
                pos[j, 0] = _clamp(pos[j, 0] - half * cos, radius, x_max)
                pos[j, 1] = _clamp(pos[j, 1] - half * sin, radius, y_max)

                new_i, new_j = react(type_i, type_j)
                if new_i != type_i or new_j != type_j:
                    reactions += 1
                types[i] = new_i
                types[j] = new_j
                contacts += 1

    return contacts, reactions


@njit(cache=True)
def count_types_numba(types):
    count_a = 0
    count_b = 0
    count_p = 0
    for i in range(len(types)):
        t = types[i]
        if t == TYPE_A:
            count_a += 1
        elif t == TYPE_B:
            count_b += 1
        elif t == TYPE_PRODUCT:
            count_p += 1
    return count_a, count_b, count_p


def step(store: ParticleStore, bounds, radius: float) -> None:
    """Advance every particle by its velocity and bounce it off the walls."""
    if len(store) == 0:
        return
    integrate_numba(store.pos, store.vel, float(bounds.width), float(bounds.height), float(radius))


def resolve_collisions(store: ParticleStore, reaction_distance: float, bounds, radius: float):
    if len(store) < 2:
        return 0, 0
    return resolve_collisions_numba(
        store.pos, store.vel, store.types,
        float(reaction_distance),
        float(bounds.width), float(bounds.height), float(radius),
    )


def compute_stats(store: ParticleStore) -> Stats:
    """Full recount from the store; never maintained incrementally."""
    count_a, count_b, count_p = count_types_numba(store.types)
    return Stats(int(count_a), int(count_b), int(count_p))


def check_invariants(store: ParticleStore, bounds, types_before: np.ndarray) -> List[str]:
    """
    Return a list of invariant breaches after a tick (empty when healthy).

    Checked: every coordinate inside [0, bound], no product reverted.
    """
    issues = []
    if len(store) == 0:
        return issues
    xs = store.pos[:, 0]
    ys = store.pos[:, 1]
    outside = (xs < 0) | (xs > bounds.width) | (ys < 0) | (ys > bounds.height) | ~np.isfinite(xs) | ~np.isfinite(ys)
    for idx in np.flatnonzero(outside):
        issues.append(f"particle {int(store.ids[idx])} outside bounds at ({xs[idx]:.3f}, {ys[idx]:.3f})")
    reverted = (types_before == TYPE_PRODUCT) & (store.types != TYPE_PRODUCT)
    for idx in np.flatnonzero(reverted):
        issues.append(f"particle {int(store.ids[idx])} reverted from product to type {int(store.types[idx])}")
    return issues
