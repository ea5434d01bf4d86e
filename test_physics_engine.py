import math

import numpy as np
import pytest

from physics_engine import (
    TYPE_A,
    TYPE_B,
    TYPE_PRODUCT,
    ParticleSeed,
    check_invariants,
    compute_stats,
    create_particles,
    react,
    resolve_collisions,
    step,
    store_from_layout,
)
from runtime_config import Bounds

RADIUS = 5.0
BOUNDS = Bounds(100.0, 80.0)


# =============================================================================
# Particle store
# =============================================================================

class TestCreateParticles:
    def test_positions_velocities_and_types(self):
        rng = np.random.default_rng(3)
        store = create_particles(500, BOUNDS, 2.0, RADIUS, rng)

        assert len(store) == 500
        assert list(store.ids) == list(range(500))
        assert np.all(store.pos[:, 0] >= RADIUS) and np.all(store.pos[:, 0] <= BOUNDS.width - RADIUS)
        assert np.all(store.pos[:, 1] >= RADIUS) and np.all(store.pos[:, 1] <= BOUNDS.height - RADIUS)
        assert np.all(np.abs(store.vel) <= 1.0)
        assert set(np.unique(store.types)) <= {TYPE_A, TYPE_B}
        # Fair coin: both reactants show up in a large sample
        assert 150 < np.sum(store.types == TYPE_A) < 350

    @pytest.mark.parametrize("count", [0, -4])
    def test_non_positive_count_is_empty(self, count):
        store = create_particles(count, BOUNDS, 1.5, RADIUS)
        assert len(store) == 0
        assert store.pos.shape == (0, 2)

    def test_same_seed_same_store(self):
        a = create_particles(20, BOUNDS, 1.5, RADIUS, np.random.default_rng(11))
        b = create_particles(20, BOUNDS, 1.5, RADIUS, np.random.default_rng(11))
        np.testing.assert_array_equal(a.pos, b.pos)
        np.testing.assert_array_equal(a.vel, b.vel)
        np.testing.assert_array_equal(a.types, b.types)

    def test_layout_assigns_ids_in_order(self):
        store = store_from_layout([
            ParticleSeed(10, 10, 1.0, -1.0, TYPE_A),
            ParticleSeed(20, 30, 0.0, 0.0, TYPE_B),
        ])
        assert list(store.ids) == [0, 1]
        assert store.pos.tolist() == [[10.0, 10.0], [20.0, 30.0]]
        assert store.vel.tolist() == [[1.0, -1.0], [0.0, 0.0]]
        assert store.types.tolist() == [TYPE_A, TYPE_B]


# =============================================================================
# Integrator
# =============================================================================

class TestIntegrator:
    def test_free_flight(self):
        store = store_from_layout([ParticleSeed(50, 40, 1.5, -0.5)])
        step(store, BOUNDS, RADIUS)
        assert store.pos[0].tolist() == [51.5, 39.5]
        assert store.vel[0].tolist() == [1.5, -0.5]

    def test_reflection_at_left_wall(self):
        k = 0.75
        store = store_from_layout([ParticleSeed(RADIUS, 40, -k, 0.0)])
        step(store, BOUNDS, RADIUS)
        assert store.vel[0, 0] == pytest.approx(k)
        assert store.pos[0, 0] >= RADIUS

    def test_reflection_at_far_walls_clamps(self):
        store = store_from_layout([ParticleSeed(BOUNDS.width - RADIUS - 0.2, BOUNDS.height - RADIUS - 0.1, 1.0, 2.0)])
        step(store, BOUNDS, RADIUS)
        assert store.vel[0].tolist() == [-1.0, -2.0]
        assert store.pos[0].tolist() == [BOUNDS.width - RADIUS, BOUNDS.height - RADIUS]

    def test_axes_reflect_independently(self):
        store = store_from_layout([ParticleSeed(50, RADIUS + 0.5, 1.0, -2.0)])
        step(store, BOUNDS, RADIUS)
        assert store.vel[0].tolist() == [1.0, 2.0]
        assert store.pos[0, 0] == 51.0
        assert store.pos[0, 1] == RADIUS


# =============================================================================
# Reaction rule
# =============================================================================

class TestReact:
    @pytest.mark.parametrize("a,b", [(TYPE_A, TYPE_B), (TYPE_B, TYPE_A)])
    def test_reactants_become_product(self, a, b):
        assert tuple(react(a, b)) == (TYPE_PRODUCT, TYPE_PRODUCT)

    @pytest.mark.parametrize("a,b", [
        (TYPE_A, TYPE_A),
        (TYPE_B, TYPE_B),
        (TYPE_A, TYPE_PRODUCT),
        (TYPE_PRODUCT, TYPE_B),
        (TYPE_PRODUCT, TYPE_PRODUCT),
    ])
    def test_other_pairs_unchanged(self, a, b):
        assert tuple(react(a, b)) == (a, b)


# =============================================================================
# Collision engine
# =============================================================================

class TestCollisions:
    def test_overlapping_reactants_react_and_separate(self):
        store = store_from_layout([
            ParticleSeed(30, 30, 0.0, 0.0, TYPE_A),
            ParticleSeed(30, 30, 0.0, 0.0, TYPE_B),
        ])
        contacts, reactions = resolve_collisions(store, 5.0, BOUNDS, RADIUS)

        assert (contacts, reactions) == (1, 1)
        assert store.types.tolist() == [TYPE_PRODUCT, TYPE_PRODUCT]
        # Pushed apart by half the overlap each along the x axis
        assert store.pos[0].tolist() == [32.5, 30.0]
        assert store.pos[1].tolist() == [27.5, 30.0]

    def test_same_type_does_not_react(self):
        store = store_from_layout([
            ParticleSeed(30, 30, 0.0, 0.0, TYPE_A),
            ParticleSeed(30, 30, 0.0, 0.0, TYPE_A),
        ])
        resolve_collisions(store, 5.0, BOUNDS, RADIUS)
        assert store.types.tolist() == [TYPE_A, TYPE_A]

    def test_head_on_exchange(self):
        store = store_from_layout([
            ParticleSeed(40, 40, 1.0, 0.0, TYPE_A),
            ParticleSeed(44, 40, -2.0, 0.0, TYPE_A),
        ])
        resolve_collisions(store, 10.0, BOUNDS, RADIUS)
        assert store.vel[0, 0] == pytest.approx(-2.0)
        assert store.vel[1, 0] == pytest.approx(1.0)
        assert store.vel[0, 1] == pytest.approx(0.0, abs=1e-12)
        assert store.vel[1, 1] == pytest.approx(0.0, abs=1e-12)
        # Separated to exactly the reaction distance
        assert store.pos[1, 0] - store.pos[0, 0] == pytest.approx(10.0)

    def test_oblique_contact_keeps_tangential_components(self):
        store = store_from_layout([
            ParticleSeed(40, 40, 1.0, 1.0, TYPE_A),
            ParticleSeed(43, 44, 0.0, -1.0, TYPE_B),
        ])
        before = store.vel.copy()
        resolve_collisions(store, 10.0, BOUNDS, RADIUS)

        dx, dy = 40 - 43, 40 - 44
        n = np.array([dx, dy]) / math.hypot(dx, dy)
        t = np.array([-n[1], n[0]])
        # Normal components swapped, tangential kept
        assert store.vel[0] @ n == pytest.approx(before[1] @ n)
        assert store.vel[1] @ n == pytest.approx(before[0] @ n)
        assert store.vel[0] @ t == pytest.approx(before[0] @ t)
        assert store.vel[1] @ t == pytest.approx(before[1] @ t)
        # Momentum and kinetic energy conserved for equal masses
        np.testing.assert_allclose(store.vel.sum(axis=0), before.sum(axis=0), atol=1e-12)
        assert np.sum(store.vel ** 2) == pytest.approx(np.sum(before ** 2))

    def test_far_pair_untouched(self):
        store = store_from_layout([
            ParticleSeed(20, 20, 1.0, 0.0, TYPE_A),
            ParticleSeed(60, 20, -1.0, 0.0, TYPE_B),
        ])
        assert tuple(resolve_collisions(store, 12.5, BOUNDS, RADIUS)) == (0, 0)
        assert store.types.tolist() == [TYPE_A, TYPE_B]
        assert store.vel.tolist() == [[1.0, 0.0], [-1.0, 0.0]]

    def test_product_is_absorbing(self):
        store = store_from_layout([
            ParticleSeed(30, 30, 0.0, 0.0, TYPE_PRODUCT),
            ParticleSeed(31, 30, 0.0, 0.0, TYPE_A),
        ])
        resolve_collisions(store, 5.0, BOUNDS, RADIUS)
        assert store.types.tolist() == [TYPE_PRODUCT, TYPE_A]

    def test_pairs_processed_sequentially(self):
        # 0 reacts with 1 first; 2 then only meets products
        store = store_from_layout([
            ParticleSeed(30, 30, 0.0, 0.0, TYPE_A),
            ParticleSeed(31, 30, 0.0, 0.0, TYPE_B),
            ParticleSeed(30, 31, 0.0, 0.0, TYPE_B),
        ])
        contacts, reactions = resolve_collisions(store, 5.0, BOUNDS, RADIUS)
        assert reactions == 1
        assert contacts >= 2
        assert store.types.tolist() == [TYPE_PRODUCT, TYPE_PRODUCT, TYPE_B]

    def test_separation_near_wall_stays_inside(self):
        store = store_from_layout([
            ParticleSeed(RADIUS, 40, 0.0, 0.0, TYPE_A),
            ParticleSeed(RADIUS + 1.0, 40, 0.0, 0.0, TYPE_A),
        ])
        resolve_collisions(store, 12.5, BOUNDS, RADIUS)
        assert np.all(store.pos[:, 0] >= RADIUS)


# =============================================================================
# Stats and invariant checks
# =============================================================================

def test_compute_stats_counts_every_type():
    store = store_from_layout([
        ParticleSeed(10, 10, type=TYPE_A),
        ParticleSeed(20, 10, type=TYPE_B),
        ParticleSeed(30, 10, type=TYPE_B),
        ParticleSeed(40, 10, type=TYPE_PRODUCT),
    ])
    stats = compute_stats(store)
    assert tuple(stats) == (1, 2, 1)
    assert stats.total == 4
    assert stats.to_dict() == {"countA": 1, "countB": 2, "countProduct": 1}


def test_check_invariants_flags_escape_and_reversion():
    store = store_from_layout([
        ParticleSeed(10, 10, type=TYPE_A),
        ParticleSeed(20, 10, type=TYPE_PRODUCT),
    ])
    before = store.types.copy()
    assert check_invariants(store, BOUNDS, before) == []

    store.pos[0, 0] = -1.0
    store.types[1] = TYPE_A
    issues = check_invariants(store, BOUNDS, before)
    assert any("outside bounds" in issue for issue in issues)
    assert any("reverted" in issue for issue in issues)
