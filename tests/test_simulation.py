"""End-to-end tests for the Simulation context."""
import numpy as np
import pytest

from integrator import RK4Integrator
from particle import SpawnPolicy
from simulation import Simulation
from systems import (
    ChenParams, LorenzParams, RosslerParams, SystemId, bind, initial_state
)


def lorenz_golden(steps, dt=0.01, sigma=10.0, rho=28.0, beta=8.0 / 3.0):
    """Independent float64 RK4 solution of Lorenz from (1, 1, 1)."""
    def f(x, y, z):
        return sigma * (y - x), x * (rho - z) - y, x * y - beta * z

    x, y, z = 1.0, 1.0, 1.0
    for _ in range(steps):
        a = f(x, y, z)
        b = f(x + 0.5 * dt * a[0], y + 0.5 * dt * a[1], z + 0.5 * dt * a[2])
        c = f(x + 0.5 * dt * b[0], y + 0.5 * dt * b[1], z + 0.5 * dt * b[2])
        d = f(x + dt * c[0], y + dt * c[1], z + dt * c[2])
        x += dt / 6.0 * (a[0] + 2.0 * b[0] + 2.0 * c[0] + d[0])
        y += dt / 6.0 * (a[1] + 2.0 * b[1] + 2.0 * c[1] + d[1])
        z += dt / 6.0 * (a[2] + 2.0 * b[2] + 2.0 * c[2] + d[2])
    return np.array([x, y, z])


class LorenzFloat64:
    """Lorenz with exact float64 coefficients, for driving RK4Integrator."""
    dimension = 3

    def derivative(self, state, t, out):
        x, y, z = state
        out[0] = 10.0 * (y - x)
        out[1] = x * (28.0 - z) - y
        out[2] = x * y - 8.0 / 3.0 * z
        return out


@pytest.fixture
def sim():
    simulation = Simulation({'system': 'lorenz', 'particle_count': 64, 'seed': 1, 'step_size': 0.01})
    yield simulation
    simulation.close()


class TestConfiguration:
    def test_defaults(self):
        simulation = Simulation()
        try:
            assert simulation.system_id is SystemId.LORENZ
            assert simulation.step_size == np.float32(0.01)
            assert simulation.particle_count == 10000
            assert simulation.paused is False
        finally:
            simulation.close()

    def test_system_parameter_overrides(self):
        simulation = Simulation({
            'system': 'chen',
            'particle_count': 8,
            'system_parameters': {'chen': {'alpha': 4.0}, 'lorenz': {'rho': 20.0}},
        })
        try:
            assert simulation.get_parameters() == ChenParams(alpha=4.0)
            assert simulation.get_parameters(SystemId.LORENZ).rho == 20.0
            assert simulation.field.parameters.alpha == 4.0
        finally:
            simulation.close()

    def test_unknown_system_rejected(self):
        with pytest.raises(ValueError):
            Simulation({'system': 'duffing', 'particle_count': 8})

    def test_unknown_parameter_rejected(self):
        with pytest.raises(ValueError):
            Simulation({'particle_count': 8, 'system_parameters': {'lorenz': {'gamma': 1.0}}})

    def test_step_size_clamped(self, sim):
        sim.set_step_size(10.0)
        assert sim.step_size == np.float32(0.2)

    def test_get_parameters_returns_copy(self, sim):
        params = sim.get_parameters()
        params.sigma = 1.0
        assert sim.get_parameters().sigma == 10.0


class TestLorenzEndToEnd:
    def test_thousand_steps_stay_on_attractor(self, sim):
        np.testing.assert_array_equal(sim.reference_state, [1.0, 1.0, 1.0])
        total = 0
        for _ in range(1000):
            total += sim.tick(sim.step_size)
        assert total == 1000
        assert sim.total_steps == 1000
        assert float(sim.time) == pytest.approx(10.0, abs=1e-3)

        x, y, z = sim.reference_state
        assert np.all(np.isfinite(sim.reference_state))
        assert abs(x) < 25.0 and abs(y) < 35.0 and 0.0 < z < 55.0
        assert np.all(np.isfinite(sim.positions))
        lower, upper = sim.bounds()
        assert np.all(lower > -60.0) and np.all(upper < 60.0)

    def test_integrator_reproduces_golden_sample_at_t10(self):
        state = np.array([1.0, 1.0, 1.0])
        integrator = RK4Integrator()
        for step in range(1000):
            integrator.step(LorenzFloat64(), state, step * 0.01, 0.01)
        # Same scheme in float64; only the operation order differs.
        np.testing.assert_allclose(state, lorenz_golden(1000), rtol=0, atol=1e-6)

    def test_simulation_tracks_golden_sample(self, sim):
        for _ in range(100):
            sim.tick(sim.step_size)
        np.testing.assert_allclose(sim.reference_state, lorenz_golden(100), rtol=0, atol=1e-2)
        for _ in range(900):
            sim.tick(sim.step_size)
        assert float(sim.time) == pytest.approx(10.0, abs=1e-3)
        # float32 rounding grows chaotically by t=10 but stays far below the
        # attractor scale.
        np.testing.assert_allclose(sim.reference_state, lorenz_golden(1000), rtol=0, atol=1.0)

    def test_first_step_matches_direct_integration(self, sim):
        expected = initial_state(SystemId.LORENZ)
        RK4Integrator().step(bind(SystemId.LORENZ), expected, 0.0, np.float32(0.01))
        sim.tick(sim.step_size)
        np.testing.assert_array_equal(sim.reference_state, expected)

    def test_particle_on_reference_state_tracks_it_exactly(self, sim):
        sim.ensemble.positions[0] = initial_state(SystemId.LORENZ)
        for _ in range(10):
            sim.tick(sim.step_size)
        np.testing.assert_array_equal(sim.positions[0], sim.reference_state)


class TestTick:
    def test_pause_stops_everything(self, sim):
        sim.set_pause(True)
        positions = sim.positions.copy()
        assert sim.tick(1.0) == 0
        np.testing.assert_array_equal(sim.positions, positions)
        assert sim.time == 0.0
        sim.set_pause(False)
        assert sim.tick(sim.step_size) == 1

    def test_catch_up_is_bounded(self, sim):
        assert sim.tick(100.0) <= 200

    def test_particle_count_constant(self, sim):
        for _ in range(5):
            sim.tick(0.05)
        assert sim.positions.shape == (64, 3)
        assert sim.phases.shape == (64,)


class TestReset:
    def test_set_system_resets_everything(self, sim):
        for _ in range(20):
            sim.tick(sim.step_size)
        sim.set_system(SystemId.ROSSLER, RosslerParams(c=6.0))
        assert sim.system_id is SystemId.ROSSLER
        assert sim.time == 0.0
        assert sim.clock.accumulator == 0.0
        np.testing.assert_allclose(sim.reference_state, [0.1, 0.0, 0.0])
        assert sim.field.system_id is SystemId.ROSSLER
        assert sim.field.parameters.c == 6.0
        assert sim.get_parameters(SystemId.ROSSLER).c == 6.0
        assert sim.positions.shape == (64, 3)

    def test_set_system_keeps_stored_parameters(self, sim):
        sim.set_system(SystemId.LORENZ, LorenzParams(rho=14.0))
        sim.set_system(SystemId.THOMAS)
        sim.set_system(SystemId.LORENZ)
        assert sim.field.parameters.rho == 14.0

    def test_set_system_wrong_parameter_type(self, sim):
        with pytest.raises(TypeError):
            sim.set_system(SystemId.LORENZ, RosslerParams())

    def test_reset_replaces_integrator(self, sim):
        sim.tick(sim.step_size)
        integrator = sim.integrator
        sim.reset()
        assert sim.integrator is not integrator

    def test_set_step_size_clears_backlog(self, sim):
        sim.tick(0.005)
        sim.set_step_size(0.02)
        assert sim.clock.accumulator == 0.0


class TestReseed:
    def test_count_and_policy(self, sim):
        sim.reseed(200, SpawnPolicy(from_origin=True, origin_jitter=0.01))
        assert sim.particle_count == 200
        assert sim.positions.shape == (200, 3)
        assert sim.phases.shape == (200,)
        assert np.linalg.norm(sim.positions, axis=1).max() <= 0.02 * 1.001

    def test_zero_count(self, sim):
        sim.reseed(0)
        assert sim.positions.shape == (1, 3)

    def test_reseed_keeps_trajectory(self, sim):
        sim.tick(sim.step_size)
        state = sim.reference_state.copy()
        sim.reseed()
        np.testing.assert_array_equal(sim.reference_state, state)
        assert sim.time > 0.0

    def test_count_survives_reset(self, sim):
        sim.reseed(33)
        sim.reset()
        assert sim.positions.shape == (33, 3)


class TestAccessors:
    def test_views_are_read_only(self, sim):
        with pytest.raises(ValueError):
            sim.positions[0, 0] = 1.0
        with pytest.raises(ValueError):
            sim.reference_state[0] = 1.0
        with pytest.raises(ValueError):
            sim.phases[0] = 1.0

    def test_positions_view_tracks_stepping(self, sim):
        view = sim.positions
        before = view.copy()
        sim.tick(sim.step_size)
        assert not np.array_equal(view, before)

    def test_independent_instances(self):
        a = Simulation({'particle_count': 16, 'seed': 3})
        b = Simulation({'particle_count': 16, 'seed': 3, 'system': 'thomas'})
        try:
            a.tick(a.step_size)
            assert b.time == 0.0
            assert b.system_id is SystemId.THOMAS
        finally:
            a.close()
            b.close()
