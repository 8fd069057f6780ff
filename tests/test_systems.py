"""Tests for the attractor catalog."""
import numpy as np
import pytest

from systems import (
    DISPLAY_NAMES, LorenzParams, RosslerParams, SystemId, bind,
    default_parameters, initial_state, parameter_names, parameters_from_dict,
    system_from_name
)

# Derivative at each system's initial state with default parameters.
GOLDEN_DERIVATIVES = {
    SystemId.LORENZ: (0.0, 26.0, 1.0 - 8.0 / 3.0),
    SystemId.ROSSLER: (0.0, 0.1, 0.2),
    SystemId.THOMAS: (-0.0416372, -0.19866933, 0.24030653),
    SystemId.AIZAWA: (-0.07, 0.35, 0.59),
    SystemId.DADRAS: (-0.173, 0.26, -0.88),
    SystemId.CHEN: (0.5, 0.0, 0.0),
    SystemId.LORENZ83: (4.4935, 4.66, 0.0),
    SystemId.HALVORSEN: (-0.14, -0.4, -0.41),
    SystemId.RABINOVICH: (0.01, 0.099, 0.0),
    SystemId.THREE_SCROLL: (-3.248, 4.584, 0.0),
    SystemId.SPROTT: (-0.107, -0.09, 0.4),
    SystemId.FOUR_WING: (0.02, -0.39, 0.19),
}


class TestGoldenDerivatives:
    def test_every_system_has_a_golden_vector(self):
        assert set(GOLDEN_DERIVATIVES) == set(SystemId)

    @pytest.mark.parametrize("system_id", list(SystemId))
    def test_derivative_at_initial_state(self, system_id):
        field = bind(system_id)
        result = field.derivative(initial_state(system_id), 0.0)
        np.testing.assert_allclose(result, GOLDEN_DERIVATIVES[system_id], atol=1e-5, rtol=0)

    def test_derivative_writes_into_out(self):
        field = bind(SystemId.LORENZ)
        out = np.zeros(3, dtype=np.float32)
        returned = field.derivative(np.ones(3, dtype=np.float32), 0.0, out)
        assert returned is out
        np.testing.assert_allclose(out, GOLDEN_DERIVATIVES[SystemId.LORENZ], atol=1e-5)

    def test_time_is_ignored(self):
        field = bind(SystemId.ROSSLER)
        state = np.array([1.0, -2.0, 0.5], dtype=np.float32)
        np.testing.assert_array_equal(field.derivative(state, 0.0), field.derivative(state, 123.0))

    def test_non_finite_passes_through(self):
        field = bind(SystemId.LORENZ)
        result = field.derivative(np.array([np.nan, 1.0, 1.0], dtype=np.float32), 0.0)
        assert np.isnan(result[0])


class TestBind:
    def test_defaults_when_no_parameters(self):
        field = bind(SystemId.LORENZ)
        assert field.dimension == 3
        assert field.parameters == LorenzParams()
        np.testing.assert_allclose(field.coefficients, [10.0, 28.0, 8.0 / 3.0], rtol=1e-6)

    def test_custom_parameters(self):
        field = bind(SystemId.LORENZ, LorenzParams(sigma=0.0, rho=0.0, beta=0.0))
        result = field.derivative(np.array([1.0, 2.0, 3.0], dtype=np.float32), 0.0)
        # sigma*(y-x), x*(rho-z)-y, x*y-beta*z
        np.testing.assert_allclose(result, [0.0, -3.0 - 2.0, 2.0])

    def test_snapshot_is_isolated_from_later_edits(self):
        params = LorenzParams()
        field = bind(SystemId.LORENZ, params)
        params.sigma = 99.0
        assert field.parameters.sigma == 10.0
        assert field.coefficients[0] == np.float32(10.0)

    def test_coefficients_are_read_only(self):
        field = bind(SystemId.AIZAWA)
        with pytest.raises(ValueError):
            field.coefficients[0] = 1.0

    def test_wrong_parameter_type(self):
        with pytest.raises(TypeError):
            bind(SystemId.LORENZ, RosslerParams())

    def test_default_parameters_are_fresh(self):
        a = default_parameters(SystemId.CHEN)
        b = default_parameters(SystemId.CHEN)
        a.alpha = 1.0
        assert b.alpha == 5.0


class TestNames:
    def test_enum_name_lookup(self):
        assert system_from_name("lorenz83") is SystemId.LORENZ83
        assert system_from_name("THREE_SCROLL") is SystemId.THREE_SCROLL

    def test_display_name_lookup(self):
        assert system_from_name("Lorenz '83") is SystemId.LORENZ83
        assert system_from_name(" rössler ") is SystemId.ROSSLER

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            system_from_name("duffing")

    def test_display_names_complete(self):
        assert len(DISPLAY_NAMES) == 12

    def test_parameters_from_dict(self):
        params = parameters_from_dict(SystemId.SPROTT, {"a": 1})
        assert params.a == 1.0
        assert params.b == 1.79

    def test_parameters_from_dict_rejects_unknown(self):
        with pytest.raises(ValueError):
            parameters_from_dict(SystemId.SPROTT, {"sigma": 1.0})

    def test_parameter_names_order(self):
        assert parameter_names(SystemId.LORENZ) == ("sigma", "rho", "beta")


class TestInitialState:
    def test_lorenz(self):
        state = initial_state(SystemId.LORENZ)
        assert state.dtype == np.float32
        np.testing.assert_array_equal(state, [1.0, 1.0, 1.0])

    def test_default(self):
        np.testing.assert_allclose(initial_state(SystemId.CHEN), [0.1, 0.0, 0.0])

    def test_returns_a_new_array(self):
        a = initial_state(SystemId.THOMAS)
        a[0] = 5.0
        assert initial_state(SystemId.THOMAS)[0] == np.float32(0.2)
