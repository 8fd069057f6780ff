# integrator.py
"""
Fixed-step fourth-order Runge-Kutta integration.

Two entry points share the same classical RK4 scheme:

- `RK4Integrator.step` advances a single state vector of any dimension
  through any field exposing `dimension` and `derivative(state, t, out)`.
  It is used for the reference trajectory.
- `advance_range` advances a contiguous block of 3D particle positions
  through a bound `VectorField` with a Numba kernel that releases the GIL,
  so blocks can be processed by worker threads in parallel.
"""
import numpy as np
from numba import jit

from systems import VectorField, _derivative_numba

# --- Data Contracts ---
#
# class RK4Integrator:
#   - step(self, field, state: np.ndarray, t: float, dt: float) -> None:
#     - Inputs:
#       - field: Object with `dimension` (int) and
#         `derivative(state, t, out) -> np.ndarray`.
#       - state: 1D float array of length field.dimension, modified in place.
#       - t, dt: Current time and step size.
#     - Side Effects: Overwrites `state` with the state at t + dt. Reuses
#       internal scratch buffers, reallocating only when the dimension or
#       dtype changes.
#     - Invariants: No error estimate, no step rejection. Non-finite input
#       produces non-finite output.
#
# advance_range(positions: np.ndarray, field: VectorField, dt: float) -> None:
#   - Inputs: positions is a C-contiguous float32 array of shape (n, 3).
#   - Side Effects: Each row is advanced by one RK4 step, in place. Rows
#     never read each other.


class RK4Integrator:
    """
    Classical RK4 stepper with reusable scratch buffers.
    """
    def __init__(self):
        self._k1 = self._k2 = self._k3 = self._k4 = self._tmp = None

    def _ensure_scratch(self, size: int, dtype: np.dtype) -> None:
        if self._k1 is not None and self._k1.shape[0] == size and self._k1.dtype == dtype:
            return
        self._k1 = np.empty(size, dtype=dtype)
        self._k2 = np.empty(size, dtype=dtype)
        self._k3 = np.empty(size, dtype=dtype)
        self._k4 = np.empty(size, dtype=dtype)
        self._tmp = np.empty(size, dtype=dtype)

    def step(self, field, state: np.ndarray, t: float, dt: float) -> None:
        """
        Advances `state` in place by one RK4 step of size `dt`.

        Args:
            field: The vector field to integrate.
            state (np.ndarray): State vector, overwritten with the result.
            t (float): Time at the start of the step.
            dt (float): Step size.
        """
        n = state.shape[0]
        if n == 0 or n != field.dimension:
            raise ValueError(
                f"State of length {n} does not match field dimension {field.dimension}."
            )
        dtype = state.dtype
        self._ensure_scratch(n, dtype)
        k1, k2, k3, k4, tmp = self._k1, self._k2, self._k3, self._k4, self._tmp

        # Scalars in the state's precision so float32 states stay float32.
        h = dtype.type(dt)
        half_h = dtype.type(0.5) * h
        t = dtype.type(t)

        field.derivative(state, t, k1)

        np.multiply(k1, half_h, out=tmp)
        tmp += state
        field.derivative(tmp, t + half_h, k2)

        np.multiply(k2, half_h, out=tmp)
        tmp += state
        field.derivative(tmp, t + half_h, k3)

        np.multiply(k3, h, out=tmp)
        tmp += state
        field.derivative(tmp, t + h, k4)

        # tmp = ((k1 + 2*k2) + 2*k3) + k4, the same order as the particle
        # kernel so a particle on the reference state tracks it exactly.
        two = dtype.type(2.0)
        np.multiply(k2, two, out=tmp)
        tmp += k1
        np.multiply(k3, two, out=k2)
        tmp += k2
        tmp += k4
        tmp *= h / dtype.type(6.0)
        state += tmp


@jit(nopython=True, nogil=True)
def _advance_range_numba(positions, system, coefficients, dt):
    """
    One RK4 step for every row of `positions`. Scratch buffers are
    allocated once per call and reused across rows.
    """
    k1 = np.empty(3, dtype=np.float32)
    k2 = np.empty(3, dtype=np.float32)
    k3 = np.empty(3, dtype=np.float32)
    k4 = np.empty(3, dtype=np.float32)
    tmp = np.empty(3, dtype=np.float32)
    half_dt = dt * np.float32(0.5)
    sixth_dt = dt / np.float32(6.0)
    for i in range(positions.shape[0]):
        p = positions[i]
        _derivative_numba(system, coefficients, p, k1)
        for j in range(3):
            tmp[j] = p[j] + half_dt * k1[j]
        _derivative_numba(system, coefficients, tmp, k2)
        for j in range(3):
            tmp[j] = p[j] + half_dt * k2[j]
        _derivative_numba(system, coefficients, tmp, k3)
        for j in range(3):
            tmp[j] = p[j] + dt * k3[j]
        _derivative_numba(system, coefficients, tmp, k4)
        for j in range(3):
            p[j] = p[j] + sixth_dt * (k1[j] + np.float32(2.0) * k2[j]
                                      + np.float32(2.0) * k3[j] + k4[j])


def advance_range(positions: np.ndarray, field: VectorField, dt: float) -> None:
    """
    Advances a block of particle positions by one RK4 step, in place.

    Args:
        positions (np.ndarray): Float32 array of shape (n, 3).
        field (VectorField): The bound field.
        dt (float): Step size.
    """
    if positions.ndim != 2 or positions.shape[1] != field.dimension:
        raise ValueError(
            f"Positions of shape {positions.shape} do not match field dimension {field.dimension}."
        )
    if positions.shape[0] == 0:
        return
    _advance_range_numba(positions, int(field.system_id), field.coefficients, np.float32(dt))
