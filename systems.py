# systems.py
"""
Catalog of the chaotic attractor vector fields.

This module defines the twelve supported systems, their named parameter
records with compiled-in defaults, and the `bind` factory that turns a
(system, parameters) pair into a `VectorField` ready for integration.

All derivatives are evaluated by a single Numba kernel that dispatches on
the integer system id, so the same code path serves the reference
trajectory (via `VectorField.derivative`) and the particle ensemble (via
the range kernel in `integrator.py`).
"""
import logging
from dataclasses import dataclass, astuple, fields, replace
from enum import IntEnum
from typing import Any, Dict, Optional, Tuple

import numpy as np
from numba import jit

# --- Data Contracts ---
#
# bind(system_id: SystemId, parameters: Optional[<params record>]) -> VectorField:
#   - Inputs:
#     - system_id: One of the twelve SystemId members.
#     - parameters: The parameter record matching system_id, or None for
#       the documented defaults.
#   - Outputs: A VectorField of dimension 3.
#   - Side Effects: None.
#   - Invariants: The returned field holds a float32 snapshot of the
#     parameters; later edits of the record do not leak into it.
#
# VectorField.derivative(state: np.ndarray, t: float, out=None) -> np.ndarray:
#   - Pure function of its inputs. Non-finite results are returned as-is.

# Integer ids shared with the Numba kernels. Kept as plain ints so that the
# jitted dispatch compares against compile-time constants.
LORENZ = 0
ROSSLER = 1
THOMAS = 2
AIZAWA = 3
DADRAS = 4
CHEN = 5
LORENZ83 = 6
HALVORSEN = 7
RABINOVICH = 8
THREE_SCROLL = 9
SPROTT = 10
FOUR_WING = 11

STATE_DIMENSION = 3


class SystemId(IntEnum):
    LORENZ = LORENZ
    ROSSLER = ROSSLER
    THOMAS = THOMAS
    AIZAWA = AIZAWA
    DADRAS = DADRAS
    CHEN = CHEN
    LORENZ83 = LORENZ83
    HALVORSEN = HALVORSEN
    RABINOVICH = RABINOVICH
    THREE_SCROLL = THREE_SCROLL
    SPROTT = SPROTT
    FOUR_WING = FOUR_WING


DISPLAY_NAMES: Dict[SystemId, str] = {
    SystemId.LORENZ: "Lorenz",
    SystemId.ROSSLER: "Rössler",
    SystemId.THOMAS: "Thomas",
    SystemId.AIZAWA: "Aizawa (Langford)",
    SystemId.DADRAS: "Dadras",
    SystemId.CHEN: "Chen",
    SystemId.LORENZ83: "Lorenz '83",
    SystemId.HALVORSEN: "Halvorsen",
    SystemId.RABINOVICH: "Rabinovich-Fabrikant",
    SystemId.THREE_SCROLL: "Three-Scroll Unified",
    SystemId.SPROTT: "Sprott",
    SystemId.FOUR_WING: "Four-Wing",
}


# --- Parameter records ---
# Field order matters: it is the order of the coefficient array read by
# `_derivative_numba`.

@dataclass
class LorenzParams:
    sigma: float = 10.0
    rho: float = 28.0
    beta: float = 8.0 / 3.0


@dataclass
class RosslerParams:
    a: float = 0.2
    b: float = 0.2
    c: float = 5.7


@dataclass
class ThomasParams:
    b: float = 0.208186


@dataclass
class AizawaParams:
    a: float = 0.95
    b: float = 0.7
    c: float = 0.6
    d: float = 3.5
    e: float = 0.25
    f: float = 0.1


@dataclass
class DadrasParams:
    a: float = 3.0
    b: float = 2.7
    c: float = 1.7
    d: float = 2.0
    e: float = 9.0


@dataclass
class ChenParams:
    alpha: float = 5.0
    beta: float = -10.0
    delta: float = -0.38


@dataclass
class Lorenz83Params:
    a: float = 0.95
    b: float = 7.91
    f: float = 4.83
    g: float = 4.66


@dataclass
class HalvorsenParams:
    a: float = 1.4


@dataclass
class RabinovichParams:
    alpha: float = 0.14
    gamma: float = 0.1


@dataclass
class ThreeScrollParams:
    a: float = 32.48
    b: float = 45.84
    c: float = 1.18
    d: float = 0.13
    e: float = 0.57
    f: float = 14.7


@dataclass
class SprottParams:
    a: float = 2.07
    b: float = 1.79


@dataclass
class FourWingParams:
    a: float = 0.2
    b: float = 0.01
    c: float = -0.4


PARAMETER_TYPES: Dict[SystemId, type] = {
    SystemId.LORENZ: LorenzParams,
    SystemId.ROSSLER: RosslerParams,
    SystemId.THOMAS: ThomasParams,
    SystemId.AIZAWA: AizawaParams,
    SystemId.DADRAS: DadrasParams,
    SystemId.CHEN: ChenParams,
    SystemId.LORENZ83: Lorenz83Params,
    SystemId.HALVORSEN: HalvorsenParams,
    SystemId.RABINOVICH: RabinovichParams,
    SystemId.THREE_SCROLL: ThreeScrollParams,
    SystemId.SPROTT: SprottParams,
    SystemId.FOUR_WING: FourWingParams,
}

# Slider ranges of the interactive controls, (low, high) per parameter.
PARAMETER_RANGES: Dict[SystemId, Dict[str, Tuple[float, float]]] = {
    SystemId.LORENZ: {"sigma": (0.1, 50.0), "rho": (0.1, 60.0), "beta": (0.1, 10.0)},
    SystemId.ROSSLER: {"a": (-1.0, 1.0), "b": (-1.0, 1.0), "c": (1.0, 20.0)},
    SystemId.THOMAS: {"b": (0.01, 1.0)},
    SystemId.AIZAWA: {
        "a": (0.0, 2.0), "b": (0.0, 2.0), "c": (0.0, 2.0),
        "d": (0.0, 5.0), "e": (0.0, 1.0), "f": (0.0, 1.0),
    },
    SystemId.DADRAS: {
        "a": (0.0, 5.0), "b": (0.0, 5.0), "c": (0.0, 5.0),
        "d": (0.0, 5.0), "e": (0.0, 15.0),
    },
    SystemId.CHEN: {"alpha": (-20.0, 20.0), "beta": (-20.0, 0.0), "delta": (-5.0, 5.0)},
    SystemId.LORENZ83: {"a": (0.0, 5.0), "b": (0.0, 15.0), "f": (0.0, 10.0), "g": (0.0, 10.0)},
    SystemId.HALVORSEN: {"a": (0.0, 5.0)},
    SystemId.RABINOVICH: {"alpha": (0.0, 1.0), "gamma": (0.0, 1.0)},
    SystemId.THREE_SCROLL: {
        "a": (0.0, 60.0), "b": (0.0, 60.0), "c": (0.0, 5.0),
        "d": (0.0, 2.0), "e": (0.0, 5.0), "f": (0.0, 30.0),
    },
    SystemId.SPROTT: {"a": (0.0, 5.0), "b": (0.0, 5.0)},
    SystemId.FOUR_WING: {"a": (-1.0, 1.0), "b": (-0.5, 0.5), "c": (-1.0, 0.5)},
}

_INITIAL_STATES: Dict[SystemId, Tuple[float, float, float]] = {
    SystemId.LORENZ: (1.0, 1.0, 1.0),
    SystemId.THOMAS: (0.2, 0.0, -0.2),
    SystemId.DADRAS: (0.1, 0.1, 0.1),
    SystemId.SPROTT: (0.1, 0.1, 0.1),
    SystemId.FOUR_WING: (0.1, 0.1, 0.1),
}
_DEFAULT_INITIAL_STATE = (0.1, 0.0, 0.0)


@jit(nopython=True, nogil=True)
def _derivative_numba(system, c, state, out):
    """
    Writes the derivative of `system` at `state` into `out`.

    `c` holds the parameter values in the field order of the matching
    parameter record.
    """
    x = state[0]
    y = state[1]
    z = state[2]
    if system == LORENZ:
        out[0] = c[0] * (y - x)
        out[1] = x * (c[1] - z) - y
        out[2] = x * y - c[2] * z
    elif system == ROSSLER:
        out[0] = -(y + z)
        out[1] = x + c[0] * y
        out[2] = c[1] + z * (x - c[2])
    elif system == THOMAS:
        out[0] = np.sin(y) - c[0] * x
        out[1] = np.sin(z) - c[0] * y
        out[2] = np.sin(x) - c[0] * z
    elif system == AIZAWA:
        radius_sq = x * x + y * y
        out[0] = (z - c[1]) * x - c[3] * y
        out[1] = c[3] * x + (z - c[1]) * y
        out[2] = (c[2] + c[0] * z - (z * z * z) / 3.0
                  - radius_sq * (1.0 + c[4] * z) + c[5] * z * x * x * x)
    elif system == DADRAS:
        out[0] = y - c[0] * x + c[1] * y * z
        out[1] = c[2] * y - x * z + z
        out[2] = c[3] * x * y - c[4] * z
    elif system == CHEN:
        out[0] = c[0] * x - y * z
        out[1] = c[1] * y + x * z
        out[2] = c[2] * z + (x * y) / 3.0
    elif system == LORENZ83:
        out[0] = -c[0] * x - y * y - z * z + c[0] * c[2]
        out[1] = -y + x * y - c[1] * x * z + c[3]
        out[2] = -z + c[1] * x * y + x * z
    elif system == HALVORSEN:
        out[0] = -c[0] * x - 4.0 * y - 4.0 * z - y * y
        out[1] = -c[0] * y - 4.0 * z - 4.0 * x - z * z
        out[2] = -c[0] * z - 4.0 * x - 4.0 * y - x * x
    elif system == RABINOVICH:
        out[0] = y * (z - 1.0 + x * x) + c[1] * x
        out[1] = x * (3.0 * z + 1.0 - x * x) + c[1] * y
        out[2] = -2.0 * z * (c[0] + x * y)
    elif system == THREE_SCROLL:
        out[0] = c[0] * (y - x) + c[3] * x * z
        out[1] = c[1] * x + c[5] * y - x * z
        out[2] = c[2] * z + c[4] * x * y + c[4] * y * z
    elif system == SPROTT:
        out[0] = -c[0] * x + y
        out[1] = -z + x * y
        out[2] = c[1] + z * (x - 14.0)
    else:
        out[0] = y * z + c[1]
        out[1] = x * z + c[2]
        out[2] = -x * y + c[0]


class VectorField:
    """
    A parameterized attractor bound into a pure derivative function.

    Instances are immutable snapshots: the coefficient array is marked
    read-only so worker threads can share it freely.
    """
    dimension = STATE_DIMENSION

    def __init__(self, system_id: SystemId, parameters: Any):
        self.system_id = SystemId(system_id)
        self.parameters = replace(parameters)
        self.coefficients = np.array(astuple(parameters), dtype=np.float32)
        self.coefficients.flags.writeable = False

    @property
    def name(self) -> str:
        return DISPLAY_NAMES[self.system_id]

    def derivative(self, state: np.ndarray, t: float, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Evaluates the field at `state`. The systems are autonomous, so `t`
        is accepted for interface uniformity and ignored.

        Args:
            state (np.ndarray): Length-3 state vector.
            t (float): Simulation time.
            out (Optional[np.ndarray]): Buffer to write into. A new array of
                the state's dtype is allocated when omitted.

        Returns:
            np.ndarray: The derivative (the `out` buffer when given).
        """
        if out is None:
            out = np.empty(STATE_DIMENSION, dtype=state.dtype)
        _derivative_numba(int(self.system_id), self.coefficients, state, out)
        return out

    def __repr__(self) -> str:
        return f"VectorField({self.name}, {self.parameters})"


def parameter_type(system_id: SystemId) -> type:
    return PARAMETER_TYPES[SystemId(system_id)]


def default_parameters(system_id: SystemId) -> Any:
    """Returns a fresh parameter record holding the documented defaults."""
    return parameter_type(system_id)()


def parameter_names(system_id: SystemId) -> Tuple[str, ...]:
    return tuple(f.name for f in fields(parameter_type(system_id)))


def initial_state(system_id: SystemId) -> np.ndarray:
    """Returns the reference trajectory starting point as a float32 vector."""
    values = _INITIAL_STATES.get(SystemId(system_id), _DEFAULT_INITIAL_STATE)
    return np.array(values, dtype=np.float32)


def system_from_name(name: str) -> SystemId:
    """
    Resolves a configuration name to a SystemId.

    Accepts the enum name ("lorenz83", "three_scroll") or the display name
    ("Lorenz '83"), case-insensitively.
    """
    key = name.strip().lower()
    for system_id in SystemId:
        if key in (system_id.name.lower(), DISPLAY_NAMES[system_id].lower()):
            return system_id
    known = ", ".join(s.name.lower() for s in SystemId)
    raise ValueError(f"Unknown attractor system '{name}'. Known systems: {known}.")


def parameters_from_dict(system_id: SystemId, values: Dict[str, float]) -> Any:
    """
    Builds a parameter record from a (possibly partial) configuration dict.
    Missing keys keep their defaults; unknown keys are rejected.
    """
    names = parameter_names(system_id)
    unknown = sorted(set(values) - set(names))
    if unknown:
        raise ValueError(
            f"Unknown parameters {unknown} for {DISPLAY_NAMES[SystemId(system_id)]}. "
            f"Expected a subset of {list(names)}."
        )
    return parameter_type(system_id)(**{k: float(v) for k, v in values.items()})


def bind(system_id: SystemId, parameters: Optional[Any] = None) -> VectorField:
    """
    Binds a parameter record into a VectorField.

    Args:
        system_id (SystemId): The attractor to bind.
        parameters: The matching parameter record, or None for defaults.

    Returns:
        VectorField: The bound, immutable field.
    """
    system_id = SystemId(system_id)
    expected = PARAMETER_TYPES[system_id]
    if parameters is None:
        parameters = expected()
    elif type(parameters) is not expected:
        raise TypeError(
            f"{DISPLAY_NAMES[system_id]} expects {expected.__name__}, "
            f"got {type(parameters).__name__}."
        )
    field = VectorField(system_id, parameters)
    logging.debug(f"Bound vector field {field!r}.")
    return field
