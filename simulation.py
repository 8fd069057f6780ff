# simulation.py
"""
Handles the core simulation state and the per-frame stepping.

This module defines the Simulation class, the single owner of the active
vector field, the reference trajectory, the particle ensemble and the
fixed-timestep clock. The run loop and the viewer talk to the simulation
only through its methods; there is no module-level simulation state, so
several independent simulations can coexist.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

import numpy as np

from clock import SimulationClock
from constants import (
    DEFAULT_ORIGIN_JITTER, DEFAULT_PARTICLE_COUNT, DEFAULT_SPAWN_RADIUS,
    DEFAULT_STEP_SIZE
)
from integrator import RK4Integrator
from particle import ParticleEnsemble, SpawnPolicy
from systems import (
    DISPLAY_NAMES, SystemId, VectorField, bind, default_parameters,
    initial_state, parameter_type, parameters_from_dict, system_from_name
)

# --- Data Contracts ---
#
# class Simulation:
#   - __init__(self, params: Dict[str, Any]):
#     - Inputs:
#       - params: The "simulation_parameters" section of config.json.
#         - "system": str, e.g. "lorenz"
#         - "system_parameters": Dict[str, Dict[str, float]], per-system overrides
#         - "step_size": float
#         - "paused": bool
#         - "particle_count": int
#         - "spawn_from_origin": bool
#         - "spawn_radius": float
#         - "origin_jitter": float
#         - "seed": Optional[int]
#     - Side Effects: Validates the configuration and performs a full reset.
#
#   - tick(self, frame_dt: float) -> int:
#     - Outputs: Number of fixed steps performed.
#     - Side Effects: Advances the reference trajectory and every particle
#       by the same fixed step, once per step. Each step completes for all
#       particles before the next begins.
#     - Invariants: Particle count never changes while stepping.


class Simulation:
    """
    Owns and advances one attractor simulation.
    """
    def __init__(self, params: Optional[Dict[str, Any]] = None):
        """
        Initializes the simulation from configuration.

        Args:
            params (Optional[Dict[str, Any]]): Simulation parameters from config.
        """
        params = params or {}

        # Rule 7: Enforce data contracts. Validate config on initialization.
        try:
            self._system_id = system_from_name(params.get('system', 'lorenz'))
            self._parameters = {system_id: default_parameters(system_id) for system_id in SystemId}
            for name, values in params.get('system_parameters', {}).items():
                system_id = system_from_name(name)
                self._parameters[system_id] = parameters_from_dict(system_id, values)
        except ValueError as e:
            logging.critical(f"Configuration error: {e}")
            raise

        self.clock = SimulationClock(
            params.get('step_size', DEFAULT_STEP_SIZE),
            paused=params.get('paused', False),
        )
        policy = SpawnPolicy(
            from_origin=params.get('spawn_from_origin', False),
            spawn_radius=params.get('spawn_radius', DEFAULT_SPAWN_RADIUS),
            origin_jitter=params.get('origin_jitter', DEFAULT_ORIGIN_JITTER),
        )
        self._particle_count = max(int(params.get('particle_count', DEFAULT_PARTICLE_COUNT)), 1)
        self.ensemble = ParticleEnsemble(self._particle_count, policy, seed=params.get('seed'))

        self.field: VectorField = bind(self._system_id, self._parameters[self._system_id])
        self.integrator = RK4Integrator()
        self._state = initial_state(self._system_id)
        self._time = np.float32(0.0)
        self.total_steps = 0

        logging.info(
            f"Simulation initialized: {DISPLAY_NAMES[self._system_id]}, "
            f"dt={float(self.clock.step_size):.5g}, {self.ensemble.count} particles."
        )

    # --- Configuration ---

    @property
    def system_id(self) -> SystemId:
        return self._system_id

    @property
    def system_name(self) -> str:
        return DISPLAY_NAMES[self._system_id]

    def get_parameters(self, system_id: Optional[SystemId] = None) -> Any:
        """
        Returns a copy of the stored parameter record of `system_id`
        (the active system by default).
        """
        if system_id is None:
            system_id = self._system_id
        return replace(self._parameters[SystemId(system_id)])

    def set_system(self, system_id: SystemId, parameters: Optional[Any] = None) -> None:
        """
        Selects the active system, optionally with new parameters, and
        performs a full reset.

        Args:
            system_id (SystemId): The attractor to simulate.
            parameters: Parameter record for that system. Keeps the stored
                record when omitted.
        """
        system_id = SystemId(system_id)
        if parameters is not None:
            expected = parameter_type(system_id)
            if type(parameters) is not expected:
                raise TypeError(
                    f"{DISPLAY_NAMES[system_id]} expects {expected.__name__}, "
                    f"got {type(parameters).__name__}."
                )
            self._parameters[system_id] = replace(parameters)
        self._system_id = system_id
        logging.info(f"System set to {self.system_name} with {self._parameters[system_id]}.")
        self.reset()

    @property
    def step_size(self) -> np.float32:
        return self.clock.step_size

    def set_step_size(self, dt: float) -> None:
        self.clock.set_step_size(dt)
        logging.info(f"Step size set to {float(self.clock.step_size):.6g}.")

    @property
    def paused(self) -> bool:
        return self.clock.paused

    def set_pause(self, paused: bool) -> None:
        self.clock.set_paused(paused)
        logging.info("Simulation paused." if paused else "Simulation resumed.")

    @property
    def particle_count(self) -> int:
        return self._particle_count

    @property
    def spawn_policy(self) -> SpawnPolicy:
        return self.ensemble.policy

    def reseed(self, count: Optional[int] = None, policy: Optional[SpawnPolicy] = None) -> None:
        """
        Respawns the particle ensemble. The reference trajectory, time and
        clock are left untouched.

        Args:
            count (Optional[int]): New particle count, keeps the current one when omitted.
            policy (Optional[SpawnPolicy]): New spawn policy, keeps the current one when omitted.
        """
        if count is not None:
            self._particle_count = max(int(count), 1)
        self.ensemble.reseed(self._particle_count, policy)

    def reset(self) -> None:
        """
        Rebinds the field from the current parameters and restarts the
        reference trajectory, the particles, time and the accumulator.
        """
        self.field = bind(self._system_id, self._parameters[self._system_id])
        # A fresh integrator so no scratch state survives a parameter change.
        self.integrator = RK4Integrator()
        self._state = initial_state(self._system_id)
        self._time = np.float32(0.0)
        self.clock.reset()
        self.ensemble.reseed(self._particle_count)
        logging.info(f"Simulation reset ({self.system_name}).")

    # --- Stepping ---

    def step(self) -> None:
        """Performs exactly one fixed step of the trajectory and the ensemble."""
        dt = self.clock.step_size
        self.integrator.step(self.field, self._state, self._time, dt)
        self.ensemble.advance(self.field, dt)
        self._time = np.float32(self._time + dt)
        self.total_steps += 1

    def tick(self, frame_dt: float) -> int:
        """
        Per-frame entry point.

        Args:
            frame_dt (float): Wall-clock seconds since the previous frame.

        Returns:
            int: Number of fixed steps performed.
        """
        steps = self.clock.advance(frame_dt)
        for _ in range(steps):
            self.step()
        return steps

    # --- Read accessors ---

    @property
    def reference_state(self) -> np.ndarray:
        view = self._state.view()
        view.flags.writeable = False
        return view

    @property
    def time(self) -> np.float32:
        return self._time

    @property
    def positions(self) -> np.ndarray:
        view = self.ensemble.positions.view()
        view.flags.writeable = False
        return view

    @property
    def phases(self) -> np.ndarray:
        return self.ensemble.phases

    def bounds(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        return self.ensemble.bounds()

    def close(self) -> None:
        self.ensemble.close()
        logging.info("Simulation closed.")
