# particle.py
"""
Manages the state of the tracer particle ensemble.

This module defines the ParticleEnsemble class, which owns the particle
positions and their static spawn phases in NumPy arrays, reseeds them from
a spawn policy, and advances every particle through the active vector
field by splitting the position array into contiguous blocks handled by a
pool of worker threads.
"""
import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from constants import (
    DEFAULT_ORIGIN_JITTER, DEFAULT_PARTICLE_COUNT, DEFAULT_SPAWN_RADIUS,
    MAX_ORIGIN_JITTER, MIN_ORIGIN_JITTER, MIN_PARTICLES_PER_WORKER,
    ORIGIN_JITTER_FLOOR
)
from integrator import advance_range
from systems import VectorField

# --- Data Contracts ---
#
# class ParticleEnsemble:
#   - __init__(self, count: int, policy: SpawnPolicy, seed: Optional[int]):
#     - Side Effects: Creates the RNG and spawns `count` particles.
#     - Invariants:
#       - self.positions is a float32 array of shape (N, 3).
#       - self.phases is a float32 array of shape (N,), written only on reseed.
#       - N >= 1 and both arrays always have the same length.
#
#   - reseed(self, count: int, policy: Optional[SpawnPolicy]) -> None:
#     - Side Effects: Replaces both arrays. A count below 1 spawns 1 particle.
#
#   - advance(self, field: VectorField, dt: float, workers: Optional[int]) -> None:
#     - Side Effects: One RK4 step for every particle, in place. Blocks until
#       every block is done. Results do not depend on the worker count.
#
# compute_bounds(positions: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
#   - Outputs: None for an empty array, else componentwise (min, max).
#     NaN and inf are propagated, callers check finiteness.

TWO_PI = 2.0 * math.pi


@dataclass
class SpawnPolicy:
    """
    Where new particles are placed.

    With `from_origin` the particles start in a tiny jittered cloud around
    the origin; otherwise they start on a thick shell scaled by
    `spawn_radius`.
    """
    from_origin: bool = False
    spawn_radius: float = DEFAULT_SPAWN_RADIUS
    origin_jitter: float = DEFAULT_ORIGIN_JITTER

    def __post_init__(self):
        self.spawn_radius = float(self.spawn_radius)
        self.origin_jitter = min(max(float(self.origin_jitter), MIN_ORIGIN_JITTER), MAX_ORIGIN_JITTER)


def compute_spawn_phase(positions: np.ndarray) -> np.ndarray:
    """
    Derives the static color phase of particles from their spawn positions.

    The phase is azimuth + elevation of the unit direction, reduced into
    [0, 2*pi). Degenerate or non-finite positions use the +X direction.

    Args:
        positions (np.ndarray): Array of shape (N, 3) or a single 3-vector.

    Returns:
        np.ndarray: Float32 phases of shape (N,), or a float32 scalar for a
            single position.
    """
    pos = np.asarray(positions, dtype=np.float64)
    single = pos.ndim == 1
    pos = pos.reshape(-1, 3)

    with np.errstate(invalid='ignore', over='ignore'):
        distance = np.linalg.norm(pos, axis=1)
    degenerate = ~np.isfinite(distance) | (distance < 1e-6)
    direction = np.empty_like(pos)
    direction[degenerate] = (1.0, 0.0, 0.0)
    valid = ~degenerate
    direction[valid] = pos[valid] / distance[valid, np.newaxis]

    azimuth = np.arctan2(direction[:, 1], direction[:, 0])
    elevation = np.arccos(np.clip(direction[:, 2], -1.0, 1.0))
    phase = np.mod(azimuth + elevation, TWO_PI)
    phase = phase.astype(np.float32)
    # float32 rounding can land exactly on 2*pi.
    phase[phase >= np.float32(TWO_PI)] = 0.0

    if single:
        return phase[0]
    return phase


def compute_bounds(positions: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Axis-aligned bounding box of a set of 3D positions.

    Returns:
        Optional[Tuple[np.ndarray, np.ndarray]]: (min, max) corners, or None
            when there are no positions.
    """
    if positions.shape[0] == 0:
        return None
    return positions.min(axis=0), positions.max(axis=0)


def worker_count(particle_total: int, hardware_threads: Optional[int] = None) -> int:
    """
    Number of worker blocks for an ensemble of `particle_total` particles:
    one per MIN_PARTICLES_PER_WORKER particles, capped by the hardware.
    """
    if hardware_threads is None:
        hardware_threads = os.cpu_count() or 1
    wanted = -(-particle_total // MIN_PARTICLES_PER_WORKER)
    return max(1, min(wanted, max(1, hardware_threads)))


def partition(particle_total: int, workers: int) -> List[Tuple[int, int]]:
    """
    Splits [0, particle_total) into `workers` contiguous ranges whose sizes
    differ by at most one.
    """
    base, remainder = divmod(particle_total, workers)
    ranges = []
    start = 0
    for index in range(workers):
        end = start + base + (1 if index < remainder else 0)
        ranges.append((start, end))
        start = end
    return ranges


class ParticleEnsemble:
    """
    A container for all tracer particles, managing their state via NumPy arrays.
    """
    def __init__(
        self,
        count: int = DEFAULT_PARTICLE_COUNT,
        policy: Optional[SpawnPolicy] = None,
        seed: Optional[int] = None,
    ):
        """
        Initializes the ensemble and spawns the first particles.

        Args:
            count (int): Number of particles to spawn.
            policy (Optional[SpawnPolicy]): Spawn placement, defaults to a shell.
            seed (Optional[int]): Seed for the spawn RNG. None draws OS entropy.
        """
        self.seed = seed
        # All randomness of the ensemble comes from one seeded generator.
        self.rng = np.random.default_rng(seed)
        self.policy = policy if policy is not None else SpawnPolicy()
        self.positions = np.zeros((0, 3), dtype=np.float32)
        self.phases = np.zeros(0, dtype=np.float32)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._max_workers = os.cpu_count() or 1
        self._last_workers = 0
        self.reseed(count, self.policy)

    @property
    def count(self) -> int:
        return self.positions.shape[0]

    def reseed(self, count: int, policy: Optional[SpawnPolicy] = None) -> None:
        """
        Replaces every particle with a freshly spawned one.

        Args:
            count (int): Number of particles. Values below 1 spawn one particle.
            policy (Optional[SpawnPolicy]): New spawn policy, keeps the
                current one when omitted.
        """
        if policy is not None:
            self.policy = policy
        count = max(int(count), 1)
        rng = self.rng

        direction = rng.standard_normal((count, 3))
        degenerate = np.einsum('ij,ij->i', direction, direction) < 1e-6
        direction[degenerate] = (1.0, 0.0, 0.0)
        direction /= np.linalg.norm(direction, axis=1)[:, np.newaxis]

        magnitude = np.abs(rng.standard_normal(count))
        if self.policy.from_origin:
            jitter_scale = max(self.policy.origin_jitter, ORIGIN_JITTER_FLOOR)
            radius = np.clip(magnitude * jitter_scale, 1e-5, jitter_scale * 2.0)
        else:
            radius = (magnitude * 0.5 + 0.5) * self.policy.spawn_radius

        self.positions = (direction * radius[:, np.newaxis]).astype(np.float32)
        self.phases = compute_spawn_phase(self.positions)
        self.phases.flags.writeable = False

        if self.policy.from_origin:
            placement = f"origin jitter {self.policy.origin_jitter:.5g}"
        else:
            placement = f"shell radius {self.policy.spawn_radius:.3g}"
        logging.info(f"Spawned {count} particles ({placement}).")
        logging.debug(
            f"Particle arrays created. Positions shape: {self.positions.shape}, "
            f"Phases shape: {self.phases.shape}"
        )

    def _pool(self) -> ThreadPoolExecutor:
        # Reuse one pool to avoid recreating threads every step.
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="particle-worker"
            )
        return self._executor

    def advance(self, field: VectorField, dt: float, workers: Optional[int] = None) -> None:
        """
        Advances every particle by one RK4 step through `field`.

        Args:
            field (VectorField): The bound vector field.
            dt (float): Step size, the same as the reference trajectory's.
            workers (Optional[int]): Number of blocks to split the work into.
                Defaults to one block per MIN_PARTICLES_PER_WORKER particles,
                capped by the hardware thread count.
        """
        total = self.count
        if total == 0:
            return
        if workers is None:
            workers = worker_count(total, self._max_workers)
        workers = max(1, min(int(workers), total))
        if workers != self._last_workers:
            logging.debug(f"Advancing {total} particles in {workers} block(s).")
            self._last_workers = workers

        if workers == 1:
            advance_range(self.positions, field, dt)
            return

        pool = self._pool()
        futures = [
            pool.submit(advance_range, self.positions[start:end], field, dt)
            for start, end in partition(total, workers)
        ]
        # Barrier: the step is finished only when every block is.
        for future in futures:
            future.result()

    def bounds(self) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        return compute_bounds(self.positions)

    def close(self) -> None:
        """Shuts down the worker pool."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
