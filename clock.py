# clock.py
"""
Fixed-timestep accumulator.

Converts variable wall-clock frame durations into a bounded number of
fixed-size simulation steps, so the integration is independent of the
rendering frame rate.
"""
import logging
import math

import numpy as np

from constants import (
    DEFAULT_STEP_SIZE, MAX_ACCUMULATOR, MAX_STEP_SIZE, MAX_STEPS_PER_FRAME,
    MIN_STEP_SIZE, STEP_ROUNDING_TOLERANCE
)

# --- Data Contracts ---
#
# class SimulationClock:
#   - advance(self, frame_dt: float) -> int:
#     - Inputs: frame_dt, wall-clock seconds since the previous frame.
#     - Outputs: Number of fixed steps to run this frame, at most
#       MAX_STEPS_PER_FRAME and at most MAX_ACCUMULATOR / step_size.
#     - Side Effects: Consumes step_size seconds of accumulated time per
#       step returned. A residual within STEP_ROUNDING_TOLERANCE of a step
#       counts as a step and the accumulator never goes negative. When the
#       iteration cap is hit the remaining time is dropped. While paused
#       nothing changes and 0 is returned.
#
#   - set_step_size(self, dt: float) -> None:
#     - Side Effects: Clamps dt to [MIN_STEP_SIZE, MAX_STEP_SIZE] and clears
#       the accumulator so a backlog never mixes step sizes.


def clamp_step_size(dt: float) -> np.float32:
    """Clamps a configured step size into the numerically safe range."""
    dt = float(dt)
    if not math.isfinite(dt):
        raise ValueError(f"Step size must be finite, got {dt}.")
    return np.float32(min(max(dt, MIN_STEP_SIZE), MAX_STEP_SIZE))


class SimulationClock:
    """
    Accumulates frame time and hands out whole fixed steps.
    """
    def __init__(self, step_size: float = DEFAULT_STEP_SIZE, paused: bool = False):
        self._step_size = clamp_step_size(step_size)
        self._accumulator = np.float32(0.0)
        self._paused = bool(paused)

    @property
    def step_size(self) -> np.float32:
        return self._step_size

    @property
    def accumulator(self) -> np.float32:
        return self._accumulator

    @property
    def paused(self) -> bool:
        return self._paused

    def set_paused(self, paused: bool) -> None:
        self._paused = bool(paused)

    def set_step_size(self, dt: float) -> None:
        clamped = clamp_step_size(dt)
        if float(clamped) != float(np.float32(dt)):
            logging.debug(f"Step size {dt} clamped to {float(clamped):.6g}.")
        self._step_size = clamped
        self._accumulator = np.float32(0.0)

    def reset(self) -> None:
        self._accumulator = np.float32(0.0)

    def advance(self, frame_dt: float) -> int:
        """
        Adds a frame's worth of time and returns how many fixed steps to run.

        Args:
            frame_dt (float): Wall-clock duration of the last frame, seconds.

        Returns:
            int: The number of fixed steps to perform this frame.
        """
        if self._paused:
            return 0

        frame_dt = float(frame_dt)
        if not math.isfinite(frame_dt) or frame_dt < 0.0:
            frame_dt = 0.0
        accumulator = self._accumulator + np.float32(frame_dt)
        if accumulator > MAX_ACCUMULATOR:
            accumulator = np.float32(MAX_ACCUMULATOR)

        step = self._step_size
        threshold = step - step * np.float32(STEP_ROUNDING_TOLERANCE)
        steps = 0
        while accumulator >= threshold and steps < MAX_STEPS_PER_FRAME:
            accumulator -= step
            steps += 1
        if accumulator < 0.0:
            accumulator = np.float32(0.0)

        if steps == MAX_STEPS_PER_FRAME:
            logging.debug(
                f"Step cap of {MAX_STEPS_PER_FRAME} reached; dropping "
                f"{float(accumulator):.4f}s of simulation time."
            )
            accumulator = np.float32(0.0)

        self._accumulator = accumulator
        return steps
