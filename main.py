# main.py
"""
Main entry point for the Attractor Flow viewer.

This script orchestrates the entire application lifecycle:
1. Loads configuration from `config.json`.
2. Initializes the logging system.
3. Sets up the simulation and, unless running headless, the visualizer.
4. Runs the frame loop: the simulation clock turns each frame's duration
   into fixed integration steps, then the frame is rendered.
5. Handles clean shutdown and prints the performance profile.
"""
import cProfile
import io
import logging
import pstats
import sys
from typing import Any, Dict, Optional

import numpy as np

from utils import setup_logging, load_config


def run(config: Dict[str, Any]) -> int:
    """
    Runs the frame loop described by `config`.

    Returns:
        int: Number of frames rendered (or simulated, when headless).
    """
    from simulation import Simulation

    sim_params = config.get('simulation_parameters', {})
    run_params = config.get('run_control', {})
    vis_params = config.get('visualization', {})

    log_throttle = max(int(run_params.get('log_throttle_frames', 300)), 1)
    max_frames = int(run_params.get('max_frames', 0))
    headless = bool(run_params.get('headless', False))
    headless_frame_dt = float(run_params.get('headless_frame_dt', 1.0 / 60.0))

    sim = Simulation(sim_params)

    visualizer = None
    if not headless:
        from visualization import Visualizer
        visualizer = Visualizer(vis_params)
        visualizer.camera.target = np.asarray(sim.reference_state, dtype=np.float64)
        visualizer.frame_particles(sim)

    profiler: Optional[cProfile.Profile] = None
    if run_params.get('profile', False):
        profiler = cProfile.Profile()
        profiler.enable()

    frame_num = 0
    running = True
    try:
        while running:
            frame_dt = visualizer.tick() if visualizer is not None else headless_frame_dt
            steps = sim.tick(frame_dt)
            frame_num += 1

            if visualizer is not None and not visualizer.draw(sim, steps):
                running = False

            # Rule 2.4: Hot loops must throttle logs
            if frame_num % log_throttle == 0:
                logging.info(
                    f"Frame {frame_num} | t={float(sim.time):.2f} | "
                    f"total steps {sim.total_steps} | steps this frame {steps}"
                )
                state = sim.reference_state
                bounds = sim.bounds()
                logging.debug(
                    f"Reference state ({state[0]:.4f}, {state[1]:.4f}, {state[2]:.4f}) | "
                    f"Bounds {bounds[0] if bounds else None} .. {bounds[1] if bounds else None}"
                )

            if max_frames and frame_num >= max_frames:
                logging.info(f"Reached max_frames ({max_frames}). Stopping.")
                running = False
    finally:
        if profiler is not None:
            profiler.disable()
        if visualizer is not None:
            visualizer.close()
        sim.close()

    logging.info("Frame loop finished.")

    if profiler is not None:
        logging.info("--- Performance Profile ---")
        s = io.StringIO()
        # Sort by cumulative time spent in the function
        stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
        stats.print_stats(20)
        logging.info(f"\n{s.getvalue()}")

    return frame_num


def main(config_path: str = 'config.json') -> None:
    """
    The main function to run the viewer.
    """
    # Logging is not set up yet, so we use a print for this one error.
    try:
        config = load_config(config_path)
    except Exception as e:
        print(f"FATAL: Could not load {config_path}. Error: {e}")
        return

    setup_logging(config)

    logging.info("--- Attractor Flow Starting ---")
    run(config)
    logging.info("--- Attractor Flow Shutting Down ---")


if __name__ == "__main__":
    main(*sys.argv[1:2])
