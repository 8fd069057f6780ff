# visualization.py
"""
Handles the visualization of the attractor particles using Pygame.

The renderer is a consumer of the simulation: it reads positions, spawn
phases, time and bounds, and feeds user commands (pause, reseed, system
selection, parameter nudges, step size, particle count) back through the
Simulation methods. It contains no integration logic.
"""
import logging
import math
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pygame

from constants import (
    BACKGROUND_COLOR, CAMERA_DEFAULT_PITCH, CAMERA_DEFAULT_RADIUS,
    CAMERA_DEFAULT_YAW, CAMERA_FOV_DEGREES, CAMERA_MAX_RADIUS,
    CAMERA_MIN_RADIUS, CAMERA_ROTATE_SPEED, CAMERA_ZOOM_SPEED,
    DEFAULT_COLOR_SPEED, DEFAULT_POINT_SIZE, FPS, FRAMING_FALLBACK_RADIUS,
    FRAMING_RADIUS_SCALE, FULLSCREEN, HUD_TEXT_COLOR,
    MAX_INTERACTIVE_PARTICLES, MIN_INTERACTIVE_PARTICLES, MONOCHROME_COLOR,
    MOTION_BLUR_ALPHA, WINDOW_SIZE
)
from particle import SpawnPolicy
from systems import PARAMETER_RANGES, SystemId, parameter_names

# Forward reference for type hinting to avoid circular import
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from simulation import Simulation


# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, vis_params: Optional[Dict[str, Any]] = None):
#     - Inputs: The "visualization" section of config.json.
#     - Side Effects: Initializes Pygame and creates a display surface.
#
#   - tick(self) -> float:
#     - Outputs: Wall-clock seconds since the previous frame, capped by FPS.
#
#   - draw(self, simulation: "Simulation", steps: int) -> bool:
#     - Outputs: False if the user has quit, True otherwise.
#     - Side Effects: Handles Pygame events (which may reconfigure the
#       simulation) and renders particles and the HUD.
#
# project_points(positions, camera, width, height) -> (xs, ys, visible):
#   - Pure. Points that are non-finite, behind the camera or off screen are
#     masked out of `visible`.


class OrbitCamera:
    """
    Camera orbiting a target point, y axis up.
    """
    def __init__(self):
        self.target = np.zeros(3, dtype=np.float64)
        self.radius = CAMERA_DEFAULT_RADIUS
        self.yaw = CAMERA_DEFAULT_YAW
        self.pitch = CAMERA_DEFAULT_PITCH

    def clamp(self) -> None:
        self.pitch = min(max(self.pitch, -89.0), 89.0)
        self.radius = min(max(self.radius, CAMERA_MIN_RADIUS), CAMERA_MAX_RADIUS)

    def direction(self) -> np.ndarray:
        yaw = math.radians(self.yaw)
        pitch = math.radians(self.pitch)
        return np.array([
            math.cos(pitch) * math.cos(yaw),
            math.sin(pitch),
            math.cos(pitch) * math.sin(yaw),
        ])

    def position(self) -> np.ndarray:
        return self.target - self.direction() * self.radius

    def basis(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Returns the (right, up, forward) unit vectors of the view."""
        forward = self.direction()
        right = np.cross(forward, (0.0, 1.0, 0.0))
        right /= np.linalg.norm(right)
        up = np.cross(right, forward)
        return right, up, forward


def frame_bounds(bounds: Optional[Tuple[np.ndarray, np.ndarray]]) -> Optional[Tuple[np.ndarray, float]]:
    """
    Computes an orbit target and radius that frame a bounding box.

    Returns None when there is nothing to frame or the box is not finite.
    """
    if bounds is None:
        return None
    lower, upper = (np.asarray(b, dtype=np.float64) for b in bounds)
    if not (np.all(np.isfinite(lower)) and np.all(np.isfinite(upper))):
        return None
    center = 0.5 * (lower + upper)
    diagonal = float(np.linalg.norm(upper - lower))
    if diagonal < 1.0:
        diagonal = FRAMING_FALLBACK_RADIUS
    radius = min(max(diagonal * FRAMING_RADIUS_SCALE, CAMERA_MIN_RADIUS), CAMERA_MAX_RADIUS)
    return center, radius


def project_points(
    positions: np.ndarray, camera: OrbitCamera, width: int, height: int,
    fov_degrees: float = CAMERA_FOV_DEGREES
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Perspective projection of world positions to integer pixel coordinates.

    Returns:
        Tuple[np.ndarray, np.ndarray, np.ndarray]: Pixel x, pixel y (int arrays)
            and the boolean mask of drawable points.
    """
    right, up, forward = camera.basis()
    relative = positions.astype(np.float64) - camera.position()
    with np.errstate(invalid='ignore', over='ignore', divide='ignore'):
        x_cam = relative @ right
        y_cam = relative @ up
        depth = relative @ forward
        focal = (height / 2.0) / math.tan(math.radians(fov_degrees) / 2.0)
        visible = np.isfinite(depth) & np.isfinite(x_cam) & np.isfinite(y_cam) & (depth > 1e-3)
        safe_depth = np.where(visible, depth, 1.0)
        sx = width / 2.0 + x_cam * focal / safe_depth
        sy = height / 2.0 - y_cam * focal / safe_depth
        visible &= (sx >= 0) & (sx < width) & (sy >= 0) & (sy < height)
    xs = np.where(visible, sx, 0).astype(np.int64)
    ys = np.where(visible, sy, 0).astype(np.int64)
    return xs, ys, visible


def phase_to_rgb(phases: np.ndarray, time: float, color_speed: float) -> np.ndarray:
    """
    Maps spawn phases, animated by simulation time, onto a smooth hue wheel.

    Returns:
        np.ndarray: uint8 array of shape (N, 3).
    """
    angle = np.asarray(phases, dtype=np.float64) + float(time) * color_speed
    offsets = np.array([0.0, 2.0 * math.pi / 3.0, 4.0 * math.pi / 3.0])
    rgb = 0.5 + 0.5 * np.cos(angle[:, np.newaxis] + offsets)
    return (rgb * 255.0).astype(np.uint8)


class Visualizer:
    """
    Renders the particle ensemble and a HUD, and maps input to simulation commands.
    """
    def __init__(self, vis_params: Optional[Dict[str, Any]] = None):
        """
        Initializes Pygame and the display window.
        """
        vis_params = vis_params or {}
        pygame.init()
        pygame.font.init()

        if vis_params.get('fullscreen', FULLSCREEN):
            display_info = pygame.display.Info()
            width, height = display_info.current_w, display_info.current_h
            self.screen = pygame.display.set_mode((width, height), pygame.FULLSCREEN)
        else:
            width, height = vis_params.get('window_size', WINDOW_SIZE)
            self.screen = pygame.display.set_mode((width, height))
        self.width, self.height = width, height

        # Particles are drawn onto their own surface; the blur surface fades
        # the previous frame to leave short trails.
        self.sim_surface = pygame.Surface((width, height))
        self.sim_surface.fill(BACKGROUND_COLOR)
        self.blur_surface = pygame.Surface((width, height), pygame.SRCALPHA)
        self.blur_surface.fill((*BACKGROUND_COLOR, MOTION_BLUR_ALPHA))

        pygame.display.set_caption("Attractor Flow")
        self.clock = pygame.time.Clock()

        try:
            self.font = pygame.font.SysFont("Segoe UI", 14)
        except pygame.error:
            logging.warning("Segoe UI font not found, falling back to default sans-serif.")
            self.font = pygame.font.SysFont(None, 18)

        self.point_size = max(int(vis_params.get('point_size', DEFAULT_POINT_SIZE)), 1)
        self.color_speed = float(vis_params.get('color_speed', DEFAULT_COLOR_SPEED))
        self.monochrome = bool(vis_params.get('monochrome', False))
        self.show_hud = True

        self.camera = OrbitCamera()
        self.dragging = False
        self.selected_parameter = 0

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def tick(self) -> float:
        """Waits for the next frame and returns the elapsed wall-clock seconds."""
        return self.clock.tick(FPS) / 1000.0

    def frame_particles(self, simulation: "Simulation") -> None:
        """Points the camera at the particle cloud."""
        framing = frame_bounds(simulation.bounds())
        if framing is None:
            logging.warning("Particle bounds are empty or not finite; keeping current framing.")
            return
        self.camera.target, self.camera.radius = framing
        self.camera.clamp()
        self.dragging = False
        logging.info(f"Camera framed particles (radius {self.camera.radius:.2f}).")

    def _target_reference(self, simulation: "Simulation") -> None:
        self.camera.target = np.asarray(simulation.reference_state, dtype=np.float64)
        self.selected_parameter = 0

    def _nudge_parameter(self, simulation: "Simulation", direction: int) -> None:
        system_id = simulation.system_id
        names = parameter_names(system_id)
        name = names[self.selected_parameter % len(names)]
        low, high = PARAMETER_RANGES[system_id][name]
        params = simulation.get_parameters()
        value = getattr(params, name) + direction * 0.02 * (high - low)
        value = min(max(value, low), high)
        simulation.set_system(system_id, replace(params, **{name: value}))
        self._target_reference(simulation)
        self.selected_parameter = names.index(name)

    def _handle_key(self, event: pygame.event.Event, simulation: "Simulation") -> bool:
        key = event.key
        shift = bool(event.mod & pygame.KMOD_SHIFT)
        if key == pygame.K_ESCAPE:
            logging.info("ESC key pressed. Shutting down visualizer.")
            return False
        if key == pygame.K_SPACE:
            simulation.set_pause(not simulation.paused)
        elif key == pygame.K_r:
            simulation.reseed()
        elif key == pygame.K_BACKSPACE:
            simulation.reset()
            self._target_reference(simulation)
        elif key == pygame.K_TAB:
            step = -1 if shift else 1
            next_id = SystemId((int(simulation.system_id) + step) % len(SystemId))
            simulation.set_system(next_id)
            self._target_reference(simulation)
        elif key == pygame.K_UP:
            simulation.set_step_size(float(simulation.step_size) * 1.5)
        elif key == pygame.K_DOWN:
            simulation.set_step_size(float(simulation.step_size) / 1.5)
        elif key == pygame.K_RIGHTBRACKET:
            simulation.reseed(min(simulation.particle_count * 2, MAX_INTERACTIVE_PARTICLES))
        elif key == pygame.K_LEFTBRACKET:
            simulation.reseed(max(simulation.particle_count // 2, MIN_INTERACTIVE_PARTICLES))
        elif key == pygame.K_o:
            policy = simulation.spawn_policy
            simulation.reseed(policy=SpawnPolicy(
                from_origin=not policy.from_origin,
                spawn_radius=policy.spawn_radius,
                origin_jitter=policy.origin_jitter,
            ))
        elif key == pygame.K_p:
            self.selected_parameter = (self.selected_parameter + 1) % len(parameter_names(simulation.system_id))
        elif key == pygame.K_PERIOD:
            self._nudge_parameter(simulation, 1)
        elif key == pygame.K_COMMA:
            self._nudge_parameter(simulation, -1)
        elif key == pygame.K_f:
            self.frame_particles(simulation)
        elif key == pygame.K_m:
            self.monochrome = not self.monochrome
        elif key == pygame.K_h:
            self.show_hud = not self.show_hud
        return True

    def _handle_events(self, simulation: "Simulation") -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return False
            if event.type == pygame.KEYDOWN:
                if not self._handle_key(event, simulation):
                    return False
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                self.dragging = True
            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                self.dragging = False
            elif event.type == pygame.MOUSEMOTION and self.dragging:
                dx, dy = event.rel
                self.camera.yaw += dx * CAMERA_ROTATE_SPEED
                self.camera.pitch -= dy * CAMERA_ROTATE_SPEED
                self.camera.clamp()
            elif event.type == pygame.MOUSEWHEEL:
                # event.y is 1 for scroll up, -1 for scroll down
                self.camera.radius *= (1.0 - event.y * CAMERA_ZOOM_SPEED)
                self.camera.clamp()
        return True

    def _draw_particles(self, simulation: "Simulation") -> None:
        positions = simulation.positions
        xs, ys, visible = project_points(positions, self.camera, self.width, self.height)
        xs, ys = xs[visible], ys[visible]
        if self.monochrome:
            colors = np.array(MONOCHROME_COLOR, dtype=np.uint8)
        else:
            colors = phase_to_rgb(simulation.phases[visible], simulation.time, self.color_speed)

        pixels = pygame.surfarray.pixels3d(self.sim_surface)
        try:
            for dx in range(self.point_size):
                for dy in range(self.point_size):
                    px = np.minimum(xs + dx, self.width - 1)
                    py = np.minimum(ys + dy, self.height - 1)
                    pixels[px, py] = colors
        finally:
            # Release the surface lock before blitting.
            del pixels

    def _draw_hud(self, simulation: "Simulation", steps: int) -> None:
        params = simulation.get_parameters()
        names = parameter_names(simulation.system_id)
        selected = names[self.selected_parameter % len(names)]
        param_text = "  ".join(
            f"{'>' if name == selected else ''}{name}={getattr(params, name):.4g}" for name in names
        )
        policy = simulation.spawn_policy
        spawn_text = (
            f"origin (jitter {policy.origin_jitter:.4g})" if policy.from_origin
            else f"shell (radius {policy.spawn_radius:.3g})"
        )
        state = simulation.reference_state
        lines = [
            f"{simulation.system_name}{'  [PAUSED]' if simulation.paused else ''}",
            param_text,
            f"t={float(simulation.time):.2f}  dt={float(simulation.step_size):.5f}  steps/frame={steps}",
            f"ref=({state[0]:.3f}, {state[1]:.3f}, {state[2]:.3f})",
            f"particles={simulation.particle_count}  spawn={spawn_text}",
            f"fps={self.clock.get_fps():.0f}",
            "Tab system  Space pause  R reseed  Bksp reset  Up/Down dt  [/] count",
            "O spawn mode  P/,/. parameter  F frame  M mono  H hud  drag orbit  wheel zoom",
        ]
        y = 8
        for line in lines:
            surf = self.font.render(line, True, HUD_TEXT_COLOR)
            self.screen.blit(surf, (10, y))
            y += self.font.get_linesize()

    def draw(self, simulation: "Simulation", steps: int = 0) -> bool:
        """
        Handles events, then draws all particles and the HUD.

        Returns:
            bool: False if the simulation should exit, True otherwise.
        """
        if not self._handle_events(simulation):
            return False

        # 1. Fade the previous frame to leave trails.
        self.sim_surface.blit(self.blur_surface, (0, 0))
        # 2. Plot the particles.
        self._draw_particles(simulation)
        # 3. Compose the frame.
        self.screen.blit(self.sim_surface, (0, 0))
        if self.show_hud:
            self._draw_hud(simulation, steps)

        pygame.display.flip()
        return True

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()
