# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They cover the numerical safety limits of the integration core and the
rendering defaults of the viewer. Experimental settings (selected system,
parameters, particle count, step size) belong in config.json instead.
"""

# --- Fixed-timestep clock ---
# Step size limits, in simulated seconds. Keeps RK4 stable and guarantees progress.
MIN_STEP_SIZE = 1e-6
MAX_STEP_SIZE = 0.2
DEFAULT_STEP_SIZE = 0.01
# Ceiling on the unsimulated time carried between frames. Bounds the
# catch-up work after a stall (debugger pause, window drag).
MAX_ACCUMULATOR = 2.0
# Hard cap on fixed steps per frame. Leftover time is dropped when hit.
MAX_STEPS_PER_FRAME = 4096
# A residual within this fraction of a step counts as a whole step, so float32
# rounding in the repeated subtraction does not lose a step.
STEP_ROUNDING_TOLERANCE = 1e-4

# --- Particle ensemble ---
DEFAULT_PARTICLE_COUNT = 10000
# Smallest block of particles worth handing to a separate worker thread.
MIN_PARTICLES_PER_WORKER = 4096
DEFAULT_SPAWN_RADIUS = 1.5
DEFAULT_ORIGIN_JITTER = 0.02
MIN_ORIGIN_JITTER = 1e-5
MAX_ORIGIN_JITTER = 1.0
# Lower bound on the jitter scale used when drawing origin radii.
ORIGIN_JITTER_FLOOR = 1e-4
# Interactive particle count limits.
MIN_INTERACTIVE_PARTICLES = 1000
MAX_INTERACTIVE_PARTICLES = 500000

# --- Visualization settings ---
FULLSCREEN = False
WINDOW_SIZE = (1280, 800)
FPS = 60
BACKGROUND_COLOR = (10, 10, 16)
HUD_TEXT_COLOR = (210, 210, 220)
MONOCHROME_COLOR = (235, 235, 245)
# Alpha value for the motion blur effect (0-255). Lower is a longer trail.
MOTION_BLUR_ALPHA = 60
DEFAULT_POINT_SIZE = 1
DEFAULT_COLOR_SPEED = 0.35

# --- Orbit camera ---
CAMERA_DEFAULT_RADIUS = 30.0
CAMERA_DEFAULT_YAW = -90.0
CAMERA_DEFAULT_PITCH = 20.0
CAMERA_MIN_RADIUS = 2.0
CAMERA_MAX_RADIUS = 500.0
CAMERA_ROTATE_SPEED = 0.25
CAMERA_ZOOM_SPEED = 0.15
CAMERA_FOV_DEGREES = 45.0
# Framing: distance is this fraction of the bounding box diagonal.
FRAMING_RADIUS_SCALE = 0.6
FRAMING_FALLBACK_RADIUS = 6.0
