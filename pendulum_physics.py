import math
import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

log = logging.getLogger(__name__)

# =========================
# Defaults
# =========================
DEFAULT_GRAVITY = (0.0, -9.81)   # m/s^2
AIR_DENSITY = 1.293              # kg/m^3 (descriptive only)

MASS = 0.1                       # kg
MOMENT_OF_INERTIA = 12.0         # point mass at the end of the rod
RESTITUTION = -0.5               # negative: reverses and dissipates
MAX_ANGLE = math.pi / 6          # 30 degrees
AIR_RESISTANCE_COEF = 0.2

BOUNCE_DEBOUNCE_MS = 100.0
INIT_ANGULAR_V = (-0.5, 0.5)     # rad/s

COLOR_NORMAL = "normal"
COLOR_FLIPPED = "flipped"


# =========================
# Environment
# =========================
@dataclass(frozen=True)
class GravityVector:
    x: float = DEFAULT_GRAVITY[0]
    y: float = DEFAULT_GRAVITY[1]
    # None until compute_gravity_magnitude() runs on the current components
    magnitude: Optional[float] = None


@dataclass(frozen=True)
class Environment:
    gravity: GravityVector = GravityVector()
    air_density: float = AIR_DENSITY


def set_gravity(env, x, y):
    """Overwrite both gravity components. The cached magnitude is dropped."""
    return replace(env, gravity=GravityVector(float(x), float(y), None))


def compute_gravity_magnitude(env):
    g = env.gravity
    mag = math.sqrt(g.x * g.x + g.y * g.y)
    return replace(env, gravity=replace(g, magnitude=mag))


# =========================
# Pendulum state
# =========================
@dataclass(frozen=True)
class PendulumState:
    """
    Point mass on a rigid rod hanging from `pivot`.
    angle is measured from the downward vertical (screen y grows down),
    so the endpoint is pivot + length * (sin, cos).
    """
    environment: Environment
    pivot: Tuple[float, float]
    length: float
    mass: float = MASS
    moment_of_inertia: float = MOMENT_OF_INERTIA
    restitution: float = RESTITUTION
    max_angle: float = MAX_ANGLE
    air_resistance_coef: float = AIR_RESISTANCE_COEF

    angle: float = 0.0               # rad
    angular_v: float = 0.0           # rad/s
    endpoint: Tuple[float, float] = (0.0, 0.0)
    color: str = COLOR_NORMAL
    last_updated: float = 0.0        # ms
    last_flipped: float = 0.0        # ms


def _require_positive(name, value):
    if not math.isfinite(value) or value <= 0.0:
        raise ValueError(f"{name} must be a positive finite number, got {value!r}")


def validate_parameters(length, mass, moment_of_inertia, max_angle):
    _require_positive("length", length)
    _require_positive("mass", mass)
    _require_positive("moment_of_inertia", moment_of_inertia)
    if not math.isfinite(max_angle) or max_angle < 0.0:
        raise ValueError(f"max_angle must be a non-negative finite number, got {max_angle!r}")


def compute_endpoint(pivot, length, angle):
    dx = length * math.sin(angle)
    dy = length * math.cos(angle)
    return (pivot[0] + dx, pivot[1] + dy)


def with_endpoint(state):
    return replace(state, endpoint=compute_endpoint(state.pivot, state.length, state.angle))


def make_pendulum(environment, pivot, length, mass=MASS, moment_of_inertia=MOMENT_OF_INERTIA,
                  restitution=RESTITUTION, max_angle=MAX_ANGLE,
                  air_resistance_coef=AIR_RESISTANCE_COEF, angle=0.0, angular_v=0.0,
                  now_ms=0.0):
    """
    Build a validated pendulum at rest (or at the given angle/velocity).

    Raises ValueError for non-positive length, mass or moment of inertia,
    or a negative max_angle. now_ms seeds the last-update timestamp so the
    first advance() does not see a huge dt.
    """
    validate_parameters(length, mass, moment_of_inertia, max_angle)
    state = PendulumState(
        environment=environment,
        pivot=(float(pivot[0]), float(pivot[1])),
        length=float(length),
        mass=float(mass),
        moment_of_inertia=float(moment_of_inertia),
        restitution=float(restitution),
        max_angle=float(max_angle),
        air_resistance_coef=float(air_resistance_coef),
        angle=float(angle),
        angular_v=float(angular_v),
        last_updated=float(now_ms),
    )
    return with_endpoint(state)


def randomize(state, rng):
    """Random angle in [-max_angle, max_angle) and angular velocity in [-0.5, 0.5)."""
    angular_v = float(rng.uniform(*INIT_ANGULAR_V))
    angle = float(-state.max_angle + rng.random() * state.max_angle * 2)
    return with_endpoint(replace(state, angle=angle, angular_v=angular_v))


# =========================
# Integrator
# =========================
def gravity_torque(state, env):
    """Torque about the pivot from gravity acting on the point mass."""
    fx = state.mass * env.gravity.x
    fy = state.mass * env.gravity.y
    theta = state.angle
    return state.length * (fy * math.sin(theta) - fx * math.cos(theta))


def apply_air_resistance(angular_v, coef, dt):
    # quadratic drag; large dt may overshoot past zero
    drag = coef * angular_v * angular_v
    if angular_v > 0:
        return angular_v - drag * dt
    return angular_v + drag * dt


def _sign(x):
    return float(np.sign(x))


def advance(state, env, now_ms, dt=None):
    """
    Step the pendulum to `now_ms` and return the new state.

    dt (seconds) defaults to the time since state.last_updated. Passing it
    explicitly decouples the step size from the clock; the timestamp is
    still moved to now_ms. The bounce window uses now_ms. Past the bound
    the angle is always clamped; velocity is only reversed once per window.
    """
    if dt is None:
        dt = (now_ms - state.last_updated) / 1000.0

    alpha = gravity_torque(state, env) / state.moment_of_inertia

    # semi-implicit Euler
    angular_v = state.angular_v + alpha * dt
    angle = state.angle + angular_v * dt

    angular_v = apply_air_resistance(angular_v, state.air_resistance_coef, dt)

    color = COLOR_NORMAL
    last_flipped = state.last_flipped
    if abs(angle) >= state.max_angle:
        angle = _sign(angle) * state.max_angle
        # one reversal per window; inside it the rod just rests on the bound
        if now_ms - last_flipped > BOUNCE_DEBOUNCE_MS:
            angular_v *= state.restitution
            color = COLOR_FLIPPED
            last_flipped = now_ms
            log.debug("bounce at %.1f ms: angle=%.4f v=%.4f", now_ms, angle, angular_v)

    return with_endpoint(replace(
        state,
        environment=env,
        angle=angle,
        angular_v=angular_v,
        color=color,
        last_updated=now_ms,
        last_flipped=last_flipped,
    ))


def segment(state):
    """What the renderer needs: pivot, endpoint and color tag."""
    return state.pivot, state.endpoint, state.color
