import sys
import math
import logging
from dataclasses import dataclass, replace

import pygame
import numpy as np

from logging_config import setup_logging
from pendulum_physics import (
    COLOR_FLIPPED,
    DEFAULT_GRAVITY,
    MAX_ANGLE,
    advance,
    compute_gravity_magnitude,
    Environment,
    make_pendulum,
    randomize,
    segment,
    set_gravity,
)

log = logging.getLogger(__name__)

# -----------------------------------
# Config
# -----------------------------------
WIDTH, HEIGHT = 800, 800
FPS = 120

BG_COLOR = (220, 220, 220)
ROD_COLOR = (255, 0, 255)        # magenta
FLIPPED_COLOR = (0, 128, 0)      # green
TEXT_COLOR = (30, 30, 30)
ROD_WIDTH = 10

PIVOT = (WIDTH / 2, 0.0)
ROD_LENGTH = HEIGHT * 2 / 3

LR_GRAVITY = 6.0                 # m/s^2 sideways push
HEAVY_GRAVITY = -20.0            # down arrow
INVERTED_GRAVITY = 9.81          # up arrow
IMPULSE = (0.0, 1.0)             # rad/s added per frame while space is held

OVERLAY_POS = (WIDTH / 2, HEIGHT * 7 / 8)
OVERLAY_GLYPHS = {"left": "<<", "right": ">>", "heavy": "(G)"}
HEAVY_JITTER = (0.98, 1.02)

FONT_NAME = "consolas"
FONT_SIZES = {"hud": 18, "hint": 24, "heavy": 36}
OVERLAY_FONT = {"left": "hint", "right": "hint", "heavy": "heavy"}

rng = np.random.default_rng()


# -----------------------------------
# Input
# -----------------------------------
@dataclass(frozen=True)
class InputSnapshot:
    left: bool = False
    right: bool = False
    up: bool = False
    down: bool = False
    space: bool = False


def poll_input(pressed):
    """pressed: anything indexable by key code, e.g. pygame.key.get_pressed()."""
    return InputSnapshot(
        left=bool(pressed[pygame.K_LEFT]),
        right=bool(pressed[pygame.K_RIGHT]),
        up=bool(pressed[pygame.K_UP]),
        down=bool(pressed[pygame.K_DOWN]),
        space=bool(pressed[pygame.K_SPACE]),
    )


def apply_input(env, state, keys, rng):
    """
    Map held keys onto gravity. Only the first of left/right/down/up counts,
    and each only touches one component. No arrow held restores the default
    gravity and max angle. Returns (env, state, overlay name or None).
    """
    g = env.gravity
    indicator = None
    if keys.left:
        env = set_gravity(env, LR_GRAVITY, g.y)
        indicator = "left"
    elif keys.right:
        env = set_gravity(env, -LR_GRAVITY, g.y)
        indicator = "right"
    elif keys.down:
        env = set_gravity(env, g.x, HEAVY_GRAVITY)
        indicator = "heavy"
    elif keys.up:
        env = set_gravity(env, g.x, INVERTED_GRAVITY)
    else:
        env = set_gravity(env, *DEFAULT_GRAVITY)
        state = replace(state, max_angle=MAX_ANGLE)

    if keys.space:
        state = replace(state, angular_v=state.angular_v + float(rng.uniform(*IMPULSE)))

    return env, state, indicator


def step_frame(env, state, keys, now_ms, rng):
    env, state, indicator = apply_input(env, state, keys, rng)
    env = compute_gravity_magnitude(env)
    state = advance(state, env, now_ms)
    return env, state, indicator


# -----------------------------------
# Drawing
# -----------------------------------
def draw_text(surface, text, x, y, font):
    img = font.render(text, True, TEXT_COLOR)
    surface.blit(img, (x, y))


def rod_color(tag):
    return FLIPPED_COLOR if tag == COLOR_FLIPPED else ROD_COLOR


def overlay_position(indicator, rng):
    x, y = OVERLAY_POS
    if indicator == "heavy":
        x = WIDTH * rng.uniform(*HEAVY_JITTER) / 2
    return x, y


def load_fonts(name=FONT_NAME):
    return {key: pygame.font.SysFont(name, size) for key, size in FONT_SIZES.items()}


def draw_frame(screen, state, env, indicator, fonts, fps, rng):
    screen.fill(BG_COLOR)

    pivot, end, tag = segment(state)
    pygame.draw.line(screen, rod_color(tag), pivot, end, ROD_WIDTH)

    if indicator is not None:
        x, y = overlay_position(indicator, rng)
        img = fonts[OVERLAY_FONT[indicator]].render(OVERLAY_GLYPHS[indicator], True, TEXT_COLOR)
        screen.blit(img, img.get_rect(center=(int(x), int(y))))

    g = env.gravity
    mag = g.magnitude if g.magnitude is not None else float("nan")
    draw_text(screen, f"angle={math.degrees(state.angle):6.1f} deg  w={state.angular_v:6.3f} rad/s", 10, 10, fonts["hud"])
    draw_text(screen, f"g=({g.x:5.2f}, {g.y:6.2f})  |g|={mag:5.2f}  FPS~{fps:.0f}", 10, 32, fonts["hud"])
    draw_text(screen, "<-/->=tilt g  Down=heavy g  Up=invert g  Space=kick  Esc=quit", 10, 54, fonts["hud"])


# -----------------------------------
# Main
# -----------------------------------
def main():
    setup_logging()
    pygame.init()
    try:
        screen = pygame.display.set_mode((WIDTH, HEIGHT))
        pygame.display.set_caption("Gravity Pendulum")
        clock = pygame.time.Clock()
        fonts = load_fonts()

        env = compute_gravity_magnitude(Environment())
        state = make_pendulum(env, PIVOT, ROD_LENGTH)
        state = randomize(state, rng)
        # seed the clock so the first step sees a frame-sized dt
        state = replace(state, last_updated=float(pygame.time.get_ticks()))
        log.info("Pendulum start: angle=%.3f rad, w=%.3f rad/s, L=%.1f, %d FPS",
                 state.angle, state.angular_v, state.length, FPS)

        running = True
        while running:
            clock.tick(FPS)

            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                    running = False

            keys = poll_input(pygame.key.get_pressed())
            env, state, indicator = step_frame(env, state, keys, float(pygame.time.get_ticks()), rng)

            draw_frame(screen, state, env, indicator, fonts, clock.get_fps(), rng)
            pygame.display.flip()
    finally:
        pygame.quit()
    log.info("Pendulum closed.")
    sys.exit()


if __name__ == "__main__":
    main()
