from collections import defaultdict
from dataclasses import replace

import numpy as np
import pygame
import pytest

import gravity_pendulum as gp
from pendulum_physics import (
    COLOR_FLIPPED,
    COLOR_NORMAL,
    MAX_ANGLE,
    Environment,
    compute_gravity_magnitude,
    make_pendulum,
    set_gravity,
)


@pytest.fixture
def env():
    return compute_gravity_magnitude(Environment())


@pytest.fixture
def state(env):
    return make_pendulum(env, gp.PIVOT, gp.ROD_LENGTH, now_ms=0.0)


@pytest.fixture
def rng():
    return np.random.default_rng(1)


def test_poll_input_reads_five_keys():
    pressed = defaultdict(bool)
    pressed[pygame.K_LEFT] = True
    pressed[pygame.K_SPACE] = True
    keys = gp.poll_input(pressed)
    assert keys == gp.InputSnapshot(left=True, space=True)


def test_left_and_right_tilt_gravity(env, state, rng):
    env2, _, indicator = gp.apply_input(env, state, gp.InputSnapshot(left=True), rng)
    assert (env2.gravity.x, env2.gravity.y) == (6.0, -9.81)
    assert indicator == "left"

    env2, _, indicator = gp.apply_input(env, state, gp.InputSnapshot(right=True), rng)
    assert (env2.gravity.x, env2.gravity.y) == (-6.0, -9.81)
    assert indicator == "right"


def test_left_wins_over_other_keys(env, state, rng):
    keys = gp.InputSnapshot(left=True, right=True, down=True, up=True)
    env2, _, indicator = gp.apply_input(env, state, keys, rng)
    assert env2.gravity.x == 6.0
    assert env2.gravity.y == -9.81
    assert indicator == "left"


def test_down_and_up_only_touch_vertical(env, state, rng):
    tilted = set_gravity(env, 6.0, -9.81)
    env2, _, indicator = gp.apply_input(tilted, state, gp.InputSnapshot(down=True), rng)
    assert (env2.gravity.x, env2.gravity.y) == (6.0, -20.0)
    assert indicator == "heavy"

    env2, _, indicator = gp.apply_input(env, state, gp.InputSnapshot(up=True), rng)
    assert (env2.gravity.x, env2.gravity.y) == (0.0, 9.81)
    assert indicator is None


def test_no_keys_restore_defaults(env, state, rng):
    tilted = set_gravity(env, -6.0, -20.0)
    wide = replace(state, max_angle=2.0)
    env2, state2, indicator = gp.apply_input(tilted, wide, gp.InputSnapshot(), rng)
    assert (env2.gravity.x, env2.gravity.y) == (0.0, -9.81)
    assert state2.max_angle == MAX_ANGLE
    assert indicator is None


def test_apply_input_drops_magnitude(env, state, rng):
    env2, _, _ = gp.apply_input(env, state, gp.InputSnapshot(left=True), rng)
    assert env2.gravity.magnitude is None


def test_space_adds_impulse(env, state, rng):
    _, kicked, _ = gp.apply_input(env, state, gp.InputSnapshot(space=True), rng)
    assert 0.0 <= kicked.angular_v - state.angular_v < 1.0
    _, same, _ = gp.apply_input(env, state, gp.InputSnapshot(), rng)
    assert same.angular_v == state.angular_v


def test_step_frame_runs_full_pipeline(env, state, rng):
    env2, state2, indicator = gp.step_frame(env, state, gp.InputSnapshot(left=True), 8.0, rng)
    assert env2.gravity.magnitude == pytest.approx((6.0 ** 2 + 9.81 ** 2) ** 0.5)
    assert state2.last_updated == 8.0
    # sideways gravity swings the rod toward negative angles
    assert state2.angular_v < 0
    assert state2.environment is env2
    assert indicator == "left"


def test_rod_color():
    assert gp.rod_color(COLOR_NORMAL) == gp.ROD_COLOR
    assert gp.rod_color(COLOR_FLIPPED) == gp.FLIPPED_COLOR


def test_overlay_position_jitters_only_when_heavy(rng):
    assert gp.overlay_position("left", rng) == gp.OVERLAY_POS
    for _ in range(50):
        x, y = gp.overlay_position("heavy", rng)
        assert gp.WIDTH * 0.98 / 2 <= x <= gp.WIDTH * 1.02 / 2
        assert y == gp.OVERLAY_POS[1]


@pytest.fixture
def fonts():
    pygame.font.init()
    yield {key: pygame.font.Font(None, size) for key, size in gp.FONT_SIZES.items()}
    pygame.font.quit()


class RecordingFont:
    def __init__(self, font):
        self.font = font
        self.texts = []

    def render(self, text, *args):
        self.texts.append(text)
        return self.font.render(text, *args)


def test_draw_frame_paints_rod(env, state, fonts, rng):
    screen = pygame.Surface((gp.WIDTH, gp.HEIGHT))
    gp.draw_frame(screen, state, env, "left", fonts, 120.0, rng)
    mid = (int(gp.PIVOT[0]), int(state.endpoint[1] / 2))
    assert tuple(screen.get_at(mid))[:3] == gp.ROD_COLOR
    assert tuple(screen.get_at((gp.WIDTH - 5, 5)))[:3] == gp.BG_COLOR


def test_overlay_glyph_sizes(env, state, fonts, rng):
    recorded = {key: RecordingFont(font) for key, font in fonts.items()}
    screen = pygame.Surface((gp.WIDTH, gp.HEIGHT))
    for indicator in ("left", "right", "heavy"):
        gp.draw_frame(screen, state, env, indicator, recorded, 120.0, rng)
    assert recorded["hint"].texts == ["<<", ">>"]
    assert recorded["heavy"].texts == ["(G)"]
    assert gp.FONT_SIZES["hint"] == 24
    assert gp.FONT_SIZES["heavy"] == 36


def test_draw_frame_jitter_follows_rng(env, state, fonts):
    first = pygame.Surface((gp.WIDTH, gp.HEIGHT))
    second = pygame.Surface((gp.WIDTH, gp.HEIGHT))
    gp.draw_frame(first, state, env, "heavy", fonts, 120.0, np.random.default_rng(5))
    gp.draw_frame(second, state, env, "heavy", fonts, 120.0, np.random.default_rng(5))
    assert pygame.image.tobytes(first, "RGB") == pygame.image.tobytes(second, "RGB")
