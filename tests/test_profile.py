"""Unit tests for the acceleration-limited velocity profile."""

import math

from basic_nav.profile import speed


def test_speed_never_negative():
    """Test the magnitude is non-negative for any signed input."""
    for remaining in (-3.0, -0.1, 0.0, 0.1, 3.0):
        for obstacle in (-1.0, 0.0, 0.5, math.inf, -math.inf):
            assert speed(remaining, obstacle, 0.5, 0.0, 1.0, 0.1) >= 0.0


def test_speed_monotonic_in_remaining():
    """Test speed does not decrease as the remaining distance grows."""
    previous = 0.0
    for i in range(200):
        v = speed(i * 0.02, math.inf, 0.5, 0.0, 1.0, 0.1)
        assert v >= previous
        previous = v


def test_speed_clamped_to_limits():
    """Test the min and max velocities bound the output."""
    assert speed(100.0, math.inf, 1.0, 0.02, 2.5, 0.3) == 1.0
    assert speed(0.001, math.inf, 1.0, 0.02, 2.5, 0.3) == 0.02


def test_speed_deceleration_branch():
    """Test sqrt(2ad) dominates far from the target."""
    v = speed(0.5, math.inf, 10.0, 0.0, 1.0, 0.1)
    assert math.isclose(v, math.sqrt(2 * 0.1 * 0.5))


def test_speed_proportional_branch():
    """Test gain * d dominates close to the target."""
    v = speed(0.05, math.inf, 10.0, 0.0, 1.0, 0.1)
    assert math.isclose(v, 0.05)


def test_obstacle_caps_speed():
    """Test a nearer obstacle takes the place of the target."""
    clear = speed(2.0, math.inf, 0.5, 0.0, 1.0, 0.1)
    blocked = speed(2.0, 0.2, 0.5, 0.0, 1.0, 0.1)
    assert blocked < clear
    assert math.isclose(blocked, 0.2)
