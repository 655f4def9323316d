"""Acceleration-limited velocity profile shared by both controllers."""

import math


def speed(
    remaining: float,
    obstacle_limit: float,
    max_velocity: float,
    min_velocity: float,
    gain: float,
    acceleration: float,
) -> float:
    """Compute the commanded speed magnitude for a remaining distance or angle.

    Close to the stopping point the sqrt(2 * a * d) term dominates, which is
    the highest speed from which the robot can still stop within d at the
    configured deceleration. Far from it the speed saturates at
    ``max_velocity``. An obstacle closer than the target takes the target's
    place as the stopping point.

        d = min(|remaining|, |obstacle_limit|)
        v = clamp(min(gain * d, sqrt(2 * acceleration * d)), min_velocity, max_velocity)

    Args:
        remaining: Distance (m) or angle (rad) left to the target.
        obstacle_limit: Clearance to the nearest obstacle in the direction of
            motion, same unit as ``remaining``. ``math.inf`` when clear.
        max_velocity: Upper clamp.
        min_velocity: Lower clamp, used to overcome deadband near the target.
        gain: Proportional gain from distance to velocity.
        acceleration: Deceleration available to stop.

    Returns:
        Non-negative speed magnitude. The caller applies the sign and forces
        exactly 0 once its finish condition fires.
    """
    distance = min(abs(remaining), abs(obstacle_limit))
    velocity = min(gain * distance, math.sqrt(2.0 * acceleration * distance))
    return max(min_velocity, min(max_velocity, velocity))
