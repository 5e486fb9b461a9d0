from __future__ import annotations

from math import atan2, degrees

from pose.backend import Keypoint


def joint_angle(proximal: Keypoint, vertex: Keypoint, distal: Keypoint) -> float:
    """
    Returns the angle at `vertex` (in degrees, within [0, 180]) between the rays
    vertex->proximal and vertex->distal.

    The angle is the difference of the two ray directions, folded so that
    magnitudes above 180 map to 360 - magnitude. Coincident points are not
    special-cased: a zero-length ray has direction atan2(0, 0) == 0, so
    joint_angle(p, p, p) == 0 and degenerate input never raises.
    """
    radians = atan2(distal.y - vertex.y, distal.x - vertex.x) - atan2(
        proximal.y - vertex.y, proximal.x - vertex.x
    )
    theta = abs(degrees(radians))
    if theta > 180.0:
        theta = 360.0 - theta
    return theta
