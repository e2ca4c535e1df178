"""Coordinate normalization for the logical court space.

Positions are stored in a fixed 600x600 logical space with each token
anchored at its top-left corner. Presentation layers render the court at any
size, so coordinates are exchanged with them as percentages of the court
edge. The court may also be displayed rotated in 90 degree steps; stored
coordinates always use the unrotated (0 degree) orientation.
"""

from .constants import COURT_SIZE, NET_OFFSET, ROTATIONS, TOKEN_SIZE
from .models import Coordinate, DropOutcome


def placement_bounds(
    court_size: int = COURT_SIZE,
    token_size: int = TOKEN_SIZE,
    net_offset: int = NET_OFFSET,
) -> tuple[int, int, int, int]:
    """``(min_x, max_x, min_y, max_y)`` allowed for a token's top-left corner."""
    max_xy = court_size - token_size
    return 0, max_xy, net_offset, max_xy


def in_bounds(
    x: float,
    y: float,
    court_size: int = COURT_SIZE,
    token_size: int = TOKEN_SIZE,
    net_offset: int = NET_OFFSET,
) -> bool:
    min_x, max_x, min_y, max_y = placement_bounds(court_size, token_size, net_offset)
    return min_x <= x <= max_x and min_y <= y <= max_y


def clamp(
    x: float,
    y: float,
    court_size: int = COURT_SIZE,
    token_size: int = TOKEN_SIZE,
    net_offset: int = NET_OFFSET,
) -> tuple[float, float]:
    """
    Constrain a token's top-left corner so the whole token stays on court.

    x is limited to [0, court_size - token_size] and y to
    [net_offset, court_size - token_size].

    Example:
        >>> clamp(700, -10)
        (550, 4)
    """
    min_x, max_x, min_y, max_y = placement_bounds(court_size, token_size, net_offset)
    return (
        max(min_x, min(x, max_x)),
        max(min_y, min(y, max_y)),
    )


def is_on_court(x: float, y: float, court_size: int = COURT_SIZE) -> bool:
    """Whether a point lies anywhere inside the [0, court_size] square."""
    return 0 <= x <= court_size and 0 <= y <= court_size


def classify_drop(
    x: float,
    y: float,
    court_size: int = COURT_SIZE,
    token_size: int = TOKEN_SIZE,
    net_offset: int = NET_OFFSET,
) -> DropOutcome:
    """
    Decide what a drop at (x, y) means.

    A drop outside the court square removes the token from the court. A drop
    inside is placed, clamped to the token bounds.
    """
    if not is_on_court(x, y, court_size):
        return DropOutcome(remove=True)
    cx, cy = clamp(x, y, court_size, token_size, net_offset)
    return DropOutcome(remove=False, coordinate=Coordinate(cx, cy))


def to_percent(value: float, court_size: int = COURT_SIZE) -> float:
    """Convert a logical coordinate to a percentage of the court edge."""
    return value / court_size * 100


def from_percent(percent: float | str, court_size: int = COURT_SIZE) -> float:
    """
    Convert a percentage of the court edge back to a logical coordinate.

    Accepts either a number or a CSS-style string such as ``'37.5%'``.
    """
    if isinstance(percent, str):
        percent = float(percent.strip().rstrip('%'))
    return percent / 100 * court_size


def _check_rotation(rotation: int) -> int:
    rotation %= 360
    if rotation not in ROTATIONS:
        raise ValueError(f'Unsupported court rotation: {rotation}')
    return rotation


def rotate_point(x: float, y: float, rotation: int, court_size: int = COURT_SIZE) -> tuple[float, float]:
    """Map a base (0 degree) point into a view rotated clockwise by ``rotation``."""
    rotation = _check_rotation(rotation)
    if rotation == 90:
        return court_size - y, x
    if rotation == 180:
        return court_size - x, court_size - y
    if rotation == 270:
        return y, court_size - x
    return x, y


def unrotate_point(x: float, y: float, rotation: int, court_size: int = COURT_SIZE) -> tuple[float, float]:
    """Inverse of rotate_point: map a displayed point back to base orientation."""
    rotation = _check_rotation(rotation)
    return rotate_point(x, y, (360 - rotation) % 360, court_size)


def rotate_token(
    x: float,
    y: float,
    rotation: int,
    court_size: int = COURT_SIZE,
    token_size: int = TOKEN_SIZE,
) -> tuple[float, float]:
    """Rotate a token's top-left corner by rotating its center point."""
    half = token_size / 2
    cx, cy = rotate_point(x + half, y + half, rotation, court_size)
    return cx - half, cy - half


def client_to_court(
    relative_x: float,
    relative_y: float,
    rendered_width: float,
    rendered_height: float,
    rotation: int = 0,
    court_size: int = COURT_SIZE,
) -> tuple[float, float]:
    """
    Convert a pointer position on a rendered court into base logical coordinates.

    Args:
        relative_x: Pointer x relative to the rendered court's left edge (pixels)
        relative_y: Pointer y relative to the rendered court's top edge (pixels)
        rendered_width: Rendered court width in pixels
        rendered_height: Rendered court height in pixels
        rotation: Current view rotation in degrees
        court_size: Logical court edge length

    Returns:
        (x, y) in the unrotated logical court space
    """
    if rendered_width <= 0 or rendered_height <= 0:
        raise ValueError('Rendered court size must be positive')
    view_x = relative_x / rendered_width * court_size
    view_y = relative_y / rendered_height * court_size
    return unrotate_point(view_x, view_y, rotation, court_size)
