"""
bpmn_rewrite/layout.py — Pure geometry for generated diagram elements.

Everything here is a function of box coordinates only. No function reads or
mutates the document; the rewrite modules convert the results into
dc:Bounds / di:waypoint elements.

Author: bpmn-rewrite contributors
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in diagram coordinates (top-left origin)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def union_box(boxes: list[Box], padding: float = 0.0) -> Box:
    """
    Smallest box enclosing every box in `boxes`, grown by `padding` per side.

    Raises:
        ValueError: if `boxes` is empty.
    """
    if not boxes:
        raise ValueError("union_box() needs at least one box.")
    min_x = min(b.x for b in boxes) - padding
    min_y = min(b.y for b in boxes) - padding
    max_x = max(b.right for b in boxes) + padding
    max_y = max(b.bottom for b in boxes) + padding
    return Box(min_x, min_y, max_x - min_x, max_y - min_y)


def edge_anchor(box: Box, toward: tuple[float, float]) -> tuple[float, float]:
    """
    Point on the edge of `box` that faces the point `toward`.

    The side is chosen by comparing the displacement from the box center:
    left/right when |dx| >= |dy|, top/bottom otherwise. The coordinate along
    the chosen side is `toward` clamped to the box's extent.
    """
    tx, ty = toward
    cx, cy = box.center
    dx = tx - cx
    dy = ty - cy

    if abs(dx) >= abs(dy):
        x = box.right if dx >= 0 else box.x
        return x, _clamp(ty, box.y, box.bottom)

    y = box.bottom if dy >= 0 else box.y
    return _clamp(tx, box.x, box.right), y


def facing_anchors(a: Box, b: Box) -> tuple[tuple[float, float], tuple[float, float]]:
    """Anchor pair for a straight connector drawn between two boxes, edge to edge."""
    return edge_anchor(a, b.center), edge_anchor(b, a.center)


def flow_waypoints(source: Box, target: Box) -> tuple[tuple[float, float], tuple[float, float]]:
    """Right-middle of `source` to left-middle of `target` (left-to-right flow layout)."""
    return (
        (source.right, source.y + source.height / 2),
        (target.x, target.y + target.height / 2),
    )
