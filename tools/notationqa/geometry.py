"""Bounding-box geometry primitives and pairwise overlap detection."""

from notationqa.models import BoundingBox
from notationqa.models import ElementBounds
from notationqa.models import Overlap


#============================================
def expand_bounds(bounds: BoundingBox, padding: float) -> BoundingBox:
	"""Return bounds grown by padding on every side."""
	if padding == 0.0:
		return bounds
	return BoundingBox.from_edges(
		bounds.x - padding,
		bounds.y - padding,
		bounds.right + padding,
		bounds.bottom + padding,
	)


#============================================
def intersect_bounds(left: BoundingBox, right: BoundingBox, padding: float = 0.0) -> BoundingBox | None:
	"""Return the strict intersection of two padded boxes, or None when they only touch."""
	padded_left = expand_bounds(left, padding)
	padded_right = expand_bounds(right, padding)
	x1 = max(padded_left.x, padded_right.x)
	y1 = max(padded_left.y, padded_right.y)
	x2 = min(padded_left.right, padded_right.right)
	y2 = min(padded_left.bottom, padded_right.bottom)
	if x2 <= x1 or y2 <= y1:
		return None
	return BoundingBox(x1, y1, x2 - x1, y2 - y1)


#============================================
def union_bounds(left: BoundingBox, right: BoundingBox) -> BoundingBox:
	"""Return the smallest box containing both boxes."""
	return BoundingBox.from_edges(
		min(left.x, right.x),
		min(left.y, right.y),
		max(left.right, right.right),
		max(left.bottom, right.bottom),
	)


#============================================
def union_all_bounds(boxes: list[BoundingBox]) -> BoundingBox | None:
	"""Return union of all boxes, or None for an empty list."""
	aggregate = None
	for bounds in boxes:
		aggregate = bounds if aggregate is None else union_bounds(aggregate, bounds)
	return aggregate


#============================================
def overlap_length(start_a: float, end_a: float, start_b: float, end_b: float) -> float:
	"""Return positive 1D overlap length between two intervals, or zero."""
	return max(0.0, min(end_a, end_b) - max(start_a, start_b))


#============================================
def horizontal_overlap(left: BoundingBox, right: BoundingBox) -> float:
	return overlap_length(left.x, left.right, right.x, right.right)


#============================================
def vertical_overlap(left: BoundingBox, right: BoundingBox) -> float:
	return overlap_length(left.y, left.bottom, right.y, right.bottom)


#============================================
def intersection_area(left: BoundingBox, right: BoundingBox) -> float:
	"""Return unpadded intersection area of two boxes."""
	return horizontal_overlap(left, right) * vertical_overlap(left, right)


#============================================
def detect_overlaps(
		elements: list[ElementBounds],
		padding: float = 0.0,
		min_overlap_area: float = 0.0) -> list[Overlap]:
	"""Return every element pair whose padded boxes intersect with area above the minimum.

	Pairs are enumerated once with the left element earlier in the input list,
	so an element is never paired with itself and no pair is reported twice.
	"""
	overlaps = []
	for left_position, left in enumerate(elements):
		for right in elements[left_position + 1:]:
			intersection = intersect_bounds(left.bounds, right.bounds, padding)
			if intersection is None:
				continue
			area = intersection.width * intersection.height
			if area <= min_overlap_area:
				continue
			overlaps.append(Overlap(left=left, right=right, intersection=intersection, area=area))
	return overlaps
