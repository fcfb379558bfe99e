"""Bucketed overlap counters and page-layout violation checks."""

# Standard Library
import dataclasses

from notationqa.constants import STAVE_ROW_TOLERANCE
from notationqa.geometry import intersection_area
from notationqa.models import BoundingBox
from notationqa.models import ElementBounds
from notationqa.util import round_stat


#============================================
@dataclasses.dataclass(frozen=True)
class OverlapCounters:
	critical: int = 0
	minor: int = 0


#============================================
def bucket_overlap_area(area: float, critical_min_area: float, minor_min_area: float) -> str | None:
	"""Return 'critical', 'minor', or None for one intersection area."""
	if area >= critical_min_area:
		return "critical"
	if area >= minor_min_area:
		return "minor"
	return None


#============================================
def count_self_overlaps(
		elements,
		critical_min_area: float,
		minor_min_area: float) -> OverlapCounters:
	"""Count overlapping pairs within one element list into critical and minor buckets."""
	critical = 0
	minor = 0
	for left_position, left in enumerate(elements):
		for right in elements[left_position + 1:]:
			bucket = bucket_overlap_area(intersection_area(left.bounds, right.bounds), critical_min_area, minor_min_area)
			if bucket == "critical":
				critical += 1
			elif bucket == "minor":
				minor += 1
	return OverlapCounters(critical=critical, minor=minor)


#============================================
def count_cross_overlaps(
		left_elements,
		right_elements,
		critical_min_area: float,
		minor_min_area: float) -> OverlapCounters:
	"""Count overlapping pairs between two element lists into critical and minor buckets."""
	critical = 0
	minor = 0
	for left in left_elements:
		for right in right_elements:
			bucket = bucket_overlap_area(intersection_area(left.bounds, right.bounds), critical_min_area, minor_min_area)
			if bucket == "critical":
				critical += 1
			elif bucket == "minor":
				minor += 1
	return OverlapCounters(critical=critical, minor=minor)


#============================================
def count_out_of_viewport(elements, viewport: BoundingBox, tolerance: float) -> int:
	"""Count elements extending past the viewport by more than tolerance on any edge."""
	min_x = viewport.x - tolerance
	min_y = viewport.y - tolerance
	max_x = viewport.right + tolerance
	max_y = viewport.bottom + tolerance
	count = 0
	for element in elements:
		bounds = element.bounds
		if bounds.x < min_x or bounds.y < min_y or bounds.right > max_x or bounds.bottom > max_y:
			count += 1
	return count


#============================================
def minimum_vertical_stave_gap(staves: list[ElementBounds], row_tolerance: float = STAVE_ROW_TOLERANCE) -> float | None:
	"""Return smallest vertical gap between stave rows, or None with fewer than two rows.

	Staves of one row are emitted per measure column, so they are merged by top
	edge before gaps are measured.
	"""
	if len(staves) < 2:
		return None
	rows = []
	for stave in sorted(staves, key=lambda element: element.bounds.y):
		bounds = stave.bounds
		for row_index, row in enumerate(rows):
			if abs(row[0] - bounds.y) <= row_tolerance:
				rows[row_index] = (min(row[0], bounds.y), max(row[1], bounds.bottom))
				break
		else:
			rows.append((bounds.y, bounds.bottom))
	if len(rows) < 2:
		return None
	rows.sort()
	gaps = [max(0.0, rows[index][0] - rows[index - 1][1]) for index in range(1, len(rows))]
	return round_stat(min(gaps))
