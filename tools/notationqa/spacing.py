"""Measure spacing, staff-band clustering, and system crop geometry."""

# Standard Library
import dataclasses
import math

from notationqa.constants import (
	BAND_MERGE_TOLERANCE,
	BARLINE_MERGE_TOLERANCE,
	MIN_NOTES_PER_MEASURE_FOR_GAP,
	NOTEHEAD_BAND_MARGIN,
	NOTEHEAD_MERGE_TOLERANCE,
)
from notationqa.geometry import overlap_length
from notationqa.models import ElementBounds
from notationqa.notation import NotationGeometrySnapshot
from notationqa.util import round_stat
from notationqa.util import rounded_mean
from notationqa.util import sorted_median


#============================================
@dataclasses.dataclass(frozen=True)
class MeasureSpacingSample:
	measure_index: int
	notehead_count: int
	average_gap: float | None
	minimum_gap: float | None
	maximum_gap: float | None


#============================================
@dataclasses.dataclass(frozen=True)
class BandSummary:
	band_index: int
	barline_count: int
	notehead_count: int
	first_measure_notehead_count: int | None
	median_other_measures_notehead_count: float | None
	first_measure_average_gap: float | None
	median_other_measures_average_gap: float | None
	first_to_median_other_gap_ratio: float | None
	first_to_median_other_estimated_width_ratio: float | None


#============================================
@dataclasses.dataclass(frozen=True)
class MeasureSpacingSummary:
	samples: tuple[MeasureSpacingSample, ...]
	band_summaries: tuple[BandSummary, ...]
	evaluated_band_count: int
	first_measure_average_gap: float | None
	median_other_measures_average_gap: float | None
	first_to_median_other_gap_ratio: float | None

	def to_dict(self) -> dict:
		return dataclasses.asdict(self)


#============================================
@dataclasses.dataclass(frozen=True)
class SystemVerticalBounds:
	system_index: int
	top: float
	bottom: float
	staff_band_count: int


#============================================
@dataclasses.dataclass(frozen=True)
class CropRegion:
	x: int
	y: int
	width: int
	height: int
	unit: str = "pixels"


#============================================
def cluster_by_vertical_center(elements, tolerance: float) -> list[list[ElementBounds]]:
	"""Group elements into bands whose running mean vertical center stays within tolerance."""
	ordered = sorted(elements, key=lambda element: element.bounds.center_y)
	groups = []
	group_centers = []
	for element in ordered:
		center = element.bounds.center_y
		if not group_centers or abs(center - group_centers[-1]) > tolerance:
			groups.append([element])
			group_centers.append(center)
			continue
		group = groups[-1]
		group.append(element)
		group_centers[-1] = (group_centers[-1] * (len(group) - 1) + center) / len(group)
	return groups


#============================================
def collapse_centers(values: list[float], tolerance: float) -> list[float]:
	"""Return sorted values with near-duplicates within tolerance of the last kept value removed."""
	collapsed = []
	for value in sorted(values):
		if not collapsed or abs(value - collapsed[-1]) > tolerance:
			collapsed.append(value)
	return collapsed


#============================================
def adjacent_gaps(sorted_values: list[float]) -> list[float]:
	"""Return differences between consecutive sorted values."""
	return [sorted_values[index] - sorted_values[index - 1] for index in range(1, len(sorted_values))]


#============================================
def build_measure_spacing_samples(barline_centers: list[float], note_centers: list[float]) -> list[MeasureSpacingSample]:
	"""Partition note centers into [left, right) barline intervals and measure their gaps."""
	samples = []
	for index in range(len(barline_centers) - 1):
		left_boundary = barline_centers[index]
		right_boundary = barline_centers[index + 1]
		centers = [center for center in note_centers if left_boundary <= center < right_boundary]
		gaps = adjacent_gaps(centers)
		samples.append(
			MeasureSpacingSample(
				measure_index=index,
				notehead_count=len(centers),
				average_gap=rounded_mean(gaps) if gaps else None,
				minimum_gap=round_stat(min(gaps)) if gaps else None,
				maximum_gap=round_stat(max(gaps)) if gaps else None,
			)
		)
	return samples


#============================================
def gap_ratio(numerator: float | None, denominator: float | None) -> float | None:
	"""Return numerator/denominator at report precision, or None when not computable."""
	if numerator is None or denominator is None or denominator <= 0.0:
		return None
	return round_stat(numerator / denominator)


#============================================
def estimated_width_ratio(
		raw_ratio: float | None,
		first_count: int | None,
		median_count: float | None) -> float | None:
	"""Scale the raw gap ratio by relative density, only when the first measure is denser."""
	if raw_ratio is None or first_count is None or median_count is None:
		return None
	if first_count <= 1 or median_count <= 1:
		return None
	density_scale = 1.0
	if first_count >= median_count:
		density_scale = (first_count - 1) / (median_count - 1)
	return round_stat(raw_ratio * density_scale)


#============================================
def summarize_band(
		band_index: int,
		band_barlines: list[ElementBounds],
		noteheads,
		barline_merge_tolerance: float,
		notehead_merge_tolerance: float,
		notehead_band_margin: float,
		min_notes_per_measure_for_gap: int) -> tuple[list[MeasureSpacingSample], BandSummary] | None:
	"""Return samples and summary for one staff band, or None with fewer than two measure edges."""
	barline_centers = collapse_centers(
		[barline.bounds.center_x for barline in band_barlines],
		barline_merge_tolerance,
	)
	if len(barline_centers) < 2:
		return None
	band_top = min(barline.bounds.y for barline in band_barlines)
	band_bottom = max(barline.bounds.bottom for barline in band_barlines)
	note_centers = collapse_centers(
		[
			notehead.bounds.center_x
			for notehead in noteheads
			if band_top - notehead_band_margin <= notehead.bounds.center_y <= band_bottom + notehead_band_margin
		],
		notehead_merge_tolerance,
	)
	samples = build_measure_spacing_samples(barline_centers, note_centers)
	first_sample = None
	for sample in samples:
		if sample.notehead_count >= min_notes_per_measure_for_gap:
			first_sample = sample
			break
	later_samples = [
		sample for sample in samples[1:]
		if sample.notehead_count >= min_notes_per_measure_for_gap
	]
	first_gap = first_sample.average_gap if first_sample else None
	first_count = first_sample.notehead_count if first_sample else None
	median_gap = sorted_median([sample.average_gap for sample in later_samples if sample.average_gap is not None])
	median_count = sorted_median([sample.notehead_count for sample in later_samples])
	raw_ratio = gap_ratio(first_gap, median_gap)
	summary = BandSummary(
		band_index=band_index,
		barline_count=len(barline_centers),
		notehead_count=len(note_centers),
		first_measure_notehead_count=first_count,
		median_other_measures_notehead_count=median_count,
		first_measure_average_gap=first_gap,
		median_other_measures_average_gap=median_gap,
		first_to_median_other_gap_ratio=raw_ratio,
		first_to_median_other_estimated_width_ratio=estimated_width_ratio(raw_ratio, first_count, median_count),
	)
	return samples, summary


#============================================
def summarize_measure_spacing(
		snapshot: NotationGeometrySnapshot,
		barline_merge_tolerance: float = BARLINE_MERGE_TOLERANCE,
		notehead_merge_tolerance: float = NOTEHEAD_MERGE_TOLERANCE,
		band_merge_tolerance: float = BAND_MERGE_TOLERANCE,
		notehead_band_margin: float = NOTEHEAD_BAND_MARGIN,
		min_notes_per_measure_for_gap: int = MIN_NOTES_PER_MEASURE_FOR_GAP) -> MeasureSpacingSummary:
	"""Compare first-measure spacing against the median of later measures, band by band.

	Barlines are grouped into vertical bands first so that multi-system pages
	never mix gaps from different staff rows. The page-level values are the
	medians of the per-band values.
	"""
	samples = []
	band_summaries = []
	bands = cluster_by_vertical_center(snapshot.barlines, band_merge_tolerance)
	for band_index, band_barlines in enumerate(bands):
		band_result = summarize_band(
			band_index,
			band_barlines,
			snapshot.noteheads,
			barline_merge_tolerance,
			notehead_merge_tolerance,
			notehead_band_margin,
			min_notes_per_measure_for_gap,
		)
		if band_result is None:
			continue
		band_samples, band_summary = band_result
		samples.extend(band_samples)
		band_summaries.append(band_summary)
	first_gap = sorted_median(
		[band.first_measure_average_gap for band in band_summaries if band.first_measure_average_gap is not None]
	)
	median_gap = sorted_median(
		[
			band.median_other_measures_average_gap
			for band in band_summaries
			if band.median_other_measures_average_gap is not None
		]
	)
	return MeasureSpacingSummary(
		samples=tuple(samples),
		band_summaries=tuple(band_summaries),
		evaluated_band_count=len(band_summaries),
		first_measure_average_gap=first_gap,
		median_other_measures_average_gap=median_gap,
		first_to_median_other_gap_ratio=gap_ratio(first_gap, median_gap),
	)


#============================================
def estimate_system_vertical_bounds(
		snapshot: NotationGeometrySnapshot,
		staves_per_system: int,
		start_system_index: int = 0,
		system_count: int | None = None,
		band_merge_tolerance: float = BAND_MERGE_TOLERANCE) -> list[SystemVerticalBounds]:
	"""Chunk barline bands into systems of staves_per_system bands and return their extents."""
	if staves_per_system <= 0:
		return []
	bands = cluster_by_vertical_center(snapshot.barlines, band_merge_tolerance)
	systems = []
	for band_start in range(0, len(bands), staves_per_system):
		system_bands = bands[band_start:band_start + staves_per_system]
		# incomplete trailing systems are dropped
		if len(system_bands) < staves_per_system:
			break
		barlines = [barline for band in system_bands for barline in band]
		systems.append(
			SystemVerticalBounds(
				system_index=len(systems),
				top=min(barline.bounds.y for barline in barlines),
				bottom=max(barline.bounds.bottom for barline in barlines),
				staff_band_count=len(system_bands),
			)
		)
	start = max(0, int(start_system_index))
	count = len(systems) if system_count is None else max(0, int(system_count))
	return systems[start:start + count]


#============================================
def derive_system_crop_region(
		snapshot: NotationGeometrySnapshot,
		image_width: float,
		image_height: float,
		staves_per_system: int,
		start_system_index: int = 0,
		system_count: int | None = None,
		include_full_width: bool = False,
		header_padding: float = 0.0,
		padding: float = 0.0,
		padding_top: float | None = None,
		padding_right: float | None = None,
		padding_bottom: float | None = None,
		padding_left: float | None = None) -> CropRegion | None:
	"""Return a clamped pixel crop around the selected systems, or None when empty."""
	if not (math.isfinite(image_width) and math.isfinite(image_height)):
		return None
	if image_width <= 0 or image_height <= 0:
		return None
	systems = estimate_system_vertical_bounds(
		snapshot,
		staves_per_system,
		start_system_index=start_system_index,
		system_count=system_count,
	)
	if not systems:
		return None
	top = min(system.top for system in systems)
	bottom = max(system.bottom for system in systems)
	top -= max(0.0, header_padding)
	min_x = 0.0
	max_x = float(image_width)
	if not include_full_width:
		selected = [
			barline for barline in snapshot.barlines
			if overlap_length(barline.bounds.y, barline.bounds.bottom, top, bottom) > 0.0
		]
		if selected:
			min_x = min(barline.bounds.x for barline in selected)
			max_x = max(barline.bounds.right for barline in selected)
	padding = max(0.0, padding)
	edge_top = max(0.0, padding if padding_top is None else padding_top)
	edge_right = max(0.0, padding if padding_right is None else padding_right)
	edge_bottom = max(0.0, padding if padding_bottom is None else padding_bottom)
	edge_left = max(0.0, padding if padding_left is None else padding_left)
	x_value = max(0, math.floor(min_x - edge_left))
	y_value = max(0, math.floor(top - edge_top))
	right = min(image_width, math.ceil(max_x + edge_right))
	clamped_bottom = min(image_height, math.ceil(bottom + edge_bottom))
	width = max(0, right - x_value)
	height = max(0, clamped_bottom - y_value)
	if width <= 0 or height <= 0:
		return None
	return CropRegion(x=int(x_value), y=int(y_value), width=int(width), height=int(height))
