"""Fixture quality evaluation: geometry metrics, rubric dimensions, gates, and waivers."""

# Standard Library
import dataclasses
import enum
import types

from notationqa.constants import (
	CROWDED_GAP_THRESHOLD,
	NO_SVG_QUALITY_NOTE,
	NOTEHEAD_CENTER_MERGE_TOLERANCE,
	NOTEHEAD_MINOR_OVERLAP_AREA,
	QUALITY_DIMENSIONS,
	TEXT_MINOR_OVERLAP_AREA,
	TEXT_NOTEHEAD_CRITICAL_OVERLAP_AREA,
	TEXT_NOTEHEAD_MINOR_OVERLAP_AREA,
	VIEWPORT_OVERFLOW_TOLERANCE,
)
from notationqa.errors import MarkupParseError
from notationqa.geometry import union_all_bounds
from notationqa.log import get_logger
from notationqa.notation import NotationGeometrySnapshot
from notationqa.notation import collect_notation_geometry
from notationqa.notation import detect_flag_beam_overlaps
from notationqa.notation import detect_notehead_barline_intrusions
from notationqa.scoring import DEFAULT_SCORING_CONFIG
from notationqa.scoring import DiagnosticCategory
from notationqa.scoring import ScoringConfig
from notationqa.scoring import compute_weighted_score
from notationqa.scoring import count_diagnostics_in_category
from notationqa.scoring import critical_dimensions_below_threshold
from notationqa.scoring import score_beam_stem_rest_quality
from notationqa.scoring import score_collision_avoidance
from notationqa.scoring import score_rhythm_spacing
from notationqa.scoring import score_spanner_quality
from notationqa.scoring import score_symbol_fidelity
from notationqa.scoring import score_system_layout_quality
from notationqa.scoring import score_text_quality
from notationqa.spacing import adjacent_gaps
from notationqa.spacing import collapse_centers
from notationqa.svg_parse import normalize_page_to_svg_markup
from notationqa.util import round_stat
from notationqa.violations import count_cross_overlaps
from notationqa.violations import count_out_of_viewport
from notationqa.violations import count_self_overlaps
from notationqa.violations import minimum_vertical_stave_gap

logger = get_logger(__name__)


#============================================
class QualityWaiver(str, enum.Enum):
	CRITICAL_COLLISION = "quality-critical-collision"
	CATASTROPHIC_READABILITY = "quality-catastrophic-readability"


#============================================
def parse_waivers(raw_waivers) -> frozenset:
	"""Return known waivers from fixture strings, logging and dropping unknown values."""
	waivers = set()
	for raw_waiver in raw_waivers or ():
		if isinstance(raw_waiver, QualityWaiver):
			waivers.add(raw_waiver)
			continue
		try:
			waivers.add(QualityWaiver(str(raw_waiver).strip()))
		except ValueError:
			# waivers owned by other gates
			logger.debug("ignoring non-quality waiver %r", raw_waiver)
	return frozenset(waivers)


#============================================
@dataclasses.dataclass(frozen=True)
class QualityMetrics:
	notehead_count: int = 0
	stem_count: int = 0
	beam_count: int = 0
	flag_count: int = 0
	flag_beam_overlap_count: int = 0
	tie_count: int = 0
	text_count: int = 0
	stave_count: int = 0
	minimum_notehead_gap: float | None = None
	crowded_gap_ratio: float = 0.0
	minor_collision_count: int = 0
	critical_collision_count: int = 0
	effective_critical_collision_count: int = 0
	text_collision_count: int = 0
	text_to_notehead_collision_count: int = 0
	notehead_barline_intrusion_count: int = 0
	layout_overflow_count: int = 0
	text_overflow_count: int = 0
	tie_overflow_count: int = 0
	minimum_stave_gap: float | None = None
	horizontal_usage_ratio: float | None = None
	vertical_usage_ratio: float | None = None

	def to_dict(self) -> dict:
		return dataclasses.asdict(self)


#============================================
@dataclasses.dataclass(frozen=True)
class QualityReport:
	weighted_score: float
	dimensions: types.MappingProxyType
	metrics: QualityMetrics
	critical_dimensions_below_two: tuple[str, ...]
	catastrophic_readability: bool
	waived_critical_collision: bool = False
	waived_catastrophic_readability: bool = False
	notes: tuple[str, ...] = ()

	def __post_init__(self):
		if not isinstance(self.dimensions, types.MappingProxyType):
			object.__setattr__(self, "dimensions", types.MappingProxyType(dict(self.dimensions)))

	def to_dict(self) -> dict:
		return {
			"weighted_score": self.weighted_score,
			"dimensions": {dimension: self.dimensions[dimension] for dimension in QUALITY_DIMENSIONS},
			"metrics": self.metrics.to_dict(),
			"critical_dimensions_below_two": list(self.critical_dimensions_below_two),
			"catastrophic_readability": self.catastrophic_readability,
			"waived_critical_collision": self.waived_critical_collision,
			"waived_catastrophic_readability": self.waived_catastrophic_readability,
			"notes": list(self.notes),
		}


#============================================
def worst_case_quality_report(note: str, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> QualityReport:
	"""Return the all-zero catastrophic report used when nothing can be analyzed."""
	return QualityReport(
		weighted_score=0.0,
		dimensions={dimension: 0.0 for dimension in QUALITY_DIMENSIONS},
		metrics=QualityMetrics(crowded_gap_ratio=1.0),
		critical_dimensions_below_two=tuple(config.critical_dimensions),
		catastrophic_readability=True,
		notes=(note,),
	)


#============================================
def _usage_ratio(content_extent: float | None, viewport_extent: float | None) -> float | None:
	if content_extent is None or viewport_extent is None or viewport_extent <= 0.0:
		return None
	return round_stat(content_extent / viewport_extent)


#============================================
def evaluate_snapshot_quality(
		snapshot: NotationGeometrySnapshot,
		diagnostics=(),
		collision_audit=None,
		waivers=(),
		config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> QualityReport:
	"""Score one already collected geometry snapshot against the rubric."""
	waiver_set = parse_waivers(waivers)
	diagnostics = list(diagnostics)
	error_count = sum(1 for diagnostic in diagnostics if diagnostic.severity == "error")
	warning_count = sum(1 for diagnostic in diagnostics if diagnostic.severity == "warning")

	# notehead overlaps only ever count as minor density
	notehead_overlaps = count_self_overlaps(snapshot.noteheads, float("inf"), NOTEHEAD_MINOR_OVERLAP_AREA)
	text_overlaps = count_self_overlaps(snapshot.text, float("inf"), TEXT_MINOR_OVERLAP_AREA)
	text_notehead_overlaps = count_cross_overlaps(
		snapshot.text,
		snapshot.noteheads,
		TEXT_NOTEHEAD_CRITICAL_OVERLAP_AREA,
		TEXT_NOTEHEAD_MINOR_OVERLAP_AREA,
	)
	intrusions = detect_notehead_barline_intrusions(snapshot)
	flag_beam_overlaps = detect_flag_beam_overlaps(snapshot)

	minor_collision_count = (
		notehead_overlaps.minor
		+ text_overlaps.minor
		+ text_notehead_overlaps.minor
		+ text_notehead_overlaps.critical
	)
	critical_collision_count = 0
	if collision_audit is not None and not collision_audit.passed:
		critical_collision_count = collision_audit.overlap_count
	waived_critical = critical_collision_count > 0 and QualityWaiver.CRITICAL_COLLISION in waiver_set
	effective_critical = 0 if waived_critical else critical_collision_count

	notehead_centers = collapse_centers(
		[notehead.bounds.center_x for notehead in snapshot.noteheads],
		NOTEHEAD_CENTER_MERGE_TOLERANCE,
	)
	gaps = adjacent_gaps(notehead_centers)
	minimum_notehead_gap = min(gaps) if gaps else None
	crowded_gap_ratio = 0.0
	if gaps:
		crowded_gap_ratio = sum(1 for gap in gaps if gap < CROWDED_GAP_THRESHOLD) / float(len(gaps))

	viewport = snapshot.viewport
	layout_overflow_count = 0
	text_overflow_count = 0
	tie_overflow_count = 0
	if viewport is not None:
		layout_overflow_count = count_out_of_viewport(snapshot.layout_elements, viewport, VIEWPORT_OVERFLOW_TOLERANCE)
		text_overflow_count = count_out_of_viewport(snapshot.text, viewport, VIEWPORT_OVERFLOW_TOLERANCE)
		tie_overflow_count = count_out_of_viewport(snapshot.ties, viewport, VIEWPORT_OVERFLOW_TOLERANCE)
	minimum_stave_gap = minimum_vertical_stave_gap(list(snapshot.staves))
	content_bounds = union_all_bounds([element.bounds for element in snapshot.layout_elements])
	horizontal_usage_ratio = None
	vertical_usage_ratio = None
	if content_bounds is not None and viewport is not None:
		horizontal_usage_ratio = _usage_ratio(content_bounds.width, viewport.width)
		vertical_usage_ratio = _usage_ratio(content_bounds.height, viewport.height)

	text_collision_count = text_overlaps.critical + text_overlaps.minor
	text_to_notehead_collision_count = text_notehead_overlaps.critical + text_notehead_overlaps.minor
	dimensions = {
		"Q1": score_rhythm_spacing(
			minimum_notehead_gap=minimum_notehead_gap,
			crowded_gap_ratio=crowded_gap_ratio,
			minor_notehead_collisions=notehead_overlaps.minor,
		),
		"Q2": score_collision_avoidance(
			effective_critical_collision_count=effective_critical,
			minor_collision_count=minor_collision_count,
			collision_diagnostics=count_diagnostics_in_category(diagnostics, DiagnosticCategory.COLLISION),
		),
		"Q3": score_beam_stem_rest_quality(
			notehead_count=len(snapshot.noteheads),
			stem_count=len(snapshot.stems),
			beam_count=len(snapshot.beams),
			flag_beam_overlap_count=len(flag_beam_overlaps),
			stem_heights=[stem.bounds.height for stem in snapshot.stems],
			stem_beam_diagnostics=count_diagnostics_in_category(diagnostics, DiagnosticCategory.STEM_BEAM_REST),
		),
		"Q4": score_spanner_quality(
			tie_count=len(snapshot.ties),
			beam_count=len(snapshot.beams),
			tie_overflow_count=tie_overflow_count,
			spanner_diagnostics=count_diagnostics_in_category(diagnostics, DiagnosticCategory.SPANNER),
		),
		"Q5": score_text_quality(
			text_count=len(snapshot.text),
			text_collision_count=text_collision_count,
			text_to_notehead_collision_count=text_to_notehead_collision_count,
			text_overflow_count=text_overflow_count,
			text_diagnostics=count_diagnostics_in_category(diagnostics, DiagnosticCategory.TEXT),
		),
		"Q6": score_system_layout_quality(
			layout_overflow_count=layout_overflow_count,
			notehead_barline_intrusion_count=len(intrusions),
			minimum_stave_gap=minimum_stave_gap,
			horizontal_usage_ratio=horizontal_usage_ratio,
			vertical_usage_ratio=vertical_usage_ratio,
		),
		"Q7": score_symbol_fidelity(
			error_count=error_count,
			warning_count=warning_count,
			notehead_count=len(snapshot.noteheads),
			stave_count=len(snapshot.staves),
			symbol_diagnostics=count_diagnostics_in_category(diagnostics, DiagnosticCategory.SYMBOL),
		),
	}

	below_threshold = critical_dimensions_below_threshold(dimensions, config)
	waived_catastrophic = bool(below_threshold) and QualityWaiver.CATASTROPHIC_READABILITY in waiver_set
	catastrophic = bool(below_threshold) and not waived_catastrophic

	notes = []
	if effective_critical > 0:
		notes.append(f"critical collisions: {effective_critical}")
	if waived_critical:
		notes.append(
			f"critical collisions waived via '{QualityWaiver.CRITICAL_COLLISION.value}' ({critical_collision_count})"
		)
	if catastrophic:
		notes.append(f"critical dimensions below threshold: {', '.join(below_threshold)}")
	if intrusions:
		notes.append(f"notehead/barline intrusions: {len(intrusions)}")
	if flag_beam_overlaps:
		notes.append(f"flag/beam overlaps: {len(flag_beam_overlaps)}")
	if waived_catastrophic:
		notes.append(
			f"catastrophic readability waived via '{QualityWaiver.CATASTROPHIC_READABILITY.value}' "
			f"({', '.join(below_threshold)})"
		)

	metrics = QualityMetrics(
		notehead_count=len(snapshot.noteheads),
		stem_count=len(snapshot.stems),
		beam_count=len(snapshot.beams),
		flag_count=len(snapshot.flags),
		flag_beam_overlap_count=len(flag_beam_overlaps),
		tie_count=len(snapshot.ties),
		text_count=len(snapshot.text),
		stave_count=len(snapshot.staves),
		minimum_notehead_gap=round_stat(minimum_notehead_gap),
		crowded_gap_ratio=round_stat(crowded_gap_ratio),
		minor_collision_count=minor_collision_count,
		critical_collision_count=critical_collision_count,
		effective_critical_collision_count=effective_critical,
		text_collision_count=text_collision_count,
		text_to_notehead_collision_count=text_to_notehead_collision_count,
		notehead_barline_intrusion_count=len(intrusions),
		layout_overflow_count=layout_overflow_count,
		text_overflow_count=text_overflow_count,
		tie_overflow_count=tie_overflow_count,
		minimum_stave_gap=minimum_stave_gap,
		horizontal_usage_ratio=horizontal_usage_ratio,
		vertical_usage_ratio=vertical_usage_ratio,
	)
	return QualityReport(
		weighted_score=compute_weighted_score(dimensions, config),
		dimensions=dimensions,
		metrics=metrics,
		critical_dimensions_below_two=tuple(below_threshold),
		catastrophic_readability=catastrophic,
		waived_critical_collision=waived_critical,
		waived_catastrophic_readability=waived_catastrophic,
		notes=tuple(notes),
	)


#============================================
def evaluate_fixture_quality(
		page_markup: str | None,
		parse_diagnostics=(),
		render_diagnostics=(),
		collision_audit=None,
		waivers=(),
		config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> QualityReport:
	"""Score one rendered page; missing or unparsable markup yields the worst-case report."""
	svg_markup = normalize_page_to_svg_markup(page_markup)
	if svg_markup is None:
		return worst_case_quality_report(NO_SVG_QUALITY_NOTE, config)
	try:
		snapshot = collect_notation_geometry(svg_markup)
	except MarkupParseError as error:
		logger.warning("quality analysis skipped: %s", error)
		return worst_case_quality_report(f"fixture SVG markup could not be parsed: {error}", config)
	except RecursionError:
		logger.warning("quality analysis skipped: markup nesting too deep")
		return worst_case_quality_report("fixture SVG markup is nested too deeply to analyze", config)
	return evaluate_snapshot_quality(
		snapshot,
		diagnostics=[*parse_diagnostics, *render_diagnostics],
		collision_audit=collision_audit,
		waivers=waivers,
		config=config,
	)


#============================================
def _mean(values: list[float]) -> float:
	if not values:
		return 0.0
	return round_stat(sum(values) / float(len(values)))


#============================================
def _dimension_averages(reports: list[QualityReport]) -> dict[str, float]:
	return {
		dimension: _mean([report.dimensions[dimension] for report in reports])
		for dimension in QUALITY_DIMENSIONS
	}


#============================================
def build_quality_summary(results, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> dict:
	"""Aggregate quality across all scored fixtures and the expected-pass subset."""
	scored = [result for result in results if result.quality is not None]
	expected_pass = [result for result in scored if result.expected == "pass"]
	scored_reports = [result.quality for result in scored]
	expected_pass_reports = [result.quality for result in expected_pass]
	return {
		"weights": config.to_dict()["weights"],
		"critical_dimensions": list(config.critical_dimensions),
		"scored_fixture_count": len(scored),
		"expected_pass_scored_fixture_count": len(expected_pass),
		"weighted_mean": _mean([report.weighted_score for report in scored_reports]),
		"expected_pass_weighted_mean": _mean([report.weighted_score for report in expected_pass_reports]),
		"dimension_averages": _dimension_averages(scored_reports),
		"expected_pass_dimension_averages": _dimension_averages(expected_pass_reports),
		"expected_pass_catastrophic_fixture_ids": sorted(
			result.fixture_id for result in expected_pass if result.quality.catastrophic_readability
		),
		"expected_pass_critical_collision_fixture_ids": sorted(
			result.fixture_id for result in expected_pass
			if result.quality.metrics.effective_critical_collision_count > 0
		),
		"expected_pass_critical_collision_count": sum(
			result.quality.metrics.effective_critical_collision_count for result in expected_pass
		),
		"expected_pass_flag_beam_overlap_fixture_ids": sorted(
			result.fixture_id for result in expected_pass
			if result.quality.metrics.flag_beam_overlap_count > 0
		),
		"expected_pass_flag_beam_overlap_count": sum(
			result.quality.metrics.flag_beam_overlap_count for result in expected_pass
		),
	}
