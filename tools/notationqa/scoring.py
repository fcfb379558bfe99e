"""Seven-dimension quality rubric formulas and weighting."""

# Standard Library
import dataclasses
import enum
import types

from notationqa.constants import (
	CATASTROPHIC_THRESHOLD,
	CRITICAL_DIMENSIONS,
	DEFAULT_QUALITY_WEIGHTS,
	MAX_NORMAL_STEM_HEIGHT,
	MIN_NORMAL_STEM_HEIGHT,
	QUALITY_DIMENSIONS,
	SCORE_CEILING,
)
from notationqa.errors import ConfigError
from notationqa.util import capped_penalty
from notationqa.util import clamp
from notationqa.util import round_stat


#============================================
class DiagnosticCategory(enum.Enum):
	COLLISION = ("COLLISION", "OVERLAP")
	STEM_BEAM_REST = ("STEM", "BEAM", "REST")
	SPANNER = ("TIE", "SLUR", "WEDGE", "TUPLET", "VOLTA")
	TEXT = ("TEXT", "LYRIC", "HARMONY", "DIRECTION")
	SYMBOL = ("UNSUPPORTED", "NOT_SUPPORTED", "NOT_IMPLEMENTED", "UNIMPLEMENTED", "FAILED", "MISSING")

	@property
	def tokens(self) -> tuple[str, ...]:
		return self.value

	def matches(self, diagnostic) -> bool:
		"""Return True when code or message contains any category token, ignoring case."""
		code = str(diagnostic.code).upper()
		message = str(diagnostic.message).upper()
		return any(token in code or token in message for token in self.tokens)


#============================================
def count_diagnostics_in_category(diagnostics, category: DiagnosticCategory) -> int:
	"""Count diagnostics that fall in one fixed vocabulary category."""
	return sum(1 for diagnostic in diagnostics if category.matches(diagnostic))


#============================================
@dataclasses.dataclass(frozen=True)
class ScoringConfig:
	weights: types.MappingProxyType = dataclasses.field(
		default_factory=lambda: types.MappingProxyType(dict(DEFAULT_QUALITY_WEIGHTS))
	)
	critical_dimensions: tuple[str, ...] = CRITICAL_DIMENSIONS
	catastrophic_threshold: float = CATASTROPHIC_THRESHOLD

	def __post_init__(self):
		if not isinstance(self.weights, types.MappingProxyType):
			object.__setattr__(self, "weights", types.MappingProxyType(dict(self.weights)))
		if set(self.weights) != set(QUALITY_DIMENSIONS):
			raise ConfigError(f"weights must define exactly {', '.join(QUALITY_DIMENSIONS)}")
		for dimension, weight in self.weights.items():
			if float(weight) < 0.0:
				raise ConfigError(f"weight for {dimension} must be non-negative, got {weight}")
		unknown = [dimension for dimension in self.critical_dimensions if dimension not in QUALITY_DIMENSIONS]
		if unknown:
			raise ConfigError(f"unknown critical dimensions: {', '.join(unknown)}")
		object.__setattr__(self, "critical_dimensions", tuple(self.critical_dimensions))

	def to_dict(self) -> dict:
		return {
			"weights": {dimension: self.weights[dimension] for dimension in QUALITY_DIMENSIONS},
			"critical_dimensions": list(self.critical_dimensions),
			"catastrophic_threshold": self.catastrophic_threshold,
		}


DEFAULT_SCORING_CONFIG = ScoringConfig()


#============================================
def clamp_score(value: float) -> float:
	"""Clamp one dimension score to [0, 5] at report precision."""
	return round_stat(clamp(value, 0.0, SCORE_CEILING))


#============================================
def score_rhythm_spacing(
		*,
		minimum_notehead_gap: float | None,
		crowded_gap_ratio: float,
		minor_notehead_collisions: int) -> float:
	"""Return Q1 from notehead spacing and crowding."""
	score = SCORE_CEILING
	if minimum_notehead_gap is not None:
		if minimum_notehead_gap < 4.0:
			score -= 0.25
		if minimum_notehead_gap < 3.0:
			score -= 0.35
		if minimum_notehead_gap < 2.0:
			score -= 0.5
	score -= crowded_gap_ratio * 0.8
	score -= capped_penalty(minor_notehead_collisions, 0.03, 1.2)
	return clamp_score(score)


#============================================
def score_collision_avoidance(
		*,
		effective_critical_collision_count: int,
		minor_collision_count: int,
		collision_diagnostics: int) -> float:
	"""Return Q2 from collision counters and collision-coded diagnostics."""
	score = SCORE_CEILING
	score -= capped_penalty(effective_critical_collision_count, 1.2, 3.0)
	score -= capped_penalty(minor_collision_count, 0.02, 1.0)
	score -= capped_penalty(collision_diagnostics, 0.2, 0.9)
	return clamp_score(score)


#============================================
def score_beam_stem_rest_quality(
		*,
		notehead_count: int,
		stem_count: int,
		beam_count: int,
		flag_beam_overlap_count: int,
		stem_heights: list[float],
		stem_beam_diagnostics: int) -> float:
	"""Return Q3 from stem geometry, beams, flags, and stem/beam/rest diagnostics."""
	score = SCORE_CEILING
	if stem_count == 0 and notehead_count >= 8:
		score -= 0.6
	if stem_count > 0:
		abnormal = sum(
			1 for height in stem_heights
			if height < MIN_NORMAL_STEM_HEIGHT or height > MAX_NORMAL_STEM_HEIGHT
		)
		score -= min(1.8, (abnormal / stem_count) * 3.0)
	if beam_count > 0 and stem_count == 0:
		score -= 1.6
	score -= capped_penalty(flag_beam_overlap_count, 0.8, 2.4)
	score -= capped_penalty(stem_beam_diagnostics, 0.35, 1.8)
	return clamp_score(score)


#============================================
def score_spanner_quality(
		*,
		tie_count: int,
		beam_count: int,
		tie_overflow_count: int,
		spanner_diagnostics: int) -> float:
	"""Return Q4 from tie overflow and spanner diagnostics."""
	score = SCORE_CEILING
	score -= capped_penalty(tie_overflow_count, 0.8, 2.0)
	score -= capped_penalty(spanner_diagnostics, 0.4, 2.0)
	if tie_count + beam_count > 0 and tie_overflow_count == 0 and spanner_diagnostics == 0:
		score = max(score, 4.8)
	return clamp_score(score)


#============================================
def score_text_quality(
		*,
		text_count: int,
		text_collision_count: int,
		text_to_notehead_collision_count: int,
		text_overflow_count: int,
		text_diagnostics: int) -> float:
	"""Return Q5 from text collisions, overflow, and text diagnostics."""
	if text_count == 0:
		return SCORE_CEILING
	score = SCORE_CEILING
	score -= capped_penalty(text_collision_count, 0.35, 2.2)
	score -= capped_penalty(text_to_notehead_collision_count, 0.35, 2.2)
	score -= capped_penalty(text_overflow_count, 0.4, 1.6)
	score -= capped_penalty(text_diagnostics, 0.25, 1.2)
	return clamp_score(score)


#============================================
def _usage_penalty(usage_ratio: float | None) -> float:
	if usage_ratio is None:
		return 0.0
	penalty = 0.0
	if usage_ratio > 0.99:
		penalty += 0.15
	if usage_ratio > 1.0:
		penalty += 0.45
	return penalty


#============================================
def score_system_layout_quality(
		*,
		layout_overflow_count: int,
		notehead_barline_intrusion_count: int,
		minimum_stave_gap: float | None,
		horizontal_usage_ratio: float | None,
		vertical_usage_ratio: float | None) -> float:
	"""Return Q6 from overflow, intrusions, page usage, and stave spacing."""
	score = SCORE_CEILING
	score -= capped_penalty(layout_overflow_count, 0.05, 1.2)
	score -= capped_penalty(notehead_barline_intrusion_count, 0.15, 1.0)
	score -= _usage_penalty(horizontal_usage_ratio)
	score -= _usage_penalty(vertical_usage_ratio)
	if minimum_stave_gap is not None:
		if minimum_stave_gap < 8.0:
			score -= 0.8
		if minimum_stave_gap < 0.0:
			score -= 1.2
	return clamp_score(score)


#============================================
def score_symbol_fidelity(
		*,
		error_count: int,
		warning_count: int,
		notehead_count: int,
		stave_count: int,
		symbol_diagnostics: int) -> float:
	"""Return Q7 from core glyph presence and unsupported-symbol diagnostics."""
	score = SCORE_CEILING
	if notehead_count == 0:
		score -= 2.2
	if stave_count == 0:
		score -= 2.2
	score -= capped_penalty(symbol_diagnostics, 0.45, 2.5)
	score -= capped_penalty(warning_count, 0.02, 1.2)
	if error_count > 0:
		score = min(score, 1.0)
	return clamp_score(score)


#============================================
def compute_weighted_score(dimensions: dict[str, float], config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
	"""Return sum(dimension * weight) / sum(weight), or 0.0 when weights sum to zero."""
	weighted_sum = 0.0
	weight_sum = 0.0
	for dimension in QUALITY_DIMENSIONS:
		weight = float(config.weights[dimension])
		weighted_sum += float(dimensions[dimension]) * weight
		weight_sum += weight
	if weight_sum <= 0.0:
		return 0.0
	return round_stat(weighted_sum / weight_sum)


#============================================
def critical_dimensions_below_threshold(
		dimensions: dict[str, float],
		config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> list[str]:
	"""Return critical dimensions scoring under the catastrophic threshold, in config order."""
	return [
		dimension for dimension in config.critical_dimensions
		if dimensions[dimension] < config.catastrophic_threshold
	]
