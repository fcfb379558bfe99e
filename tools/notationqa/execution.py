"""Fixture execution through external parse/render collaborators with bounded concurrency."""

# Standard Library
import concurrent.futures
import dataclasses
import json
import math
import pathlib
import time
import typing

from notationqa.audit import CollisionAuditReport
from notationqa.audit import run_collision_audit
from notationqa.errors import NotationQaError
from notationqa.fixtures import FixtureDeclaration
from notationqa.fixtures import strip_meta_suffix
from notationqa.log import get_logger
from notationqa.models import Diagnostic
from notationqa.quality import QualityReport
from notationqa.quality import evaluate_fixture_quality
from notationqa.scoring import DEFAULT_SCORING_CONFIG
from notationqa.scoring import ScoringConfig
from notationqa.util import percentile_index

logger = get_logger(__name__)


#============================================
@dataclasses.dataclass(frozen=True)
class ParseOutcome:
	score: object | None
	diagnostics: tuple[Diagnostic, ...] = ()


#============================================
@dataclasses.dataclass(frozen=True)
class RenderOutcome:
	pages: tuple[str, ...] = ()
	diagnostics: tuple[Diagnostic, ...] = ()


#============================================
class Collaborator(typing.Protocol):
	def parse(self, fixture: FixtureDeclaration) -> ParseOutcome:
		...

	def render(self, score) -> RenderOutcome:
		...


#============================================
class PrerenderedCollaborator:
	"""Serve pages rendered ahead of time as <stem>.svg beside each fixture.

	An optional <stem>.diagnostics.json holds {"parse": [...], "render": [...]}
	diagnostic lists captured when the page was produced.
	"""

	def parse(self, fixture: FixtureDeclaration) -> ParseOutcome:
		base = self._fixture_base(fixture)
		diagnostics = self._read_diagnostics(base)
		return ParseOutcome(score=base, diagnostics=tuple(diagnostics.get("parse", ())))

	def render(self, score) -> RenderOutcome:
		base = str(score)
		diagnostics = self._read_diagnostics(base)
		svg_path = pathlib.Path(base + ".svg")
		pages = ()
		if svg_path.is_file():
			pages = (svg_path.read_text(encoding="utf-8"),)
		return RenderOutcome(pages=pages, diagnostics=tuple(diagnostics.get("render", ())))

	def _fixture_base(self, fixture: FixtureDeclaration) -> str:
		if fixture.meta_path:
			return strip_meta_suffix(fixture.meta_path)
		return str(pathlib.Path(fixture.score_path).with_suffix(""))

	def _read_diagnostics(self, base: str) -> dict[str, list[Diagnostic]]:
		diagnostics_path = pathlib.Path(base + ".diagnostics.json")
		if not diagnostics_path.is_file():
			return {}
		payload = json.loads(diagnostics_path.read_text(encoding="utf-8"))
		return {
			stage: [Diagnostic.from_dict(item) for item in payload.get(stage, [])]
			for stage in ("parse", "render")
		}


#============================================
@dataclasses.dataclass(frozen=True)
class FixtureExecutionResult:
	fixture_id: str
	expected: str
	observed: str
	success: bool
	status: str = "active"
	parse_mode: str = "lenient"
	category: str = ""
	meta_path: str = ""
	score_path: str = ""
	parse_diagnostics: tuple[Diagnostic, ...] = ()
	render_diagnostics: tuple[Diagnostic, ...] = ()
	collision_audit: CollisionAuditReport | None = None
	quality: QualityReport | None = None
	observed_failure_reasons: tuple[str, ...] = ()
	failure_reasons: tuple[str, ...] = ()
	linked_todo: str | None = None

	def to_dict(self) -> dict:
		return {
			"fixture_id": self.fixture_id,
			"meta_path": self.meta_path,
			"score_path": self.score_path,
			"category": self.category,
			"expected": self.expected,
			"status": self.status,
			"parse_mode": self.parse_mode,
			"parse_diagnostics": [diagnostic.to_dict() for diagnostic in self.parse_diagnostics],
			"render_diagnostics": [diagnostic.to_dict() for diagnostic in self.render_diagnostics],
			"collision_audit": None if self.collision_audit is None else self.collision_audit.to_dict(),
			"quality": None if self.quality is None else self.quality.to_dict(),
			"observed": self.observed,
			"observed_failure_reasons": list(self.observed_failure_reasons),
			"success": self.success,
			"failure_reasons": list(self.failure_reasons),
			"linked_todo": self.linked_todo,
		}


#============================================
def _error_codes(diagnostics) -> list[str]:
	return [diagnostic.code for diagnostic in diagnostics if diagnostic.severity == "error"]


#============================================
def _collaborator_failure(stage: str, error: Exception) -> Diagnostic:
	return Diagnostic(
		code=f"{stage.upper()}_COLLABORATOR_FAILED",
		severity="error",
		message=f"{stage} collaborator raised {type(error).__name__}: {error}",
	)


#============================================
def execute_fixture(
		fixture: FixtureDeclaration,
		collaborator: Collaborator,
		config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> FixtureExecutionResult:
	"""Parse, render, audit, and score one fixture, then compare observed with expected."""
	observed_failure_reasons = []
	parse_diagnostics = []
	render_diagnostics = []
	collision_audit = None
	first_page = None

	try:
		parse_outcome = collaborator.parse(fixture)
	except Exception as error:
		logger.exception("parse collaborator failed for %s", fixture.fixture_id)
		parse_outcome = ParseOutcome(score=None, diagnostics=(_collaborator_failure("parse", error),))
	parse_diagnostics.extend(parse_outcome.diagnostics)
	parse_errors = _error_codes(parse_diagnostics)
	if parse_errors:
		observed_failure_reasons.append(f"parse errors: {', '.join(parse_errors)}")
	if parse_outcome.score is None:
		observed_failure_reasons.append("parse produced no score")
	else:
		try:
			render_outcome = collaborator.render(parse_outcome.score)
		except Exception as error:
			logger.exception("render collaborator failed for %s", fixture.fixture_id)
			render_outcome = RenderOutcome(diagnostics=(_collaborator_failure("render", error),))
		render_diagnostics.extend(render_outcome.diagnostics)
		render_errors = _error_codes(render_diagnostics)
		if render_errors:
			observed_failure_reasons.append(f"render errors: {', '.join(render_errors)}")
		if not render_outcome.pages:
			observed_failure_reasons.append("render produced no pages")
		else:
			first_page = render_outcome.pages[0]
		try:
			collision_audit = run_collision_audit(first_page or "", fixture)
		except NotationQaError as error:
			logger.warning("collision audit skipped for %s: %s", fixture.fixture_id, error)
			observed_failure_reasons.append(f"collision audit could not run: {error}")
		if collision_audit is not None and not collision_audit.passed:
			observed_failure_reasons.append(
				f"collision audit exceeded threshold ({collision_audit.overlap_count} overlaps)"
			)

	quality = evaluate_fixture_quality(
		first_page,
		parse_diagnostics=parse_diagnostics,
		render_diagnostics=render_diagnostics,
		collision_audit=collision_audit,
		waivers=fixture.waivers,
		config=config,
	)
	observed = "pass" if not observed_failure_reasons else "fail"
	success = fixture.expected == observed
	failure_reasons = () if success else (f"expected '{fixture.expected}' but observed '{observed}'",)
	return FixtureExecutionResult(
		fixture_id=fixture.fixture_id,
		expected=fixture.expected,
		observed=observed,
		success=success,
		status=fixture.status,
		parse_mode=fixture.parse_mode,
		category=fixture.category,
		meta_path=fixture.meta_path,
		score_path=fixture.score_path,
		parse_diagnostics=tuple(parse_diagnostics),
		render_diagnostics=tuple(render_diagnostics),
		collision_audit=collision_audit,
		quality=quality,
		observed_failure_reasons=tuple(observed_failure_reasons),
		failure_reasons=failure_reasons,
		linked_todo=fixture.linked_todo,
	)


#============================================
def parse_csv_argument(raw: str | None) -> list[str] | None:
	"""Split a comma-separated CLI value; None means no filter was given."""
	if not raw:
		return None
	values = [token.strip() for token in raw.split(",") if token.strip()]
	return values or None


#============================================
def normalize_concurrency(requested: int | float | None, item_count: int) -> int:
	"""Clamp requested worker count to [1, item_count]."""
	if requested is None or not math.isfinite(requested):
		return 1
	rounded = int(math.floor(requested))
	if rounded <= 0:
		return 1
	return min(rounded, max(1, item_count))


#============================================
def run_with_concurrency(items, concurrency: int, worker) -> list:
	"""Run worker(item, index) over items on a bounded pool, returning results in input order."""
	items = list(items)
	if not items:
		return []
	workers = normalize_concurrency(concurrency, len(items))
	results = [None] * len(items)
	with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
		futures = {
			executor.submit(worker, item, index): index
			for index, item in enumerate(items)
		}
		for future in concurrent.futures.as_completed(futures):
			results[futures[future]] = future.result()
	return results


#============================================
def summarize_durations(durations_ms, budget_ms: float | None = None) -> dict:
	"""Return count, total, mean, min, max, p95, and budget overrun count for item durations."""
	values = [float(value) for value in durations_ms if math.isfinite(value) and value >= 0]
	budget = None
	if budget_ms is not None and math.isfinite(budget_ms) and budget_ms > 0:
		budget = float(budget_ms)
	if not values:
		return {
			"count": 0,
			"total_ms": 0.0,
			"average_ms": 0.0,
			"min_ms": 0.0,
			"max_ms": 0.0,
			"p95_ms": 0.0,
			"budget_exceeded_count": 0,
			"budget_ms": budget,
		}
	ordered = sorted(values)
	total = sum(values)
	exceeded = 0
	if budget is not None:
		exceeded = sum(1 for value in values if value > budget)
	return {
		"count": len(values),
		"total_ms": total,
		"average_ms": total / len(values),
		"min_ms": ordered[0],
		"max_ms": ordered[-1],
		"p95_ms": ordered[percentile_index(len(ordered), 0.95)],
		"budget_exceeded_count": exceeded,
		"budget_ms": budget,
	}


#============================================
def execute_fixtures(
		fixtures: list[FixtureDeclaration],
		collaborator: Collaborator,
		concurrency: int = 1,
		timing_budget_ms: float | None = None,
		config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> tuple[list[FixtureExecutionResult], dict]:
	"""Execute active fixtures on a bounded pool and return ordered results plus timing summary.

	Items over the timing budget still complete and are only counted.
	"""
	active = [fixture for fixture in fixtures if fixture.is_active]
	skipped = len(fixtures) - len(active)
	if skipped:
		logger.info("skipping %d inactive fixtures", skipped)

	def timed_worker(fixture: FixtureDeclaration, index: int) -> tuple[FixtureExecutionResult, float]:
		started = time.perf_counter()
		result = execute_fixture(fixture, collaborator, config)
		elapsed_ms = (time.perf_counter() - started) * 1000.0
		if timing_budget_ms is not None and elapsed_ms > timing_budget_ms:
			logger.warning("fixture %s took %.1f ms (budget %.1f ms)", fixture.fixture_id, elapsed_ms, timing_budget_ms)
		return result, elapsed_ms

	timed = run_with_concurrency(active, concurrency, timed_worker)
	results = [result for result, _elapsed in timed]
	timing = summarize_durations([elapsed for _result, elapsed in timed], timing_budget_ms)
	return results, timing
