"""Tests for notationqa.execution module."""

# Standard Library
import json
import os
import sys
import time

# Third Party
import pytest

# Local
import conftest
_tools_dir = os.path.join(conftest.repo_root(), "tools")
if _tools_dir not in sys.path:
	sys.path.insert(0, _tools_dir)

from notationqa.fixtures import CollisionAuditConfig
from notationqa.fixtures import FixtureDeclaration
from notationqa.models import Diagnostic
from notationqa.execution import (
	ParseOutcome,
	PrerenderedCollaborator,
	RenderOutcome,
	execute_fixture,
	execute_fixtures,
	normalize_concurrency,
	parse_csv_argument,
	run_with_concurrency,
	summarize_durations,
)


SVG_NS = "http://www.w3.org/2000/svg"

PAGE = (
	f'<svg xmlns="{SVG_NS}" width="200" height="100">'
	'<rect class="vf-stave" x="10" y="20" width="180" height="40"/>'
	'<rect class="vf-notehead" x="40" y="30" width="10" height="6"/>'
	'<rect class="vf-notehead" x="45" y="30" width="10" height="6"/>'
	'</svg>'
)


#============================================
class FakeCollaborator:
	"""Scripted collaborator keyed by fixture id."""

	def __init__(self, pages=None, parse_diagnostics=None, render_diagnostics=None,
			parse_raises=False, render_raises=False, delay=0.0):
		self.pages = pages if pages is not None else {}
		self.parse_diagnostics = parse_diagnostics or {}
		self.render_diagnostics = render_diagnostics or {}
		self.parse_raises = parse_raises
		self.render_raises = render_raises
		self.delay = delay

	def parse(self, fixture):
		if self.parse_raises:
			raise RuntimeError("parser exploded")
		if self.delay:
			time.sleep(self.delay)
		return ParseOutcome(
			score=fixture.fixture_id,
			diagnostics=tuple(self.parse_diagnostics.get(fixture.fixture_id, ())),
		)

	def render(self, score):
		if self.render_raises:
			raise RuntimeError("renderer exploded")
		return RenderOutcome(
			pages=tuple(self.pages.get(score, (PAGE,))),
			diagnostics=tuple(self.render_diagnostics.get(score, ())),
		)


def _fixture(fixture_id="fx", expected="pass", **kwargs):
	return FixtureDeclaration(fixture_id=fixture_id, expected=expected, category="smoke", **kwargs)


#============================================
def test_execute_fixture_clean_pass():
	result = execute_fixture(_fixture(), FakeCollaborator())
	assert result.observed == "pass"
	assert result.success is True
	assert result.failure_reasons == ()
	assert result.quality is not None
	assert result.quality.metrics.notehead_count == 2
	# overlapping noteheads are minor collisions only
	assert result.quality.metrics.critical_collision_count == 0


#============================================
def test_execute_fixture_parse_error_matches_expected_fail():
	diagnostics = {"fx": [Diagnostic(code="BAD_PITCH", severity="error", message="pitch missing")]}
	result = execute_fixture(_fixture(expected="fail"), FakeCollaborator(parse_diagnostics=diagnostics))
	assert result.observed == "fail"
	assert result.success is True
	assert result.observed_failure_reasons == ("parse errors: BAD_PITCH",)


#============================================
def test_execute_fixture_mismatch_reason():
	diagnostics = {"fx": [Diagnostic(code="RENDER_FAILED", severity="error", message="")]}
	result = execute_fixture(_fixture(linked_todo="R-002"), FakeCollaborator(render_diagnostics=diagnostics))
	assert result.success is False
	assert result.to_dict()["linked_todo"] == "R-002"
	assert result.failure_reasons == ("expected 'pass' but observed 'fail'",)
	assert result.to_dict()["render_diagnostics"][0]["code"] == "RENDER_FAILED"


#============================================
def test_execute_fixture_parse_collaborator_raises():
	result = execute_fixture(_fixture(), FakeCollaborator(parse_raises=True))
	assert result.observed == "fail"
	assert result.parse_diagnostics[0].code == "PARSE_COLLABORATOR_FAILED"
	assert "parse produced no score" in result.observed_failure_reasons
	# no SVG means worst-case quality rather than a missing report
	assert result.quality.weighted_score == 0.0


#============================================
def test_execute_fixture_render_collaborator_raises():
	result = execute_fixture(_fixture(), FakeCollaborator(render_raises=True))
	assert result.render_diagnostics[0].code == "RENDER_COLLABORATOR_FAILED"
	assert result.observed_failure_reasons == (
		"render errors: RENDER_COLLABORATOR_FAILED",
		"render produced no pages",
	)


#============================================
def test_execute_fixture_no_pages():
	result = execute_fixture(_fixture(), FakeCollaborator(pages={"fx": ()}))
	assert result.observed_failure_reasons == ("render produced no pages",)
	assert result.quality.catastrophic_readability is True


#============================================
def test_execute_fixture_failed_collision_audit():
	fixture = _fixture(collision_audit=CollisionAuditConfig(selector=".vf-notehead"))
	result = execute_fixture(fixture, FakeCollaborator())
	assert result.collision_audit.overlap_count == 1
	assert result.observed_failure_reasons == ("collision audit exceeded threshold (1 overlaps)",)
	assert result.quality.metrics.critical_collision_count == 1


#============================================
def test_execute_fixture_malformed_page_with_audit():
	fixture = _fixture(collision_audit=CollisionAuditConfig(selector="rect"))
	result = execute_fixture(fixture, FakeCollaborator(pages={"fx": ("<svg><g></svg>",)}))
	assert result.collision_audit is None
	assert result.observed_failure_reasons[0].startswith("collision audit could not run")


#============================================
def test_execute_fixtures_keeps_declaration_order_and_skips_inactive():
	fixtures = [
		_fixture("c"),
		_fixture("a"),
		_fixture("skipped", status="skip"),
		_fixture("b"),
	]
	results, timing = execute_fixtures(fixtures, FakeCollaborator(delay=0.001), concurrency=3)
	assert [result.fixture_id for result in results] == ["c", "a", "b"]
	assert timing["count"] == 3
	assert timing["budget_ms"] is None


#============================================
def test_execute_fixtures_survives_deeply_nested_page():
	depth = 1500
	deep_page = (
		f'<svg xmlns="{SVG_NS}" width="200" height="100">' + "<g>" * depth
		+ '<rect class="vf-notehead" x="40" y="30" width="10" height="6"/>'
		+ "</g>" * depth + "</svg>"
	)
	fixtures = [
		_fixture("deep", collision_audit=CollisionAuditConfig(selector=".vf-notehead")),
		_fixture("flat"),
	]
	results, _timing = execute_fixtures(fixtures, FakeCollaborator(pages={"deep": (deep_page,)}))
	assert [result.fixture_id for result in results] == ["deep", "flat"]
	assert results[0].collision_audit.overlap_count == 0
	assert results[0].quality.metrics.notehead_count == 1
	assert results[1].quality.metrics.notehead_count == 2


#============================================
def test_run_with_concurrency_preserves_order():
	def worker(item, index):
		time.sleep(0.001 * (5 - index))
		return (index, item * 2)

	assert run_with_concurrency([1, 2, 3, 4, 5], 4, worker) == [(0, 2), (1, 4), (2, 6), (3, 8), (4, 10)]
	assert run_with_concurrency([], 4, worker) == []


#============================================
@pytest.mark.parametrize("requested, count, expected", [
	(None, 5, 1),
	(float("nan"), 5, 1),
	(0, 5, 1),
	(-2, 5, 1),
	(2.9, 5, 2),
	(16, 5, 5),
	(4, 0, 1),
])
def test_normalize_concurrency(requested, count, expected):
	assert normalize_concurrency(requested, count) == expected


#============================================
@pytest.mark.parametrize("raw, expected", [
	(None, None),
	("", None),
	(" , ", None),
	("a, b,,c ", ["a", "b", "c"]),
])
def test_parse_csv_argument(raw, expected):
	assert parse_csv_argument(raw) == expected


#============================================
def test_summarize_durations_with_budget():
	summary = summarize_durations([4.0, 8.0, 12.0, 16.0, 20.0], budget_ms=10.0)
	assert summary["count"] == 5
	assert summary["total_ms"] == pytest.approx(60.0)
	assert summary["average_ms"] == pytest.approx(12.0)
	assert summary["min_ms"] == 4.0
	assert summary["max_ms"] == 20.0
	assert summary["p95_ms"] == 20.0
	assert summary["budget_exceeded_count"] == 3


#============================================
def test_summarize_durations_ignores_invalid_values():
	summary = summarize_durations([float("nan"), -1.0], budget_ms=0)
	assert summary["count"] == 0
	assert summary["budget_ms"] is None


#============================================
def test_prerendered_collaborator_reads_sidecars(tmp_path):
	meta_path = tmp_path / "01a.meta.yaml"
	meta_path.write_text("id: f\n", encoding="utf-8")
	(tmp_path / "01a.svg").write_text(PAGE, encoding="utf-8")
	(tmp_path / "01a.diagnostics.json").write_text(
		json.dumps({
			"parse": [{"code": "W_PARSE", "severity": "WARNING", "message": "odd"}],
			"render": [{"code": "E_RENDER", "severity": "error"}],
		}),
		encoding="utf-8",
	)
	fixture = _fixture(meta_path=str(meta_path))
	collaborator = PrerenderedCollaborator()
	parse_outcome = collaborator.parse(fixture)
	assert parse_outcome.diagnostics[0].severity == "warning"
	render_outcome = collaborator.render(parse_outcome.score)
	assert render_outcome.pages == (PAGE,)
	assert render_outcome.diagnostics[0].code == "E_RENDER"


#============================================
def test_prerendered_collaborator_missing_page(tmp_path):
	fixture = _fixture(meta_path=str(tmp_path / "absent.meta.yaml"))
	result = execute_fixture(fixture, PrerenderedCollaborator())
	assert result.observed_failure_reasons == ("render produced no pages",)
