"""Execution report aggregation and deterministic JSON/Markdown rendering."""

# Standard Library
import datetime
import json
import pathlib

from notationqa.constants import (
	FIXTURE_CATEGORY_MARKER,
	QUALITY_DIMENSIONS,
	REPORT_JSON_NAME,
	REPORT_MARKDOWN_NAME,
)
from notationqa.quality import build_quality_summary
from notationqa.scoring import DEFAULT_SCORING_CONFIG
from notationqa.scoring import ScoringConfig
from notationqa.util import increment_counter
from notationqa.util import sorted_counter


#============================================
def build_code_histogram(diagnostics) -> dict[str, int]:
	"""Count diagnostics by code."""
	histogram = {}
	for diagnostic in diagnostics:
		increment_counter(histogram, diagnostic.code)
	return sorted_counter(histogram)


#============================================
def build_severity_histogram(diagnostics) -> dict[str, int]:
	"""Count diagnostics by severity."""
	histogram = {}
	for diagnostic in diagnostics:
		increment_counter(histogram, diagnostic.severity)
	return sorted_counter(histogram)


#============================================
def merge_histogram(target: dict[str, int], source: dict[str, int]) -> None:
	for key, count in source.items():
		target[key] = target.get(key, 0) + count


#============================================
def read_category_from_meta_path(meta_path: str, fallback: str | None = None) -> str:
	"""Return the directory under fixtures/conformance/, else fallback, else 'unknown'."""
	normalized = str(meta_path or "").replace("\\", "/")
	marker_index = normalized.rfind(FIXTURE_CATEGORY_MARKER)
	if marker_index >= 0:
		category = normalized[marker_index + len(FIXTURE_CATEGORY_MARKER):].split("/")[0]
		if category:
			return category
	return fallback or "unknown"


#============================================
def build_category_rollups(results) -> dict[str, dict]:
	"""Return per-category pass/fail counts and diagnostic histograms."""
	rollups = {}
	for result in results:
		category = read_category_from_meta_path(result.meta_path, result.category)
		rollup = rollups.setdefault(
			category,
			{
				"fixture_count": 0,
				"pass_count": 0,
				"fail_count": 0,
				"parse_diagnostic_code_histogram": {},
				"render_diagnostic_code_histogram": {},
				"diagnostic_severity_histogram": {},
			},
		)
		rollup["fixture_count"] += 1
		if result.success:
			rollup["pass_count"] += 1
		else:
			rollup["fail_count"] += 1
		merge_histogram(rollup["parse_diagnostic_code_histogram"], build_code_histogram(result.parse_diagnostics))
		merge_histogram(rollup["render_diagnostic_code_histogram"], build_code_histogram(result.render_diagnostics))
		merge_histogram(
			rollup["diagnostic_severity_histogram"],
			build_severity_histogram([*result.parse_diagnostics, *result.render_diagnostics]),
		)
	for rollup in rollups.values():
		for key in ("parse_diagnostic_code_histogram", "render_diagnostic_code_histogram", "diagnostic_severity_histogram"):
			rollup[key] = sorted_counter(rollup[key])
	return {category: rollups[category] for category in sorted(rollups)}


#============================================
def build_execution_report(
		results,
		config: ScoringConfig = DEFAULT_SCORING_CONFIG,
		generated_at: str | None = None) -> dict:
	"""Aggregate fixture results into one report; generated_at is the only wall-clock field."""
	if generated_at is None:
		generated_at = datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")
	pass_count = sum(1 for result in results if result.success)
	parse_diagnostics = [diagnostic for result in results for diagnostic in result.parse_diagnostics]
	render_diagnostics = [diagnostic for result in results for diagnostic in result.render_diagnostics]
	return {
		"generated_at": generated_at,
		"fixture_count": len(results),
		"pass_count": pass_count,
		"fail_count": len(results) - pass_count,
		"parse_diagnostic_code_histogram": build_code_histogram(parse_diagnostics),
		"render_diagnostic_code_histogram": build_code_histogram(render_diagnostics),
		"diagnostic_severity_histogram": build_severity_histogram(parse_diagnostics + render_diagnostics),
		"category_rollups": build_category_rollups(results),
		"quality_summary": build_quality_summary(results, config),
		"results": [result.to_dict() for result in results],
	}


#============================================
def format_report_json(report: dict) -> str:
	"""Return stable JSON text for one report."""
	return json.dumps(report, indent=2, sort_keys=True) + "\n"


#============================================
def escape_markdown_table(value: str) -> str:
	return str(value).replace("|", "\\|")


#============================================
def _format_score(value: float | None) -> str:
	if value is None:
		return "n/a"
	return f"{value:.2f}"


#============================================
def _histogram_lines(title: str, histogram: dict[str, int]) -> list[str]:
	lines = [f"### {title}", ""]
	entries = sorted(histogram.items(), key=lambda item: (-item[1], item[0]))
	if not entries:
		lines.append("- none")
		return lines
	lines.append("| Key | Count |")
	lines.append("|---|---|")
	for key, count in entries:
		lines.append(f"| {escape_markdown_table(key)} | {count} |")
	return lines


#============================================
def _id_list(fixture_ids: list[str]) -> str:
	if not fixture_ids:
		return "none"
	return ", ".join(fixture_ids)


#============================================
def _quality_summary_lines(summary: dict) -> list[str]:
	lines = [
		"## Quality Summary",
		"",
		f"Scored fixtures: {summary['scored_fixture_count']}",
		f"Expected-pass scored fixtures: {summary['expected_pass_scored_fixture_count']}",
		f"Weighted mean: {summary['weighted_mean']:.4f}",
		f"Expected-pass weighted mean: {summary['expected_pass_weighted_mean']:.4f}",
		f"Critical dimensions: {', '.join(summary['critical_dimensions'])}",
		"",
		"| Dimension | Weight | Mean | Expected-pass mean |",
		"|---|---|---|---|",
	]
	for dimension in QUALITY_DIMENSIONS:
		lines.append(
			f"| {dimension} | {summary['weights'][dimension]:.2f}"
			f" | {summary['dimension_averages'][dimension]:.4f}"
			f" | {summary['expected_pass_dimension_averages'][dimension]:.4f} |"
		)
	lines.append("")
	lines.append(
		f"Expected-pass catastrophic fixtures: {_id_list(summary['expected_pass_catastrophic_fixture_ids'])}"
	)
	lines.append(
		"Expected-pass critical collision fixtures: "
		f"{_id_list(summary['expected_pass_critical_collision_fixture_ids'])}"
		f" ({summary['expected_pass_critical_collision_count']} collisions)"
	)
	lines.append(
		"Expected-pass flag/beam overlap fixtures: "
		f"{_id_list(summary['expected_pass_flag_beam_overlap_fixture_ids'])}"
		f" ({summary['expected_pass_flag_beam_overlap_count']} overlaps)"
	)
	return lines


#============================================
def format_report_markdown(report: dict) -> str:
	"""Return the human-readable table rendition of one report."""
	lines = [
		"# Conformance Execution Report",
		"",
		f"Generated at: {report['generated_at']}",
		f"Fixtures executed: {report['fixture_count']}",
		f"Passed: {report['pass_count']}",
		f"Failed: {report['fail_count']}",
		"",
		"| Fixture | Parse Mode | Expected | Observed | Match | Quality | Notes |",
		"|---|---|---|---|---|---|---|",
	]
	for result in report["results"]:
		notes_source = result["failure_reasons"] or result["observed_failure_reasons"]
		notes = "; ".join(notes_source) if notes_source else "ok"
		if not result["success"] and result.get("linked_todo"):
			notes = f"{notes} (linked todo: {result['linked_todo']})"
		quality = result.get("quality")
		score = None if quality is None else quality["weighted_score"]
		match_text = "yes" if result["success"] else "no"
		lines.append(
			f"| {escape_markdown_table(result['fixture_id'])} | {result['parse_mode']}"
			f" | {result['expected']} | {result['observed']} | {match_text}"
			f" | {_format_score(score)} | {escape_markdown_table(notes)} |"
		)
	lines.append("")
	lines.extend(_quality_summary_lines(report["quality_summary"]))
	lines.append("")
	lines.append("## Diagnostic Histograms")
	lines.append("")
	lines.extend(_histogram_lines("Parse Diagnostic Codes", report["parse_diagnostic_code_histogram"]))
	lines.append("")
	lines.extend(_histogram_lines("Render Diagnostic Codes", report["render_diagnostic_code_histogram"]))
	lines.append("")
	lines.extend(_histogram_lines("Diagnostic Severities", report["diagnostic_severity_histogram"]))
	lines.append("")
	lines.append("## Category Rollups")
	lines.append("")
	rollups = report["category_rollups"]
	if not rollups:
		lines.append("- none")
	else:
		lines.append("| Category | Fixtures | Passed | Failed |")
		lines.append("|---|---|---|---|")
		for category in sorted(rollups):
			rollup = rollups[category]
			lines.append(
				f"| {escape_markdown_table(category)} | {rollup['fixture_count']}"
				f" | {rollup['pass_count']} | {rollup['fail_count']} |"
			)
	return "\n".join(lines) + "\n"


#============================================
def write_report_artifacts(report: dict, out_dir: str) -> dict[str, str]:
	"""Write JSON and Markdown artifacts and return their paths."""
	out_path = pathlib.Path(out_dir)
	out_path.mkdir(parents=True, exist_ok=True)
	json_path = out_path / REPORT_JSON_NAME
	markdown_path = out_path / REPORT_MARKDOWN_NAME
	json_path.write_text(format_report_json(report), encoding="utf-8")
	markdown_path.write_text(format_report_markdown(report), encoding="utf-8")
	return {"json_path": str(json_path), "markdown_path": str(markdown_path)}
