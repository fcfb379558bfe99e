#!/usr/bin/env python3
"""Run conformance fixtures from prerendered pages and write quality reports."""

# Standard Library
import argparse
import sys

from notationqa.constants import DEFAULT_REPORT_DIR
from notationqa.errors import NotationQaError
from notationqa.execution import PrerenderedCollaborator
from notationqa.execution import execute_fixtures
from notationqa.execution import parse_csv_argument
from notationqa.fixtures import load_fixture_declarations
from notationqa.log import get_logger
from notationqa.log import setup_logging
from notationqa.log import verbosity_to_level
from notationqa.reporting import build_execution_report
from notationqa.reporting import write_report_artifacts

DEFAULT_FIXTURES_ROOT = "fixtures/conformance"

logger = get_logger(__name__)


#============================================
def parse_args() -> argparse.Namespace:
	"""Parse command-line arguments for a conformance quality run."""
	parser = argparse.ArgumentParser(
		description="Score prerendered conformance fixture pages and write JSON/Markdown reports.",
	)
	parser.add_argument(
		"-r",
		"--fixtures-root",
		dest="fixtures_root",
		type=str,
		default=DEFAULT_FIXTURES_ROOT,
		help="Directory searched recursively for *.meta.yaml fixture declarations.",
	)
	parser.add_argument(
		"-o",
		"--out-dir",
		dest="out_dir",
		type=str,
		default=DEFAULT_REPORT_DIR,
		help="Directory for conformance-report.json and conformance-report.md.",
	)
	parser.add_argument(
		"-c",
		"--concurrency",
		dest="concurrency",
		type=int,
		default=1,
		help="Number of fixtures executed at once.",
	)
	parser.add_argument(
		"-b",
		"--timing-budget-ms",
		dest="timing_budget_ms",
		type=float,
		default=None,
		help="Per-fixture time budget; slower fixtures are counted, not dropped.",
	)
	parser.add_argument(
		"-f",
		"--fixtures",
		dest="fixture_ids",
		type=str,
		default=None,
		help="Comma-separated fixture ids to run (default: all).",
	)
	parser.add_argument(
		"-l",
		"--log-file",
		dest="log_file",
		type=str,
		default=None,
		help="Optional log file path.",
	)
	parser.add_argument(
		"-v",
		"--verbose",
		dest="verbose",
		action="count",
		help="Increase log verbosity (repeat for debug).",
	)
	parser.set_defaults(verbose=0)
	return parser.parse_args()


#============================================
def main() -> None:
	"""Execute fixtures, write report artifacts, and print key stats."""
	args = parse_args()
	setup_logging(verbosity_to_level(args.verbose), args.log_file)
	try:
		fixtures = load_fixture_declarations(args.fixtures_root)
	except NotationQaError as error:
		logger.error("%s", error)
		sys.exit(2)
	fixture_ids = parse_csv_argument(args.fixture_ids)
	if fixture_ids is not None:
		wanted = set(fixture_ids)
		fixtures = [fixture for fixture in fixtures if fixture.fixture_id in wanted]
	if not fixtures:
		raise RuntimeError(f"No fixtures selected under {args.fixtures_root!r}")
	results, timing = execute_fixtures(
		fixtures,
		PrerenderedCollaborator(),
		concurrency=args.concurrency,
		timing_budget_ms=args.timing_budget_ms,
	)
	report = build_execution_report(results)
	paths = write_report_artifacts(report, args.out_dir)
	summary = report["quality_summary"]
	print(f"Wrote JSON report: {paths['json_path']}")
	print(f"Wrote Markdown report: {paths['markdown_path']}")
	print("Key stats:")
	print(f"- fixtures executed: {report['fixture_count']}")
	print(f"- passed: {report['pass_count']}")
	print(f"- failed: {report['fail_count']}")
	print(f"- weighted mean: {summary['weighted_mean']:.4f}")
	print(f"- expected-pass weighted mean: {summary['expected_pass_weighted_mean']:.4f}")
	print(f"- catastrophic expected-pass fixtures: {summary['expected_pass_catastrophic_fixture_ids']}")
	print(f"- critical expected-pass collisions: {summary['expected_pass_critical_collision_count']}")
	print(f"- timing: total {timing['total_ms']:.1f} ms, p95 {timing['p95_ms']:.1f} ms")
	if timing["budget_ms"] is not None:
		print(f"- over budget: {timing['budget_exceeded_count']}")


if __name__ == "__main__":
	main()
