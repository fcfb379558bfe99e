#!/usr/bin/env python3
"""Evaluate deterministic split gates against a saved conformance report.

With baseline and candidate PNG directories, also apply the perceptual
image gate from the same gate config.
"""

# Standard Library
import argparse
import json
import pathlib
import sys

from notationqa.errors import ConfigError
from notationqa.evaluation import evaluate_all_splits
from notationqa.evaluation import evaluate_perceptual_layer
from notationqa.evaluation import load_gate_config
from notationqa.evaluation import load_perceptual_gate
from notationqa.evaluation import load_split_config
from notationqa.execution import parse_csv_argument
from notationqa.log import setup_logging
from notationqa.log import verbosity_to_level

DEFAULT_REPORT = "output_smoke/conformance/conformance-report.json"
DEFAULT_SPLITS = "fixtures/evaluation/splits.json"
DEFAULT_GATES = "fixtures/evaluation/gates.json"


#============================================
def parse_args() -> argparse.Namespace:
	"""Parse command-line arguments for gate evaluation."""
	parser = argparse.ArgumentParser(
		description="Apply per-split quality gates to a conformance report; exits 1 on any failure.",
	)
	parser.add_argument(
		"-r",
		"--report",
		dest="report",
		type=str,
		default=DEFAULT_REPORT,
		help="Conformance report JSON to evaluate.",
	)
	parser.add_argument(
		"-s",
		"--splits",
		dest="splits",
		type=str,
		default=DEFAULT_SPLITS,
		help="Split definition JSON.",
	)
	parser.add_argument(
		"-g",
		"--gates",
		dest="gates",
		type=str,
		default=DEFAULT_GATES,
		help="Deterministic gate threshold JSON.",
	)
	parser.add_argument(
		"-n",
		"--split-names",
		dest="split_names",
		type=str,
		default=None,
		help="Comma-separated split names to evaluate (default: every gated split).",
	)
	parser.add_argument(
		"-j",
		"--json-out",
		dest="json_out",
		type=str,
		default=None,
		help="Optional output path for the evaluation JSON.",
	)
	parser.add_argument(
		"-b",
		"--baseline-dir",
		dest="baseline_dir",
		type=str,
		default=None,
		help="Directory of baseline PNGs for the perceptual gate.",
	)
	parser.add_argument(
		"-c",
		"--candidate-dir",
		dest="candidate_dir",
		type=str,
		default=None,
		help="Directory of candidate PNGs compared against same-named baseline PNGs.",
	)
	parser.add_argument(
		"-d",
		"--diff-dir",
		dest="diff_dir",
		type=str,
		default=None,
		help="Optional output directory for perceptual diff images.",
	)
	parser.add_argument(
		"-v",
		"--verbose",
		dest="verbose",
		action="count",
		help="Increase log verbosity (repeat for debug).",
	)
	parser.set_defaults(verbose=0)
	args = parser.parse_args()
	if bool(args.baseline_dir) != bool(args.candidate_dir):
		parser.error("--baseline-dir and --candidate-dir must be given together")
	return args


#============================================
def run_perceptual_layer(args: argparse.Namespace) -> dict:
	"""Run the perceptual gate when both image directories are given."""
	if not args.baseline_dir:
		return {
			"status": "skipped",
			"reason": "baseline/candidate directories not provided",
			"pair_count": 0,
			"failure_reasons": [],
		}
	gate = load_perceptual_gate(args.gates)
	if gate is None:
		raise ConfigError("gate config has no 'perceptual' thresholds", file_path=args.gates)
	return evaluate_perceptual_layer(args.baseline_dir, args.candidate_dir, gate, diff_dir=args.diff_dir)


#============================================
def main() -> None:
	"""Evaluate gates, print every violated threshold, and exit non-zero on failure."""
	args = parse_args()
	setup_logging(verbosity_to_level(args.verbose))
	report = json.loads(pathlib.Path(args.report).read_text(encoding="utf-8"))
	splits = load_split_config(args.splits)
	gates = load_gate_config(args.gates)
	evaluation = evaluate_all_splits(report, splits, gates, parse_csv_argument(args.split_names))
	perceptual = run_perceptual_layer(args)
	evaluation["perceptual"] = perceptual
	if perceptual["status"] == "fail":
		evaluation["pass"] = False
	if args.json_out:
		out_path = pathlib.Path(args.json_out)
		out_path.parent.mkdir(parents=True, exist_ok=True)
		out_path.write_text(json.dumps(evaluation, indent=2, sort_keys=True) + "\n", encoding="utf-8")
		print(f"Wrote evaluation JSON: {out_path}")
	for split in evaluation["splits"]:
		status = "PASS" if split["pass"] else "FAIL"
		print(
			f"{status} {split['split']}: fixtures={split['fixture_count']}"
			f" expected-pass rate={split['expected_pass_rate']:.4f}"
			f" weighted mean={split['weighted_mean']:.4f}"
		)
		for reason in split["failure_reasons"]:
			print(f"  - {reason}")
	if perceptual["status"] == "skipped":
		print(f"PERCEPTUAL SKIPPED: {perceptual['reason']}")
	else:
		print(
			f"PERCEPTUAL {perceptual['status'].upper()}: pairs={perceptual['pair_count']}"
			f" mismatch ratio mean={perceptual['mismatch_ratio_mean']:.6f}"
			f" ssim min={perceptual['ssim_min']:.6f}"
		)
		for reason in perceptual["failure_reasons"]:
			print(f"  - {reason}")
	if not evaluation["pass"]:
		sys.exit(1)


if __name__ == "__main__":
	main()
