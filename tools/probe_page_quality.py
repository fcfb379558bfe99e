#!/usr/bin/env python3
"""Sweep rendered SVG pages for first-measure compression and steep curves."""

# Standard Library
import argparse
import glob
import json
import pathlib

from notationqa.constants import DEFAULT_PAGE_PROBE_TIMEOUT_SECONDS
from notationqa.log import setup_logging
from notationqa.log import verbosity_to_level
from notationqa.page_probe import sweep_pages

DEFAULT_INPUT_GLOB = "output_smoke/pages/*.svg"


#============================================
def parse_args() -> argparse.Namespace:
	"""Parse command-line arguments for a page sweep."""
	parser = argparse.ArgumentParser(
		description="Probe each rendered page in its own process and summarize spacing and curve defects.",
	)
	parser.add_argument(
		"-i",
		"--input-glob",
		dest="input_glob",
		type=str,
		default=DEFAULT_INPUT_GLOB,
		help="Glob pattern for SVG page files.",
	)
	parser.add_argument(
		"-t",
		"--timeout",
		dest="timeout_seconds",
		type=float,
		default=DEFAULT_PAGE_PROBE_TIMEOUT_SECONDS,
		help="Per-page wall-clock limit in seconds.",
	)
	parser.add_argument(
		"-c",
		"--concurrency",
		dest="concurrency",
		type=int,
		default=1,
		help="Number of probe processes run at once.",
	)
	parser.add_argument(
		"-j",
		"--json-report",
		dest="json_report",
		type=str,
		default=None,
		help="Optional output path for the sweep JSON.",
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
	"""Probe every matched page in isolation and print the sweep summary."""
	args = parse_args()
	setup_logging(verbosity_to_level(args.verbose))
	page_paths = sorted(glob.glob(args.input_glob))
	if not page_paths:
		raise RuntimeError(f"No SVG files matched input_glob: {args.input_glob!r}")
	pages = [pathlib.Path(path).read_text(encoding="utf-8") for path in page_paths]
	sweep = sweep_pages(pages, timeout_seconds=args.timeout_seconds, concurrency=args.concurrency)
	for entry in sweep["pages"]:
		entry["path"] = page_paths[entry["page_index"]]
	if args.json_report:
		out_path = pathlib.Path(args.json_report)
		out_path.parent.mkdir(parents=True, exist_ok=True)
		out_path.write_text(json.dumps(sweep, indent=2, sort_keys=True) + "\n", encoding="utf-8")
		print(f"Wrote JSON report: {out_path}")
	print("Key stats:")
	print(f"- pages: {sweep['page_count']}")
	print(f"- probed: {sweep['probed_count']}")
	print(f"- timeouts: {sweep['timeout_count']}")
	print(f"- errors: {sweep['error_count']}")
	print(f"- weakest spacing ratio: {sweep['weakest_spacing_ratio']}")
	print(f"- compressed bands: {sweep['compressed_band_count']}")
	print(f"- extreme curves: {sweep['extreme_curve_count']}")


if __name__ == "__main__":
	main()
