"""Single-page spacing and curve probe, plus process-isolated sweeps over many pages.

Run as ``python -m notationqa.page_probe`` it reads one page of markup on
stdin and writes the probe result as JSON on stdout.
"""

# Standard Library
import json
import os
import pathlib
import subprocess
import sys

from notationqa.constants import (
	DEFAULT_PAGE_PROBE_TIMEOUT_SECONDS,
	PROBE_COMPRESSED_RATIO,
	PROBE_CURVE_MIN_HORIZONTAL_SPAN,
	PROBE_CURVE_MIN_SLOPE_RATIO,
	PROBE_CURVE_MIN_VERTICAL_DELTA,
)
from notationqa.errors import ProbeError
from notationqa.execution import run_with_concurrency
from notationqa.log import get_logger
from notationqa.notation import collect_notation_geometry
from notationqa.notation import detect_steep_curve_paths
from notationqa.spacing import summarize_measure_spacing
from notationqa.svg_parse import ensure_svg_root
from notationqa.svg_parse import normalize_page_to_svg_markup

logger = get_logger(__name__)

PROBE_RESULT_KEYS = (
	"has_svg",
	"weakest_spacing_ratio",
	"evaluated_band_ratios",
	"compressed_band_count",
	"extreme_curve_count",
)


#============================================
def probe_page_quality(page_markup: str | None) -> dict:
	"""Return first-measure compression and steep-curve counts for one rendered page."""
	svg_markup = normalize_page_to_svg_markup(page_markup)
	if svg_markup is None:
		return {
			"has_svg": False,
			"weakest_spacing_ratio": None,
			"evaluated_band_ratios": [],
			"compressed_band_count": 0,
			"extreme_curve_count": 0,
		}
	svg_root = ensure_svg_root(svg_markup)
	spacing = summarize_measure_spacing(collect_notation_geometry(svg_root))
	band_ratios = []
	for band in spacing.band_summaries:
		ratio = band.first_to_median_other_estimated_width_ratio
		if ratio is None:
			ratio = band.first_to_median_other_gap_ratio
		if ratio is not None:
			band_ratios.append(ratio)
	extremes = detect_steep_curve_paths(
		svg_root,
		min_vertical_delta=PROBE_CURVE_MIN_VERTICAL_DELTA,
		min_horizontal_span=PROBE_CURVE_MIN_HORIZONTAL_SPAN,
		min_slope_ratio=PROBE_CURVE_MIN_SLOPE_RATIO,
	)
	return {
		"has_svg": True,
		"weakest_spacing_ratio": min(band_ratios) if band_ratios else None,
		"evaluated_band_ratios": band_ratios,
		"compressed_band_count": sum(1 for ratio in band_ratios if ratio < PROBE_COMPRESSED_RATIO),
		"extreme_curve_count": len(extremes),
	}


#============================================
def _probe_environment() -> dict:
	# the child must import this package even when it is not installed
	package_parent = str(pathlib.Path(__file__).resolve().parents[1])
	env = dict(os.environ)
	existing = env.get("PYTHONPATH")
	env["PYTHONPATH"] = package_parent if not existing else os.pathsep.join([package_parent, existing])
	return env


#============================================
def probe_page_in_subprocess(page_markup: str, timeout_seconds: float = DEFAULT_PAGE_PROBE_TIMEOUT_SECONDS) -> dict:
	"""Probe one page in a short-lived interpreter so parsed state never accumulates.

	Raises subprocess.TimeoutExpired on timeout and ProbeError on a failed child.
	"""
	cmd = [sys.executable, "-m", "notationqa.page_probe"]
	result = subprocess.run(
		cmd,
		input=page_markup,
		capture_output=True,
		text=True,
		timeout=timeout_seconds,
		env=_probe_environment(),
	)
	if result.returncode != 0:
		raise ProbeError(f"page probe exited with {result.returncode}: {result.stderr.strip()}")
	try:
		payload = json.loads(result.stdout)
	except json.JSONDecodeError as error:
		raise ProbeError(f"page probe returned malformed output: {error}") from error
	if not isinstance(payload, dict) or any(key not in payload for key in PROBE_RESULT_KEYS):
		raise ProbeError("page probe output is missing required fields")
	return payload


#============================================
def sweep_pages(
		pages: list[str],
		timeout_seconds: float = DEFAULT_PAGE_PROBE_TIMEOUT_SECONDS,
		concurrency: int = 1) -> dict:
	"""Probe every page in its own process; timeouts and failures are counted and the sweep continues."""

	def probe_one(page_markup: str, index: int) -> dict:
		try:
			result = probe_page_in_subprocess(page_markup, timeout_seconds)
		except subprocess.TimeoutExpired:
			logger.warning("page %d probe exceeded %.1f s", index, timeout_seconds)
			return {"page_index": index, "status": "timeout", "result": None, "error": None}
		except ProbeError as error:
			logger.warning("page %d probe failed: %s", index, error)
			return {"page_index": index, "status": "error", "result": None, "error": str(error)}
		return {"page_index": index, "status": "ok", "result": result, "error": None}

	entries = run_with_concurrency(pages, concurrency, probe_one)
	probed = [entry["result"] for entry in entries if entry["status"] == "ok"]
	weakest_values = [result["weakest_spacing_ratio"] for result in probed if result["weakest_spacing_ratio"] is not None]
	return {
		"page_count": len(pages),
		"probed_count": len(probed),
		"timeout_count": sum(1 for entry in entries if entry["status"] == "timeout"),
		"error_count": sum(1 for entry in entries if entry["status"] == "error"),
		"weakest_spacing_ratio": min(weakest_values) if weakest_values else None,
		"compressed_band_count": sum(result["compressed_band_count"] for result in probed),
		"extreme_curve_count": sum(result["extreme_curve_count"] for result in probed),
		"pages": entries,
	}


#============================================
def main():
	page_markup = sys.stdin.read()
	sys.stdout.write(json.dumps(probe_page_quality(page_markup), sort_keys=True) + "\n")


if __name__ == "__main__":
	main()
