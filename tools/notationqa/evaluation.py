"""Named fixture splits, deterministic per-split quality gates, and the perceptual image gate.

Operates on report result rows (the dicts stored under "results" in a
conformance report), so gates can be evaluated from a saved JSON report
without re-running any fixture.
"""

# Standard Library
import dataclasses
import json
import pathlib

# Third Party
import numpy

from notationqa.constants import RASTER_ROUND_DECIMALS
from notationqa.errors import ConfigError
from notationqa.log import get_logger
from notationqa.raster import compare_images
from notationqa.raster import image_from_png_bytes
from notationqa.raster import image_to_png_bytes
from notationqa.reporting import read_category_from_meta_path

logger = get_logger(__name__)

EXPECTED_FILTERS = ("pass", "fail", "all")
CATEGORY_WILDCARD = "*"
CLASSIFIER_QUALITY_FLOOR = 4.0


#============================================
@dataclasses.dataclass(frozen=True)
class SplitDefinition:
	fixture_ids: tuple[str, ...] = ()
	categories: tuple[str, ...] = ()
	expected: str = "all"


#============================================
@dataclasses.dataclass(frozen=True)
class GateDefinition:
	expected_pass_rate_min: float
	weighted_mean_min: float
	max_catastrophic_expected_pass: int
	max_critical_collisions_expected_pass: int

	def to_dict(self) -> dict:
		return dataclasses.asdict(self)


#============================================
@dataclasses.dataclass(frozen=True)
class SplitEvaluation:
	split: str
	fixture_count: int
	expected_pass_count: int
	expected_pass_observed_pass_count: int
	expected_pass_rate: float
	weighted_mean: float
	catastrophic_expected_pass_count: int
	critical_collision_expected_pass_count: int
	classifier_counts: dict
	gates: GateDefinition
	passed: bool
	failure_reasons: tuple[str, ...] = ()

	def to_dict(self) -> dict:
		return {
			"split": self.split,
			"fixture_count": self.fixture_count,
			"expected_pass_count": self.expected_pass_count,
			"expected_pass_observed_pass_count": self.expected_pass_observed_pass_count,
			"expected_pass_rate": self.expected_pass_rate,
			"weighted_mean": self.weighted_mean,
			"catastrophic_expected_pass_count": self.catastrophic_expected_pass_count,
			"critical_collision_expected_pass_count": self.critical_collision_expected_pass_count,
			"classifier_counts": dict(self.classifier_counts),
			"gates": self.gates.to_dict(),
			"pass": self.passed,
			"failure_reasons": list(self.failure_reasons),
		}


#============================================
def _read_json_document(file_path: str) -> dict:
	try:
		raw_text = pathlib.Path(file_path).read_text(encoding="utf-8")
	except OSError as error:
		raise ConfigError(f"cannot read config: {error}", file_path=str(file_path)) from error
	try:
		data = json.loads(raw_text)
	except json.JSONDecodeError as error:
		raise ConfigError(f"invalid JSON: {error}", file_path=str(file_path)) from error
	if not isinstance(data, dict):
		raise ConfigError("config must be a JSON object", file_path=str(file_path))
	return data


#============================================
def _string_list(file_path: str, raw, key: str) -> tuple[str, ...]:
	if raw is None:
		return ()
	if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
		raise ConfigError(f"'{key}' must be an array of strings", file_path=file_path)
	return tuple(raw)


#============================================
def parse_split_definition(file_path: str, name: str, raw) -> SplitDefinition:
	if not isinstance(raw, dict):
		raise ConfigError(f"split '{name}' must be an object", file_path=file_path)
	expected = raw.get("expected", "all")
	if expected not in EXPECTED_FILTERS:
		raise ConfigError(f"split '{name}' expected must be pass, fail, or all", file_path=file_path)
	return SplitDefinition(
		fixture_ids=_string_list(file_path, raw.get("fixture_ids"), f"{name}.fixture_ids"),
		categories=_string_list(file_path, raw.get("categories"), f"{name}.categories"),
		expected=expected,
	)


#============================================
def load_split_config(file_path: str) -> dict[str, SplitDefinition]:
	"""Load {"version", "splits": {name: definition}} from JSON."""
	file_path = str(file_path)
	data = _read_json_document(file_path)
	splits = data.get("splits")
	if not isinstance(splits, dict):
		raise ConfigError("missing or invalid 'splits' object", file_path=file_path)
	return {name: parse_split_definition(file_path, name, raw) for name, raw in splits.items()}


#============================================
def parse_gate_definition(file_path: str, name: str, raw) -> GateDefinition:
	if not isinstance(raw, dict):
		raise ConfigError(f"gate '{name}' must be an object", file_path=file_path)
	values = {}
	for field in dataclasses.fields(GateDefinition):
		value = raw.get(field.name)
		if isinstance(value, bool) or not isinstance(value, (int, float)):
			raise ConfigError(f"gate '{name}' missing numeric '{field.name}'", file_path=file_path)
		values[field.name] = value
	return GateDefinition(
		expected_pass_rate_min=float(values["expected_pass_rate_min"]),
		weighted_mean_min=float(values["weighted_mean_min"]),
		max_catastrophic_expected_pass=int(values["max_catastrophic_expected_pass"]),
		max_critical_collisions_expected_pass=int(values["max_critical_collisions_expected_pass"]),
	)


#============================================
def load_gate_config(file_path: str) -> dict[str, GateDefinition]:
	"""Load {"version", "deterministic": {split: thresholds}} from JSON."""
	file_path = str(file_path)
	data = _read_json_document(file_path)
	gates = data.get("deterministic")
	if not isinstance(gates, dict):
		raise ConfigError("missing or invalid 'deterministic' object", file_path=file_path)
	return {name: parse_gate_definition(file_path, name, raw) for name, raw in gates.items()}


#============================================
def resolve_split_results(results: list[dict], definition: SplitDefinition) -> list[dict]:
	"""Filter report rows by expectation, fixture id allow-list, and category allow-list."""
	fixture_ids = set(definition.fixture_ids)
	categories = set(definition.categories)
	wildcard = CATEGORY_WILDCARD in categories
	selected = []
	for result in results:
		if definition.expected != "all" and result["expected"] != definition.expected:
			continue
		if fixture_ids and result["fixture_id"] not in fixture_ids:
			continue
		if categories and not wildcard:
			category = read_category_from_meta_path(result.get("meta_path", ""), result.get("category"))
			if category not in categories:
				continue
		selected.append(result)
	return selected


#============================================
def build_fail_fast_classifier_counts(results: list[dict]) -> dict[str, int]:
	"""Count scored fixtures falling into each triage bucket."""
	counts = {
		"layout_overflow": 0,
		"symbol_collision": 0,
		"text_legibility": 0,
		"spanner_quality": 0,
		"symbol_fidelity": 0,
	}
	for result in results:
		quality = result.get("quality")
		if quality is None:
			continue
		metrics = quality["metrics"]
		if metrics["layout_overflow_count"] > 0:
			counts["layout_overflow"] += 1
		if metrics["effective_critical_collision_count"] > 0:
			counts["symbol_collision"] += 1
		if metrics["text_collision_count"] + metrics["text_to_notehead_collision_count"] > 0:
			counts["text_legibility"] += 1
		if quality["dimensions"]["Q4"] < CLASSIFIER_QUALITY_FLOOR:
			counts["spanner_quality"] += 1
		if quality["dimensions"]["Q7"] < CLASSIFIER_QUALITY_FLOOR:
			counts["symbol_fidelity"] += 1
	return counts


#============================================
def evaluate_split(split: str, results: list[dict], gates: GateDefinition) -> SplitEvaluation:
	"""Compare one split's expected-pass statistics against its gate, listing every violation."""
	expected_pass = [result for result in results if result["expected"] == "pass"]
	observed_pass_count = sum(1 for result in expected_pass if result["observed"] == "pass")
	pass_rate = observed_pass_count / len(expected_pass) if expected_pass else 0.0

	scored = [result for result in expected_pass if result.get("quality") is not None]
	weighted_mean = 0.0
	if scored:
		weighted_mean = sum(result["quality"]["weighted_score"] for result in scored) / len(scored)
	catastrophic_count = sum(1 for result in scored if result["quality"]["catastrophic_readability"])
	critical_count = sum(
		result["quality"]["metrics"]["effective_critical_collision_count"] for result in scored
	)

	failure_reasons = []
	if pass_rate < gates.expected_pass_rate_min:
		failure_reasons.append(f"expected-pass rate {pass_rate:.4f} < {gates.expected_pass_rate_min:.4f}")
	if weighted_mean < gates.weighted_mean_min:
		failure_reasons.append(f"weighted mean {weighted_mean:.4f} < {gates.weighted_mean_min:.4f}")
	if catastrophic_count > gates.max_catastrophic_expected_pass:
		failure_reasons.append(
			f"catastrophic expected-pass fixtures {catastrophic_count} > {gates.max_catastrophic_expected_pass}"
		)
	if critical_count > gates.max_critical_collisions_expected_pass:
		failure_reasons.append(
			f"critical expected-pass collisions {critical_count} > {gates.max_critical_collisions_expected_pass}"
		)

	return SplitEvaluation(
		split=split,
		fixture_count=len(results),
		expected_pass_count=len(expected_pass),
		expected_pass_observed_pass_count=observed_pass_count,
		expected_pass_rate=round(pass_rate, 4),
		weighted_mean=round(weighted_mean, 4),
		catastrophic_expected_pass_count=catastrophic_count,
		critical_collision_expected_pass_count=critical_count,
		classifier_counts=build_fail_fast_classifier_counts(results),
		gates=gates,
		passed=not failure_reasons,
		failure_reasons=tuple(failure_reasons),
	)


#============================================
def evaluate_all_splits(
		report: dict,
		splits: dict[str, SplitDefinition],
		gates: dict[str, GateDefinition],
		split_names: list[str] | None = None) -> dict:
	"""Evaluate each gated split; overall pass only when every evaluated split passes."""
	if split_names is None:
		split_names = sorted(name for name in gates if name in splits)
	evaluations = []
	for name in split_names:
		if name not in splits:
			raise ConfigError(f"split '{name}' is not defined")
		if name not in gates:
			raise ConfigError(f"split '{name}' has no deterministic gate")
		selected = resolve_split_results(report["results"], splits[name])
		evaluation = evaluate_split(name, selected, gates[name])
		if not evaluation.passed:
			logger.warning("split %s failed: %s", name, "; ".join(evaluation.failure_reasons))
		evaluations.append(evaluation)
	return {
		"pass": all(evaluation.passed for evaluation in evaluations),
		"splits": [evaluation.to_dict() for evaluation in evaluations],
	}


#============================================
@dataclasses.dataclass(frozen=True)
class PerceptualGate:
	mismatch_ratio_max: float
	ssim_min: float

	def to_dict(self) -> dict:
		return dataclasses.asdict(self)


#============================================
def parse_perceptual_gate(file_path: str, raw) -> PerceptualGate:
	if not isinstance(raw, dict):
		raise ConfigError("'perceptual' must be an object", file_path=file_path)
	values = {}
	for field in dataclasses.fields(PerceptualGate):
		value = raw.get(field.name)
		if isinstance(value, bool) or not isinstance(value, (int, float)):
			raise ConfigError(f"perceptual gate missing numeric '{field.name}'", file_path=file_path)
		values[field.name] = float(value)
	if not 0.0 <= values["mismatch_ratio_max"] <= 1.0:
		raise ConfigError("perceptual 'mismatch_ratio_max' must be within [0, 1]", file_path=file_path)
	if not -1.0 <= values["ssim_min"] <= 1.0:
		raise ConfigError("perceptual 'ssim_min' must be within [-1, 1]", file_path=file_path)
	return PerceptualGate(**values)


#============================================
def load_perceptual_gate(file_path: str) -> PerceptualGate | None:
	"""Load the optional "perceptual" thresholds from a gate config, or None when absent."""
	file_path = str(file_path)
	raw = _read_json_document(file_path).get("perceptual")
	if raw is None:
		return None
	return parse_perceptual_gate(file_path, raw)


#============================================
def list_png_files(root_dir: str) -> dict[str, pathlib.Path]:
	"""Map slash-separated relative paths to every PNG file under a directory."""
	root = pathlib.Path(root_dir)
	if not root.is_dir():
		raise ConfigError("image directory not found", file_path=str(root))
	return {
		path.relative_to(root).as_posix(): path
		for path in sorted(root.rglob("*"))
		if path.is_file() and path.suffix.lower() == ".png"
	}


#============================================
def _write_diff_image(diff_root: pathlib.Path, key: str, diff_mask) -> str:
	diff_image = numpy.full(diff_mask.shape + (3,), 255, dtype=numpy.uint8)
	diff_image[diff_mask] = (255, 0, 0)
	diff_path = diff_root / key
	diff_path.parent.mkdir(parents=True, exist_ok=True)
	diff_path.write_bytes(image_to_png_bytes(diff_image))
	return diff_path.as_posix()


#============================================
def evaluate_perceptual_layer(
		baseline_dir: str,
		candidate_dir: str,
		gate: PerceptualGate,
		diff_dir: str | None = None) -> dict:
	"""Compare same-named baseline and candidate PNGs against the perceptual gate.

	Images whose dimensions differ score a mismatch ratio of 1.0 and an
	SSIM of 0.0. With no shared file names the layer is skipped.
	"""
	baseline_files = list_png_files(baseline_dir)
	candidate_files = list_png_files(candidate_dir)
	shared_keys = sorted(key for key in baseline_files if key in candidate_files)
	if not shared_keys:
		return {
			"status": "skipped",
			"reason": "no matching PNG files between baseline and candidate directories",
			"pair_count": 0,
			"gates": gate.to_dict(),
			"failure_reasons": [],
		}

	per_image = []
	for key in shared_keys:
		baseline = image_from_png_bytes(baseline_files[key].read_bytes())
		candidate = image_from_png_bytes(candidate_files[key].read_bytes())
		if baseline.shape != candidate.shape:
			per_image.append({"image": key, "dimensions_match": False, "mismatch_ratio": 1.0, "ssim": 0.0})
			continue
		comparison = compare_images(candidate, baseline)
		entry = {
			"image": key,
			"dimensions_match": True,
			"mismatch_ratio": comparison.mismatch_ratio,
			"ssim": comparison.ssim,
		}
		if diff_dir:
			entry["diff_path"] = _write_diff_image(pathlib.Path(diff_dir), key, comparison.diff_mask)
		per_image.append(entry)

	mismatch_ratio_mean = round(
		sum(entry["mismatch_ratio"] for entry in per_image) / len(per_image), RASTER_ROUND_DECIMALS
	)
	ssim_min = min(entry["ssim"] for entry in per_image)
	failure_reasons = []
	if mismatch_ratio_mean > gate.mismatch_ratio_max:
		failure_reasons.append(f"mismatch ratio mean {mismatch_ratio_mean:.6f} > {gate.mismatch_ratio_max:.6f}")
	if ssim_min < gate.ssim_min:
		failure_reasons.append(f"ssim min {ssim_min:.6f} < {gate.ssim_min:.6f}")
	if failure_reasons:
		logger.warning("perceptual layer failed: %s", "; ".join(failure_reasons))
	return {
		"status": "fail" if failure_reasons else "pass",
		"pair_count": len(per_image),
		"mismatch_ratio_mean": mismatch_ratio_mean,
		"ssim_min": ssim_min,
		"gates": gate.to_dict(),
		"per_image": per_image,
		"failure_reasons": failure_reasons,
	}
