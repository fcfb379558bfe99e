"""Tests for notationqa.evaluation module."""

# Standard Library
import json
import os
import sys

# Third Party
import numpy
import pytest

# Local
import conftest
_tools_dir = os.path.join(conftest.repo_root(), "tools")
if _tools_dir not in sys.path:
	sys.path.insert(0, _tools_dir)

from notationqa.errors import ConfigError
from notationqa.evaluation import (
	GateDefinition,
	PerceptualGate,
	SplitDefinition,
	build_fail_fast_classifier_counts,
	evaluate_all_splits,
	evaluate_perceptual_layer,
	evaluate_split,
	load_gate_config,
	load_perceptual_gate,
	load_split_config,
	resolve_split_results,
)
from notationqa.raster import image_to_png_bytes


LENIENT_GATE = GateDefinition(
	expected_pass_rate_min=0.5,
	weighted_mean_min=3.0,
	max_catastrophic_expected_pass=1,
	max_critical_collisions_expected_pass=2,
)


def _quality(weighted=5.0, catastrophic=False, critical=0, q4=5.0, q7=5.0, overflow=0, text=0):
	return {
		"weighted_score": weighted,
		"catastrophic_readability": catastrophic,
		"dimensions": {"Q4": q4, "Q7": q7},
		"metrics": {
			"effective_critical_collision_count": critical,
			"layout_overflow_count": overflow,
			"text_collision_count": text,
			"text_to_notehead_collision_count": 0,
		},
	}


def _row(fixture_id, expected="pass", observed="pass", category="lilypond", quality=None):
	return {
		"fixture_id": fixture_id,
		"expected": expected,
		"observed": observed,
		"category": category,
		"meta_path": f"repo/fixtures/conformance/{category}/{fixture_id}.meta.yaml",
		"quality": quality if quality is not None else _quality(),
	}


def _write_json(path, payload):
	path.write_text(json.dumps(payload), encoding="utf-8")
	return str(path)


#============================================
def test_load_split_config(tmp_path):
	path = _write_json(tmp_path / "splits.json", {
		"version": 1,
		"splits": {
			"smoke": {"fixture_ids": ["a", "b"], "expected": "pass"},
			"all": {"categories": ["*"]},
		},
	})
	splits = load_split_config(path)
	assert splits["smoke"] == SplitDefinition(fixture_ids=("a", "b"), expected="pass")
	assert splits["all"].categories == ("*",)
	assert splits["all"].expected == "all"


#============================================
@pytest.mark.parametrize("payload", [
	{"version": 1},
	{"splits": {"x": {"expected": "sometimes"}}},
	{"splits": {"x": {"fixture_ids": "a"}}},
	{"splits": {"x": []}},
	["not", "an", "object"],
])
def test_load_split_config_rejects_invalid(tmp_path, payload):
	path = _write_json(tmp_path / "splits.json", payload)
	with pytest.raises(ConfigError) as error_info:
		load_split_config(path)
	assert error_info.value.file_path == path


#============================================
def test_load_split_config_invalid_json(tmp_path):
	path = tmp_path / "splits.json"
	path.write_text("{broken", encoding="utf-8")
	with pytest.raises(ConfigError, match="invalid JSON"):
		load_split_config(str(path))


#============================================
def test_load_split_config_missing_file(tmp_path):
	with pytest.raises(ConfigError, match="cannot read config"):
		load_split_config(str(tmp_path / "absent.json"))


#============================================
def test_load_gate_config(tmp_path):
	path = _write_json(tmp_path / "gates.json", {
		"version": 1,
		"deterministic": {
			"smoke": {
				"expected_pass_rate_min": 1,
				"weighted_mean_min": 4.5,
				"max_catastrophic_expected_pass": 0,
				"max_critical_collisions_expected_pass": 0,
			},
		},
	})
	gate = load_gate_config(path)["smoke"]
	assert gate.expected_pass_rate_min == 1.0
	assert gate.to_dict()["weighted_mean_min"] == 4.5


#============================================
@pytest.mark.parametrize("gate", [
	{"weighted_mean_min": 4.5, "max_catastrophic_expected_pass": 0, "max_critical_collisions_expected_pass": 0},
	{
		"expected_pass_rate_min": True,
		"weighted_mean_min": 4.5,
		"max_catastrophic_expected_pass": 0,
		"max_critical_collisions_expected_pass": 0,
	},
])
def test_load_gate_config_rejects_invalid(tmp_path, gate):
	path = _write_json(tmp_path / "gates.json", {"deterministic": {"smoke": gate}})
	with pytest.raises(ConfigError, match="expected_pass_rate_min"):
		load_gate_config(path)


#============================================
def test_resolve_split_results_filters():
	rows = [
		_row("a"),
		_row("b", expected="fail", observed="fail"),
		_row("c", category="realworld"),
	]
	assert [row["fixture_id"] for row in resolve_split_results(rows, SplitDefinition())] == ["a", "b", "c"]
	by_expected = resolve_split_results(rows, SplitDefinition(expected="pass"))
	assert [row["fixture_id"] for row in by_expected] == ["a", "c"]
	by_ids = resolve_split_results(rows, SplitDefinition(fixture_ids=("c", "b")))
	assert [row["fixture_id"] for row in by_ids] == ["b", "c"]
	by_category = resolve_split_results(rows, SplitDefinition(categories=("realworld",)))
	assert [row["fixture_id"] for row in by_category] == ["c"]
	wildcard = resolve_split_results(rows, SplitDefinition(categories=("*",)))
	assert len(wildcard) == 3


#============================================
def test_build_fail_fast_classifier_counts():
	rows = [
		_row("a", quality=_quality(overflow=2, critical=1)),
		_row("b", quality=_quality(q4=3.9, q7=4.0, text=1)),
		{"fixture_id": "c", "expected": "pass", "observed": "fail", "quality": None},
	]
	assert build_fail_fast_classifier_counts(rows) == {
		"layout_overflow": 1,
		"symbol_collision": 1,
		"text_legibility": 1,
		"spanner_quality": 1,
		"symbol_fidelity": 0,
	}


#============================================
def test_evaluate_split_passes():
	rows = [_row("a"), _row("b", observed="fail", quality=_quality(weighted=3.0))]
	evaluation = evaluate_split("smoke", rows, LENIENT_GATE)
	assert evaluation.passed is True
	assert evaluation.expected_pass_rate == 0.5
	assert evaluation.weighted_mean == 4.0
	assert evaluation.to_dict()["pass"] is True


#============================================
def test_evaluate_split_lists_every_violation():
	rows = [
		_row("a", observed="fail", quality=_quality(weighted=1.0, catastrophic=True, critical=2)),
		_row("b", observed="fail", quality=_quality(weighted=2.0, catastrophic=True, critical=1)),
		_row("c", observed="pass", quality=_quality(weighted=2.5)),
		_row("d", expected="fail", observed="fail", quality=_quality(weighted=5.0)),
	]
	evaluation = evaluate_split("smoke", rows, LENIENT_GATE)
	assert evaluation.passed is False
	assert evaluation.fixture_count == 4
	assert evaluation.expected_pass_count == 3
	assert evaluation.failure_reasons == (
		"expected-pass rate 0.3333 < 0.5000",
		"weighted mean 1.8333 < 3.0000",
		"catastrophic expected-pass fixtures 2 > 1",
		"critical expected-pass collisions 3 > 2",
	)
	assert evaluation.expected_pass_rate == 0.3333
	assert evaluation.weighted_mean == 1.8333


#============================================
def test_evaluate_split_without_expected_pass_rows():
	evaluation = evaluate_split("empty", [], LENIENT_GATE)
	assert evaluation.expected_pass_rate == 0.0
	assert evaluation.passed is False


#============================================
def test_evaluate_all_splits_defaults_to_gated_splits():
	report = {"results": [_row("a"), _row("b", category="realworld", quality=_quality(weighted=1.0))]}
	splits = {
		"lilypond": SplitDefinition(categories=("lilypond",)),
		"realworld": SplitDefinition(categories=("realworld",)),
		"ungated": SplitDefinition(),
	}
	gates = {"lilypond": LENIENT_GATE, "realworld": LENIENT_GATE, "undefined": LENIENT_GATE}
	outcome = evaluate_all_splits(report, splits, gates)
	assert [split["split"] for split in outcome["splits"]] == ["lilypond", "realworld"]
	assert outcome["splits"][0]["pass"] is True
	assert outcome["splits"][1]["pass"] is False
	assert outcome["pass"] is False

	only_lilypond = evaluate_all_splits(report, splits, gates, split_names=["lilypond"])
	assert only_lilypond["pass"] is True


#============================================
@pytest.mark.parametrize("name", ["missing", "ungated"])
def test_evaluate_all_splits_unknown_names(name):
	splits = {"ungated": SplitDefinition()}
	with pytest.raises(ConfigError):
		evaluate_all_splits({"results": []}, splits, {}, split_names=[name])


def _square_png(path, left, width=20, height=20):
	image = numpy.full((height, width, 3), 255, dtype=numpy.uint8)
	image[2:6, left:left + 4] = 0
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_bytes(image_to_png_bytes(image))


#============================================
def test_load_perceptual_gate(tmp_path):
	path = _write_json(tmp_path / "gates.json", {
		"deterministic": {},
		"perceptual": {"mismatch_ratio_max": 0.02, "ssim_min": 0.95},
	})
	assert load_perceptual_gate(path) == PerceptualGate(mismatch_ratio_max=0.02, ssim_min=0.95)
	absent = _write_json(tmp_path / "plain.json", {"deterministic": {}})
	assert load_perceptual_gate(absent) is None


#============================================
@pytest.mark.parametrize("perceptual, message", [
	([0.1, 0.9], "must be an object"),
	({"ssim_min": 0.9}, "mismatch_ratio_max"),
	({"mismatch_ratio_max": 0.1, "ssim_min": "high"}, "ssim_min"),
	({"mismatch_ratio_max": 1.5, "ssim_min": 0.9}, r"within \[0, 1\]"),
	({"mismatch_ratio_max": 0.1, "ssim_min": 2}, r"within \[-1, 1\]"),
])
def test_load_perceptual_gate_rejects_invalid(tmp_path, perceptual, message):
	path = _write_json(tmp_path / "gates.json", {"deterministic": {}, "perceptual": perceptual})
	with pytest.raises(ConfigError, match=message):
		load_perceptual_gate(path)


#============================================
def test_perceptual_layer_passes_identical_images(tmp_path):
	_square_png(tmp_path / "baseline" / "lilypond" / "01a.png", 2)
	_square_png(tmp_path / "candidate" / "lilypond" / "01a.png", 2)
	_square_png(tmp_path / "baseline" / "only-baseline.png", 2)
	layer = evaluate_perceptual_layer(
		str(tmp_path / "baseline"),
		str(tmp_path / "candidate"),
		PerceptualGate(mismatch_ratio_max=0.0, ssim_min=1.0),
	)
	assert layer["status"] == "pass"
	assert layer["pair_count"] == 1
	assert layer["per_image"][0]["image"] == "lilypond/01a.png"
	assert layer["mismatch_ratio_mean"] == 0.0
	assert layer["ssim_min"] == pytest.approx(1.0)
	assert layer["failure_reasons"] == []


#============================================
def test_perceptual_layer_lists_violations_and_writes_diffs(tmp_path):
	_square_png(tmp_path / "baseline" / "moved.png", 2)
	_square_png(tmp_path / "candidate" / "moved.png", 12)
	_square_png(tmp_path / "baseline" / "resized.png", 2)
	_square_png(tmp_path / "candidate" / "resized.png", 2, height=10)
	layer = evaluate_perceptual_layer(
		str(tmp_path / "baseline"),
		str(tmp_path / "candidate"),
		PerceptualGate(mismatch_ratio_max=0.01, ssim_min=0.5),
		diff_dir=str(tmp_path / "diffs"),
	)
	moved, resized = layer["per_image"]
	# two disjoint 4x4 squares out of 400 pixels
	assert moved["mismatch_ratio"] == pytest.approx(0.08)
	assert (tmp_path / "diffs" / "moved.png").is_file()
	assert resized == {"image": "resized.png", "dimensions_match": False, "mismatch_ratio": 1.0, "ssim": 0.0}
	assert layer["status"] == "fail"
	assert layer["mismatch_ratio_mean"] == pytest.approx(0.54)
	assert layer["ssim_min"] == 0.0
	assert layer["failure_reasons"] == [
		"mismatch ratio mean 0.540000 > 0.010000",
		"ssim min 0.000000 < 0.500000",
	]


#============================================
def test_perceptual_layer_skips_without_shared_images(tmp_path):
	_square_png(tmp_path / "baseline" / "a.png", 2)
	(tmp_path / "candidate").mkdir()
	layer = evaluate_perceptual_layer(
		str(tmp_path / "baseline"), str(tmp_path / "candidate"), PerceptualGate(0.0, 1.0)
	)
	assert layer["status"] == "skipped"
	assert layer["pair_count"] == 0


#============================================
def test_perceptual_layer_missing_directory(tmp_path):
	with pytest.raises(ConfigError, match="image directory not found"):
		evaluate_perceptual_layer(str(tmp_path / "nope"), str(tmp_path), PerceptualGate(0.0, 1.0))
