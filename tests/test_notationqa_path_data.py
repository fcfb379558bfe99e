"""Tests for notationqa.path_data module."""

# Standard Library
import os
import sys

# Third Party
import pytest

# Local
import conftest
_tools_dir = os.path.join(conftest.repo_root(), "tools")
if _tools_dir not in sys.path:
	sys.path.insert(0, _tools_dir)

from notationqa.path_data import (
	first_cubic_anchors,
	has_cubic_command,
	iter_path_segments,
	path_data_bounds,
	tokenize_path_data,
)


def _box(bounds):
	return (bounds.x, bounds.y, bounds.width, bounds.height)


#============================================
def test_tokenize_splits_commands_and_numbers():
	assert tokenize_path_data("M10,20L-3.5e1 .5z") == ["M", "10", "20", "L", "-3.5e1", ".5", "z"]


#============================================
def test_tokenize_empty():
	assert tokenize_path_data(None) == []
	assert tokenize_path_data("") == []


#============================================
@pytest.mark.parametrize("path_d, expected", [
	("M 10 20 L 30 40", (10.0, 20.0, 20.0, 20.0)),
	("m 10 10 l 5 5 l 5 -10", (10.0, 5.0, 10.0, 10.0)),
	("M0 0 10 10 20 0", (0.0, 0.0, 20.0, 10.0)),
	("M 5 5 H 25 V 15", (5.0, 5.0, 20.0, 10.0)),
	("M 5 5 h 10 v -4", (5.0, 1.0, 10.0, 4.0)),
	("M0 0 C 10 -20 30 40 50 0", (0.0, -20.0, 50.0, 60.0)),
	("M0 0 Q 5 10 10 0 T 20 0", (0.0, 0.0, 20.0, 10.0)),
	("M0 0 A 5 5 0 0 1 10 0", (0.0, -5.0, 15.0, 10.0)),
])
def test_path_data_bounds(path_d, expected):
	assert _box(path_data_bounds(path_d)) == pytest.approx(expected)


#============================================
def test_curve_bounds_keep_control_point_envelope():
	# the true curve never reaches y=-20, the envelope still does
	bounds = path_data_bounds("M0 0 C 0 -20 10 -20 10 0")
	assert bounds.y == pytest.approx(-20.0)


#============================================
def test_numbers_after_close_stop_parsing():
	bounds = path_data_bounds("M 0 0 L 10 10 Z 50 50")
	assert _box(bounds) == pytest.approx((0.0, 0.0, 10.0, 10.0))


#============================================
def test_close_returns_cursor_to_subpath_start():
	segments = list(iter_path_segments("M 5 5 L 15 5 Z l 0 10"))
	assert [segment.command for segment in segments] == ["M", "L", "Z", "L"]
	assert segments[-1].end == pytest.approx((5.0, 15.0))


#============================================
def test_incomplete_group_stops_without_error():
	bounds = path_data_bounds("M 0 0 L 10")
	assert _box(bounds) == pytest.approx((0.0, 0.0, 0.0, 0.0))


#============================================
@pytest.mark.parametrize("path_d", [None, "", "garbage", "10 20 30"])
def test_path_data_bounds_empty(path_d):
	assert path_data_bounds(path_d) is None


#============================================
def test_has_cubic_command():
	assert has_cubic_command("M0 0 c 1 1 2 2 3 3")
	assert not has_cubic_command("M0 0 L 5 5")


#============================================
def test_first_cubic_anchors_relative():
	anchors = first_cubic_anchors("M 10 10 L 20 10 c 5 -40 60 -80 80 -120")
	assert anchors[0] == pytest.approx((20.0, 10.0))
	assert anchors[1] == pytest.approx((100.0, -110.0))


#============================================
def test_first_cubic_anchors_absent():
	assert first_cubic_anchors("M 0 0 L 10 10") is None
