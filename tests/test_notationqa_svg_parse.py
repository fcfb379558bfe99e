"""Tests for notationqa.svg_parse module."""

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

from notationqa.errors import MarkupParseError
from notationqa.svg_parse import (
	element_bounds,
	extract_element_bounds,
	local_tag_name,
	normalize_page_to_svg_markup,
	optional_float,
	parse_float,
	parse_selector,
	parse_svg_markup,
	read_svg_viewport,
	select_nodes,
	svg_number_tokens,
)


SVG_NS = "http://www.w3.org/2000/svg"


def _svg(body, attrs='width="200" height="100"'):
	return f'<svg xmlns="{SVG_NS}" {attrs}>{body}</svg>'


def _box(bounds):
	return (bounds.x, bounds.y, bounds.width, bounds.height)


#============================================
def test_local_tag_name_namespaced():
	assert local_tag_name("{http://www.w3.org/2000/svg}rect") == "rect"
	assert local_tag_name("rect") == "rect"


#============================================
@pytest.mark.parametrize("raw, default, expected", [
	("3.5", 0.0, 3.5),
	("12px", 0.0, 12.0),
	(" -2 ", 0.0, -2.0),
	("abc", 7.0, 7.0),
	(None, 1.0, 1.0),
])
def test_parse_float(raw, default, expected):
	assert parse_float(raw, default) == pytest.approx(expected)


#============================================
def test_optional_float_invalid():
	assert optional_float("auto") is None
	assert optional_float(None) is None


#============================================
def test_svg_number_tokens():
	assert svg_number_tokens("0,0 10,5 -3e1 4") == pytest.approx([0.0, 0.0, 10.0, 5.0, -30.0, 4.0])


#============================================
@pytest.mark.parametrize("markup", ["", "   ", "<svg><g></svg>"])
def test_parse_svg_markup_rejects_malformed(markup):
	with pytest.raises(MarkupParseError):
		parse_svg_markup(markup, source="fixture.svg")


#============================================
def test_parse_error_names_source():
	with pytest.raises(MarkupParseError, match="fixture.svg"):
		parse_svg_markup("<svg>", source="fixture.svg")


#============================================
def test_normalize_page_extracts_svg_from_wrapper():
	page = '<div class="page"><svg width="1" height="1"><rect/></svg></div>'
	assert normalize_page_to_svg_markup(page) == '<svg width="1" height="1"><rect/></svg>'


#============================================
@pytest.mark.parametrize("page", [None, "", "<div>no vector</div>", "</svg><svg"])
def test_normalize_page_without_svg(page):
	assert normalize_page_to_svg_markup(page) is None


#============================================
def test_select_nodes_class_and_descendant():
	root = parse_svg_markup(_svg(
		'<g class="vf-stavenote"><g class="vf-notehead"><path d="M0 0 L1 1"/></g></g>'
		'<g class="vf-notehead other"/>'
	))
	assert len(select_nodes(root, ".vf-notehead")) == 2
	assert len(select_nodes(root, ".vf-stavenote .vf-notehead")) == 1
	assert len(select_nodes(root, ".vf-stavenote > path")) == 0
	assert len(select_nodes(root, ".vf-notehead > path")) == 1


#============================================
def test_select_nodes_selector_list_keeps_document_order():
	root = parse_svg_markup(_svg('<text id="a"/><rect id="b" class="vf-stave"/><text id="c"/>'))
	ids = [node.get("id") for node in select_nodes(root, ".vf-stave, text")]
	assert ids == ["a", "b", "c"]


#============================================
def test_select_nodes_attribute_and_id():
	root = parse_svg_markup(_svg('<path id="p1" d="M0 0"/><path id="p2"/>'))
	assert [node.get("id") for node in select_nodes(root, "path[d]")] == ["p1"]
	assert [node.get("id") for node in select_nodes(root, "#p2")] == ["p2"]


#============================================
def test_select_nodes_quoted_attribute_values():
	root = parse_svg_markup(_svg(
		'<g class="vf-stavenote vf-note" id="n1"/>'
		'<g class="vf-stavenote" id="n2" data-label="a&gt;b, c]"/>'
	))
	assert [node.get("id") for node in select_nodes(root, '[class="vf-stavenote vf-note"]')] == ["n1"]
	assert [node.get("id") for node in select_nodes(root, "g[data-label='a>b, c]']")] == ["n2"]
	chains = parse_selector('svg > [class="a b"], .c')
	assert [len(steps) for steps in chains] == [2, 1]
	assert chains[0][1].combinator == ">"
	assert chains[0][1].attributes == (("class", "a b"),)


#============================================
def test_select_nodes_deeply_nested_groups():
	depth = 1500
	root = parse_svg_markup(_svg(
		'<g class="outer">' + "<g>" * depth
		+ '<rect class="vf-notehead" x="3" y="4" width="5" height="6"/>'
		+ "</g>" * depth + "</g>"
	))
	matches = select_nodes(root, ".outer .vf-notehead")
	assert len(matches) == 1
	assert _box(element_bounds(root[0])) == pytest.approx((3.0, 4.0, 5.0, 6.0))


#============================================
def test_parse_selector_rejects_empty():
	with pytest.raises(ValueError):
		parse_selector(" , ")


#============================================
@pytest.mark.parametrize("body, expected", [
	('<rect x="1" y="2" width="3" height="4"/>', (1.0, 2.0, 3.0, 4.0)),
	('<line x1="10" y1="5" x2="0" y2="15"/>', (0.0, 5.0, 10.0, 10.0)),
	('<circle cx="10" cy="10" r="2"/>', (8.0, 8.0, 4.0, 4.0)),
	('<ellipse cx="10" cy="10" rx="4" ry="1"/>', (6.0, 9.0, 8.0, 2.0)),
	('<polygon points="0,0 10,0 5,8"/>', (0.0, 0.0, 10.0, 8.0)),
	('<path d="M 2 3 L 12 13"/>', (2.0, 3.0, 10.0, 10.0)),
])
def test_element_bounds_shapes(body, expected):
	root = parse_svg_markup(_svg(body))
	assert _box(element_bounds(root[0])) == pytest.approx(expected)


#============================================
@pytest.mark.parametrize("body", [
	'<rect width="-1" height="4"/>',
	'<rect width="3"/>',
	'<circle cx="1" cy="1"/>',
	'<text x="5" y="5">C</text>',
	'<path d=""/>',
])
def test_element_bounds_unsupported_or_malformed(body):
	root = parse_svg_markup(_svg(body))
	assert element_bounds(root[0]) is None


#============================================
def test_group_bounds_union_of_children():
	root = parse_svg_markup(_svg(
		'<g class="vf-notehead"><rect x="0" y="0" width="2" height="2"/>'
		'<text>x</text><rect x="5" y="5" width="1" height="1"/></g>'
	))
	assert _box(element_bounds(root[0])) == pytest.approx((0.0, 0.0, 6.0, 6.0))


#============================================
def test_extract_element_bounds_skips_unbounded_but_keeps_match_index():
	markup = _svg(
		'<rect class="hit" x="0" y="0" width="1" height="1"/>'
		'<text class="hit">t</text>'
		'<rect class="hit" id="last" x="3" y="0" width="1" height="1"/>'
	)
	elements = extract_element_bounds(markup, ".hit")
	assert [element.index for element in elements] == [0, 2]
	assert elements[1].element_id == "last"
	assert elements[1].tag_name == "rect"
	assert elements[1].to_dict()["id"] == "last"


#============================================
def test_extract_element_bounds_is_repeatable():
	markup = _svg(
		'<g class="vf-notehead"><path d="M 1.25 2 C 3 9 5.5 -4 8 2"/></g>'
		'<circle class="vf-notehead" cx="20" cy="5" r="2.5"/>'
	)
	first = extract_element_bounds(markup, ".vf-notehead")
	second = extract_element_bounds(markup, ".vf-notehead")
	assert first == second
	assert [element.index for element in first] == [0, 1]


#============================================
def test_read_svg_viewport_prefers_width_height():
	assert _box(read_svg_viewport(_svg(""))) == (0.0, 0.0, 200.0, 100.0)


#============================================
def test_read_svg_viewport_falls_back_to_viewbox():
	viewport = read_svg_viewport(_svg("", attrs='viewBox="5 10 300 150"'))
	assert _box(viewport) == (5.0, 10.0, 300.0, 150.0)


#============================================
def test_read_svg_viewport_absent():
	assert read_svg_viewport(_svg("", attrs="")) is None
