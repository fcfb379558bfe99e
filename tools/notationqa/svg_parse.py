"""SVG parsing, selector matching, and per-shape bounding boxes."""

# Standard Library
import dataclasses
import re

# Third Party
import defusedxml
import defusedxml.ElementTree as ET

from notationqa.constants import SVG_FLOAT_PATTERN
from notationqa.errors import MarkupParseError
from notationqa.models import BoundingBox
from notationqa.models import ElementBounds
from notationqa.path_data import path_data_bounds

SELECTOR_PART_PATTERN = re.compile(
	r"\.(?P<class_name>[\w-]+)"
	r"|#(?P<element_id>[\w-]+)"
	r"|\[\s*(?P<attr_name>[\w:-]+)\s*"
	r"(?:=\s*(?:\"(?P<double_quoted>[^\"]*)\""
	r"|'(?P<single_quoted>[^']*)'"
	r"|(?P<bare_value>[^\]\s]*))\s*)?\]"
)
SELECTOR_TAG_PATTERN = re.compile(r"^(?P<tag>\*|[A-Za-z_][\w-]*)")
GROUP_TAGS = frozenset(("g", "svg"))


#============================================
def local_tag_name(tag: str) -> str:
	"""Return local XML tag name without namespace prefix."""
	if "}" in tag:
		return tag.rsplit("}", 1)[-1]
	return tag


#============================================
def parse_float(raw_value: str | None, default_value: float) -> float:
	"""Parse one SVG numeric attribute with a default fallback."""
	parsed = optional_float(raw_value)
	if parsed is None:
		return float(default_value)
	return parsed


#============================================
def optional_float(raw_value: str | None) -> float | None:
	"""Parse one leading SVG number from an attribute, or None when absent or invalid."""
	if raw_value is None:
		return None
	match = SVG_FLOAT_PATTERN.match(str(raw_value).strip())
	if match is None:
		return None
	return float(match.group(0))


#============================================
def svg_number_tokens(text_value: str | None) -> list[float]:
	"""Return all float-like numeric tokens parsed from one SVG attribute string."""
	return [float(token) for token in SVG_FLOAT_PATTERN.findall(str(text_value or ""))]


#============================================
def class_tokens(node) -> list[str]:
	"""Return whitespace-separated class names of one node."""
	return str(node.get("class") or "").split()


#============================================
def parse_svg_markup(markup: str, source: str | None = None):
	"""Parse SVG markup into an ElementTree root, raising MarkupParseError when malformed."""
	if not markup or not str(markup).strip():
		raise MarkupParseError("empty markup", source=source)
	try:
		return ET.fromstring(markup)
	except (ET.ParseError, defusedxml.DefusedXmlException) as error:
		raise MarkupParseError(str(error), source=source) from error


#============================================
def ensure_svg_root(markup_or_root):
	"""Return a parsed root for either a markup string or an already parsed element."""
	if isinstance(markup_or_root, (str, bytes)):
		return parse_svg_markup(markup_or_root)
	return markup_or_root


#============================================
def normalize_page_to_svg_markup(page_markup: str | None) -> str | None:
	"""Return the outermost <svg>...</svg> segment of page markup, or None."""
	if not page_markup:
		return None
	start = page_markup.find("<svg")
	end = page_markup.rfind("</svg>")
	if start < 0 or end < start:
		return None
	return page_markup[start:end + len("</svg>")]


#============================================
@dataclasses.dataclass(frozen=True)
class SimpleSelector:
	tag: str | None = None
	classes: tuple[str, ...] = ()
	element_id: str | None = None
	attributes: tuple[tuple[str, str | None], ...] = ()
	combinator: str = " "

	def matches(self, node) -> bool:
		if self.tag and self.tag != "*":
			if local_tag_name(str(node.tag)).lower() != self.tag.lower():
				return False
		if self.classes:
			node_classes = class_tokens(node)
			if any(name not in node_classes for name in self.classes):
				return False
		if self.element_id is not None and node.get("id") != self.element_id:
			return False
		for attr_name, attr_value in self.attributes:
			actual = _local_attribute(node, attr_name)
			if actual is None:
				return False
			if attr_value is not None and actual != attr_value:
				return False
		return True


#============================================
def _local_attribute(node, attr_name: str) -> str | None:
	if attr_name in node.attrib:
		return node.attrib[attr_name]
	for key, value in node.attrib.items():
		if local_tag_name(key) == attr_name:
			return value
	return None


#============================================
def _parse_simple_selector(text: str, combinator: str) -> SimpleSelector:
	tag = None
	remainder = text
	tag_match = SELECTOR_TAG_PATTERN.match(text)
	if tag_match:
		tag = tag_match.group("tag")
		remainder = text[tag_match.end():]
	classes = []
	element_id = None
	attributes = []
	position = 0
	while position < len(remainder):
		part_match = SELECTOR_PART_PATTERN.match(remainder, position)
		if part_match is None:
			raise ValueError(f"Unsupported selector fragment: {text!r}")
		if part_match.group("class_name"):
			classes.append(part_match.group("class_name"))
		elif part_match.group("element_id"):
			element_id = part_match.group("element_id")
		else:
			attr_value = next(
				(
					part_match.group(name)
					for name in ("double_quoted", "single_quoted", "bare_value")
					if part_match.group(name) is not None
				),
				None,
			)
			attributes.append((part_match.group("attr_name"), attr_value))
		position = part_match.end()
	return SimpleSelector(
		tag=tag,
		classes=tuple(classes),
		element_id=element_id,
		attributes=tuple(attributes),
		combinator=combinator,
	)


#============================================
def _split_selector_words(selector: str) -> list[list[str]]:
	"""Split a selector list into per-chain words and '>' tokens.

	Commas, whitespace and '>' only separate words outside attribute
	brackets and quoted values.
	"""
	chains = [[]]
	word = []
	bracket_depth = 0
	quote = None
	for char in selector:
		if quote is not None:
			word.append(char)
			if char == quote:
				quote = None
			continue
		if bracket_depth > 0:
			word.append(char)
			if char in "\"'":
				quote = char
			elif char == "]":
				bracket_depth -= 1
			continue
		if char == "[":
			bracket_depth += 1
			word.append(char)
			continue
		if char in ",>" or char.isspace():
			if word:
				chains[-1].append("".join(word))
				word = []
			if char == ",":
				chains.append([])
			elif char == ">":
				chains[-1].append(">")
			continue
		word.append(char)
	if word:
		chains[-1].append("".join(word))
	return chains


#============================================
def parse_selector(selector: str) -> tuple[tuple[SimpleSelector, ...], ...]:
	"""Parse a comma-separated selector list into compound descendant chains."""
	chains = []
	for words in _split_selector_words(str(selector or "")):
		if not words:
			continue
		steps = []
		combinator = " "
		for word in words:
			if word == ">":
				combinator = ">"
				continue
			steps.append(_parse_simple_selector(word, combinator))
			combinator = " "
		chains.append(tuple(steps))
	if not chains:
		raise ValueError(f"Empty selector: {selector!r}")
	return tuple(chains)


#============================================
def _match_ancestors(steps: tuple, step_index: int, ancestors: list, limit: int) -> bool:
	if step_index < 0:
		return True
	combinator = steps[step_index + 1].combinator
	if combinator == ">":
		if limit < 0:
			return False
		if not steps[step_index].matches(ancestors[limit]):
			return False
		return _match_ancestors(steps, step_index - 1, ancestors, limit - 1)
	for position in range(limit, -1, -1):
		if steps[step_index].matches(ancestors[position]):
			if _match_ancestors(steps, step_index - 1, ancestors, position - 1):
				return True
	return False


#============================================
def node_matches_selector(node, ancestors: list, chains: tuple) -> bool:
	"""Return True when one node with its ancestor chain matches any selector chain."""
	for steps in chains:
		if not steps[-1].matches(node):
			continue
		if _match_ancestors(steps, len(steps) - 2, ancestors, len(ancestors) - 1):
			return True
	return False


#============================================
def select_nodes(svg_root, selector: str) -> list:
	"""Return all nodes matching a selector in document order."""
	chains = parse_selector(selector)
	matches = []
	ancestors = []
	# (node, depth) pairs; children pushed reversed to keep document order
	stack = [(svg_root, 0)]
	while stack:
		node, depth = stack.pop()
		del ancestors[depth:]
		if node_matches_selector(node, ancestors, chains):
			matches.append(node)
		ancestors.append(node)
		for child in reversed(list(node)):
			stack.append((child, depth + 1))
	return matches


#============================================
def rect_bounds(node) -> BoundingBox | None:
	"""Return bounds for <rect>; width and height are required."""
	width = optional_float(node.get("width"))
	height = optional_float(node.get("height"))
	if width is None or height is None or width < 0.0 or height < 0.0:
		return None
	x_value = parse_float(node.get("x"), 0.0)
	y_value = parse_float(node.get("y"), 0.0)
	return BoundingBox(x_value, y_value, width, height)


#============================================
def line_bounds(node) -> BoundingBox | None:
	"""Return bounds for <line> from both endpoints."""
	values = [optional_float(node.get(name)) for name in ("x1", "y1", "x2", "y2")]
	if any(value is None for value in values):
		return None
	x1, y1, x2, y2 = values
	return BoundingBox.from_edges(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


#============================================
def circle_bounds(node) -> BoundingBox | None:
	"""Return bounds for <circle> as center plus or minus radius."""
	values = [optional_float(node.get(name)) for name in ("cx", "cy", "r")]
	if any(value is None for value in values) or values[2] < 0.0:
		return None
	center_x, center_y, radius = values
	return BoundingBox(center_x - radius, center_y - radius, radius * 2.0, radius * 2.0)


#============================================
def ellipse_bounds(node) -> BoundingBox | None:
	"""Return bounds for <ellipse> as center plus or minus both radii."""
	values = [optional_float(node.get(name)) for name in ("cx", "cy", "rx", "ry")]
	if any(value is None for value in values) or values[2] < 0.0 or values[3] < 0.0:
		return None
	center_x, center_y, radius_x, radius_y = values
	return BoundingBox(center_x - radius_x, center_y - radius_y, radius_x * 2.0, radius_y * 2.0)


#============================================
def points_bounds(node) -> BoundingBox | None:
	"""Return bounds for <polygon>/<polyline> over the points attribute."""
	coordinates = svg_number_tokens(node.get("points"))
	if len(coordinates) < 2:
		return None
	x_values = coordinates[0:len(coordinates) - 1:2]
	y_values = coordinates[1::2]
	return BoundingBox.from_edges(min(x_values), min(y_values), max(x_values), max(y_values))


#============================================
def path_bounds(node) -> BoundingBox | None:
	"""Return loose bounds for <path> from its path data."""
	return path_data_bounds(node.get("d"))


#============================================
def group_bounds(node) -> BoundingBox | None:
	"""Return the union of every child with computable bounds, descending through nested groups."""
	aggregate = None
	pending = [node]
	while pending:
		for child in list(pending.pop()):
			tag_name = local_tag_name(str(child.tag)).lower()
			if tag_name in GROUP_TAGS:
				pending.append(child)
				continue
			bounds_function = SHAPE_BOUNDS_FUNCTIONS.get(tag_name)
			child_bounds = bounds_function(child) if bounds_function else None
			if child_bounds is None:
				continue
			aggregate = _union_bounds(aggregate, child_bounds)
	return aggregate


#============================================
def _union_bounds(aggregate: BoundingBox | None, child_bounds: BoundingBox) -> BoundingBox:
	if aggregate is None:
		return child_bounds
	return BoundingBox.from_edges(
		min(aggregate.x, child_bounds.x),
		min(aggregate.y, child_bounds.y),
		max(aggregate.right, child_bounds.right),
		max(aggregate.bottom, child_bounds.bottom),
	)


SHAPE_BOUNDS_FUNCTIONS = {
	"rect": rect_bounds,
	"line": line_bounds,
	"circle": circle_bounds,
	"ellipse": ellipse_bounds,
	"polygon": points_bounds,
	"polyline": points_bounds,
	"path": path_bounds,
	"g": group_bounds,
	"svg": group_bounds,
}


#============================================
def element_bounds(node) -> BoundingBox | None:
	"""Return bounds for one node, or None for unsupported or malformed shapes."""
	bounds_function = SHAPE_BOUNDS_FUNCTIONS.get(local_tag_name(str(node.tag)).lower())
	if bounds_function is None:
		return None
	return bounds_function(node)


#============================================
def extract_element_bounds(markup_or_root, selector: str) -> list[ElementBounds]:
	"""Return ElementBounds for each selector match with computable bounds, in document order."""
	svg_root = ensure_svg_root(markup_or_root)
	results = []
	for index, node in enumerate(select_nodes(svg_root, selector)):
		bounds = element_bounds(node)
		if bounds is None:
			continue
		results.append(
			ElementBounds(
				index=index,
				tag_name=local_tag_name(str(node.tag)).lower(),
				bounds=bounds,
				class_name=node.get("class"),
				element_id=node.get("id"),
			)
		)
	return results


#============================================
def read_svg_viewport(markup_or_root) -> BoundingBox | None:
	"""Return the viewport from width/height attributes, else viewBox, else None."""
	svg_root = ensure_svg_root(markup_or_root)
	width = optional_float(svg_root.get("width"))
	height = optional_float(svg_root.get("height"))
	if width is not None and height is not None and width >= 0.0 and height >= 0.0:
		return BoundingBox(0.0, 0.0, width, height)
	view_box = svg_number_tokens(svg_root.get("viewBox"))
	if len(view_box) == 4 and view_box[2] >= 0.0 and view_box[3] >= 0.0:
		return BoundingBox(view_box[0], view_box[1], view_box[2], view_box[3])
	return None
