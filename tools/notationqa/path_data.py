"""Path-data interpretation for loose SVG path bounding envelopes.

Curves and arcs are not solved exactly: every control point and the arc
radius envelope around each endpoint is folded into the bounds, which
over-approximates the drawn outline but stays deterministic.
"""

# Standard Library
import dataclasses

from notationqa.constants import PATH_TOKEN_PATTERN
from notationqa.models import BoundingBox

# numbers consumed per repetition of each command
PATH_COMMAND_ARITY = {
	"M": 2,
	"L": 2,
	"H": 1,
	"V": 1,
	"C": 6,
	"S": 4,
	"Q": 4,
	"T": 2,
	"A": 7,
	"Z": 0,
}


#============================================
@dataclasses.dataclass(frozen=True)
class PathSegment:
	command: str
	start: tuple[float, float]
	end: tuple[float, float]
	points: tuple[tuple[float, float], ...]


#============================================
def tokenize_path_data(path_d: str | None) -> list[str]:
	"""Split path data into command letters and numeric literals."""
	return PATH_TOKEN_PATTERN.findall(str(path_d or ""))


#============================================
def _is_command_token(token: str) -> bool:
	return token.isalpha() and token.upper() in PATH_COMMAND_ARITY


#============================================
def iter_path_segments(path_d: str | None):
	"""Yield one PathSegment per command repetition until the data runs out or breaks."""
	tokens = tokenize_path_data(path_d)
	cursor = (0.0, 0.0)
	subpath_start = (0.0, 0.0)
	command = None
	index = 0
	while index < len(tokens):
		token = tokens[index]
		if _is_command_token(token):
			command = token
			index += 1
			if command in ("Z", "z"):
				yield PathSegment("Z", cursor, subpath_start, (subpath_start,))
				cursor = subpath_start
				# numbers directly after a close have no command to bind to
				command = None
			continue
		if command is None:
			return
		arity = PATH_COMMAND_ARITY[command.upper()]
		group = tokens[index:index + arity]
		if len(group) < arity or any(_is_command_token(part) for part in group):
			return
		values = [float(part) for part in group]
		index += arity
		relative = command.islower()
		upper = command.upper()
		base_x, base_y = cursor if relative else (0.0, 0.0)
		if upper == "M":
			end = (base_x + values[0], base_y + values[1])
			yield PathSegment("M", cursor, end, (end,))
			subpath_start = end
			cursor = end
			# extra pairs after a moveto are implicit linetos
			command = "l" if relative else "L"
			continue
		if upper == "L" or upper == "T":
			end = (base_x + values[0], base_y + values[1])
			points = (end,)
		elif upper == "H":
			end = (base_x + values[0], cursor[1])
			points = (end,)
		elif upper == "V":
			end = (cursor[0], (cursor[1] if relative else 0.0) + values[0])
			points = (end,)
		elif upper == "C":
			control_1 = (base_x + values[0], base_y + values[1])
			control_2 = (base_x + values[2], base_y + values[3])
			end = (base_x + values[4], base_y + values[5])
			points = (control_1, control_2, end)
		elif upper == "S" or upper == "Q":
			control = (base_x + values[0], base_y + values[1])
			end = (base_x + values[2], base_y + values[3])
			points = (control, end)
		else:
			radius_x = abs(values[0])
			radius_y = abs(values[1])
			end = (base_x + values[5], base_y + values[6])
			points = (
				end,
				(end[0] - radius_x, end[1] - radius_y),
				(end[0] + radius_x, end[1] + radius_y),
			)
		yield PathSegment(upper, cursor, end, points)
		cursor = end


#============================================
def path_data_bounds(path_d: str | None) -> BoundingBox | None:
	"""Return the loose envelope of every referenced path point, or None when empty."""
	x_values = []
	y_values = []
	for segment in iter_path_segments(path_d):
		for point_x, point_y in segment.points:
			x_values.append(point_x)
			y_values.append(point_y)
	if not x_values:
		return None
	return BoundingBox.from_edges(min(x_values), min(y_values), max(x_values), max(y_values))


#============================================
def has_cubic_command(path_d: str | None) -> bool:
	"""Return True when path data contains an absolute or relative cubic command."""
	return any(token in ("C", "c") for token in tokenize_path_data(path_d))


#============================================
def first_cubic_anchors(path_d: str | None) -> tuple[tuple[float, float], tuple[float, float]] | None:
	"""Return start and end anchors of the first cubic segment, ignoring control points."""
	for segment in iter_path_segments(path_d):
		if segment.command == "C":
			return (segment.start, segment.end)
	return None
