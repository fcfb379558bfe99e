"""Notation role classification and symbol-level geometry checks."""

# Standard Library
import dataclasses

from notationqa.constants import (
	BARLINE_SELECTOR,
	BEAM_SELECTOR,
	CURVE_MIN_HORIZONTAL_SPAN,
	CURVE_MIN_SLOPE_RATIO,
	CURVE_MIN_VERTICAL_DELTA,
	FLAG_SELECTOR,
	INTRUSION_MIN_HORIZONTAL_OVERLAP,
	INTRUSION_MIN_RIGHT_EDGE_PAST_CENTER,
	INTRUSION_MIN_VERTICAL_OVERLAP,
	LAYOUT_SELECTOR,
	NOTEHEAD_SELECTOR,
	STAVE_SELECTOR,
	STEM_SELECTOR,
	TEXT_SELECTOR,
	TIE_SELECTOR,
)
from notationqa.geometry import horizontal_overlap
from notationqa.geometry import vertical_overlap
from notationqa.models import BoundingBox
from notationqa.models import ElementBounds
from notationqa.path_data import first_cubic_anchors
from notationqa.path_data import has_cubic_command
from notationqa.svg_parse import ensure_svg_root
from notationqa.svg_parse import extract_element_bounds
from notationqa.svg_parse import read_svg_viewport
from notationqa.svg_parse import select_nodes

# role name -> selector used to classify rendered elements
ROLE_SELECTORS = {
	"noteheads": NOTEHEAD_SELECTOR,
	"stems": STEM_SELECTOR,
	"beams": BEAM_SELECTOR,
	"flags": FLAG_SELECTOR,
	"ties": TIE_SELECTOR,
	"barlines": BARLINE_SELECTOR,
	"text": TEXT_SELECTOR,
	"staves": STAVE_SELECTOR,
	"layout_elements": LAYOUT_SELECTOR,
}


#============================================
@dataclasses.dataclass(frozen=True)
class NotationGeometrySnapshot:
	noteheads: tuple[ElementBounds, ...] = ()
	stems: tuple[ElementBounds, ...] = ()
	beams: tuple[ElementBounds, ...] = ()
	flags: tuple[ElementBounds, ...] = ()
	ties: tuple[ElementBounds, ...] = ()
	barlines: tuple[ElementBounds, ...] = ()
	text: tuple[ElementBounds, ...] = ()
	staves: tuple[ElementBounds, ...] = ()
	layout_elements: tuple[ElementBounds, ...] = ()
	viewport: BoundingBox | None = None


#============================================
@dataclasses.dataclass(frozen=True)
class NoteheadBarlineIntrusion:
	notehead: ElementBounds
	barline: ElementBounds
	horizontal_overlap: float
	vertical_overlap: float


#============================================
@dataclasses.dataclass(frozen=True)
class FlagBeamOverlap:
	flag: ElementBounds
	beam: ElementBounds
	horizontal_overlap: float
	vertical_overlap: float


#============================================
def collect_notation_geometry(markup_or_root) -> NotationGeometrySnapshot:
	"""Parse markup once and extract every notation role from the same tree."""
	svg_root = ensure_svg_root(markup_or_root)
	roles = {
		role_name: tuple(extract_element_bounds(svg_root, selector))
		for role_name, selector in ROLE_SELECTORS.items()
	}
	return NotationGeometrySnapshot(viewport=read_svg_viewport(svg_root), **roles)


#============================================
def detect_notehead_barline_intrusions(
		snapshot: NotationGeometrySnapshot,
		min_horizontal_overlap: float = INTRUSION_MIN_HORIZONTAL_OVERLAP,
		min_vertical_overlap: float = INTRUSION_MIN_VERTICAL_OVERLAP,
		min_right_edge_past_center: float = INTRUSION_MIN_RIGHT_EDGE_PAST_CENTER,
		require_center_left_of_barline: bool = True) -> list[NoteheadBarlineIntrusion]:
	"""Return noteheads bleeding rightward across a barline.

	Noteheads centered on or right of the barline open the next measure and are
	never reported.
	"""
	intrusions = []
	for notehead in snapshot.noteheads:
		for barline in snapshot.barlines:
			overlap_x = horizontal_overlap(notehead.bounds, barline.bounds)
			if overlap_x < min_horizontal_overlap:
				continue
			overlap_y = vertical_overlap(notehead.bounds, barline.bounds)
			if overlap_y < min_vertical_overlap:
				continue
			barline_center_x = barline.bounds.center_x
			if require_center_left_of_barline and notehead.bounds.center_x >= barline_center_x:
				continue
			if notehead.bounds.right - barline_center_x <= min_right_edge_past_center:
				continue
			intrusions.append(
				NoteheadBarlineIntrusion(
					notehead=notehead,
					barline=barline,
					horizontal_overlap=overlap_x,
					vertical_overlap=overlap_y,
				)
			)
	return intrusions


#============================================
def detect_flag_beam_overlaps(snapshot: NotationGeometrySnapshot) -> list[FlagBeamOverlap]:
	"""Return flag/beam pairs sharing any area, meaning a beamed flag was not suppressed."""
	overlaps = []
	for flag in snapshot.flags:
		for beam in snapshot.beams:
			overlap_x = horizontal_overlap(flag.bounds, beam.bounds)
			if overlap_x <= 0.0:
				continue
			overlap_y = vertical_overlap(flag.bounds, beam.bounds)
			if overlap_y <= 0.0:
				continue
			overlaps.append(
				FlagBeamOverlap(flag=flag, beam=beam, horizontal_overlap=overlap_x, vertical_overlap=overlap_y)
			)
	return overlaps


#============================================
def summarize_notation_geometry(snapshot: NotationGeometrySnapshot, **intrusion_options) -> dict:
	"""Return compact role counts plus intrusion and flag/beam overlap counts."""
	return {
		"notehead_count": len(snapshot.noteheads),
		"stem_count": len(snapshot.stems),
		"beam_count": len(snapshot.beams),
		"flag_count": len(snapshot.flags),
		"tie_count": len(snapshot.ties),
		"barline_count": len(snapshot.barlines),
		"text_count": len(snapshot.text),
		"stave_count": len(snapshot.staves),
		"flag_beam_overlap_count": len(detect_flag_beam_overlaps(snapshot)),
		"notehead_barline_intrusion_count": len(
			detect_notehead_barline_intrusions(snapshot, **intrusion_options)
		),
	}


#============================================
def path_is_unfilled_stroke(node) -> bool:
	"""Return True when a path draws an outline instead of a filled glyph."""
	stroke = node.get("stroke")
	fill = node.get("fill")
	if stroke is None and fill != "none":
		return False
	if stroke == "none" and fill != "none":
		return False
	return True


#============================================
def detect_steep_curve_paths(
		markup_or_root,
		min_vertical_delta: float = CURVE_MIN_VERTICAL_DELTA,
		min_horizontal_span: float = CURVE_MIN_HORIZONTAL_SPAN,
		min_slope_ratio: float = CURVE_MIN_SLOPE_RATIO) -> list[dict]:
	"""Return stroked cubic paths whose first segment cuts steeply across the page."""
	svg_root = ensure_svg_root(markup_or_root)
	detections = []
	for path_index, node in enumerate(select_nodes(svg_root, "path[d]")):
		if not path_is_unfilled_stroke(node):
			continue
		path_d = node.get("d")
		if not has_cubic_command(path_d):
			continue
		anchors = first_cubic_anchors(path_d)
		if anchors is None:
			continue
		(start_x, start_y), (end_x, end_y) = anchors
		delta_x = abs(end_x - start_x)
		delta_y = abs(end_y - start_y)
		if delta_y < min_vertical_delta or delta_x < min_horizontal_span:
			continue
		if delta_y / max(1.0, delta_x) < min_slope_ratio:
			continue
		detections.append(
			{
				"path_index": path_index,
				"start_x": start_x,
				"start_y": start_y,
				"end_x": end_x,
				"end_y": end_y,
				"delta_x": delta_x,
				"delta_y": delta_y,
			}
		)
	return detections
