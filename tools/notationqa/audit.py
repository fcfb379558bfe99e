"""Fixture-declared collision audits, the only source of critical collisions."""

# Standard Library
import dataclasses

from notationqa.fixtures import FixtureDeclaration
from notationqa.geometry import detect_overlaps
from notationqa.models import Overlap
from notationqa.svg_parse import extract_element_bounds
from notationqa.svg_parse import normalize_page_to_svg_markup


#============================================
@dataclasses.dataclass(frozen=True)
class CollisionAuditReport:
	fixture_id: str
	selector: str
	overlap_count: int
	max_overlaps: int
	passed: bool
	overlaps: tuple[Overlap, ...] = ()

	def to_dict(self) -> dict:
		return {
			"fixture_id": self.fixture_id,
			"selector": self.selector,
			"overlap_count": self.overlap_count,
			"max_overlaps": self.max_overlaps,
			"pass": self.passed,
			"overlaps": [overlap.to_dict() for overlap in self.overlaps],
		}


#============================================
def run_collision_audit(page_markup: str | None, fixture: FixtureDeclaration) -> CollisionAuditReport | None:
	"""Run the fixture's declared audit on one page, or return None when none is declared.

	Raises MarkupParseError when the page contains malformed SVG.
	"""
	audit = fixture.collision_audit
	if audit is None:
		return None
	svg_markup = normalize_page_to_svg_markup(page_markup)
	elements = []
	if svg_markup is not None:
		elements = extract_element_bounds(svg_markup, audit.selector)
	overlaps = detect_overlaps(elements, padding=audit.padding, min_overlap_area=audit.min_overlap_area)
	return CollisionAuditReport(
		fixture_id=fixture.fixture_id,
		selector=audit.selector,
		overlap_count=len(overlaps),
		max_overlaps=audit.max_overlaps,
		passed=len(overlaps) <= audit.max_overlaps,
		overlaps=tuple(overlaps),
	)
