"""Immutable geometry and diagnostic records shared by every analysis stage."""

# Standard Library
import dataclasses


#============================================
@dataclasses.dataclass(frozen=True)
class BoundingBox:
	x: float
	y: float
	width: float
	height: float

	def __post_init__(self):
		if self.width < 0.0 or self.height < 0.0:
			raise ValueError(f"BoundingBox size must be non-negative, got {self.width}x{self.height}")

	@property
	def right(self) -> float:
		return self.x + self.width

	@property
	def bottom(self) -> float:
		return self.y + self.height

	@property
	def center_x(self) -> float:
		return self.x + (self.width / 2.0)

	@property
	def center_y(self) -> float:
		return self.y + (self.height / 2.0)

	@property
	def area(self) -> float:
		return self.width * self.height

	@classmethod
	def from_edges(cls, min_x: float, min_y: float, max_x: float, max_y: float) -> "BoundingBox":
		"""Build a box from edge coordinates, collapsing inverted extents to zero size."""
		return cls(
			x=float(min_x),
			y=float(min_y),
			width=max(0.0, float(max_x) - float(min_x)),
			height=max(0.0, float(max_y) - float(min_y)),
		)

	def to_dict(self) -> dict:
		return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


#============================================
@dataclasses.dataclass(frozen=True)
class ElementBounds:
	index: int
	tag_name: str
	bounds: BoundingBox
	class_name: str | None = None
	element_id: str | None = None

	def to_dict(self) -> dict:
		return {
			"index": self.index,
			"tag_name": self.tag_name,
			"class_name": self.class_name,
			"id": self.element_id,
			"bounds": self.bounds.to_dict(),
		}


#============================================
@dataclasses.dataclass(frozen=True)
class Overlap:
	left: ElementBounds
	right: ElementBounds
	intersection: BoundingBox
	area: float

	def to_dict(self) -> dict:
		return {
			"left": self.left.to_dict(),
			"right": self.right.to_dict(),
			"intersection": self.intersection.to_dict(),
			"area": self.area,
		}


#============================================
@dataclasses.dataclass(frozen=True)
class Diagnostic:
	code: str
	severity: str
	message: str
	location: str | None = None
	path: str | None = None

	@classmethod
	def from_dict(cls, data: dict) -> "Diagnostic":
		"""Build one diagnostic from a collaborator payload."""
		severity = str(data.get("severity") or "info").strip().lower()
		if severity not in ("error", "warning", "info"):
			severity = "info"
		location = data.get("location")
		if isinstance(location, dict):
			location = ":".join(str(location[key]) for key in sorted(location))
		return cls(
			code=str(data.get("code") or "UNKNOWN"),
			severity=severity,
			message=str(data.get("message") or ""),
			location=None if location is None else str(location),
			path=None if data.get("path") is None else str(data.get("path")),
		)

	def to_dict(self) -> dict:
		payload = {
			"code": self.code,
			"severity": self.severity,
			"message": self.message,
		}
		if self.location is not None:
			payload["location"] = self.location
		if self.path is not None:
			payload["path"] = self.path
		return payload
