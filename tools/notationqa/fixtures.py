"""Conformance fixture declarations loaded from YAML metadata sidecars."""

# Standard Library
import dataclasses
import pathlib

# Third Party
import yaml

from notationqa.constants import (
	EXPECTED_VALUES,
	FIXTURE_META_SUFFIXES,
	FIXTURE_SCORE_SUFFIXES,
	PARSE_MODES,
	STATUS_VALUES,
)
from notationqa.errors import FixtureMetadataError
from notationqa.log import get_logger

logger = get_logger(__name__)


#============================================
@dataclasses.dataclass(frozen=True)
class CollisionAuditConfig:
	selector: str
	padding: float = 0.0
	min_overlap_area: float = 0.0
	max_overlaps: int = 0


#============================================
@dataclasses.dataclass(frozen=True)
class FixtureDeclaration:
	fixture_id: str
	expected: str
	status: str = "active"
	source: str = ""
	category: str = ""
	parse_mode: str = "lenient"
	collision_audit: CollisionAuditConfig | None = None
	waivers: tuple[str, ...] = ()
	notes: str | None = None
	linked_todo: str | None = None
	meta_path: str = ""
	score_path: str = ""

	@property
	def is_active(self) -> bool:
		return self.status == "active"


#============================================
def _required_string(file_path: str, data: dict, key: str) -> str:
	value = data.get(key)
	if not isinstance(value, str) or not value.strip():
		raise FixtureMetadataError(file_path, f"missing or invalid '{key}'", field=key)
	return value


#============================================
def _optional_string(file_path: str, data: dict, key: str) -> str | None:
	value = data.get(key)
	if value is None:
		return None
	if not isinstance(value, str):
		raise FixtureMetadataError(file_path, f"'{key}' must be a string", field=key)
	return value


#============================================
def _choice(file_path: str, value: str, key: str, choices: tuple[str, ...]) -> str:
	if value not in choices:
		allowed = " or ".join(f"'{choice}'" for choice in choices)
		raise FixtureMetadataError(file_path, f"'{key}' must be {allowed}", field=key)
	return value


#============================================
def _number(file_path: str, data: dict, key: str, default: float) -> float:
	value = data.get(key, default)
	if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
		raise FixtureMetadataError(
			file_path, f"'collision_audit.{key}' must be a non-negative number", field=f"collision_audit.{key}"
		)
	return value


#============================================
def parse_collision_audit(file_path: str, raw_audit) -> CollisionAuditConfig | None:
	"""Validate an optional collision_audit mapping."""
	if raw_audit is None:
		return None
	if not isinstance(raw_audit, dict):
		raise FixtureMetadataError(file_path, "'collision_audit' must be a mapping", field="collision_audit")
	selector = raw_audit.get("selector")
	if not isinstance(selector, str) or not selector.strip():
		raise FixtureMetadataError(
			file_path, "missing or invalid 'collision_audit.selector'", field="collision_audit.selector"
		)
	max_overlaps = _number(file_path, raw_audit, "max_overlaps", 0)
	if int(max_overlaps) != max_overlaps:
		raise FixtureMetadataError(
			file_path, "'collision_audit.max_overlaps' must be an integer", field="collision_audit.max_overlaps"
		)
	return CollisionAuditConfig(
		selector=selector,
		padding=float(_number(file_path, raw_audit, "padding", 0.0)),
		min_overlap_area=float(_number(file_path, raw_audit, "min_overlap_area", 0.0)),
		max_overlaps=int(max_overlaps),
	)


#============================================
def parse_fixture_meta(file_path: str, data) -> FixtureDeclaration:
	"""Validate one parsed metadata mapping into a FixtureDeclaration."""
	if not isinstance(data, dict):
		raise FixtureMetadataError(file_path, "metadata must be a YAML object")
	fixture_id = _required_string(file_path, data, "id")
	source = _required_string(file_path, data, "source")
	category = _required_string(file_path, data, "category")
	expected = _choice(file_path, _required_string(file_path, data, "expected"), "expected", EXPECTED_VALUES)
	status = _choice(file_path, _required_string(file_path, data, "status"), "status", STATUS_VALUES)
	parse_mode = _optional_string(file_path, data, "parse_mode") or "lenient"
	parse_mode = _choice(file_path, parse_mode, "parse_mode", PARSE_MODES)
	waivers = data.get("waivers")
	if waivers is None:
		waivers = []
	if not isinstance(waivers, list) or not all(isinstance(item, str) for item in waivers):
		raise FixtureMetadataError(file_path, "'waivers' must be an array of strings", field="waivers")
	return FixtureDeclaration(
		fixture_id=fixture_id,
		expected=expected,
		status=status,
		source=source,
		category=category,
		parse_mode=parse_mode,
		collision_audit=parse_collision_audit(file_path, data.get("collision_audit")),
		waivers=tuple(waivers),
		notes=_optional_string(file_path, data, "notes"),
		linked_todo=_optional_string(file_path, data, "linked_todo"),
		meta_path=str(file_path),
	)


#============================================
def strip_meta_suffix(file_path: str) -> str:
	"""Return a metadata path without its .meta.yaml/.meta.yml suffix."""
	for suffix in FIXTURE_META_SUFFIXES:
		if file_path.endswith(suffix):
			return file_path[:-len(suffix)]
	return file_path


#============================================
def resolve_score_path(meta_path: str) -> str:
	"""Return the score file beside one metadata file."""
	base = strip_meta_suffix(meta_path)
	for extension in FIXTURE_SCORE_SUFFIXES:
		candidate = pathlib.Path(base + extension)
		if candidate.is_file():
			return str(candidate)
	raise FixtureMetadataError(meta_path, "no matching score file found for metadata")


#============================================
def find_metadata_files(root_dir: str) -> list[str]:
	"""Return metadata sidecar paths under root_dir, sorted for stable discovery."""
	root_path = pathlib.Path(root_dir)
	matches = [
		str(path) for path in root_path.rglob("*")
		if path.is_file() and path.name.endswith(FIXTURE_META_SUFFIXES)
	]
	return sorted(matches)


#============================================
def load_fixture_meta(meta_path: str) -> FixtureDeclaration:
	"""Read, validate, and resolve one fixture metadata file."""
	try:
		raw_text = pathlib.Path(meta_path).read_text(encoding="utf-8")
	except OSError as error:
		raise FixtureMetadataError(meta_path, f"cannot read metadata: {error}") from error
	try:
		data = yaml.safe_load(raw_text)
	except yaml.YAMLError as error:
		raise FixtureMetadataError(meta_path, f"invalid YAML: {error}") from error
	declaration = parse_fixture_meta(meta_path, data)
	return dataclasses.replace(declaration, score_path=resolve_score_path(meta_path))


#============================================
def load_fixture_declarations(root_dir: str) -> list[FixtureDeclaration]:
	"""Load every fixture declaration under root_dir, sorted by fixture id."""
	declarations = [load_fixture_meta(meta_path) for meta_path in find_metadata_files(root_dir)]
	declarations.sort(key=lambda declaration: declaration.fixture_id)
	logger.info("loaded %d fixture declarations from %s", len(declarations), root_dir)
	return declarations
