"""Shared constants for notation rendering quality measurement."""

# Standard Library
import re

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
SVG_FLOAT_PATTERN = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
PATH_TOKEN_PATTERN = re.compile(r"[AaCcHhLlMmQqSsTtVvZz]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
STAT_ROUND_DECIMALS = 4
RASTER_ROUND_DECIMALS = 6

# role selectors for the notation renderer's class vocabulary
NOTEHEAD_SELECTOR = ".vf-notehead"
STEM_SELECTOR = ".vf-stem"
BEAM_SELECTOR = ".vf-beam"
FLAG_SELECTOR = ".vf-flag"
BARLINE_SELECTOR = ".vf-stavebarline"
TIE_SELECTOR = ".vf-stavetie"
TEXT_SELECTOR = "text"
STAVE_SELECTOR = ".vf-stave"
LAYOUT_SELECTOR = ".vf-stave, .vf-stavenote, .vf-stavetie, .vf-beam, .vf-ornament, text"

# notehead/barline intrusion
INTRUSION_MIN_HORIZONTAL_OVERLAP = 0.75
INTRUSION_MIN_VERTICAL_OVERLAP = 3.0
INTRUSION_MIN_RIGHT_EDGE_PAST_CENTER = 1.25

# measure spacing
BARLINE_MERGE_TOLERANCE = 1.5
NOTEHEAD_MERGE_TOLERANCE = 0.75
BAND_MERGE_TOLERANCE = 18.0
NOTEHEAD_BAND_MARGIN = 12.0
MIN_NOTES_PER_MEASURE_FOR_GAP = 2

# steep curve detection
CURVE_MIN_VERTICAL_DELTA = 80.0
CURVE_MIN_HORIZONTAL_SPAN = 60.0
CURVE_MIN_SLOPE_RATIO = 0.5
PROBE_CURVE_MIN_VERTICAL_DELTA = 100.0
PROBE_CURVE_MIN_HORIZONTAL_SPAN = 70.0
PROBE_CURVE_MIN_SLOPE_RATIO = 0.5
PROBE_COMPRESSED_RATIO = 0.75

# overlap severity buckets (area thresholds)
NOTEHEAD_MINOR_OVERLAP_AREA = 10.0
TEXT_MINOR_OVERLAP_AREA = 4.0
TEXT_NOTEHEAD_CRITICAL_OVERLAP_AREA = 120.0
TEXT_NOTEHEAD_MINOR_OVERLAP_AREA = 16.0
VIEWPORT_OVERFLOW_TOLERANCE = 1.0
STAVE_ROW_TOLERANCE = 12.0

# quality scoring
QUALITY_DIMENSIONS = ("Q1", "Q2", "Q3", "Q4", "Q5", "Q6", "Q7")
DEFAULT_QUALITY_WEIGHTS = {
	"Q1": 0.20,
	"Q2": 0.20,
	"Q3": 0.15,
	"Q4": 0.15,
	"Q5": 0.10,
	"Q6": 0.10,
	"Q7": 0.10,
}
CRITICAL_DIMENSIONS = ("Q1", "Q2", "Q6")
CATASTROPHIC_THRESHOLD = 2.0
SCORE_CEILING = 5.0
NOTEHEAD_CENTER_MERGE_TOLERANCE = 4.0
CROWDED_GAP_THRESHOLD = 8.0
MIN_NORMAL_STEM_HEIGHT = 7.0
MAX_NORMAL_STEM_HEIGHT = 95.0
NO_SVG_QUALITY_NOTE = "fixture produced no SVG markup for quality analysis"

# fixtures
FIXTURE_META_SUFFIXES = (".meta.yaml", ".meta.yml")
FIXTURE_SCORE_SUFFIXES = (".musicxml", ".xml", ".mxl", ".svg")
FIXTURE_CATEGORY_MARKER = "/fixtures/conformance/"
EXPECTED_VALUES = ("pass", "fail")
STATUS_VALUES = ("active", "skip")
PARSE_MODES = ("strict", "lenient")

# raster comparison
INK_THRESHOLD = 235
WHITESPACE_THRESHOLD = 250
PIXEL_MISMATCH_THRESHOLD = 0.1
STRUCTURAL_MATCH_RADIUS = 2
MAX_ALIGNMENT_SHIFT = 48

# reports
DEFAULT_REPORT_DIR = "output_smoke/conformance"
REPORT_JSON_NAME = "conformance-report.json"
REPORT_MARKDOWN_NAME = "conformance-report.md"
DEFAULT_PAGE_PROBE_TIMEOUT_SECONDS = 30.0
