"""Raster comparison of rendered notation pages against reference images.

Images are RGB uint8 numpy arrays of shape (height, width, 3) flattened
onto a white background.
"""

# Standard Library
import dataclasses
import io
import re

# Third Party
import cairosvg
import cv2
import numpy
from PIL import Image
from skimage.metrics import structural_similarity

from notationqa.constants import (
	INK_THRESHOLD,
	MAX_ALIGNMENT_SHIFT,
	PIXEL_MISMATCH_THRESHOLD,
	RASTER_ROUND_DECIMALS,
	STRUCTURAL_MATCH_RADIUS,
	WHITESPACE_THRESHOLD,
)
from notationqa.spacing import CropRegion

SVG_OPEN_TAG_PATTERN = re.compile(r"<svg\b[^>]*>", re.IGNORECASE)
SVG_NAMESPACE = "http://www.w3.org/2000/svg"
ALIGNMENT_AXES = ("both", "x", "y")
RESIZE_MODES = ("fit", "stretch")
WHITE = 255


#============================================
@dataclasses.dataclass(frozen=True)
class RasterComparison:
	width: int
	height: int
	mismatch_pixels: int
	mismatch_ratio: float
	structural_mismatch_pixels: int
	structural_mismatch_ratio: float
	ssim: float
	alignment_shift_x: int = 0
	alignment_shift_y: int = 0
	diff_mask: numpy.ndarray | None = dataclasses.field(default=None, compare=False, repr=False)

	def to_dict(self) -> dict:
		return {
			"width": self.width,
			"height": self.height,
			"mismatch_pixels": self.mismatch_pixels,
			"mismatch_ratio": self.mismatch_ratio,
			"structural_mismatch_pixels": self.structural_mismatch_pixels,
			"structural_mismatch_ratio": self.structural_mismatch_ratio,
			"ssim": self.ssim,
			"alignment_shift_x": self.alignment_shift_x,
			"alignment_shift_y": self.alignment_shift_y,
		}


#============================================
def image_from_png_bytes(png_bytes: bytes) -> numpy.ndarray:
	"""Decode PNG bytes to an RGB array with any transparency composited onto white."""
	with Image.open(io.BytesIO(png_bytes)) as source:
		rgba = source.convert("RGBA")
	background = Image.new("RGBA", rgba.size, (WHITE, WHITE, WHITE, WHITE))
	flattened = Image.alpha_composite(background, rgba).convert("RGB")
	return numpy.array(flattened, dtype=numpy.uint8)


#============================================
def image_to_png_bytes(image: numpy.ndarray) -> bytes:
	buffer = io.BytesIO()
	Image.fromarray(image).save(buffer, format="PNG")
	return buffer.getvalue()


#============================================
def ensure_svg_namespace(svg_markup: str) -> str:
	"""Add the SVG xmlns to the root tag when a renderer omitted it."""
	match = SVG_OPEN_TAG_PATTERN.search(svg_markup)
	if match is None or "xmlns=" in match.group(0):
		return svg_markup
	open_tag = match.group(0)
	patched = open_tag.replace("<svg", f'<svg xmlns="{SVG_NAMESPACE}"', 1)
	return svg_markup[:match.start()] + patched + svg_markup[match.end():]


#============================================
def rasterize_svg(svg_markup: str, scale: float = 1.0) -> numpy.ndarray:
	"""Render SVG markup to an RGB array with cairosvg."""
	png_bytes = cairosvg.svg2png(
		bytestring=ensure_svg_namespace(svg_markup).encode("utf-8"),
		scale=max(0.1, float(scale)),
	)
	return image_from_png_bytes(png_bytes)


#============================================
def pad_to_envelope(image: numpy.ndarray, width: int, height: int) -> numpy.ndarray:
	"""Place image at the top-left of a white canvas of the given size."""
	if image.shape[0] == height and image.shape[1] == width:
		return image
	canvas = numpy.full((height, width, 3), WHITE, dtype=numpy.uint8)
	canvas[:image.shape[0], :image.shape[1]] = image
	return canvas


#============================================
def build_ink_mask(image: numpy.ndarray, threshold: float = INK_THRESHOLD) -> numpy.ndarray:
	"""Return a boolean mask of pixels whose mean channel value is below threshold."""
	luminance = image.astype(numpy.float64).mean(axis=2)
	return luminance < threshold


#============================================
def compute_ink_centroid(image: numpy.ndarray, threshold: float = INK_THRESHOLD) -> tuple[float, float] | None:
	rows, columns = numpy.nonzero(build_ink_mask(image, threshold))
	if rows.size == 0:
		return None
	return float(columns.mean()), float(rows.mean())


#============================================
def estimate_ink_centroid_shift(
		actual: numpy.ndarray,
		expected: numpy.ndarray,
		threshold: float = INK_THRESHOLD,
		max_shift: int = MAX_ALIGNMENT_SHIFT,
		axis: str = "both") -> tuple[int, int]:
	"""Return the clamped (dx, dy) that moves actual's ink centroid onto expected's."""
	if axis not in ALIGNMENT_AXES:
		raise ValueError(f"alignment axis must be one of {ALIGNMENT_AXES}, got {axis!r}")
	actual_centroid = compute_ink_centroid(actual, threshold)
	expected_centroid = compute_ink_centroid(expected, threshold)
	if actual_centroid is None or expected_centroid is None:
		return 0, 0
	max_shift = max(0, int(max_shift))
	shift_x = int(round(expected_centroid[0] - actual_centroid[0]))
	shift_y = int(round(expected_centroid[1] - actual_centroid[1]))
	shift_x = min(max_shift, max(-max_shift, shift_x)) if axis != "y" else 0
	shift_y = min(max_shift, max(-max_shift, shift_y)) if axis != "x" else 0
	return shift_x, shift_y


#============================================
def translate_image(image: numpy.ndarray, shift_x: int, shift_y: int) -> numpy.ndarray:
	"""Shift image by whole pixels, filling exposed areas with white."""
	if shift_x == 0 and shift_y == 0:
		return image
	height, width = image.shape[:2]
	translated = numpy.full_like(image, WHITE)
	if abs(shift_x) >= width or abs(shift_y) >= height:
		return translated
	source_x = slice(max(0, -shift_x), width - max(0, shift_x))
	source_y = slice(max(0, -shift_y), height - max(0, shift_y))
	target_x = slice(max(0, shift_x), width - max(0, -shift_x))
	target_y = slice(max(0, shift_y), height - max(0, -shift_y))
	translated[target_y, target_x] = image[source_y, source_x]
	return translated


#============================================
def pixel_mismatch_mask(actual: numpy.ndarray, expected: numpy.ndarray) -> numpy.ndarray:
	delta = numpy.abs(actual.astype(numpy.int16) - expected.astype(numpy.int16)).max(axis=2)
	return delta > PIXEL_MISMATCH_THRESHOLD * WHITE


#============================================
def structural_ink_mismatch(
		actual: numpy.ndarray,
		expected: numpy.ndarray,
		radius: int = STRUCTURAL_MATCH_RADIUS) -> tuple[int, float]:
	"""Count ink pixels with no ink in the other image within radius, in both directions."""
	actual_mask = build_ink_mask(actual)
	expected_mask = build_ink_mask(expected)
	kernel = numpy.ones((2 * radius + 1, 2 * radius + 1), dtype=numpy.uint8)
	actual_near = cv2.dilate(actual_mask.astype(numpy.uint8), kernel) > 0
	expected_near = cv2.dilate(expected_mask.astype(numpy.uint8), kernel) > 0
	unmatched_actual = int(numpy.count_nonzero(actual_mask & ~expected_near))
	unmatched_expected = int(numpy.count_nonzero(expected_mask & ~actual_near))
	mismatch_pixels = unmatched_actual + unmatched_expected
	denominator = max(1, int(actual_mask.sum()) + int(expected_mask.sum()))
	return mismatch_pixels, round(mismatch_pixels / denominator, RASTER_ROUND_DECIMALS)


#============================================
def compute_ssim(actual: numpy.ndarray, expected: numpy.ndarray) -> float:
	gray_actual = cv2.cvtColor(actual, cv2.COLOR_RGB2GRAY)
	gray_expected = cv2.cvtColor(expected, cv2.COLOR_RGB2GRAY)
	if numpy.array_equal(gray_actual, gray_expected):
		return 1.0
	height, width = gray_actual.shape
	win_size = min(7, height, width)
	if win_size % 2 == 0:
		win_size -= 1
	if win_size < 3:
		# too small for a sliding window; fall back to a pixel agreement ratio
		return round(float(numpy.mean(gray_actual == gray_expected)), RASTER_ROUND_DECIMALS)
	score = structural_similarity(gray_actual, gray_expected, win_size=win_size, data_range=255)
	return round(float(score), RASTER_ROUND_DECIMALS)


#============================================
def compare_images(
		actual: numpy.ndarray,
		expected: numpy.ndarray,
		align_by_ink_centroid: bool = False,
		max_alignment_shift: int = MAX_ALIGNMENT_SHIFT,
		alignment_axis: str = "both") -> RasterComparison:
	"""Compare two RGB images after padding both to a shared white envelope."""
	width = max(actual.shape[1], expected.shape[1])
	height = max(actual.shape[0], expected.shape[0])
	actual = pad_to_envelope(actual, width, height)
	expected = pad_to_envelope(expected, width, height)
	shift_x = 0
	shift_y = 0
	if align_by_ink_centroid:
		shift_x, shift_y = estimate_ink_centroid_shift(
			actual, expected, max_shift=max_alignment_shift, axis=alignment_axis
		)
		actual = translate_image(actual, shift_x, shift_y)

	diff_mask = pixel_mismatch_mask(actual, expected)
	mismatch_pixels = int(numpy.count_nonzero(diff_mask))
	structural_pixels, structural_ratio = structural_ink_mismatch(actual, expected)
	return RasterComparison(
		width=width,
		height=height,
		mismatch_pixels=mismatch_pixels,
		mismatch_ratio=round(mismatch_pixels / float(width * height), RASTER_ROUND_DECIMALS),
		structural_mismatch_pixels=structural_pixels,
		structural_mismatch_ratio=structural_ratio,
		ssim=compute_ssim(actual, expected),
		alignment_shift_x=shift_x,
		alignment_shift_y=shift_y,
		diff_mask=diff_mask,
	)


#============================================
def resolve_crop_region(image: numpy.ndarray, region: CropRegion) -> tuple[int, int, int, int]:
	"""Return an integer (x, y, width, height) clamped inside the image."""
	height, width = image.shape[:2]
	x, y, crop_width, crop_height = region.x, region.y, region.width, region.height
	if region.unit == "ratio":
		x, crop_width = x * width, crop_width * width
		y, crop_height = y * height, crop_height * height
	elif region.unit != "pixels":
		raise ValueError(f"crop unit must be 'pixels' or 'ratio', got {region.unit!r}")
	left = min(width - 1, max(0, int(round(x))))
	top = min(height - 1, max(0, int(round(y))))
	crop_width = min(width - left, max(1, int(round(crop_width))))
	crop_height = min(height - top, max(1, int(round(crop_height))))
	return left, top, crop_width, crop_height


#============================================
def crop_image(image: numpy.ndarray, region: CropRegion) -> numpy.ndarray:
	left, top, crop_width, crop_height = resolve_crop_region(image, region)
	return image[top:top + crop_height, left:left + crop_width].copy()


#============================================
def trim_whitespace(image: numpy.ndarray, threshold: int = WHITESPACE_THRESHOLD, padding: int = 0) -> numpy.ndarray:
	"""Crop to the bounding box of non-white pixels plus padding; blank images are returned unchanged."""
	content = (image < threshold).any(axis=2)
	rows, columns = numpy.nonzero(content)
	if rows.size == 0:
		return image
	padding = max(0, int(padding))
	height, width = image.shape[:2]
	top = max(0, int(rows.min()) - padding)
	bottom = min(height - 1, int(rows.max()) + padding)
	left = max(0, int(columns.min()) - padding)
	right = min(width - 1, int(columns.max()) + padding)
	return image[top:bottom + 1, left:right + 1].copy()


#============================================
def resize_image(image: numpy.ndarray, width: int, height: int, mode: str = "fit") -> numpy.ndarray:
	"""Nearest-neighbor resize; 'fit' keeps aspect ratio centered on white."""
	if mode not in RESIZE_MODES:
		raise ValueError(f"resize mode must be one of {RESIZE_MODES}, got {mode!r}")
	width = max(1, int(width))
	height = max(1, int(height))
	source_height, source_width = image.shape[:2]
	if source_width == width and source_height == height:
		return image
	if mode == "stretch":
		return cv2.resize(image, (width, height), interpolation=cv2.INTER_NEAREST)
	scale = min(width / source_width, height / source_height)
	scaled_width = max(1, int(round(source_width * scale)))
	scaled_height = max(1, int(round(source_height * scale)))
	scaled = cv2.resize(image, (scaled_width, scaled_height), interpolation=cv2.INTER_NEAREST)
	canvas = numpy.full((height, width, 3), WHITE, dtype=numpy.uint8)
	offset_x = (width - scaled_width) // 2
	offset_y = (height - scaled_height) // 2
	canvas[offset_y:offset_y + scaled_height, offset_x:offset_x + scaled_width] = scaled
	return canvas
