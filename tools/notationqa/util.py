"""Shared numeric and counter helpers for notation quality measurement."""

# Standard Library
import math

from notationqa.constants import STAT_ROUND_DECIMALS


#============================================
def round_stat(value: float | None, decimals: int = STAT_ROUND_DECIMALS) -> float | None:
	"""Return value rounded to the fixed report precision, passing None through."""
	if value is None:
		return None
	return round(float(value), int(decimals))


#============================================
def rounded_mean(values: list[float]) -> float:
	"""Return arithmetic mean at report precision, or 0.0 for an empty list."""
	if not values:
		return 0.0
	return round_stat(sum(values) / float(len(values)))


#============================================
def sorted_median(values: list[float]) -> float | None:
	"""Return median at report precision, or None for an empty list."""
	if not values:
		return None
	ordered = sorted(values)
	middle = len(ordered) // 2
	if len(ordered) % 2 == 1:
		return round_stat(ordered[middle])
	return round_stat((ordered[middle - 1] + ordered[middle]) / 2.0)


#============================================
def clamp(value: float, lower: float, upper: float) -> float:
	"""Return value limited to the closed interval [lower, upper]."""
	return max(lower, min(upper, value))


#============================================
def capped_penalty(count: float, per_item: float, cap: float) -> float:
	"""Return count times per-item penalty, limited to cap."""
	return min(cap, float(count) * per_item)


#============================================
def increment_counter(counter: dict[str, int], key: str) -> None:
	"""Increment one string-keyed counter."""
	counter[key] = counter.get(key, 0) + 1


#============================================
def sorted_counter(counter: dict[str, int]) -> dict[str, int]:
	"""Return counter ordered by key for deterministic serialization."""
	return {key: counter[key] for key in sorted(counter)}


#============================================
def percentile_index(count: int, fraction: float) -> int:
	"""Return nearest-rank index into a sorted list of count values."""
	return min(count - 1, max(0, int(math.ceil(count * fraction)) - 1))
