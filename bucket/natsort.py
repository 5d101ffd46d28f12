"""
Natural ("human") ordering for directory listings.

Directories come first. Names are then compared case-insensitively, run by
run, where a run is a maximal stretch of digits or of non-digits, and two
digit runs compare by numeric value: "file2" sorts before "file10".

Digit runs that don't fit an unsigned 64-bit integer are compared as plain
text instead. That keeps the comparison cheap and only misorders names with
absurdly long numbers in them; it is a known, accepted limitation.
"""
from functools import cmp_to_key
from typing import Iterable, List

from .models import EntryDescriptor

UINT64_MAX = 2 ** 64 - 1


def _cmp(a, b) -> int:
	return (a > b) - (a < b)


def partition_by_digitness(name: str) -> List[str]:
	"""
	Split a string into alternating digit and non-digit runs.
	"file12b" -> ["file", "12", "b"]; "" -> [""].
	"""
	runs = []
	current = ""
	last_was_digit = False

	for ch in name:
		is_digit = ch.isdecimal()
		if not current:
			current = ch
			last_was_digit = is_digit
		elif is_digit != last_was_digit:
			runs.append(current)
			current = ch
			last_was_digit = is_digit
		else:
			current += ch

	runs.append(current)
	return runs


def _parse_uint64(run: str):
	# only plain ASCII digits count as numbers; anything else is text
	if not run.isascii() or not run.isdigit():
		return None
	value = int(run)
	return value if value <= UINT64_MAX else None


def _compare_runs(run_a: str, run_b: str) -> int:
	if run_a == run_b:
		return 0

	if run_a[:1].isdecimal() and run_b[:1].isdecimal():
		num_a = _parse_uint64(run_a)
		num_b = _parse_uint64(run_b)
		if num_a is None or num_b is None:
			return _cmp(run_a, run_b)
		# "01" and "1" are equal here; the next run decides
		return _cmp(num_a, num_b)

	return _cmp(run_a, run_b)


def compare_names(name_a: str, name_b: str) -> int:
	"""Three-way natural comparison of two names, case-insensitive first."""
	lower_a = name_a.lower()
	lower_b = name_b.lower()

	for run_a, run_b in zip(partition_by_digitness(lower_a), partition_by_digitness(lower_b)):
		result = _compare_runs(run_a, run_b)
		if result:
			return result

	result = _cmp(lower_a, lower_b)
	if result:
		return result

	# same name ignoring case; the raw names give a stable order
	return _cmp(name_a, name_b)


def natural_compare(a: EntryDescriptor, b: EntryDescriptor) -> int:
	"""Three-way comparison of two entries for listing order."""
	if a.is_directory != b.is_directory:
		return -1 if a.is_directory else 1
	return compare_names(a.name, b.name)


natural_key = cmp_to_key(natural_compare)


def natural_sort(entries: Iterable[EntryDescriptor]) -> List[EntryDescriptor]:
	return sorted(entries, key=natural_key)
