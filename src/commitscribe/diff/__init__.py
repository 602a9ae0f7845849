"""
Diff parsing for commitscribe.

See :mod:`commitscribe.diff.diff_parser` for the parser and the line
sanitiser.
"""

from .diff_parser import DiffParseOptions, DiffValidationError, ParsedDiff, parse_diff  # noqa: F401
