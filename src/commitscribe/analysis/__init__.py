"""
Commit analysis.

:mod:`commitscribe.analysis.commit_analyzer` drives the diff → model →
message pipeline; :mod:`commitscribe.analysis.change_classifier` supplies
the heuristic type used when the model cannot be.
"""

from .change_classifier import classify_change, infer_change_type  # noqa: F401
from .commit_analyzer import (  # noqa: F401
    AnalyzerSettings,
    AnalyzerState,
    CommitAnalyzer,
    analyze_commit,
)
