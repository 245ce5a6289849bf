"""
Assignment validator module.

Feasibility warnings, completeness checks and automatic suggestions for
binding script sections to B-roll clips.
"""

from modules.assignment_validator.validator import (
    FeasibilityReport,
    validate_feasibility,
    find_unbound_sections,
    find_unknown_assets
)
from modules.assignment_validator.suggestions import suggest_assignments

__all__ = [
    "FeasibilityReport",
    "validate_feasibility",
    "find_unbound_sections",
    "find_unknown_assets",
    "suggest_assignments",
]
