# src/hysim_core/validation/__init__.py
from .issues import ValidationIssue, ValidationIssueLevel
from .issue_codes import DiagramIssueCode
from .exceptions import DiagramValidationError
from .diagram_validator import DiagramValidator

__all__ = [
    "ValidationIssue",
    "ValidationIssueLevel",
    "DiagramIssueCode",
    "DiagramValidationError",
    "DiagramValidator",
]
