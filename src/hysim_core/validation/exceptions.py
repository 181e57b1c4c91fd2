# src/hysim_core/validation/exceptions.py
"""
Defines the diagnosable exception raised when a diagram fails validation.

`DiagramValidationError` collects every error-level `ValidationIssue` found by the
`DiagramValidator` for one `build()` call, so a user sees all wiring mistakes at once
instead of fixing them one at a time.
"""
from typing import List

from .issues import ValidationIssue, ValidationIssueLevel
from ..errors import DiagnosableError, format_diagnostic_report


class DiagramValidationError(DiagnosableError):
    """Raised by `DiagramBuilder.build()` when validation finds one or more errors."""

    def __init__(self, issues: List[ValidationIssue]):
        self.issues: List[ValidationIssue] = [
            issue for issue in issues if issue.level == ValidationIssueLevel.ERROR
        ]
        error_lines = [str(issue) for issue in self.issues]
        summary_message = (
            f"Diagram validation failed with {len(self.issues)} error(s):\n"
            + "\n".join(f"  - {line}" for line in error_lines)
        )
        super().__init__(summary_message)

    @property
    def codes(self) -> List[str]:
        return [issue.code for issue in self.issues]

    def get_diagnostic_report(self) -> str:
        error_lines = [str(issue) for issue in self.issues]
        details = (
            f"The diagram cannot be built as wired.\n"
            f"Found {len(self.issues)} error(s). See details below:\n\n"
            + "\n".join(f"  - {line}" for line in error_lines)
        )
        first_issue = self.issues[0] if self.issues else None
        context = {}
        if first_issue:
            context['fqn'] = first_issue.system_fqn or first_issue.diagram_name or 'Multiple'

        return format_diagnostic_report(
            error_type="Diagram Validation Error",
            details=details,
            suggestion="Correct the connections, exports and subsystem declarations listed above before calling build() on a new builder.",
            context=context
        )
