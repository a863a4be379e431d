"""Markdown rendering of assignment troubleshooting reports."""

from typing import List

from .models import AssignmentFunctionalityTest, GroupAssignment, ValidationResult

PASS = "✅"
FAIL = "❌"
WARN = "⚠️"
HINT = "💡"


def _glyph(value: bool) -> str:
    return PASS if value else FAIL


def render_troubleshooting_report(
    assignment: GroupAssignment,
    validation: ValidationResult,
    functionality: AssignmentFunctionalityTest,
) -> str:
    """
    Render a troubleshooting report for one assignment.

    The output only depends on its inputs, so the same results always produce
    the same report.
    """
    lines: List[str] = [
        "# Troubleshooting Report for Assignment",
        "",
        f"**Azure Group ID:** {assignment.azure_group_id}",
        f"**AWS Account ID:** {assignment.aws_account_id}",
        f"**Permission Set ARN:** {assignment.permission_set_arn}",
        f"**Assignment Status:** {assignment.assignment_status.value}",
        "",
        "## Validation Results",
        "",
        f"**Overall Status:** {PASS + ' Valid' if validation.is_valid else FAIL + ' Invalid'}",
        "",
    ]

    if validation.errors:
        lines.append("### Errors")
        lines.extend(f"- {FAIL} {error}" for error in validation.errors)
        lines.append("")

    if validation.warnings:
        lines.append("### Warnings")
        lines.extend(f"- {WARN} {warning}" for warning in validation.warnings)
        lines.append("")

    results = functionality.test_results
    working = f"{PASS} Working" if functionality.is_working else f"{FAIL} Not Working"
    lines.extend(
        [
            "## Functionality Test Results",
            "",
            f"**Overall Functionality:** {working}",
            "",
            "### Test Results",
            f"- Group Exists: {_glyph(results.group_exists)}",
            f"- Group Synced: {_glyph(results.group_synced)}",
            f"- Permission Set Exists: {_glyph(results.permission_set_exists)}",
            f"- Assignment Active: {_glyph(results.assignment_active)}",
            f"- End-to-End Access: {_glyph(results.end_to_end_access)}",
            "",
        ]
    )

    if functionality.recommendations:
        lines.append("### Recommendations")
        lines.extend(f"- {HINT} {item}" for item in functionality.recommendations)
        lines.append("")

    return "\n".join(lines) + "\n"


def render_report_error(message: str) -> str:
    """Render the stub returned when a report could not be produced."""
    return f"# Troubleshooting Report - Error\n\nFailed to generate report: {message}"
