"""
Error messaging for planning runs.

Turns configuration errors, per-item failures and fiscal drift warnings into
structured, user-facing messages with recovery guidance.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from enum import Enum

from ..domain.fiscal_calendar import FiscalDateError
from ..domain.models import PlanItemFailure, ProductionPlan
from ..domain.validation import ConfigurationError


# ============================================================
# Error Severity Levels
# ============================================================

class ErrorSeverity(Enum):
    """Error severity classification for presentation."""

    INFO = "info"           # Informational (no action needed)
    WARNING = "warning"     # Caution (optional action)
    ERROR = "error"         # Error (action required)
    CRITICAL = "critical"   # Critical (system-level issue)


# ============================================================
# Error Context
# ============================================================

@dataclass
class ErrorContext:
    """
    Structured error context for user-facing messages.

    Attributes:
        message: User-friendly error description
        severity: Error severity level
        technical_details: Technical error info (for logs/debugging)
        context: Additional context (item, operation, field)
        recovery_steps: Actions the user can take
        error_code: Optional error code for support/documentation
    """
    message: str
    severity: ErrorSeverity
    technical_details: str
    context: Dict[str, Any] = field(default_factory=dict)
    recovery_steps: List[str] = field(default_factory=list)
    error_code: Optional[str] = None

    def format_for_display(self, include_technical: bool = False) -> str:
        lines = [self.message]

        if self.context:
            lines.append("")
            lines.append("Details:")
            for key, value in self.context.items():
                if value is not None:
                    lines.append(f"  - {key}: {value}")

        if self.recovery_steps:
            lines.append("")
            lines.append("Suggested actions:")
            for i, step in enumerate(self.recovery_steps, 1):
                lines.append(f"  {i}. {step}")

        if include_technical and self.technical_details:
            lines.append("")
            lines.append("Technical details:")
            lines.append(f"  {self.technical_details}")

        if self.error_code:
            lines.append("")
            lines.append(f"Error code: {self.error_code}")

        return "\n".join(lines)

    def format_for_log(self) -> str:
        """Format error for structured logging."""
        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items() if v is not None)
        return f"[{self.severity.value.upper()}] {self.message} | Context: {context_str} | Technical: {self.technical_details}"


# ============================================================
# Error Formatters
# ============================================================

class ErrorFormatter:
    """Transforms planning errors into ErrorContext objects."""

    @staticmethod
    def format_configuration_error(exc: ConfigurationError) -> ErrorContext:
        """
        Format a rejected configuration.

        Every violated constraint becomes one recovery step, so the user can
        fix all of them in one pass.
        """
        subject = exc.subject or "configuration"
        return ErrorContext(
            message=f"Invalid {subject}: {len(exc.errors)} problem(s) found. No plan was generated.",
            severity=ErrorSeverity.ERROR,
            technical_details=f"ConfigurationError: {exc}",
            context={"Subject": subject, "Problems": len(exc.errors)},
            recovery_steps=list(exc.errors),
            error_code="CFG_001",
        )

    @staticmethod
    def format_item_failure(failure: PlanItemFailure) -> ErrorContext:
        return ErrorContext(
            message=f"Item {failure.item_id} could not be planned normally; minimum batch size was used.",
            severity=ErrorSeverity.WARNING,
            technical_details=f"{failure.error_type}: {failure.message}",
            context={"Item": failure.item_id},
            recovery_steps=[
                "Check the item's sales history for missing or extreme values",
                "Review the item's productivity, shelf life and batch settings",
                "Adjust the batch manually if the minimum batch is not appropriate",
            ],
            error_code="PLAN_001",
        )

    @staticmethod
    def format_fiscal_error(exc: FiscalDateError, operation: str = "fiscal date conversion") -> ErrorContext:
        return ErrorContext(
            message="Fiscal date is out of range.",
            severity=ErrorSeverity.ERROR,
            technical_details=f"FiscalDateError: {exc}",
            context={"Operation": operation},
            recovery_steps=[
                "Periods run 1-13, weeks 1-4 and days 1-7",
                "Check the fiscal columns of the imported file",
            ],
            error_code="FISCAL_001",
        )

    @staticmethod
    def format_fiscal_warning(warning: str) -> ErrorContext:
        return ErrorContext(
            message="Fiscal year-over-year alignment is approximate for this date.",
            severity=ErrorSeverity.INFO,
            technical_details=warning,
            recovery_steps=["Compare last-year figures against neighbouring days if precision matters"],
            error_code="FISCAL_002",
        )

    @staticmethod
    def format_generic_error(exc: Exception, operation: str) -> ErrorContext:
        return ErrorContext(
            message=f"Unexpected error during {operation}",
            severity=ErrorSeverity.ERROR,
            technical_details=f"{type(exc).__name__}: {exc}",
            context={"Operation": operation},
            recovery_steps=[
                "Retry the operation",
                "If the error persists, contact support with the log file",
            ],
            error_code="GEN_UNKNOWN",
        )


def format_exception(exc: Exception, operation: str = "plan generation") -> ErrorContext:
    """Pick the formatter for an exception raised by the planner."""
    if isinstance(exc, ConfigurationError):
        return ErrorFormatter.format_configuration_error(exc)
    if isinstance(exc, FiscalDateError):
        return ErrorFormatter.format_fiscal_error(exc, operation)
    return ErrorFormatter.format_generic_error(exc, operation)


def plan_diagnostics(plan: ProductionPlan) -> List[ErrorContext]:
    """Per-item failures and fiscal warnings recorded in a plan's metadata."""
    diagnostics = [ErrorFormatter.format_item_failure(f) for f in plan.metadata.failures]
    diagnostics.extend(ErrorFormatter.format_fiscal_warning(w) for w in plan.metadata.warnings)
    return diagnostics
