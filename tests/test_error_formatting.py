"""
Tests for user-facing error messages and logging setup.
"""
import logging
from dataclasses import replace
from datetime import date, datetime

import pytest

from production_planner.config import GlobalSettings
from production_planner.domain.fiscal_calendar import FiscalDateError
from production_planner.domain.models import DateRange, PlanItemFailure
from production_planner.domain.validation import ConfigurationError
from production_planner.utils.error_formatting import (
    ErrorContext,
    ErrorFormatter,
    ErrorSeverity,
    format_exception,
    plan_diagnostics,
)
from production_planner.utils.logging_config import log_file_path, log_plan_diagnostics, setup_logging
from production_planner.workflows.plan_generator import generate_plan


class TestErrorContext:
    """Display and log rendering."""

    def test_display(self):
        ctx = ErrorContext(
            message="Something failed",
            severity=ErrorSeverity.ERROR,
            technical_details="ValueError: bad",
            context={"Item": "A", "Field": None},
            recovery_steps=["Fix it"],
            error_code="X_1",
        )
        text = ctx.format_for_display()
        assert text.startswith("Something failed")
        assert "  - Item: A" in text
        assert "Field" not in text
        assert "  1. Fix it" in text
        assert "Error code: X_1" in text
        assert "ValueError: bad" not in text
        assert "ValueError: bad" in ctx.format_for_display(include_technical=True)

    def test_log_line(self):
        ctx = ErrorContext("Oops", ErrorSeverity.WARNING, "detail", context={"Item": "A"})
        assert ctx.format_for_log() == "[WARNING] Oops | Context: Item=A | Technical: detail"


class TestFormatters:
    """Formatter selection and content."""

    def test_configuration_error_lists_every_problem(self):
        exc = ConfigurationError(["Productivity must be positive", "Shelf life must be positive"], subject="item A")
        ctx = format_exception(exc)
        assert ctx.error_code == "CFG_001"
        assert ctx.recovery_steps == exc.errors
        assert "2 problem(s)" in ctx.message

    def test_fiscal_error(self):
        ctx = format_exception(FiscalDateError("Period must be 1-13"), "fiscal lookup")
        assert ctx.error_code == "FISCAL_001"
        assert ctx.context["Operation"] == "fiscal lookup"

    def test_generic_error(self):
        ctx = format_exception(RuntimeError("boom"))
        assert ctx.error_code == "GEN_UNKNOWN"
        assert ctx.technical_details == "RuntimeError: boom"

    def test_item_failure(self):
        ctx = ErrorFormatter.format_item_failure(PlanItemFailure("A", "RuntimeError", "corrupt history"))
        assert ctx.severity == ErrorSeverity.WARNING
        assert ctx.context == {"Item": "A"}
        assert ctx.technical_details == "RuntimeError: corrupt history"


class TestPlanDiagnostics:
    """Diagnostics gathered from plan metadata."""

    def test_failures_and_warnings(self):
        boundary = DateRange(date(2025, 9, 1), date(2025, 9, 5))
        plan = generate_plan([], boundary, ["C"], {}, GlobalSettings(), generated_at=datetime(2025, 9, 1))
        failure = PlanItemFailure("C", "RuntimeError", "boom")
        plan = replace(plan, metadata=replace(plan.metadata, failures=(failure,)))

        codes = [d.error_code for d in plan_diagnostics(plan)]
        assert codes == ["PLAN_001", "FISCAL_002"]


class TestSetupLogging:
    """Logging handlers."""

    @pytest.fixture
    def logger(self, tmp_path):
        logger = setup_logging(tmp_path / "logs", app_name="production_planner_test")
        yield logger
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)

    def test_handlers(self, logger, tmp_path):
        levels = sorted(h.level for h in logger.handlers)
        assert levels == [logging.WARNING, logging.CRITICAL]
        assert list((tmp_path / "logs").glob("production_planner_test_*.log"))

    def test_idempotent(self, logger, tmp_path):
        again = setup_logging(tmp_path / "logs", app_name="production_planner_test")
        assert again is logger
        assert len(logger.handlers) == 2

    def test_log_file_path(self, tmp_path):
        path = log_file_path(tmp_path, "planner", day=date(2024, 11, 18))
        assert path == tmp_path / "planner_20241118.log"


class TestLogPlanDiagnostics:
    """Plan diagnostics become log records at their severity."""

    def test_records_written(self, caplog):
        boundary = DateRange(date(2025, 9, 1), date(2025, 9, 5))
        plan = generate_plan([], boundary, ["C"], {}, GlobalSettings(), generated_at=datetime(2025, 9, 1))
        failure = PlanItemFailure("C", "RuntimeError", "boom")
        plan = replace(plan, metadata=replace(plan.metadata, failures=(failure,)))
        logger = logging.getLogger("production_planner_diagnostics_test")

        with caplog.at_level(logging.INFO, logger=logger.name):
            written = log_plan_diagnostics(plan, logger)

        records = [r for r in caplog.records if r.name == logger.name]
        assert written == 2
        assert [r.levelno for r in records] == [logging.WARNING, logging.INFO]
        assert "RuntimeError: boom" in records[0].getMessage()

    def test_clean_plan_writes_nothing(self, caplog):
        plan = generate_plan(
            [], DateRange(date(2024, 11, 18), date(2024, 11, 20)), ["C"], {}, GlobalSettings(),
            generated_at=datetime(2024, 11, 17),
        )
        with caplog.at_level(logging.INFO, logger="production_planner_diagnostics_test"):
            assert log_plan_diagnostics(plan, logging.getLogger("production_planner_diagnostics_test")) == 0
        assert not [r for r in caplog.records if r.name == "production_planner_diagnostics_test"]
