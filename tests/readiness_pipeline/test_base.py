"""Tests for readiness check models and base classes."""

from stack_orchestrator.readiness_pipeline import CheckStatus, ReadinessCheck, ReadinessCheckResult


class MockReadinessCheck(ReadinessCheck):
    """Mock readiness check for testing."""

    def __init__(self, name: str, is_critical: bool = False, should_fail: bool = False):
        super().__init__(name, is_critical)
        self.should_fail = should_fail
        self.execute_called = False

    def _execute(self) -> ReadinessCheckResult:
        """Mock execute method."""
        self.execute_called = True
        if self.should_fail:
            return self.failed(f"{self.name} failed", {"error": "mock error"})
        return self.success(f"{self.name} passed", {"data": "mock data"})


class TestReadinessCheckResult:
    """Test ReadinessCheckResult model."""

    def test_create_result(self):
        """Test creating a readiness check result."""
        result = ReadinessCheckResult(
            status=CheckStatus.SUCCESS,
            message="Test passed",
            check_name="test_check",
            details={"key": "value"},
        )

        assert result.status == CheckStatus.SUCCESS
        assert result.message == "Test passed"
        assert result.check_name == "test_check"
        assert result.details == {"key": "value"}
        assert result.execution_time_ms is None
        assert result.stage_name is None


class TestReadinessCheck:
    """Test ReadinessCheck base class."""

    def test_basic_initialization(self):
        """Test basic readiness check initialization."""
        check = MockReadinessCheck("test_check", is_critical=True)

        assert check.name == "test_check"
        assert check.is_critical is True

    def test_successful_execution(self):
        """Test successful check execution."""
        check = MockReadinessCheck("test_check")
        result = check.run()

        assert result.status == CheckStatus.SUCCESS
        assert result.message == "test_check passed"
        assert result.check_name == "test_check"
        assert result.details == {"data": "mock data"}
        assert check.execute_called is True

    def test_failed_execution(self):
        """Test failed check execution."""
        check = MockReadinessCheck("test_check", should_fail=True)
        result = check.run()

        assert result.status == CheckStatus.FAILED
        assert result.message == "test_check failed"
        assert result.details == {"error": "mock error"}

    def test_every_run_executes_again(self):
        """Test that readiness is re-evaluated on every run."""
        check = MockReadinessCheck("test_check")

        first = check.run()
        check.execute_called = False
        second = check.run()

        assert second is not first
        assert check.execute_called is True

    def test_result_helpers(self):
        """Test the status helper methods."""
        check = MockReadinessCheck("helper_check")

        assert check.failed("boom").status == CheckStatus.FAILED
        assert check.failed("boom").details == {}
        assert check.success("ok", {"a": 1}).check_name == "helper_check"
