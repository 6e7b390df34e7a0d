"""L1 Unit Tests: error taxonomy."""

from pagepilot.core.errors import (
    NO_SESSION_MESSAGE,
    ExecutionError,
    NavigationError,
    PagePilotError,
    RegistryCloseError,
    SessionNotFound,
)


class TestErrors:
    def test_all_share_base(self):
        for cls in (SessionNotFound, NavigationError, ExecutionError, RegistryCloseError):
            assert issubclass(cls, PagePilotError)

    def test_session_not_found(self):
        err = SessionNotFound("abc")
        assert err.key == "abc"
        assert str(err) == NO_SESSION_MESSAGE

    def test_navigation_error_fields(self):
        err = NavigationError("boom", url="https://x", attempts=2, history=[1, 2], last_error="t")
        assert err.attempts == 2
        assert err.history == [1, 2]
        assert err.last_error == "t"
        assert str(err) == "boom"

    def test_execution_error_defaults(self):
        err = ExecutionError("Execution timed out")
        assert err.duration_ms == 0
        assert err.logs == []

    def test_registry_close_error_message(self):
        err = RegistryCloseError("k", RuntimeError("gone"))
        assert str(err) == "gone"
        assert isinstance(err.cause, RuntimeError)
