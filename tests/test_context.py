"""Tests for the execution context."""

from uipath_sdk.context import ExecutionContext


class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_headers_are_copied(self):
        context = ExecutionContext({"X-A": "1"})

        headers = context.get_headers()
        headers["X-B"] = "2"

        assert context.get_headers() == {"X-A": "1"}

    def test_set_and_remove_headers(self):
        context = ExecutionContext()
        context.set_headers({"X-A": "1", "X-B": "2"})
        context.remove_header("X-A")

        assert context.get_headers() == {"X-B": "2"}

    def test_values_and_clear(self):
        context = ExecutionContext({"X-A": "1"})
        context.set("folder_id", 42)

        assert context.get("folder_id") == 42
        assert context.get("missing", "default") == "default"

        context.clear()

        assert context.get("folder_id") is None
        assert context.get_headers() == {}
