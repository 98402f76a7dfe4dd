import logging

import pytest

from tgpic.utils import tracing


@pytest.mark.unit
class TestTrace:
    def test_logger_names_are_namespaced(self):
        assert tracing.get_logger("queue").name == "tgpic.queue"

    def test_sync_function_result_and_logs(self, caplog):
        @tracing.trace("sample")
        def add(a, b):
            return a + b

        with caplog.at_level(logging.DEBUG, logger="tgpic.sample"):
            assert add(2, 3) == 5
        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("enter") for m in messages)
        assert any(m.startswith("exit") for m in messages)

    @pytest.mark.asyncio
    async def test_async_function_errors_propagate(self, caplog):
        @tracing.trace("sample")
        async def boom():
            raise RuntimeError("nope")

        with caplog.at_level(logging.DEBUG, logger="tgpic.sample"):
            with pytest.raises(RuntimeError):
                await boom()
        assert any(r.getMessage().startswith("error in") for r in caplog.records)

    def test_wraps_preserves_name(self):
        @tracing.trace()
        def handler():
            """Doc."""

        assert handler.__name__ == "handler"
        assert handler.__doc__ == "Doc."
