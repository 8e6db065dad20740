"""Tests for rejection reporting."""

import threading


class TestCollectingErrorReporter:
    def _rejection(self, offset: int):
        from graphsink.contracts import MessageHandlingError, RejectedMessage
        from tests.factories import message

        msg = message("people", offset=offset)
        return RejectedMessage(sink_message=msg, error=MessageHandlingError(msg, "bad"))

    def test_satisfies_protocol(self) -> None:
        from graphsink.contracts import CollectingErrorReporter, ErrorReporter

        assert isinstance(CollectingErrorReporter(), ErrorReporter)

    def test_keeps_arrival_order(self) -> None:
        from graphsink.contracts import CollectingErrorReporter

        reporter = CollectingErrorReporter()
        for offset in (3, 1, 2):
            reporter.report(self._rejection(offset))
        assert [r.offset for r in reporter.rejections] == [3, 1, 2]

    def test_drain_clears(self) -> None:
        from graphsink.contracts import CollectingErrorReporter

        reporter = CollectingErrorReporter()
        reporter.report(self._rejection(1))
        assert len(reporter.drain()) == 1
        assert reporter.rejections == []

    def test_rejections_returns_a_copy(self) -> None:
        from graphsink.contracts import CollectingErrorReporter

        reporter = CollectingErrorReporter()
        reporter.report(self._rejection(1))
        reporter.rejections.clear()
        assert len(reporter.rejections) == 1

    def test_concurrent_reports_are_all_kept(self) -> None:
        from graphsink.contracts import CollectingErrorReporter

        reporter = CollectingErrorReporter()

        def report_many() -> None:
            for offset in range(200):
                reporter.report(self._rejection(offset))

        threads = [threading.Thread(target=report_many) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(reporter.rejections) == 800

    def test_rejected_message_exposes_coordinates(self) -> None:
        rejection = self._rejection(9)
        assert (rejection.topic, rejection.partition, rejection.offset) == ("people", 0, 9)
