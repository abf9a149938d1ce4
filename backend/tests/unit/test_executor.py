"""
Unit tests for the request channel and the mock controller transport.
"""

import json

import pytest

from core.types import DetailRequest, Subsystem, SummaryRequest
from core.executor import RequestChannel, RequestRecord
from core.transport import MockTransport


class TestRequestChannel:
    """Tests for RequestChannel."""

    def test_send_writes_one_line(self):
        transport = MockTransport()
        channel = RequestChannel(transport)
        channel.send(SummaryRequest(), now=0)
        assert transport.sent_lines == ['M409 F"d99f"']

    def test_history_records_requests(self):
        transport = MockTransport()
        channel = RequestChannel(transport)
        channel.send(SummaryRequest(), now=0)
        channel.send(DetailRequest(Subsystem.HEAT), now=1000)

        history = channel.get_history()
        assert len(history) == 2
        assert all(isinstance(r, RequestRecord) for r in history)
        assert [r.kind for r in history] == ["summary", "detail"]
        assert history[1].sent_at_ms == 1000
        assert all(r.success for r in history)

    def test_history_limit(self):
        channel = RequestChannel(MockTransport(), history_limit=3)
        for now in range(5):
            channel.send(SummaryRequest(), now=now)
        assert [r.sent_at_ms for r in channel.get_history()] == [2, 3, 4]
        assert [r.sent_at_ms for r in channel.get_history(limit=2)] == [3, 4]

    def test_failed_send_is_recorded_and_raised(self):
        transport = MockTransport()
        transport.disconnect()
        channel = RequestChannel(transport)

        with pytest.raises(ConnectionError):
            channel.send(SummaryRequest(), now=0)

        last = channel.get_last()
        assert last is not None
        assert not last.success
        assert last.error

    def test_record_to_dict(self):
        channel = RequestChannel(MockTransport())
        record = channel.send(DetailRequest(Subsystem.STATE), now=5, kind="detail")
        data = record.to_dict()
        assert data["gcode"] == 'M409 K"state" F"vn"'
        assert data["kind"] == "detail"
        assert data["success"] is True


class TestMockTransport:
    """The simulated controller answers M409 like the real one."""

    def test_summary_reply(self):
        transport = MockTransport()
        transport.send('M409 F"d99f"')
        (line,) = transport.read_lines()
        reply = json.loads(line)
        assert reply["key"] == ""
        assert reply["result"]["seqs"]["heat"] == 1
        assert reply["result"]["state"]["status"] == "idle"

    def test_detail_reply(self):
        transport = MockTransport()
        transport.send('M409 K"tools" F"v"')
        reply = json.loads(transport.read_lines()[0])
        assert reply["key"] == "tools"
        assert reply["result"][0]["heaters"] == [1]

    def test_read_lines_drains(self):
        transport = MockTransport()
        transport.send('M409 F"d99f"')
        assert len(transport.read_lines()) == 1
        assert transport.read_lines() == []

    def test_other_gcode_gets_no_reply(self):
        transport = MockTransport()
        transport.send("G28")
        assert transport.read_lines() == []
        assert transport.command_count == 1

    def test_bump_changes_seq(self):
        transport = MockTransport()
        transport.bump("move")
        transport.send('M409 F"d99f"')
        reply = json.loads(transport.read_lines()[0])
        assert reply["result"]["seqs"]["move"] == 2

    def test_disconnected_send_raises(self):
        transport = MockTransport()
        transport.disconnect()
        with pytest.raises(ConnectionError):
            transport.send('M409 F"d99f"')
