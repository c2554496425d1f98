"""
Unit Tests for the File Result Sink
"""

import json
from unittest.mock import patch

import pytest

from deployer.models import DeploymentResult
from deployer.result_sink import FileResultSink
from deployer.session import SessionContext

NETWORK = 'sepolia'
CHAIN_ID = 11155111


def succeeded(name, block=12345678901234567890, gas=987654321):
    return DeploymentResult(
        name=name,
        success=True,
        transaction_hash='0x' + 'ab' * 32,
        resolved_address='0x' + '22' * 20,
        expected_address='0x' + '22' * 20,
        block_number=block,
        gas_used=gas,
    )


def read_json(path):
    with open(path) as f:
        return json.load(f)


class TestArtifactRecords:

    def test_record_fields(self, sink, session):
        path = sink.record_artifact(succeeded('Safe'), NETWORK, CHAIN_ID, session)
        record = read_json(path)

        assert record['contractName'] == 'Safe'
        assert record['network'] == NETWORK
        assert record['chainId'] == str(CHAIN_ID)
        assert record['sessionId'] == session.session_id
        assert record['txHash'] == '0x' + 'ab' * 32
        assert 'timestamp' in record

    def test_large_integers_are_strings(self, sink, session):
        path = sink.record_artifact(succeeded('Safe'), NETWORK, CHAIN_ID, session)
        record = read_json(path)

        assert record['blockNumber'] == '12345678901234567890'
        assert record['gasUsed'] == '987654321'

    def test_files_are_never_overwritten(self, sink, session):
        with patch.object(FileResultSink, '_now_ms', return_value=1700000000000):
            first = sink.record_artifact(succeeded('Safe'), NETWORK, CHAIN_ID, session)
            second = sink.record_artifact(succeeded('Safe'), NETWORK, CHAIN_ID, session)

        assert first != second
        assert first.exists() and second.exists()

    def test_failures_are_recorded(self, sink, session):
        failed = DeploymentResult.failure('Broken', 'Transaction failed')
        path = sink.record_artifact(failed, NETWORK, CHAIN_ID, session)
        record = read_json(path)

        assert record['success'] is False
        assert record['error'] == 'Transaction failed'
        assert record['blockNumber'] is None


class TestSessionAggregate:

    def test_strict_append_across_sink_instances(self, tmp_path, session):
        directory = tmp_path / "deployments"

        FileResultSink(directory).record_artifact(succeeded('A'), NETWORK, CHAIN_ID, session)
        FileResultSink(directory).record_artifact(succeeded('B'), NETWORK, CHAIN_ID, session)
        FileResultSink(directory).record_artifact(succeeded('C'), NETWORK, CHAIN_ID, session)

        entries = FileResultSink(directory).load_session(NETWORK, session)
        assert [e['contractName'] for e in entries] == ['A', 'B', 'C']

    def test_sessions_are_separate(self, sink):
        first = SessionContext('session-1', 0.0)
        second = SessionContext('session-2', 0.0)

        sink.record_artifact(succeeded('A'), NETWORK, CHAIN_ID, first)
        sink.record_artifact(succeeded('B'), NETWORK, CHAIN_ID, second)

        assert [e['contractName'] for e in sink.load_session(NETWORK, first)] == ['A']
        assert [e['contractName'] for e in sink.load_session(NETWORK, second)] == ['B']

    def test_unreadable_aggregate_is_moved_aside(self, sink, session):
        session_file = sink.session_file(NETWORK, session)
        session_file.parent.mkdir(parents=True)
        session_file.write_text('{not json')

        sink.record_artifact(succeeded('A'), NETWORK, CHAIN_ID, session)

        assert [e['contractName'] for e in sink.load_session(NETWORK, session)] == ['A']
        backups = list(session_file.parent.glob(f"{session_file.name}.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_text() == '{not json'

    def test_undecodable_aggregate_is_moved_aside(self, sink, session):
        session_file = sink.session_file(NETWORK, session)
        session_file.parent.mkdir(parents=True)
        session_file.write_bytes(b'\xff\xfe garbage')

        sink.record_artifact(succeeded('A'), NETWORK, CHAIN_ID, session)

        assert [e['contractName'] for e in sink.load_session(NETWORK, session)] == ['A']
        backups = list(session_file.parent.glob(f"{session_file.name}.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_bytes() == b'\xff\xfe garbage'


class TestSessionSummary:

    def test_summary_and_latest(self, sink, session):
        results = [succeeded('A'), DeploymentResult.failure('B', 'boom')]

        summary = sink.record_session(results, NETWORK, CHAIN_ID, session)
        latest = read_json(sink.latest_summary_file(NETWORK))

        assert (summary.total, summary.successful, summary.failed) == (2, 1, 1)
        assert latest['total'] == 2
        assert latest['failed'] == 1
        assert latest['chainId'] == str(CHAIN_ID)
        assert [d['contractName'] for d in latest['deployments']] == ['A', 'B']

    def test_latest_is_overwritten(self, sink, session):
        sink.record_session([succeeded('A')], NETWORK, CHAIN_ID, session)
        sink.record_session([succeeded('A'), succeeded('B')], NETWORK, CHAIN_ID, session)

        latest = read_json(sink.latest_summary_file(NETWORK))
        assert latest['total'] == 2

        timestamped = [
            p for p in sink.directory.glob(f"deployment-summary-{NETWORK}-*.json")
            if not p.name.endswith('-latest.json')
        ]
        assert len(timestamped) == 2


# Run tests
if __name__ == "__main__":
    pytest.main([__file__, '-v'])
