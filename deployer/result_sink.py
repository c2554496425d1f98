"""
Result Sink
Durable JSON records for deployment results and session summaries
"""

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

from loguru import logger

from .models import DeploymentResult, SessionSummary, utc_timestamp
from .session import SessionContext


def _safe_name(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in name)


class FileResultSink:
    """
    Writes one file per artifact result, a per-session aggregate and
    per-batch summaries under a deployments directory.

    Only `deployment-summary-<network>-latest.json` is ever overwritten.
    """

    def __init__(self, directory: Union[str, Path] = "deployments"):
        """
        Initialize Result Sink

        Args:
            directory: Output directory (created on first write)
        """
        self.directory = Path(directory)

    def session_file(self, network: str, session: SessionContext) -> Path:
        return self.directory / f"deployments-{_safe_name(network)}-{_safe_name(session.session_id)}.json"

    def latest_summary_file(self, network: str) -> Path:
        return self.directory / f"deployment-summary-{_safe_name(network)}-latest.json"

    def record_artifact(
        self,
        result: DeploymentResult,
        network: str,
        chain_id: int,
        session: SessionContext
    ) -> Path:
        """
        Persist one artifact result

        Writes <name>-<epoch ms>.json (never overwriting) and appends the
        same record to the session aggregate.

        Returns:
            Path of the per-artifact file
        """
        self.directory.mkdir(parents=True, exist_ok=True)

        record = self._artifact_record(result, network, chain_id, session)

        contract_file = self._unique_path(f"{_safe_name(result.name)}-{self._now_ms()}")
        self._write_json(contract_file, record)
        logger.info(f"💾 Saved deployment data to: {contract_file}")

        session_file = self.session_file(network, session)
        entries = self._read_session_entries(session_file)
        entries.append(record)
        self._write_json(session_file, entries)
        logger.info(f"💾 Updated session file: {session_file} ({len(entries)} record(s))")

        return contract_file

    def record_session(
        self,
        results: Sequence[DeploymentResult],
        network: str,
        chain_id: int,
        session: SessionContext
    ) -> SessionSummary:
        """
        Persist the summary of one batch

        Writes a timestamped summary and overwrites the "latest" copy for the network.
        """
        self.directory.mkdir(parents=True, exist_ok=True)

        summary = SessionSummary.from_results(results, network, chain_id, session.session_id)
        record = summary.to_record()

        summary_file = self._unique_path(f"deployment-summary-{_safe_name(network)}-{self._now_ms()}")
        self._write_json(summary_file, record)
        logger.info(f"💾 Saved deployment summary to: {summary_file}")

        latest_file = self.latest_summary_file(network)
        self._write_json(latest_file, record)
        logger.info(f"💾 Saved latest summary to: {latest_file}")

        return summary

    def load_session(self, network: str, session: SessionContext) -> List[Dict[str, Any]]:
        """Read back the aggregate for a session ([] if none)"""
        return self._read_session_entries(self.session_file(network, session), quarantine=False)

    def _artifact_record(
        self,
        result: DeploymentResult,
        network: str,
        chain_id: int,
        session: SessionContext
    ) -> Dict[str, Any]:
        record = result.to_record()
        record.update({
            'timestamp': utc_timestamp(),
            'network': network,
            'chainId': str(chain_id),
            'sessionId': session.session_id,
        })
        return record

    def _read_session_entries(self, path: Path, quarantine: bool = True) -> List[Dict[str, Any]]:
        if not path.exists():
            return []

        try:
            with open(path, 'r') as f:
                entries = json.load(f)
            if isinstance(entries, list):
                return entries
            logger.warning(f"Session file {path} does not hold a list")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read session file {path}: {e}")

        if quarantine:
            # keep the unreadable file instead of overwriting it
            backup = path.with_name(f"{path.name}.corrupt-{self._now_ms()}")
            os.replace(path, backup)
            logger.warning(f"Moved unreadable session file to {backup}, starting a new one")

        return []

    def _unique_path(self, stem: str) -> Path:
        candidate = self.directory / f"{stem}.json"
        counter = 1
        while candidate.exists():
            candidate = self.directory / f"{stem}-{counter}.json"
            counter += 1
        return candidate

    def _write_json(self, path: Path, data: Any) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
