"""
CI Output
Writes key=value step outputs for GitHub Actions
"""

import os
from typing import Dict, Optional, Sequence

from loguru import logger

from .config import is_ci


class GitHubOutput:
    """Appends to $GITHUB_OUTPUT when running in CI; no-op otherwise"""

    def __init__(self, env: Optional[Dict[str, str]] = None):
        env = os.environ if env is None else env
        self.path = env.get('GITHUB_OUTPUT') if is_ci(env) else None

    @property
    def enabled(self) -> bool:
        return bool(self.path)

    def set(self, key: str, value) -> None:
        if not self.enabled:
            return
        # outputs are line based
        text = str(value).replace('\r', ' ').replace('\n', ' ')
        with open(self.path, 'a') as f:
            f.write(f"{key}={text}\n")

    def set_many(self, values: Dict) -> None:
        for key, value in values.items():
            self.set(key, value)

    def write_results(self, results: Sequence) -> None:
        """Batch totals plus contract_<i>_* lines per result"""
        if not self.enabled:
            return

        successful = sum(1 for r in results if r.success)
        self.set_many({
            'total_contracts': len(results),
            'successful': successful,
            'failed': len(results) - successful,
        })

        for index, result in enumerate(results, start=1):
            prefix = f"contract_{index}_"
            self.set(f"{prefix}name", result.name)
            self.set(f"{prefix}success", str(result.success).lower())

            optional = {
                'tx_hash': result.transaction_hash,
                'block_number': result.block_number,
                'address': result.resolved_address,
                'gas_used': result.gas_used,
                'error': result.error,
            }
            for key, value in optional.items():
                if value is not None:
                    self.set(f"{prefix}{key}", value)

        logger.debug(f"Wrote {len(results)} result(s) to GITHUB_OUTPUT")
