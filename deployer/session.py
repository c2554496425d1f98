"""
Deployment Session
Explicit session identity shared by the orchestrator and the result sink
"""

import os
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class SessionContext:
    """
    Identifies one logical deployment session

    Reusing the same session_id across process restarts makes the result
    sink append to the same session record.
    """

    session_id: str
    started_at: float

    @classmethod
    def create(
        cls,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.time
    ) -> 'SessionContext':
        """
        Args:
            session_id: Explicit id (wins over DEPLOYMENT_SESSION_ID)
            clock: Time source in seconds

        Returns:
            New SessionContext
        """
        now = clock()
        resolved = (
            session_id
            or os.getenv('DEPLOYMENT_SESSION_ID')
            or f"session-{int(now * 1000)}"
        )
        return cls(session_id=resolved, started_at=now)
