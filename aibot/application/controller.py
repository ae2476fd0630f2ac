"""Domain controller for the AI bot service."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from structlog.stdlib import BoundLogger

from ..core.metadata import Metadata, get_metadata
from ..services.storage import DbStorage


class AIBotController:
    """
    Request-handling core bound to the storage.

    The HTTP layer only talks to it through ``describe`` and
    ``storage_available``; ``shutdown`` is called once by teardown.
    """

    def __init__(self, storage: DbStorage, logger: Optional[BoundLogger] = None):
        self.storage = storage
        self.logger = logger or structlog.get_logger("controller")
        self.support_workspace = get_metadata(Metadata.SUPPORT_WORKSPACE_ID)
        self.started_at = datetime.now(timezone.utc)
        self.accepting = True

        self.logger.info("controller_created", support_workspace=self.support_workspace)

    async def storage_available(self) -> bool:
        if not self.accepting:
            return False
        return await self.storage.ping()

    def describe(self) -> Dict[str, Any]:
        return {
            "support_workspace": self.support_workspace,
            "accepting": self.accepting,
            "started_at": self.started_at.isoformat(),
        }

    async def shutdown(self) -> None:
        """Stop taking new work. Storage is closed separately, after this."""
        if not self.accepting:
            return
        self.accepting = False
        self.logger.info("controller_shutdown")
