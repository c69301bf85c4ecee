"""Bounded wait for schema agreement after creating the whitelist table."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

logger = structlog.get_logger()

DEFAULT_DELAY_SECONDS = 120.0
DEFAULT_RETRY_INTERVAL_SECONDS = 1.0

LOCAL_VERSION_QUERY = "SELECT schema_version FROM system.local"
PEER_VERSIONS_QUERY = "SELECT peer, schema_version FROM system.peers"


class SchemaAlignmentWaiter:
    """Polls schema versions until every live node agrees.

    The local schema version is compared with the version reported by
    each live peer. Peers the driver considers down are ignored.

    Attributes:
        session: cassandra-driver session.
        delay_seconds: Maximum time to wait before giving up.
        retry_interval_seconds: Pause between polls.
    """

    def __init__(
        self,
        session: Any,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        retry_interval_seconds: float = DEFAULT_RETRY_INTERVAL_SECONDS,
    ) -> None:
        self.session = session
        self.delay_seconds = delay_seconds
        self.retry_interval_seconds = retry_interval_seconds

    async def wait(self) -> bool:
        """Wait for schema agreement.

        Returns:
            True if the schema aligned, False if the delay elapsed first.
            A timeout is logged and is not an error.
        """
        logger.info("schema_alignment_waiting", delay_seconds=self.delay_seconds)
        loop = asyncio.get_running_loop()

        waited = 0.0
        while await self._poll(loop):
            if waited >= self.delay_seconds:
                logger.warning("schema_alignment_timeout", waited_seconds=waited)
                return False
            waited += self.retry_interval_seconds
            await asyncio.sleep(self.retry_interval_seconds)

        logger.info("schema_alignment_complete", waited_seconds=waited)
        return True

    async def _poll(self, loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return await loop.run_in_executor(None, self._is_waiting_on_peers)
        except Exception as e:
            logger.warning("schema_alignment_pending", error=str(e))
            return True

    def _is_waiting_on_peers(self) -> bool:
        local = self.session.execute(LOCAL_VERSION_QUERY).one()
        if local is None or local.schema_version is None:
            return True

        for peer in self.session.execute(PEER_VERSIONS_QUERY):
            if not self._is_live(peer.peer):
                continue
            if peer.schema_version != local.schema_version:
                logger.debug("schema_alignment_pending", peer=str(peer.peer))
                return True
        return False

    def _is_live(self, address: Any) -> bool:
        host = self.session.cluster.metadata.get_host(str(address))
        return host is not None and host.is_up is not False
