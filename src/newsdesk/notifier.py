"""
Rebuild signal for the static site, sent after article mutations.
"""

import logging
from typing import TYPE_CHECKING

from .config import PublishConfig
from .exceptions import APIError

if TYPE_CHECKING:
    from .api_client import TreeClient


logger = logging.getLogger(__name__)


class PublishNotifier:
    """
    Fires a ``repository_dispatch`` event on the site repository.

    Best effort: a failed signal is logged and reported through the return
    value, never raised, so it cannot turn a stored write into a failure.
    """

    def __init__(self, tree: "TreeClient", config: PublishConfig) -> None:
        self._tree = tree
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def notify(self) -> bool:
        """Send the signal. Returns whether the remote accepted it."""
        if not self.enabled:
            logger.warning("No rebuild target configured, skipping rebuild signal")
            return False

        endpoint = f"repos/{self.config.owner}/{self.config.repo}/dispatches"
        payload = {
            "event_type": self.config.event_type,
            "client_payload": {"triggered_by": self.config.source},
        }
        try:
            self._tree.request("POST", endpoint, json=payload)
        except APIError as exc:
            logger.error("Failed to trigger rebuild of %s/%s: %s", self.config.owner, self.config.repo, exc)
            return False

        logger.info("Triggered rebuild of %s/%s", self.config.owner, self.config.repo)
        return True
