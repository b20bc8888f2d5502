"""
Session State - Mutable state shared by the validation workflows.
"""

from dataclasses import dataclass

from structlog import get_logger

from purchase_guard.services.store_controller import StoreController

logger = get_logger(__name__)


@dataclass
class SessionState:
    """State living for the process lifetime of one validator."""

    user_id: str = ""
    store: StoreController | None = None  # None until the store is connected

    @property
    def is_connected(self) -> bool:
        return self.store is not None

    def adopt_user_id(self, user_id: str | None) -> bool:
        """Remember a server-assigned user id unless one is already set."""
        if self.user_id or not user_id:
            return False
        self.user_id = user_id
        logger.info("server_user_id_adopted", user_id=user_id)
        return True
