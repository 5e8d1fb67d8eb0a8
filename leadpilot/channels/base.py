"""
Base Email Channel - Abstract interface for outbound email delivery.

Channels receive a settings dict (already decrypted) and never query the
store themselves. ``send_email`` reports failures in its result instead of
raising, so a bad recipient does not abort a batch.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class BaseEmailChannel(ABC):
    """
    Settings keys:
        provider: str (resend, ...)
        api_key: str
        from_email: str
        from_name: str (optional)
    """

    name = "email"

    def __init__(self, settings: Dict[str, Any]):
        self.settings = settings
        self.provider = settings["provider"]
        self.from_email = settings.get("from_email", "")
        self.from_name = settings.get("from_name") or ""

    @property
    def sender(self) -> str:
        if self.from_name:
            return f"{self.from_name} <{self.from_email}>"
        return self.from_email

    @abstractmethod
    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        text: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Returns ``{"success": True, "message_id": ...}`` or ``{"success": False, "error": ...}``."""
