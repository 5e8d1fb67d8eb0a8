"""Resend email channel (https://resend.com)."""

import logging
from typing import Any, Dict, Optional

import httpx

from .base import BaseEmailChannel

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ResendEmailChannel(BaseEmailChannel):

    def __init__(self, settings: Dict[str, Any], http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(settings)
        self.api_key = settings["api_key"]
        self._http = http_client

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        text: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "html": body,
        }
        if text:
            payload["text"] = text
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._http is not None:
                response = await self._http.post(RESEND_API_URL, headers=headers, json=payload, timeout=30.0)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(RESEND_API_URL, headers=headers, json=payload, timeout=30.0)
        except httpx.HTTPError as e:
            logger.error(f"Resend send error: {e}")
            return {"success": False, "error": str(e)}

        if response.status_code in (200, 201):
            message_id = response.json().get("id")
            logger.info(f"Resend sent: {message_id}")
            return {"success": True, "message_id": message_id}
        logger.error(f"Resend send failed: {response.status_code} - {response.text}")
        return {"success": False, "error": f"Resend API error: {response.status_code}"}
