"""Outbound messaging channels."""

from .base import BaseEmailChannel
from .resend import ResendEmailChannel
from .resolver import SETUP_GUIDANCE, ChannelResolver

__all__ = [
    "BaseEmailChannel",
    "ChannelResolver",
    "ResendEmailChannel",
    "SETUP_GUIDANCE",
]
