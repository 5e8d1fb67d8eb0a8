"""Outbound messaging tools."""

import logging
import re
from typing import Any, Dict, List

from ..channels import SETUP_GUIDANCE
from ..errors import ChannelNotConfigured
from .inputs import CheckChannelConfigurationInput, SendEmailInput
from .models import ToolContext, ToolDefinition, ToolServices, error_result

logger = logging.getLogger(__name__)

_TAG = re.compile(r"<[^>]*>")


async def check_channel_configuration(
    args: CheckChannelConfigurationInput, context: ToolContext, services: ToolServices
) -> Dict[str, Any]:
    channels = await services.channels.configured_channels(context.tenant_id)
    missing = [name for name, ok in channels.items() if not ok]
    return {
        "success": True,
        "channels": channels,
        "setup_guidance": {name: SETUP_GUIDANCE[name] for name in missing if name in SETUP_GUIDANCE},
    }


async def send_email(args: SendEmailInput, context: ToolContext, services: ToolServices) -> Dict[str, Any]:
    try:
        channel = await services.channels.email_channel(context.tenant_id)
    except ChannelNotConfigured as e:
        result = error_result(e, "Email is not set up yet, so nothing was sent.")
        result["setup_guidance"] = SETUP_GUIDANCE["email"]
        return result

    text = _TAG.sub("", args.body)
    results: List[Dict[str, Any]] = []
    for recipient in args.to:
        outcome = await channel.send_email(recipient, args.subject, args.body, text=text)
        results.append({"recipient": recipient, **outcome})

    sent = sum(1 for r in results if r.get("success"))
    logger.info(f"send_email: {sent}/{len(args.to)} sent for tenant={context.tenant_id}")
    return {
        "success": sent > 0,
        "sent": sent,
        "failed": len(args.to) - sent,
        "total": len(args.to),
        "results": results,
        "message": f"Sent {sent} of {len(args.to)} email(s)",
    }


MESSAGING_TOOLS = [
    ToolDefinition(
        name="check_channel_configuration",
        description="Check which outbound channels (email, WhatsApp) are configured before sending.",
        input_model=CheckChannelConfigurationInput,
        executor=check_channel_configuration,
        category="messaging",
    ),
    ToolDefinition(
        name="send_email",
        description="Send an email to one or more recipients through the organization's configured email channel.",
        input_model=SendEmailInput,
        executor=send_email,
        category="messaging",
    ),
]
