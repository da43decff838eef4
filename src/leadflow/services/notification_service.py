"""
Lead event notifications: payload builders and delivery
"""
from datetime import datetime
from typing import Iterable, List, Optional

import httpx
from pydantic import BaseModel, Field

from leadflow.core.config import settings
from leadflow.external.push.client import PushClient
from leadflow.services.scheduling import get_zone
from leadflow.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_EMOJI = {
    "scheduled": "📅",
    "rescheduled": "🔄",
    "accepted": "✅",
    "in_process": "🔄",
    "completed": "💰",
    "needs_verification": "⚠️",
}


class PushNotification(BaseModel):
    """One notification addressed to a set of users"""
    user_ids: List[str]
    title: str
    body: str
    tag: str
    data: dict = Field(default_factory=dict)


def _data(kind: str, lead, **extra) -> dict:
    data = {"type": kind, "leadId": lead.id, "actionUrl": settings.notifications.action_url}
    data.update({k: v for k, v in extra.items() if v is not None})
    return data


class LeadNotifications:
    """Builders for the lead event notifications"""

    @staticmethod
    def new_lead(lead, user_id: Optional[str]) -> PushNotification:
        return PushNotification(
            user_ids=[user_id] if user_id else [],
            title="🔥 New Lead!",
            body=f"{lead.customer_name} from {lead.address} - {lead.customer_phone}",
            tag=f"new-lead-{lead.id}",
            data=_data("new_lead", lead),
        )

    @staticmethod
    def lead_assigned(lead, user_id: str) -> PushNotification:
        return PushNotification(
            user_ids=[user_id],
            title="📋 Lead Assigned to You",
            body=f"{lead.customer_name} has been assigned to you",
            tag=f"assigned-{lead.id}",
            data=_data("lead_assigned", lead),
        )

    @staticmethod
    def job_accepted(lead, setter_id: str, closer_name: str) -> PushNotification:
        return PushNotification(
            user_ids=[setter_id],
            title="✅ Job Accepted!",
            body=f"{closer_name} has accepted the job for {lead.customer_name}",
            tag=f"accepted-{lead.id}",
            data=_data("job_accepted", lead, closerName=closer_name),
        )

    @staticmethod
    def lead_updated(lead, user_id: str, new_status: str) -> PushNotification:
        emoji = STATUS_EMOJI.get(new_status, "📋")
        return PushNotification(
            user_ids=[user_id],
            title=f"{emoji} Lead Updated",
            body=f"{lead.customer_name} - Status changed to {new_status}",
            tag=f"updated-{lead.id}",
            data=_data("lead_updated", lead, status=new_status),
        )

    @staticmethod
    def appointment_reminder(lead, user_id: str, appointment_time: datetime) -> PushNotification:
        local_time = appointment_time.astimezone(get_zone(settings.dispatch.timezone))
        time_string = local_time.strftime("%I:%M %p").lstrip("0")
        return PushNotification(
            user_ids=[user_id],
            title="⏰ Appointment Reminder",
            body=f"Appointment with {lead.customer_name} at {time_string}",
            tag=f"reminder-{lead.id}",
            data=_data("appointment_reminder", lead, appointmentTime=appointment_time.isoformat()),
        )


async def deliver_notifications(
    notifications: Iterable[PushNotification],
    client: Optional[PushClient] = None,
) -> int:
    """
    Send queued notifications. Failures are logged and never propagate:
    a lead update must not fail because a device could not be reached.

    Returns:
        Number of notifications the gateway accepted
    """
    client = client or PushClient()
    delivered = 0
    for notification in notifications:
        if not notification.user_ids:
            logger.warning(f"[yellow]⚠️  No recipients for notification {notification.tag}[/yellow]")
            continue
        try:
            result = await client.send(notification.model_dump())
            if result is not None:
                delivered += 1
        except httpx.HTTPError as e:
            logger.error(f"[red]❌ Error sending notification {notification.tag}:[/red] {e}")
    return delivered
