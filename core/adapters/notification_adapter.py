"""Adapter over the local notification stub.

In production, this would fan events out to push/email providers. Here we insert
rows into the in-app inbox table. Delivery is fire-and-forget: emit() schedules
the write for after the surrounding transaction commits, so rolled-back transitions
never notify anyone, and a failing dispatcher never fails the transition.
"""

import logging

from django.conf import settings
from django.db import transaction, DatabaseError
from notify_stub.models import Notification

logger = logging.getLogger(__name__)


class NotificationAdapter:
	"""
	emit() for the services; inbox/mark_read for the read side
	"""

	@staticmethod
	def emit(event: str, user_id, title: str, message: str, link: str = ""):
		if not getattr(settings, "NOTIFICATIONS_ENABLED", True) or user_id is None:
			return
		transaction.on_commit(
			lambda: NotificationAdapter.deliver(event, user_id, title, message, link)
		)

	@staticmethod
	def deliver(event: str, user_id, title: str, message: str, link: str = ""):
		try:
			Notification.objects.create(
				user_id=user_id,
				event=event,
				title=title,
				message=message,
				link=link,
			)
		except DatabaseError:
			# no ack required for correctness; keep a trace for ops
			logger.exception("notification %s for user %s was not delivered", event, user_id)
			return
		logger.debug("notified %s: %s", user_id, event)

	@staticmethod
	def inbox(user_id, unread_only: bool = False) -> list[dict]:
		qs = Notification.objects.filter(user_id=user_id).order_by("-created_at")
		if unread_only:
			qs = qs.filter(is_read=False)
		return [
			{
				"id": str(n.id),
				"event": n.event,
				"title": n.title,
				"message": n.message,
				"link": n.link,
				"is_read": n.is_read,
				"created_at": n.created_at.isoformat(),
			}
			for n in qs[:100]
		]

	@staticmethod
	def mark_read(user_id, notification_id) -> int:
		return Notification.objects.filter(id=notification_id, user_id=user_id, is_read=False).update(is_read=True)

	@staticmethod
	def mark_all_read(user_id) -> int:
		return Notification.objects.filter(user_id=user_id, is_read=False).update(is_read=True)
