"""HTTP endpoints for the notification stub mirroring an inbox surface"""

from django.http import JsonResponse, HttpResponseBadRequest
from django.views.decorators.csrf import csrf_exempt
from core.adapters.notification_adapter import NotificationAdapter


def inbox(request, user_id):
	"""
	GET: Newest-first notifications for a user (?unread=1 to filter)
	"""
	unread_only = request.GET.get("unread") in ("1", "true")
	return JsonResponse(NotificationAdapter.inbox(user_id, unread_only=unread_only), safe=False)


@csrf_exempt
def mark_read(request, user_id, notification_id):
	"""
	POST: Mark one notification as read
	"""
	if request.method != "POST":
		return HttpResponseBadRequest("POST only")
	updated = NotificationAdapter.mark_read(user_id, notification_id)
	return JsonResponse({"updated": updated})


@csrf_exempt
def mark_all_read(request, user_id):
	"""
	POST: Mark every unread notification of the user as read
	"""
	if request.method != "POST":
		return HttpResponseBadRequest("POST only")
	updated = NotificationAdapter.mark_all_read(user_id)
	return JsonResponse({"updated": updated})
