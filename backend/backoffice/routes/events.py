# backend/backoffice/routes/events.py
"""
Real-time channels over Server-Sent Events.

GET /api/events/inventory       stock changes (sales, voids, adjustments)
GET /api/events/point-of-sale   completed / voided sales, added payments

Each connection is one ChannelBroadcaster subscription; a slow client
loses events once its queue is full rather than slowing down sales.
"""
import json

from flask import Blueprint, Response, current_app, jsonify, stream_with_context

from ..services.notification_service import VALID_CHANNELS, ChannelBroadcaster, ChannelEvent, get_notifier


events_bp = Blueprint("events", __name__, url_prefix="/api/events")


def format_sse(event: ChannelEvent) -> str:
    return (
        f"id: {event.event_id}\n"
        f"event: {event.event}\n"
        f"data: {json.dumps(event.to_dict(), separators=(',', ':'))}\n\n"
    )


@events_bp.get("/<channel>")
def stream_channel_route(channel: str):
    if channel not in VALID_CHANNELS:
        return jsonify({"error": "Unknown channel", "details": {"channels": list(VALID_CHANNELS)}}), 404

    notifier = get_notifier()
    if not isinstance(notifier, ChannelBroadcaster):
        return jsonify({"error": "Real-time events are disabled"}), 404

    keepalive = current_app.config["POS_EVENT_KEEPALIVE_SECONDS"]

    def generate():
        # subscribe on first read so an unread body leaves nothing registered
        subscription = notifier.subscribe(channel)
        current_app.logger.debug("SSE subscriber joined %s", channel)
        try:
            yield "retry: 3000\n\n"
            while True:
                event = subscription.get(timeout=keepalive)
                if event is None:
                    yield ": keepalive\n\n"
                    continue
                yield format_sse(event)
        finally:
            subscription.close()

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
