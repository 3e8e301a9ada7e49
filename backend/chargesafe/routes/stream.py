# Overview: Server-sent events stream of the shop's change feed.

# backend/chargesafe/routes/stream.py
"""
Live updates

Every terminal of a shop keeps one EventSource open on /api/stream and
re-renders its lists when a record changes. EventSource cannot set
headers, so the session token may also arrive as ?token=.

A "resync" event means the subscriber fell behind; the client reloads
its lists instead of replaying missed events.
"""

import json

from flask import Blueprint, Response, request, jsonify, current_app, stream_with_context

from ..decorators import bearer_token
from ..extensions import change_feed
from ..services import session_service


stream_bp = Blueprint("stream", __name__, url_prefix="/api")


def format_sse(event: dict) -> str:
    return f"event: {event['collection']}\ndata: {json.dumps(event)}\n\n"


@stream_bp.get("/stream")
def stream_route():
    """
    Query params:
    - token: session token (when no Authorization header is sent)
    - collections: comma separated filter, e.g. devices,slots
    """
    token = bearer_token() or request.args.get("token")
    context = session_service.validate_session(token) if token else None
    if not context:
        return jsonify({"error": "Authentication required"}), 401

    collections = [c.strip() for c in request.args.get("collections", "").split(",") if c.strip()]
    try:
        subscription = change_feed.subscribe(context.shop_id, collections)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    heartbeat = current_app.config["STREAM_HEARTBEAT_SECONDS"]
    current_app.logger.info("Stream opened for shop %s (subscription %s)", context.shop_id, subscription.id)

    def generate():
        with subscription:
            yield ": connected\n\n"
            for event in subscription.iter(timeout=heartbeat):
                if event is None:
                    yield ": keep-alive\n\n"
                else:
                    yield format_sse(event)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
