from flask import Blueprint, request

from market_service.auth_mw import require_user
from market_service.db import db
from market_service.models import Conversation, Message
from market_service.services import chat_service
from market_service.utils.responses import ok, iso

bp = Blueprint("chat", __name__)


def _message_json(m: Message):
    return {
        "id": m.id,
        "conversation_id": m.conversation_id,
        "sender_id": m.sender_id,
        "sender_name": m.sender.name if m.sender else None,
        "sender_model": m.sender_model,
        "content": m.content,
        "created_at": iso(m.created_at),
    }


def _conversation_json(c: Conversation):
    last = db.session.get(Message, c.last_message_id) if c.last_message_id else None
    return {
        "id": c.id,
        "participants": [
            {
                "id": p.user_id,
                "name": p.user.name if p.user else None,
                "role": p.role.value,
                "participant_model": p.participant_model,
                "last_read_message_id": p.last_read_message_id,
            }
            for p in c.participants
        ],
        "participant_model": [p.participant_model for p in c.participants],
        "last_message": _message_json(last) if last else None,
        "created_at": iso(c.created_at),
        "updated_at": iso(c.updated_at),
    }


# ---------- Conversations ----------
@bp.post("/conversations")
@require_user()
def create_or_get_conversation(actor):
    d = request.get_json(silent=True) or {}
    conv = chat_service.get_or_create_conversation(actor.id, actor.role, d.get("user_id"))
    return ok({"conversation_id": conv.id})


@bp.get("/conversations")
@require_user()
def list_conversations(actor):
    items = []
    for conv, unread in chat_service.list_conversations(actor.id, actor.role):
        data = _conversation_json(conv)
        data["unread_count"] = unread
        items.append(data)
    return ok(items)


@bp.get("/conversations/unread-count")
@require_user()
def unread_count(actor):
    return ok({"unread_count": chat_service.unread_count(actor.id, actor.role)})


@bp.get("/conversations/<int:conversation_id>")
@require_user()
def conversation_details(conversation_id: int, actor):
    return ok(_conversation_json(chat_service.get_conversation(conversation_id, actor.id)))


@bp.get("/conversations/<int:conversation_id>/messages")
@require_user()
def list_messages(conversation_id: int, actor):
    return ok([_message_json(m) for m in chat_service.list_messages(conversation_id, actor.id)])


@bp.patch("/conversations/<int:conversation_id>/read")
@require_user()
def mark_read(conversation_id: int, actor):
    chat_service.mark_read(conversation_id, actor.id, actor.role)
    return ok({"msg": "Conversation marked as read."})


# ---------- Messages ----------
@bp.post("/messages")
@require_user()
def send_message(actor):
    d = request.get_json(silent=True) or {}
    msg = chat_service.send_message(d.get("conversation_id"), actor.id, d.get("content"))
    return ok(_message_json(msg), 201)
