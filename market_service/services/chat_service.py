from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from market_service.db import db
from market_service.errors import BadRequest, Forbidden, NotFound
from market_service.models import Conversation, ConversationParticipant, Message, UserRole
from market_service.services.catalog import get_user
from market_service.utils.responses import commit_or_rollback


def _role(value) -> UserRole:
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        raise BadRequest("Invalid user role for chat.")


def pair_key(user_a: int, user_b: int) -> str:
    low, high = sorted((int(user_a), int(user_b)))
    return f"{low}:{high}"


def _load_conversation(conversation_id) -> Conversation:
    conv: Optional[Conversation] = db.session.get(Conversation, conversation_id) if conversation_id else None
    if not conv:
        raise NotFound("Conversation not found.")
    return conv


def _require_participant(conv: Conversation, user_id: int) -> ConversationParticipant:
    part = conv.participant(user_id)
    if part is None:
        raise Forbidden("You are not a participant in this conversation.")
    return part


def is_well_formed(conv: Conversation, user_id: int, role) -> bool:
    """Exactly two participants: the caller with ``role`` and one of the other role."""
    role = _role(role)
    if len(conv.participants) != 2:
        return False
    me = conv.participant(user_id)
    if me is None or me.role != role:
        return False
    other = next((p for p in conv.participants if p.user_id != user_id), None)
    return other is not None and other.role != role


def has_unread(conv: Conversation, user_id: int) -> bool:
    if conv.last_message_id is None:
        return False
    part = conv.participant(user_id)
    last_read = part.last_read_message_id if part else None
    return last_read != conv.last_message_id


def find_by_pair(key: str) -> Optional[Conversation]:
    return Conversation.query.filter_by(pair_key=key).first()


# ---------- Conversations ----------
def get_or_create_conversation(user_a: int, role_a, user_b) -> Conversation:
    """Return the thread between two people, creating it on first contact.

    Threads are keyed by the pair only: every product discussed between the
    same buyer and artisan shares one conversation.
    """
    role_a = _role(role_a)
    try:
        user_b = int(user_b)
    except (TypeError, ValueError):
        raise BadRequest("user_id of the other participant is required.")
    if user_b == int(user_a):
        raise BadRequest("Cannot start a conversation with yourself.")

    other = get_user(user_b)
    if other.role == role_a:
        raise BadRequest("A conversation needs one buyer and one artisan.")

    key = pair_key(user_a, other.id)
    existing = find_by_pair(key)
    if existing:
        return existing

    conv = Conversation(pair_key=key)
    conv.participants = [
        ConversationParticipant(user_id=int(user_a), role=role_a, position=0),
        ConversationParticipant(user_id=other.id, role=other.role, position=1),
    ]
    db.session.add(conv)
    try:
        db.session.commit()
    except IntegrityError:
        # Another request created the same pair first
        db.session.rollback()
        existing = find_by_pair(key)
        if existing is None:
            raise
        return existing

    current_app.logger.info("conversation %s created for pair %s", conv.id, key)
    return conv


def get_conversation(conversation_id, caller_id: int) -> Conversation:
    conv = _load_conversation(conversation_id)
    _require_participant(conv, caller_id)
    return conv


def list_conversations(user_id: int, role) -> list[tuple[Conversation, int]]:
    """Caller's conversations, newest activity first, each with its unread flag (0/1)."""
    convs = (
        Conversation.query.join(ConversationParticipant)
        .filter(ConversationParticipant.user_id == user_id)
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        .all()
    )
    return [
        (c, 1 if has_unread(c, user_id) else 0)
        for c in convs
        if is_well_formed(c, user_id, role)
    ]


def unread_count(user_id: int, role) -> int:
    """Number of threads (not messages) with activity the caller has not seen."""
    return sum(unread for _, unread in list_conversations(user_id, role))


# ---------- Messages ----------
def send_message(conversation_id, sender_id: int, content) -> Message:
    if not conversation_id or not isinstance(content, str) or not content.strip():
        raise BadRequest("Conversation ID and message content are required.")

    conv = _load_conversation(conversation_id)
    sender = _require_participant(conv, sender_id)

    msg = Message(
        conversation_id=conv.id,
        sender_id=sender_id,
        sender_role=sender.role,
        content=content,
    )
    db.session.add(msg)
    db.session.flush()

    # The sender has read their own message; everyone else is now behind.
    conv.last_message_id = msg.id
    for part in conv.participants:
        part.last_read_message_id = msg.id if part.user_id == sender_id else None
    commit_or_rollback()
    return msg


def latest_message(conversation_id: int) -> Optional[Message]:
    return (
        Message.query.filter_by(conversation_id=conversation_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .first()
    )


def mark_read(conversation_id, user_id: int, role=None) -> Optional[Message]:
    """Move the caller's pointer to the newest message of the conversation.

    ``role`` is accepted for interface parity; pointers are keyed by user id.
    """
    if role is not None:
        _role(role)
    conv = _load_conversation(conversation_id)
    part = _require_participant(conv, user_id)

    newest = latest_message(conv.id)
    if newest is not None:
        part.last_read_message_id = newest.id
        commit_or_rollback()
    return newest


def list_messages(conversation_id, caller_id: int) -> list[Message]:
    conv = _load_conversation(conversation_id)
    _require_participant(conv, caller_id)
    return (
        Message.query.filter_by(conversation_id=conv.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
