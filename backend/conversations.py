import logging

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import CONVERSATIONS, USERS, create_document, get_db, get_document, get_documents, object_id, to_str_id, utcnow
from errors import ForbiddenError
from schemas import (
    ConversationStatusPayload,
    Conversation as ConversationSchema,
    CreateConversationPayload,
    Message,
    MessagePayload,
)
from security import get_current_user, is_admin, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])

LATEST_FIRST = [("last_message", -1)]


def find_conversation(db: Database, conversation_id: str, user: dict) -> dict:
    """Load a conversation the user may see: their own, or any for an admin."""
    conversation = get_document(db, CONVERSATIONS, conversation_id, "Conversation")
    if not is_admin(user) and conversation["user_id"] != str(user["_id"]):
        raise ForbiddenError("Not authorized to access this conversation")
    return conversation


def _user_summaries(db: Database, user_ids) -> dict:
    ids = [object_id(i) for i in set(user_ids) if i]
    return {
        str(u["_id"]): {"id": str(u["_id"]), "name": u.get("name"), "email": u.get("email"), "avatar": u.get("avatar")}
        for u in db[USERS].find({"_id": {"$in": ids}})
    }


def with_user(db: Database, conversations: list) -> list:
    users = _user_summaries(db, [c["user_id"] for c in conversations])
    result = []
    for conversation in conversations:
        data = to_str_id(conversation)
        data["user"] = users.get(conversation["user_id"])
        result.append(data)
    return result


def push_message(db: Database, conversation_id, message: Message, extra: dict = None) -> dict:
    now = utcnow()
    return db[CONVERSATIONS].find_one_and_update(
        {"_id": conversation_id},
        {
            "$push": {"messages": message.model_dump()},
            "$set": {"updated_at": now, "last_message": now, **(extra or {})},
        },
        return_document=ReturnDocument.AFTER,
    )


def start_conversation(db: Database, user_id: str, body: CreateConversationPayload) -> dict:
    """Open a support conversation, or continue the user's active one."""
    message = Message(sender="user", text=body.initial_message, created_at=utcnow())
    existing = db[CONVERSATIONS].find_one({"user_id": user_id, "status": "active"})
    if existing:
        return push_message(db, existing["_id"], message)

    conversation = ConversationSchema(
        user_id=user_id,
        title=body.title or "Customer Support",
        messages=[message],
        status="active",
        last_message=message.created_at,
    )
    cid = create_document(db, CONVERSATIONS, conversation)
    logger.info("Conversation %s opened by user %s", cid, user_id)
    return db[CONVERSATIONS].find_one({"_id": object_id(cid)})


def add_message(db: Database, conversation: dict, user: dict, text: str) -> dict:
    admin = is_admin(user)
    message = Message(
        sender="admin" if admin else "user",
        admin_id=str(user["_id"]) if admin else None,
        text=text,
        created_at=utcnow(),
    )
    extra = {}
    # An admin reply picks a pending conversation back up
    if admin and conversation["status"] == "pending":
        extra["status"] = "active"
    return push_message(db, conversation["_id"], message, extra)


def mark_read(db: Database, conversation: dict, user: dict) -> dict:
    """Mark the other side's messages as read."""
    other = "user" if is_admin(user) else "admin"
    # Threads are append-only, so positions in the loaded copy stay valid
    fields = {
        f"messages.{index}.read": True
        for index, message in enumerate(conversation.get("messages", []))
        if message["sender"] == other
    }
    fields["updated_at"] = utcnow()
    return db[CONVERSATIONS].find_one_and_update(
        {"_id": conversation["_id"]},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )


# ========== ROUTES ==========

@router.get("")
def list_conversations(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return with_user(db, get_documents(db, CONVERSATIONS, sort=LATEST_FIRST))


@router.get("/user")
def my_conversations(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    docs = get_documents(db, CONVERSATIONS, {"user_id": str(user["_id"])}, sort=LATEST_FIRST)
    return [to_str_id(d) for d in docs]


@router.get("/{conversation_id}")
def get_conversation(conversation_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return with_user(db, [find_conversation(db, conversation_id, user)])[0]


@router.post("")
def create_conversation(
    body: CreateConversationPayload,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return to_str_id(start_conversation(db, str(user["_id"]), body))


@router.post("/{conversation_id}/message")
def post_message(
    conversation_id: str,
    body: MessagePayload,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    conversation = find_conversation(db, conversation_id, user)
    return to_str_id(add_message(db, conversation, user, body.text))


@router.put("/{conversation_id}/status")
def set_conversation_status(
    conversation_id: str,
    body: ConversationStatusPayload,
    admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    conversation = find_conversation(db, conversation_id, admin)
    updated = db[CONVERSATIONS].find_one_and_update(
        {"_id": conversation["_id"]},
        {"$set": {"status": body.status, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return to_str_id(updated)


@router.put("/{conversation_id}/read")
def read_conversation(conversation_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    conversation = find_conversation(db, conversation_id, user)
    return to_str_id(mark_read(db, conversation, user))
