import logging

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from checkout import place_order
from database import ORDERS, USERS, get_db, get_document, get_documents, object_id, to_str_id, utcnow
from errors import ForbiddenError, InvalidRequestError
from schemas import (
    CreateOrderPayload,
    DeliveryInfo,
    DeliveryUpdate,
    OrderStatusUpdate,
    PaymentVerificationPayload,
)
from security import get_current_user, is_admin, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])

NEWEST_FIRST = [("created_at", -1)]


def find_order(db: Database, order_id: str) -> dict:
    return get_document(db, ORDERS, order_id, "Order")


def attach_users(db: Database, orders: list) -> list:
    """Replace user_id with a {id, name, email} summary on each order."""
    ids = {o["user_id"] for o in orders}
    users = {
        str(u["_id"]): {"id": str(u["_id"]), "name": u.get("name"), "email": u.get("email")}
        for u in db[USERS].find({"_id": {"$in": [object_id(i) for i in ids]}})
    }
    result = []
    for order in orders:
        data = to_str_id(order)
        data["user"] = users.get(order["user_id"])
        result.append(data)
    return result


def _save(db: Database, order_id, fields: dict) -> dict:
    fields["updated_at"] = utcnow()
    return db[ORDERS].find_one_and_update(
        {"_id": order_id},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )


def update_status(db: Database, order_id: str, body: OrderStatusUpdate) -> dict:
    order = find_order(db, order_id)
    fields = {}
    if body.order_status:
        fields["order_status"] = body.order_status
    if body.payment_status:
        fields["payment_status"] = body.payment_status
    if body.tracking_number:
        delivery = DeliveryInfo(**(order.get("delivery_info") or {}))
        delivery.tracking_number = body.tracking_number
        fields["delivery_info"] = delivery.model_dump()
    return _save(db, order["_id"], fields)


def verify_payment(db: Database, order_id: str, admin_id: str, body: PaymentVerificationPayload) -> dict:
    order = find_order(db, order_id)
    if not order.get("payment_info"):
        raise InvalidRequestError("No payment information available for this order", "payment_info")

    fields = {
        "payment_info.verification_status": body.verification_status,
        "payment_info.verified_by": admin_id,
        "payment_info.verified_at": utcnow(),
    }
    if body.verification_notes:
        fields["payment_info.verification_notes"] = body.verification_notes

    if body.verification_status == "verified":
        fields["payment_status"] = "completed"
        if order["order_status"] == "pending":
            fields["order_status"] = "processing"
    elif body.verification_status == "rejected":
        fields["payment_status"] = "failed"
    return _save(db, order["_id"], fields)


def update_delivery(db: Database, order_id: str, admin_id: str, body: DeliveryUpdate) -> dict:
    order = find_order(db, order_id)
    delivery = DeliveryInfo(**(order.get("delivery_info") or {}))
    delivery = delivery.model_copy(update={
        **body.model_dump(exclude_none=True),
        "assigned_by": admin_id,
        "assigned_at": utcnow(),
    })
    fields = {"delivery_info": delivery.model_dump()}
    if order["order_status"] == "processing":
        fields["order_status"] = "shipped"
    return _save(db, order["_id"], fields)


# ========== ROUTES ==========

@router.get("")
def list_orders(admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return attach_users(db, get_documents(db, ORDERS, sort=NEWEST_FIRST))


@router.get("/myorders")
def my_orders(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    docs = get_documents(db, ORDERS, {"user_id": str(user["_id"])}, sort=NEWEST_FIRST)
    return [to_str_id(d) for d in docs]


@router.get("/{order_id}")
def get_order(order_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    order = find_order(db, order_id)
    if order["user_id"] != str(user["_id"]) and not is_admin(user):
        raise ForbiddenError("Not authorized to view this order")
    return attach_users(db, [order])[0]


@router.post("", status_code=201)
def create_order(body: CreateOrderPayload, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return to_str_id(place_order(db, str(user["_id"]), body))


@router.put("/{order_id}/status")
def set_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return to_str_id(update_status(db, order_id, body))


@router.put("/{order_id}/verify-payment")
def set_payment_verification(
    order_id: str,
    body: PaymentVerificationPayload,
    admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return to_str_id(verify_payment(db, order_id, str(admin["_id"]), body))


@router.put("/{order_id}/delivery")
def set_delivery(
    order_id: str,
    body: DeliveryUpdate,
    admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return to_str_id(update_delivery(db, order_id, str(admin["_id"]), body))


@router.delete("/{order_id}")
def delete_order(order_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    order = find_order(db, order_id)
    db[ORDERS].delete_one({"_id": order["_id"]})
    logger.info("Order %s removed by %s", order_id, admin["_id"])
    return {"msg": "Order removed"}
