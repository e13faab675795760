"""
Order placement.

place_order runs four steps in sequence:

1. validate_stock   - read-only; every line must reference an existing product
                      with enough stock, otherwise nothing is written.
2. write_order      - inserts the order with a value copy of the lines.
3. decrement_stock  - one conditional $inc per product. The condition
                      `stock >= quantity` keeps stock from going negative when
                      two checkouts race for the last units; the loser gets
                      InsufficientStockError, its earlier decrements are given
                      back and its order is deleted.
4. clear_cart       - empties the buyer's cart.

There is no multi-document transaction. A store failure after step 2 leaves
the steps already applied in place and is reported as a server error.
"""
import logging
from typing import Dict, List

from pymongo import ReturnDocument
from pymongo.database import Database

from database import CARTS, ORDERS, PRODUCTS, create_document, object_id, utcnow
from errors import InsufficientStockError, NotFoundError
from schemas import CreateOrderPayload, Order as OrderSchema, OrderItem, PaymentInfo

logger = logging.getLogger(__name__)

PAYMENT_INFO_METHODS = ("bank_transfer", "paypal")


def _requested_quantities(items) -> Dict[str, int]:
    totals = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def order_total(items) -> float:
    return round(sum(item.price * item.quantity for item in items), 2)


def validate_stock(db: Database, items) -> Dict[str, dict]:
    """Check every line against current stock and return the products by id.

    Lines for the same product (e.g. two sizes) are checked against their
    combined quantity.
    """
    products = {}
    for product_id, quantity in _requested_quantities(items).items():
        product = db[PRODUCTS].find_one({"_id": object_id(product_id, "Product")})
        if not product:
            raise NotFoundError("Product", product_id)
        if product.get("stock", 0) < quantity:
            raise InsufficientStockError(product_id, product.get("stock", 0), quantity, product.get("name"))
        products[product_id] = product
    return products


def write_order(db: Database, user_id: str, payload: CreateOrderPayload, products: Dict[str, dict]) -> str:
    items = [
        OrderItem(
            product_id=item.product_id,
            name=products[item.product_id].get("name"),
            quantity=item.quantity,
            price=item.price,
            size=item.size,
            color=item.color,
        )
        for item in payload.items
    ]
    total = order_total(payload.items)
    if payload.total_amount is not None and abs(payload.total_amount - total) > 0.01:
        logger.warning(
            "Client total %.2f for user %s differs from computed %.2f; using computed",
            payload.total_amount, user_id, total,
        )

    payment_info = None
    if payload.payment_info and payload.payment_method in PAYMENT_INFO_METHODS:
        payment_info = PaymentInfo(
            **payload.payment_info.model_dump(exclude_none=True),
            verification_status="pending",
        )
        if payment_info.date_created is None:
            payment_info.date_created = utcnow()

    order = OrderSchema(
        user_id=user_id,
        items=items,
        total_amount=total,
        shipping_address=payload.shipping_address,
        payment_method=payload.payment_method,
        payment_info=payment_info,
        payment_status="pending",
        order_status="pending",
    )
    return create_document(db, ORDERS, order)


def decrement_stock(db: Database, items) -> None:
    applied: List[tuple] = []
    for product_id, quantity in _requested_quantities(items).items():
        oid = object_id(product_id, "Product")
        updated = db[PRODUCTS].find_one_and_update(
            {"_id": oid, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is not None:
            applied.append((oid, quantity))
            continue

        _restore_stock(db, applied)
        current = db[PRODUCTS].find_one({"_id": oid})
        if current is None:
            raise NotFoundError("Product", product_id)
        raise InsufficientStockError(product_id, current.get("stock", 0), quantity, current.get("name"))


def _restore_stock(db: Database, applied: List[tuple]) -> None:
    for oid, quantity in applied:
        db[PRODUCTS].update_one({"_id": oid}, {"$inc": {"stock": quantity}})
    if applied:
        logger.warning("Restored stock for %d product(s) after a failed checkout", len(applied))


def clear_cart(db: Database, user_id: str) -> None:
    """Empty the user's cart. Calling it on an empty or missing cart is a no-op."""
    db[CARTS].update_one(
        {"user_id": user_id},
        {"$set": {"items": [], "total_amount": 0, "updated_at": utcnow()}},
    )


def place_order(db: Database, user_id: str, payload: CreateOrderPayload) -> dict:
    products = validate_stock(db, payload.items)
    order_id = write_order(db, user_id, payload, products)
    try:
        decrement_stock(db, payload.items)
    except (InsufficientStockError, NotFoundError):
        db[ORDERS].delete_one({"_id": object_id(order_id)})
        logger.warning("Order %s withdrawn: stock changed during checkout", order_id)
        raise
    clear_cart(db, user_id)
    logger.info("Order %s placed by user %s", order_id, user_id)
    return db[ORDERS].find_one({"_id": object_id(order_id)})
