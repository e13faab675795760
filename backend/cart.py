import logging
from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo.database import Database

from database import CARTS, PRODUCTS, get_db, to_str_id, utcnow
from errors import InsufficientStockError, NotFoundError
from products import find_product
from schemas import Cart as CartSchema, CartItem, CartItemPayload, CartQuantityPayload
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users/cart", tags=["cart"])


def cart_total(items: List[dict]) -> float:
    return round(sum(item["price"] * item["quantity"] for item in items), 2)


def get_or_create_cart(db: Database, user_id: str) -> dict:
    cart = db[CARTS].find_one({"user_id": user_id})
    if cart:
        return cart
    logger.info("No cart found, creating new cart for user %s", user_id)
    now = utcnow()
    # Upsert so concurrent first requests share one cart
    db[CARTS].update_one(
        {"user_id": user_id},
        {"$setOnInsert": {**CartSchema(user_id=user_id).model_dump(), "created_at": now, "updated_at": now}},
        upsert=True,
    )
    return db[CARTS].find_one({"user_id": user_id})


def save_cart(db: Database, cart: dict) -> dict:
    """Persist the cart items, recomputing total_amount."""
    cart["total_amount"] = cart_total(cart["items"])
    cart["updated_at"] = utcnow()
    db[CARTS].update_one(
        {"user_id": cart["user_id"]},
        {"$set": {
            "items": cart["items"],
            "total_amount": cart["total_amount"],
            "updated_at": cart["updated_at"],
        }},
        upsert=True,
    )
    return cart


def populate_cart(db: Database, cart: dict) -> dict:
    """Attach the current product document to every cart line."""
    ids = []
    for item in cart["items"]:
        if ObjectId.is_valid(item["product_id"]):
            ids.append(ObjectId(item["product_id"]))
    products = {
        str(p["_id"]): to_str_id(p)
        for p in db[PRODUCTS].find({"_id": {"$in": ids}}, {"ratings": 0})
    }
    data = to_str_id(cart)
    data["items"] = [{**item, "product": products.get(item["product_id"])} for item in cart["items"]]
    return data


def _find_item(cart: dict, item_id: str) -> dict:
    for item in cart["items"]:
        if item["item_id"] == item_id:
            return item
    raise NotFoundError("Cart item", item_id)


def add_item(db: Database, user_id: str, body: CartItemPayload) -> dict:
    product = find_product(db, body.product_id)
    if product["stock"] < body.quantity:
        raise InsufficientStockError(body.product_id, product["stock"], body.quantity, product.get("name"))

    cart = get_or_create_cart(db, user_id)
    existing = None
    for item in cart["items"]:
        if item["product_id"] == body.product_id and item.get("size") == body.size and item.get("color") == body.color:
            existing = item
            break

    new_quantity = body.quantity + (existing["quantity"] if existing else 0)
    if new_quantity > product["stock"]:
        raise InsufficientStockError(
            body.product_id,
            product["stock"],
            new_quantity,
            product.get("name"),
            cart_quantity=existing["quantity"] if existing else 0,
        )

    if existing:
        existing["quantity"] = new_quantity
    else:
        price = body.price if body.price is not None else product["price"]
        line = CartItem(
            item_id=str(ObjectId()),
            product_id=body.product_id,
            quantity=body.quantity,
            price=price,
            size=body.size,
            color=body.color,
        )
        cart["items"].append(line.model_dump())
    return save_cart(db, cart)


def update_item(db: Database, user_id: str, item_id: str, quantity: int) -> dict:
    """Set a line's quantity; zero or less removes the line."""
    cart = db[CARTS].find_one({"user_id": user_id})
    if not cart:
        raise NotFoundError("Cart")
    item = _find_item(cart, item_id)
    product = find_product(db, item["product_id"])

    if quantity > 0 and quantity > product["stock"]:
        raise InsufficientStockError(item["product_id"], product["stock"], quantity, product.get("name"))

    if quantity <= 0:
        cart["items"].remove(item)
    else:
        item["quantity"] = quantity
    return save_cart(db, cart)


def remove_item(db: Database, user_id: str, item_id: str) -> dict:
    cart = db[CARTS].find_one({"user_id": user_id})
    if not cart:
        raise NotFoundError("Cart")
    cart["items"] = [item for item in cart["items"] if item["item_id"] != item_id]
    return save_cart(db, cart)


# ========== ROUTES ==========

@router.get("")
def get_cart(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = get_or_create_cart(db, str(user["_id"]))
    return populate_cart(db, cart)


@router.post("")
def add_to_cart(body: CartItemPayload, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = add_item(db, str(user["_id"]), body)
    return populate_cart(db, cart)


@router.put("/{item_id}")
def update_cart_item(
    item_id: str,
    body: CartQuantityPayload,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    cart = update_item(db, str(user["_id"]), item_id, body.quantity)
    return populate_cart(db, cart)


@router.delete("/{item_id}")
def delete_cart_item(item_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = remove_item(db, str(user["_id"]), item_id)
    return populate_cart(db, cart)
