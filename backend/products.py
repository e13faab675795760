import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import PRODUCTS, create_document, get_db, get_document, get_documents, object_id, to_str_id, utcnow
from errors import AlreadyExistsError
from schemas import Product as ProductSchema, ProductPayload, ProductUpdate, Rating, ReviewPayload
from security import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


def find_product(db: Database, product_id: str) -> dict:
    return get_document(db, PRODUCTS, product_id, "Product")


def list_products(db: Database, q: Optional[str] = None, category: Optional[str] = None, limit: int = 0):
    filt = {}
    if q:
        filt["name"] = {"$regex": re.escape(q), "$options": "i"}
    if category:
        filt["category"] = {"$regex": f"^{re.escape(category)}$", "$options": "i"}
    return get_documents(db, PRODUCTS, filt, limit)


def update_product(db: Database, product_id: str, changes: ProductUpdate) -> dict:
    fields = changes.model_dump(exclude_none=True)
    find_product(db, product_id)
    if not fields:
        return find_product(db, product_id)
    fields["updated_at"] = utcnow()
    return db[PRODUCTS].find_one_and_update(
        {"_id": object_id(product_id, "Product")},
        {"$set": fields},
        return_document=ReturnDocument.AFTER,
    )


def add_review(db: Database, product_id: str, user_id: str, body: ReviewPayload) -> list:
    """Append a rating; each user may rate a product once."""
    product = find_product(db, product_id)
    if any(r["user_id"] == user_id for r in product.get("ratings", [])):
        raise AlreadyExistsError("Product already reviewed")
    rating = Rating(user_id=user_id, rating=body.rating, review=body.review, date=utcnow())
    # Guard against a concurrent review from the same user
    updated = db[PRODUCTS].find_one_and_update(
        {"_id": product["_id"], "ratings.user_id": {"$ne": user_id}},
        {"$push": {"ratings": rating.model_dump()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise AlreadyExistsError("Product already reviewed")
    return updated["ratings"]


# ========== ROUTES ==========

@router.get("")
def get_products(
    q: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = 0,
    db: Database = Depends(get_db),
):
    return [to_str_id(d) for d in list_products(db, q, category, limit)]


@router.get("/featured")
def get_featured_products(db: Database = Depends(get_db)):
    return [to_str_id(d) for d in get_documents(db, PRODUCTS, {"featured": True})]


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return to_str_id(find_product(db, product_id))


@router.get("/{product_id}/stock")
def get_product_stock(product_id: str, db: Database = Depends(get_db)):
    return {"stock": find_product(db, product_id)["stock"]}


@router.post("", status_code=201)
def create_product(body: ProductPayload, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    pid = create_document(db, PRODUCTS, ProductSchema(**body.model_dump()))
    logger.info("Product %s created by %s", pid, admin["_id"])
    return to_str_id(find_product(db, pid))


@router.put("/{product_id}")
def edit_product(
    product_id: str,
    body: ProductUpdate,
    admin: dict = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return to_str_id(update_product(db, product_id, body))


@router.delete("/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    product = find_product(db, product_id)
    db[PRODUCTS].delete_one({"_id": product["_id"]})
    logger.info("Product %s removed by %s", product_id, admin["_id"])
    return {"msg": "Product removed"}


@router.post("/{product_id}/review")
def review_product(
    product_id: str,
    body: ReviewPayload,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return add_review(db, product_id, str(user["_id"]), body)
