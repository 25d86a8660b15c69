"""
Shopping carts, one per user.

Line items are merged by product id with single-document atomic updates, so
two concurrent adds of the same product both land in the quantity.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import canonical_id, serialize, to_object_id
from errors import DependencyError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _parse_quantity(quantity: Any) -> int:
    if quantity is None or isinstance(quantity, bool):
        raise ValidationError("Quantity is required")
    if isinstance(quantity, float) and not quantity.is_integer():
        raise ValidationError("Quantity must be a whole number")
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number")
    if value < 1:
        raise ValidationError("Quantity must be at least 1")
    return value


def _find_cart(db: Database, user_id: str) -> Optional[dict]:
    return db["cart"].find_one({"user_id": user_id})


def add_to_cart(db: Database, user_id: Optional[str], product_id: Optional[str], quantity: Any) -> dict:
    if not user_id or not product_id:
        raise ValidationError("userId and productId are required")
    quantity = _parse_quantity(quantity)

    oid = to_object_id(product_id)
    if oid is None or db["product"].count_documents({"_id": oid}, limit=1) == 0:
        raise NotFoundError("Product not found")
    product_id = str(oid)
    user_id = canonical_id(user_id)

    carts = db["cart"]
    now = datetime.now(timezone.utc)
    for _ in range(2):
        res = carts.update_one(
            {"user_id": user_id, "products.product_id": product_id},
            {"$inc": {"products.$.quantity": quantity}, "$set": {"updated_at": now}},
        )
        if res.matched_count:
            break
        try:
            carts.update_one(
                {"user_id": user_id, "products.product_id": {"$ne": product_id}},
                {
                    "$push": {"products": {"product_id": product_id, "quantity": quantity}},
                    "$set": {"updated_at": now},
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
            break
        except DuplicateKeyError:
            # the cart exists and already holds the item, added concurrently
            continue
    else:
        raise DependencyError("Could not update cart")

    logger.debug("Added %s x %s to cart of %s", quantity, product_id, user_id)
    return serialize(_find_cart(db, user_id))


def get_cart(db: Database, user_id: str) -> dict:
    cart = _find_cart(db, canonical_id(user_id))
    if not cart:
        raise NotFoundError("Cart not found")

    items = cart.get("products", [])
    ids = [oid for oid in (to_object_id(i["product_id"]) for i in items) if oid is not None]
    products = {
        str(p["_id"]): {"id": str(p["_id"]), "name": p["name"], "price": p["price"], "image": p.get("image")}
        for p in db["product"].find({"_id": {"$in": ids}}, {"name": 1, "price": 1, "image": 1})
    }

    result = serialize(cart)
    result["products"] = [
        {"product_id": i["product_id"], "quantity": i["quantity"], "product": products.get(i["product_id"])}
        for i in items
    ]
    return result


def remove_from_cart(db: Database, user_id: str, product_id: str) -> dict:
    user_id, product_id = canonical_id(user_id), canonical_id(product_id)
    res = db["cart"].update_one(
        {"user_id": user_id},
        {"$pull": {"products": {"product_id": product_id}},
         "$set": {"updated_at": datetime.now(timezone.utc)}},
    )
    if not res.matched_count:
        raise NotFoundError("Cart not found")
    return serialize(_find_cart(db, user_id))
