import logging
from typing import Any, List, Optional, Tuple

from pymongo.database import Database

from database import canonical_id, create_document, get_documents, serialize, to_object_id
from errors import NotFoundError, ValidationError
from schemas import Product

logger = logging.getLogger(__name__)


def _parse_price(price: Any) -> float:
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise ValidationError("Price must be a number")
    if not value > 0 or value == float("inf"):
        raise ValidationError("Price must be greater than zero")
    return value


def _parse_quantity(quantity: Any) -> int:
    if quantity is None or quantity == "":
        return 1
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number")
    if value < 0:
        raise ValidationError("Quantity cannot be negative")
    return value


def get_farmer(db: Database, farmer_id: str) -> Optional[dict]:
    oid = to_object_id(farmer_id)
    if oid is None:
        return None
    user = db["user"].find_one({"_id": oid})
    if not user or user.get("role") != "farmer":
        return None
    return user


def discard_image(image_store, key: str) -> None:
    """Best-effort image removal; failures are logged only."""
    try:
        image_store.delete(key)
    except Exception:
        logger.exception("Failed to delete image %s", key)


def add_product(db: Database, image_store, name: Optional[str], price: Any, farmer_id: Optional[str],
                description: Optional[str] = None, quantity: Any = None,
                image: Optional[Tuple[str, bytes]] = None) -> dict:
    """Create a product for a farmer.

    ``image`` is an optional ``(filename, content)`` pair; it is handed to the
    image store and the resulting URL is kept on the product.
    """
    if not name or price in (None, "") or not farmer_id:
        raise ValidationError("Name, price, and farmerId are required")
    price = _parse_price(price)
    quantity = _parse_quantity(quantity)

    farmer = get_farmer(db, farmer_id)
    if farmer is None:
        raise ValidationError("Invalid farmer ID or user is not a farmer")
    farmer_id = str(farmer["_id"])

    image_url = image_key = None
    if image is not None:
        stored = image_store.save(*image)
        image_url, image_key = stored.url, stored.key

    product = Product(
        name=name,
        description=description or None,
        price=price,
        quantity=quantity,
        farmer_id=farmer_id,
        image=image_url,
        image_key=image_key,
    )
    try:
        product_id = create_document(db, "product", product)
    except Exception:
        if image_key:
            discard_image(image_store, image_key)
        raise
    logger.info("Product %s added by farmer %s", product_id, farmer_id)
    return serialize(db["product"].find_one({"_id": to_object_id(product_id)}))


def list_by_farmer(db: Database, farmer_id: str) -> List[dict]:
    products = get_documents(db, "product", {"farmer_id": canonical_id(farmer_id)})
    if not products:
        raise NotFoundError("No products found")
    return [serialize(p) for p in products]


def list_all(db: Database) -> List[dict]:
    products = get_documents(db, "product")
    if not products:
        raise NotFoundError("No products available")

    farmer_ids = {to_object_id(p.get("farmer_id")) for p in products} - {None}
    farmers = {
        str(u["_id"]): {"id": str(u["_id"]), "name": u["name"], "email": u["email"]}
        for u in db["user"].find({"_id": {"$in": list(farmer_ids)}}, {"name": 1, "email": 1})
    }
    result = []
    for p in products:
        doc = serialize(p)
        doc["farmer"] = farmers.get(p.get("farmer_id"))
        result.append(doc)
    return result


def delete_product(db: Database, image_store, product_id: str) -> None:
    oid = to_object_id(product_id)
    product = db["product"].find_one({"_id": oid}) if oid else None
    if not product:
        raise NotFoundError("Product not found")

    key = product.get("image_key")
    if key:
        discard_image(image_store, key)

    db["product"].delete_one({"_id": oid})
    logger.info("Product %s deleted", product_id)
