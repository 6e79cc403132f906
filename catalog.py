"""
Catalog store

Thin adapter over the MongoDB ``product`` collection. Product ids are the
string form of the document ObjectId; anything that does not parse as one
is treated as a product that does not exist.
"""

import re
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId

from database import mongo_errors, serialize_doc
from errors import NotFoundError, ValidationError
from schemas import Product as ProductSchema, ProductIn, ProductUpdate

logger = logging.getLogger(__name__)


def _object_id(product_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(product_id)
    except (InvalidId, TypeError):
        return None


class Catalog:
    def __init__(self, collection):
        self.collection = collection

    def list(self, search: Optional[str] = None, category: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if search:
            query["name"] = {"$regex": re.escape(search), "$options": "i"}
        if category:
            query["category"] = category
        with mongo_errors("list products"):
            cursor = self.collection.find(query).sort("price", -1)
            return [serialize_doc(d) for d in cursor]

    def get(self, product_id: str) -> Optional[Dict[str, Any]]:
        obj_id = _object_id(product_id)
        if obj_id is None:
            return None
        with mongo_errors("look up product"):
            product = self.collection.find_one({"_id": obj_id})
        return serialize_doc(product) if product else None

    def create(self, data: ProductIn) -> Dict[str, Any]:
        product = ProductSchema(**data.model_dump(), updated_at=datetime.now(timezone.utc))
        with mongo_errors("create product"):
            res = self.collection.insert_one(product.model_dump())
            created = self.collection.find_one({"_id": res.inserted_id})
        logger.info("Created product %s (sku=%s)", res.inserted_id, data.sku)
        return serialize_doc(created)

    def update(self, product_id: str, data: ProductUpdate) -> Dict[str, Any]:
        update_dict = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not update_dict:
            raise ValidationError("No fields to update")
        obj_id = _object_id(product_id)
        if obj_id is None:
            raise NotFoundError("Product not found")
        update_dict["updated_at"] = datetime.now(timezone.utc)
        with mongo_errors("update product"):
            res = self.collection.update_one({"_id": obj_id}, {"$set": update_dict})
            if res.matched_count == 0:
                raise NotFoundError("Product not found")
            product = self.collection.find_one({"_id": obj_id})
        logger.info("Updated product %s fields=%s", product_id, sorted(update_dict))
        return serialize_doc(product)

    def delete(self, product_id: str) -> bool:
        """Delete a product. Missing ids are not an error; returns whether a document was removed."""
        obj_id = _object_id(product_id)
        if obj_id is None:
            return False
        with mongo_errors("delete product"):
            res = self.collection.delete_one({"_id": obj_id})
        deleted = res.deleted_count > 0
        logger.info("Delete product %s deleted=%s", product_id, deleted)
        return deleted
