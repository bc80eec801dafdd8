# ============================================================
# admin.py — Catalogue editor
# ============================================================
# Create / update / delete products and upload their images to
# the "products" storage bucket. Every successful write refreshes
# the catalogue cache so the gallery picks it up.
# ============================================================

import logging
import mimetypes
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import config
from constants import DEFAULT_PRODUCT_IMAGE, INTENTS
from gateway import StorageErrorKind

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "product-images"

PRODUCT_FIELDS = (
    "name", "tagline", "description", "price", "image", "category", "story",
    "customizable_fields", "materials", "process", "care",
)


class AdminError(Exception):
    def __init__(self, message: str, show_config_guide: bool = False):
        super().__init__(message)
        self.message = message
        self.show_config_guide = show_config_guide


@dataclass
class UploadFailure:
    message: str
    show_config_guide: bool = False


def translate_upload_error(error) -> UploadFailure:
    """
    Map a storage failure to the message shown in the editor.
    Structured kinds win; bare messages fall back to text matching.
    """
    kind = getattr(error, "kind", None)
    message = getattr(error, "message", None) or str(error)
    lowered = message.lower()

    if kind is None or kind == StorageErrorKind.UNKNOWN:
        if "bucket not found" in lowered:
            kind = StorageErrorKind.BUCKET_NOT_FOUND
        elif "policy" in lowered:
            kind = StorageErrorKind.POLICY

    if kind == StorageErrorKind.BUCKET_NOT_FOUND:
        return UploadFailure(f'The storage bucket "{config.STORAGE_BUCKET}" was not found.', True)
    if kind == StorageErrorKind.POLICY:
        return UploadFailure("Upload blocked by security policies.", True)
    if kind == StorageErrorKind.CONFLICT:
        return UploadFailure("An image with that name already exists. Try again.")
    return UploadFailure(message)


def image_extension(filename: Optional[str], content_type: Optional[str]) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        if ext:
            return ext
    if content_type and "/" in content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        guessed = mimetypes.guess_extension(mime)
        if guessed:
            return guessed.lstrip(".")
        ext = mime.split("/", 1)[1].split("+", 1)[0]
        if ext:
            return ext
    return "jpg"


def _random_name(length: int = 8) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def validate_product(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Keep known fields and enforce name / category / price rules."""
    product = {k: payload[k] for k in PRODUCT_FIELDS if k in payload}

    if not (product.get("name") or "").strip():
        raise AdminError("Product name is required")
    if product.get("category") not in INTENTS:
        raise AdminError(f"Category must be one of: {', '.join(INTENTS)}")
    try:
        product["price"] = float(product.get("price", 0) or 0)
    except (TypeError, ValueError):
        raise AdminError("Price must be a number")
    if product["price"] < 0:
        raise AdminError("Price can't be negative")

    fields = product.get("customizable_fields") or []
    if isinstance(fields, str):
        fields = fields.split(",")
    product["customizable_fields"] = [f.strip() for f in fields if f and f.strip()]
    return product


class CatalogueEditor:
    def __init__(self, gateway, catalogue=None):
        self.gateway = gateway
        self.catalogue = catalogue
        self.status_message = ""

    def upload_image(self, filename: Optional[str], data: bytes, content_type: Optional[str] = None) -> str:
        """Store an image and return its public URL."""
        ext = image_extension(filename, content_type)
        path = f"{IMAGE_FOLDER}/{_random_name()}-{int(time.time() * 1000)}.{ext}"
        content_type = content_type or mimetypes.guess_type(f"x.{ext}")[0] or "image/jpeg"

        bucket = self.gateway.storage.from_(config.STORAGE_BUCKET)
        result = bucket.upload(path, data, content_type=content_type, upsert=False)
        if not result.ok:
            failure = translate_upload_error(result.error)
            logger.error("❌ Storage Error: %s", result.error)
            raise AdminError(failure.message, show_config_guide=failure.show_config_guide)
        return bucket.get_public_url(path)

    def _image_url(self, product: Dict[str, Any], image) -> str:
        if image is not None:
            filename, data, content_type = image
            self.status_message = "Uploading local artifact visual..."
            return self.upload_image(filename, data, content_type)
        return product.get("image") or DEFAULT_PRODUCT_IMAGE

    def _refresh(self):
        if self.catalogue is not None:
            self.catalogue.fetch()

    def create_product(self, payload: Dict[str, Any], image=None) -> Dict[str, Any]:
        """image, when given, is a (filename, bytes, content_type) tuple."""
        product = validate_product(payload)
        product["image"] = self._image_url(product, image)

        self.status_message = "Syncing with Fabino Core..."
        result = self.gateway.table("products").insert(product)
        if not result.ok:
            raise AdminError(result.error.message)
        logger.info("✅ created product %s", result.data["id"])
        self._refresh()
        return result.data

    def update_product(self, product_id: str, payload: Dict[str, Any], image=None) -> Dict[str, Any]:
        product = validate_product(payload)
        product["image"] = self._image_url(product, image)

        self.status_message = "Syncing with Fabino Core..."
        result = self.gateway.table("products").update(product_id, product)
        if not result.ok:
            raise AdminError(result.error.message)
        if result.data is None:
            raise AdminError(f"Product {product_id} not found")
        logger.info("✅ updated product %s", product_id)
        self._refresh()
        return result.data

    def delete_product(self, product_id: str):
        result = self.gateway.table("products").delete(product_id)
        if not result.ok:
            raise AdminError(result.error.message)
        logger.info("🗑️ deleted product %s", product_id)
        self._refresh()

