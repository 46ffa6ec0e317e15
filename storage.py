"""
Receipt storage.

Receipts go to Cloudinary when credentials are configured; otherwise they
are written under ``UPLOAD_FOLDER/receipts`` and served by the app from
``/uploads``. Either way only the resulting URL is kept on the transaction.
"""

import io
import logging
import os
import uuid

import cloudinary
import cloudinary.uploader
from starlette.concurrency import run_in_threadpool

import config

logger = logging.getLogger("finance-backend.storage")

RECEIPTS_DIR = "receipts"


class ReceiptError(ValueError):
    pass


def cloudinary_enabled() -> bool:
    return bool(config.CLOUDINARY_CLOUD_NAME and config.CLOUDINARY_API_KEY and config.CLOUDINARY_API_SECRET)


def receipt_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


def validate_receipt(filename: str, content_type: str, size: int) -> str:
    """Check type and size; return the normalized extension."""
    ext = receipt_extension(filename)
    if ext not in config.ALLOWED_RECEIPT_EXTENSIONS or (content_type or "").lower() not in config.ALLOWED_RECEIPT_TYPES:
        raise ReceiptError("Invalid file type")
    if size == 0:
        raise ReceiptError("Please upload a file")
    if size > config.MAX_RECEIPT_BYTES:
        raise ReceiptError(f"File too large - max size is {config.MAX_RECEIPT_BYTES // (1024 * 1024)}MB")
    return ext


def _upload_to_cloudinary(content: bytes, public_id: str) -> str:
    cloudinary.config(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
        secure=True,
    )
    result = cloudinary.uploader.upload(
        io.BytesIO(content),
        folder=RECEIPTS_DIR,
        public_id=public_id,
        resource_type="auto",
    )
    return result["secure_url"]


def _save_locally(content: bytes, name: str) -> str:
    target_dir = os.path.join(config.UPLOAD_FOLDER, RECEIPTS_DIR)
    os.makedirs(target_dir, exist_ok=True)
    with open(os.path.join(target_dir, name), "wb") as f:
        f.write(content)
    return f"/uploads/{RECEIPTS_DIR}/{name}"


async def upload_receipt(filename: str, content: bytes, content_type: str) -> str:
    ext = validate_receipt(filename, content_type, len(content))
    public_id = uuid.uuid4().hex
    if cloudinary_enabled():
        url = await run_in_threadpool(_upload_to_cloudinary, content, public_id)
    else:
        url = await run_in_threadpool(_save_locally, content, f"{public_id}.{ext}")
    logger.info("Stored receipt %s as %s", filename, url)
    return url
