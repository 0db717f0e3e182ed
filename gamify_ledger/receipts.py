"""
Receipt image storage for top-up requests.

The ledger never reads receipts; it only keeps the stored filename and the
public URL returned here.
"""

import re
import shutil
import time
from pathlib import Path
from typing import BinaryIO, Union

from .errors import StorageFailure, ValidationFailed
from .log import get_logger
from .models import ReceiptRef

logger = get_logger(__name__)

URL_PREFIX = "/uploads/"


def safe_filename(original: str) -> str:
    name = Path(original.replace("\\", "/")).name
    name = re.sub(r"\s+", "_", name)
    if not name or name in (".", ".."):
        raise ValidationFailed("Receipt file has no usable name")
    return f"{int(time.time() * 1000)}-{name}"


class ReceiptStorage:
    def __init__(self, upload_dir: Union[str, Path]):
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def save(self, original_name: str, fileobj: BinaryIO) -> ReceiptRef:
        filename = safe_filename(original_name)
        target = self.upload_dir / filename
        try:
            with open(target, "wb") as out:
                shutil.copyfileobj(fileobj, out)
        except OSError as e:
            logger.error("receipt_save_failed", filename=filename, error=str(e))
            raise StorageFailure("uploads", str(e)) from e

        logger.info("receipt_stored", filename=filename)
        return ReceiptRef(filename=filename, url=URL_PREFIX + filename)

    def discard(self, receipt: ReceiptRef) -> None:
        """Remove a stored receipt whose top-up request was never recorded."""
        try:
            (self.upload_dir / receipt.filename).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("receipt_discard_failed", filename=receipt.filename, error=str(e))
