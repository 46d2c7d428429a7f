# tasknotify/infra/qr_fallback.py
"""
Fallback channel: render a WhatsApp click-to-chat link as a QR code.

When the delivery agent cannot send, an operator (or the recipient) scans
the code and WhatsApp opens a chat with the message pre-filled.  Sending
is then a manual step; producing the artifact is not proof of delivery.

Files are written as ``whatsapp-<address>-<token>.png`` under
``output_dir`` and exposed as ``<public_prefix>/<filename>``.
"""
from __future__ import annotations

import asyncio
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote

import qrcode
import qrcode.constants
import qrcode.exceptions
from PIL import Image
from qrcode.image.pil import PilImage

from tasknotify.core.dispatch.addressing import is_normalized, mask_address
from tasknotify.core.dispatch.domain import DeliveryArtifact
from tasknotify.core.dispatch.errors import ArtifactPersistenceFailed
from tasknotify.infra.logging_config import get_logger

logger = get_logger(__name__)

DEEP_LINK_BASE = "https://wa.me"
QR_FILL_COLOR = "#128C7E"  # WhatsApp teal
QR_BACK_COLOR = "#FFFFFF"
QR_SIZE_PX = 300
QR_BORDER = 1

# Encoded ``text=`` budget.  A version-40 code at level M holds 2331 bytes;
# this leaves room for the base URL and address.
MAX_LINK_TEXT = 1500
LINK_ELLIPSIS = "..."


def clip_link_text(message: str, limit: int = MAX_LINK_TEXT) -> str:
    """Cut ``message`` so its URL-encoded form fits in ``limit`` characters."""
    if len(quote(message, safe="")) <= limit:
        return message

    budget = limit - len(LINK_ELLIPSIS)
    used = 0
    kept = []
    for ch in message:
        cost = len(quote(ch, safe=""))
        if used + cost > budget:
            break
        kept.append(ch)
        used += cost
    return "".join(kept).rstrip() + LINK_ELLIPSIS


def build_deep_link(address: str, message: str) -> str:
    """``https://wa.me/<address>?text=<url-encoded message>``, text clipped to fit a QR code."""
    return f"{DEEP_LINK_BASE}/{address}?text={quote(clip_link_text(message), safe='')}"


def render_qr_png(data: str, path: Path, size: int = QR_SIZE_PX) -> None:
    """Blocking: encode ``data`` and write a PNG to ``path`` atomically."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        border=QR_BORDER,
        image_factory=PilImage,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color=QR_FILL_COLOR, back_color=QR_BACK_COLOR).get_image()
    img = img.convert("RGB").resize((size, size), Image.Resampling.NEAREST)

    tmp_path = path.with_name(path.name + ".tmp")
    try:
        img.save(tmp_path, format="PNG")
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


class QRCodeFallback:
    def __init__(
        self,
        output_dir: str | Path,
        public_prefix: str,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.output_dir = Path(output_dir)
        self.public_prefix = "/" + public_prefix.strip("/")
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _filename(self, address: str) -> str:
        return f"whatsapp-{address}-{uuid.uuid4().hex[:12]}.png"

    async def produce(self, address: str, message: str) -> DeliveryArtifact:
        """
        Render and persist a QR code for one recipient.

        Raises:
            ArtifactPersistenceFailed: directory or image could not be written.
        """
        if not is_normalized(address):
            raise ArtifactPersistenceFailed(f"address is not routable: {mask_address(address)}")

        link = build_deep_link(address, message)
        filename = self._filename(address)
        path = self.output_dir / filename

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write, link, path)
        except OSError as exc:
            logger.error(f"QR write failed for {mask_address(address)}: {exc}")
            raise ArtifactPersistenceFailed(f"could not write {filename}: {exc.strerror or exc}") from exc
        except (ValueError, qrcode.exceptions.DataOverflowError) as exc:
            raise ArtifactPersistenceFailed(f"could not encode QR: {exc}") from exc

        return DeliveryArtifact(
            address=address,
            artifact_path=f"{self.public_prefix}/{filename}",
            rendered_message=message,
            created_at=self._clock(),
            deep_link=link,
        )

    def _write(self, link: str, path: Path) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        render_qr_png(link, path)
