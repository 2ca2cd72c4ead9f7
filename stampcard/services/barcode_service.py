# stampcard/services/barcode_service.py

"""
Barcode Preview Service

Renders a barcode message to PNG for previews. Wallet clients draw the
barcode themselves from pass.json, so this output is never part of the
signed bundle. Only QR is rendered here; other symbologies report that
no preview is available.
"""

import io
import logging
from typing import Optional

import qrcode

from stampcard.validation.barcodes import get_format

logger = logging.getLogger(__name__)


class BarcodeRenderer:
    """Renders (message, format) to PNG bytes."""

    def __init__(self, box_size: int = 10, border: int = 4):
        self.box_size = box_size
        self.border = border

    def supports(self, format_name: str) -> bool:
        info = get_format(format_name)
        return info is not None and info.name == 'qr'

    def render(self, message: str, format_name: str = 'qr') -> Optional[bytes]:
        """
        Render a barcode preview.

        Args:
            message: rendered barcode message
            format_name: editor format name

        Returns:
            PNG bytes, or None when the format has no preview renderer
        """
        if not self.supports(format_name):
            logger.debug(f"No preview renderer for barcode format {format_name}")
            return None

        qr = qrcode.QRCode(
            box_size=self.box_size,
            border=self.border,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
        )
        qr.add_data(message.encode('iso-8859-1', errors='replace'))
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()
