# stampcard/validation/barcodes.py

"""
Barcode format table and per-format message checks.

Maps the editor's format names to PassKit barcode identifiers and checks
that a message can be encoded by the chosen symbology.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from stampcard.models import ValidationReport

QR_MAX_LENGTH = 2953

CODE128_PATTERN = re.compile(r'^[\x00-\x7F]*$')
CODE39_PATTERN = re.compile(r'^[A-Z0-9\-\. \$\/\+\%]*$')
NUMERIC_PATTERN = re.compile(r'^[0-9]*$')


@dataclass(frozen=True)
class BarcodeFormatInfo:
    name: str
    passkit_format: str
    # Apple Wallet only draws QR, PDF417, Aztec and Code128 natively
    wallet_native: bool
    pattern: Optional[re.Pattern] = None
    charset: str = ''
    lengths: Tuple[int, ...] = ()


BARCODE_FORMATS = {
    'qr': BarcodeFormatInfo('qr', 'PKBarcodeFormatQR', True),
    'pdf417': BarcodeFormatInfo('pdf417', 'PKBarcodeFormatPDF417', True),
    'aztec': BarcodeFormatInfo('aztec', 'PKBarcodeFormatAztec', True),
    'code128': BarcodeFormatInfo('code128', 'PKBarcodeFormatCode128', True,
                                 CODE128_PATTERN, 'ASCII characters'),
    'code39': BarcodeFormatInfo('code39', 'PKBarcodeFormatCode39', False,
                                CODE39_PATTERN, 'upper-case letters, digits, space and - . $ / + %'),
    'ean13': BarcodeFormatInfo('ean13', 'PKBarcodeFormatEAN13', False,
                               NUMERIC_PATTERN, 'digits', (12, 13)),
    'ean8': BarcodeFormatInfo('ean8', 'PKBarcodeFormatEAN8', False,
                              NUMERIC_PATTERN, 'digits', (7, 8)),
    'upc': BarcodeFormatInfo('upc', 'PKBarcodeFormatUPCA', False,
                             NUMERIC_PATTERN, 'digits', (11, 12)),
}
BARCODE_FORMATS['upca'] = BARCODE_FORMATS['upc']


def get_format(name: str) -> Optional[BarcodeFormatInfo]:
    return BARCODE_FORMATS.get((name or '').strip().lower())


def passkit_format(name: str) -> str:
    """
    PassKit identifier for an editor format name.

    Raises:
        KeyError: for an unknown format
    """
    info = get_format(name)
    if info is None:
        raise KeyError(f"Unknown barcode format: {name}")
    return info.passkit_format


def check_barcode_message(format_name: str, message: str) -> ValidationReport:
    """
    Check that ``message`` can be encoded as ``format_name``.

    Args:
        format_name: editor format name (qr, code128, code39, ean13, ...)
        message: rendered barcode message

    Returns:
        ValidationReport with charset errors and capacity warnings
    """
    report = ValidationReport()
    info = get_format(format_name)
    if info is None:
        supported = ', '.join(sorted(BARCODE_FORMATS))
        report.error(f"barcode.format: '{format_name}' is not supported (expected one of: {supported})")
        return report

    if not message:
        report.error('barcode.message: message is empty')
        return report

    if info.pattern is not None and not info.pattern.fullmatch(message):
        report.error(f"barcode.message: {info.name} messages may only contain {info.charset}")

    if info.lengths and NUMERIC_PATTERN.fullmatch(message) and len(message) not in info.lengths:
        expected = ' or '.join(str(n) for n in info.lengths)
        report.warn(f"barcode.message: {info.name} expects {expected} digits, got {len(message)}")

    if info.name == 'qr' and len(message) > QR_MAX_LENGTH:
        report.warn(
            f"barcode.message: {len(message)} characters exceeds the QR capacity of "
            f"{QR_MAX_LENGTH}; scanners may fail to read it"
        )

    if not info.wallet_native:
        report.warn(f"barcode.format: {info.name} is not drawn natively by Apple Wallet")

    return report
