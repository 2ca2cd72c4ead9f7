# stampcard/validation/__init__.py

"""
Compliance checks run before a bundle is generated.
"""

from stampcard.validation.barcodes import BARCODE_FORMATS, check_barcode_message, passkit_format
from stampcard.validation.compliance import ComplianceValidator

__all__ = [
    'BARCODE_FORMATS',
    'ComplianceValidator',
    'check_barcode_message',
    'passkit_format',
]
