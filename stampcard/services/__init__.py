# stampcard/services/__init__.py

"""
Pipeline, worker pool and external collaborators (storage, barcode preview).
"""

from stampcard.services.barcode_service import BarcodeRenderer
from stampcard.services.pass_service import PassGenerationPipeline, PassService
from stampcard.services.storage import BundleStore, FilesystemBundleStore, MemoryBundleStore

__all__ = [
    'BarcodeRenderer',
    'BundleStore',
    'FilesystemBundleStore',
    'MemoryBundleStore',
    'PassGenerationPipeline',
    'PassService',
]
