# stampcard/errors.py

"""
Pass Engine Errors

Exception hierarchy for the pass generation pipeline. Every error carries
a machine-readable error code and, once it has passed through the
pipeline, the name of the stage that failed.
"""

from typing import Optional


class PassEngineError(Exception):
    """Base exception for pass engine errors."""

    def __init__(self, message: str, error_code: str = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or 'PASS_ENGINE_ERROR'
        self.stage = stage

    def to_dict(self):
        data = {'error': self.message, 'error_code': self.error_code}
        if self.stage:
            data['stage'] = self.stage
        return data

    def __str__(self):
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ValidationError(PassEngineError):
    """
    Raised when a template/runtime pair fails compliance checks.

    Carries the complete report so callers see every violation at once.
    """

    def __init__(self, report, message: str = None, stage: Optional[str] = None):
        if message is None:
            message = f"Pass failed validation with {len(report.errors)} error(s)"
        super().__init__(message, error_code='VALIDATION_FAILED', stage=stage)
        self.report = report

    def to_dict(self):
        data = super().to_dict()
        data.update(self.report.to_dict())
        return data


class AssetError(PassEngineError):
    """Raised when an image asset is missing or cannot be decoded."""

    def __init__(self, message: str, asset: str = None):
        super().__init__(message, error_code='ASSET_ERROR')
        self.asset = asset


class SigningError(PassEngineError):
    """Raised when the signing identity is missing, invalid or misconfigured."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message, error_code='SIGNING_ERROR', stage=stage)


class ArchiveError(PassEngineError):
    """Raised when the bundle cannot be packaged or stored."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message, error_code='ARCHIVE_ERROR', stage=stage)


class LayoutError(PassEngineError):
    """Raised when computed geometry or raster output breaks its own constraints."""

    def __init__(self, message: str):
        super().__init__(message, error_code='LAYOUT_ERROR')


class GenerationCancelled(PassEngineError):
    """Raised when the caller cancels a generation request between stages."""

    def __init__(self, stage: Optional[str] = None):
        super().__init__('Pass generation was cancelled', error_code='CANCELLED', stage=stage)
