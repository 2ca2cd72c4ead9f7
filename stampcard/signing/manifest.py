# stampcard/signing/manifest.py

"""
Bundle Manifest

SHA-1 digest of every bundle file, serialized with sorted keys so the
same files always produce the same manifest bytes. Files are staged to a
working directory first and the manifest is computed over the bytes read
back from disk, i.e. exactly what gets archived.
"""

import os
import json
import hashlib
import logging
from typing import Dict, Iterable

from stampcard.errors import ArchiveError

logger = logging.getLogger(__name__)

MANIFEST_NAME = 'manifest.json'
SIGNATURE_NAME = 'signature'
EXCLUDED_NAMES = (MANIFEST_NAME, SIGNATURE_NAME)


def file_digest(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def compute_manifest(files: Dict[str, bytes]) -> Dict[str, str]:
    """
    Map every bundle file to its SHA-1 hex digest.

    The manifest and signature themselves are never listed.
    """
    return {
        name: file_digest(data)
        for name, data in files.items()
        if name not in EXCLUDED_NAMES
    }


def serialize_manifest(manifest: Dict[str, str]) -> bytes:
    return json.dumps(manifest, indent=2, sort_keys=True).encode('utf-8')


def _safe_member_path(directory: str, name: str) -> str:
    if os.path.isabs(name) or '..' in name.replace('\\', '/').split('/'):
        raise ArchiveError(f"Refusing to stage bundle file with unsafe name: {name}")
    return os.path.join(directory, name)


def stage_files(directory: str, files: Dict[str, bytes]):
    """
    Write bundle files into a staging directory.

    Raises:
        ArchiveError: if a file cannot be written
    """
    for name, data in files.items():
        path = _safe_member_path(directory, name)
        try:
            with open(path, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise ArchiveError(f"Could not stage {name}: {e.strerror}") from e


def read_staged(directory: str, names: Iterable[str]) -> Dict[str, bytes]:
    """Read staged files back, in the order given."""
    staged = {}
    for name in names:
        path = _safe_member_path(directory, name)
        try:
            with open(path, 'rb') as f:
                staged[name] = f.read()
        except OSError as e:
            raise ArchiveError(f"Could not read staged {name}: {e.strerror}") from e
    return staged
