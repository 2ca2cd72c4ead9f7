# stampcard/signing/archive.py

"""
Bundle Archive

Packs a SignedBundle into the .pkpass zip and checks existing archives.
Member order and timestamps are fixed so the same bundle always packs to
the same bytes.
"""

import json
import zipfile
import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import List, Optional

from stampcard.errors import ArchiveError, SigningError
from stampcard.models import SignedBundle
from stampcard.signing.manifest import MANIFEST_NAME, SIGNATURE_NAME, compute_manifest
from stampcard.signing.signer import verify_signature

logger = logging.getLogger(__name__)

PASS_JSON = 'pass.json'
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
PKPASS_MIMETYPE = 'application/vnd.apple.pkpass'


def member_order(names) -> List[str]:
    """pass.json first, then the other files sorted, then manifest and signature."""
    rest = sorted(name for name in names if name not in (PASS_JSON, MANIFEST_NAME, SIGNATURE_NAME))
    ordered = [PASS_JSON] if PASS_JSON in names else []
    return ordered + rest


def assemble_archive(bundle: SignedBundle) -> bytes:
    """
    Zip a signed bundle.

    Returns:
        .pkpass archive bytes

    Raises:
        ArchiveError: if the bundle is incomplete or cannot be packed
    """
    if PASS_JSON not in bundle.files:
        raise ArchiveError(f"Bundle has no {PASS_JSON}")

    output = BytesIO()
    try:
        with zipfile.ZipFile(output, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
            entries = [(name, bundle.files[name]) for name in member_order(bundle.files)]
            entries.append((MANIFEST_NAME, bundle.manifest))
            entries.append((SIGNATURE_NAME, bundle.signature))
            for name, data in entries:
                info = zipfile.ZipInfo(name, date_time=ZIP_TIMESTAMP)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                archive.writestr(info, data)
    except (OSError, zipfile.BadZipFile, ValueError) as e:
        raise ArchiveError(f"Could not assemble archive: {e}") from e

    logger.debug(f"Assembled archive with {len(bundle.files) + 2} members ({output.tell()} bytes)")
    return output.getvalue()


@dataclass
class BundleVerification:
    """Outcome of checking an archive's manifest and signature."""
    errors: List[str] = field(default_factory=list)
    signer: Optional[str] = None
    files: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self):
        return {
            'isValid': self.is_valid,
            'errors': list(self.errors),
            'signer': self.signer,
            'files': list(self.files),
        }


def verify_bundle(archive_bytes: bytes) -> BundleVerification:
    """
    Recompute every digest in an archive and verify its signature.

    Args:
        archive_bytes: .pkpass bytes

    Returns:
        BundleVerification listing every problem found
    """
    result = BundleVerification()
    try:
        with zipfile.ZipFile(BytesIO(archive_bytes)) as archive:
            contents = {name: archive.read(name) for name in archive.namelist()}
    except zipfile.BadZipFile as e:
        result.errors.append(f"Not a valid archive: {e}")
        return result

    result.files = sorted(contents)
    manifest_bytes = contents.get(MANIFEST_NAME)
    signature = contents.get(SIGNATURE_NAME)
    if manifest_bytes is None:
        result.errors.append(f"Archive has no {MANIFEST_NAME}")
    if signature is None:
        result.errors.append(f"Archive has no {SIGNATURE_NAME}")
    if PASS_JSON not in contents:
        result.errors.append(f"Archive has no {PASS_JSON}")
    if manifest_bytes is None or signature is None:
        return result

    recomputed = compute_manifest(contents)
    try:
        recorded = json.loads(manifest_bytes)
    except ValueError:
        recorded = None
    if not isinstance(recorded, dict):
        recorded = {}
        result.errors.append(f"{MANIFEST_NAME} is not a JSON object")
    for name in sorted(set(recomputed) | set(recorded)):
        if name not in recorded:
            result.errors.append(f"{name} is not listed in the manifest")
        elif name not in recomputed:
            result.errors.append(f"{name} is listed in the manifest but missing from the archive")
        elif recorded[name] != recomputed[name]:
            result.errors.append(f"{name} does not match its manifest digest")

    try:
        certificate = verify_signature(manifest_bytes, signature)
        result.signer = certificate.subject.rfc4514_string()
    except SigningError as e:
        result.errors.append(e.message)

    return result
