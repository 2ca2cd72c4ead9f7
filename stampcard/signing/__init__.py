# stampcard/signing/__init__.py

"""
Manifest, detached signature and archive assembly for pass bundles.
"""

from stampcard.signing.archive import assemble_archive, verify_bundle
from stampcard.signing.identity import SigningIdentity, load_identity, load_identity_bytes
from stampcard.signing.manifest import compute_manifest, serialize_manifest
from stampcard.signing.signer import ManifestSigner, SignatureResult, verify_signature

__all__ = [
    'ManifestSigner',
    'SignatureResult',
    'SigningIdentity',
    'assemble_archive',
    'compute_manifest',
    'load_identity',
    'load_identity_bytes',
    'serialize_manifest',
    'verify_bundle',
    'verify_signature',
]
