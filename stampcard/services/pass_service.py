# stampcard/services/pass_service.py

"""
Pass Generation Service

Runs the generation pipeline for one recipient:

    Validated -> AssetsBuilt -> ManifestComputed -> Signed -> Archived

Stages run strictly in that order. A failure aborts the run with the
failing stage recorded on the error and nothing is stored. Requests run
on a bounded worker pool; the signing identity is loaded once and shared
read-only by every worker.
"""

import uuid
import logging
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Optional

from stampcard.compositor.assets import AssetResolver
from stampcard.compositor.strip import StampCompositor, StripResult
from stampcard.config import Config, get_config
from stampcard.errors import ArchiveError, GenerationCancelled, PassEngineError, ValidationError
from stampcard.generators.apple import PassDocumentBuilder
from stampcard.log_sanitizer import mask_identifier
from stampcard.models import (
    GenerationResult, PassTemplate, RuntimeContext, SignedBundle, Stage, ValidationReport
)
from stampcard.services.barcode_service import BarcodeRenderer
from stampcard.services.storage import BundleStore
from stampcard.signing.archive import assemble_archive, member_order
from stampcard.signing.manifest import compute_manifest, read_staged, serialize_manifest, stage_files
from stampcard.signing.signer import ManifestSigner
from stampcard.validation.compliance import ComplianceValidator

logger = logging.getLogger(__name__)


class PassGenerationPipeline:
    """
    Single-request pipeline. Holds only shared, read-only collaborators,
    so one instance serves every worker thread.

    Args:
        config: engine configuration
        signer: manifest signer with the loaded identity
        resolver: image asset resolver
        store: where finished archives go (None keeps them in the result only)
        barcode_renderer: optional preview renderer for the barcode message
    """

    def __init__(self, config: Config, signer: ManifestSigner, resolver: AssetResolver = None,
                 store: Optional[BundleStore] = None, barcode_renderer: Optional[BarcodeRenderer] = None):
        self.config = config
        self.signer = signer
        self.resolver = resolver or AssetResolver(timeout=config.asset_timeout)
        self.store = store
        self.barcode_renderer = barcode_renderer
        self.validator = ComplianceValidator(config, self.resolver)
        self.builder = PassDocumentBuilder(config, self.resolver)
        self.compositor = StampCompositor(self.resolver, background_opacity=config.background_opacity)

    def run(self, template: PassTemplate, runtime: RuntimeContext,
            cancel_event: Optional[threading.Event] = None) -> GenerationResult:
        """
        Generate, sign and archive one pass.

        Args:
            template: pass template
            runtime: recipient values
            cancel_event: set by the caller to abandon the request between stages

        Returns:
            GenerationResult for this request

        Raises:
            ValidationError: the template/runtime pair failed compliance checks
            SigningError: the manifest could not be signed
            ArchiveError: packaging or storage failed
            GenerationCancelled: cancel_event was set before completion
        """
        serial_number = runtime.serial_number or str(uuid.uuid4())
        stages = []
        warnings = []
        log_serial = mask_identifier(serial_number, 8)

        # Validated
        report = self._stage(Stage.VALIDATED, cancel_event, self.validator.validate,
                             template, runtime, serial_number, False)
        if not report.is_valid:
            logger.info(f"Pass {log_serial} rejected with {len(report.errors)} validation error(s)")
            raise ValidationError(report, stage=Stage.VALIDATED.value)
        warnings.extend(report.warnings)
        stages.append(Stage.VALIDATED)

        # AssetsBuilt
        files, document, preview = self._stage(Stage.ASSETS_BUILT, cancel_event, self._build_assets,
                                               template, runtime, serial_number, warnings)
        stages.append(Stage.ASSETS_BUILT)

        with tempfile.TemporaryDirectory(prefix='stampcard-') as staging:
            # ManifestComputed
            staged, manifest = self._stage(Stage.MANIFEST_COMPUTED, cancel_event,
                                           self._compute_manifest, staging, files)
            stages.append(Stage.MANIFEST_COMPUTED)

            # Signed
            signature = self._stage(Stage.SIGNED, cancel_event, self.signer.sign, manifest)
            if signature.warning:
                warnings.append(signature.warning)
            stages.append(Stage.SIGNED)

            # Archived
            bundle = SignedBundle(
                files=staged,
                manifest=manifest,
                signature=signature.signature,
                signature_kind=signature.kind,
            )
            archive, location = self._stage(Stage.ARCHIVED, cancel_event, self._archive,
                                            serial_number, bundle, cancel_event)
            stages.append(Stage.ARCHIVED)

        logger.info(
            f"Generated pass {log_serial}: {len(staged)} files, {len(archive)} bytes, "
            f"{signature.kind.value} signature, {len(warnings)} warning(s)"
        )
        return GenerationResult(
            serial_number=serial_number,
            archive=archive,
            bundle=bundle,
            warnings=warnings,
            unresolved_placeholders=document.unresolved_placeholders,
            stages=stages,
            storage_location=location,
            barcode_preview=preview,
        )

    def _stage(self, stage: Stage, cancel_event, func, *args):
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Pass generation cancelled before {stage.value}")
            raise GenerationCancelled(stage=stage.value)
        try:
            return func(*args)
        except PassEngineError as e:
            if e.stage is None:
                e.stage = stage.value
            if not isinstance(e, (ValidationError, GenerationCancelled)):
                logger.error(f"Pass generation failed at {stage.value}: {e.message}")
            raise
        except OSError as e:
            logger.error(f"Pass generation failed at {stage.value}: {e}")
            raise ArchiveError(f"Filesystem error: {e}", stage=stage.value) from e

    def _build_assets(self, template: PassTemplate, runtime: RuntimeContext,
                      serial_number: str, warnings):
        images = self.builder.build_images(template)
        document = self.builder.build(template, runtime, serial_number, logo_format=images.logo_format)
        strip = self.compositor.compose(template, runtime)
        warnings.extend(images.warnings)
        warnings.extend(strip.warnings)

        files = {'pass.json': document.to_json_bytes()}
        files.update(images.files)
        files.update(strip.files)

        preview = None
        barcode = document.descriptor.get('barcode')
        if self.barcode_renderer is not None and barcode is not None:
            preview = self.barcode_renderer.render(barcode['message'], template.barcode.format)
        return files, document, preview

    def _compute_manifest(self, staging: str, files):
        stage_files(staging, files)
        staged = read_staged(staging, member_order(files))
        manifest = serialize_manifest(compute_manifest(staged))
        return staged, manifest

    def _archive(self, serial_number: str, bundle: SignedBundle,
                 cancel_event: Optional[threading.Event] = None):
        archive = assemble_archive(bundle)
        location = None
        # Last point a cancelled request can leave storage untouched
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Pass generation cancelled before storing the archive")
            raise GenerationCancelled(stage=Stage.ARCHIVED.value)
        if self.store is not None:
            location = self.store.save(serial_number, archive)
        return archive, location


class PassService:
    """
    Entry point for pass generation.

    Owns the worker pool and the shared signer. Use as a context manager
    or call shutdown() when done.

    Args:
        config: engine configuration (defaults to the WALLET_PROFILE profile)
        signer: pre-built signer; loaded from config when omitted
        store: storage collaborator for finished archives
        resolver: image asset resolver
        barcode_renderer: optional barcode preview renderer
    """

    def __init__(self, config: Config = None, signer: ManifestSigner = None,
                 store: Optional[BundleStore] = None, resolver: AssetResolver = None,
                 barcode_renderer: Optional[BarcodeRenderer] = None):
        self.config = config or get_config()
        self.signer = signer or ManifestSigner.from_config(self.config)
        self.pipeline = PassGenerationPipeline(
            self.config, self.signer, resolver=resolver, store=store, barcode_renderer=barcode_renderer
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, self.config.max_workers),
            thread_name_prefix='stampcard'
        )
        logger.info(
            f"Pass service ready ({self.config.profile} profile, {self.config.max_workers} workers, "
            f"{'placeholder' if self.signer.uses_placeholder else 'pkcs7'} signing)"
        )

    def validate(self, template: PassTemplate, runtime: RuntimeContext,
                 check_assets: bool = True) -> ValidationReport:
        """Run compliance checks only."""
        return self.pipeline.validator.validate(template, runtime, runtime.serial_number,
                                                check_assets=check_assets)

    def preview_strip(self, template: PassTemplate, runtime: RuntimeContext) -> StripResult:
        """
        Compose the stamp strip without building or signing a bundle.

        Raises:
            ValidationError: if the colors or stamp program cannot be rendered
        """
        report = self.pipeline.validator.validate_strip(template, runtime)
        if not report.is_valid:
            raise ValidationError(report)
        return self.pipeline.compositor.compose(template, runtime)

    def submit(self, template: PassTemplate, runtime: RuntimeContext,
               cancel_event: Optional[threading.Event] = None) -> Future:
        """
        Queue a generation request on the worker pool.

        Returns:
            Future resolving to a GenerationResult
        """
        return self._executor.submit(self.pipeline.run, template, runtime, cancel_event)

    def generate(self, template: PassTemplate, runtime: RuntimeContext,
                 timeout: Optional[float] = None) -> GenerationResult:
        """
        Generate a pass and wait for it.

        Args:
            template: pass template
            runtime: recipient values
            timeout: seconds to wait; on expiry the request is cancelled

        Returns:
            GenerationResult

        Raises:
            GenerationCancelled: the timeout expired. The worker stops at the
                next stage boundary or just before the archive is stored. A
                store.save() already under way still completes; the archive
                is keyed by serial number, so a retry replaces it.
        """
        cancel_event = threading.Event()
        future = self.submit(template, runtime, cancel_event)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            cancel_event.set()
            logger.warning(f"Pass generation timed out after {timeout}s; request cancelled")
            raise GenerationCancelled() from None

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False
