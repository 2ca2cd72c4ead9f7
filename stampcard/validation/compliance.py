# stampcard/validation/compliance.py

"""
Compliance Validator

Structural and business-rule checks run before any bundle work starts.
Every check appends to one ValidationReport so the editor sees all
violations at once; nothing here raises for a bad template.
"""

import re
import logging
from typing import Optional

from stampcard.colors import contrast_ratio, is_valid_color
from stampcard.compositor.assets import AssetResolver
from stampcard.config import Config
from stampcard.errors import AssetError
from stampcard.generators.base import build_template_data, render_placeholders
from stampcard.models import (
    FIELD_SECTIONS, PassTemplate, RuntimeContext, StripStrategy, ValidationReport
)
from stampcard.validation.barcodes import check_barcode_message

logger = logging.getLogger(__name__)

FIELD_LIMITS = {
    'header': 2,
    'primary': 2,
    'secondary': 4,
    'auxiliary': 4,
    'back': None,
}

FIELD_KEY_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9_]*$')
TEAM_ID_PATTERN = re.compile(r'^[A-Z0-9]{10}$')

VALID_ALIGNMENTS = {
    'PKTextAlignmentLeft',
    'PKTextAlignmentCenter',
    'PKTextAlignmentRight',
    'PKTextAlignmentNatural',
    'left',
    'center',
    'right',
    'natural',
}

MAX_VALUE_LENGTH = 100
MIN_CONTRAST_RATIO = 4.5
MIN_STAMPS = 1
MAX_STAMPS = 30

# Used for length checks before the real serial number exists
SAMPLE_SERIAL = '00000000-0000-0000-0000-000000000000'


class ComplianceValidator:
    """
    Validates a template/runtime pair.

    Args:
        config: engine configuration (identity defaults)
        resolver: asset resolver used when ``check_assets`` is requested
    """

    def __init__(self, config: Config, resolver: AssetResolver = None):
        self.config = config
        self.resolver = resolver or AssetResolver(timeout=config.asset_timeout)

    def validate(self, template: PassTemplate, runtime: RuntimeContext,
                 serial_number: Optional[str] = None, check_assets: bool = True) -> ValidationReport:
        """
        Run every check and collect all errors and warnings.

        Args:
            template: pass template
            runtime: recipient values
            serial_number: serial that will be used; a sample is used if None
            check_assets: try to load configured images (icon, logo, artwork)

        Returns:
            ValidationReport; ``is_valid`` is False iff errors is non-empty
        """
        report = ValidationReport()
        data = build_template_data(template, runtime, serial_number or SAMPLE_SERIAL)

        self._check_identity(template, report)
        self._check_fields(template, data, report)
        self._check_colors(template, report)
        self._check_barcode(template, data, report)
        self._check_stamp_program(template, runtime, report)
        self._check_assets(template, report, check_assets)

        if report.is_valid:
            logger.debug(f"Template passed validation with {len(report.warnings)} warning(s)")
        else:
            logger.info(
                f"Template failed validation: {len(report.errors)} error(s), "
                f"{len(report.warnings)} warning(s)"
            )
        return report

    def validate_strip(self, template: PassTemplate, runtime: RuntimeContext) -> ValidationReport:
        """
        Run only the checks the stamp strip depends on: colors, the stamp
        program and the strip strategy. Used before rendering a preview.
        """
        report = ValidationReport()
        self._check_colors(template, report)
        self._check_stamp_program(template, runtime, report)
        self._check_strip_strategy(template, report)
        return report

    def _check_identity(self, template: PassTemplate, report: ValidationReport):
        pass_type_id = template.pass_type_identifier or self.config.pass_type_identifier
        team_id = template.team_identifier or self.config.team_identifier
        organization = template.organization_name or self.config.organization_name

        if not pass_type_id:
            report.error('passTypeIdentifier: a pass type identifier is required')
        elif not pass_type_id.startswith('pass.'):
            report.warn(f"passTypeIdentifier: '{pass_type_id}' should start with 'pass.'")

        if not team_id:
            report.error('teamIdentifier: a team identifier is required')
        elif not TEAM_ID_PATTERN.match(team_id):
            report.warn(f"teamIdentifier: '{team_id}' should be 10 upper-case letters or digits")

        if not organization:
            report.error('organizationName: an organization name is required')
        if not template.description:
            report.error('description: a pass description is required')

        if self.config.web_service_url and not self.config.web_service_url.startswith('https://'):
            report.warn('webServiceURL: wallet clients only call web services over https')

    def _check_fields(self, template: PassTemplate, data, report: ValidationReport):
        seen_keys = set()
        total = 0

        for section in FIELD_SECTIONS:
            fields = template.section(section)
            total += len(fields)
            limit = FIELD_LIMITS[section]
            if limit is not None and len(fields) > limit:
                report.error(f"{section}: {len(fields)} fields exceeds the limit of {limit}")

            for position, spec in enumerate(fields):
                where = f"{section}[{position}]"
                if not spec.key:
                    report.error(f"{where}: field key is required")
                elif not FIELD_KEY_PATTERN.match(spec.key):
                    report.error(
                        f"{where}: field key '{spec.key}' must start with a letter and contain "
                        f"only letters, digits and underscores"
                    )
                elif spec.key in seen_keys:
                    report.error(f"{where}: duplicate field key '{spec.key}'")
                else:
                    seen_keys.add(spec.key)

                if spec.alignment not in VALID_ALIGNMENTS:
                    report.error(f"{where}: invalid text alignment '{spec.alignment}'")

                if not spec.value:
                    report.warn(f"{where}: field '{spec.key}' has an empty value")
                    continue

                rendered, unresolved = render_placeholders(spec.value, data)
                for name in unresolved:
                    report.warn(f"{where}: unresolved placeholder {{{{{name}}}}} in field '{spec.key}'")
                if len(rendered) > MAX_VALUE_LENGTH:
                    report.warn(
                        f"{where}: value of '{spec.key}' is {len(rendered)} characters and may be "
                        f"truncated (over {MAX_VALUE_LENGTH})"
                    )

        if total == 0:
            report.warn('fields: template has no fields')

        if template.logo_text:
            _, unresolved = render_placeholders(template.logo_text, data)
            for name in unresolved:
                report.warn(f"logoText: unresolved placeholder {{{{{name}}}}}")

    def _check_colors(self, template: PassTemplate, report: ValidationReport):
        colors = {
            'foreground': template.colors.foreground,
            'background': template.colors.background,
            'label': template.colors.label,
        }
        if template.colors.strip_background is not None:
            colors['stripBackground'] = template.colors.strip_background

        valid = {}
        for name, value in colors.items():
            if is_valid_color(value):
                valid[name] = value
            else:
                report.error(f"colors.{name}: {value!r} is not a valid rgb(r, g, b) color")

        if 'background' in valid:
            for name in ('foreground', 'label'):
                if name not in valid:
                    continue
                ratio = contrast_ratio(valid[name], valid['background'])
                if ratio < MIN_CONTRAST_RATIO:
                    report.warn(
                        f"colors.{name}: contrast ratio {ratio:.2f}:1 against the background "
                        f"is below {MIN_CONTRAST_RATIO}:1"
                    )

    def _check_barcode(self, template: PassTemplate, data, report: ValidationReport):
        if template.barcode is None:
            return
        message, unresolved = render_placeholders(template.barcode.message_template, data)
        for name in unresolved:
            report.warn(f"barcode.message: unresolved placeholder {{{{{name}}}}}")
        report.extend(check_barcode_message(template.barcode.format, message))

    def _check_stamp_program(self, template: PassTemplate, runtime: RuntimeContext,
                             report: ValidationReport):
        required = runtime.stamps_required
        if not MIN_STAMPS <= required <= MAX_STAMPS:
            report.error(f"stampsRequired: {required} is outside {MIN_STAMPS}..{MAX_STAMPS}")
        if runtime.stamps_earned < 0:
            report.error(f"stampsEarned: {runtime.stamps_earned} cannot be negative")
        elif runtime.stamps_earned > required:
            report.warn(
                f"stampsEarned: {runtime.stamps_earned} exceeds stampsRequired ({required}); "
                f"the card renders as complete"
            )

        seen = set()
        for position in template.milestones:
            if position in seen:
                report.error(f"milestones: position {position} is listed more than once")
                continue
            seen.add(position)
            if not 2 <= position <= required:
                report.error(f"milestones: position {position} is outside 2..{required}")

        if template.has_expiry and runtime.expiry_date is None:
            report.warn('expiryDate: hasExpiry is set but no expiry date was supplied; no expiry field is shown')

    def _check_strip_strategy(self, template: PassTemplate, report: ValidationReport):
        if template.strip_strategy is StripStrategy.TEXTURE and not template.images.strip_background:
            report.error('images.stripBackground: the texture strip strategy requires a strip background image')

    def _check_assets(self, template: PassTemplate, report: ValidationReport, load: bool):
        images = template.images
        self._check_strip_strategy(template, report)

        for role, ref in (('icon', images.icon), ('logo', images.logo)):
            if not ref:
                report.warn(f"images.{role}: no image configured; a default {role} will be used")
            elif load:
                self._try_load(ref, role, report, f"a default {role} will be used")

        if not load:
            return
        optional = (
            ('stripBackground', images.strip_background, 'the solid strip color will be used'),
            ('stampUnredeemed', images.stamp_unredeemed, 'a drawn stamp will be used'),
            ('stampEarned', images.stamp_earned, 'a drawn stamp will be used'),
            ('stampMilestone', images.stamp_milestone, 'the earned or unredeemed stamp will be used'),
        )
        for role, ref, fallback in optional:
            if ref:
                self._try_load(ref, role, report, fallback)

    def _try_load(self, ref, role: str, report: ValidationReport, fallback: str):
        try:
            self.resolver.open_image(ref, role)
        except AssetError as e:
            report.warn(f"images.{role}: {e.message}; {fallback}")
