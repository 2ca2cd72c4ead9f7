# stampcard/models.py

"""
Pass Engine Data Model

Immutable request inputs (PassTemplate, RuntimeContext), the pure geometry
results (LayoutResult, DimensionResult, StampSlot) and the explicit result
values handed back by the pipeline (ValidationReport, SignedBundle,
GenerationResult).

Templates arrive from the editor as camelCase JSON; ``from_dict`` turns
them into these dataclasses and nothing downstream touches raw dicts.
"""

import enum
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Any, Optional, List, Tuple, Union

from stampcard.errors import ValidationError

FIELD_SECTIONS = ('header', 'primary', 'secondary', 'auxiliary', 'back')

# Asset references are a local path, an http(s) URL or raw image bytes
AssetRef = Optional[Union[str, bytes]]


class StampState(enum.Enum):
    UNREDEEMED = 'unredeemed'
    EARNED = 'earned'
    MILESTONE = 'milestone'


class StripStrategy(enum.Enum):
    """How the strip behind the stamp grid is painted."""
    SOLID = 'solid'
    TEXTURE = 'texture'


class LogoFormat(enum.Enum):
    SQUARE = 'square'
    WIDE = 'wide'


class Stage(enum.Enum):
    """Pipeline stages, in the only order they may run."""
    VALIDATED = 'validated'
    ASSETS_BUILT = 'assets_built'
    MANIFEST_COMPUTED = 'manifest_computed'
    SIGNED = 'signed'
    ARCHIVED = 'archived'


class SignatureKind(enum.Enum):
    PKCS7 = 'pkcs7'
    PLACEHOLDER = 'placeholder'


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# VALIDATION REPORT
# =============================================================================

@dataclass
class ValidationReport:
    """Every violation found in one pass; warnings never block generation."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, message: str):
        self.errors.append(message)

    def warn(self, message: str):
        self.warnings.append(message)

    def extend(self, other: 'ValidationReport'):
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isValid': self.is_valid,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
        }


# =============================================================================
# TEMPLATE INPUTS
# =============================================================================

@dataclass(frozen=True)
class FieldSpec:
    key: str
    label: str = ''
    value: str = ''
    alignment: str = 'PKTextAlignmentNatural'

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldSpec':
        alignment = data.get('textAlignment', data.get('alignment')) or 'PKTextAlignmentNatural'
        value = data.get('value', '')
        return cls(
            key=str(data.get('key') or ''),
            label=str(data.get('label') or ''),
            value='' if value is None else str(value),
            alignment=str(alignment),
        )


@dataclass(frozen=True)
class ColorSet:
    foreground: str = 'rgb(255, 255, 255)'
    background: str = 'rgb(0, 0, 0)'
    label: str = 'rgb(255, 255, 255)'
    strip_background: Optional[str] = None

    @property
    def strip_fill(self) -> str:
        """Color painted behind the stamps; falls back to the pass background."""
        return self.strip_background or self.background


@dataclass(frozen=True)
class ImageAssets:
    logo: AssetRef = None
    icon: AssetRef = None
    strip_background: AssetRef = None
    stamp_unredeemed: AssetRef = None
    stamp_earned: AssetRef = None
    stamp_milestone: AssetRef = None


@dataclass(frozen=True)
class BarcodeSpec:
    message_template: str = 'PASS_ID:{{serialNumber}}:CAMPAIGN_ID:{{campaignId}}'
    format: str = 'qr'
    alt_text: str = 'Loyalty Card QR Code'
    encoding: str = 'iso-8859-1'


def _json_object(data: Dict[str, Any], name: str, report: ValidationReport) -> Dict[str, Any]:
    """Return ``data[name]`` when it is an object; record an error otherwise."""
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        report.error(f"{name}: expected a JSON object")
        return {}
    return value


@dataclass(frozen=True)
class PassTemplate:
    """Reusable visual template owned by the editor. Never mutated here."""
    description: str = 'Loyalty Card'
    organization_name: str = ''
    logo_text: str = ''
    colors: ColorSet = field(default_factory=ColorSet)
    fields: Dict[str, Tuple[FieldSpec, ...]] = field(default_factory=dict)
    images: ImageAssets = field(default_factory=ImageAssets)
    barcode: Optional[BarcodeSpec] = field(default_factory=BarcodeSpec)
    milestones: Tuple[int, ...] = ()
    has_expiry: bool = False
    strip_strategy: StripStrategy = StripStrategy.SOLID
    pass_type_identifier: Optional[str] = None
    team_identifier: Optional[str] = None

    def section(self, name: str) -> Tuple[FieldSpec, ...]:
        return self.fields.get(name, ())

    def all_fields(self) -> List[Tuple[str, FieldSpec]]:
        return [(name, spec) for name in FIELD_SECTIONS for spec in self.section(name)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PassTemplate':
        """
        Build a template from the editor's JSON representation.

        Args:
            data: camelCase template dictionary

        Returns:
            PassTemplate

        Raises:
            ValidationError: if the document is structurally unusable
        """
        report = ValidationReport()
        if not isinstance(data, dict):
            report.error('template: expected a JSON object')
            raise ValidationError(report)

        colors_data = _json_object(data, 'colors', report)
        colors = ColorSet(
            foreground=colors_data.get('foreground', ColorSet.foreground),
            background=colors_data.get('background', ColorSet.background),
            label=colors_data.get('label', ColorSet.label),
            strip_background=colors_data.get('stripBackground'),
        )

        fields_data = _json_object(data, 'fields', report)
        fields = {}
        for section in FIELD_SECTIONS:
            entries = fields_data.get(section) or []
            if not isinstance(entries, list):
                report.error(f"{section}: expected a list of fields")
                continue
            parsed = []
            for position, entry in enumerate(entries):
                if not isinstance(entry, dict):
                    report.error(f"{section}[{position}]: expected a field object")
                    continue
                parsed.append(FieldSpec.from_dict(entry))
            fields[section] = tuple(parsed)
        for section in fields_data:
            if section not in FIELD_SECTIONS:
                report.error(f"fields: unknown section '{section}'")

        images_data = _json_object(data, 'images', report)
        images = ImageAssets(
            logo=images_data.get('logo'),
            icon=images_data.get('icon'),
            strip_background=images_data.get('stripBackground'),
            stamp_unredeemed=images_data.get('stampUnredeemed'),
            stamp_earned=images_data.get('stampEarned'),
            stamp_milestone=images_data.get('stampMilestone'),
        )

        barcode = None
        barcode_data = data.get('barcode', {})
        if barcode_data is not None and not isinstance(barcode_data, dict):
            report.error('barcode: expected a JSON object')
        elif barcode_data is not None:
            barcode = BarcodeSpec(
                message_template=barcode_data.get('message', BarcodeSpec.message_template),
                format=str(barcode_data.get('format', BarcodeSpec.format)).lower(),
                alt_text=barcode_data.get('altText', BarcodeSpec.alt_text),
                encoding=barcode_data.get('encoding', BarcodeSpec.encoding),
            )

        milestones = []
        milestones_data = data.get('milestones') or []
        if not isinstance(milestones_data, list):
            report.error('milestones: expected a list of positions')
            milestones_data = []
        for raw in milestones_data:
            if isinstance(raw, bool) or not isinstance(raw, int):
                report.error(f"milestones: position {raw!r} is not an integer")
                continue
            milestones.append(raw)

        strategy_name = data.get('stripStrategy')
        if strategy_name is None:
            strategy = StripStrategy.TEXTURE if images.strip_background else StripStrategy.SOLID
        else:
            try:
                strategy = StripStrategy(str(strategy_name).lower())
            except ValueError:
                report.error(f"stripStrategy: unknown strategy '{strategy_name}'")
                strategy = StripStrategy.SOLID

        if report.errors:
            raise ValidationError(report)

        return cls(
            description=data.get('description') or 'Loyalty Card',
            organization_name=data.get('organizationName') or '',
            logo_text=data.get('logoText') or '',
            colors=colors,
            fields=fields,
            images=images,
            barcode=barcode,
            milestones=tuple(milestones),
            has_expiry=bool(data.get('hasExpiry', False)),
            strip_strategy=strategy,
            pass_type_identifier=data.get('passTypeIdentifier'),
            team_identifier=data.get('teamIdentifier'),
        )


def _parse_expiry(value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, (date, datetime)):
        return value
    text = str(value).strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


@dataclass(frozen=True)
class RuntimeContext:
    """Per-recipient values that resolve placeholders and drive stamp state."""
    stamps_earned: int = 0
    stamps_required: int = 10
    points: Optional[int] = None
    expiry_date: Optional[date] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    serial_number: Optional[str] = None
    authentication_token: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RuntimeContext':
        report = ValidationReport()
        if not isinstance(data, dict):
            report.error('runtime: expected a JSON object')
            raise ValidationError(report)

        def _int(name, default):
            raw = data.get(name, default)
            if raw is None:
                return default
            try:
                return int(raw)
            except (TypeError, ValueError):
                report.error(f"{name}: {raw!r} is not an integer")
                return default

        stamps_earned = _int('stampsEarned', 0)
        stamps_required = _int('stampsRequired', 10)
        points = _int('points', None)

        try:
            expiry = _parse_expiry(data.get('expiryDate'))
        except ValueError:
            report.error(f"expiryDate: {data.get('expiryDate')!r} is not an ISO-8601 date")
            expiry = None

        extra = _json_object(data, 'extra', report)

        if report.errors:
            raise ValidationError(report)

        def _str(name):
            value = data.get(name)
            return None if value is None else str(value)

        return cls(
            stamps_earned=stamps_earned,
            stamps_required=stamps_required,
            points=points,
            expiry_date=expiry,
            customer_id=_str('customerId'),
            customer_name=_str('customerName'),
            customer_email=_str('customerEmail'),
            campaign_id=_str('campaignId'),
            campaign_name=_str('campaignName'),
            serial_number=_str('serialNumber'),
            authentication_token=_str('authenticationToken'),
            extra=dict(extra),
        )


# =============================================================================
# GEOMETRY
# =============================================================================

@dataclass(frozen=True)
class LayoutResult:
    rows: int
    cols: int

    @property
    def capacity(self) -> int:
        return self.rows * self.cols


@dataclass(frozen=True)
class DimensionResult:
    """
    Concrete strip geometry at one scale.

    All lengths are in pixels at ``scale``. The grid is centered
    horizontally in the strip and vertically inside the safe area.
    """
    strip_width: int
    strip_height: int
    safe_area_top: float
    safe_area_height: float
    stamp_diameter: float
    gap: float
    scale: int
    rows: int
    cols: int

    @property
    def grid_width(self) -> float:
        return self.stamp_diameter * self.cols + self.gap * (self.cols - 1)

    @property
    def grid_height(self) -> float:
        return self.stamp_diameter * self.rows + self.gap * (self.rows - 1)

    @property
    def origin_x(self) -> float:
        return (self.strip_width - self.grid_width) / 2

    @property
    def origin_y(self) -> float:
        return self.safe_area_top + (self.safe_area_height - self.grid_height) / 2

    def cell_origin(self, index: int) -> Tuple[float, float]:
        """Top-left corner of the stamp at ``index`` (row-major)."""
        row, col = divmod(index, self.cols)
        return (
            self.origin_x + col * (self.stamp_diameter + self.gap),
            self.origin_y + row * (self.stamp_diameter + self.gap),
        )

    def pixel_cells(self, count: int) -> List[Tuple[int, int, int]]:
        """
        Integer pixel placement shared with the interactive preview.

        Diameter and gap round half-up, the grid's left edge is floored
        and its top edge rounded, then cells step by diameter + gap. When
        rounding up would push the grid more than one pixel past the strip
        width, the diameter shrinks a pixel at a time until it fits.

        Returns:
            list of (x, y, diameter) for the first ``count`` cells
        """
        diameter = _round_half_up(self.stamp_diameter)
        gap = _round_half_up(self.gap)
        grid_w = self.cols * diameter + (self.cols - 1) * gap
        while grid_w > self.strip_width + 1 and diameter > 1:
            diameter -= 1
            grid_w = self.cols * diameter + (self.cols - 1) * gap
        grid_h = self.rows * diameter + (self.rows - 1) * gap
        start_x = int(math.floor((self.strip_width - grid_w) / 2))
        start_y = _round_half_up(self.safe_area_top + (self.safe_area_height - grid_h) / 2)

        cells = []
        for index in range(min(count, self.rows * self.cols)):
            row, col = divmod(index, self.cols)
            cells.append((start_x + col * (diameter + gap), start_y + row * (diameter + gap), diameter))
        return cells

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stripWidth': self.strip_width,
            'stripHeight': self.strip_height,
            'safeAreaTop': self.safe_area_top,
            'safeAreaHeight': self.safe_area_height,
            'stampDiameter': self.stamp_diameter,
            'gap': self.gap,
            'scale': self.scale,
            'rows': self.rows,
            'cols': self.cols,
        }


@dataclass(frozen=True)
class StampSlot:
    index: int
    state: StampState
    earned: bool


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class SignedBundle:
    """
    Files of one pass bundle plus its manifest and detached signature.

    ``files`` holds every member except ``manifest.json`` and ``signature``.
    """
    files: Dict[str, bytes]
    manifest: bytes
    signature: bytes
    signature_kind: SignatureKind = SignatureKind.PKCS7

    @property
    def is_placeholder(self) -> bool:
        return self.signature_kind is SignatureKind.PLACEHOLDER


@dataclass
class GenerationResult:
    """Explicit outcome of one generation request."""
    serial_number: str
    archive: bytes
    bundle: SignedBundle
    warnings: List[str] = field(default_factory=list)
    unresolved_placeholders: List[str] = field(default_factory=list)
    stages: List[Stage] = field(default_factory=list)
    storage_location: Optional[str] = None
    barcode_preview: Optional[bytes] = None

    @property
    def is_placeholder_signed(self) -> bool:
        return self.bundle.is_placeholder

    def to_dict(self) -> Dict[str, Any]:
        return {
            'serialNumber': self.serial_number,
            'archiveSize': len(self.archive),
            'files': sorted(self.bundle.files),
            'signatureKind': self.bundle.signature_kind.value,
            'warnings': list(self.warnings),
            'unresolvedPlaceholders': list(self.unresolved_placeholders),
            'stages': [stage.value for stage in self.stages],
            'storageLocation': self.storage_location,
        }
