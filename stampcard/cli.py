# stampcard/cli.py

"""
Pass Engine CLI Commands

Command-line tools for the pass engine, including:
- Template validation
- Bundle generation
- Layout inspection
- Bundle verification
- Configuration checks
"""

import sys
import json

import click

from stampcard.config import get_config
from stampcard.errors import PassEngineError, ValidationError
from stampcard.layout import calculate_all_scales
from stampcard.log_config import init_logging
from stampcard.models import PassTemplate, RuntimeContext, ValidationReport


def _load_json(path):
    """
    Read a JSON input file.

    Raises:
        ValidationError: if the file is not valid JSON
    """
    with open(path, 'r', encoding='utf-8') as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            report = ValidationReport()
            report.error(f"{path}: invalid JSON at line {e.lineno} column {e.colno}: {e.msg}")
            raise ValidationError(report) from e


def _load_inputs(template_path, runtime_path, stamps_earned, stamps_required):
    runtime_data = _load_json(runtime_path) if runtime_path else {}
    if isinstance(runtime_data, dict):
        if stamps_earned is not None:
            runtime_data['stampsEarned'] = stamps_earned
        if stamps_required is not None:
            runtime_data['stampsRequired'] = stamps_required
    return PassTemplate.from_dict(_load_json(template_path)), RuntimeContext.from_dict(runtime_data)


def _echo_report(report):
    for error in report.errors:
        click.echo(f"ERROR    {error}")
    for warning in report.warnings:
        click.echo(f"WARNING  {warning}")


@click.group()
@click.option('--profile', default=None, help='Configuration profile (defaults to WALLET_PROFILE).')
@click.option('--debug', is_flag=True, help='Verbose logging.')
@click.pass_context
def cli(ctx, profile, debug):
    """Stamp card wallet pass commands."""
    ctx.ensure_object(dict)
    config = get_config(profile)
    init_logging(testing=config.testing, debug=debug)
    ctx.obj['config'] = config


runtime_options = [
    click.option('--runtime', 'runtime_path', type=click.Path(exists=True, dir_okay=False),
                 help='Runtime context JSON file.'),
    click.option('--stamps-earned', type=int, default=None, help='Override stampsEarned.'),
    click.option('--stamps-required', type=int, default=None, help='Override stampsRequired.'),
]


def with_runtime_options(func):
    for option in reversed(runtime_options):
        func = option(func)
    return func


@cli.command()
@click.argument('template_path', type=click.Path(exists=True, dir_okay=False))
@with_runtime_options
@click.option('--no-assets', is_flag=True, help='Skip loading image assets.')
@click.pass_context
def validate(ctx, template_path, runtime_path, stamps_earned, stamps_required, no_assets):
    """Validate a template against runtime values."""
    from stampcard.validation.compliance import ComplianceValidator

    try:
        template, runtime = _load_inputs(template_path, runtime_path, stamps_earned, stamps_required)
    except ValidationError as e:
        _echo_report(e.report)
        sys.exit(1)

    report = ComplianceValidator(ctx.obj['config']).validate(
        template, runtime, runtime.serial_number, check_assets=not no_assets
    )
    _echo_report(report)
    if not report.is_valid:
        click.echo(f"Invalid: {len(report.errors)} error(s), {len(report.warnings)} warning(s)")
        sys.exit(1)
    click.echo(f"Valid ({len(report.warnings)} warning(s))")


@cli.command()
@click.argument('template_path', type=click.Path(exists=True, dir_okay=False))
@with_runtime_options
@click.option('--output-dir', type=click.Path(file_okay=False), default=None,
              help='Directory for the .pkpass file (defaults to WALLET_OUTPUT_DIR).')
@click.pass_context
def generate(ctx, template_path, runtime_path, stamps_earned, stamps_required, output_dir):
    """Generate a signed .pkpass bundle."""
    from stampcard.services.pass_service import PassService
    from stampcard.services.storage import FilesystemBundleStore

    config = ctx.obj['config']
    try:
        template, runtime = _load_inputs(template_path, runtime_path, stamps_earned, stamps_required)
        store = FilesystemBundleStore(output_dir or config.output_dir)
        with PassService(config, store=store) as service:
            result = service.generate(template, runtime)
    except ValidationError as e:
        _echo_report(e.report)
        sys.exit(1)
    except PassEngineError as e:
        click.echo(f"Generation failed: {e}", err=True)
        sys.exit(2)

    for warning in result.warnings:
        click.echo(f"WARNING  {warning}")
    if result.is_placeholder_signed:
        click.echo("WARNING  bundle carries a PLACEHOLDER signature and will not install on devices")
    click.echo(f"Generated {result.serial_number} -> {result.storage_location}")


@cli.command()
@click.argument('stamp_count', type=click.IntRange(1, 30))
def layout(stamp_count):
    """Show grid layout and strip geometry for a stamp count."""
    dimensions = calculate_all_scales(stamp_count)
    first = dimensions[1]
    click.echo(f"{stamp_count} stamps: {first.rows} row(s) x {first.cols} column(s)")
    for scale, result in dimensions.items():
        click.echo(
            f"  @{scale}x strip {result.strip_width}x{result.strip_height}, "
            f"diameter {result.stamp_diameter:g}, gap {result.gap:g}, "
            f"origin ({result.origin_x:g}, {result.origin_y:g})"
        )


@cli.command()
@click.argument('archive_path', type=click.Path(exists=True, dir_okay=False))
def verify(archive_path):
    """Verify a .pkpass bundle's manifest and signature."""
    from stampcard.signing.archive import verify_bundle

    with open(archive_path, 'rb') as f:
        result = verify_bundle(f.read())

    for error in result.errors:
        click.echo(f"ERROR    {error}")
    if not result.is_valid:
        click.echo(f"Invalid bundle ({len(result.errors)} problem(s))")
        sys.exit(1)
    click.echo(f"Valid bundle signed by {result.signer} ({len(result.files)} files)")


@cli.command('check-config')
@click.pass_context
def check_config(ctx):
    """Report signing and identity configuration problems."""
    config = ctx.obj['config']
    issues = config.issues()
    click.echo(json.dumps(config.to_dict(), indent=2))
    if issues:
        for issue in issues:
            click.echo(f"ISSUE    {issue}")
        sys.exit(1)
    click.echo("Configuration OK")


if __name__ == '__main__':
    cli()
