"""
Pass Engine CLI Tests.
"""
import json
import os

import pytest
from click.testing import CliRunner

from conftest import P12_PASSWORD, make_png
from stampcard.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def env(p12_path):
    return {
        'WALLET_P12_PATH': p12_path,
        'WALLET_P12_PASSWORD': P12_PASSWORD,
        'WALLET_TEAM_ID': 'ABCDE12345',
        'WALLET_WEB_SERVICE_URL': '',
        'WALLET_ALLOW_PLACEHOLDER_SIGNATURE': '',
    }


@pytest.fixture
def template_file(template_data, tmp_path):
    icon = tmp_path / 'icon.png'
    icon.write_bytes(make_png((58, 58), (0, 128, 0, 255)))
    logo = tmp_path / 'logo.png'
    logo.write_bytes(make_png((100, 100), (255, 255, 255, 255)))
    template_data['images'] = {'icon': str(icon), 'logo': str(logo)}

    path = tmp_path / 'template.json'
    path.write_text(json.dumps(template_data))
    return str(path)


@pytest.fixture
def runtime_file(tmp_path):
    path = tmp_path / 'runtime.json'
    path.write_text(json.dumps({
        'stampsEarned': 7,
        'stampsRequired': 10,
        'customerName': 'Jane Doe',
        'campaignId': 'camp-42',
        'serialNumber': 'serial-0001',
    }))
    return str(path)


# =============================================================================
# COMMANDS
# =============================================================================

@pytest.mark.integration
class TestCliCommands:
    """Test the stampcard command group."""

    def test_layout(self, runner, env):
        result = runner.invoke(cli, ['--profile', 'testing', 'layout', '10'], env=env)

        assert result.exit_code == 0, result.output
        assert '10 stamps: 2 row(s) x 5 column(s)' in result.output
        assert '@3x strip 1125x432' in result.output

    def test_layout_rejects_out_of_range(self, runner, env):
        result = runner.invoke(cli, ['--profile', 'testing', 'layout', '31'], env=env)
        assert result.exit_code != 0

    def test_validate_valid_template(self, runner, env, template_file, runtime_file):
        result = runner.invoke(
            cli, ['--profile', 'testing', 'validate', template_file, '--runtime', runtime_file], env=env
        )

        assert result.exit_code == 0, result.output
        assert 'Valid (' in result.output

    def test_validate_reports_errors(self, runner, env, template_file):
        """
        GIVEN a template validated against 31 required stamps
        WHEN running validate
        THEN the error is printed and the exit code is 1
        """
        result = runner.invoke(
            cli, ['--profile', 'testing', 'validate', template_file, '--stamps-required', '31'], env=env
        )

        assert result.exit_code == 1
        assert 'ERROR    stampsRequired: 31 is outside 1..30' in result.output

    def test_validate_malformed_template_json(self, runner, env, tmp_path):
        """
        GIVEN a template file that is not valid JSON
        WHEN running validate
        THEN an ERROR line names the file and the exit code is 1
        """
        path = tmp_path / 'broken.json'
        path.write_text('{"fields": ')

        result = runner.invoke(cli, ['--profile', 'testing', 'validate', str(path)], env=env)

        assert result.exit_code == 1
        assert f'ERROR    {path}: invalid JSON at line 1' in result.output
        assert 'Traceback' not in result.output

    def test_generate_malformed_runtime_json(self, runner, env, template_file, tmp_path):
        runtime = tmp_path / 'runtime.json'
        runtime.write_text("{'stampsEarned': 3}")
        out_dir = tmp_path / 'out'

        result = runner.invoke(
            cli,
            ['--profile', 'testing', 'generate', template_file, '--runtime', str(runtime),
             '--output-dir', str(out_dir)],
            env=env
        )

        assert result.exit_code == 1
        assert f'ERROR    {runtime}: invalid JSON' in result.output
        assert not out_dir.exists() or os.listdir(out_dir) == []

    def test_validate_non_object_runtime(self, runner, env, template_file, tmp_path):
        runtime = tmp_path / 'runtime.json'
        runtime.write_text('[1, 2]')

        result = runner.invoke(
            cli,
            ['--profile', 'testing', 'validate', template_file, '--runtime', str(runtime),
             '--stamps-earned', '3'],
            env=env
        )

        assert result.exit_code == 1
        assert 'ERROR    runtime: expected a JSON object' in result.output

    def test_generate_and_verify(self, runner, env, template_file, runtime_file, tmp_path):
        """
        GIVEN a valid template and runtime
        WHEN generating and then verifying the bundle
        THEN both commands succeed
        """
        out_dir = tmp_path / 'out'
        result = runner.invoke(
            cli,
            ['--profile', 'testing', 'generate', template_file, '--runtime', runtime_file,
             '--output-dir', str(out_dir)],
            env=env
        )

        assert result.exit_code == 0, result.output
        archive_path = out_dir / 'serial-0001.pkpass'
        assert f'Generated serial-0001 -> {archive_path}' in result.output
        assert os.path.exists(archive_path)

        verified = runner.invoke(cli, ['--profile', 'testing', 'verify', str(archive_path)], env=env)
        assert verified.exit_code == 0, verified.output
        assert 'Valid bundle signed by' in verified.output

    def test_generate_validation_failure(self, runner, env, template_file, tmp_path):
        out_dir = tmp_path / 'out'
        result = runner.invoke(
            cli,
            ['--profile', 'testing', 'generate', template_file, '--stamps-required', '0',
             '--output-dir', str(out_dir)],
            env=env
        )

        assert result.exit_code == 1
        assert not out_dir.exists() or os.listdir(out_dir) == []

    def test_generate_without_identity(self, runner, env, template_file, tmp_path):
        """
        GIVEN no signing identity and no placeholder opt-in
        WHEN generating
        THEN the command fails with exit code 2
        """
        env['WALLET_P12_PATH'] = str(tmp_path / 'missing.p12')
        result = runner.invoke(
            cli, ['--profile', 'testing', 'generate', template_file, '--output-dir', str(tmp_path / 'out')],
            env=env
        )

        assert result.exit_code == 2

    def test_verify_rejects_tampered_archive(self, runner, env, tmp_path):
        path = tmp_path / 'broken.pkpass'
        path.write_bytes(b'not a zip')

        result = runner.invoke(cli, ['--profile', 'testing', 'verify', str(path)], env=env)

        assert result.exit_code == 1
        assert 'Invalid bundle' in result.output

    def test_check_config(self, runner, env):
        result = runner.invoke(cli, ['--profile', 'testing', 'check-config'], env=env)

        assert result.exit_code == 0, result.output
        assert 'Configuration OK' in result.output
        assert P12_PASSWORD not in result.output

    def test_check_config_reports_issues(self, runner, env, tmp_path):
        env['WALLET_P12_PATH'] = str(tmp_path / 'missing.p12')
        result = runner.invoke(cli, ['--profile', 'testing', 'check-config'], env=env)

        assert result.exit_code == 1
        assert 'ISSUE    Signing identity not found' in result.output
