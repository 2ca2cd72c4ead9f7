# stampcard/config.py

"""
Engine Configuration

Environment-driven configuration for the pass engine. Each deployment
profile is a subclass of Config; pick one with get_config() or the
WALLET_PROFILE environment variable.
"""

import os
import logging

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration shared by every profile."""

    profile = 'development'
    testing = False

    def __init__(self, **overrides):
        """
        Read settings from the environment, then apply explicit overrides.

        Args:
            **overrides: attribute values that take precedence over the
                environment (e.g. ``max_workers=2``)

        Raises:
            ValueError: if an override names an unknown setting
        """
        self.p12_path = os.getenv('WALLET_P12_PATH')
        self.p12_password = os.getenv('WALLET_P12_PASSWORD', '')
        self.pass_type_identifier = os.getenv('WALLET_PASS_TYPE_ID', 'pass.com.example.loyalty')
        self.team_identifier = os.getenv('WALLET_TEAM_ID', '')
        self.organization_name = os.getenv('WALLET_ORGANIZATION_NAME', '')
        self.web_service_url = os.getenv('WALLET_WEB_SERVICE_URL', '')
        self.allow_placeholder_signature = _env_bool('WALLET_ALLOW_PLACEHOLDER_SIGNATURE', False)
        self.max_workers = int(os.getenv('WALLET_MAX_WORKERS', '4'))
        self.output_dir = os.getenv('WALLET_OUTPUT_DIR', 'passes')
        self.asset_timeout = float(os.getenv('WALLET_ASSET_TIMEOUT', '10'))
        self.background_opacity = float(os.getenv('WALLET_BACKGROUND_OPACITY', '0.4'))

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ValueError(f"Unknown configuration setting: {key}")
            setattr(self, key, value)

    @property
    def is_production(self) -> bool:
        return self.profile == 'production'

    @property
    def placeholder_signature_permitted(self) -> bool:
        """True only when placeholder signatures are opted into outside production."""
        return self.allow_placeholder_signature and not self.is_production

    def issues(self):
        """
        List configuration problems without raising.

        Returns:
            list of human-readable issue strings (empty when fully configured)
        """
        issues = []
        if not self.p12_path:
            issues.append("WALLET_P12_PATH is not set")
        elif not os.path.exists(self.p12_path):
            issues.append(f"Signing identity not found at {self.p12_path}")
        if not self.team_identifier:
            issues.append("WALLET_TEAM_ID is not set")
        if self.max_workers < 1:
            issues.append(f"WALLET_MAX_WORKERS must be at least 1, got {self.max_workers}")
        if self.is_production and self.allow_placeholder_signature:
            issues.append("Placeholder signatures cannot be enabled in production")
        return issues

    def to_dict(self):
        """Configuration summary safe for logs and diagnostics (no secrets)."""
        return {
            'profile': self.profile,
            'p12_path': self.p12_path,
            'pass_type_identifier': self.pass_type_identifier,
            'team_identifier': self.team_identifier,
            'organization_name': self.organization_name,
            'web_service_url': self.web_service_url,
            'allow_placeholder_signature': self.allow_placeholder_signature,
            'max_workers': self.max_workers,
            'output_dir': self.output_dir,
        }


class DevelopmentConfig(Config):
    profile = 'development'


class StagingConfig(Config):
    profile = 'staging'


class ProductionConfig(Config):
    profile = 'production'


class TestingConfig(Config):
    profile = 'testing'
    testing = True

    def __init__(self, **overrides):
        overrides.setdefault('max_workers', 2)
        overrides.setdefault('team_identifier', 'ABCDE12345')
        overrides.setdefault('organization_name', 'Test Coffee Co')
        super().__init__(**overrides)


PROFILES = {
    'development': DevelopmentConfig,
    'staging': StagingConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}


def get_config(profile: str = None, **overrides) -> Config:
    """
    Build the configuration for a deployment profile.

    Args:
        profile: profile name; defaults to WALLET_PROFILE, then 'development'
        **overrides: settings passed through to the Config constructor

    Returns:
        Config instance for the profile
    """
    name = (profile or os.getenv('WALLET_PROFILE') or 'development').strip().lower()
    config_class = PROFILES.get(name)
    if config_class is None:
        raise ValueError(f"Unknown wallet profile '{name}'. Expected one of: {', '.join(sorted(PROFILES))}")
    logger.debug(f"Loading {name} configuration")
    return config_class(**overrides)
