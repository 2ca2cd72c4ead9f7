# stampcard/app.py

"""
Application factory for the pass engine HTTP API.
"""

import logging

from flask import Flask

from stampcard.config import Config, get_config
from stampcard.log_config import init_logging
from stampcard.services.barcode_service import BarcodeRenderer
from stampcard.services.pass_service import PassService
from stampcard.services.storage import FilesystemBundleStore

logger = logging.getLogger(__name__)


def create_app(config: Config = None, service: PassService = None):
    """
    Create the Flask application.

    Args:
        config: engine configuration (defaults to the WALLET_PROFILE profile)
        service: pre-built PassService; created from config when omitted

    Returns:
        A configured Flask application instance.
    """
    config = config or get_config()
    init_logging(testing=config.testing)

    app = Flask(__name__)
    app.config['TESTING'] = config.testing
    app.config['WALLET_PROFILE'] = config.profile

    if service is None:
        service = PassService(
            config,
            store=FilesystemBundleStore(config.output_dir),
            barcode_renderer=BarcodeRenderer(),
        )
    app.extensions['stampcard'] = service

    from stampcard.routes import passes_bp
    app.register_blueprint(passes_bp)

    logger.info(f"Pass engine API created ({config.profile} profile)")
    return app
