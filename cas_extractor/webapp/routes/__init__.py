"""Flask application factory and shared utilities."""

import os

from flask import Flask

# Upload size limit in MB, override with CAS_EXTRACTOR_MAX_UPLOAD_MB
DEFAULT_MAX_UPLOAD_MB = 16


def _max_upload_bytes() -> int:
    value = os.environ.get('CAS_EXTRACTOR_MAX_UPLOAD_MB', str(DEFAULT_MAX_UPLOAD_MB))
    try:
        megabytes = int(value)
    except ValueError:
        megabytes = DEFAULT_MAX_UPLOAD_MB
    return megabytes * 1024 * 1024


def create_app(config=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = _max_upload_bytes()
    if config:
        app.config.update(config)

    from cas_extractor.webapp.routes.extraction import extraction_bp

    app.register_blueprint(extraction_bp)

    return app
