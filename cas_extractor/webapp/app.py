"""
Development server for the CAS extraction API.

Usage:
    python -m cas_extractor.webapp.app
"""

from cas_extractor.webapp.routes import create_app

app = create_app()


if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
