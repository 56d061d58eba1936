"""
WSGI / Flask-Migrate entry point.

Usage:
    flask db migrate -m "description"
    flask db upgrade
    gunicorn wsgi:app
"""

from podtracker import create_app

app = create_app()
