"""WSGI entry point (``gunicorn -c gunicorn.conf.py shopauth.wsgi:app``)."""

from shopauth.factory import create_app

app = create_app()
