"""WSGI entrypoint for serving the estimator API."""

from uktax.backend.app import create_app

application = create_app()
