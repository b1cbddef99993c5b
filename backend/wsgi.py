# Overview: WSGI entry point; FLASK_APP target for the CLI command groups.

from ordercycle import create_app

app = create_app()
