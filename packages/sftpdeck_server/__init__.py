"""sftpdeck HTTP server.

Exposes the sftpdeck file operations to the web client as FastAPI routes.
"""
