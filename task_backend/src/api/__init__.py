"""
FastAPI task backend package.

The application instance lives in ``src.api.main`` (``src.api.main:app``);
use ``src.api.main.create_app`` to build one with explicit settings or
services. Importing this package has no side effects.
"""
