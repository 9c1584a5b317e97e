"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

The schema is built from a freshly created app so that API clients and
documentation tools can consume a stable schema without running the server.

Usage:
    python -m src.api.generate_openapi [output path]

Notes:
- Every tag declared in main.openapi_tags is present in the written schema.
- Default output path is relative to the container root: interfaces/openapi.json
"""
from __future__ import annotations

import dataclasses
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from .dependencies import build_services
from .main import create_app, openapi_tags
from .settings import get_settings

logger = logging.getLogger(__name__)


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the expected tags metadata. Existing
    tag definitions are kept; missing ones are appended.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


def default_output_path() -> str:
    """Return <container_root>/interfaces/openapi.json."""
    script_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))  # points to .../src
    container_root = os.path.dirname(script_dir)
    return os.path.join(container_root, "interfaces", "openapi.json")


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Generate the OpenAPI schema file and return the written file path."""
    # Memory-backed services: rendering the schema must not touch a database.
    settings = dataclasses.replace(get_settings(), persistence_backend="memory")
    schema = create_app(services=build_services(settings)).openapi()
    _ensure_tags(schema)

    path = out_path or default_output_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    logger.info("Wrote OpenAPI schema to: %s", path)
    return path


def main() -> None:
    generate_openapi(sys.argv[1] if len(sys.argv) > 1 else None)


if __name__ == "__main__":
    main()
