"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

Serializes the app's OpenAPI schema to interfaces/openapi.json (or to the path
given on the command line) so that clients and documentation tools can consume
a stable spec without running the server.

Usage:
    python -m minitodo.generate_openapi [OUTPUT_PATH]
"""
from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, List, Optional

from .main import create_app, openapi_tags


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the tags metadata declared in main,
    without overriding tags that are already defined.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


def _default_output_path() -> str:
    return os.path.join(os.getcwd(), "interfaces", "openapi.json")


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Generate the OpenAPI schema file and return the written file path."""
    schema = create_app().openapi()
    _ensure_tags(schema)

    out_path = out_path or _default_output_path()
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    return out_path


def main() -> None:
    out_path = generate_openapi(sys.argv[1] if len(sys.argv) > 1 else None)
    print(f"Wrote OpenAPI schema to: {out_path}")


if __name__ == "__main__":
    main()
