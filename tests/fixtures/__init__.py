"""
Test Fixtures

Recorded provider responses used by client and transformer tests.

Components:
    - v1 places:searchText and places/{id} responses
    - Legacy textsearch and details responses
"""

__all__ = [
    "load_fixture",
    "load_json_fixture",
]

import json
from pathlib import Path
from typing import Any, Dict


def load_fixture(filename: str) -> str:
    """
    Load fixture file content.

    Args:
        filename: Name of fixture file

    Returns:
        File content as string
    """
    fixture_path = Path(__file__).parent / filename
    return fixture_path.read_text(encoding="utf-8")


def load_json_fixture(filename: str) -> Dict[str, Any]:
    """Load and decode a JSON fixture file."""
    return json.loads(load_fixture(filename))
