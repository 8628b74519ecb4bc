"""JSON output envelopes for CLI commands.

Every command prints exactly one JSON object on stdout::

    {"success": true, "data": {...}, "error": null}
"""

import json
import sys
from typing import Any, Dict, NoReturn, Optional


def _emit(payload: Dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")
    sys.stdout.flush()


def emit_success(data: Dict[str, Any]) -> None:
    """Print a success envelope."""
    _emit({"success": True, "data": data, "error": None})


def emit_error(
    message: str,
    *,
    code: str,
    error_type: str,
    remediation: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> NoReturn:
    """Print an error envelope and exit with status 1."""
    data: Dict[str, Any] = {"error_code": code, "error_type": error_type}
    if remediation:
        data["remediation"] = remediation
    if details:
        data.update(details)
    _emit({"success": False, "data": data, "error": message})
    sys.exit(1)
