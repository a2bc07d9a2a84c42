"""Response envelope shared by every endpoint"""

from typing import Any, Optional


def success_response(data: Any = None, message: str = "") -> dict:
    return {"success": True, "message": message, "data": data}


def error_body(message: str, conflicts: Optional[list] = None) -> dict:
    body = {"success": False, "message": message}
    if conflicts:
        body["conflicts"] = conflicts
    return body
