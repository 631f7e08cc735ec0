"""
Service-level error for the know-it-all assistant.
"""

from typing import Any, Optional


class KnowItAllError(Exception):
    """
    Error raised by the chat, embedding and retrieval services.

    Attributes:
        code: Stable machine-readable code (e.g. "DOCUMENT_SEARCH_FAILED")
        status_code: HTTP status the API layer should answer with
        details: Optional extra context (original error message, ids)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"success": False, "error": self.message, "code": self.code}
        if self.details is not None:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"KnowItAllError(code={self.code!r}, status_code={self.status_code}, message={self.message!r})"
