from __future__ import annotations


class Permissions:
    UPLOADS_WRITE = "uploads:write"

    IDENTITY_ISSUE = "identity:issue"


__all__ = ["Permissions"]
