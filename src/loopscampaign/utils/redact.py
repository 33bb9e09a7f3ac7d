from __future__ import annotations


def redact_token(token: str, *, keep: int = 6) -> str:
    """Mask a session token, keeping only its first `keep` characters."""
    if not token:
        return ""
    if len(token) <= keep * 2:
        return "*" * len(token)
    return f"{token[:keep]}…({len(token)} chars)"


def redact_url(url: str) -> str:
    # Presigned URLs carry their signature in the query string.
    return url.split("?", 1)[0]
