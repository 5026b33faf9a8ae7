from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, Depends, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

security_scheme = HTTPBearer(auto_error=False)


@dataclass
class SecurityConfig:
    token: str | None = None

    def set_token(self, token: Optional[str]):
        self.token = token or None


_security_config = SecurityConfig()


def get_security_config() -> SecurityConfig:
    return _security_config


def verify_token(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    token: Optional[str] = Query(None)
):
    config = get_security_config()
    if not config.token:
        return

    if creds and creds.credentials == config.token:
        return

    if token and token == config.token:
        return

    raise HTTPException(status_code=401, detail="Missing or invalid authentication token")


def validate_input_path(path_str: str, what: str = "path") -> Path:
    """Reject syntactically broken paths before they reach the filesystem."""
    s = (path_str or "").strip()
    if not s:
        raise HTTPException(status_code=400, detail=f"Invalid {what} (empty)")
    if "\0" in s:
        raise HTTPException(status_code=400, detail=f"Invalid {what} (NUL byte)")
    return Path(s).expanduser()
