# vibe_api/services/auth_service.py
# Verification of the HS256 session token issued by the auth provider

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, Optional


class InvalidTokenError(Exception):
    pass


@dataclass(frozen=True)
class Identity:
    email: str
    name: Optional[str] = None
    image: Optional[str] = None


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(seg: str) -> bytes:
    pad = "=" * ((4 - (len(seg) % 4)) % 4)
    return base64.urlsafe_b64decode((seg + pad).encode("ascii"))


def _sign(signing_input: bytes, secret: str) -> str:
    sig = hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()
    return _b64url_encode(sig)


def mint_session_token(
    *,
    secret: str,
    email: str,
    name: Optional[str] = None,
    picture: Optional[str] = None,
    ttl_s: int = 3600,
    now_s: Optional[int] = None,
) -> str:
    now = int(time.time() if now_s is None else now_s)
    header = {"alg": "HS256", "typ": "JWT"}
    payload: dict[str, Any] = {"email": email, "iat": now, "exp": now + max(1, int(ttl_s))}
    if name:
        payload["name"] = name
    if picture:
        payload["picture"] = picture

    h = _b64url_encode(json.dumps(header, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    p = _b64url_encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    signing_input = f"{h}.{p}".encode("ascii")
    return f"{h}.{p}.{_sign(signing_input, secret)}"


def verify_session_token(token: str, *, secret: str, now_s: Optional[int] = None) -> Identity:
    """Return the identity carried by ``token``. Raises InvalidTokenError."""
    parts = (token or "").split(".")
    if len(parts) != 3:
        raise InvalidTokenError("malformed token")
    h, p, s = parts

    try:
        header = json.loads(_b64url_decode(h))
        payload = json.loads(_b64url_decode(p))
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidTokenError("undecodable token") from exc

    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise InvalidTokenError("unsupported algorithm")
    expected = _sign(f"{h}.{p}".encode("ascii"), secret)
    if not hmac.compare_digest(expected.encode("ascii"), s.encode("utf-8")):
        raise InvalidTokenError("bad signature")
    if not isinstance(payload, dict):
        raise InvalidTokenError("bad payload")

    now = int(time.time() if now_s is None else now_s)
    exp = payload.get("exp")
    if not isinstance(exp, (int, float)) or exp <= now:
        raise InvalidTokenError("expired")

    email = payload.get("email")
    if not isinstance(email, str) or not email:
        raise InvalidTokenError("no email claim")

    return Identity(email=email, name=payload.get("name"), image=payload.get("picture"))


class AuthService:

    def __init__(self, secret: str, cookie_name: str):
        self._secret = secret
        self.cookie_name = cookie_name

    def identify(self, cookie_token: Optional[str], authorization: Optional[str]) -> Optional[Identity]:
        """Resolve the caller from the session cookie or a Bearer header; None when absent or invalid."""
        token = cookie_token
        if not token and authorization and authorization.lower().startswith("bearer "):
            token = authorization[7:].strip()
        if not token:
            return None
        try:
            return verify_session_token(token, secret=self._secret)
        except InvalidTokenError:
            return None
