"""Link folio codec: profile <-> URL token, shared by generator and viewer."""

import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import parse_qs, quote, urlsplit

from qrfolio.errors import DecodeError, EncodingError
from qrfolio.kinds import ContentKind, FolioContent, FolioLink, content_from_values
from qrfolio.logging import audit, get_logger, trace

log = get_logger("folio")

DEFAULT_PARAM = "folio"

# JSON key -> FolioProfile attribute
_SCALAR_KEYS = {
    "profileImageUrl": "profile_image_url",
    "name": "name",
    "title": "title",
}
RECOGNIZED_KEYS = frozenset(_SCALAR_KEYS) | {"links"}


@dataclass(frozen=True)
class FolioProfile:
    """Profile carried by a folio link. Absent fields are ``None``."""
    profile_image_url: str | None = None
    name: str | None = None
    title: str | None = None
    links: tuple[FolioLink, ...] = field(default_factory=tuple)

    @classmethod
    def from_content(cls, content: FolioContent) -> "FolioProfile":
        """Build the generator-side profile from the typed form content.

        Empty strings become absent; links keep only complete rows.
        """
        return cls(
            profile_image_url=content.profile_image_url or None,
            name=content.name or None,
            title=content.title or None,
            links=tuple(link for link in content.links if link.title and link.url),
        )

    @classmethod
    def from_values(cls, values: Mapping) -> "FolioProfile":
        return cls.from_content(content_from_values(ContentKind.LINK_FOLIO, values))

    def to_dict(self) -> dict:
        data = {}
        for key, attr in _SCALAR_KEYS.items():
            value = getattr(self, attr)
            if value:
                data[key] = value
        data["links"] = [
            {"title": link.title, "url": link.url}
            for link in self.links
            if link.title and link.url
        ]
        return data


@trace
def encode(profile: FolioProfile) -> str:
    """Serialize *profile* to a Base64 token of its compact UTF-8 JSON.

    Raises:
        EncodingError: the text holds code points UTF-8 cannot represent
            (e.g. lone surrogates).
    """
    text = json.dumps(profile.to_dict(), ensure_ascii=False, separators=(",", ":"))
    try:
        raw = text.encode("utf-8")
    except UnicodeEncodeError as e:
        audit("folio.encode_failed", logger=log, error=str(e))
        raise EncodingError(
            "Could not encode data for QR code. Please check for unsupported characters."
        ) from e
    token = base64.b64encode(raw).decode("ascii")
    audit("folio.encoded", logger=log, links=len(profile.links), token_len=len(token))
    return token


def _unbase64(token: str) -> bytes:
    cleaned = token.strip().replace("-", "+").replace("_", "/").replace(" ", "+")
    cleaned += "=" * (-len(cleaned) % 4)
    return base64.b64decode(cleaned, validate=True)


def _reject(token: str, reason: str) -> DecodeError:
    audit("folio.decode_rejected", logger=log, reason=reason, token_len=len(token or ""))
    return DecodeError(reason)


@trace
def decode(token: str) -> FolioProfile:
    """Reverse :func:`encode`.

    The result is untrusted display data. Raises :class:`DecodeError` for
    empty, malformed, non-JSON or empty-object tokens.
    """
    if not token:
        raise _reject("", "empty token")
    try:
        raw = _unbase64(token)
        text = raw.decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise _reject(token, f"not a valid token: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise _reject(token, f"not JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise _reject(token, "token does not hold an object")
    if not RECOGNIZED_KEYS & data.keys():
        raise _reject(token, "token holds no profile fields")

    scalars = {}
    for key, attr in _SCALAR_KEYS.items():
        value = data.get(key)
        if isinstance(value, str) and value:
            scalars[attr] = value

    links = []
    raw_links = data.get("links")
    if isinstance(raw_links, list):
        for item in raw_links:
            if not isinstance(item, dict):
                continue
            url = item.get("url")
            title = item.get("title")
            if isinstance(url, str) and url:
                links.append(FolioLink(title=title if isinstance(title, str) else "", url=url))

    profile = FolioProfile(links=tuple(links), **scalars)
    audit("folio.decoded", logger=log, fields=sorted(scalars), links=len(links))
    return profile


def base_address(url: str) -> str:
    """Page address without its query string or fragment."""
    return url.split("#", 1)[0].split("?", 1)[0]


def folio_url(profile: FolioProfile, base_url: str, param: str = DEFAULT_PARAM) -> str:
    """Full absolute link ``<base>?<param>=<url-encoded token>``."""
    token = encode(profile)
    return f"{base_address(base_url)}?{param}={quote(token, safe='')}"


def token_from_url(url: str, param: str = DEFAULT_PARAM) -> str:
    """Extract the folio token from a link (empty string when absent)."""
    query = urlsplit(url).query
    values = parse_qs(query, keep_blank_values=True).get(param)
    return values[0] if values else ""
