"""Payload encoder: (content kind, field values) -> text encoded into the QR symbol."""

import re
from collections.abc import Mapping
from functools import singledispatch
from urllib.parse import quote

from qrfolio import folio
from qrfolio.config import DEFAULT_SETTINGS
from qrfolio.errors import EncodingError
from qrfolio.kinds import (
    ChatContent,
    ContactContent,
    ContentKind,
    EmailContent,
    EventContent,
    FolioContent,
    GeoContent,
    SmsContent,
    TextContent,
    UrlContent,
    WifiContent,
    content_from_values,
)
from qrfolio.logging import audit, get_logger, trace

log = get_logger("payload")

CHAT_BASE = "https://wa.me/"

# encodeURIComponent leaves A-Z a-z 0-9 - _ . ! ~ * ' ( ) untouched
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_component(text: str) -> str:
    """Percent-encode *text* as a URI component (UTF-8)."""
    return quote(text, safe=_URI_COMPONENT_SAFE)


def format_ics_datetime(value: str) -> str:
    """``2024-05-01T10:30:00.000`` -> ``20240501T103000Z``; empty stays empty."""
    if not value:
        return ""
    return re.sub(r"[-:]", "", value).split(".")[0] + "Z"


def digits_only(value: str) -> str:
    return re.sub(r"\D", "", value)


@singledispatch
def encode_content(content, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    """Encode a typed content variant into its payload string."""
    raise TypeError(f"Unsupported content type: {type(content).__name__}")


@encode_content.register
def _(content: UrlContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    return content.url


@encode_content.register
def _(content: TextContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    return content.text


@encode_content.register
def _(content: WifiContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    enc = content.encryption or "WPA"
    value = f"WIFI:S:{content.ssid};T:{enc};"
    if enc != "nopass" and content.password:
        value += f"P:{content.password};"
    # outer terminator is appended even without a password segment
    return value + ";"


@encode_content.register
def _(content: EmailContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    return (
        f"mailto:{content.email}"
        f"?subject={encode_component(content.subject)}"
        f"&body={encode_component(content.body)}"
    )


@encode_content.register
def _(content: SmsContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    return f"smsto:{content.phone}:{encode_component(content.message)}"


@encode_content.register
def _(content: GeoContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    return f"geo:{content.latitude},{content.longitude}"


@encode_content.register
def _(content: ContactContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    return "\n".join([
        "BEGIN:VCARD",
        "VERSION:3.0",
        f"N:{content.last_name};{content.first_name}",
        f"FN:{content.first_name} {content.last_name}",
        f"ORG:{content.organization}",
        f"TITLE:{content.title}",
        f"TEL;TYPE=WORK,VOICE:{content.phone}",
        f"EMAIL:{content.email}",
        f"URL:{content.website}",
        "END:VCARD",
    ])


@encode_content.register
def _(content: EventContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    return "\n".join([
        "BEGIN:VEVENT",
        f"SUMMARY:{content.summary}",
        f"LOCATION:{content.location}",
        f"DTSTART:{format_ics_datetime(content.dtstart)}",
        f"DTEND:{format_ics_datetime(content.dtend)}",
        f"DESCRIPTION:{content.description}",
        "END:VEVENT",
    ])


@encode_content.register
def _(content: ChatContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    value = CHAT_BASE + digits_only(content.phone)
    if content.message:
        value += f"?text={encode_component(content.message)}"
    return value


@encode_content.register
def _(content: FolioContent, base_url: str | None = None, param: str = folio.DEFAULT_PARAM) -> str:
    return folio.folio_url(
        folio.FolioProfile.from_content(content),
        base_url or DEFAULT_SETTINGS.base_url,
        param=param,
    )


@trace
def encode(
    kind: ContentKind,
    values: Mapping,
    base_url: str | None = None,
    param: str = folio.DEFAULT_PARAM,
) -> str:
    """Build the payload for *kind* from form *values*.

    Deterministic and side-effect free. Only LINK_FOLIO can fail, with
    :class:`EncodingError`, when the profile text cannot be tokenized.

    Args:
        kind: Content kind selected in the form.
        values: Field id -> value. Missing fields count as ``""``; LINK_FOLIO
            also reads ``links`` as a sequence of ``{title, url}`` rows.
        base_url: Page address LINK_FOLIO tokens are attached to.
        param: Query parameter carrying the LINK_FOLIO token.
    """
    content = content_from_values(kind, values)
    try:
        payload = encode_content(content, base_url, param)
    except EncodingError as e:
        audit("payload.encode_failed", logger=log, kind=kind.value, error=str(e))
        raise
    audit("payload.encoded", logger=log, kind=kind.value, length=len(payload))
    return payload
