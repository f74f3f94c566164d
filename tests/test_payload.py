"""
Payload grammar per content kind.

  URL / Text        verbatim
  WiFi              WIFI:S:..;T:..;[P:..;];   (nopass keeps the double terminator)
  Email / SMS       percent-encoded like encodeURIComponent
  Geo               geo:lat,lon
  vCard / VEVENT    fixed line set, timestamps normalized
  WhatsApp          digits-only phone, optional ?text=
  LinkFolio         <base>?folio=<url-encoded token>
"""

import pytest

from qrfolio.errors import EncodingError
from qrfolio.folio import FolioProfile, decode, token_from_url
from qrfolio.kinds import ContentKind, FolioLink, WifiContent
from qrfolio.payload import encode, encode_content, format_ics_datetime


BASE = "https://qr.example/app"


def test_url_and_text_are_verbatim():
    assert encode(ContentKind.URL, {"url": "https://example.com/a?b=c"}) == "https://example.com/a?b=c"
    assert encode(ContentKind.TEXT, {"text": "hello; world"}) == "hello; world"


def test_missing_fields_default_to_empty():
    assert encode(ContentKind.URL, {}) == ""
    assert encode(ContentKind.GEO, {}) == "geo:,"


@pytest.mark.parametrize("kind", list(ContentKind))
def test_encode_is_deterministic(kind):
    values = {
        "url": "https://a.b", "text": "t", "ssid": "net", "password": "pw",
        "email": "a@b.c", "subject": "Hi there", "body": "x&y", "phone": "+1 555",
        "message": "héllo", "latitude": "1.5", "longitude": "-2", "firstName": "Ana",
        "lastName": "Lima", "summary": "Sync", "dtstart": "2024-05-01T10:30",
        "name": "José 🎉", "links": [{"title": "Site", "url": "https://a.b"}],
    }
    assert encode(kind, values, BASE) == encode(kind, dict(values), BASE)


# ---------------------------------------------------------------------------
# WiFi
# ---------------------------------------------------------------------------

def test_wifi_nopass_has_no_password_segment():
    assert encode(ContentKind.WIFI, {"ssid": "X", "encryption": "nopass"}) == "WIFI:S:X;T:nopass;;"


def test_wifi_nopass_ignores_password():
    payload = encode(ContentKind.WIFI, {"ssid": "X", "password": "secret", "encryption": "nopass"})
    assert "P:" not in payload


def test_wifi_defaults_to_wpa():
    assert encode(ContentKind.WIFI, {"ssid": "Home", "password": "pw"}) == "WIFI:S:Home;T:WPA;P:pw;;"


def test_wifi_typed_variant():
    assert encode_content(WifiContent(ssid="Cafe", password="1234", encryption="WEP")) == "WIFI:S:Cafe;T:WEP;P:1234;;"


# ---------------------------------------------------------------------------
# Email / SMS / Geo
# ---------------------------------------------------------------------------

def test_email_percent_encodes_subject_and_body():
    payload = encode(ContentKind.EMAIL, {"email": "a@b.c", "subject": "Hi there!", "body": "a&b=c"})
    assert payload == "mailto:a@b.c?subject=Hi%20there!&body=a%26b%3Dc"


def test_sms_encodes_message():
    assert encode(ContentKind.SMS, {"phone": "+15550001", "message": "ça va?"}) == "smsto:+15550001:%C3%A7a%20va%3F"


def test_geo():
    assert encode(ContentKind.GEO, {"latitude": "34.05", "longitude": "-118.24"}) == "geo:34.05,-118.24"


# ---------------------------------------------------------------------------
# vCard / VEVENT
# ---------------------------------------------------------------------------

def test_vcard_never_omits_lines():
    payload = encode(ContentKind.VCARD, {"firstName": "John", "lastName": "Doe"})
    assert payload.split("\n") == [
        "BEGIN:VCARD",
        "VERSION:3.0",
        "N:Doe;John",
        "FN:John Doe",
        "ORG:",
        "TITLE:",
        "TEL;TYPE=WORK,VOICE:",
        "EMAIL:",
        "URL:",
        "END:VCARD",
    ]


def test_event_normalizes_timestamps():
    payload = encode(ContentKind.EVENT, {"summary": "Standup", "dtstart": "2024-05-01T10:30:00.000"})
    lines = payload.split("\n")
    assert lines[0] == "BEGIN:VEVENT"
    assert "DTSTART:20240501T103000Z" in lines
    assert "DTEND:" in lines
    assert lines[-1] == "END:VEVENT"


@pytest.mark.parametrize("raw, expected", [
    ("2024-05-01T10:30:00.000", "20240501T103000Z"),
    ("2024-05-01T10:30", "20240501T1030Z"),
    ("", ""),
])
def test_format_ics_datetime(raw, expected):
    assert format_ics_datetime(raw) == expected


# ---------------------------------------------------------------------------
# WhatsApp
# ---------------------------------------------------------------------------

def test_chat_link_keeps_digits_only():
    payload = encode(ContentKind.WHATSAPP, {"phone": "+1 (555) 123-4567"})
    assert payload == "https://wa.me/15551234567"
    assert not any(ch in payload for ch in "+() -")


def test_chat_link_with_message():
    payload = encode(ContentKind.WHATSAPP, {"phone": "15551234567", "message": "Hello there"})
    assert payload == "https://wa.me/15551234567?text=Hello%20there"


# ---------------------------------------------------------------------------
# LinkFolio
# ---------------------------------------------------------------------------

def test_folio_payload_is_absolute_url_with_token():
    values = {
        "name": "José 🎉",
        "title": "",
        "links": [{"title": "Site", "url": "https://a.b"}, {"title": "", "url": "https://dropped"}],
    }
    payload = encode(ContentKind.LINK_FOLIO, values, BASE + "?old=1")
    assert payload.startswith(BASE + "?folio=")

    profile = decode(token_from_url(payload))
    assert profile.name == "José 🎉"
    assert profile.title is None
    assert profile.links == (FolioLink("Site", "https://a.b"),)


def test_folio_payload_fails_on_unrepresentable_text():
    with pytest.raises(EncodingError):
        encode(ContentKind.LINK_FOLIO, {"name": "bad \ud800 surrogate"}, BASE)


def test_folio_payload_uses_configured_parameter():
    payload = encode(ContentKind.LINK_FOLIO, {"name": "Ana"}, BASE, param="p")
    assert payload.startswith(BASE + "?p=")
    assert decode(token_from_url(payload, "p")).name == "Ana"


def test_folio_payload_carries_the_same_profile_as_form_values():
    values = {
        "profileImageUrl": "https://a.b/me.png",
        "name": "",
        "title": "Dev",
        "links": [{"title": "Site", "url": "https://a.b"}, {"title": "No url", "url": ""}],
    }
    payload = encode(ContentKind.LINK_FOLIO, values, BASE)
    assert decode(token_from_url(payload)) == FolioProfile.from_values(values)
