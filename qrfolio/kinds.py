"""Content kinds, descriptive field metadata and typed content variants."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class ContentKind(Enum):
    URL = "url"
    TEXT = "text"
    WIFI = "wifi"
    EMAIL = "email"
    SMS = "sms"
    GEO = "geo"
    VCARD = "vcard"
    EVENT = "event"
    WHATSAPP = "whatsapp"
    LINK_FOLIO = "linkFolio"


@dataclass(frozen=True)
class FieldOption:
    value: str
    label: str


@dataclass(frozen=True)
class FieldSpec:
    """Static description of one form field for a content kind."""
    id: str
    label: str
    input_kind: str = "text"
    placeholder: str | None = None
    options: tuple[FieldOption, ...] = ()
    optional: bool = False


WIFI_ENCRYPTIONS = (
    FieldOption("WPA", "WPA/WPA2"),
    FieldOption("WEP", "WEP"),
    FieldOption("nopass", "No Encryption"),
)

KIND_LABELS = {
    ContentKind.URL: "Website URL",
    ContentKind.LINK_FOLIO: "Link Folio (Profile Page)",
    ContentKind.TEXT: "Plain Text",
    ContentKind.WIFI: "WiFi Network",
    ContentKind.EMAIL: "Email",
    ContentKind.SMS: "SMS",
    ContentKind.GEO: "Geo Location",
    ContentKind.VCARD: "Contact Card (vCard)",
    ContentKind.EVENT: "Calendar Event",
    ContentKind.WHATSAPP: "WhatsApp Chat",
}

FIELD_SPECS: dict[ContentKind, tuple[FieldSpec, ...]] = {
    ContentKind.URL: (
        FieldSpec("url", "URL", placeholder="https://example.com"),
    ),
    ContentKind.LINK_FOLIO: (
        FieldSpec("profileImageUrl", "Profile Image URL", "url", "https://example.com/image.png"),
        FieldSpec("name", "Name", placeholder="John Doe"),
        FieldSpec("title", "Title / Bio", placeholder="Software Engineer | Cat Enthusiast"),
    ),
    ContentKind.TEXT: (
        FieldSpec("text", "Text", placeholder="Enter your text here"),
    ),
    ContentKind.WIFI: (
        FieldSpec("ssid", "Network Name (SSID)", placeholder="MyWiFiNetwork"),
        FieldSpec("password", "Password", placeholder="YourPassword"),
        FieldSpec("encryption", "Encryption", "select", options=WIFI_ENCRYPTIONS),
    ),
    ContentKind.EMAIL: (
        FieldSpec("email", "To Email", "email", "recipient@example.com"),
        FieldSpec("subject", "Subject", placeholder="Email Subject"),
        FieldSpec("body", "Body", "textarea", "Email body text", optional=True),
    ),
    ContentKind.SMS: (
        FieldSpec("phone", "Phone Number", "tel", "+11234567890"),
        FieldSpec("message", "Message", "textarea", "Your SMS message"),
    ),
    ContentKind.GEO: (
        FieldSpec("latitude", "Latitude", "number", "34.052235"),
        FieldSpec("longitude", "Longitude", "number", "-118.243683"),
    ),
    ContentKind.VCARD: (
        FieldSpec("firstName", "First Name", placeholder="John"),
        FieldSpec("lastName", "Last Name", placeholder="Doe"),
        FieldSpec("phone", "Phone", "tel", "+15551234567"),
        FieldSpec("email", "Email", "email", "john.doe@example.com"),
        FieldSpec("organization", "Organization", placeholder="ACME Inc.", optional=True),
        FieldSpec("title", "Title", placeholder="Software Engineer", optional=True),
        FieldSpec("website", "Website", "url", "https://example.com", optional=True),
    ),
    ContentKind.EVENT: (
        FieldSpec("summary", "Event Title", placeholder="Team Meeting"),
        FieldSpec("dtstart", "Start Time", "datetime-local"),
        FieldSpec("dtend", "End Time", "datetime-local"),
        FieldSpec("location", "Location", placeholder="Conference Room 1", optional=True),
        FieldSpec("description", "Description", "textarea", "Discuss project milestones", optional=True),
    ),
    ContentKind.WHATSAPP: (
        FieldSpec("phone", "Phone Number (International format)", "tel", "15551234567"),
        FieldSpec("message", "Pre-filled Message", "textarea", "Hello!", optional=True),
    ),
}

DEFAULT_URL = "https://ai.google.dev"


# ---------------------------------------------------------------------------
# Typed content variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UrlContent:
    url: str = ""


@dataclass(frozen=True)
class TextContent:
    text: str = ""


@dataclass(frozen=True)
class WifiContent:
    ssid: str = ""
    password: str = ""
    encryption: str = "WPA"


@dataclass(frozen=True)
class EmailContent:
    email: str = ""
    subject: str = ""
    body: str = ""


@dataclass(frozen=True)
class SmsContent:
    phone: str = ""
    message: str = ""


@dataclass(frozen=True)
class GeoContent:
    latitude: str = ""
    longitude: str = ""


@dataclass(frozen=True)
class ContactContent:
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""
    organization: str = ""
    title: str = ""
    website: str = ""


@dataclass(frozen=True)
class EventContent:
    summary: str = ""
    dtstart: str = ""
    dtend: str = ""
    location: str = ""
    description: str = ""


@dataclass(frozen=True)
class ChatContent:
    phone: str = ""
    message: str = ""


@dataclass(frozen=True)
class FolioLink:
    title: str
    url: str


@dataclass(frozen=True)
class FolioContent:
    profile_image_url: str = ""
    name: str = ""
    title: str = ""
    links: tuple[FolioLink, ...] = field(default_factory=tuple)


Content = (
    UrlContent | TextContent | WifiContent | EmailContent | SmsContent
    | GeoContent | ContactContent | EventContent | ChatContent | FolioContent
)


def _text(values: Mapping, key: str, default: str = "") -> str:
    value = values.get(key)
    if value is None:
        return default
    return str(value)


def coerce_links(raw) -> tuple[FolioLink, ...]:
    """Normalize form link rows (dicts or FolioLink) into FolioLink tuples."""
    links = []
    for item in raw or ():
        if isinstance(item, FolioLink):
            links.append(item)
        elif isinstance(item, Mapping):
            links.append(FolioLink(title=_text(item, "title"), url=_text(item, "url")))
    return tuple(links)


def content_from_values(kind: ContentKind, values: Mapping) -> Content:
    """Build the typed variant for *kind* from raw form values.

    Absent fields default to ``""``; WiFi encryption defaults to ``WPA``.
    """
    if kind is ContentKind.URL:
        return UrlContent(url=_text(values, "url"))
    if kind is ContentKind.TEXT:
        return TextContent(text=_text(values, "text"))
    if kind is ContentKind.WIFI:
        return WifiContent(
            ssid=_text(values, "ssid"),
            password=_text(values, "password"),
            encryption=_text(values, "encryption") or "WPA",
        )
    if kind is ContentKind.EMAIL:
        return EmailContent(
            email=_text(values, "email"),
            subject=_text(values, "subject"),
            body=_text(values, "body"),
        )
    if kind is ContentKind.SMS:
        return SmsContent(phone=_text(values, "phone"), message=_text(values, "message"))
    if kind is ContentKind.GEO:
        return GeoContent(latitude=_text(values, "latitude"), longitude=_text(values, "longitude"))
    if kind is ContentKind.VCARD:
        return ContactContent(
            first_name=_text(values, "firstName"),
            last_name=_text(values, "lastName"),
            phone=_text(values, "phone"),
            email=_text(values, "email"),
            organization=_text(values, "organization"),
            title=_text(values, "title"),
            website=_text(values, "website"),
        )
    if kind is ContentKind.EVENT:
        return EventContent(
            summary=_text(values, "summary"),
            dtstart=_text(values, "dtstart"),
            dtend=_text(values, "dtend"),
            location=_text(values, "location"),
            description=_text(values, "description"),
        )
    if kind is ContentKind.WHATSAPP:
        return ChatContent(phone=_text(values, "phone"), message=_text(values, "message"))
    if kind is ContentKind.LINK_FOLIO:
        return FolioContent(
            profile_image_url=_text(values, "profileImageUrl"),
            name=_text(values, "name"),
            title=_text(values, "title"),
            links=coerce_links(values.get("links")),
        )
    raise ValueError(f"Unknown content kind: {kind!r}")


def default_values(kind: ContentKind) -> dict:
    """Initial form values when the user switches to *kind*."""
    if kind is ContentKind.LINK_FOLIO:
        return {
            "profileImageUrl": "",
            "name": "",
            "title": "",
            "links": [{"title": "Website", "url": "https://"}],
        }
    values = {}
    for spec in FIELD_SPECS[kind]:
        if spec.id == "url":
            values[spec.id] = DEFAULT_URL
        elif spec.input_kind == "select" and spec.options:
            values[spec.id] = spec.options[0].value
        else:
            values[spec.id] = ""
    return values


def visible_fields(kind: ContentKind, values: Mapping) -> tuple[FieldSpec, ...]:
    """Fields shown for the current values (no password for open networks)."""
    specs = FIELD_SPECS[kind]
    if kind is ContentKind.WIFI and values.get("encryption") == "nopass":
        specs = tuple(s for s in specs if s.id != "password")
    return specs


def primary_fields(kind: ContentKind, values: Mapping) -> tuple[FieldSpec, ...]:
    return tuple(s for s in visible_fields(kind, values) if not s.optional)


def advanced_fields(kind: ContentKind, values: Mapping) -> tuple[FieldSpec, ...]:
    return tuple(s for s in visible_fields(kind, values) if s.optional)
