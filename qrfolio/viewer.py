"""Folio viewer: reconstructs a profile page from the ``folio`` query parameter."""

from urllib.parse import urlsplit

from qrfolio import folio
from qrfolio.config import DEFAULT_SETTINGS, Settings
from qrfolio.errors import DecodeError
from qrfolio.logging import audit, get_logger, trace

log = get_logger("viewer")

SAFE_LINK_SCHEMES = ("http", "https", "mailto", "tel")

PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ profile.name or "Link Folio" }}</title>
</head>
<body>
<main class="folio">
  {% if image_url %}<img class="avatar" src="{{ image_url }}" alt="{{ profile.name or 'Profile' }}">{% endif %}
  {% if profile.name %}<h1>{{ profile.name }}</h1>{% endif %}
  {% if profile.title %}<p class="bio">{{ profile.title }}</p>{% endif %}
  {% if links %}
  <nav class="links">
    {% for link in links %}
    {% if link.safe %}<a href="{{ link.url }}" target="_blank" rel="noopener noreferrer">{{ link.label }}</a>
    {% else %}<span class="link-text">{{ link.label }}</span>{% endif %}
    {% endfor %}
  </nav>
  {% endif %}
</main>
</body>
</html>
"""

INVALID_PAGE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>Invalid Link Folio</title></head>
<body>
<main class="folio-invalid">
  <h1>Invalid Link Folio</h1>
  <p>The link you followed is corrupted or invalid. Please check the QR code and try again.</p>
</main>
</body>
</html>
"""


def is_safe_link(url: str) -> bool:
    """Only plain navigational schemes may become clickable."""
    return urlsplit(url.strip()).scheme.lower() in SAFE_LINK_SCHEMES


@trace
def load_profile(token: str) -> folio.FolioProfile:
    """Single decode point of the viewer; raises DecodeError on a bad token."""
    try:
        return folio.decode(token)
    except DecodeError as e:
        audit("viewer.invalid_link", logger=log, reason=str(e))
        raise


def display_links(profile: folio.FolioProfile) -> list[dict]:
    return [
        {"url": link.url, "label": link.title or link.url, "safe": is_safe_link(link.url)}
        for link in profile.links
    ]


def profile_json(profile: folio.FolioProfile) -> dict:
    data = {key: value for key, value in profile.to_dict().items() if key != "links"}
    data["links"] = [{"title": link.title, "url": link.url} for link in profile.links]
    return data


def create_viewer_app(settings: Settings = DEFAULT_SETTINGS):
    """Flask app serving the folio page and a JSON view of the same data."""
    from flask import Flask, jsonify, render_template_string, request

    app = Flask(__name__)
    param = settings.folio_param

    @app.route("/")
    def folio_page():
        token = request.args.get(param, "")
        try:
            profile = load_profile(token)
        except DecodeError:
            return render_template_string(INVALID_PAGE), 400
        image_url = profile.profile_image_url
        if image_url and urlsplit(image_url).scheme.lower() not in ("http", "https"):
            image_url = None
        return render_template_string(
            PAGE, profile=profile, image_url=image_url, links=display_links(profile),
        )

    @app.route("/api/folio")
    def folio_api():
        try:
            profile = load_profile(request.args.get(param, ""))
        except DecodeError:
            return jsonify({"error": "invalid_link"}), 400
        return jsonify(profile_json(profile))

    return app
