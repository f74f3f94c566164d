"""qrfolio CLI: encode, render, validate, scan, export and serve link folios."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from qrfolio.config import Settings
from qrfolio.logging import audit, get_logger, setup_logging

log = get_logger("cli")

# WCAG minimum for graphical objects
MIN_CONTRAST = 3.0

KIND_CHOICES = ["url", "text", "wifi", "email", "sms", "geo", "vcard", "event", "whatsapp", "linkFolio"]


def _parse_pairs(pairs: list[str] | None, sep: str = "=") -> list[tuple[str, str]]:
    parsed = []
    for pair in pairs or []:
        key, found, value = pair.partition(sep)
        if not found:
            raise SystemExit(f"expected KEY{sep}VALUE, got '{pair}'")
        parsed.append((key, value))
    return parsed


def _form_values(args) -> dict:
    values = dict(_parse_pairs(args.field))
    if args.link:
        values["links"] = [{"title": t, "url": u} for t, u in _parse_pairs(args.link)]
    return values


def _style_from_args(args, settings: Settings):
    from qrfolio.generator import StyleConfig, load_logo, parse_hex_color

    style = StyleConfig(ecc=settings.ecc, shape=args.shape, finder_style=args.finder_style)
    changes = {}
    if args.color:
        changes["data_color"] = parse_hex_color(args.color)
    if args.finder_color:
        changes["finder_color"] = parse_hex_color(args.finder_color)
    if args.bg_color:
        changes["bg_color"] = parse_hex_color(args.bg_color)
    if args.logo:
        path = Path(args.logo)
        content_type = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg",
                        ".gif": "image/gif"}.get(path.suffix.lower(), "application/octet-stream")
        changes["logo"] = load_logo(path.read_bytes(), content_type, settings.max_logo_bytes)
        changes["logo_size"] = args.logo_size
    return style.with_changes(**changes)


async def _prepared_session(args, settings: Settings):
    from qrfolio.generator import RenderSurface
    from qrfolio.kinds import ContentKind
    from qrfolio.session import GeneratorSession

    session = GeneratorSession(settings)
    session.attach(RenderSurface(args.size, args.size))
    session.set_kind(ContentKind(args.kind))
    session.set_values({**session.values, **_form_values(args)})
    session.set_style(_style_from_args(args, settings))
    await session.validation.wait()
    return session


def cmd_encode(args, settings):
    """Print the payload for a content kind."""
    from qrfolio.errors import EncodingError
    from qrfolio.kinds import ContentKind
    from qrfolio.payload import encode

    try:
        print(encode(ContentKind(args.kind), _form_values(args), settings.base_url, settings.folio_param))
    except EncodingError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


def cmd_generate(args, settings):
    """Render a QR code and check that it decodes back to its payload."""
    from qrfolio.errors import CaptureError
    from qrfolio.generator import contrast_ratio

    session = asyncio.run(_prepared_session(args, settings))
    if session.error:
        print(f"Error: {session.error}", file=sys.stderr)
        sys.exit(2)

    ratio = contrast_ratio(session.style.data_color, session.style.bg_color)
    if ratio < MIN_CONTRAST:
        audit("style.low_contrast", logger=log, ratio=round(ratio, 2))
        print(f"Warning: low contrast ({ratio:.1f}:1) between modules and background", file=sys.stderr)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    fmt = output.suffix.lstrip(".").lower() or "png"
    try:
        raster = session.renderer.get_raster(fmt, size=args.size if fmt == "png" else None)
    except CaptureError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    output.write_bytes(raster)

    print(f"Generated: {output}")
    print(f"  Payload:    {session.payload[:80]}")
    print(f"  Validation: {session.status.value.upper()}")
    sys.exit(0 if session.status.value == "success" else 1)


def cmd_verify(args, settings):
    """Verify a QR code image against an expected payload."""
    from PIL import Image

    from qrfolio.verify import verify

    img = Image.open(args.image)
    results = verify(img, expected_data=args.expected)

    all_pass = True
    for r in results:
        status = "PASS" if r.success else "FAIL"
        if not r.success:
            all_pass = False
        print(f"  [{r.decoder:12s}] {status} | {r.decode_time_ms:6.1f}ms | {r.decoded_data or r.error}")

    sys.exit(0 if all_pass else 1)


def cmd_scan(args, settings):
    """Decode an image file and print its content."""
    from qrfolio.verify import is_url, scan_image

    data = scan_image(Path(args.image).read_bytes())
    if data is None:
        print("No QR code found.", file=sys.stderr)
        sys.exit(1)
    print(data)
    if is_url(data):
        print("  (link)")


def cmd_folio_decode(args, settings):
    """Decode a folio token or a full folio link."""
    from qrfolio.errors import DecodeError
    from qrfolio.folio import decode, token_from_url
    from qrfolio.viewer import profile_json

    source = args.token
    token = token_from_url(source, settings.folio_param) if "://" in source else source
    try:
        profile = decode(token)
    except DecodeError as e:
        print(f"Invalid Link Folio: {e}", file=sys.stderr)
        sys.exit(2)
    print(json.dumps(profile_json(profile), ensure_ascii=False, indent=2))


def cmd_export(args, settings):
    """Bundle PNG, SVG and an optional art overlay into one zip."""
    from qrfolio.errors import PipelineError

    async def run():
        session = await _prepared_session(args, settings)
        if args.overlay:
            overlay = args.overlay if "://" in args.overlay or args.overlay.startswith("data:") \
                else Path(args.overlay).read_bytes()
            session.attach_overlay(overlay)
        return await session.export(on_progress=lambda pct, msg: print(f"  [{pct:3d}%] {msg}"))

    try:
        result = asyncio.run(run())
    except PipelineError as e:
        print(f"Export failed: {e}", file=sys.stderr)
        sys.exit(1)
    path = result.save(args.output_dir)
    print(f"Exported {len(result.artifacts)} files to {path}")
    for name in result.names:
        print(f"  {name}")


def cmd_fields(args, settings):
    """List the form fields of a content kind."""
    from qrfolio.kinds import ContentKind, advanced_fields, default_values, primary_fields

    kind = ContentKind(args.kind)
    values = {**default_values(kind), **dict(_parse_pairs(args.field))}
    for spec in primary_fields(kind, values):
        print(f"  {spec.id:16s} {spec.label}")
    advanced = advanced_fields(kind, values)
    if advanced:
        print("Advanced:")
        for spec in advanced:
            print(f"  {spec.id:16s} {spec.label}")
    if kind is ContentKind.LINK_FOLIO:
        print("  --link TITLE=URL (repeatable)")


def cmd_prompt(args, settings):
    """Suggest a prompt for the external art step."""
    from qrfolio.overlay import random_prompt

    print(random_prompt())


def cmd_serve(args, settings):
    """Start the folio viewer."""
    from qrfolio.viewer import create_viewer_app

    app = create_viewer_app(settings)
    print(f"Starting folio viewer on http://0.0.0.0:{args.port}")
    app.run(host="0.0.0.0", port=args.port, debug=args.debug)


def _add_content_args(p):
    p.add_argument("kind", choices=KIND_CHOICES, help="Content kind")
    p.add_argument("-f", "--field", action="append", metavar="ID=VALUE", help="Form field value (repeatable)")
    p.add_argument("--link", action="append", metavar="TITLE=URL", help="Folio link (repeatable)")


def _add_style_args(p):
    p.add_argument("--size", type=int, default=512, help="Raster width/height in px")
    p.add_argument("--shape", default="rounded", choices=["square", "rounded", "dots"], help="Data module shape")
    p.add_argument("--finder-style", default="rounded", choices=["standard", "rounded", "dots"])
    p.add_argument("--color", default=None, help="Data module colour (hex)")
    p.add_argument("--finder-color", default=None, help="Finder colour (hex)")
    p.add_argument("--bg-color", default=None, help="Background colour (hex)")
    p.add_argument("--logo", default=None, help="Path to a PNG/JPG/GIF logo")
    p.add_argument("--logo-size", type=float, default=0.4, help="Logo width as a fraction of the code")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="qrfolio", description="qrfolio: verified QR codes and link folios")

    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")
    parser.add_argument("--base-url", default=None, help="Page address folio links point to")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_enc = subparsers.add_parser("encode", help="Print the payload for a content kind")
    _add_content_args(p_enc)

    p_gen = subparsers.add_parser("generate", help="Render and validate a QR code")
    _add_content_args(p_gen)
    _add_style_args(p_gen)
    p_gen.add_argument("-o", "--output", default="output/qr.png", help="Output path (.png or .svg)")

    p_ver = subparsers.add_parser("verify", help="Verify a QR code image")
    p_ver.add_argument("image", help="Path to QR code image")
    p_ver.add_argument("--expected", default=None, help="Expected decoded data (fails if mismatch)")

    p_scan = subparsers.add_parser("scan", help="Decode a QR code image")
    p_scan.add_argument("image", help="Path to image")

    p_fd = subparsers.add_parser("folio-decode", help="Decode a folio token or link")
    p_fd.add_argument("token", help="Token or full folio URL")

    p_exp = subparsers.add_parser("export", help="Export PNG/SVG/overlay as one zip")
    _add_content_args(p_exp)
    _add_style_args(p_exp)
    p_exp.add_argument("--overlay", default=None, help="Art overlay image path or URL")
    p_exp.add_argument("-o", "--output-dir", default="output", help="Directory for the archive")

    p_fields = subparsers.add_parser("fields", help="List the form fields of a content kind")
    p_fields.add_argument("kind", choices=KIND_CHOICES, help="Content kind")
    p_fields.add_argument("-f", "--field", action="append", metavar="ID=VALUE", help="Current value (affects visibility)")

    subparsers.add_parser("prompt", help="Suggest an art overlay prompt")

    p_serve = subparsers.add_parser("serve", help="Start the folio viewer")
    p_serve.add_argument("--port", type=int, default=8080, help="Port to listen on")
    p_serve.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.base_url:
        settings = settings.model_copy(update={"base_url": args.base_url})

    level = "DEBUG" if args.verbose else settings.log_level
    setup_logging(level=level, log_file=args.log_file or settings.log_file)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "encode": cmd_encode,
        "generate": cmd_generate,
        "verify": cmd_verify,
        "scan": cmd_scan,
        "folio-decode": cmd_folio_decode,
        "export": cmd_export,
        "fields": cmd_fields,
        "prompt": cmd_prompt,
        "serve": cmd_serve,
    }
    commands[args.command](args, settings)
    audit("cli.done", logger=log, command=args.command)


if __name__ == "__main__":
    main()
