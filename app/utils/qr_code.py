"""QR codes that point visitors at the self-registration page.

Each parking zone gets a code encoding ``{app_url}/register/{slug}?zone=CODE``.
Images are produced with the ``qrcode`` package (PIL backend for PNG, the
path factory for SVG). ``width`` is a target in pixels; the box size is
chosen so the rendered image is as close to it as possible without
exceeding it.
"""

import base64
import io
import re
from html import escape
from urllib.parse import parse_qs, quote, urlparse

import qrcode
import qrcode.image.svg
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q

from ..config import settings
from ..constants import QR_CODE_CONFIG

_ERROR_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}


def _options(options: dict | None) -> dict:
    opts = {
        "width": QR_CODE_CONFIG["size"],
        "margin": QR_CODE_CONFIG["margin"],
        "error_correction": QR_CODE_CONFIG["error_correction"],
        "dark": QR_CODE_CONFIG["dark"],
        "light": QR_CODE_CONFIG["light"],
    }
    opts.update({k: v for k, v in (options or {}).items() if v is not None})
    if opts["error_correction"] not in _ERROR_LEVELS:
        raise ValueError(f"Unknown error correction level: {opts['error_correction']}")
    return opts


def _build(url: str, opts: dict) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=_ERROR_LEVELS[opts["error_correction"]],
        box_size=1,
        border=opts["margin"],
    )
    qr.add_data(url)
    qr.make(fit=True)
    total_modules = qr.modules_count + 2 * opts["margin"]
    qr.box_size = max(1, opts["width"] // total_modules)
    return qr


def build_registration_url(building_slug: str, zone_code: str | None = None) -> str:
    url = f"{settings.app_url.rstrip('/')}/register/{building_slug}"
    if zone_code:
        url += f"?zone={quote(zone_code)}"
    return url


def generate_qr_code_png(url: str, options: dict | None = None) -> bytes:
    opts = _options(options)
    img = _build(url, opts).make_image(fill_color=opts["dark"], back_color=opts["light"])
    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue()


def generate_qr_code_data_url(url: str, options: dict | None = None) -> str:
    encoded = base64.b64encode(generate_qr_code_png(url, options)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def generate_qr_code_svg(url: str, options: dict | None = None) -> str:
    opts = _options(options)
    img = _build(url, opts).make_image(image_factory=qrcode.image.svg.SvgPathImage)
    return img.to_string(encoding="unicode")


def generate_parking_qr_code(
    building_slug: str, zone_code: str | None = None, options: dict | None = None
) -> str:
    return generate_qr_code_data_url(build_registration_url(building_slug, zone_code), options)


def generate_printable_qr_code(
    building_name: str, zone_name: str, building_slug: str, zone_code: str
) -> str:
    """Standalone HTML page with a large QR code and visitor instructions."""
    data_url = generate_parking_qr_code(building_slug, zone_code, {"width": 600, "margin": 4})
    building, zone, code = escape(building_name), escape(zone_name), escape(zone_code)
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{building} - {zone} Parking QR Code</title>
    <style>
      @page {{ size: A4; margin: 2cm; }}
      body {{ font-family: Arial, sans-serif; text-align: center; }}
      img {{ max-width: 600px; height: auto; }}
    </style>
  </head>
  <body>
    <div class="qr-container">
      <h1>{building}</h1>
      <h2>{zone}</h2>
      <img src="{data_url}" alt="Parking QR Code" />
      <div class="instructions">
        <p><strong>Scan to Register Visitor Parking</strong></p>
        <p>Use your smartphone camera to scan this QR code and register your vehicle for visitor parking.</p>
      </div>
      <div class="code">Zone Code: {code}</div>
    </div>
  </body>
</html>
"""


def validate_qr_code_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return re.fullmatch(r"/register/[a-z0-9-]+", parsed.path) is not None


def parse_qr_code_url(url: str) -> tuple[str | None, str | None]:
    """Return (building_slug, zone_code); (None, None) if not a registration URL."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None, None
    if not parsed.scheme or not parsed.netloc:
        return None, None
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2 or parts[0] != "register":
        return None, None
    zone = parse_qs(parsed.query).get("zone", [None])[0]
    return parts[1], zone
