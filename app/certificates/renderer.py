"""Render course certificates as self-contained SVG documents.

The canvas is a fixed 1200x850 landscape page with every element at a
constant position. Only the learner name, course title, completion date and
certificate number vary. Rendering is pure: identical input always produces
byte-identical markup, so a certificate can be regenerated on demand instead
of being stored.

Names longer than the canvas simply overflow it; there is no wrapping.
"""

import re
import textwrap
from dataclasses import dataclass
from datetime import date, datetime, timezone

CANVAS_WIDTH = 1200
CANVAS_HEIGHT = 850

# ── Palette ────────────────────────────────────────────────────────────
GOLD = "#C9A227"
GOLD_LIGHT = "#F4D03F"
INK = "#1a1a1a"
MUTED = "#666666"
FAINT = "#999999"
ACCENT = "#2563EB"
PAPER = "#FAFAFA"
DOTS = "#E8E8E8"

# id-ID long month names
_MONTHS_ID = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)


@dataclass(frozen=True)
class CertificateData:
    user_name: str
    course_name: str
    completion_date: datetime | date
    certificate_number: str


# Anything outside the XML 1.0 Char production, e.g. C0 controls other than tab/LF/CR
_XML_ILLEGAL = re.compile(r"[^\x09\x0A\x0D\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")


def _escape_xml(text: str) -> str:
    """Drop characters XML cannot carry, then escape the five special ones."""
    text = _XML_ILLEGAL.sub("", text)
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace("'", "&apos;")
        .replace('"', "&quot;")
    )


def format_long_date(value: datetime | date) -> str:
    """Format as ``17 Oktober 2026``. Aware datetimes are read in UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return f"{value.day} {_MONTHS_ID[value.month - 1]} {value.year}"


_TEMPLATE = textwrap.dedent(
    """\
    <svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" viewBox="0 0 {width} {height}">
      <defs>
        <linearGradient id="borderGradient" x1="0%" y1="0%" x2="100%" y2="100%">
          <stop offset="0%" style="stop-color:{gold};stop-opacity:1" />
          <stop offset="50%" style="stop-color:{gold_light};stop-opacity:1" />
          <stop offset="100%" style="stop-color:{gold};stop-opacity:1" />
        </linearGradient>
        <pattern id="pattern" width="40" height="40" patternUnits="userSpaceOnUse">
          <circle cx="20" cy="20" r="1" fill="{dots}"/>
        </pattern>
      </defs>
      <rect width="{width}" height="{height}" fill="{paper}"/>
      <rect width="{width}" height="{height}" fill="url(#pattern)"/>
      <rect x="20" y="20" width="1160" height="810" fill="none" stroke="url(#borderGradient)" stroke-width="3"/>
      <rect x="30" y="30" width="1140" height="790" fill="none" stroke="url(#borderGradient)" stroke-width="1"/>
      <path d="M50,50 L100,50 L100,55 L55,55 L55,100 L50,100 Z" fill="{gold}"/>
      <path d="M1150,50 L1100,50 L1100,55 L1145,55 L1145,100 L1150,100 Z" fill="{gold}"/>
      <path d="M50,800 L100,800 L100,795 L55,795 L55,750 L50,750 Z" fill="{gold}"/>
      <path d="M1150,800 L1100,800 L1100,795 L1145,795 L1145,750 L1150,750 Z" fill="{gold}"/>
      <text x="600" y="120" font-family="Georgia, serif" font-size="28" fill="{muted}" text-anchor="middle" letter-spacing="8">SERTIFIKAT</text>
      <text x="600" y="170" font-family="Georgia, serif" font-size="42" fill="{ink}" text-anchor="middle" font-weight="bold">PENYELESAIAN KURSUS</text>
      <line x1="400" y1="200" x2="800" y2="200" stroke="{gold}" stroke-width="2"/>
      <circle cx="600" cy="200" r="5" fill="{gold}"/>
      <text x="600" y="280" font-family="Georgia, serif" font-size="20" fill="{muted}" text-anchor="middle">Dengan ini menyatakan bahwa</text>
      <text x="600" y="360" font-family="Georgia, serif" font-size="48" fill="{ink}" text-anchor="middle" font-weight="bold" font-style="italic">{user_name}</text>
      <line x1="300" y1="380" x2="900" y2="380" stroke="{gold}" stroke-width="1"/>
      <text x="600" y="450" font-family="Georgia, serif" font-size="20" fill="{muted}" text-anchor="middle">telah berhasil menyelesaikan kursus</text>
      <text x="600" y="520" font-family="Georgia, serif" font-size="36" fill="{accent}" text-anchor="middle" font-weight="bold">{course_name}</text>
      <text x="600" y="600" font-family="Georgia, serif" font-size="18" fill="{muted}" text-anchor="middle">pada tanggal {completion_date}</text>
      <circle cx="600" cy="680" r="40" fill="none" stroke="{gold}" stroke-width="2"/>
      <circle cx="600" cy="680" r="35" fill="none" stroke="{gold}" stroke-width="1"/>
      <text x="600" y="675" font-family="Georgia, serif" font-size="12" fill="{gold}" text-anchor="middle">RESMI</text>
      <text x="600" y="690" font-family="Georgia, serif" font-size="10" fill="{gold}" text-anchor="middle">TERVERIFIKASI</text>
      <text x="600" y="750" font-family="Courier, monospace" font-size="14" fill="{faint}" text-anchor="middle">No. Sertifikat: {certificate_number}</text>
    </svg>
    """
)


def render_certificate_svg(data: CertificateData) -> str:
    return _TEMPLATE.format(
        width=CANVAS_WIDTH,
        height=CANVAS_HEIGHT,
        gold=GOLD,
        gold_light=GOLD_LIGHT,
        ink=INK,
        muted=MUTED,
        faint=FAINT,
        accent=ACCENT,
        paper=PAPER,
        dots=DOTS,
        user_name=_escape_xml(data.user_name),
        course_name=_escape_xml(data.course_name),
        completion_date=format_long_date(data.completion_date),
        certificate_number=_escape_xml(data.certificate_number),
    )
