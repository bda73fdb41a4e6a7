"""SVG to PDF rendering through a headless browser."""

from __future__ import annotations

import base64
import html
import logging
import time
from pathlib import Path
from typing import Protocol

from playwright.sync_api import Browser, Playwright, sync_playwright

from datenatlas import config

logger = logging.getLogger(__name__)

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="de">
  <head>
    <meta charset="utf-8" />
    <title>{title}</title>
    <style>
      @page {{ size: A4; margin: 20mm; }}
      body {{ font-family: 'Inter', 'Helvetica Neue', Arial, sans-serif; margin: 0; color: #1f2933; }}
      header {{ display: flex; align-items: center; gap: 12px; margin-bottom: 24px; }}
      header img {{ height: 28px; }}
      header h1 {{ font-size: 16px; margin: 0; font-weight: 600; }}
      header span {{ font-size: 12px; color: #6b7280; }}
      .diagram-wrapper {{ border: 1px solid #d1d5db; border-radius: 8px; padding: 16px; }}
      svg {{ width: 100%; height: auto; }}
    </style>
  </head>
  <body>
    <header>
      {logo}
      <div>
        <h1>Daten Atlas – {title}</h1>
        <span>Willi Mako • https://stromhaltig.de</span>
      </div>
    </header>
    <div class="diagram-wrapper">{svg}</div>
  </body>
</html>"""


class PdfRenderer(Protocol):
    """Protocol for SVG to PDF renderers."""

    def render(self, svg: str, title: str) -> bytes:
        """Render an SVG document onto a titled A4 page, returning PDF bytes."""
        ...

    def close(self) -> None:
        ...


def load_logo(path: Path) -> str | None:
    """Return the logo as a data URI, or None if the file is missing."""
    try:
        data = path.read_bytes()
    except OSError:
        logger.warning("Logo %s not found, rendering PDFs without it", path)
        return None
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def build_page(svg: str, title: str, logo_data_uri: str | None = None) -> str:
    logo = f'<img src="{logo_data_uri}" alt="Willi Mako Logo" />' if logo_data_uri else ""
    return _PAGE_TEMPLATE.format(title=html.escape(title), logo=logo, svg=svg)


class PlaywrightRenderer:
    """Chromium-backed renderer. The browser starts on first use; call close() when done."""

    def __init__(self, logo_path: Path | None = None) -> None:
        self._logo_path = logo_path or config.LOGO_PATH
        self._logo: str | None = None
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    def _get_browser(self) -> Browser:
        if self._browser is None:
            logger.info("Launching headless Chromium for PDF rendering...")
            t0 = time.perf_counter()
            self._logo = load_logo(self._logo_path)
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=True,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            logger.info("Browser ready (%.2fs)", time.perf_counter() - t0)
        return self._browser

    def render(self, svg: str, title: str) -> bytes:
        browser = self._get_browser()
        page = browser.new_page()
        try:
            page.set_content(build_page(svg, title, self._logo), wait_until="networkidle")
            return page.pdf(format="A4", print_background=True)
        finally:
            page.close()

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
