#!/usr/bin/env python3
"""
CV PDF Export Script
Renders index.html in headless Chromium using Playwright and saves an A4 PDF.
"""

import argparse
import asyncio
import re
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

try:
    from playwright.async_api import async_playwright, Page
except ImportError:
    print("ERROR: playwright not installed. Run: pip install playwright && playwright install chromium")
    raise SystemExit(1)

from pypdf import PdfReader
from pypdf.errors import PyPdfError


PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_HTML_PATH = PROJECT_ROOT / "index.html"
DEFAULT_OUTPUT_PATH = PROJECT_ROOT / "dist" / "Alex-Morgan-CV.pdf"
DOCUMENT_TITLE = "Alex Morgan - AI Solutions Architect CV"

MM_PER_INCH = 25.4
CSS_DPI = 96
POINTS_PER_INCH = 72
PAGE_WIDTH_MM = 210
PAGE_HEIGHT_MM = 297
DEVICE_SCALE_FACTOR = 2

NAVIGATION_TIMEOUT_MS = 30000
FONT_TIMEOUT_MS = 5000
IMAGE_TIMEOUT_MS = 5000
BACKGROUND_TIMEOUT_MS = 5000
SETTLE_DELAY_MS = 1500

CHROMIUM_ARGS = [
    "--allow-file-access-from-files",
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
]

PDF_MARGIN = {"top": "0", "bottom": "0", "left": "0", "right": "0"}

LINK_SELECTOR = 'a[href^="tel:"], a[href^="mailto:"]'

CSS_URL_RE = re.compile(r"""url\(\s*(['"]?)(.*?)\1\s*\)""")

WAIT_FONTS_JS = """(timeout) => new Promise((resolve) => {
    const timer = setTimeout(() => resolve(null), timeout);
    document.fonts.ready.then(() => {
        clearTimeout(timer);
        resolve(Array.from(document.fonts).map((face) => face.status));
    });
})"""

WAIT_IMAGES_JS = """async (timeout) => {
    const images = Array.from(document.images);
    return Promise.all(images.map((img) => {
        if (img.complete) {
            return Promise.resolve(img.naturalWidth > 0 ? 'loaded' : 'failed');
        }
        return new Promise((resolve) => {
            const timer = setTimeout(() => resolve('timeout'), timeout);
            img.addEventListener('load', () => { clearTimeout(timer); resolve('loaded'); }, { once: true });
            img.addEventListener('error', () => { clearTimeout(timer); resolve('failed'); }, { once: true });
        });
    }));
}"""

COLLECT_BACKGROUNDS_JS = """() => {
    const values = [];
    document.querySelectorAll('*').forEach((el) => {
        [null, '::before', '::after'].forEach((pseudo) => {
            const value = window.getComputedStyle(el, pseudo).backgroundImage;
            if (value && value !== 'none' && value.includes('url(')) {
                values.push(value);
            }
        });
    });
    return values;
}"""

WAIT_URLS_JS = """async ({ urls, timeout }) => Promise.all(urls.map((url) => new Promise((resolve) => {
    const img = new Image();
    const timer = setTimeout(() => resolve('timeout'), timeout);
    img.onload = () => { clearTimeout(timer); resolve('loaded'); };
    img.onerror = () => { clearTimeout(timer); resolve('failed'); };
    img.src = url;
})))"""

COLLECT_LINKS_JS = """(selector) => Array.from(document.querySelectorAll(selector)).map((link) => ({
    href: link.getAttribute('href') || '',
    title: link.getAttribute('title'),
}))"""

APPLY_LINKS_JS = """({ selector, patches }) => {
    const links = document.querySelectorAll(selector);
    let applied = 0;
    patches.forEach((patch) => {
        const link = links[patch.index];
        if (!link) return;
        link.setAttribute('href', patch.href);
        if (patch.phone) link.setAttribute('data-phone', patch.phone);
        if (patch.title) link.setAttribute('title', patch.title);
        link.style.pointerEvents = 'auto';
        link.style.cursor = 'pointer';
        applied += 1;
    });
    return applied;
}"""

SET_TITLE_JS = """(title) => { document.title = title; }"""


def mm_to_px(mm: float) -> float:
    return mm * CSS_DPI / MM_PER_INCH


def points_to_mm(points: float) -> float:
    return points * MM_PER_INCH / POINTS_PER_INCH


def a4_viewport() -> Dict[str, int]:
    return {"width": round(mm_to_px(PAGE_WIDTH_MM)), "height": round(mm_to_px(PAGE_HEIGHT_MM))}


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def extract_css_urls(values: Iterable[str]) -> List[str]:
    """Pull every url(...) target out of computed background-image values.

    Quotes are stripped and duplicates dropped, keeping first-seen order.
    """
    seen = []
    for value in values:
        for match in CSS_URL_RE.finditer(value or ""):
            url = match.group(2).strip()
            if url and url not in seen:
                seen.append(url)
    return seen


def normalize_tel_href(href: str) -> Optional[Tuple[str, str]]:
    if not href or not href.startswith("tel:"):
        return None
    phone = href[len("tel:"):].strip()
    if not phone:
        return None
    if phone.startswith("+"):
        return f"tel:{phone}", phone
    return f"tel:+{phone}", phone


@dataclass
class LinkPatch:
    index: int
    href: str
    title: Optional[str] = None
    phone: Optional[str] = None


def build_link_patches(links: List[Dict[str, Any]]) -> List[LinkPatch]:
    patches = []
    for index, link in enumerate(links):
        href = (link.get("href") or "").strip()
        has_title = bool(link.get("title"))
        if href.startswith("tel:"):
            normalized = normalize_tel_href(href)
            if normalized is None:
                patches.append(LinkPatch(index=index, href=href))
                continue
            tel_href, phone = normalized
            patches.append(LinkPatch(
                index=index,
                href=tel_href,
                title=None if has_title else f"Call {phone}",
                phone=phone,
            ))
        elif href.startswith("mailto:"):
            email = href[len("mailto:"):]
            patches.append(LinkPatch(
                index=index,
                href=href,
                title=None if has_title else f"Email {email}",
            ))
    return patches


@dataclass
class AssetReport:
    category: str
    outcomes: Counter = field(default_factory=Counter)

    @property
    def total(self) -> int:
        return sum(self.outcomes.values())

    @property
    def problems(self) -> int:
        return self.outcomes.get("failed", 0) + self.outcomes.get("timeout", 0)

    def summary(self) -> str:
        if not self.outcomes:
            return f"{self.category}: none"
        parts = [f"{count} {status}" for status, count in sorted(self.outcomes.items())]
        return f"{self.category}: " + ", ".join(parts)


def tally_outcomes(category: str, outcomes: Optional[List[str]]) -> AssetReport:
    # None means the whole category gave up waiting.
    if outcomes is None:
        return AssetReport(category=category, outcomes=Counter({"timeout": 1}))
    normalized = ["failed" if status == "error" else status for status in outcomes]
    return AssetReport(category=category, outcomes=Counter(normalized))


@dataclass
class PdfSummary:
    pages: int
    width_mm: float
    height_mm: float
    size_bytes: int


def summarize_pdf(path: Path) -> PdfSummary:
    reader = PdfReader(str(path))
    first = reader.pages[0]
    return PdfSummary(
        pages=len(reader.pages),
        width_mm=points_to_mm(float(first.mediabox.width)),
        height_mm=points_to_mm(float(first.mediabox.height)),
        size_bytes=path.stat().st_size,
    )


@dataclass
class ExportOptions:
    html_path: Path = DEFAULT_HTML_PATH
    output_path: Path = DEFAULT_OUTPUT_PATH
    title: str = DOCUMENT_TITLE
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS
    font_timeout_ms: int = FONT_TIMEOUT_MS
    image_timeout_ms: int = IMAGE_TIMEOUT_MS
    background_timeout_ms: int = BACKGROUND_TIMEOUT_MS
    settle_ms: int = SETTLE_DELAY_MS
    device_scale_factor: float = DEVICE_SCALE_FACTOR
    tagged: bool = True
    outline: bool = True


class ExportError(RuntimeError):
    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"PDF export failed at {stage}: {cause}")
        self.stage = stage
        self.cause = cause


class CvPdfExporter:
    def __init__(self, options: Optional[ExportOptions] = None):
        self.options = options or ExportOptions()
        self.html_path = Path(self.options.html_path).resolve()
        self.output_path = Path(self.options.output_path)
        self.asset_reports: List[AssetReport] = []
        self.links_patched = 0

    async def export(self) -> Path:
        if not self.html_path.exists():
            raise FileNotFoundError(f"index.html not found at {self.html_path}")

        ensure_dir(self.output_path.parent)
        self.asset_reports = []

        async with async_playwright() as p:
            print("🚀 Launching headless Chromium...")
            browser = None
            stage = "launch"
            try:
                browser = await p.chromium.launch(headless=True, args=CHROMIUM_ARGS)

                stage = "new_page"
                context = await browser.new_context(
                    viewport=a4_viewport(),
                    device_scale_factor=self.options.device_scale_factor,
                )
                page = await context.new_page()

                stage = "emulate_print"
                await page.emulate_media(media="print")

                stage = "goto"
                url = self.html_path.as_uri()
                print(f"📄 Opening {url}")
                await page.goto(url, wait_until="networkidle", timeout=self.options.navigation_timeout_ms)

                stage = "wait_fonts"
                self.asset_reports.append(await self.wait_for_fonts(page))
                stage = "wait_images"
                self.asset_reports.append(await self.wait_for_images(page))
                stage = "wait_backgrounds"
                self.asset_reports.append(await self.wait_for_backgrounds(page))
                for report in self.asset_reports:
                    marker = "⚠️ " if report.problems else "  "
                    print(f"{marker}{report.summary()}")

                stage = "settle"
                await page.wait_for_timeout(self.options.settle_ms)

                stage = "normalize_links"
                self.links_patched = await self.normalize_links(page)

                stage = "set_title"
                await page.evaluate(SET_TITLE_JS, self.options.title)

                stage = "pdf"
                await page.pdf(**self.pdf_options())
            except Exception as exc:
                print(f"❌ Error generating PDF at {stage}: {exc}", file=sys.stderr)
                raise ExportError(stage, exc) from exc
            finally:
                if browser is not None:
                    await browser.close()

        print(f"✅ PDF exported successfully to {self.output_path}")
        return self.output_path

    async def wait_for_fonts(self, page: Page) -> AssetReport:
        statuses = await page.evaluate(WAIT_FONTS_JS, self.options.font_timeout_ms)
        return tally_outcomes("fonts", statuses)

    async def wait_for_images(self, page: Page) -> AssetReport:
        outcomes = await page.evaluate(WAIT_IMAGES_JS, self.options.image_timeout_ms)
        return tally_outcomes("images", outcomes)

    async def wait_for_backgrounds(self, page: Page) -> AssetReport:
        values = await page.evaluate(COLLECT_BACKGROUNDS_JS)
        urls = extract_css_urls(values or [])
        if not urls:
            return tally_outcomes("backgrounds", [])
        outcomes = await page.evaluate(
            WAIT_URLS_JS,
            {"urls": urls, "timeout": self.options.background_timeout_ms},
        )
        return tally_outcomes("backgrounds", outcomes)

    async def normalize_links(self, page: Page) -> int:
        links = await page.evaluate(COLLECT_LINKS_JS, LINK_SELECTOR)
        patches = build_link_patches(links or [])
        if not patches:
            return 0
        return await page.evaluate(
            APPLY_LINKS_JS,
            {"selector": LINK_SELECTOR, "patches": [patch.__dict__ for patch in patches]},
        )

    def pdf_options(self) -> Dict[str, Any]:
        return {
            "path": str(self.output_path),
            "width": f"{PAGE_WIDTH_MM}mm",
            "height": f"{PAGE_HEIGHT_MM}mm",
            "print_background": True,
            "prefer_css_page_size": True,
            "margin": dict(PDF_MARGIN),
            "scale": 1,
            "display_header_footer": False,
            "tagged": self.options.tagged,
            "outline": self.options.outline,
        }


def build_options(args: argparse.Namespace) -> ExportOptions:
    return ExportOptions(
        html_path=Path(args.html),
        output_path=Path(args.output),
        title=args.title,
        settle_ms=args.settle_ms,
        tagged=not args.no_tagged,
        outline=not args.no_outline,
    )


async def main_async(args: argparse.Namespace) -> Path:
    exporter = CvPdfExporter(build_options(args))
    return await exporter.export()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export the CV page to an A4 PDF")
    # Outside a source checkout (plain `pip install`) the defaults point into site-packages.
    in_checkout = DEFAULT_HTML_PATH.exists()
    parser.add_argument(
        "--html",
        default=str(DEFAULT_HTML_PATH) if in_checkout else None,
        required=not in_checkout,
        help="Path to the CV HTML document",
    )
    parser.add_argument(
        "--output",
        "-o",
        default=str(DEFAULT_OUTPUT_PATH) if in_checkout else None,
        required=not in_checkout,
        help="Where to write the PDF",
    )
    parser.add_argument("--title", default=DOCUMENT_TITLE, help="Document title embedded in the PDF")
    parser.add_argument(
        "--settle-ms",
        type=int,
        default=SETTLE_DELAY_MS,
        help="Pause after assets are ready, before printing (milliseconds)",
    )
    parser.add_argument("--no-tagged", action="store_true", help="Skip PDF accessibility tagging")
    parser.add_argument("--no-outline", action="store_true", help="Skip the PDF outline/bookmarks")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        output_path = asyncio.run(main_async(args))
    except Exception as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return 1

    # The PDF is already on disk; a failed read-back is only a warning.
    try:
        summary = summarize_pdf(output_path)
    except (PyPdfError, OSError) as exc:
        print(f"⚠️  Could not read back {output_path}: {exc}", file=sys.stderr)
        return 0

    print(
        f"   {summary.pages} page(s), {summary.width_mm:.0f}mm x {summary.height_mm:.0f}mm, "
        f"{summary.size_bytes / 1024:.1f} KB"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
