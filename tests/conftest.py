from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace

import pytest

import export_pdf


class FakePage:
    def __init__(self):
        self.calls = []
        self.responses = {}
        self.fail_on = None

    def _record(self, name, details):
        self.calls.append((name, details))
        if name == self.fail_on:
            raise RuntimeError(f"{name} exploded")

    @property
    def call_names(self):
        return [name for name, _ in self.calls]

    @property
    def evaluated(self):
        return [details["expression"] for name, details in self.calls if name == "evaluate"]

    def evaluate_arg(self, expression):
        for name, details in self.calls:
            if name == "evaluate" and details["expression"] == expression:
                return details["arg"]
        raise KeyError(expression)

    def details(self, call_name):
        for name, details in self.calls:
            if name == call_name:
                return details
        raise KeyError(call_name)

    async def emulate_media(self, **kwargs):
        self._record("emulate_media", kwargs)

    async def goto(self, url, **kwargs):
        self._record("goto", {"url": url, **kwargs})

    async def evaluate(self, expression, arg=None):
        self._record("evaluate", {"expression": expression, "arg": arg})
        return self.responses.get(expression)

    async def wait_for_timeout(self, timeout):
        self._record("wait_for_timeout", {"timeout": timeout})

    async def pdf(self, **kwargs):
        self._record("pdf", kwargs)
        Path(kwargs["path"]).write_bytes(b"%PDF-1.7 fake")


class FakeContext:
    def __init__(self, page):
        self.page = page

    async def new_page(self):
        return self.page


class FakeBrowser:
    def __init__(self):
        self.page = FakePage()
        self.launch_kwargs = None
        self.context_kwargs = None
        self.closed = False
        self.fail_launch = False

    async def new_context(self, **kwargs):
        self.context_kwargs = kwargs
        return FakeContext(self.page)

    async def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, browser):
        self.browser = browser

    async def launch(self, **kwargs):
        self.browser.launch_kwargs = kwargs
        if self.browser.fail_launch:
            raise RuntimeError("Executable doesn't exist")
        return self.browser


@pytest.fixture
def fake_browser(monkeypatch):
    browser = FakeBrowser()

    @asynccontextmanager
    async def fake_async_playwright():
        yield SimpleNamespace(chromium=FakeChromium(browser))

    monkeypatch.setattr(export_pdf, "async_playwright", fake_async_playwright)
    return browser


@pytest.fixture
def cv_html(tmp_path):
    path = tmp_path / "index.html"
    path.write_text(
        "<!DOCTYPE html><html><head><title>CV</title></head>"
        "<body><h1>Test CV</h1></body></html>",
        encoding="utf-8",
    )
    return path
