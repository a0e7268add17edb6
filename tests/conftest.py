import os
import sys

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Keep the app module away from real credentials and files when it is imported.
for name in ("SLACK_BOT_TOKEN", "SLACK_SIGNING_SECRET", "WORKFLOW_WEBHOOK_URL", "TARGET_CHANNEL_ID", "JOB_COUNTER_TABLE"):
    os.environ.pop(name, None)
os.environ.setdefault("CATALOG_PATH", os.path.join(ROOT, "tests", "missing-catalog.xlsx"))
os.environ.setdefault("CATALOG_CSV_PATH", os.path.join(ROOT, "tests", "missing-catalog.csv"))

from catalog import Catalog  # noqa: E402


class FakeMessenger:
    def __init__(self, errors=None):
        self.calls = []
        self.errors = errors or {}
        self.enabled = True

    def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))
        if method in self.errors:
            raise self.errors[method]
        return {"ok": True}

    def views_open(self, trigger_id, view):
        return self._record("views.open", trigger_id=trigger_id, view=view)

    def views_update(self, view_id, view, hash=None):
        return self._record("views.update", view_id=view_id, view=view, hash=hash)

    def chat_post_message(self, channel, text):
        return self._record("chat.postMessage", channel=channel, text=text)

    def chat_post_ephemeral(self, channel, user, text):
        return self._record("chat.postEphemeral", channel=channel, user=user, text=text)

    def methods(self):
        return [method for method, _ in self.calls]


class FakeSink:
    name = "fake"

    def __init__(self, error=None):
        self.records = []
        self.error = error

    def deliver(self, record):
        self.records.append(record)
        if self.error:
            raise self.error


class FakeCounter:
    def __init__(self, start=0):
        self.value = start

    def next(self):
        self.value += 1
        return self.value


@pytest.fixture
def stickers_catalog():
    return Catalog({"Stickers": ["Die Cut", "Custom"]})


@pytest.fixture
def catalog():
    return Catalog({
        "Stickers": ["Kiss Cut", "Die Cut", "Custom"],
        "Business Cards": ["Matte", "Glossy"],
    })


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def counter():
    return FakeCounter(start=41)
