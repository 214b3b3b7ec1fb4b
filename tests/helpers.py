"""
Test doubles shared by unit and integration tests
"""

import json

from ingestion.transport import HttpResponse

USER_SCHEMA = {
    "type": "record",
    "name": "user",
    "fields": [
        {"name": "_id", "type": "string"},
        {"name": "mail", "type": "string"},
        {"name": "firstName", "type": ["string", "null"]},
        {"name": "lastName", "type": ["string", "null"]},
    ]
}

BASE_URL = "https://api.example.com/users"


def make_response(status_code=200, body="", headers=None) -> HttpResponse:
    """HttpResponse with a text, bytes or json-serializable body"""
    if not isinstance(body, (str, bytes)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    return HttpResponse(status_code, headers, content=body)


def user(n):
    return {"_id": f"u{n}", "mail": f"user{n}@example.com", "firstName": f"First{n}", "lastName": None}


class FakeTransport:
    """
    Transport double serving canned responses per url.

    Each url maps to responses served in order, the last one repeats once
    the others are used up. An exception in place of a response is raised.
    Unknown urls return 404.
    """

    def __init__(self, pages=None):
        self.pages = {}
        self.requested = []
        self.closed = False
        for url, responses in (pages or {}).items():
            if not isinstance(responses, list):
                responses = [responses]
            self.add(url, *responses)

    def add(self, url, *responses):
        self.pages.setdefault(url, []).extend(responses)
        return self

    def execute(self, url):
        self.requested.append(url)
        queued = self.pages.get(url)
        if not queued:
            return make_response(404, "not found")

        item = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(item, Exception):
            raise item
        # fresh object per attempt, the iterator closes every response it is handed
        return HttpResponse(item.status_code, item.headers.multi_items(), content=item.content)

    def close(self):
        self.closed = True


class FakeClock:
    """Monotonic clock advanced only by sleeping"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def clock(self):
        return self.now
