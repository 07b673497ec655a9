import json

import pytest
import requests

from yearcast.core.errors import ExternalFetchError
from yearcast.store.cache import QueryCache
from yearcast.store.records import CachedRecordSource, HttpRecordSource, JsonFileRecordSource, load_records_json


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.exc is not None:
            raise self.exc
        return self.response


DOCS = [{"Year": 2002, "A": 2}, {"Year": 2001, "A": 1}]


def test_http_fetch_orders_by_year():
    session = FakeSession(FakeResponse(DOCS))
    src = HttpRecordSource("https://store.example/api/", session=session)
    docs = src.fetch("emigrantData_age")
    assert [d["Year"] for d in docs] == [2001, 2002]
    url, params, timeout = session.calls[0]
    assert url == "https://store.example/api/emigrantData_age"
    assert params == {"orderBy": "Year"}
    assert timeout == 60


def test_http_fetch_unwraps_documents():
    payload = {"documents": [{"id": "x", "data": {"Year": 2001, "A": 1}}]}
    src = HttpRecordSource("https://store.example", session=FakeSession(FakeResponse(payload)))
    assert src.fetch("d") == [{"Year": 2001, "A": 1}]


@pytest.mark.parametrize("session", [
    FakeSession(exc=requests.ConnectionError("refused")),
    FakeSession(FakeResponse(DOCS, status=503)),
    FakeSession(FakeResponse(ValueError("not json"))),
    FakeSession(FakeResponse({"unexpected": True})),
])
def test_http_failures_raise_external_fetch_error(session):
    with pytest.raises(ExternalFetchError):
        HttpRecordSource("https://store.example", session=session).fetch("d")


def test_cached_source_serves_repeat_fetches():
    session = FakeSession(FakeResponse(DOCS))
    cached = CachedRecordSource(HttpRecordSource("https://s", session=session), QueryCache())
    cached.fetch("d")
    cached.fetch("d")
    assert len(session.calls) == 1


def test_failed_fetch_is_not_cached():
    cache = QueryCache()
    bad = CachedRecordSource(HttpRecordSource("https://s", session=FakeSession(exc=requests.Timeout("slow"))), cache)
    with pytest.raises(ExternalFetchError):
        bad.fetch("d")
    assert cache.get("d") is None

    good = CachedRecordSource(HttpRecordSource("https://s", session=FakeSession(FakeResponse(DOCS))), cache)
    assert len(good.fetch("d")) == 2


def test_json_file_sources(tmp_path):
    (tmp_path / "emigrantData_sex.json").write_text(json.dumps(DOCS), encoding="utf-8")
    docs = JsonFileRecordSource(tmp_path).fetch("emigrantData_sex")
    assert [d["Year"] for d in docs] == [2001, 2002]

    with pytest.raises(ExternalFetchError):
        load_records_json(tmp_path / "missing.json")


def test_cached_source_hands_out_copies():
    cached = CachedRecordSource(HttpRecordSource("https://s", session=FakeSession(FakeResponse(DOCS))), QueryCache())
    first = cached.fetch("d")
    first.append({"Year": 1999, "USA": 1})
    first[0]["Year"] = 1900

    again = cached.fetch("d")
    assert len(again) == len(DOCS)
    assert 1900 not in [d["Year"] for d in again]
