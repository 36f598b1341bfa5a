"""Tests for query classification, ptn.ninja links and the archive fetch."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

import links
import settings
from errors import MalformedLink, NetworkFailure, UnknownQueryShape
from links import decode_link, encode_link, get_ptn_string, looks_like_ptn, strip_link_brackets

GAME = '[Size "5"]\n1. a1 e5\n2. c3 c4\n'


def _response(text: str, status: int = 200, content_type: str = "text/plain") -> SimpleNamespace:
    return SimpleNamespace(status_code=status, text=text, headers={"Content-Type": content_type})


class TestLinks:
    def test_link_round_trip(self) -> None:
        link = encode_link(GAME)
        assert link.startswith(settings.PTN_NINJA_URL)
        assert decode_link(link) == GAME

    def test_bracketed_link_with_name_suffix(self) -> None:
        query = f"<{encode_link(GAME)}&name=casual-game&showRoads=true>"
        assert get_ptn_string(query) == GAME

    def test_strip_link_brackets(self) -> None:
        assert strip_link_brackets("see <https://ptn.ninja/abc> now") == "see https://ptn.ninja/abc now"

    def test_empty_payload(self) -> None:
        with pytest.raises(MalformedLink):
            decode_link("https://ptn.ninja/")
        with pytest.raises(MalformedLink):
            get_ptn_string("https://ptn.ninja/&name=nothing")

    def test_garbage_payload(self) -> None:
        with pytest.raises(MalformedLink):
            decode_link("https://ptn.ninja/%%%%")


class TestQueryShape:
    def test_ptn_passes_through(self) -> None:
        assert get_ptn_string(GAME) == GAME.strip()
        assert looks_like_ptn("1. a1 e5")

    def test_unknown_shape(self) -> None:
        with pytest.raises(UnknownQueryShape):
            get_ptn_string("hello there friend")
        with pytest.raises(UnknownQueryShape):
            get_ptn_string("   ")

    def test_digits_fetch_archive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen = []

        def fake_get(url, timeout=None):
            seen.append(url)
            return _response(GAME)

        monkeypatch.setattr(requests, "get", fake_get)
        assert get_ptn_string("12345") == GAME.strip()
        assert seen == [settings.PLAYTAK_URL.format(id=12345)]


class TestFetch:
    def test_html_is_reduced_to_pre_block(self, monkeypatch: pytest.MonkeyPatch) -> None:
        page = f"<html><body><h1>Game 7</h1><pre>{GAME}</pre></body></html>"
        monkeypatch.setattr(requests, "get", lambda url, timeout=None: _response(page, content_type="text/html"))
        assert links.fetch_playtak(7) == GAME.strip()

    def test_http_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(requests, "get", lambda url, timeout=None: _response("", status=404))
        with pytest.raises(NetworkFailure):
            links.fetch_playtak(7)

    def test_empty_body(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(requests, "get", lambda url, timeout=None: _response("   "))
        with pytest.raises(NetworkFailure):
            links.fetch_playtak(7)

    def test_transient_errors_are_retried_then_fail(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = []

        def flaky(url, timeout=None):
            calls.append(url)
            raise requests.exceptions.ConnectionError("connection reset by peer")

        monkeypatch.setattr(settings, "MAX_NET_RETRIES", 2)
        monkeypatch.setattr(settings, "RECONNECT_DELAY_SEC", 0.0)
        monkeypatch.setattr(requests, "get", flaky)
        with pytest.raises(NetworkFailure):
            links.fetch_playtak(7)
        assert len(calls) == 3

    def test_transient_error_then_success(self, monkeypatch: pytest.MonkeyPatch) -> None:
        answers = [requests.exceptions.ReadTimeout("read timed out"), _response(GAME)]

        def flaky(url, timeout=None):
            answer = answers.pop(0)
            if isinstance(answer, Exception):
                raise answer
            return answer

        monkeypatch.setattr(settings, "RECONNECT_DELAY_SEC", 0.0)
        monkeypatch.setattr(requests, "get", flaky)
        assert links.fetch_playtak(7) == GAME.strip()

    def test_other_request_errors_become_network_failures(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(url, timeout=None):
            raise requests.exceptions.InvalidURL("bad url")

        monkeypatch.setattr(requests, "get", broken)
        with pytest.raises(NetworkFailure):
            links.fetch_playtak(7)
