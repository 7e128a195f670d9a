"""
Tests for the Blocked-Package Checker

Drives BlockedPackageChecker against an in-memory fake of the tenant API:
identity polling, block checks, the concurrency cap, the overall deadline
and fail-fast behaviour.
"""

import asyncio
import io
import json
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import aiohttp
import pytest
from rich.console import Console

from kusari_uploader.check.blocked_packages import (
    BlockedPackageChecker,
    check_blocked_packages,
    report_blocked
)
from kusari_uploader.upload.exceptions import (
    APIConnectionError,
    AuthenticationError,
    CheckTimeoutError,
    ResponseDecodeError,
    UnexpectedStatusError
)
from kusari_uploader.upload.models import CheckSettings, UploadResult

TENANT = "https://tenant.example.com"


class FakeResponse:
    def __init__(self, status, body=None):
        self.status = status
        self._body = body

    async def text(self):
        if self._body is None:
            return ""
        if isinstance(self._body, str):
            return self._body
        return json.dumps(self._body)


class FakeRequest:
    def __init__(self, session, url):
        self.session = session
        self.url = url

    async def __aenter__(self):
        session = self.session
        session.in_flight += 1
        session.max_in_flight = max(session.max_in_flight, session.in_flight)
        try:
            await asyncio.sleep(session.delay)
            result = session.handler(self.url)
        finally:
            session.in_flight -= 1
        if isinstance(result, Exception):
            raise result
        return result

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Minimal stand-in for aiohttp.ClientSession.get()"""

    def __init__(self, handler, delay=0.0):
        self.handler = handler
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    def get(self, url):
        self.calls.append(url)
        return FakeRequest(self, url)

    def identity_calls(self):
        return [url for url in self.calls if "/pico/v1/software/id" in url]

    def check_calls(self):
        return [url for url in self.calls if "/packages/blocked/check/" in url]


class TenantAPI:
    """Routes fake requests; each subject maps to a software id equal to its index"""

    def __init__(self, subjects, blocked=None, pending_lookups=None, check_status=None):
        self.subjects = list(subjects)
        self.blocked = blocked or {}
        self.pending_lookups = dict(pending_lookups or {})
        self.check_status = check_status or {}

    def __call__(self, url):
        parsed = urlparse(url)
        if parsed.path == "/pico/v1/software/id":
            subject = parse_qs(parsed.query)["software_name"][0]
            remaining = self.pending_lookups.get(subject, 0)
            if remaining == "forever":
                return FakeResponse(404)
            if remaining:
                self.pending_lookups[subject] = remaining - 1
                return FakeResponse(404)
            index = self.subjects.index(subject)
            return FakeResponse(200, {"software_id": index, "sbom_id": 100 + index})

        parts = parsed.path.split("/")
        subject = self.subjects[int(parts[-3])]
        assert int(parts[-1]) == 100 + int(parts[-3])
        status = self.check_status.get(subject, 200)
        if status != 200:
            return FakeResponse(status, {"message": "boom"})
        packages = self.blocked.get(subject, [])
        return FakeResponse(200, {"blocked": bool(packages), "blocked_packages": packages})


def entries_for(subjects):
    return [UploadResult(subject=s, uri=f"urn:uuid:{s}") for s in subjects]


def run_check(session, entries, **settings):
    settings.setdefault("retry_interval", 0.01)
    checker = BlockedPackageChecker(TENANT, session, CheckSettings(**settings))
    return asyncio.run(checker.check(entries))


class TestBlockedPackageChecker:
    """Test cases for the blocked-package check workflow"""

    def test_empty_entries_issue_no_requests(self):
        """Test batch of empty entries is skipped without HTTP calls"""
        session = FakeSession(lambda url: pytest.fail(f"unexpected request {url}"))
        entries = [UploadResult(), UploadResult(), UploadResult()]

        verdict = run_check(session, entries)

        assert verdict.any_blocked is False
        assert len(verdict.results) == 3
        assert all(slot.skipped for slot in verdict.results)
        assert session.calls == []

    def test_half_empty_entry_is_skipped(self):
        """Test entry missing its URI is not looked up"""
        api = TenantAPI(["app"])
        session = FakeSession(api)
        entries = [UploadResult(subject="orphan"), UploadResult(uri="urn:uuid:x")] + entries_for(["app"])

        verdict = run_check(session, entries)

        assert [slot.skipped for slot in verdict.results] == [True, True, False]
        assert len(session.identity_calls()) == 1

    def test_lookup_retries_until_indexed(self):
        """Test 404 from identity lookup is retried before the check runs"""
        api = TenantAPI(["app"], pending_lookups={"app": 2})
        session = FakeSession(api)

        verdict = run_check(session, entries_for(["app"]))

        assert verdict.any_blocked is False
        assert len(session.identity_calls()) == 3
        assert len(session.check_calls()) == 1
        assert session.check_calls()[0] == f"{TENANT}/pico/v1/packages/blocked/check/software/0/sbom/100"

    def test_lookup_query_is_escaped(self):
        """Test subject and URI are URL-escaped in the identity lookup"""
        session = FakeSession(lambda url: FakeResponse(200, {"software_id": 1, "sbom_id": 2})
                              if "/software/id" in url
                              else FakeResponse(200, {"blocked": False, "blocked_packages": []}))
        entries = [UploadResult(subject="my app", uri="urn:uuid:1&x=y")]

        run_check(session, entries)

        assert session.calls[0] == (
            f"{TENANT}/pico/v1/software/id?software_name=my+app&sbom_uri=urn%3Auuid%3A1%26x%3Dy"
        )

    def test_blocked_packages_reported_in_order(self):
        """Test blocked outcome sets verdict and keeps package order"""
        packages = ["pkg:npm/left-pad@1.0.0", "pkg:pypi/evil@0.1", "pkg:maven/a/b@2"]
        api = TenantAPI(["clean", "dirty"], blocked={"dirty": packages})
        session = FakeSession(api)

        verdict = run_check(session, entries_for(["clean", "dirty"]))

        assert verdict.any_blocked is True
        assert verdict.results[0].outcome.blocked is False
        assert verdict.results[1].outcome.blocked_packages == packages
        assert [slot.entry.subject for slot in verdict.blocked_results] == ["dirty"]

    def test_report_blocked_output(self):
        """Test report lines for blocked SBOMs"""
        api = TenantAPI(["a", "b", "c"], blocked={"c": ["pkg:npm/x@1", "pkg:npm/[y]@2"], "a": ["pkg:npm/z@3"]})
        verdict = run_check(FakeSession(api), entries_for(["a", "b", "c"]))

        output = io.StringIO()
        report_blocked(verdict, Console(file=output, width=200, no_color=True))

        assert output.getvalue().splitlines() == [
            "Blocked packages found for SBOM subject a with URI urn:uuid:a",
            "pkg:npm/z@3",
            "Blocked packages found for SBOM subject c with URI urn:uuid:c",
            "pkg:npm/x@1",
            "pkg:npm/[y]@2",
        ]

    def test_concurrency_cap(self):
        """Test no more than max_concurrency entries are in flight"""
        subjects = [f"app-{i}" for i in range(12)]
        api = TenantAPI(subjects, pending_lookups={s: 1 for s in subjects})
        session = FakeSession(api, delay=0.02)

        verdict = run_check(session, entries_for(subjects), max_concurrency=3)

        assert session.max_in_flight <= 3
        assert session.max_in_flight > 1
        assert len(session.check_calls()) == 12
        assert len(verdict.results) == 12

    def test_results_keep_input_order(self):
        """Test slots are index-aligned with input regardless of completion order"""
        subjects = ["slow", "fast", "medium"]
        api = TenantAPI(subjects, pending_lookups={"slow": 5, "medium": 2}, blocked={"slow": ["pkg:a"]})
        entries = [entries_for(["slow"])[0], UploadResult(), *entries_for(["fast", "medium"])]

        verdict = run_check(FakeSession(api), entries)

        assert [slot.entry for slot in verdict.results] == entries
        assert verdict.results[0].outcome.blocked_packages == ["pkg:a"]
        assert verdict.results[1].skipped is True

    def test_check_failure_fails_batch(self):
        """Test unexpected status from one check fails the whole batch"""
        api = TenantAPI(["ok", "bad", "blocked"], blocked={"blocked": ["pkg:x"]}, check_status={"bad": 500})

        with pytest.raises(UnexpectedStatusError) as exc_info:
            run_check(FakeSession(api), entries_for(["ok", "bad", "blocked"]))

        assert exc_info.value.status_code == 500

    def test_failure_cancels_pending_entries(self):
        """Test a failing entry cancels entries still polling"""
        api = TenantAPI(["stuck", "bad"], pending_lookups={"stuck": "forever"}, check_status={"bad": 502})
        session = FakeSession(api)

        with pytest.raises(UnexpectedStatusError):
            run_check(session, entries_for(["stuck", "bad"]), timeout=30)

        polled = len(session.identity_calls())
        assert polled < 100

    def test_queued_entries_stay_idle_after_failure(self):
        """Test entries waiting for a slot send no requests once the batch failed"""
        api = TenantAPI(["bad", "x", "y"], check_status={"bad": 500})
        session = FakeSession(api)

        with pytest.raises(UnexpectedStatusError) as exc_info:
            run_check(session, entries_for(["bad", "x", "y"]), max_concurrency=1)

        assert exc_info.value.status_code == 500
        assert session.calls == [
            f"{TENANT}/pico/v1/software/id?software_name=bad&sbom_uri=urn%3Auuid%3Abad",
            f"{TENANT}/pico/v1/packages/blocked/check/software/0/sbom/100",
        ]

    @pytest.mark.parametrize("body", [
        {"blocked": False, "blocked_packages": "abc"},
        {"blocked": "false", "blocked_packages": []},
        {"blocked_packages": []},
        ["not", "an", "object"],
    ])
    def test_malformed_block_check_body(self, body):
        """Test block check body with wrong field types is a decode error"""
        session = FakeSession(lambda url: FakeResponse(200, {"software_id": 1, "sbom_id": 2})
                              if "/software/id" in url
                              else FakeResponse(200, body))

        with pytest.raises(ResponseDecodeError):
            run_check(session, entries_for(["app"]))

    def test_null_blocked_packages_is_empty(self):
        """Test a null package list reads as no blocked packages"""
        session = FakeSession(lambda url: FakeResponse(200, {"software_id": 1, "sbom_id": 2})
                              if "/software/id" in url
                              else FakeResponse(200, {"blocked": False, "blocked_packages": None}))

        verdict = run_check(session, entries_for(["app"]))

        assert verdict.results[0].outcome.blocked_packages == []

    def test_identity_lookup_unexpected_status(self):
        """Test non-200/404 identity lookup is an error"""
        session = FakeSession(lambda url: FakeResponse(500, "internal error"))

        with pytest.raises(UnexpectedStatusError):
            run_check(session, entries_for(["app"]))

        assert len(session.calls) == 1

    def test_unauthorized(self):
        """Test 401 surfaces as an authentication error"""
        session = FakeSession(lambda url: FakeResponse(401))

        with pytest.raises(AuthenticationError) as exc_info:
            run_check(session, entries_for(["app"]))

        assert exc_info.value.status_code == 401

    def test_deadline_while_polling(self):
        """Test overall deadline elapses while lookup keeps returning 404"""
        api = TenantAPI(["app"], pending_lookups={"app": "forever"})

        with pytest.raises(CheckTimeoutError) as exc_info:
            run_check(FakeSession(api), entries_for(["app"]), timeout=0.2, retry_interval=0.02)

        assert exc_info.value.timeout_seconds == 0.2

    def test_max_lookup_attempts(self):
        """Test lookup gives up after the configured attempt count"""
        api = TenantAPI(["app"], pending_lookups={"app": "forever"})
        session = FakeSession(api)

        with pytest.raises(UnexpectedStatusError):
            run_check(session, entries_for(["app"]), max_lookup_attempts=3)

        assert len(session.identity_calls()) == 3

    def test_transport_error(self):
        """Test connection failures become APIConnectionError"""
        session = FakeSession(lambda url: aiohttp.ClientConnectionError("connection reset"))

        with pytest.raises(APIConnectionError):
            run_check(session, entries_for(["app"]))

    def test_malformed_json(self):
        """Test undecodable 200 body is a decode error"""
        session = FakeSession(lambda url: FakeResponse(200, "{not json"))

        with pytest.raises(ResponseDecodeError):
            run_check(session, entries_for(["app"]))

    def test_missing_identity_fields(self):
        """Test identity response without ids is a decode error"""
        session = FakeSession(lambda url: FakeResponse(200, {"software_id": 1}))

        with pytest.raises(ResponseDecodeError):
            run_check(session, entries_for(["app"]))

    def test_collects_errors_without_fail_fast(self):
        """Test per-entry errors are kept in their slots when fail_fast is off"""
        api = TenantAPI(["ok", "bad", "blocked"], blocked={"blocked": ["pkg:x"]}, check_status={"bad": 503})

        verdict = run_check(FakeSession(api), entries_for(["ok", "bad", "blocked"]), fail_fast=False)

        assert verdict.any_blocked is True
        assert verdict.results[0].error is None
        assert isinstance(verdict.results[1].error, UnexpectedStatusError)
        assert verdict.results[2].outcome.blocked_packages == ["pkg:x"]
        assert len(verdict.errors) == 1

    def test_repeated_runs_are_deterministic(self):
        """Test same responses give the same verdict on every run"""
        subjects = [f"app-{i}" for i in range(6)]
        verdicts = []
        for _ in range(3):
            api = TenantAPI(subjects, blocked={"app-4": ["pkg:bad"]}, pending_lookups={"app-1": 1, "app-4": 2})
            verdicts.append(run_check(FakeSession(api, delay=0.005), entries_for(subjects)))

        assert [v.any_blocked for v in verdicts] == [True, True, True]
        assert all(
            [slot.outcome for slot in v.results] == [slot.outcome for slot in verdicts[0].results]
            for v in verdicts
        )


class FakeClientSession:
    """Async context manager returned by the patched aiohttp.ClientSession"""

    def __init__(self, session, **kwargs):
        self.session = session
        self.kwargs = kwargs

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, exc_type, exc, tb):
        return False


class TestCheckBlockedPackages:
    """Test cases for the synchronous entry point"""

    def test_no_checkable_entries_skips_session(self):
        """Test no client session is opened when nothing can be checked"""
        with patch('kusari_uploader.check.blocked_packages.aiohttp.ClientSession') as mock_session:
            verdict = check_blocked_packages([UploadResult(), UploadResult()], TENANT, "token")

        mock_session.assert_not_called()
        assert verdict.any_blocked is False
        assert len(verdict.results) == 2

    def test_sends_bearer_token(self):
        """Test session carries the access token and verdict is returned"""
        api = TenantAPI(["app"], blocked={"app": ["pkg:npm/bad@1"]})
        fake = FakeSession(api)
        opened = []

        def factory(**kwargs):
            client = FakeClientSession(fake, **kwargs)
            opened.append(client)
            return client

        with patch('kusari_uploader.check.blocked_packages.aiohttp.ClientSession', side_effect=factory):
            verdict = check_blocked_packages(entries_for(["app"]), TENANT + "/", "secret-token",
                                             CheckSettings(retry_interval=0.01))

        assert verdict.any_blocked is True
        assert opened[0].kwargs["headers"]["Authorization"] == "Bearer secret-token"
        assert fake.calls[0].startswith(f"{TENANT}/pico/v1/software/id?")
