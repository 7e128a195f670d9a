"""
Blocked-Package Checker

Resolves every uploaded SBOM to the identifiers the tenant platform assigned
to it, then asks the platform whether the SBOM references a package on the
tenant's block list.

Identity lookups answer 404 until the platform has indexed the upload, so
each entry polls until the lookup succeeds. All entries share one deadline
and a concurrency cap so a large directory upload cannot flood the tenant API.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlencode

import aiohttp
import backoff
from rich.console import Console

from kusari_uploader.upload.exceptions import (
    APIConnectionError,
    AuthenticationError,
    CheckTimeoutError,
    ResponseDecodeError,
    UnexpectedStatusError,
    UploadError,
)
from kusari_uploader.upload.models import (
    BatchVerdict,
    CheckOutcome,
    CheckSettings,
    EntryResult,
    ResolvedIdentity,
    UploadResult,
)

IDENTITY_ENDPOINT = "pico/v1/software/id"
CHECK_ENDPOINT = "pico/v1/packages/blocked/check/software/{software_id}/sbom/{sbom_id}"


class BlockedPackageChecker:
    """Checks a batch of uploaded SBOMs against the tenant block list"""

    def __init__(self, tenant_endpoint: str, session: aiohttp.ClientSession, settings: Optional[CheckSettings] = None):
        self.tenant_url = tenant_endpoint.rstrip('/')
        self.session = session
        self.settings = settings or CheckSettings()
        self.logger = logging.getLogger(self.__class__.__name__)
        self._halt: Optional[asyncio.Event] = None

    async def check(self, entries: Sequence[UploadResult]) -> BatchVerdict:
        """Check every entry and return the aggregate verdict.

        Result slots are allocated up front, one per entry, so the verdict
        keeps the input order no matter which task finishes first. Entries
        that are not checkable keep their default outcome and never take a
        concurrency slot.

        Raises:
            CheckTimeoutError: the overall deadline elapsed
            UploadError: any entry failed while ``fail_fast`` is set
        """
        results = [EntryResult(entry=entry, skipped=not entry.is_checkable) for entry in entries]
        pending = [slot for slot in results if not slot.skipped]

        if not pending:
            self.logger.debug("No checkable SBOMs in batch, skipping blocked-package check")
            return self._aggregate(results)

        self.logger.info(
            f"Checking {len(pending)} SBOM(s) for blocked packages "
            f"(concurrency={self.settings.max_concurrency}, timeout={self.settings.timeout}s)"
        )

        semaphore = asyncio.Semaphore(self.settings.max_concurrency)
        self._halt = asyncio.Event()
        try:
            await asyncio.wait_for(self._run_all(pending, semaphore), timeout=self.settings.timeout)
        except asyncio.TimeoutError as e:
            raise CheckTimeoutError(
                f"Blocked package check did not finish within {self.settings.timeout} seconds",
                timeout_seconds=self.settings.timeout
            ) from e

        return self._aggregate(results)

    async def _run_all(self, slots: List[EntryResult], semaphore: asyncio.Semaphore):
        tasks = [asyncio.ensure_future(self._check_slot(slot, semaphore)) for slot in slots]
        try:
            if self.settings.fail_fast:
                await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
                for task in tasks:
                    if task.done() and not task.cancelled() and task.exception() is not None:
                        raise task.exception()
            else:
                await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _check_slot(self, slot: EntryResult, semaphore: asyncio.Semaphore):
        async with semaphore:
            if self._halted():
                return
            try:
                identity = await self.resolve_identity(slot.entry)
                slot.outcome = await self.fetch_outcome(identity)
            except UploadError as e:
                if not self.settings.fail_fast:
                    self.logger.warning(f"Blocked package check failed for {slot.entry.subject}: {e}")
                    slot.error = e
                    return
                if self._halted():
                    # The batch already failed; only the first failure is reported
                    return
                # Set before the semaphore is released so queued entries stay idle
                self._halt.set()
                raise

    def _halted(self) -> bool:
        return self._halt is not None and self._halt.is_set()

    async def resolve_identity(self, entry: UploadResult) -> ResolvedIdentity:
        """Poll the identity lookup until the platform has indexed the SBOM"""
        query = urlencode({"software_name": entry.subject, "sbom_uri": entry.uri})
        url = f"{self.tenant_url}/{IDENTITY_ENDPOINT}?{query}"

        lookup = backoff.on_predicate(
            backoff.constant,
            lambda result: result[0] == 404,
            max_tries=self.settings.max_lookup_attempts,
            jitter=None,
            logger=self.logger,
            backoff_log_level=logging.DEBUG,
            interval=self.settings.retry_interval
        )(self._get_json)

        status, data = await lookup(url, IDENTITY_ENDPOINT)

        if status == 404:
            raise UnexpectedStatusError(
                f"SBOM {entry.subject} ({entry.uri}) was not indexed after "
                f"{self.settings.max_lookup_attempts} lookups",
                status_code=status,
                endpoint=IDENTITY_ENDPOINT
            )
        if status != 200:
            self._raise_for_status(status, IDENTITY_ENDPOINT)

        try:
            identity = ResolvedIdentity(
                software_id=int(data["software_id"]),
                sbom_id=int(data["sbom_id"])
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseDecodeError(
                f"Malformed identity response for {entry.subject}: {data!r}",
                endpoint=IDENTITY_ENDPOINT
            ) from e

        self.logger.debug(f"Resolved {entry.subject} to software {identity.software_id}, sbom {identity.sbom_id}")
        return identity

    async def fetch_outcome(self, identity: ResolvedIdentity) -> CheckOutcome:
        """Ask the platform whether the resolved SBOM contains blocked packages"""
        endpoint = CHECK_ENDPOINT.format(software_id=identity.software_id, sbom_id=identity.sbom_id)
        status, data = await self._get_json(f"{self.tenant_url}/{endpoint}", endpoint)

        if status != 200:
            self._raise_for_status(status, endpoint)

        blocked = data.get("blocked") if isinstance(data, dict) else None
        packages = data.get("blocked_packages") if isinstance(data, dict) else None
        if packages is None:
            packages = []
        if not isinstance(blocked, bool) or not isinstance(packages, list):
            raise ResponseDecodeError(f"Malformed block check response: {data!r}", endpoint=endpoint)

        return CheckOutcome(blocked=blocked, blocked_packages=[str(package) for package in packages])

    async def _get_json(self, url: str, endpoint: str) -> Tuple[int, Optional[Dict[str, Any]]]:
        """GET ``url``; the body is only decoded for 200 responses"""
        if self._halted():
            raise UploadError(f"Request to {endpoint} skipped, the check batch already failed", endpoint=endpoint)

        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    return response.status, None
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise APIConnectionError(f"Request to {endpoint} failed: {e}", endpoint=endpoint) from e

        try:
            return 200, json.loads(body)
        except ValueError as e:
            raise ResponseDecodeError(
                f"Invalid JSON from {endpoint}: {body[:200]}",
                status_code=200,
                endpoint=endpoint
            ) from e

    def _raise_for_status(self, status: int, endpoint: str):
        if status in (401, 403):
            raise AuthenticationError(
                f"Tenant API rejected the access token with status {status}",
                status_code=status,
                endpoint=endpoint
            )
        raise UnexpectedStatusError(
            f"Unexpected status {status} from {endpoint}",
            status_code=status,
            endpoint=endpoint
        )

    @staticmethod
    def _aggregate(results: List[EntryResult]) -> BatchVerdict:
        return BatchVerdict(
            any_blocked=any(slot.outcome.blocked for slot in results),
            results=results
        )


def report_blocked(verdict: BatchVerdict, console: Console):
    """Print every blocked SBOM and its blocked packages in input order"""
    for slot in verdict.blocked_results:
        console.print(
            f"Blocked packages found for SBOM subject {slot.entry.subject} with URI {slot.entry.uri}",
            markup=False,
            highlight=False,
            emoji=False,
            soft_wrap=True
        )
        for package in slot.outcome.blocked_packages:
            console.print(package, markup=False, highlight=False, emoji=False, soft_wrap=True)


def check_blocked_packages(
    entries: Sequence[UploadResult],
    tenant_endpoint: str,
    access_token: str,
    settings: Optional[CheckSettings] = None,
    request_timeout: float = 60.0
) -> BatchVerdict:
    """Run a blocked-package check from synchronous code"""
    entries = list(entries)

    if not any(entry.is_checkable for entry in entries):
        return BatchVerdict(
            any_blocked=False,
            results=[EntryResult(entry=entry, skipped=True) for entry in entries]
        )

    async def run() -> BatchVerdict:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json"
        }
        timeout = aiohttp.ClientTimeout(total=request_timeout)
        async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
            checker = BlockedPackageChecker(tenant_endpoint, session, settings)
            return await checker.check(entries)

    return asyncio.run(run())
