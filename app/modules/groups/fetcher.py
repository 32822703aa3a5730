"""Bounded concurrent retrieval of group memberships.

The HSM answers slowly and overloads when hammered with parallel requests,
so bulk reads go through a fixed-size thread pool. Each task returns its
outcome as a value (a member set or a FetchFailure); only the calling thread
folds outcomes into the aggregate, so no locking is needed.

A remote failure for one label never aborts the others. Only a failure of the
pool itself (a task that cannot be scheduled or that does not produce an
outcome) is fatal and surfaces as ConcurrencyError.
"""

import time
from concurrent.futures import CancelledError, ThreadPoolExecutor, as_completed
from typing import Iterable, List, Optional, Set, Union

from core.config import settings
from core.logging import get_module_logger
from modules.groups.domain.errors import ConcurrencyError
from modules.groups.domain.models import FetchFailure, FetchResult, NodeId
from modules.groups.domain.types import GroupStore
from modules.groups.reconciler import normalize

logger = get_module_logger()


class ConcurrentFetcher:
    """Read-only bulk fetcher of group members.

    Args:
        store: Group store the members are read from
        concurrency_limit: Default ceiling on in-flight requests. Defaults to
            settings.groups.fetch_concurrency.
        timeout: Per-request timeout in seconds handed to the store. A timed
            out request is reported as a FetchFailure.
    """

    def __init__(
        self,
        store: GroupStore,
        concurrency_limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self._store = store
        self.concurrency_limit = (
            concurrency_limit
            if concurrency_limit is not None
            else settings.groups.fetch_concurrency
        )
        self.timeout = timeout

    def _fetch_one(self, label: str) -> Union[Set[NodeId], FetchFailure]:
        """Worker body: never raises for remote errors."""
        try:
            return set(self._store.get_members(label, timeout=self.timeout))
        except Exception as exc:  # pylint: disable=broad-except
            return FetchFailure(group_label=label, cause=exc)

    def fetch_members(
        self,
        group_labels: Iterable[str],
        concurrency_limit: Optional[int] = None,
    ) -> FetchResult:
        """Fetch the members of every label with bounded concurrency.

        Args:
            group_labels: Labels to read. Duplicates are fetched once per
                occurrence and collapse in the mapping.
            concurrency_limit: Ceiling on in-flight requests for this call,
                overriding the instance default. Must be at least 1.

        Returns:
            FetchResult mapping each successfully read label to its members,
            plus one FetchFailure per failed label.

        Raises:
            ValueError: If concurrency_limit is lower than 1
            ConcurrencyError: If the worker pool itself fails
        """
        limit = (
            concurrency_limit
            if concurrency_limit is not None
            else self.concurrency_limit
        )
        if limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {limit}")

        labels = list(group_labels)
        log = logger.bind(
            operation="fetch_members",
            group_count=len(labels),
            concurrency_limit=limit,
        )
        log.info("fetching_group_members", group_labels=labels)

        result = FetchResult()
        if not labels:
            return result

        start = time.monotonic()
        try:
            with ThreadPoolExecutor(max_workers=limit) as executor:
                future_to_label = {
                    executor.submit(self._fetch_one, label): label
                    for label in labels
                }

                # Collect results as they complete
                for future in as_completed(future_to_label):
                    label = future_to_label[future]
                    outcome = future.result()
                    if isinstance(outcome, FetchFailure):
                        log.warning(
                            "group_fetch_failed",
                            group_label=label,
                            error=outcome.message,
                        )
                        result.failures.append(outcome)
                    else:
                        result.members[label] = outcome
        except (CancelledError, RuntimeError) as exc:
            log.error("group_fetch_pool_failed", error=str(exc))
            raise ConcurrencyError(
                f"Could not run group membership fetch tasks: {exc}"
            ) from exc

        elapsed = time.monotonic() - start
        log.info(
            "group_members_fetched",
            fetched=len(result.members),
            failed=len(result.failures),
            elapsed_seconds=round(elapsed, 3),
        )
        if not result.is_conclusive:
            log.error(
                "group_fetch_inconclusive",
                failed_labels=sorted(result.failed_labels),
            )
        return result

    def fetch_member_list(
        self,
        group_labels: Iterable[str],
        concurrency_limit: Optional[int] = None,
    ) -> List[NodeId]:
        """Return the sorted union of members of all readable groups.

        Failed labels are logged and skipped by fetch_members().
        """
        result = self.fetch_members(group_labels, concurrency_limit)
        return normalize(
            member for members in result.members.values() for member in members
        )
