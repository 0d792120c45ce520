"""Wait-for-ready logic for Kubernetes resources.

Polling is bounded by an attempt count, an elapsed-time timeout, or both,
and can be ended early from another thread through a ``threading.Event``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .client import K8sClient, K8sError

logger = logging.getLogger(__name__)


class WaitStatus(Enum):
    """Status of a wait operation."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class WaitResult:
    """Result of a wait operation."""

    status: WaitStatus
    message: str
    elapsed_seconds: float
    attempts: int

    @property
    def ready(self) -> bool:
        return self.status == WaitStatus.READY


class WaitError(K8sError):
    """Raised by a check to end the wait with a terminal failure."""

    pass


def wait_for_condition(
    check_fn: Callable[[], tuple[bool, str]],
    timeout_seconds: float | None = 300,
    poll_interval: float = 5,
    description: str = "condition",
    max_attempts: int | None = None,
    cancel: threading.Event | None = None,
) -> WaitResult:
    """Generic wait for a condition to be true.

    Args:
        check_fn: Function that returns (success, message). Raising
            ``WaitError`` ends the wait as FAILED; any other exception
            counts as "not yet".
        timeout_seconds: Maximum time to wait (None = no time bound)
        poll_interval: Seconds between checks
        description: Description for logging
        max_attempts: Maximum number of checks (None = no attempt bound)
        cancel: Event that ends the wait early when set

    Returns:
        WaitResult with outcome
    """
    if timeout_seconds is None and max_attempts is None:
        raise ValueError("wait_for_condition needs timeout_seconds or max_attempts")

    start_time = time.time()
    attempts = 0

    while True:
        attempts += 1
        elapsed = time.time() - start_time

        try:
            success, message = check_fn()
            if success:
                return WaitResult(
                    status=WaitStatus.READY,
                    message=message,
                    elapsed_seconds=elapsed,
                    attempts=attempts,
                )
        except WaitError as e:
            return WaitResult(
                status=WaitStatus.FAILED,
                message=str(e),
                elapsed_seconds=elapsed,
                attempts=attempts,
            )
        except Exception as e:
            message = str(e)

        logger.debug("Waiting for %s (attempt %d): %s", description, attempts, message)

        if max_attempts is not None and attempts >= max_attempts:
            return WaitResult(
                status=WaitStatus.TIMEOUT,
                message=f"Gave up after {attempts} attempts waiting for {description}: {message}",
                elapsed_seconds=elapsed,
                attempts=attempts,
            )

        if timeout_seconds is not None and elapsed >= timeout_seconds:
            return WaitResult(
                status=WaitStatus.TIMEOUT,
                message=f"Timeout after {int(elapsed)}s waiting for {description}: {message}",
                elapsed_seconds=elapsed,
                attempts=attempts,
            )

        if cancel is not None:
            if cancel.wait(poll_interval):
                return WaitResult(
                    status=WaitStatus.CANCELLED,
                    message=f"Cancelled while waiting for {description}",
                    elapsed_seconds=time.time() - start_time,
                    attempts=attempts,
                )
        else:
            time.sleep(poll_interval)


def wait_for_pod_running(
    client: K8sClient,
    label_selector: str,
    namespace: str | None = None,
    max_attempts: int = 60,
    poll_interval: float = 2,
    cancel: threading.Event | None = None,
) -> WaitResult:
    """Wait for any pod matching a label selector to reach the Running phase.

    Errors while listing pods count as "not running yet".
    """

    def check() -> tuple[bool, str]:
        pods = client.list_pods(label_selector, namespace)
        if not pods:
            return False, f"No pod matches {label_selector}"
        for pod in pods:
            if pod.status and pod.status.phase == "Running":
                return True, f"Pod {pod.metadata.name} is running"
        phases = ", ".join(f"{p.metadata.name}={p.status.phase if p.status else '?'}" for p in pods)
        return False, f"Pods not running: {phases}"

    return wait_for_condition(
        check,
        timeout_seconds=None,
        poll_interval=poll_interval,
        description=f"pod {label_selector}",
        max_attempts=max_attempts,
        cancel=cancel,
    )


def _job_terminal_state(job: Any) -> str | None:
    """Return "Complete", "Failed", or None while the job is still running.

    A failed pod only fails the job once the backoff limit is exhausted.
    """
    status = job.status
    if status is None:
        return None
    for cond in status.conditions or []:
        if cond.status == "True" and cond.type in ("Complete", "Failed"):
            return cond.type
    if (status.succeeded or 0) > 0:
        return "Complete"
    backoff_limit = job.spec.backoff_limit if job.spec and job.spec.backoff_limit is not None else 0
    if (status.failed or 0) > backoff_limit:
        return "Failed"
    return None


def wait_for_job_complete(
    client: K8sClient,
    name: str,
    namespace: str | None = None,
    timeout_seconds: float = 300,
    poll_interval: float = 2,
    cancel: threading.Event | None = None,
) -> WaitResult:
    """Wait for a Job to succeed.

    READY once the job completes, FAILED once it exhausts its backoff limit
    or its status cannot be read, TIMEOUT otherwise. A timed-out job is
    left running.
    """

    def check() -> tuple[bool, str]:
        try:
            job = client.read_resource("Job", name, namespace)
        except K8sError as e:
            raise WaitError(f"Error getting job status: {e}")  # noqa: B904
        if job is None:
            raise WaitError(f"Job {name} not found")

        state = _job_terminal_state(job)
        if state == "Complete":
            return True, f"Job {name} succeeded"
        if state == "Failed":
            raise WaitError(f"Job {name} failed")
        return False, f"Job {name} still running"

    return wait_for_condition(
        check,
        timeout_seconds=timeout_seconds,
        poll_interval=poll_interval,
        description=f"job {name}",
        cancel=cancel,
    )
