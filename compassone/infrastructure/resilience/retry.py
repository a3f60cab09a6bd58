"""Retry/Backoff Controller.

Executes an attempt function with exponential backoff and jitter for
retryable failures. Attempts report their outcome as ``Result`` values; the
controller classifies failures by ``ErrorKind`` and decides:

- transient / rate limited: back off and retry while attempts remain,
  honouring a server retry-after hint;
- auth failure: invalidate the credential and retry once, immediately;
- client error / fatal: give up at once.
"""

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Optional

from compassone.domain.errors import ApiError, ErrorKind, FatalError, RetryExhausted
from compassone.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    RetriesExhausted,
    RetryScheduled,
)
from compassone.domain.interfaces.event_sink import EventSink, NullEventSink
from compassone.domain.models.request import RequestContext, Result
from compassone.domain.models.retry import RetryPolicy
from compassone.infrastructure.credentials.credential_store import CredentialStoreAdapter

logger = logging.getLogger(__name__)

AttemptFunc = Callable[[int], Awaitable[Result]]


class RetryController:
    """Runs attempts under a RetryPolicy.

    Args:
        credential_store: Adapter to invalidate after an auth failure. Without
            one, auth failures are not retried.
        event_sink: Receives one event per attempt outcome.
        sleep: Coroutine used for backoff waits.
        rng: Random source for jitter.
    """

    def __init__(
        self,
        credential_store: Optional[CredentialStoreAdapter] = None,
        event_sink: Optional[EventSink] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.credential_store = credential_store
        self.event_sink = event_sink or NullEventSink()
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def execute(
        self,
        operation: AttemptFunc,
        policy: RetryPolicy,
        context: Optional[RequestContext] = None,
    ) -> Any:
        """Executes ``operation`` until it succeeds or the policy says stop.

        Args:
            operation: Async callable taking the 1-based attempt number and
                returning a Result. Raised ApiErrors are treated as failed Results.
            policy: Retry limits and backoff parameters.
            context: The call's RequestContext; its attempt counter is updated
                and its last credential is the one invalidated on auth failure.

        Returns:
            The value of the first successful attempt.

        Raises:
            RetryExhausted: Every allowed attempt failed with a retryable error.
            ApiError: A non-retryable error, or a repeated auth failure.
        """
        op_name = context.operation.name if context else getattr(operation, "__name__", "operation")
        request_id = context.request_id if context else None
        auth_refreshed = False
        last_error: Optional[ApiError] = None
        attempt = 0

        while attempt < policy.max_attempts:
            attempt += 1
            if context is not None:
                context.attempt = attempt

            self.event_sink.publish(ApiCallInitiated(operation=op_name, attempt_number=attempt, request_id=request_id))
            start_time = time.perf_counter()
            try:
                result = await operation(attempt)
            except ApiError as e:
                result = Result.failure(e)
            latency_ms = (time.perf_counter() - start_time) * 1000

            if result.ok:
                self.event_sink.publish(ApiCallSucceeded(
                    operation=op_name,
                    attempt_number=attempt,
                    latency_ms=latency_ms,
                    status=getattr(result.value, "status", None),
                    request_id=request_id,
                ))
                return result.value

            error = result.error
            error.attempts = attempt
            last_error = error

            if error.kind is ErrorKind.AUTH_FAILURE:
                if auth_refreshed or self.credential_store is None:
                    self._raise_final(op_name, attempt, error, request_id)
                auth_refreshed = True
                self._invalidate_credential(op_name, context)
                if attempt >= policy.max_attempts:
                    self._raise_final(op_name, attempt, error, request_id)
                logger.warning(f"Auth failure on {op_name} attempt {attempt}; retrying once with a fresh credential.")
                continue

            if not error.retryable:
                self._raise_final(op_name, attempt, error, request_id)

            if attempt >= policy.max_attempts:
                break

            retry_after = getattr(error, "retry_after", None)
            delay = policy.compute_delay(attempt, retry_after=retry_after, rng=self._rng)
            logger.warning(
                f"Retryable error calling {op_name} on attempt {attempt}/{policy.max_attempts}: "
                f"{error.kind.value}. Waiting {delay:.2f}s..."
            )
            self.event_sink.publish(RetryScheduled(
                operation=op_name,
                attempt_number=attempt,
                delay_seconds=delay,
                error_kind=error.kind.value,
                request_id=request_id,
            ))
            await self._sleep(delay)

        # --- Loop finished without returning: attempts exhausted ---
        if last_error is None:
            raise FatalError(f"No attempt was made for {op_name}; max_attempts is {policy.max_attempts}")
        logger.error(f"Max attempts ({attempt}) reached for {op_name}. Last error: {last_error.describe()}")
        self.event_sink.publish(RetriesExhausted(
            operation=op_name,
            attempts=attempt,
            error_kind=last_error.kind.value,
            error_message=last_error.message,
            request_id=request_id,
        ))
        raise RetryExhausted(last_error, attempt)

    def _invalidate_credential(self, op_name: str, context: Optional[RequestContext]) -> None:
        used = context.credential if context is not None else None
        self.credential_store.invalidate(used)
        self.credential_store.publish_invalidated(op_name, context.request_id if context else None)

    def _raise_final(self, op_name: str, attempt: int, error: ApiError, request_id: Optional[str]) -> None:
        logger.error(f"Non-retryable error calling {op_name} on attempt {attempt}: {error.describe()}")
        self.event_sink.publish(ApiCallFailed(
            operation=op_name,
            attempt_number=attempt,
            error_kind=error.kind.value,
            error_message=error.message,
            status=error.status,
            request_id=request_id,
        ))
        raise error
