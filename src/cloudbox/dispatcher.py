"""Completion dispatch: interpret transport results and notify listeners.

Per operation::

    ISSUED -> TRANSPORT_DONE -> {PARSE_FAILED, AUTH_FAILED, PARSED} -> NOTIFIED -> REMOVED

Transport runs as a task on the issuing event loop. Response bodies are
parsed on a worker thread and the outcome comes back to the loop, where
listeners are called. Outcomes are delivered in the order operations
finished transport, whatever order their parses finish in. Operations
cancelled before delivery are dropped without a notification.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, cast

import anyio

from ._internal.http.transport import AsyncTransport, TransferCancelled, TransportResponse
from ._internal.log import debug, logger
from .auth import CredentialProvider
from .errors import ApiError, AuthenticationError, CloudboxError, InvalidResponseError
from .operation import Operation, OperationState
from .registry import RequestRegistry
from .results import Failure, Outcome, ProgressEvent, Success, Unchanged


@dataclass(eq=False)
class _Ticket:
    op: Operation
    outcome: Outcome | None = None
    dropped: bool = False

    @property
    def ready(self) -> bool:
        return self.dropped or self.outcome is not None


def _error_message(response: TransportResponse) -> tuple[str, Any | None]:
    message = f"HTTP {response.status_code}"
    try:
        parsed = response.json()
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        err = parsed.get("error")
        if isinstance(err, str):
            message = f"{message}: {err}"
        elif isinstance(err, dict) and err:
            message = f"{message}: {next(iter(err.values()))}"
    elif response.content:
        text = response.text
        snippet = text if len(text) <= 500 else text[:500] + "..."
        message = f"{message}: {snippet}"
    return message, parsed


def map_api_error(response: TransportResponse, user_info: dict[str, Any]) -> ApiError:
    message, data = _error_message(response)
    if response.status_code == 401:
        return AuthenticationError(message, data=data, user_info=user_info)
    return ApiError(response.status_code, message, data=data, user_info=user_info)


def _unexpected_error(op: Operation, exc: Exception) -> CloudboxError:
    error = CloudboxError(f"{op.kind.value} failed: {exc}", user_info=dict(op.user_info))
    error.__cause__ = exc
    return error


class CompletionDispatcher:
    def __init__(
        self,
        transport: AsyncTransport,
        registry: RequestRegistry,
        credentials: CredentialProvider,
        user_id: str | None = None,
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._credentials = credentials
        self._user_id = user_id
        self._pending: deque[_Ticket] = deque()

    def start(self, op: Operation) -> Operation:
        """Track ``op`` and start its transport on the running loop."""
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[Outcome] = loop.create_future()
        self._registry.track(op)
        task = loop.create_task(self._run(op), name=f"cloudbox-{op.kind.value}-{op.id}")
        op.bind(task, outcome)
        task.add_done_callback(lambda _task: self._settle(op))
        debug(f"issued {op.kind.value} {op.request.method}", op.request.url.split("?", 1)[0])
        return op

    def fail_fast(self, op: Operation, error: CloudboxError) -> Operation:
        """Deliver ``error`` for an operation that never reached the network."""
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[Outcome] = loop.create_future()
        task = loop.create_task(self._deliver_untracked(op, Failure(error)))
        op.bind(task, outcome)
        task.add_done_callback(lambda _task: op.abandon())
        return op

    async def _deliver_untracked(self, op: Operation, outcome: Outcome) -> None:
        if op.cancelled:
            op.abandon()
            return
        op.state = OperationState.NOTIFIED
        op.resolve(outcome)
        self._notify(op, outcome)

    def _progress_hook(self, op: Operation) -> Any:
        if op.on_progress is None:
            return None
        callback = op.on_progress

        async def hook(event: ProgressEvent) -> None:
            if op.cancelled:
                return
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await cast(Awaitable[None], result)
            except Exception:
                logger.exception("progress listener for %s raised", op.kind.value)

        return hook

    async def _run(self, op: Operation) -> None:
        ticket: _Ticket | None = None
        try:
            response: TransportResponse | None = None
            error: CloudboxError | None = None
            progress = self._progress_hook(op)
            body = op.body
            headers = op.extra_headers
            try:
                if op.body_loader is not None:
                    body = await op.body_loader()
                    headers = {**headers, "content-length": str(len(body))}
                response = await self._transport.execute(
                    op.request,
                    body=body,
                    extra_headers=headers,
                    on_upload_progress=progress if body is not None else None,
                    download_to=op.download_to,
                    on_download_progress=progress if op.download_to is not None else None,
                    is_cancelled=lambda: op.cancelled,
                )
            except TransferCancelled:
                self._drop(op)
                return
            except CloudboxError as exc:
                exc.user_info = {**op.user_info, **exc.user_info}
                error = exc

            if op.cancelled:
                self._drop(op)
                return
            op.state = OperationState.TRANSPORT_DONE
            ticket = _Ticket(op)
            self._pending.append(ticket)
            ticket.outcome = await self._interpret(op, response, error)
        except asyncio.CancelledError:
            if ticket is not None:
                ticket.dropped = True
            else:
                self._drop(op)
            raise
        except Exception as exc:
            logger.exception("%s failed unexpectedly", op.kind.value)
            if ticket is None:
                ticket = _Ticket(op)
                self._pending.append(ticket)
            ticket.outcome = Failure(_unexpected_error(op, exc))
        finally:
            self._drain()

    async def _interpret(
        self,
        op: Operation,
        response: TransportResponse | None,
        error: CloudboxError | None,
    ) -> Outcome:
        if error is not None:
            return Failure(error)
        assert response is not None

        if response.status_code == 304 and op.allow_not_modified:
            return Unchanged(op.user_info.get("path", ""))

        if response.status_code >= 400:
            api_error = map_api_error(response, op.user_info)
            if isinstance(api_error, AuthenticationError):
                op.state = OperationState.AUTH_FAILED
                self._reauthorize()
            return Failure(api_error)

        return await anyio.to_thread.run_sync(self._parse, op, response)

    def _reauthorize(self) -> None:
        try:
            self._credentials.on_authorization_failure(self._user_id)
        except Exception:
            logger.exception("authorization failure hook raised")

    def _parse(self, op: Operation, response: TransportResponse) -> Outcome:
        # Runs on a worker thread.
        try:
            value = op.parser(response, op)
        except InvalidResponseError as exc:
            exc.user_info = {**op.user_info, **exc.user_info}
            op.state = OperationState.PARSE_FAILED
            logger.warning("error parsing %s response: %s", op.kind.value, exc)
            return Failure(exc)
        op.state = OperationState.PARSED
        return Success(value)

    def _settle(self, op: Operation) -> None:
        # A task cancelled before its first step never enters _run.
        if op.cancelled and op.state is not OperationState.REMOVED:
            self._drop(op)

    def _drop(self, op: Operation) -> None:
        self._registry.complete(op)
        op.abandon()
        debug(f"dropped cancelled {op.kind.value}", op.id)

    def _drain(self) -> None:
        while self._pending and self._pending[0].ready:
            ticket = self._pending.popleft()
            op = ticket.op
            if ticket.dropped or op.cancelled or ticket.outcome is None:
                self._drop(op)
                continue
            outcome = ticket.outcome
            op.state = OperationState.NOTIFIED
            self._registry.complete(op)
            op.resolve(outcome)
            debug(f"completed {op.kind.value}", type(outcome).__name__)
            self._notify(op, outcome)

    def _notify(self, op: Operation, outcome: Outcome) -> None:
        if op.on_result is None:
            return
        try:
            result = op.on_result(outcome)
        except Exception:
            logger.exception("listener for %s raised", op.kind.value)
            return
        if inspect.isawaitable(result):
            asyncio.ensure_future(cast(Awaitable[None], result)).add_done_callback(
                _log_listener_failure
            )


def _log_listener_failure(future: asyncio.Future[Any]) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.error("async listener raised", exc_info=future.exception())


__all__ = [
    "CompletionDispatcher",
    "map_api_error",
]
