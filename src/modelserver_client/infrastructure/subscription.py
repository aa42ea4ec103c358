"""Subscription channel for live model updates.

A subscription is a WebSocket connection to the model server that delivers
change notifications (full updates, incremental updates, dirty state,
validation results) for one model URI.

The channel keeps a registry of connections keyed by model URI and enforces
that at most one connection per URI is registered. Each connection runs as a
background asyncio task that forwards its events to the caller's listener:

    channel = SubscriptionChannel(base_url="http://localhost:8081/api/v1/")
    result = await channel.subscribe("Coffee.ecore", MyListener(), SubscriptionOptions(timeout=30000))
    ...
    await channel.unsubscribe("Coffee.ecore")

Registry entries are only added and removed by the channel itself. Every
mutation happens synchronously (before any await), so concurrent tasks on the
same event loop cannot register two connections for the same URI.
"""

import asyncio
import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from modelserver_client.domain.enums import SubscriptionState, SubscriptionStatus
from modelserver_client.domain.errors import SubscriptionConflictError
from modelserver_client.domain.events import CloseEvent, ErrorEvent, MessageEvent, OpenEvent
from modelserver_client.domain.models import ModelServerMessage, SubscriptionOptions
from modelserver_client.observability import keep_alives_sent, subscription_conflicts, subscriptions_closed, subscriptions_opened

from .paths import ModelServerPaths

logger = logging.getLogger(__name__)

# Keep-alives are sent this long before the server-side idle timeout expires
KEEP_ALIVE_MARGIN_MS = 1000

# Close code reported when the connection could not be established (RFC 6455 "abnormal closure")
ABNORMAL_CLOSURE = 1006

ConnectFn = Callable[[str], Awaitable[Any]]


def keep_alive_interval(timeout_ms: int) -> float:
    """Seconds between two keep-alive messages for a server idle timeout in milliseconds."""
    return max(timeout_ms - KEEP_ALIVE_MARGIN_MS, 1) / 1000


def to_websocket_url(url: str) -> str:
    """Rewrite an ``http(s)://`` URL to the matching ``ws(s)://`` URL."""
    return re.sub(r"^http(s?)://", lambda match: f"ws{match.group(1).lower()}://", url, flags=re.IGNORECASE)


class SubscriptionListener:
    """Receives the events of a subscription.

    Override the callbacks of interest; the defaults ignore the event.
    Callbacks may be plain methods or coroutines. Any object exposing
    some of these methods can be used as a listener.
    """

    def on_open(self, model_uri: str, event: OpenEvent) -> Any:
        pass

    def on_close(self, model_uri: str, event: CloseEvent) -> Any:
        pass

    def on_error(self, model_uri: str, event: ErrorEvent) -> Any:
        pass

    def on_message(self, model_uri: str, event: MessageEvent) -> Any:
        pass


@dataclass(frozen=True)
class SubscriptionResult:
    """Outcome of a subscribe call.

    Attributes:
        model_uri: The subscribed model URI
        listener: The listener passed to subscribe, unchanged
        status: Whether a new connection was registered or replaced an existing one
    """

    model_uri: str
    listener: Any
    status: SubscriptionStatus


class SubscriptionConnection:
    """One WebSocket connection to the subscription endpoint.

    Lifecycle: CLOSED -> OPENING (start) -> OPEN (handshake done) -> CLOSED.
    A closed connection is never reopened; subscribe again instead.
    """

    def __init__(
        self,
        model_uri: str,
        target: str,
        listener: Any,
        connect: ConnectFn,
        keep_alive_interval: float | None = None,
        on_finished: Callable[["SubscriptionConnection"], None] | None = None,
    ):
        """Initialize the connection (not started).

        Args:
            model_uri: Model URI the connection is subscribed to
            target: WebSocket URL including query parameters
            listener: Receiver of the connection events
            connect: Coroutine function opening a WebSocket for a URL
            keep_alive_interval: Seconds between keep-alive messages, None to disable
            on_finished: Called once the connection task has ended
        """
        self.model_uri = model_uri
        self.target = target
        self.listener = listener
        self._connect = connect
        self._keep_alive_interval = keep_alive_interval
        self._on_finished = on_finished

        self.state = SubscriptionState.CLOSED
        self._websocket: Any = None
        self._task: asyncio.Task[None] | None = None
        self._keep_alive_task: asyncio.Task[None] | None = None

    @property
    def is_open(self) -> bool:
        return self.state == SubscriptionState.OPEN

    def start(self) -> None:
        """Start the connection task (and the keep-alive task, if enabled)."""
        if self._task is not None:
            raise RuntimeError(f"Subscription connection for {self.model_uri} already started")

        self.state = SubscriptionState.OPENING
        self._task = asyncio.create_task(self._run(), name=f"subscription:{self.model_uri}")
        if self._keep_alive_interval is not None:
            self._keep_alive_task = asyncio.create_task(self._keep_alive(), name=f"keep-alive:{self.model_uri}")

    async def send(self, message: ModelServerMessage | str | bytes) -> bool:
        """Send a message if the connection is open.

        Returns:
            True if the message was handed to the WebSocket
        """
        if not self.is_open or self._websocket is None:
            logger.debug(f"Subscription for {self.model_uri} is not open, message dropped")
            return False

        payload = message.to_json() if isinstance(message, ModelServerMessage) else message
        try:
            await self._websocket.send(payload)
        except ConnectionClosed as e:
            logger.debug(f"Subscription for {self.model_uri} closed while sending: {e}")
            return False
        return True

    async def close(self) -> None:
        """Close the connection and wait for its task to end.

        This method is idempotent - safe to call multiple times.
        """
        self._stop_keep_alive()

        if self._task is None or self._task.done():
            return

        if self._websocket is not None:
            await self._websocket.close()
        else:
            # Still connecting
            self._task.cancel()

        if self._task is not asyncio.current_task():
            try:
                await self._task
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
            self.state = SubscriptionState.CLOSED

    async def _run(self) -> None:
        try:
            try:
                websocket = await self._connect(self.target)
            except asyncio.CancelledError:
                await self._dispatch("on_close", CloseEvent(code=None, reason="Subscription cancelled", was_clean=False))
                raise
            except Exception as e:
                logger.warning(f"Failed to open subscription for {self.model_uri}: {e}")
                await self._dispatch("on_error", ErrorEvent(error=e))
                await self._dispatch("on_close", CloseEvent(code=ABNORMAL_CLOSURE, reason=str(e), was_clean=False))
                return

            self._websocket = websocket
            self.state = SubscriptionState.OPEN
            logger.debug(f"Subscription for {self.model_uri} opened")
            await self._dispatch("on_open", OpenEvent(target=self.target))

            error: Exception | None = None
            try:
                async for frame in websocket:
                    await self._dispatch("on_message", MessageEvent(data=frame))
            except ConnectionClosedError as e:
                error = e
            except Exception as e:
                logger.exception(f"Subscription for {self.model_uri} failed: {e}")
                error = e

            if error is not None:
                await self._dispatch("on_error", ErrorEvent(error=error))
            await self._dispatch(
                "on_close",
                CloseEvent(
                    code=getattr(websocket, "close_code", None),
                    reason=getattr(websocket, "close_reason", None) or "",
                    was_clean=error is None,
                ),
            )
        finally:
            self.state = SubscriptionState.CLOSED
            self._websocket = None
            self._stop_keep_alive()
            if self._on_finished is not None:
                self._on_finished(self)

    async def _keep_alive(self) -> None:
        """Background task sending keep-alive messages at a fixed interval."""
        assert self._keep_alive_interval is not None
        while True:
            await asyncio.sleep(self._keep_alive_interval)
            if await self.send(ModelServerMessage.keep_alive()):
                keep_alives_sent.add(1)

    def _stop_keep_alive(self) -> None:
        if self._keep_alive_task is not None:
            if self._keep_alive_task is not asyncio.current_task():
                self._keep_alive_task.cancel()
            self._keep_alive_task = None

    async def _dispatch(self, callback_name: str, event: Any) -> None:
        callback = getattr(self.listener, callback_name, None)
        if callback is None:
            return
        try:
            result = callback(self.model_uri, event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Subscription listener {callback_name} failed for {self.model_uri}")

    def __repr__(self) -> str:
        return f"<SubscriptionConnection({self.model_uri}) [{self.state.value}]>"


class SubscriptionChannel:
    """Manages the subscription connections of one client.

    Usage:
        channel = SubscriptionChannel(base_url="http://localhost:8081/api/v1/", default_format="json")

        result = await channel.subscribe("Coffee.ecore", listener, SubscriptionOptions(livevalidation=True))
        await channel.send("Coffee.ecore", ModelServerMessage(type="custom", data={}))
        await channel.unsubscribe("Coffee.ecore")

        # Cleanup all connections
        await channel.close_all()
    """

    def __init__(
        self,
        base_url: str,
        default_format: str = "json",
        connect: ConnectFn | None = None,
    ):
        """Initialize the channel.

        Args:
            base_url: Base URL of the model server API (http or https)
            default_format: Format requested when the options do not specify one
            connect: Coroutine function opening a WebSocket. Defaults to ``websockets.connect``.
        """
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._default_format = default_format
        self._connect = connect

        # Open-connection registry: {model_uri: connection}
        self._registry: dict[str, SubscriptionConnection] = {}

    @property
    def subscribed_uris(self) -> list[str]:
        return list(self._registry)

    def is_subscribed(self, model_uri: str) -> bool:
        return model_uri in self._registry

    def get_state(self, model_uri: str) -> SubscriptionState:
        connection = self._registry.get(model_uri)
        return connection.state if connection is not None else SubscriptionState.CLOSED

    def create_subscription_target(self, model_uri: str, options: SubscriptionOptions) -> str:
        """Build the WebSocket URL of a subscription."""
        query = urlencode(options.to_query_params(model_uri, self._default_format))
        return to_websocket_url(f"{self._base_url}{ModelServerPaths.SUBSCRIPTION}?{query}")

    async def subscribe(
        self,
        model_uri: str,
        listener: Any,
        options: SubscriptionOptions | None = None,
    ) -> SubscriptionResult:
        """Open a subscription for a model URI.

        If the URI is already subscribed, a warning is logged. With
        ``options.error_when_unsuccessful`` the call then fails and the existing
        connection is kept; otherwise the existing connection is closed and
        replaced by the new one.

        Args:
            model_uri: Model URI to subscribe to
            listener: Receiver of the connection events
            options: Subscription options (format, timeout, livevalidation, ...)

        Returns:
            SubscriptionResult holding the listener and the subscription status

        Raises:
            SubscriptionConflictError: If the URI is already subscribed and
                ``options.error_when_unsuccessful`` is set
        """
        options = options or SubscriptionOptions()
        status = SubscriptionStatus.SUBSCRIBED

        previous = self._registry.get(model_uri)
        if previous is not None:
            logger.warning(f"{model_uri}: Cannot open new subscription, already subscribed!")
            subscription_conflicts.add(1)
            if options.error_when_unsuccessful:
                raise SubscriptionConflictError(model_uri)
            status = SubscriptionStatus.REPLACED

        connection = SubscriptionConnection(
            model_uri=model_uri,
            target=self.create_subscription_target(model_uri, options),
            listener=listener,
            connect=self._connect or websockets.connect,
            keep_alive_interval=keep_alive_interval(options.timeout) if options.timeout is not None else None,
            on_finished=self._release,
        )
        self._registry[model_uri] = connection

        if previous is not None:
            await previous.close()
            subscriptions_closed.add(1)

        # A concurrent subscribe may have replaced this connection while the previous one was closing
        if self._registry.get(model_uri) is connection:
            connection.start()
            subscriptions_opened.add(1)
            logger.info(f"Subscribed to {model_uri} ({connection.target})")

        return SubscriptionResult(model_uri, listener, status)

    async def unsubscribe(self, model_uri: str) -> bool:
        """Close and deregister the subscription of a model URI.

        Unsubscribing a URI without subscription only logs a warning.

        Returns:
            True if a subscription was closed
        """
        connection = self._registry.pop(model_uri, None)
        if connection is None:
            logger.warning(f"{model_uri}: Cannot unsubscribe, no subscription registered!")
            return False

        await connection.close()
        subscriptions_closed.add(1)
        logger.info(f"Unsubscribed from {model_uri}")
        return True

    async def send(self, model_uri: str, message: ModelServerMessage | str | bytes) -> bool:
        """Send a message on the subscription of a model URI.

        Does nothing if the URI is not subscribed or its connection is not open.

        Returns:
            True if the message was sent
        """
        connection = self._registry.get(model_uri)
        if connection is None:
            return False
        return await connection.send(message)

    async def close_all(self) -> None:
        """Close all registered subscriptions."""
        connections = list(self._registry.values())
        self._registry.clear()
        for connection in connections:
            try:
                await connection.close()
                subscriptions_closed.add(1)
            except Exception as e:
                logger.warning(f"Error closing subscription for {connection.model_uri}: {e}")
        if connections:
            logger.debug(f"Closed {len(connections)} subscription(s)")

    def _release(self, connection: SubscriptionConnection) -> None:
        """Drop a connection whose task ended on its own (peer close or failure)."""
        if self._registry.get(connection.model_uri) is connection:
            del self._registry[connection.model_uri]
            subscriptions_closed.add(1)
            logger.info(f"Subscription for {connection.model_uri} closed by the server")
