"""
Relay client - fetch contact lists from Nostr relays.

A RelayConnection owns one WebSocket to one relay and multiplexes any
number of concurrent subscriptions over it. A RelayPool fans every
request out to all configured relays and merges the answers.

Architecture:
- connect() is idempotent; concurrent callers share one in-flight attempt
- A background receive loop routes EVENT/EOSE/CLOSED frames to their
  subscription by id
- A subscription finishes on EOSE, on relay-side CLOSED, on timeout or
  when the connection goes away; in every case the caller gets whatever
  events were collected
- The pool isolates per-relay failures and keeps the newest event per
  author (last writer wins on created_at)
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import aiohttp
from aiohttp import WSMsgType

from ..core.defaults import (
    CONTACT_LIST_KIND,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HEARTBEAT,
    DEFAULT_TIMEOUT,
)
from ..core.exceptions import (
    AllSourcesUnavailableError,
    SourceUnavailableError,
    WoTException,
)
from .messages import (
    CLOSED,
    EOSE,
    EVENT,
    NOTICE,
    ContactListEvent,
    RelayFrame,
    SubscriptionFilter,
    close_frame,
    parse_frame,
    req_frame,
)

logger = logging.getLogger(__name__)


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class Subscription:
    """An open REQ on a relay connection, collecting events until it finishes."""

    subscription_id: str
    filter: SubscriptionFilter
    future: asyncio.Future
    events: List[ContactListEvent] = field(default_factory=list)
    opened_at: float = field(default_factory=time.time)

    def finish(self, eose: bool) -> None:
        """Resolve the waiting caller with the events collected so far."""
        if not self.future.done():
            self.future.set_result(SubscriptionResult(events=list(self.events), eose=eose))


@dataclass
class SubscriptionResult:
    """Events returned by one relay for one subscription.

    ``eose`` is True only when the relay signalled end of stored events,
    i.e. the answer is complete for the requested authors.
    """

    events: List[ContactListEvent]
    eose: bool = False


@dataclass
class FetchResult:
    """Merged pool answer: newest event per author."""

    events: Dict[str, ContactListEvent]
    complete: bool = False
    relays_answered: int = 0


# =============================================================================
# RELAY CONNECTION
# =============================================================================


@dataclass
class RelayConnection:
    """
    Persistent WebSocket connection to a single relay.

    Example:
        relay = RelayConnection("wss://relay.damus.io")
        await relay.connect()
        result = await relay.fetch_contact_lists([pubkey], timeout=5.0)
        await relay.close()

    Attributes:
        url: Relay WebSocket URL
        connect_timeout: Seconds allowed for the WebSocket handshake
        heartbeat: WebSocket ping interval in seconds
        session_factory: Creates the aiohttp session (injectable for tests)
    """

    url: str
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    heartbeat: float = DEFAULT_HEARTBEAT
    session_factory: Callable[[], Any] = aiohttp.ClientSession

    # Internal state
    _session: Optional[Any] = field(default=None, repr=False)
    _websocket: Optional[Any] = field(default=None, repr=False)
    _connecting: Optional[asyncio.Task] = field(default=None, repr=False)
    _receive_task: Optional[asyncio.Task] = field(default=None, repr=False)
    _subscriptions: Dict[str, Subscription] = field(default_factory=dict, repr=False)
    _sub_counter: Any = field(default_factory=lambda: itertools.count(1), repr=False)

    # Statistics
    _stats: Dict[str, int] = field(default_factory=lambda: {
        "connections_established": 0,
        "connections_failed": 0,
        "subscriptions_opened": 0,
        "subscriptions_completed": 0,
        "subscriptions_timed_out": 0,
        "events_received": 0,
        "frames_ignored": 0,
    })

    # -------------------------------------------------------------------------
    # PUBLIC API
    # -------------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        """Whether the WebSocket is open."""
        return self._websocket is not None and not self._websocket.closed

    async def connect(self) -> None:
        """
        Open the WebSocket if it is not already open or opening.

        Concurrent callers await the same connection attempt.

        Raises:
            SourceUnavailableError: If the relay cannot be reached
        """
        if self.connected:
            return

        if self._connecting is None:
            self._connecting = asyncio.create_task(self._open())
            self._connecting.add_done_callback(self._clear_connecting)

        await asyncio.shield(self._connecting)

    async def fetch_contact_lists(
        self,
        pubkeys: List[str],
        timeout: float = DEFAULT_TIMEOUT,
    ) -> SubscriptionResult:
        """
        Fetch contact list events authored by *pubkeys*.

        Opens a subscription and waits until the relay sends EOSE or
        *timeout* seconds pass, whichever comes first. A timeout is not
        an error: the events collected so far are returned with
        ``eose=False``.

        Args:
            pubkeys: Canonical author pubkeys
            timeout: Seconds to wait for EOSE

        Returns:
            SubscriptionResult with the kind 3 events received

        Raises:
            SourceUnavailableError: If the relay cannot be connected
        """
        await self.connect()

        subscription_id = f"wot-{next(self._sub_counter)}"
        sub = Subscription(
            subscription_id=subscription_id,
            filter=SubscriptionFilter(authors=list(pubkeys)),
            future=asyncio.get_running_loop().create_future(),
        )
        self._subscriptions[subscription_id] = sub
        self._stats["subscriptions_opened"] += 1

        await self._send(req_frame(subscription_id, sub.filter))

        try:
            result = await asyncio.wait_for(asyncio.shield(sub.future), timeout=timeout)
            self._stats["subscriptions_completed"] += 1
            return result
        except asyncio.TimeoutError:
            self._stats["subscriptions_timed_out"] += 1
            logger.debug(
                f"Subscription {subscription_id} on {self.url} timed out after {timeout}s "
                f"with {len(sub.events)} events"
            )
            sub.finish(eose=False)
            return sub.future.result()
        finally:
            if self._subscriptions.pop(subscription_id, None) is not None:
                await self._send(close_frame(subscription_id))

    async def close(self) -> None:
        """Finish all open subscriptions and close the WebSocket."""
        for subscription_id, sub in list(self._subscriptions.items()):
            sub.finish(eose=False)
            await self._send(close_frame(subscription_id))
        self._subscriptions.clear()

        if self._connecting is not None:
            self._connecting.cancel()
            try:
                await self._connecting
            except (asyncio.CancelledError, WoTException):
                pass

        receive_task, self._receive_task = self._receive_task, None
        await self._teardown()

        if receive_task is not None and not receive_task.done():
            receive_task.cancel()
            try:
                await receive_task
            except asyncio.CancelledError:
                pass

    def get_stats(self) -> Dict[str, Any]:
        """Get connection statistics."""
        return {
            **self._stats,
            "url": self.url,
            "connected": self.connected,
            "open_subscriptions": len(self._subscriptions),
        }

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    def _clear_connecting(self, task: asyncio.Task) -> None:
        if self._connecting is task:
            self._connecting = None

    async def _open(self) -> None:
        session = self.session_factory()
        try:
            websocket = await asyncio.wait_for(
                session.ws_connect(self.url, heartbeat=self.heartbeat),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            self._stats["connections_failed"] += 1
            await session.close()
            raise SourceUnavailableError(self.url, f"Connection timeout after {self.connect_timeout}s") from e
        except (aiohttp.ClientError, OSError, ValueError) as e:
            self._stats["connections_failed"] += 1
            await session.close()
            raise SourceUnavailableError(self.url, f"Connection error: {e}") from e
        except asyncio.CancelledError:
            await session.close()
            raise

        self._session = session
        self._websocket = websocket
        self._stats["connections_established"] += 1
        self._receive_task = asyncio.create_task(self._receive_loop(websocket))
        logger.info(f"Connected to relay {self.url}")

    async def _teardown(self) -> None:
        websocket, self._websocket = self._websocket, None
        session, self._session = self._session, None

        if websocket is not None and not websocket.closed:
            try:
                await websocket.close()
            except (aiohttp.ClientError, OSError) as e:
                logger.debug(f"Error closing websocket for {self.url}: {e}")

        if session is not None:
            await session.close()

    # -------------------------------------------------------------------------
    # MESSAGE HANDLING
    # -------------------------------------------------------------------------

    async def _send(self, frame: list) -> None:
        """Send a frame if the socket is open; drop it otherwise."""
        if not self.connected:
            return
        try:
            await self._websocket.send_json(frame)
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
            logger.debug(f"Failed to send {frame[0]} to {self.url}: {e}")

    async def _receive_loop(self, websocket: Any) -> None:
        """Route inbound frames to subscriptions until the socket closes."""
        try:
            async for msg in websocket:
                if msg.type == WSMsgType.TEXT:
                    frame = parse_frame(msg.data)
                    if frame is None:
                        self._stats["frames_ignored"] += 1
                        continue
                    self._handle_frame(frame)

                elif msg.type == WSMsgType.ERROR:
                    logger.warning(f"WebSocket error from {self.url}: {websocket.exception()}")
                    break

                elif msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED):
                    break

        except (aiohttp.ClientError, OSError) as e:
            logger.warning(f"Receive loop error for relay {self.url}: {e}")

        finally:
            # Whatever is still open gets the partial result
            for sub in list(self._subscriptions.values()):
                sub.finish(eose=False)
            if self._websocket is websocket:
                logger.info(f"Relay {self.url} disconnected")
                self._websocket = None
                if self._session is not None:
                    session, self._session = self._session, None
                    await session.close()

    def _handle_frame(self, frame: RelayFrame) -> None:
        if frame.type == NOTICE:
            logger.debug(f"NOTICE from {self.url}: {frame.message}")
            return

        sub = self._subscriptions.get(frame.subscription_id)
        if sub is None:
            self._stats["frames_ignored"] += 1
            return

        if frame.type == EVENT:
            try:
                event = ContactListEvent.from_dict(frame.event)
            except ValueError as e:
                logger.debug(f"Ignoring malformed event from {self.url}: {e}")
                self._stats["frames_ignored"] += 1
                return
            if event.kind != CONTACT_LIST_KIND:
                self._stats["frames_ignored"] += 1
                return
            sub.events.append(event)
            self._stats["events_received"] += 1

        elif frame.type == EOSE:
            sub.finish(eose=True)

        elif frame.type == CLOSED:
            logger.warning(
                f"Relay {self.url} closed subscription {frame.subscription_id}: {frame.message}"
            )
            sub.finish(eose=False)


# =============================================================================
# RELAY POOL
# =============================================================================


@dataclass
class RelayPool:
    """
    A set of relays queried as one logical data source.

    Example:
        pool = RelayPool(["wss://relay.damus.io", "wss://nos.lol"])
        await pool.connect()
        result = await pool.fetch_contact_lists(pubkeys)
        await pool.close()
    """

    urls: List[str]
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    connection_factory: Callable[..., RelayConnection] = RelayConnection

    relays: List[RelayConnection] = field(default_factory=list)
    _connected: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        if not self.relays:
            self.relays = [
                self.connection_factory(url, connect_timeout=self.connect_timeout)
                for url in self.urls
            ]

    @property
    def connected_relays(self) -> List[RelayConnection]:
        return [relay for relay in self.relays if relay.connected]

    async def connect(self) -> None:
        """
        Connect every relay in parallel.

        Raises:
            AllSourcesUnavailableError: If no relay could be connected
        """
        if self._connected and self.connected_relays:
            return

        results = await asyncio.gather(
            *(relay.connect() for relay in self.relays),
            return_exceptions=True,
        )

        connected = 0
        for relay, result in zip(self.relays, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to connect to relay {relay.url}: {result}")
            else:
                connected += 1

        if connected == 0:
            self._connected = False
            raise AllSourcesUnavailableError()

        self._connected = True
        logger.info(f"Connected to {connected}/{len(self.relays)} relays")

    async def fetch_contact_lists(
        self,
        pubkeys: List[str],
        timeout: float = DEFAULT_TIMEOUT,
    ) -> FetchResult:
        """
        Fetch contact lists from all connected relays and merge them.

        Each relay is isolated: a failing relay counts as an empty answer.
        For every author the event with the greatest ``created_at`` wins;
        on equal timestamps the first relay in configuration order wins.

        Raises:
            AllSourcesUnavailableError: If no relay is or can be connected
        """
        await self.connect()

        relays = self.connected_relays
        answers = await asyncio.gather(
            *(self._fetch_one(relay, pubkeys, timeout) for relay in relays)
        )

        wanted = set(pubkeys)
        merged: Dict[str, ContactListEvent] = {}
        complete = False
        answered = 0

        for answer in answers:
            if answer is None:
                continue
            answered += 1
            complete = complete or answer.eose
            for event in answer.events:
                if event.pubkey not in wanted:
                    continue
                existing = merged.get(event.pubkey)
                if existing is None or event.created_at > existing.created_at:
                    merged[event.pubkey] = event

        return FetchResult(events=merged, complete=complete, relays_answered=answered)

    async def close(self) -> None:
        """Close every relay connection."""
        await asyncio.gather(*(relay.close() for relay in self.relays))
        self._connected = False

    async def _fetch_one(
        self,
        relay: RelayConnection,
        pubkeys: List[str],
        timeout: float,
    ) -> Optional[SubscriptionResult]:
        try:
            return await relay.fetch_contact_lists(pubkeys, timeout=timeout)
        except (WoTException, aiohttp.ClientError, OSError) as e:
            logger.warning(f"Fetch from relay {relay.url} failed: {e}")
            return None
