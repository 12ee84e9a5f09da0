"""
Provider registry

A ``BusContext`` maps provider names to ``BusHandle`` objects. Consumers
register against a provider by name and get back their half of a connected
socket pair; the other half is kept by the provider's dispatch loop.

Usage:
    context = BusContext()
    handle = context.create("vadmin")
    consumer = context.register("vadmin")      # before the loop starts
    handle.install(callback, private_data)
    loop = context.start("vadmin")
    result = consumer.call("ping")
"""

import logging
import socket
from typing import Any, Callable, Dict, List, Optional, Tuple

from cmdbus.client import Consumer
from cmdbus.config import BusConfig
from cmdbus.errors import (
    BusStateError,
    CapacityExceeded,
    FatalBusError,
    ProviderNotFound,
)
from cmdbus.loop import DispatchLoop, abort_process
from cmdbus.result import CallResult

logger = logging.getLogger(__name__)

Callback = Callable[[Any, str], CallResult]


class BusHandle:
    """
    Provider side of the bus: command callback, private data and listeners.

    The listener list is read by the dispatch loop without locking, so every
    registration must happen before ``start``.
    """

    def __init__(self,
                 name: str,
                 config: Optional[BusConfig] = None,
                 callback: Optional[Callback] = None,
                 private_data: Any = None,
                 fatal_handler: Callable[[FatalBusError], None] = abort_process):
        """Create a bus handle

        Args:
            name: Provider name
            config: Bus configuration, defaults to ``BusConfig()``
            callback: Command handler called as ``callback(private_data, command)``
            private_data: Opaque value passed to every callback invocation
            fatal_handler: Called from the loop thread on a fatal error
        """
        self.name = name
        self.config = config or BusConfig()
        self.callback = callback
        self.private_data = private_data
        self.fatal_handler = fatal_handler
        self.loop: Optional[DispatchLoop] = None
        self._listeners: List[socket.socket] = []

    def __repr__(self):
        return f"BusHandle(name={self.name!r}, listeners={len(self._listeners)})"

    @property
    def listeners(self) -> Tuple[socket.socket, ...]:
        """Provider-side endpoints in registration order"""
        return tuple(self._listeners)

    def install(self, callback: Callback, private_data: Any = None) -> None:
        """Set the command callback and its private data"""
        if self.loop is not None:
            raise BusStateError(f"Provider {self.name} already started")
        self.callback = callback
        self.private_data = private_data

    def register(self) -> Consumer:
        """Create an endpoint pair and return the consumer half

        Raises:
            CapacityExceeded: max_listeners consumers already registered
            BusStateError: The dispatch loop is already running
        """
        if self.loop is not None:
            raise BusStateError(f"Cannot register with {self.name}: dispatch loop already started")
        if len(self._listeners) >= self.config.max_listeners:
            raise CapacityExceeded(
                f"Provider {self.name} already has {self.config.max_listeners} listeners"
            )

        listener, endpoint = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
        self._listeners.append(listener)
        logger.debug(f"Registered consumer #{len(self._listeners)} with {self.name}")
        return Consumer(endpoint, provider=self.name, read_timeout=self.config.read_timeout)

    def start(self) -> DispatchLoop:
        """Start the dispatch loop thread

        Returns:
            DispatchLoop: Handle to the running loop

        Raises:
            BusStateError: No callback installed or already started
        """
        if self.callback is None:
            raise BusStateError(f"Provider {self.name} has no callback installed")
        if self.loop is not None:
            raise BusStateError(f"Provider {self.name} already started")
        self.loop = DispatchLoop(self)
        self.loop.start()
        return self.loop


class BusContext:
    """Process-wide map from provider name to bus handle"""

    def __init__(self, config: Optional[BusConfig] = None):
        self.config = config or BusConfig()
        self._handles: Dict[str, BusHandle] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._handles

    def names(self) -> List[str]:
        return list(self._handles)

    def create(self,
               name: str,
               callback: Optional[Callback] = None,
               private_data: Any = None,
               **kwargs) -> BusHandle:
        """Create the bus handle for a provider

        Extra keyword arguments are passed to ``BusHandle``.
        """
        if name in self._handles:
            raise BusStateError(f"Provider {name} already exists")
        kwargs.setdefault("config", self.config)
        handle = BusHandle(name, callback=callback, private_data=private_data, **kwargs)
        self._handles[name] = handle
        logger.info(f"Created provider {name}")
        return handle

    def find(self, name: str) -> BusHandle:
        """Look up a provider's bus handle

        Raises:
            ProviderNotFound: No provider was created under this name
        """
        try:
            return self._handles[name]
        except KeyError:
            raise ProviderNotFound(f"No provider named {name}") from None

    def register(self, name: str) -> Consumer:
        """Register a consumer with the named provider"""
        return self.find(name).register()

    def start(self, name: str) -> DispatchLoop:
        """Start the named provider's dispatch loop"""
        return self.find(name).start()
