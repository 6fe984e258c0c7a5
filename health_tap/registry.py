from __future__ import annotations

from collections.abc import Callable, Hashable
from functools import partial
import logging
import threading
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from health_tap.models import HealthSnapshot

DeathRecipient = Callable[[Hashable], None]


class DeadListenerError(Exception):
    """Raised by a listener whose subscriber is gone."""


class ListenerHandle(Protocol):
    identity: Hashable

    def deliver(self, snapshot: HealthSnapshot) -> None: ...

    def link_to_death(self, recipient: DeathRecipient) -> bool: ...

    def unlink_to_death(self, recipient: DeathRecipient) -> None: ...


def identity_of(handle_or_identity: Any) -> Hashable:
    return getattr(handle_or_identity, "identity", handle_or_identity)


class CallbackListener:
    """In-process listener that forwards snapshots to a callable.

    ``kill`` marks the listener dead and notifies death recipients from a
    background thread, the way a remote subscriber's death would arrive.
    """

    def __init__(
        self,
        callback: Callable[[HealthSnapshot], None],
        identity: Hashable | None = None,
    ) -> None:
        self.callback = callback
        self.identity: Hashable = identity if identity is not None else self
        self._lock = threading.Lock()
        self._recipients: list[DeathRecipient] = []
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def deliver(self, snapshot: HealthSnapshot) -> None:
        if not self._alive:
            raise DeadListenerError(f"Listener {self.identity!r} is dead")
        self.callback(snapshot)

    def link_to_death(self, recipient: DeathRecipient) -> bool:
        with self._lock:
            if not self._alive:
                return False
            if recipient not in self._recipients:
                self._recipients.append(recipient)
        return True

    def unlink_to_death(self, recipient: DeathRecipient) -> None:
        with self._lock:
            if recipient in self._recipients:
                self._recipients.remove(recipient)

    def kill(self) -> threading.Thread | None:
        with self._lock:
            if not self._alive:
                return None
            self._alive = False
            recipients = list(self._recipients)
            self._recipients.clear()
        thread = threading.Thread(
            target=self._notify_death,
            args=(recipients,),
            name=f"death-{self.identity!r}",
            daemon=True,
        )
        thread.start()
        return thread

    def _notify_death(self, recipients: list[DeathRecipient]) -> None:
        for recipient in recipients:
            recipient(self.identity)


class ListenerRegistry:
    """Live set of snapshot listeners, kept in registration order.

    The lock guards the listener list and the fan-out walk. It is reentrant
    so a listener may unsubscribe from inside ``deliver``.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._handles: list[ListenerHandle] = []
        # Death recipient of each registered handle, keyed by id(handle).
        self._links: dict[int, DeathRecipient] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, handle_or_identity: object) -> bool:
        identity = identity_of(handle_or_identity)
        with self._lock:
            return any(handle.identity == identity for handle in self._handles)

    def identities(self) -> list[Hashable]:
        with self._lock:
            return [handle.identity for handle in self._handles]

    def register(self, handle: ListenerHandle | None) -> bool:
        """Add a listener and watch for its death.

        Returns False when nothing was added (null handle or duplicate).
        """
        if handle is None:
            self.logger.debug("Ignoring registration of a null listener.")
            return False

        recipient = partial(self.on_death, handle=handle)
        with self._lock:
            if any(entry.identity == handle.identity for entry in self._handles):
                self.logger.debug("Listener %r already registered.", handle.identity)
                return False
            self._handles.append(handle)
            self._links[id(handle)] = recipient

        try:
            linked = handle.link_to_death(recipient)
        except Exception as exc:
            self.logger.warning("Cannot link to death of %r: %s", handle.identity, exc)
        else:
            if not linked:
                self.logger.warning(
                    "Cannot link to death of %r: link_to_death returned False",
                    handle.identity,
                )
            elif not self._is_registered(handle):
                # Unregistered before the link was in place.
                self._unlink(handle, recipient)
        self.logger.debug("Registered listener %r.", handle.identity)
        return True

    def unregister(self, handle_or_identity: Any) -> bool:
        if handle_or_identity is None:
            return False
        identity = identity_of(handle_or_identity)
        with self._lock:
            removed = [h for h in self._handles if h.identity == identity]
            for handle in removed:
                self._remove(handle)
        if removed:
            self.logger.debug("Unregistered listener %r.", identity)
        return bool(removed)

    def on_death(self, identity: Hashable, handle: ListenerHandle | None = None) -> None:
        """Drop a dead listener.

        With ``handle`` only that object is removed, never a newer listener
        registered under the same identity.
        """
        if handle is None:
            removed = self.unregister(identity)
        else:
            with self._lock:
                removed = self._is_registered(handle)
                if removed:
                    self._remove(handle)
        if removed:
            self.logger.info("Listener %r died, removed.", identity)
        else:
            self.logger.debug("Death of %r after it was already removed.", identity)

    def notify(self, snapshot: HealthSnapshot) -> int:
        """Deliver a snapshot to every live listener and prune the failed ones.

        Returns the number of successful deliveries.
        """
        delivered = 0
        with self._lock:
            for handle in list(self._handles):
                if not self._is_registered(handle):
                    # Removed while the walk was in progress.
                    continue
                try:
                    handle.deliver(snapshot)
                except DeadListenerError:
                    self.logger.debug("Listener %r is dead, removing.", handle.identity)
                    self._remove(handle)
                except Exception:
                    self.logger.warning(
                        "Delivery to listener %r failed, removing.",
                        handle.identity,
                        exc_info=True,
                    )
                    self._remove(handle)
                else:
                    delivered += 1
        return delivered

    def _is_registered(self, handle: ListenerHandle) -> bool:
        with self._lock:
            return any(entry is handle for entry in self._handles)

    def _remove(self, handle: ListenerHandle) -> None:
        self._handles = [h for h in self._handles if h is not handle]
        recipient = self._links.pop(id(handle), None)
        if recipient is not None:
            self._unlink(handle, recipient)

    def _unlink(self, handle: ListenerHandle, recipient: DeathRecipient) -> None:
        try:
            handle.unlink_to_death(recipient)
        except Exception as exc:
            self.logger.debug("Ignoring unlink failure for %r: %s", handle.identity, exc)
