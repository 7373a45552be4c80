"""

    Firebase wrapper for the daily challenge server

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module implements a thin wrapper around the Google Firebase
    Cloud Messaging functionality used to send push notifications
    to the devices that users have registered.

    The wrapper is a PushNotifier object, created at application startup
    (or by a batch job) and handed to the code that needs it. It owns
    its Firebase app instance, which is initialized on first use and
    released by close().

"""

from __future__ import annotations

from typing import (
    Any,
    Mapping,
    Optional,
    Protocol,
    cast,
)

import threading
import logging

from firebase_admin import App, initialize_app, delete_app, messaging  # type: ignore
from firebase_admin.exceptions import FirebaseError  # type: ignore
from firebase_admin.messaging import UnregisteredError  # type: ignore

from config import PROJECT_ID, PUSH_ENABLED
from db.protocols import DatabaseBackendProtocol


PushDataDict = Mapping[str, str]

# Outcomes of a single push attempt
SENT = "sent"
UNREGISTERED = "unregistered"
FAILED = "failed"
DISABLED = "disabled"


class NotifierProtocol(Protocol):
    """What the rest of the server needs from a push notifier"""

    def push_to_user(
        self,
        db: DatabaseBackendProtocol,
        user_id: str,
        message: Mapping[str, str],
        data: Optional[PushDataDict] = None,
    ) -> int: ...

    def close(self) -> None: ...


class PushNotifier:
    """Sends push notifications via Firebase Cloud Messaging"""

    def __init__(
        self, project_id: str = PROJECT_ID, *, enabled: bool = PUSH_ENABLED
    ) -> None:
        self._project_id = project_id
        self._enabled = enabled
        self._app: Optional[App] = None
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _firebase_app(self) -> App:
        """Initialize the Firebase app instance on first use"""
        with self._lock:
            if self._app is None:
                # Use a name of our own so that several notifiers
                # (and the default app, if any) can coexist
                self._app = initialize_app(
                    options=dict(projectId=self._project_id),
                    name=f"push-{id(self)}",
                )
            return self._app

    def push_notification(
        self,
        device_token: str,
        message: Mapping[str, str],
        data: Optional[PushDataDict] = None,
    ) -> str:
        """Send a Firebase push notification to a particular device,
        identified by device token. The message is a dictionary that
        contains a title and a body."""
        if not device_token:
            return FAILED
        if not self._enabled:
            logging.info(
                f"Push notifications disabled; not sending '{message.get('title', '')}'"
            )
            return DISABLED

        msg = messaging.Message(
            notification=messaging.Notification(**message),
            token=device_token,
            data=dict(data) if data else None,
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(content_available=True),
                ),
            ),
        )

        try:
            message_id: str = cast(Any, messaging).send(msg, app=self._firebase_app())
            # The response is a message ID string
            return SENT if message_id else FAILED
        except UnregisteredError:
            logging.info(
                f"Unregistered device token ('{device_token}') in PushNotifier.push_notification()"
            )
            return UNREGISTERED
        except (FirebaseError, ValueError) as e:
            logging.warning(
                f"Exception [{repr(e)}] raised in PushNotifier.push_notification()"
            )
        return FAILED

    def push_to_user(
        self,
        db: DatabaseBackendProtocol,
        user_id: str,
        message: Mapping[str, str],
        data: Optional[PushDataDict] = None,
    ) -> int:
        """Send a push notification to every device registered by a user.
        Tokens that Firebase reports as unregistered are deleted.
        Returns the number of devices the message was sent to."""
        if not user_id:
            return 0
        sent = 0
        for token in db.push_subscriptions.list_tokens(user_id):
            outcome = self.push_notification(token, message, data)
            if outcome == SENT:
                sent += 1
            elif outcome == UNREGISTERED:
                # The device token has become invalid: delete it to
                # prevent further attempts to send notifications to it
                db.push_subscriptions.unsubscribe(token)
        return sent

    def close(self) -> None:
        """Release the Firebase app instance, if one was created"""
        with self._lock:
            if self._app is not None:
                delete_app(self._app)
                self._app = None
