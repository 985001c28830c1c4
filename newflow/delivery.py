"""
Best-effort delivery side-channels fired for every new notification.

Neither channel may raise into the caller or block it: sound is handed to
pygame's mixer, which plays in the background, and a missing asset or audio
device falls back to the terminal bell. Desktop notifications go through
plyer on a daemon thread; a backend error is logged at debug and dropped.
"""
import logging
import sys
import threading
from typing import Callable, Literal, Protocol, TextIO

import pygame
from plyer import notification as desktop_notification

from newflow.models import Notification, NotificationSettings

log = logging.getLogger("newflow.delivery")

Permission = Literal["granted", "denied", "default"]

_BELL = "\a"
_PERMISSION_TIMEOUT = 10.0   # seconds to wait for a permission prompt
_DESKTOP_TIMEOUT = 10        # seconds a desktop notification stays up


class PygamePlayer:
    """
    Plays an audio file through ``pygame.mixer``.

    The mixer is initialised on first use and each asset is loaded once.
    Sound.play() returns immediately; mixing happens on pygame's own thread.
    Any pygame.error (no audio device, unreadable file) propagates so the
    caller can fall back.
    """

    def __init__(self):
        self._sounds: dict[str, pygame.mixer.Sound] = {}
        self._lock = threading.Lock()

    def __call__(self, asset: str, volume: float):
        with self._lock:
            if not pygame.mixer.get_init():
                pygame.mixer.init()
            sound = self._sounds.get(asset)
            if sound is None:
                sound = self._sounds[asset] = pygame.mixer.Sound(asset)
        sound.set_volume(volume)
        sound.play()


class SoundChannel:
    """Plays a short alert through ``player(asset, volume)``."""

    def __init__(self, player: Callable[[str, float], None] | None = None,
                 asset: str = "/notification-sound.mp3", volume: float = 0.3,
                 stream: TextIO | None = None):
        self.player = player
        self.asset = asset
        self.volume = volume
        self._stream = stream

    def _bell(self):
        stream = self._stream or sys.stdout
        try:
            stream.write(_BELL)
            stream.flush()
        except Exception as exc:
            log.debug("Terminal bell failed: %s", exc)

    def play(self, settings: NotificationSettings):
        if not settings.sound_enabled:
            return
        if self.player is None:
            self._bell()
            return
        try:
            self.player(self.asset, self.volume)
        except Exception as exc:
            log.debug("Sound playback failed (%s), falling back to bell", exc)
            self._bell()


class DesktopBackend(Protocol):
    """Native desktop-notification capability."""

    def supported(self) -> bool: ...

    def permission(self) -> Permission: ...

    def request_permission(self, timeout: float) -> Permission: ...

    def show(self, title: str, body: str, tag: str, require_interaction: bool) -> None: ...


class PlyerBackend:
    """
    Desktop notifications through plyer (libnotify/D-Bus on Linux, toast on
    Windows, Notification Center on macOS).

    None of these ask for permission per process, so permission is always
    "granted" on a supported platform. plyer cannot replace a notification
    by tag; each call shows a new one.
    """

    PLATFORMS = ("linux", "win32", "darwin")

    def __init__(self, app_name: str = "NewFlow", timeout: int = _DESKTOP_TIMEOUT):
        self.app_name = app_name
        self.timeout = timeout

    def supported(self) -> bool:
        return sys.platform.startswith(self.PLATFORMS)

    def permission(self) -> Permission:
        return "granted" if self.supported() else "denied"

    def request_permission(self, timeout: float) -> Permission:
        return self.permission()

    def show(self, title: str, body: str, tag: str, require_interaction: bool) -> None:
        # timeout=0 keeps the notification up until the user dismisses it
        desktop_notification.notify(
            title=title,
            message=body,
            app_name=self.app_name,
            timeout=0 if require_interaction else self.timeout,
        )


class DesktopChannel:
    """
    Shows a native notification on a daemon thread so a slow permission
    prompt or notification daemon never holds up the caller.
    """

    def __init__(self, backend: DesktopBackend | None = None,
                 permission_timeout: float = _PERMISSION_TIMEOUT,
                 thread_factory: Callable[..., threading.Thread] = threading.Thread):
        self.backend = backend
        self.permission_timeout = permission_timeout
        self._thread_factory = thread_factory

    def show(self, notification: Notification, settings: NotificationSettings):
        if not settings.desktop_notifications or self.backend is None:
            return
        t = self._thread_factory(target=self._present, args=(notification,),
                                 daemon=True, name=f"desktop-{notification.id}")
        t.start()

    def _present(self, notification: Notification):
        try:
            if not self.backend.supported():
                return
            permission = self.backend.permission()
            if permission == "default":
                permission = self.backend.request_permission(self.permission_timeout)
            if permission != "granted":
                return
            self.backend.show(
                notification.title,
                notification.message,
                tag=notification.id,
                require_interaction=notification.priority == "urgent",
            )
        except Exception as exc:
            log.debug("Desktop notification for %s failed: %s", notification.id, exc)


class Delivery:
    """Fans a new notification out to both side-channels."""

    def __init__(self, sound: SoundChannel | None = None,
                 desktop: DesktopChannel | None = None):
        self.sound = sound or SoundChannel()
        self.desktop = desktop or DesktopChannel()

    def deliver(self, notification: Notification, settings: NotificationSettings):
        for fn in (lambda: self.sound.play(settings),
                   lambda: self.desktop.show(notification, settings)):
            try:
                fn()
            except Exception as exc:
                log.debug("Delivery side-channel raised: %s", exc)
