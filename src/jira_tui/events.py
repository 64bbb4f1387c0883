"""Keyboard and timer events.

``EventSource`` runs in a background thread and merges key presses and
periodic ticks into a single queue. The main loop blocks on
``EventSource.next()``; that is the only place the program waits.
"""

import codecs
import logging
import os
import queue
import select
import sys
import termios
import threading
import time
import tty
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class Key:
    """Names of non-printable keys. Printable keys use the character itself."""

    ENTER = "enter"
    ESC = "esc"
    TAB = "tab"
    BACKSPACE = "backspace"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class KeyKind(Enum):
    PRESS = "press"
    REPEAT = "repeat"
    RELEASE = "release"


@dataclass(frozen=True)
class KeyEvent:
    code: str
    kind: KeyKind = KeyKind.PRESS
    modifiers: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Tick:
    pass


Event = KeyEvent | Tick

ReadKey = Callable[[float], KeyEvent | None]


class EventSource:
    """Background producer of key and tick events.

    Each cycle waits for input no longer than the time left until the next
    tick deadline, so a burst of keys cannot delay ticks and ticks cannot
    delay keys. Only PRESS key events are forwarded.
    """

    def __init__(
        self,
        read_key: ReadKey,
        tick_rate: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._read_key = read_key
        self.tick_rate = tick_rate
        self._clock = clock
        self._queue: queue.Queue[Event | OSError] = queue.Queue()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_tick = clock()

    def start(self) -> "EventSource":
        self._last_tick = self._clock()
        self._thread = threading.Thread(target=self._run, name="jira-tui-events", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.tick_rate * 2)
            self._thread = None

    def next(self, timeout: float | None = None) -> Event | None:
        """Block until the next event. Returns None if ``timeout`` expires.

        Raises:
            OSError: If reading the terminal failed; no more events will come.
        """
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if isinstance(item, OSError):
            self._queue.put(item)
            raise item
        return item

    def poll_once(self) -> None:
        """Run one wait-for-input / maybe-tick cycle."""
        remaining = max(0.0, self.tick_rate - (self._clock() - self._last_tick))
        key = self._read_key(remaining)
        if key is not None and key.kind is KeyKind.PRESS:
            self._queue.put(key)

        if self._clock() - self._last_tick >= self.tick_rate:
            self._queue.put(Tick())
            self._last_tick = self._clock()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.poll_once()
            except OSError as e:
                logger.exception("Reading terminal input failed, stopping event source")
                self._queue.put(e)
                break


_ESCAPE_SEQUENCES = {
    "[A": Key.UP,
    "[B": Key.DOWN,
    "[C": Key.RIGHT,
    "[D": Key.LEFT,
    "OA": Key.UP,
    "OB": Key.DOWN,
    "OC": Key.RIGHT,
    "OD": Key.LEFT,
}

_MAX_SEQUENCE = 16

_CONTROL_KEYS = {
    "\r": Key.ENTER,
    "\n": Key.ENTER,
    "\t": Key.TAB,
    "\x7f": Key.BACKSPACE,
    "\x08": Key.BACKSPACE,
}


class TerminalInput:
    """Character-at-a-time keyboard input from a tty.

    Used as a context manager: entering saves the terminal attributes and
    switches to cbreak mode, leaving restores them whatever happened inside.
    """

    ESCAPE_TIMEOUT = 0.05

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdin
        self._fd = self.stream.fileno()
        self._saved: list | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def __enter__(self) -> "TerminalInput":
        self._saved = termios.tcgetattr(self._fd)
        tty.setcbreak(self._fd)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()

    def restore(self) -> None:
        if self._saved is not None:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
            self._saved = None

    def _read_char(self, timeout: float) -> str | None:
        ready, _, _ = select.select([self._fd], [], [], timeout)
        if not ready:
            return None
        while True:
            data = os.read(self._fd, 1)
            if not data:
                return None
            char = self._decoder.decode(data)
            if char:
                return char

    def read_key(self, timeout: float) -> KeyEvent | None:
        """Wait up to ``timeout`` seconds for one key press."""
        char = self._read_char(timeout)
        if char is None:
            return None
        if char == "\x1b":
            return self._read_escape()
        if char in _CONTROL_KEYS:
            return KeyEvent(_CONTROL_KEYS[char])
        if len(char) == 1 and ord(char) < 32:
            return KeyEvent(chr(ord(char) + 96), modifiers=frozenset({"ctrl"}))
        return KeyEvent(char)

    def _read_escape(self) -> KeyEvent | None:
        first = self._read_char(self.ESCAPE_TIMEOUT)
        if first is None:
            return KeyEvent(Key.ESC)
        if first not in ("[", "O"):
            return KeyEvent(first, modifiers=frozenset({"alt"}))

        sequence = first
        while len(sequence) <= _MAX_SEQUENCE:
            char = self._read_char(self.ESCAPE_TIMEOUT)
            if char is None:
                if sequence == "O":
                    return KeyEvent("O", modifiers=frozenset({"alt"}))
                break
            sequence += char
            # SS3 is one final char; CSI ends with a byte in @..~
            if first == "O" or "\x40" <= char <= "\x7e":
                break

        if sequence in _ESCAPE_SEQUENCES:
            return KeyEvent(_ESCAPE_SEQUENCES[sequence])
        logger.debug("Ignoring unknown escape sequence %r", sequence)
        return None
