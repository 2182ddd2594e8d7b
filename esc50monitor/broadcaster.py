# broadcaster.py
import json
import queue
import threading

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

_STOP = object()


class Observer:
    """
    One live streaming connection plus its outbound queue.
    A dedicated sender thread drains the queue so a slow socket
    never holds up the fan-out.
    """

    def __init__(self, connection, maxsize=100):
        self.connection = connection
        self.queue = queue.Queue(maxsize=maxsize)
        self._thread = None

    @property
    def is_open(self):
        return getattr(self.connection, "state", None) is State.OPEN

    def push(self, msg: str):
        """Enqueue without blocking. Returns False if the message was dropped."""
        try:
            self.queue.put_nowait(msg)
            return True
        except queue.Full:
            return False

    def start(self):
        self._thread = threading.Thread(target=self._pump, daemon=True)
        self._thread.start()

    def stop(self):
        # the sentinel must get through even if the queue is full
        while True:
            try:
                self.queue.put_nowait(_STOP)
                return
            except queue.Full:
                try:
                    self.queue.get_nowait()
                except queue.Empty:
                    pass

    def _pump(self):
        while True:
            msg = self.queue.get()
            if msg is _STOP:
                return
            try:
                self.connection.send(msg)
            except ConnectionClosed:
                # removal happens on the connection's own close signal
                return
            except Exception as e:
                print(f"❌ Send to observer failed: {e}")
                return


class ConnectionRegistry:
    """The set of live observers. Mutated only on connect / disconnect."""

    def __init__(self):
        self._observers = set()
        self.lock = threading.Lock()

    def add(self, observer):
        with self.lock:
            self._observers.add(observer)

    def remove(self, observer):
        with self.lock:
            self._observers.discard(observer)

    def live_connections(self):
        """Snapshot of observers whose connection is open right now."""
        with self.lock:
            snapshot = list(self._observers)
        return {observer for observer in snapshot if observer.is_open}

    def __len__(self):
        with self.lock:
            return len(self._observers)


def broadcast(registry, message):
    """
    Best-effort push of `message` (a dict) to every live observer.
    Never raises; returns how many observers accepted it.
    """
    msg = json.dumps(message)
    delivered = 0
    for observer in registry.live_connections():
        try:
            if observer.push(msg):
                delivered += 1
            else:
                print("⚠️ Observer queue full, dropping message for it")
        except Exception as e:
            print(f"❌ Broadcast to observer failed: {e}")
    if delivered > 1:
        print(f"📣 Broadcast sent to {delivered} clients")
    return delivered
