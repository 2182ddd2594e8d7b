# stream.py
"""
Full-duplex streaming channel.

Producers and observers share one websocket endpoint: any connection may send
{"type": "prediction", ...}; every accepted prediction is pushed to all live
connections, the sender included. Refusals go back to the sender only.
"""

import json
import threading

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import serve

from .errors import IngestError, MalformedMessage, StorageUnavailable


def _send_error(connection, message):
    try:
        connection.send(json.dumps({"error": message}))
    except ConnectionClosed:
        pass


def handle_message(service, connection, raw):
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        _send_error(connection, "Invalid message: not valid JSON")
        return

    if not isinstance(data, dict):
        _send_error(connection, "Invalid message: expected a JSON object")
        return

    print(f"📨 Received message: type={data.get('type')} "
          f"class={data.get('predicted_class')} confidence={data.get('confidence')}")
    if data.get("type") != "prediction":
        return

    try:
        service.submit_message(data).result()
    except MalformedMessage as e:
        _send_error(connection, f"Invalid message: {e}")
    except IngestError as e:
        _send_error(connection, str(e))
    except StorageUnavailable as e:
        print(f"❌ Storage unavailable: {e}")
        _send_error(connection, "Storage unavailable")
    except Exception as e:
        # the connection must outlive any single bad message
        print(f"❌ Failed to process message: {e!r}")
        _send_error(connection, "Failed to process message")


def make_handler(service):
    def handler(connection):
        observer = service.connect(connection)
        try:
            for raw in connection:
                handle_message(service, connection, raw)
        except ConnectionClosed as e:
            print(f"⚠️ Streaming connection error: {e}")
        finally:
            service.disconnect(observer)

    return handler


def start_stream_server(service, host, port):
    """Serve the streaming channel from a background thread. Returns the server."""
    server = serve(make_handler(service), host, port)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    print(f"🎧 Streaming channel on ws://{host}:{port}")
    return server
