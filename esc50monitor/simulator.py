# simulator.py
"""
Synthetic ESC-50 producer: fabricates realistic predictions and sends them
over the streaming channel.
"""

import argparse
import json
import random
import threading
import time

from websockets.exceptions import ConnectionClosed, InvalidHandshake
from websockets.sync.client import connect

from . import config
from .taxonomy import ALL_LABELS, ESC50_DATA, category_of

HARD_LABELS = {"insects", "crickets", "breathing", "wind", "water_drops"}
EASY_LABELS = {"dog", "cat", "rooster", "car_horn", "siren", "train"}

MODEL_VERSION = "ESC-CNN-v2.1"


def generate_sample(rng=random, label=None):
    """
    Returns (audio_file, predicted_class, confidence, processing_time, metadata).
    Hard labels get damped confidence, easy ones a raised floor.
    """
    predicted_class = label or rng.choice(ALL_LABELS)

    confidence = rng.uniform(0.65, 0.95)
    if predicted_class in HARD_LABELS:
        confidence *= rng.uniform(0.8, 0.95)
    if predicted_class in EASY_LABELS:
        confidence = max(confidence, rng.uniform(0.85, 0.98))
    confidence = min(confidence, 0.99)

    fold = rng.randint(1, 5)
    class_id = ALL_LABELS.index(predicted_class)
    sample_id = rng.randint(1, 40)
    audio_file = f"{fold}-{sample_id:06d}-{class_id}-{predicted_class}.wav"

    metadata = {
        "fold": fold,
        "class_id": class_id,
        "original_sample_id": sample_id,
        "file_size": rng.randint(400000, 499999),
        "timestamp": time.time(),
        "model_version": MODEL_VERSION,
        "preprocessing": "mel_spectrogram",
    }
    processing_time = rng.uniform(0.8, 3.5)
    return audio_file, predicted_class, confidence, processing_time, metadata


def build_message(audio_file, predicted_class, confidence, processing_time=None, metadata=None):
    """Wire message for one prediction; caller metadata overrides the defaults."""
    return {
        "type": "prediction",
        "audio_file": audio_file,
        "predicted_class": predicted_class,
        "confidence": confidence,
        "processing_time": processing_time,
        "metadata": {
            "dataset": "ESC-50",
            "category": category_of(predicted_class),
            "sample_rate": 44100,
            "duration": 5.0,
            **(metadata or {}),
        },
    }


class PredictionClient:
    """
    Sends predictions over an open streaming connection.
    The server broadcasts every accepted event back to us, so a background
    receiver keeps reading; otherwise keepalive pings go unanswered.
    """

    def __init__(self, websocket=None):
        self.websocket = websocket
        self.prediction_count = 0
        self.broadcasts_received = 0
        self.errors = []
        self._receiver = None

    def listen(self):
        self._receiver = threading.Thread(target=self._receive, daemon=True)
        self._receiver.start()

    def _receive(self):
        try:
            for raw in self.websocket:
                try:
                    message = json.loads(raw)
                except ValueError:
                    continue
                if isinstance(message, dict) and "error" in message:
                    self.errors.append(message["error"])
                    print(f"❌ Server error: {message['error']}")
                else:
                    self.broadcasts_received += 1
        except ConnectionClosed as e:
            print(f"⚠️ Connection closed: {e}")

    def send_prediction(self, audio_file, predicted_class, confidence,
                        processing_time=None, metadata=None):
        if self.websocket is None:
            print("❌ No active connection!")
            return False

        message = build_message(audio_file, predicted_class, confidence, processing_time, metadata)
        try:
            self.websocket.send(json.dumps(message))
        except ConnectionClosed as e:
            print(f"❌ Send failed: {e}")
            return False
        self.prediction_count += 1
        print(f"📤 [{self.prediction_count:03d}] {predicted_class} ({confidence:.3f}) "
              f"- {message['metadata']['category']}")
        return True


def simulate(client, duration_minutes, interval):
    print(f"🚀 Starting ESC-50 simulation ({duration_minutes} min, interval {interval}s)")
    end_time = time.time() + duration_minutes * 60
    while time.time() < end_time:
        client.send_prediction(*generate_sample())
        time.sleep(interval)
    print(f"✅ Simulation finished, sent {client.prediction_count} predictions")


def send_category_samples(client, pause=0.5):
    for category, labels in ESC50_DATA.items():
        print(f"📁 Category: {category}")
        for label in labels:
            client.send_prediction(*generate_sample(label=label))
            time.sleep(pause)


def send_random_batch(client, count=20):
    print(f"📤 Sending {count} random ESC-50 predictions...")
    for _ in range(count):
        client.send_prediction(*generate_sample())
        time.sleep(random.uniform(0.5, 2.0))


def show_info():
    print("=" * 60)
    print("ESC-50: Dataset for Environmental Sound Classification")
    print("=" * 60)
    print(f"Labels: {len(ALL_LABELS)}")
    print(f"Categories: {len(ESC50_DATA)}")
    for category, labels in ESC50_DATA.items():
        print(f"\n📁 {category} ({len(labels)} labels):")
        for i, label in enumerate(labels, start=1):
            print(f"   {i:2d}. {label}")


def build_parser():
    parser = argparse.ArgumentParser(description="ESC-50 prediction simulator")
    parser.add_argument("--server-url", default=config.SERVER_URL)
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="continuous simulation")
    sim.add_argument("--minutes", type=float, default=config.SIMULATION_MINUTES)
    sim.add_argument("--interval", type=float, default=config.PUBLISH_INTERVAL)

    sub.add_parser("categories", help="one sample for every label, category by category")

    batch = sub.add_parser("batch", help="random batch")
    batch.add_argument("--count", type=int, default=20)

    sub.add_parser("info", help="show the ESC-50 taxonomy")
    return parser


def run_command(client, args):
    try:
        if args.command == "simulate":
            simulate(client, args.minutes, args.interval)
        elif args.command == "categories":
            send_category_samples(client)
        elif args.command == "batch":
            send_random_batch(client, args.count)
    except KeyboardInterrupt:
        print("🛑 Simulator stopped by user")


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.command == "info":
        show_info()
        return 0

    try:
        with connect(args.server_url) as websocket:
            print(f"✅ Connected to server: {args.server_url}")
            client = PredictionClient(websocket)
            client.listen()
            run_command(client, args)
    except (OSError, TimeoutError, InvalidHandshake) as e:
        print(f"❌ Connection to {args.server_url} failed: {e}")
        print("🛑 Exiting because the server could not be reached")
        return 1
    print("👋 Disconnected")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
