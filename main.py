"""STRES narrative engine: launcher.

    python main.py                     start the API server (uvicorn, reload)
    python main.py --replay chat.txt   feed a transcript through one engine

Transcript lines look like "user: I attack the goblin" or
"assistant: The goblin is defeated!". Lines without a role prefix are
treated as assistant narration; blank lines and "#" comments are skipped.
"""

import argparse
import asyncio
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def replay(path: Path, data_dir: Path | None) -> None:
    from stres.config import get_config
    from stres.engine import Engine
    from stres.models import NarrativeEvent
    from stres.sinks import sink_from_config

    config = get_config(data_dir)
    engine = Engine(config=config, sink=sink_from_config(config))
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        role, sep, text = line.partition(":")
        if sep and role.strip().lower() in ("user", "assistant"):
            event = NarrativeEvent(role=role.strip().lower(), text=text.strip())
        else:
            event = NarrativeEvent(role="assistant", text=line)

        outcome = engine.handle(event)
        errors = asyncio.run(engine.deliver(outcome))
        print(f"[{outcome.mode:9}] {event.role}: {event.text}")
        if outcome.mode_change:
            print(f"            combat {outcome.mode_change}" + (f" {outcome.summary}" if outcome.summary else ""))
        for task in outcome.started:
            print(f"            task started   {task.id} ({task.detail.subject})")
        for task in outcome.completed:
            print(f"            task completed {task.id} quality ×{task.quality}")
        for task in outcome.failed + outcome.cancelled:
            print(f"            task {task.status:9} {task.id}")
        for reward in outcome.rewards:
            print(f"            reward {reward.stat_deltas} {reward.skill_deltas}")
        for error in errors:
            print(f"            sink error: {error}")


def main():
    parser = argparse.ArgumentParser(description="STRES narrative engine launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Config directory (default: ./data)")
    parser.add_argument("--replay", type=Path, default=None,
                        help="Replay a transcript file through one engine and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.replay:
        replay(args.replay, args.data_dir or Path("data"))
        return

    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    proc: subprocess.Popen | None = None

    def shutdown(*_):
        print("\nShutting down...")
        if proc is not None:
            proc.terminate()
            proc.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting engine API on http://localhost:{PORT} ...")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "stres.app:app", "--reload", "--host", HOST, "--port", PORT],
        cwd=ROOT, env=env,
    )
    proc.wait()


if __name__ == "__main__":
    main()
