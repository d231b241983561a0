"""Stream one business idea from a running relay and print it.

Usage:
    python scripts/stream_idea.py --token "$SESSION_TOKEN"
    python scripts/stream_idea.py --html > idea.html

Requires BASE_URL (default http://localhost:8000). Ctrl-C aborts the stream.
"""
import argparse
import asyncio
import os
import signal
import sys

from ideagen.features.client.reassembler import ClientState, StreamReassembler
from ideagen.features.client.transport import EventStreamClient

BASE_URL = os.getenv("BASE_URL", "http://localhost:8000").rstrip("/")


def _printer():
    printed = {"n": 0}

    def on_render(r: StreamReassembler) -> None:
        sys.stdout.write(r.buffer[printed["n"]:])
        sys.stdout.flush()
        printed["n"] = len(r.buffer)

    return on_render


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Stream a generated business idea")
    parser.add_argument("--url", default=f"{BASE_URL}/api/generate")
    parser.add_argument("--token", default=os.getenv("IDEAGEN_TOKEN"))
    parser.add_argument("--html", action="store_true", help="print the rendered HTML once the stream ends")
    args = parser.parse_args(argv)

    reassembler = StreamReassembler(on_render=None if args.html else _printer())
    client = EventStreamClient(args.url, token=args.token, reassembler=reassembler)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, client.abort)
    except NotImplementedError:
        pass  # Windows

    result = await client.run()

    if result.state is ClientState.FAILED:
        print(f"\n{result.error_message} ({result.error})", file=sys.stderr)
        return 1
    if args.html:
        print(result.html)
    else:
        print()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
