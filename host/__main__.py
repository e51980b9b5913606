import argparse
import asyncio
import logging

from .server import HostServer
from .service import TableService
from .store import InMemoryStore

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Kansas City poker table host")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--tick-ms", type=int, default=500, help="Interval between timeout/blind/bot sweeps")
    parser.add_argument(
        "--next-hand-delay",
        type=int,
        default=3_000,
        help="Milliseconds a finished hand stays on screen before the next one starts",
    )
    parser.add_argument(
        "--manual-deal",
        action="store_true",
        help="Do not auto-deal cash tables; players send the deal intent themselves",
    )
    parser.add_argument(
        "--starting-balance",
        type=int,
        default=0,
        help="Credit every wallet listed with --player by this amount at startup",
    )
    parser.add_argument("--player", action="append", default=[], help="Pre-funded player uid (repeatable)")
    args = parser.parse_args()

    store = InMemoryStore()
    for uid in args.player:
        store.deposit(uid, args.starting_balance)

    server = HostServer(
        TableService(store),
        tick_ms=args.tick_ms,
        next_hand_delay_ms=args.next_hand_delay,
        auto_deal=not args.manual_deal,
    )
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()
