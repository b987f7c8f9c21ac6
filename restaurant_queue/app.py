from __future__ import annotations

# Single entrypoint.
#
#     python -m restaurant_queue.app service
#     python -m restaurant_queue.app join --queue-id Q --name Ana --phone +1555...
#     python -m restaurant_queue.app merchant call <entry_id>
#     python -m restaurant_queue.app generate --queue-id Q --rate 0.5
#
# Each subcommand hands the remaining arguments to the module that owns it.

import argparse
import sys

SUBCOMMANDS = {
    "service": ("service", "Start the queue tracker service"),
    "join": ("customer", "Join a queue as a customer"),
    "merchant": ("merchant", "Send a merchant action (call, seat, no-show, ...)"),
    "generate": ("generator", "Generate Poisson arrivals for a queue"),
}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Restaurant Queue Tracker (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)
    for name, (_module, help_text) in SUBCOMMANDS.items():
        # Help and all other flags belong to the target module's own parser.
        sub.add_parser(name, help=help_text, add_help=False)

    args, rest = parser.parse_known_args(argv)

    module_name, _help = SUBCOMMANDS[args.cmd]
    if module_name == "service":
        from .service import main as run
    elif module_name == "customer":
        from .customer import main as run
    elif module_name == "merchant":
        from .merchant import main as run
    else:
        from .generator import main as run

    _dispatch_to_module_main(run, f"{parser.prog} {args.cmd}", rest)


def _dispatch_to_module_main(module_main, prog: str, argv: list[str]) -> None:
    old_argv = sys.argv[:]
    try:
        sys.argv = [prog, *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()
