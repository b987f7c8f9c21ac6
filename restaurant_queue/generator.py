from __future__ import annotations

# Load generator.
#
# Simulates a stream of parties arriving at one queue and joining through the
# exact same MQTT request/response protocol as the `customer` CLI. Useful to
# watch positions re-densify under load while a merchant calls and seats.

import argparse
import random
import time

from .arrival import sample_exponential_interarrival, sample_party_size
from .customer import join_queue
from .mqtt_client import MqttClient


def run_generator(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    queue_id: str,
    rate_per_sec: float,
    name_prefix: str = "Guest",
    max_parties: int | None = None,
    seed: int | None = None,
) -> None:
    """Generate parties indefinitely (or for max_parties).

    Args:
        rate_per_sec: λ, parties per second.
        max_parties: if provided, stop after this many join attempts.
        seed: if provided, makes arrivals and party sizes deterministic.
    """
    rng = random.Random(seed) if seed is not None else None

    mqtt = MqttClient(client_id=f"generator-{int(time.time())}", host=mqtt_host, port=mqtt_port)
    mqtt.start()

    print(
        f"[generator] connected to MQTT {mqtt_host}:{mqtt_port}, namespace={namespace}, "
        f"queue={queue_id}, rate={rate_per_sec} parties/s"
    )

    i = 0
    try:
        while max_parties is None or i < max_parties:
            dt = sample_exponential_interarrival(rate_per_sec=rate_per_sec, rng=rng)
            time.sleep(dt)

            i += 1
            name = f"{name_prefix}{i}"
            party_size = sample_party_size(rng=rng)

            resp = join_queue(
                mqtt=mqtt,
                namespace=namespace,
                queue_id=queue_id,
                name=name,
                phone=f"+1555{i:07d}",
                party_size=party_size,
            )
            if resp.get("type") == "join_queue_ok":
                entry = resp["entry"]
                print(f"[generator] {name} party of {party_size} -> pos {entry['position']} (dt={dt:0.2f}s)")
            else:
                print(f"[generator] {name} -> {resp.get('code')} (dt={dt:0.2f}s)")

        print(f"[generator] reached max_parties={max_parties}, stopping")
    except KeyboardInterrupt:
        pass
    finally:
        mqtt.stop()


def main() -> None:
    from .config import add_mqtt_args, configure_logging

    parser = argparse.ArgumentParser(description="Party generator (Poisson arrivals over MQTT)")
    add_mqtt_args(parser)
    parser.add_argument("--queue-id", required=True)
    parser.add_argument("--rate", type=float, required=True, help="arrival rate λ in parties/second")
    parser.add_argument("--name-prefix", default="Guest")
    parser.add_argument("--max-parties", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()
    configure_logging(args.log_level)

    run_generator(
        mqtt_host=args.mqtt_host,
        mqtt_port=args.mqtt_port,
        namespace=args.namespace,
        queue_id=args.queue_id,
        rate_per_sec=args.rate,
        name_prefix=args.name_prefix,
        max_parties=args.max_parties,
        seed=args.seed,
    )


if __name__ == "__main__":
    main()
