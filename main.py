"""
CLI entry point for tiercache.

Usage:
    python main.py health [--preset production]
    python main.py simulate --requests 5000 --keys 500 --capacity 100
"""

import argparse
import json
import random
import sys

from tiercache.cache import CacheConfig, CachePolicy, TieredCache
from tiercache.config import (
    cache_config_for_preset,
    cache_config_from_settings,
    configure_logging,
)
from tiercache.exceptions import ConfigurationError


def cmd_health(args):
    """Build a cache from settings (or a preset) and print its health report."""
    try:
        if args.preset:
            config = cache_config_for_preset(args.preset)
        else:
            config = cache_config_from_settings()
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    with TieredCache(config) as cache:
        report = cache.health_check()
    print(json.dumps(report.model_dump(mode="json"), indent=2))


def cmd_simulate(args):
    """Replay a skewed synthetic workload against every eviction policy."""
    print(
        f"Simulating {args.requests} requests over {args.keys} keys "
        f"(capacity={args.capacity}, seed={args.seed})\n"
    )
    for policy in CachePolicy:
        rng = random.Random(args.seed)
        config = CacheConfig(max_entries=args.capacity, policy=policy)
        with TieredCache(config) as cache:
            for _ in range(args.requests):
                # Pareto draw gives a long-tailed key popularity
                key = f"key:{int(rng.paretovariate(1.2)) % args.keys}"
                if cache.get(key) is None:
                    cache.set(key, {"key": key})
            stats = cache.get_statistics()
        print(
            f"  {policy.value.upper():<5} hit_rate={stats.hit_rate:.1%} "
            f"evictions={stats.evictions} size={stats.size} "
            f"memory={stats.approx_memory_bytes}B"
        )


def main():
    parser = argparse.ArgumentParser(
        description="tiercache - tiered result cache"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # health
    p_health = subparsers.add_parser("health", help="Print cache health report")
    p_health.add_argument(
        "--preset",
        choices=["development", "staging", "production"],
        default=None,
        help="Use a named preset instead of config/config.yaml",
    )

    # simulate
    p_sim = subparsers.add_parser("simulate", help="Compare eviction policies")
    p_sim.add_argument("--requests", type=int, default=5000)
    p_sim.add_argument("--keys", type=int, default=500)
    p_sim.add_argument("--capacity", type=int, default=100)
    p_sim.add_argument("--seed", type=int, default=42)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging()

    commands = {
        "health": cmd_health,
        "simulate": cmd_simulate,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
