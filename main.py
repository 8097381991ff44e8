#!/usr/bin/env python3
"""
Main entry point for the AFS connector

Usage:
    python main.py --config configs/search.json --param afs:query=shoes

    # Or with the service from environment:
    export AFS_HOST="eu1-afs.antidot.net" AFS_SERVICE_ID=42
    python main.py --service acp --param afs:query=sho

    # Forward a caller identity:
    python main.py -c configs/search.yaml -p afs:query=shoes --ip 10.0.0.1 --user-agent "Mozilla/5.0"
"""

import argparse
import os
import sys
import json

# Add the package to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from afs_connector import AcpConnector, CallerContext, ConnectorConfig, SearchConnector, Service

CONNECTORS = {
    "search": SearchConnector,
    "acp": AcpConnector,
}


def get_config(args) -> ConnectorConfig:
    """
    Get connector config from args or environment.

    Looks for config in this order:
    1. --config file (JSON or YAML)
    2. Environment variables: AFS_HOST, AFS_SERVICE_ID, AFS_SERVICE_STATUS, AFS_SCHEME
    """
    if args.config:
        return ConnectorConfig.from_file(args.config)

    if "AFS_HOST" in os.environ and "AFS_SERVICE_ID" in os.environ:
        return ConnectorConfig(
            host=os.environ["AFS_HOST"],
            service=Service(
                id=os.environ["AFS_SERVICE_ID"],
                status=os.environ.get("AFS_SERVICE_STATUS", "stable"),
            ),
            scheme=os.environ.get("AFS_SCHEME", "http"),
        )

    print("Error: No config provided.")
    print("Either:")
    print("  1. Pass --config path/to/config.json")
    print("  2. Set AFS_HOST and AFS_SERVICE_ID environment variables")
    sys.exit(1)


def parse_parameters(items) -> dict:
    """Turn key=value items into a parameter set, repeated keys become lists."""
    parameters = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"Expected key=value, got '{item}'")
        key, value = item.split("=", 1)
        if key in parameters:
            if not isinstance(parameters[key], list):
                parameters[key] = [parameters[key]]
            parameters[key].append(value)
        else:
            parameters[key] = value
    return parameters


def main():
    parser = argparse.ArgumentParser(
        description="AFS connector - Query an AFS web service"
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to connector config file (JSON or YAML)"
    )
    parser.add_argument(
        "--service", "-s",
        choices=sorted(CONNECTORS),
        default="search",
        help="Web service to query"
    )
    parser.add_argument(
        "--param", "-p",
        action="append",
        help="Query parameter as key=value (repeatable)"
    )
    parser.add_argument("--ip", help="Caller IP to forward")
    parser.add_argument("--user-agent", help="Caller user agent to forward")
    parser.add_argument("--forwarded-for", help="Existing X-Forwarded-For chain")
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed output including request headers"
    )

    args = parser.parse_args()

    # Load config
    try:
        config = get_config(args)
    except FileNotFoundError:
        print(f"Error: Config file not found: {args.config}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in config file: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error loading config: {e}")
        sys.exit(1)

    try:
        parameters = parse_parameters(args.param)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    context = CallerContext(
        ip=args.ip,
        user_agent=args.user_agent,
        forwarded_for=args.forwarded_for,
    )

    connector = CONNECTORS[args.service](config, context=context, verbose=args.verbose)
    connector.configure_decoding(as_map=True)
    reply = connector.send(parameters)

    print(f"URL: {connector.get_generated_url()}")
    print("-" * 40)
    print(json.dumps(reply, indent=2))

    if isinstance(reply, dict) and "error" in reply.get("header", {}):
        sys.exit(1)


if __name__ == "__main__":
    main()
