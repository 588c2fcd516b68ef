"""Example usage of TransitExplorer."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import swisstransit
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from swisstransit.explorer import TransitExplorer, describe_connection
from swisstransit.transport_client import TransportAPIError

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_connections(explorer: TransitExplorer, origin: str, destination: str):
    """
    Fetch and display connections between two stations.

    Args:
        origin: Departure station name (e.g., "Zürich HB")
        destination: Destination station name (e.g., "Bern")
    """
    print(f"\n{'='*70}")
    print(f"Connections: {origin} → {destination}")
    print(f"{'='*70}\n")

    result = explorer.find_connections(origin, destination, limit=3)
    if not result.connections:
        print("  No connections found")
        return

    for conn in result.connections:
        print(describe_connection(conn, origin, destination))
        if conn.reliability:
            print(f"\nReliability: {conn.reliability.score:.2f} ({conn.reliability.level} risk)")
            for reason in conn.reliability.reasons:
                print(f"  - {reason.label}")
        if conn.tags:
            print(f"Tags: {', '.join(conn.tags)}")
        print("-" * 70)


def print_disruptions(explorer: TransitExplorer, station: str):
    """Display the service status around a station."""
    report = explorer.check_disruptions(station)
    print(f"\n{report.station}: {report.status.replace('_', ' ').upper()}")
    print(report.summary)
    print(f"Routes checked: {', '.join(report.routes_checked)}")
    for route in report.delayed_routes:
        print(f"  • {route.line}: {route.route} (+{route.delay_minutes}min)")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: example.py FROM [TO]")
        sys.exit(1)

    explorer = TransitExplorer()
    try:
        if len(sys.argv) >= 3:
            print_connections(explorer, sys.argv[1], sys.argv[2])
        else:
            print_disruptions(explorer, sys.argv[1])
    except TransportAPIError as e:
        logger.error(f"Provider error: {e}")
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        explorer.cleanup()
