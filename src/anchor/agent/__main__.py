"""Agent entry point for running the anchor agent."""

import asyncio
import sys

from anchor.agent.main import run_agent
from anchor.errors import AnchorError


def main():
    """Run the anchor agent."""
    try:
        asyncio.run(run_agent())
    except KeyboardInterrupt:
        print("\nAgent shutdown requested")
        sys.exit(0)
    except AnchorError as e:
        print(f"Agent error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
