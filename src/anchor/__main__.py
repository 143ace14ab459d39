"""Main entry point dispatcher for anchor commands."""

import sys


def main():
    """Point at the real entry points."""
    print("Use 'python -m anchor.agent' to run the agent")
    print("Use 'anchorctl' for the command-line interface")
    sys.exit(1)


if __name__ == "__main__":
    main()
