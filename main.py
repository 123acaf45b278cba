"""
Main command-line interface for pydenonmarantz.

This script provides a CLI to interact with Denon and Marantz AV receivers.
"""

from pydenonmarantz.cli import main

if __name__ == "__main__":
    main()
