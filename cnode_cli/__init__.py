"""
cnode CLI - Command-line interface for a single capture-and-publish run.

Usage:
    cnode --config /etc/cnode/cnode.yaml
    cnode --node-id 1 --broker tcp://localhost:1883 --topic events/frame
"""

__version__ = "1.0.0"
