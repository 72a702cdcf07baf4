"""
Session Module
==============

Role-tagged session lifecycle.

Components:
    - SessionRegistry: Owned table of live sessions, consumer capacity of one
    - ConnectionRoleManager: Opens sessions, wires streamer/aggregator, tears down on close
"""

from taxi_simulator.session.registry import SessionRegistry
from taxi_simulator.session.manager import ConnectionRoleManager

__all__ = [
    "SessionRegistry",
    "ConnectionRoleManager",
]
