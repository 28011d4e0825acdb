"""
Enumeration types for KohakuIPAM.

This module defines the enumeration types shared by the allocator, the
configuration layer and the CLI.
"""

from enum import Enum


# =============================================================================
# Endpoint-Related Enums
# =============================================================================


class EndpointState(str, Enum):
    """
    Usability state of an endpoint record.

    State transitions:
        (new) -> IN_USE
        IN_USE -> RELEASED (release)
        RELEASED -> IN_USE (reclaim)

    Records are never deleted; RELEASED rows keep the network-id to address
    mapping so the same address is handed back on reclaim.
    """

    IN_USE = "in_use"
    RELEASED = "released"


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels for KohakuIPAM components.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
