"""
Shared CLI state.

The root callback stores the effective configuration here; commands build
the service from it lazily so `--help` never touches the database.
"""

from kohakuipam.config import IpamConfig, config

_service = None


def get_config() -> IpamConfig:
    return config


def get_service():
    """Get (and build on first use) the IPAM service for this invocation."""
    global _service
    if _service is None:
        from kohakuipam.ipam.service import create_service

        _service = create_service(config)
    return _service


def reset() -> None:
    """Forget the cached service (used between CLI invocations in tests)."""
    global _service
    _service = None
