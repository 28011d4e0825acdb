"""
Configuration for KohakuIPAM.

This module defines the configuration dataclass for the allocator,
providing a centralized place for all configurable parameters.

Values can be overridden through KOHAKUIPAM_* environment variables
(see IpamConfig.from_env) or by updating the global config instance
before the service is built.

Usage:
    from kohakuipam.config import config

    config.DB_FILE = "/tmp/ipam.db"
    layout = config.get_layout()
"""

import os
from dataclasses import dataclass, field, fields

from kohakuipam.models.enums import LogLevel
from kohakuipam.models.layout import DatacenterLayout

ENV_PREFIX = "KOHAKUIPAM_"


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class IpamConfig:
    """
    Allocator configuration.

    Attributes:
        DB_FILE: Path to the SQLite database file.
        LOG_LEVEL: Logging verbosity level.
        LOG_FILE: Optional log file path.
        LAYOUT: Datacenter layout, BASE/PREFIX/HOST/TENANT/SEGMENT/ENDPOINT_SPACE/STRIDE.
    """

    # -------------------------------------------------------------------------
    # Path Configuration
    # -------------------------------------------------------------------------

    DB_FILE: str = "/var/lib/kohakuipam/kohakuipam.db"

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_LEVEL: LogLevel = LogLevel.INFO
    LOG_FILE: str = ""

    # -------------------------------------------------------------------------
    # Address Layout (published by the topology service)
    # -------------------------------------------------------------------------

    # Default: 10.0.0.0/8, 16 hosts x 16 tenants x 16 segments,
    # 16 endpoints per triple, 256 addresses per endpoint
    LAYOUT: str = DatacenterLayout.DEFAULT_LAYOUT

    _layout: DatacenterLayout | None = field(default=None, repr=False, compare=False)
    _layout_source: str = field(default="", repr=False, compare=False)

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "IpamConfig":
        """Build a config with KOHAKUIPAM_* environment overrides applied."""
        environ = os.environ if environ is None else environ
        cfg = cls()
        for f in fields(cls):
            if f.name.startswith("_"):
                continue
            value = environ.get(ENV_PREFIX + f.name)
            if value is None:
                continue
            if f.name == "LOG_LEVEL":
                setattr(cfg, f.name, LogLevel(value.lower()))
            else:
                setattr(cfg, f.name, value)
        return cfg

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def get_layout(self) -> DatacenterLayout:
        """
        Parse and validate the layout once.

        Raises:
            ConfigurationFault: If the layout string or widths are invalid.
        """
        if self._layout is None or self._layout_source != self.LAYOUT:
            self._layout = DatacenterLayout.parse(self.LAYOUT)
            self._layout_source = self.LAYOUT
        return self._layout


# =============================================================================
# Global Instance
# =============================================================================

# Global config instance - modify before building the service
config = IpamConfig.from_env()
