"""
KohakuIPAM: endpoint address management for multi-tenant overlay networks.

Addresses are carved out of a single datacenter CIDR by a fixed bit-field
layout (host / tenant / segment / endpoint-space / stride) and handed out
per (tenant, segment, host) triple. Released addresses are reclaimed before
new network ids are minted.
"""

__version__ = "0.1.0"
