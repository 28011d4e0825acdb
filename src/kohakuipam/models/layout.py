"""
Datacenter address-space layout.

Describes how a single IPv4 CIDR is split into hierarchical bit fields
and computes per-triple prefixes and endpoint addresses from it.

Format: BASE_IP/PREFIX/HOST_BITS/TENANT_BITS/SEGMENT_BITS/ENDPOINT_SPACE_BITS/STRIDE
- PREFIX + all five widths must not exceed 32
- Fields are packed from the low end of the address:

    | prefix | slack (0) | host | tenant | segment | endpoint space | stride |

- ENDPOINT_SPACE_BITS: Bits for the network id of an endpoint in its triple
- STRIDE: Bits reserved per endpoint (spacing between endpoint addresses)

Examples:
- 10.0.0.0/8/4/4/4/4/8 (default):
  - Host bits 4 (16 hosts), tenant bits 4, segment bits 4
  - Endpoint field 12 bits, stride 8: 16 endpoints per triple
  - (tenant=1, segment=1, host=1), network_id 0 -> 10.17.16.3
  - (tenant=1, segment=1, host=1), network_id 1 -> 10.17.17.3

- 10.0.0.0/8/8/4/4/0/8:
  - Endpoint field 8 bits: a single endpoint (network_id 0) per triple
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import NamedTuple

from kohakuipam.ipam.encoder import (
    ADDRESS_WIDTH,
    DHCP_OFFSET,
    FIRST_ENDPOINT_OFFSET,
    GATEWAY_OFFSET,
    MAX_STRIDE,
    effective_offset,
    network_id_from_offset,
)
from kohakuipam.ipam.exceptions import ConfigurationFault, InvalidArgument


class EndpointLocation(NamedTuple):
    """Placement decoded from an endpoint address."""

    tenant_id: int
    segment_id: int
    host_id: int
    network_id: int


def _mask(bits: int) -> int:
    return (1 << bits) - 1


def _to_int(address: str | int | ipaddress.IPv4Address) -> int:
    try:
        return int(ipaddress.IPv4Address(address))
    except (ipaddress.AddressValueError, ValueError) as e:
        raise InvalidArgument(f"Invalid IPv4 address '{address}': {e}") from e


@dataclass(frozen=True)
class DatacenterLayout:
    """
    Bit-field layout of the datacenter CIDR.

    Attributes:
        base_network: Datacenter CIDR (e.g., 10.0.0.0/8)
        host_bits: Bits for host identification
        tenant_bits: Bits for tenant identification
        segment_bits: Bits for segment identification
        endpoint_space_bits: Bits for endpoint network ids within a triple
        stride: Low-order bits reserved per endpoint
    """

    base_network: ipaddress.IPv4Network
    host_bits: int
    tenant_bits: int
    segment_bits: int
    endpoint_space_bits: int
    stride: int

    DEFAULT_LAYOUT = "10.0.0.0/8/4/4/4/4/8"

    def __post_init__(self):
        widths = {
            "host_bits": self.host_bits,
            "tenant_bits": self.tenant_bits,
            "segment_bits": self.segment_bits,
            "endpoint_space_bits": self.endpoint_space_bits,
            "stride": self.stride,
        }
        for name, value in widths.items():
            if value < 0:
                raise ConfigurationFault(f"Invalid {name}: {value}. Must be >= 0.")

        if self.stride > MAX_STRIDE:
            raise ConfigurationFault(
                f"Invalid stride: {self.stride}. Must be between 0 and {MAX_STRIDE}."
            )

        if self.prefix < 1 or self.prefix > 30:
            raise ConfigurationFault(
                f"Invalid prefix: {self.prefix}. Must be between 1 and 30."
            )

        total = self.prefix + sum(widths.values())
        if total > ADDRESS_WIDTH:
            raise ConfigurationFault(
                f"Invalid layout: prefix({self.prefix}) + host_bits({self.host_bits}) + "
                f"tenant_bits({self.tenant_bits}) + segment_bits({self.segment_bits}) + "
                f"endpoint_space_bits({self.endpoint_space_bits}) + "
                f"stride({self.stride}) = {total}, must not exceed {ADDRESS_WIDTH}."
            )

        if FIRST_ENDPOINT_OFFSET >= 1 << self.endpoint_bits:
            raise ConfigurationFault(
                f"Invalid layout: endpoint field of {self.endpoint_bits} bits "
                f"cannot hold the first endpoint offset {FIRST_ENDPOINT_OFFSET}."
            )

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_widths(
        cls,
        cidr: str,
        host_bits: int,
        tenant_bits: int,
        segment_bits: int,
        endpoint_space_bits: int,
        stride: int,
    ) -> DatacenterLayout:
        """Build a layout from a CIDR string and the five field widths."""
        try:
            base_network = ipaddress.IPv4Network(cidr, strict=True)
        except ValueError as e:
            # Also covers a base address with bits set below the prefix
            raise ConfigurationFault(f"Invalid datacenter CIDR '{cidr}': {e}") from e

        return cls(
            base_network=base_network,
            host_bits=host_bits,
            tenant_bits=tenant_bits,
            segment_bits=segment_bits,
            endpoint_space_bits=endpoint_space_bits,
            stride=stride,
        )

    @classmethod
    def parse(cls, layout_str: str) -> DatacenterLayout:
        """
        Parse a layout configuration string.

        Args:
            layout_str: Format "BASE/PREFIX/HOST/TENANT/SEGMENT/ENDPOINT_SPACE/STRIDE"
                        e.g., "10.0.0.0/8/4/4/4/4/8"

        Raises:
            ConfigurationFault: If the format is invalid or widths do not fit
        """
        parts = layout_str.strip().split("/")

        if len(parts) != 7:
            raise ConfigurationFault(
                f"Invalid layout format: '{layout_str}'. "
                f"Expected format: BASE_IP/PREFIX/HOST_BITS/TENANT_BITS/"
                f"SEGMENT_BITS/ENDPOINT_SPACE_BITS/STRIDE "
                f"(e.g., '{cls.DEFAULT_LAYOUT}')"
            )

        try:
            numbers = [int(p) for p in parts[1:]]
        except ValueError as e:
            raise ConfigurationFault(
                f"Invalid layout format: '{layout_str}'. "
                f"Prefix and widths must be integers. Error: {e}"
            ) from e

        prefix, host_bits, tenant_bits, segment_bits, endpoint_space_bits, stride = (
            numbers
        )
        return cls.from_widths(
            f"{parts[0]}/{prefix}",
            host_bits=host_bits,
            tenant_bits=tenant_bits,
            segment_bits=segment_bits,
            endpoint_space_bits=endpoint_space_bits,
            stride=stride,
        )

    @classmethod
    def default(cls) -> DatacenterLayout:
        """Get the default layout (10.0.0.0/8/4/4/4/4/8)."""
        return cls.parse(cls.DEFAULT_LAYOUT)

    # =========================================================================
    # Derived Widths
    # =========================================================================

    @property
    def prefix(self) -> int:
        """Prefix length of the datacenter CIDR."""
        return self.base_network.prefixlen

    @property
    def endpoint_bits(self) -> int:
        """Width of the per-triple offset field (endpoint space + stride)."""
        return self.endpoint_space_bits + self.stride

    @property
    def segment_shift(self) -> int:
        return self.endpoint_bits

    @property
    def tenant_shift(self) -> int:
        return self.segment_shift + self.segment_bits

    @property
    def host_shift(self) -> int:
        return self.tenant_shift + self.tenant_bits

    @property
    def slack_bits(self) -> int:
        """Unused bits between the CIDR prefix and the host field."""
        return ADDRESS_WIDTH - self.prefix - self.host_shift - self.host_bits

    @property
    def max_network_id(self) -> int:
        """Largest network id whose offset still fits the endpoint field."""
        return ((1 << self.endpoint_bits) - 1 - FIRST_ENDPOINT_OFFSET) >> self.stride

    @property
    def endpoints_per_triple(self) -> int:
        return self.max_network_id + 1

    # =========================================================================
    # Encoding
    # =========================================================================

    def triple_prefix(self, tenant_id: int, segment_id: int, host_id: int) -> int:
        """
        Get the address-space base of a (tenant, segment, host) triple.

        Returns:
            Integer IPv4 address with the prefix, host, tenant and segment
            fields set and a zero endpoint field.

        Raises:
            InvalidArgument: If an id does not fit its field.
        """
        self._validate_field("host_id", host_id, self.host_bits)
        self._validate_field("tenant_id", tenant_id, self.tenant_bits)
        self._validate_field("segment_id", segment_id, self.segment_bits)

        return (
            int(self.base_network.network_address)
            | (host_id << self.host_shift)
            | (tenant_id << self.tenant_shift)
            | (segment_id << self.segment_shift)
        )

    def endpoint_offset(self, network_id: int) -> int:
        """Effective network id, bounded by the endpoint field width."""
        return effective_offset(network_id, self.stride, width=self.endpoint_bits)

    def endpoint_address(
        self, tenant_id: int, segment_id: int, host_id: int, network_id: int
    ) -> str:
        """Get the address of an endpoint (e.g., "10.17.16.3")."""
        address = self.triple_prefix(tenant_id, segment_id, host_id) | (
            self.endpoint_offset(network_id)
        )
        return str(ipaddress.IPv4Address(address))

    def gateway_address(self, tenant_id: int, segment_id: int, host_id: int) -> str:
        """Get the gateway IP of a triple (offset 1)."""
        base = self.triple_prefix(tenant_id, segment_id, host_id)
        return str(ipaddress.IPv4Address(base | GATEWAY_OFFSET))

    def dhcp_address(self, tenant_id: int, segment_id: int, host_id: int) -> str:
        """Get the DHCP IP of a triple (offset 2)."""
        base = self.triple_prefix(tenant_id, segment_id, host_id)
        return str(ipaddress.IPv4Address(base | DHCP_OFFSET))

    def decompose(self, address: str | int | ipaddress.IPv4Address) -> EndpointLocation:
        """
        Recover the placement an endpoint address was allocated for.

        Raises:
            InvalidArgument: If the address is outside the CIDR, has slack
                bits set, or is not an endpoint offset.
        """
        value = _to_int(address)
        ip = ipaddress.IPv4Address(value)

        if ip not in self.base_network:
            raise InvalidArgument(f"Address {ip} is outside {self.base_network}")

        if (value >> (self.host_shift + self.host_bits)) & _mask(self.slack_bits):
            raise InvalidArgument(f"Address {ip} has bits set outside the layout")

        offset = value & _mask(self.endpoint_bits)
        network_id = network_id_from_offset(offset, self.stride)
        if network_id is None:
            raise InvalidArgument(
                f"Address {ip} is not an endpoint address (offset {offset})"
            )

        return EndpointLocation(
            tenant_id=(value >> self.tenant_shift) & _mask(self.tenant_bits),
            segment_id=(value >> self.segment_shift) & _mask(self.segment_bits),
            host_id=(value >> self.host_shift) & _mask(self.host_bits),
            network_id=network_id,
        )

    def _validate_field(self, name: str, value: int, bits: int) -> None:
        """Validate an id fits in its field."""
        if value < 0 or value > _mask(bits):
            raise InvalidArgument(
                f"Invalid {name}: {value}. Must be between 0 and {_mask(bits)}."
            )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict:
        """Convert layout to dictionary for display."""
        return {
            "cidr": str(self.base_network),
            "prefix": self.prefix,
            "host_bits": self.host_bits,
            "tenant_bits": self.tenant_bits,
            "segment_bits": self.segment_bits,
            "endpoint_space_bits": self.endpoint_space_bits,
            "stride": self.stride,
            "slack_bits": self.slack_bits,
            "endpoints_per_triple": self.endpoints_per_triple,
        }

    def __str__(self) -> str:
        """Return the layout in format string."""
        base_ip = str(self.base_network.network_address)
        return (
            f"{base_ip}/{self.prefix}/{self.host_bits}/{self.tenant_bits}/"
            f"{self.segment_bits}/{self.endpoint_space_bits}/{self.stride}"
        )
