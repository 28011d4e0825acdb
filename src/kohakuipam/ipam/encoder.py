"""
Address encoder.

Maps an endpoint's network id to its offset inside the (tenant, segment,
host) block. Every per-endpoint block of 2**stride addresses starts at
offset 3 because offsets 1 and 2 of the triple are the gateway and DHCP.

    network_id 0, stride 8  ->  3
    network_id 1, stride 8  ->  259
"""

from kohakuipam.ipam.exceptions import ConfigurationFault

GATEWAY_OFFSET = 1
DHCP_OFFSET = 2
FIRST_ENDPOINT_OFFSET = 3

MAX_STRIDE = 31
ADDRESS_WIDTH = 32


def effective_offset(network_id: int, stride: int, width: int = ADDRESS_WIDTH) -> int:
    """
    Compute the effective network id (offset) of an endpoint.

    Args:
        network_id: Ordinal of the endpoint within its triple (>= 0).
        stride: Low-order bits reserved per endpoint, 0..31.
        width: Number of bits the offset may occupy.

    Returns:
        3 + (2**stride) * network_id

    Raises:
        ConfigurationFault: If an argument is out of range or the offset
            does not fit in `width` bits.
    """
    if network_id < 0:
        raise ConfigurationFault(f"Invalid network_id: {network_id}. Must be >= 0.")
    if stride < 0 or stride > MAX_STRIDE:
        raise ConfigurationFault(
            f"Invalid stride: {stride}. Must be between 0 and {MAX_STRIDE}."
        )
    if width < 0 or width > ADDRESS_WIDTH:
        raise ConfigurationFault(
            f"Invalid offset width: {width}. Must be between 0 and {ADDRESS_WIDTH}."
        )

    offset = FIRST_ENDPOINT_OFFSET + (1 << stride) * network_id
    if offset >= 1 << width:
        raise ConfigurationFault(
            f"Offset {offset} for network_id {network_id} (stride {stride}) "
            f"overflows the {width}-bit endpoint field"
        )
    return offset


def network_id_from_offset(offset: int, stride: int) -> int | None:
    """
    Invert effective_offset().

    Returns None when `offset` is not the start of an endpoint block
    (e.g. the gateway or DHCP offset).
    """
    base = offset - FIRST_ENDPOINT_OFFSET
    if base < 0 or base % (1 << stride):
        return None
    return base >> stride
