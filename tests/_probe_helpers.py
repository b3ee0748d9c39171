"""Fake port probes for allocator tests."""


def occupied(*ports: int):
    """Build a probe that reports exactly ``ports`` as occupied."""
    taken = set(ports)

    def probe(port: int) -> bool:
        return port in taken

    return probe
