"""Small helpers shared by the object model."""


def child_name(base: str, index: int) -> str:
    """Return the name of a numbered child, e.g. `dataset3`."""
    return f"{base}{index}"
