"""Library version, reported to AFS through the afs:log parameter."""

__version__ = "1.0.0"


def get_api_version() -> str:
    """Version tag sent with every query so AFS can tell clients apart."""
    return f"python-{__version__}"
