"""ID generation utilities."""

import secrets
import string


def generate_nanoid(length: int = 21) -> str:
    """
    Generate a nanoid-style ID.

    Args:
        length: Length of the ID to generate

    Returns:
        A string matching /^[A-Za-z0-9_-]{length}$/
    """
    alphabet = string.ascii_letters + string.digits + "_-"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_connection_id(container_id: str) -> str:
    """Generate a WebSocket connection ID scoped to a container."""
    return f"ws-{container_id[:12]}-{generate_nanoid(12)}"


def generate_request_id() -> str:
    """Generate a request ID for error tracking."""
    return generate_nanoid(21)
