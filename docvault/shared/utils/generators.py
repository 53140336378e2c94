import secrets

from cuid2 import cuid_wrapper

# Create a CUID generator with custom settings
cuid_generator = cuid_wrapper()


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier"""
    return cuid_generator()


def generate_link_token(nbytes: int = 32) -> str:
    """Generate an unguessable URL-safe token for public links"""
    return secrets.token_urlsafe(nbytes)
