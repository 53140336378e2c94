from docvault.shared.utils.datetime import ensure_utc, utc_now
from docvault.shared.utils.generators import generate_cuid, generate_link_token

__all__ = [
    "generate_cuid",
    "generate_link_token",
    "utc_now",
    "ensure_utc",
]
