from docvault.infrastructure.security.passwords import (MAX_PASSWORD_BYTES,
                                                        hash_password,
                                                        verify_password)

__all__ = ["hash_password", "verify_password", "MAX_PASSWORD_BYTES"]
