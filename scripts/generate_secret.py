"""
Generate the secrets linkhub needs in .env.

Usage:
    python scripts/generate_secret.py >> .env
"""

import secrets

from cryptography.fernet import Fernet


def main() -> None:
    # Fernet key: urlsafe base64 of 32 random bytes (256 bits)
    print(f"ENCRYPTION_SECRET={Fernet.generate_key().decode('utf-8')}")
    print(f"STATE_SECRET={secrets.token_urlsafe(32)}")
    print(f"SESSION_SECRET={secrets.token_urlsafe(32)}")


if __name__ == "__main__":
    main()
