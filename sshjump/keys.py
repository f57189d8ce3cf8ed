"""Keys used to authenticate against the jump pod."""

import logging
import os

import paramiko

from .models import ConnectionOptions, KeyPair

logger = logging.getLogger(__name__)


def generate_keypair(key_file: str, key_size: int = 2048,
                     comment: str = "sshjump") -> KeyPair:
    """Generate a passphrase-less RSA keypair at key_file and key_file.pub."""
    logger.info(f"Generating RSA jump key ({key_size} bits)...")

    directory = os.path.dirname(key_file)
    if directory:
        os.makedirs(directory, exist_ok=True)

    key = paramiko.RSAKey.generate(key_size)
    key.write_private_key_file(key_file)

    public_key_file = f"{key_file}.pub"
    with open(public_key_file, 'w') as f:
        f.write(f"{key.get_name()} {key.get_base64()} {comment}\n")

    os.chmod(key_file, 0o600)
    os.chmod(public_key_file, 0o644)

    logger.info(f"Jump key saved to: {key_file}")
    return KeyPair(identity=key_file, pubkey=public_key_file)


def ensure_jump_keypair(key_file: str) -> KeyPair:
    """Return the cached jump keypair, generating it on first use."""
    pair = KeyPair(identity=key_file, pubkey=f"{key_file}.pub")
    if os.path.isfile(pair.identity) and os.path.isfile(pair.pubkey):
        return pair
    return generate_keypair(key_file)


def resolve_jump_keypair(options: ConnectionOptions, cached_key_file: str) -> KeyPair:
    """
    Pick the keypair used to log into the jump pod itself.

    The caller's identity/pubkey pair is preferred. Without a public key
    file, the cached auto-generated pair is used instead.
    """
    if options.identity and options.pubkey and os.path.isfile(options.pubkey):
        return KeyPair(identity=options.identity, pubkey=options.pubkey)

    logger.info("No public key given, using the generated jump key")
    return ensure_jump_keypair(cached_key_file)
