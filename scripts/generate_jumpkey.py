#!/usr/bin/env python3
"""Script to (re)generate the key sshjump uses to log into the jump pod."""

import sys
import argparse
from pathlib import Path

from sshjump.config import Config
from sshjump.keys import generate_keypair


def main():
    """Main function."""
    parser = argparse.ArgumentParser(description="Generate the sshjump jump pod key")
    parser.add_argument(
        '--key-file',
        default=Config.JUMP_KEY_FILE,
        help=f'Output file for private key (default: {Config.JUMP_KEY_FILE})'
    )
    parser.add_argument(
        '--key-size',
        type=int,
        default=2048,
        help='RSA key size in bits (default: 2048)'
    )
    parser.add_argument(
        '--force',
        action='store_true',
        help='Overwrite existing key file'
    )

    args = parser.parse_args()

    if Path(args.key_file).exists() and not args.force:
        print(f"Key file {args.key_file} already exists. Use --force to overwrite.")
        sys.exit(1)

    try:
        pair = generate_keypair(args.key_file, args.key_size)
    except (OSError, ValueError) as e:
        print(f"Error generating jump key: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Private key saved to: {pair.identity}")
    print(f"Public key saved to: {pair.pubkey}")
    print("The new key is installed into the jump pod on the next session.")


if __name__ == '__main__':
    main()
