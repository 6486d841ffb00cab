"""RSA key pair generation for Snowflake key-pair authentication.

Writes the private key as PKCS#8 PEM and the public key as
SubjectPublicKeyInfo PEM, both base64 wrapped at 64 characters.

Usage:
  python -m scripts.user_role_staging.keygen
  python -m scripts.user_role_staging.keygen --output-dir keys --user SVC_TRELICA
  SNOWFLAKE_KEY_PASSPHRASE=... python -m scripts.user_role_staging.keygen \
      --passphrase-env SNOWFLAKE_KEY_PASSPHRASE
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cryptography
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from scripts.user_role_staging.config import validate_identifier

logger = logging.getLogger("staging.keygen")

PRIVATE_KEY_FILENAME = "snowflake_private_key.pem"
PUBLIC_KEY_FILENAME = "snowflake_public_key.pem"
DEFAULT_KEY_SIZE = 2048
KEY_SIZES = (2048, 3072, 4096)
PUBLIC_EXPONENT = 65537

MIN_PYTHON = (3, 9)
# rsa.generate_private_key() without a backend argument needs cryptography >= 3.1
MIN_CRYPTOGRAPHY = (3, 1)


class KeyGenerationError(RuntimeError):
    """Key generation, export or output failed."""


@dataclass(frozen=True)
class KeyPairFiles:
    private_key: Path
    public_key: Path
    public_key_pem: bytes
    encrypted: bool


def _version_tuple(version: str) -> tuple[int, ...]:
    parts = []
    for piece in version.split(".")[:2]:
        digits = "".join(ch for ch in piece if ch.isdigit())
        parts.append(int(digits or 0))
    return tuple(parts)


def check_runtime(
    python_version: tuple[int, ...] = tuple(sys.version_info[:2]),
    cryptography_version: str = cryptography.__version__,
) -> None:
    """Raise KeyGenerationError when the interpreter or library is too old."""
    if tuple(python_version[:2]) < MIN_PYTHON:
        raise KeyGenerationError(
            "Python %d.%d or newer is required (found %d.%d)"
            % (MIN_PYTHON + tuple(python_version[:2]))
        )
    if _version_tuple(cryptography_version) < MIN_CRYPTOGRAPHY:
        raise KeyGenerationError(
            "cryptography %d.%d or newer is required (found %s)"
            % (MIN_CRYPTOGRAPHY + (cryptography_version,))
        )


def generate_private_key(key_size: int = DEFAULT_KEY_SIZE) -> rsa.RSAPrivateKey:
    if key_size not in KEY_SIZES:
        raise KeyGenerationError(
            f"Unsupported key size {key_size}; choose one of {', '.join(map(str, KEY_SIZES))}"
        )
    return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)


def private_key_pem(key: rsa.RSAPrivateKey, passphrase: Optional[str] = None) -> bytes:
    """PKCS#8 PEM; encrypted PKCS#8 when a passphrase is given."""
    if passphrase:
        encryption = serialization.BestAvailableEncryption(passphrase.encode())
    else:
        encryption = serialization.NoEncryption()
    try:
        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption,
        )
    except (ValueError, TypeError) as exc:
        raise KeyGenerationError(f"Private key export failed: {exc}") from exc


def public_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    """SubjectPublicKeyInfo PEM."""
    try:
        return key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    except (ValueError, TypeError) as exc:
        raise KeyGenerationError(f"Public key export failed: {exc}") from exc


def pem_body(pem: bytes) -> str:
    """Base64 payload of a PEM block on one line, without the markers."""
    lines = pem.decode("ascii").strip().splitlines()
    return "".join(line for line in lines if not line.startswith("-----"))


def alter_user_sql(user: str, public_pem: bytes) -> str:
    """Statement registering the public key on a Snowflake user."""
    user = validate_identifier(user, "user")
    return f"ALTER USER {user} SET RSA_PUBLIC_KEY='{pem_body(public_pem)}';"


def _write(path: Path, data: bytes, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    # An existing file keeps its old mode on open; tighten it before writing
    if hasattr(os, "fchmod"):
        os.fchmod(fd, mode)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)


def write_key_pair(
    output_dir: str | Path = ".",
    key_size: int = DEFAULT_KEY_SIZE,
    passphrase: Optional[str] = None,
    force: bool = False,
) -> KeyPairFiles:
    """Generate a key pair and write both PEM files to output_dir."""
    out = Path(output_dir)
    private_path = out / PRIVATE_KEY_FILENAME
    public_path = out / PUBLIC_KEY_FILENAME

    if not force:
        existing = [str(p) for p in (private_path, public_path) if p.exists()]
        if existing:
            raise KeyGenerationError(
                f"Refusing to overwrite {', '.join(existing)} (use --force)"
            )

    key = generate_private_key(key_size)
    private_pem = private_key_pem(key, passphrase)
    public_pem = public_key_pem(key)

    try:
        out.mkdir(parents=True, exist_ok=True)
        _write(private_path, private_pem, 0o600)
        _write(public_path, public_pem, 0o644)
    except OSError as exc:
        raise KeyGenerationError(f"Cannot write key files to {out}: {exc}") from exc

    logger.info("Wrote %d-bit RSA key pair to %s", key_size, out)
    return KeyPairFiles(
        private_key=private_path,
        public_key=public_path,
        public_key_pem=public_pem,
        encrypted=bool(passphrase),
    )


def add_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output-dir", "-o",
        default=".",
        help="Directory for the PEM files (default: current directory)",
    )
    parser.add_argument(
        "--bits", "-b",
        type=int,
        choices=KEY_SIZES,
        default=DEFAULT_KEY_SIZE,
        help="RSA key size (default: 2048)",
    )
    parser.add_argument(
        "--passphrase-env",
        metavar="VAR",
        help="Encrypt the private key with the passphrase in this env var",
    )
    parser.add_argument(
        "--user", "-u",
        help="Print the ALTER USER statement registering the key for this user",
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing key files",
    )


def cmd_keygen(args: argparse.Namespace) -> None:
    """Generate the key pair and print where it went. Exits 1 on failure."""
    try:
        check_runtime()
        passphrase = None
        if args.passphrase_env:
            passphrase = os.environ.get(args.passphrase_env)
            if not passphrase:
                raise KeyGenerationError(f"{args.passphrase_env} is not set or empty")
        if args.user:
            validate_identifier(args.user, "user")
        files = write_key_pair(
            args.output_dir, key_size=args.bits, passphrase=passphrase, force=args.force
        )
        statement = alter_user_sql(args.user, files.public_key_pem) if args.user else None
    except (KeyGenerationError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Private key: {files.private_key}" + (" (encrypted)" if files.encrypted else ""))
    print(f"Public key:  {files.public_key}")
    if statement:
        print()
        print(statement)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="snowflake-keygen",
        description="Generate an RSA key pair for Snowflake key-pair authentication",
    )
    add_arguments(parser)
    cmd_keygen(parser.parse_args(argv))


if __name__ == "__main__":
    main()
