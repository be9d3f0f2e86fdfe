"""``kms-sshca`` command line: print the CA trust line or sign a public key."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Sequence, TextIO

from kms_sshca.certificate import CertType, SubjectKey, build_and_sign, now_timestamp
from kms_sshca.config import SSHCASettings, load_settings
from kms_sshca.errors import ConfigurationError, SSHCAError
from kms_sshca.kms import KMSClient
from kms_sshca.resolver import CAKey, resolve
from kms_sshca.signer import RemoteSigner

logger = logging.getLogger(__name__)


def cert_path(path: Path) -> Path:
    """``id_ed25519.pub`` -> ``id_ed25519-cert.pub`` in the same directory."""
    name = path.name
    if not name.endswith(".pub"):
        raise ConfigurationError(
            f"could not automatically determine output path for {path}"
        )
    return path.with_name(name[: -len(".pub")] + "-cert.pub")


def print_pubkey(ca_key: CAKey, user: str, out: TextIO | None = None) -> None:
    print(ca_key.trust_line(user), file=out or sys.stdout)


def sign_path(
    client: Any,
    ca_key: CAKey,
    user: str,
    path: Path,
    output: Path | None = None,
) -> Path:
    """Certify the public key at *path* and write the certificate line.

    The output file is only touched once the certificate is fully signed.
    Returns the path written.
    """
    out = output if output is not None else cert_path(path)
    try:
        subject_key = SubjectKey.from_path(path)
    except OSError as e:
        raise ConfigurationError(f"failed to load public key at {path}: {e}") from e

    cert = build_and_sign(
        subject_key,
        CertType.USER,
        ca_key,
        user,
        now_timestamp(),
        RemoteSigner(client, ca_key).sign,
    )
    out.write_text(f"{cert}\n", encoding="utf-8")
    logger.info("Wrote %s", out)
    return out


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kms-sshca",
        description="Issue SSH user certificates signed by a CA key held in AWS KMS.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("pubkey", help="print the cert-authority line for authorized_keys")

    sign = commands.add_parser("sign", help="sign a public key")
    sign.add_argument("path", nargs="?", type=Path, help="public key (default: $SSHCA_KEY_PATH)")
    sign.add_argument("-o", "--output", type=Path, help="certificate output path")
    return parser


def _run(args: argparse.Namespace, settings: SSHCASettings) -> None:
    user = settings.resolve_user()
    key_id = settings.require_key_id()
    path = None
    if args.command == "sign":
        path = args.path if args.path is not None else settings.resolve_key_path()

    with KMSClient(
        region_name=settings.aws_region or None,
        endpoint_url=settings.kms_endpoint_url or None,
        profile_name=settings.aws_profile or None,
    ) as client:
        ca_key = resolve(client, key_id)
        if args.command == "pubkey":
            print_pubkey(ca_key, user)
        else:
            sign_path(client, ca_key, user, path, args.output)


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        _run(args, load_settings())
    except (SSHCAError, OSError) as e:
        logger.debug("kms-sshca failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
