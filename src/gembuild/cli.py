"""The `gembuild` command-line interface."""

import importlib.metadata
from pathlib import Path

import click
from cryptography.hazmat.primitives import serialization

from .config import DEFAULT_POLICY_NAME, OUTPUT_DIR_ENV, POLICY_ENV, TRUST_DIR_ENV
from .crypto import certificate_pem, create_certificate, fingerprint, generate_keys, load_certificate
from .exceptions import BuildError, SourceNotFoundError, SpecLoadError, ValidationError, VerificationError
from .packaging.orchestrator import BuildOrchestrator
from .packaging.reader import ArchiveReader
from .packaging.verifier import Verifier
from .policy import POLICIES, get_policy
from .trust import TrustStore

try:
    __version__ = importlib.metadata.version("gembuild")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"

PRIVATE_KEY_FILE = "gem-private_key.pem"
PUBLIC_CERT_FILE = "gem-public_cert.pem"


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(
    __version__,
    "-V",
    "--version",
    prog_name="gembuild",
    message="%(prog)s version %(version)s",
)
def cli() -> None:
    """Gem archive build, signing and verification tool."""
    pass


@cli.command("build")
@click.argument("gemspec")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing archive.")
@click.option(
    "--output-dir",
    "-o",
    default=".",
    envvar=OUTPUT_DIR_ENV,
    type=click.Path(file_okay=False, resolve_path=True),
    help="Directory the archive is written to.",
)
def build_command(gemspec: str, force: bool, output_dir: str) -> None:
    """Builds a gem archive from GEMSPEC."""
    orchestrator = BuildOrchestrator(output_dir=Path(output_dir), force=force)
    try:
        report = orchestrator.build_file(gemspec)
    except SourceNotFoundError as e:
        click.secho(f"ERROR:  {e}", fg="red", err=True)
        raise click.Abort() from e
    except (ValidationError, SpecLoadError) as e:
        click.secho(str(e), fg="red", err=True)
        click.secho("ERROR:  Error loading gemspec. Aborting.", fg="red", err=True)
        raise click.Abort() from e
    except BuildError as e:
        click.secho(f"ERROR:  {e}", fg="red", err=True)
        raise click.Abort() from e

    for line in report.render_warnings():
        click.secho(line, fg="yellow", err=True)
    for line in report.render():
        click.echo(line)


@cli.command("verify")
@click.argument(
    "archive_file",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
)
@click.option(
    "--policy",
    "policy_name",
    default=DEFAULT_POLICY_NAME,
    envvar=POLICY_ENV,
    show_default=True,
    type=click.Choice(list(POLICIES), case_sensitive=False),
    help="Security policy to verify under.",
)
@click.option(
    "--trust-dir",
    envvar=TRUST_DIR_ENV,
    type=click.Path(file_okay=False, resolve_path=True),
    help="Trust store directory.",
)
def verify_command(archive_file: str, policy_name: str, trust_dir: str | None) -> None:
    """Verifies a gem archive against the trust store."""
    click.echo(f"🔍 Verifying archive '{archive_file}'...")
    policy = get_policy(policy_name)
    try:
        reader = ArchiveReader(Path(archive_file))
        click.echo(reader.get_info())
        store = TrustStore.open(trust_dir)
        verified = Verifier(store).verify(reader, policy)
    except VerificationError as e:
        click.secho(f"❌ Verification failed: {e}", fg="red", err=True)
        raise click.Abort() from e

    if not verified:
        click.secho(
            f"❌ {Path(archive_file).name} is not verified under the {policy.name} policy.",
            fg="red",
            err=True,
        )
        raise click.Abort()
    click.secho(f"✅ {Path(archive_file).name} verified under the {policy.name} policy.", fg="green")


@cli.command("trust")
@click.argument(
    "certificate_file",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
)
@click.option(
    "--trust-dir",
    envvar=TRUST_DIR_ENV,
    type=click.Path(file_okay=False, resolve_path=True),
    help="Trust store directory.",
)
def trust_command(certificate_file: str, trust_dir: str | None) -> None:
    """Adds CERTIFICATE_FILE to the trust store."""
    try:
        certificate = load_certificate(Path(certificate_file))
    except VerificationError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        raise click.Abort() from e

    TrustStore.open(trust_dir).trust(certificate)
    click.secho(
        f"✅ Added '{certificate.subject.rfc4514_string()}' ({fingerprint(certificate)})",
        fg="green",
    )


@cli.command()
@click.option(
    "--out-dir",
    default="keys",
    type=click.Path(file_okay=False, writable=True, resolve_path=True),
    help="Directory to save the private key and self-signed certificate.",
)
@click.option("--name", "common_name", default="gembuild", help="Certificate common name.")
@click.option("--days", default=365, show_default=True, help="Certificate lifetime in days.")
@click.option("--key-size", default=4096, show_default=True, help="RSA key size in bits.")
def keygen(out_dir: str, common_name: str, days: int, key_size: int) -> None:
    """Generates a signing key and a self-signed certificate."""
    out_path = Path(out_dir)
    key_path = out_path / PRIVATE_KEY_FILE
    cert_path = out_path / PUBLIC_CERT_FILE
    if key_path.exists() or cert_path.exists():
        click.secho(
            f"⚠️  Keys already exist in '{out_dir}'. To regenerate, please delete them first.",
            fg="yellow",
        )
        return

    try:
        out_path.mkdir(parents=True, exist_ok=True)
        private_key, _ = generate_keys(key_size)
        certificate = create_certificate(private_key, common_name, days=days)
        key_path.write_bytes(
            private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
        key_path.chmod(0o600)
        cert_path.write_bytes(certificate_pem(certificate))
    except (OSError, ValueError) as e:
        click.secho(f"❌ Keygen failed: {e}", fg="red", err=True)
        raise click.Abort() from e

    click.secho(f"✅ Signing key and certificate generated in '{out_dir}'.", fg="green")


main = cli
