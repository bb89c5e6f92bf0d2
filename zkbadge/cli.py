"""
Command-line interface for the zkbadge issuer.

Offline commands (``tree``, ``prove-inclusion``, ``pack``, ``verify``) work on
files. ``config`` and ``nonce`` operate on the configured database.
"""

import json
import logging
import sys
from pathlib import Path
from typing import List

import click

from zkbadge import __version__
from zkbadge.attestation.circuit_input import pack as pack_bundles
from zkbadge.attestation.config import NONCE_SCOPES
from zkbadge.attestation.exceptions import BadgeError
from zkbadge.attestation.merkle import build_snapshot, verify_path
from zkbadge.attestation.nonce import NonceLedger
from zkbadge.attestation.service import BadgeService
from zkbadge.attestation.settings import Settings, load_settings
from zkbadge.attestation.snark import ProofVerifier, SnarkjsBackend, directory_key_loader
from zkbadge.attestation.statements import ProofKind
from zkbadge.attestation.store import Store


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _read_identities(path: str) -> List[int]:
    """One decimal identity per line, or a JSON list."""
    text = Path(path).read_text(encoding="utf-8").strip()
    if text.startswith("["):
        return [int(value) for value in json.loads(text)]
    return [int(line) for line in text.splitlines() if line.strip() and not line.startswith("#")]


def _read_json(path: str):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _settings(ctx: click.Context) -> Settings:
    obj = ctx.ensure_object(dict)
    if "settings" not in obj:
        try:
            obj["settings"] = load_settings(
                obj.get("settings_file"), database_url=obj.get("database_url")
            )
        except BadgeError as e:
            _fail(str(e))
    return obj["settings"]


def _emit(payload, output: str = None) -> None:
    content = json.dumps(payload, indent=2)
    if output:
        Path(output).write_text(content + "\n", encoding="utf-8")
        click.echo(click.style(f"✓ Saved to: {output}", fg="green"), err=True)
    else:
        click.echo(content)


@click.group()
@click.version_option(version=__version__)
@click.option(
    '--settings',
    'settings_file',
    type=click.Path(exists=True, dir_okay=False),
    help='YAML settings file (default: $ZKBADGE_SETTINGS_FILE)'
)
@click.option(
    '--database-url',
    type=str,
    help='SQLAlchemy database URL (overrides settings)'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable debug logging'
)
@click.pass_context
def main(ctx, settings_file, database_url, verbose):
    """
    zkbadge - zero-knowledge badge issuer.

    Builds the verified-identity accumulator, packs circuit inputs and
    verifies Groth16 badge proofs.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["settings_file"] = settings_file
    ctx.obj["database_url"] = database_url


@main.command()
@click.argument('identities', type=click.Path(exists=True, dir_okay=False))
@click.option('--depth', type=int, default=None, help='Merkle depth (default: from settings)')
@click.pass_context
def tree(ctx, identities, depth):
    """
    Build the accumulator over IDENTITIES and print its root.

    Examples:

        zkbadge tree identities.txt --depth 20
    """
    depth = depth or _settings(ctx).merkle_depth
    try:
        snapshot = build_snapshot(_read_identities(identities), depth)
    except ValueError as e:
        _fail(str(e))
    _emit(
        {
            "root": str(snapshot.root),
            "zero_leaf": str(snapshot.zero_leaf),
            "depth": snapshot.depth,
            "leaf_count": snapshot.leaf_count,
        }
    )


@main.command('prove-inclusion')
@click.argument('identities', type=click.Path(exists=True, dir_okay=False))
@click.argument('identity', type=int)
@click.option('--depth', type=int, default=None, help='Merkle depth (default: from settings)')
@click.pass_context
def prove_inclusion(ctx, identities, identity, depth):
    """Print the inclusion proof for IDENTITY in the accumulator over IDENTITIES."""
    depth = depth or _settings(ctx).merkle_depth
    try:
        snapshot = build_snapshot(_read_identities(identities), depth)
        bundle = snapshot.prove_inclusion(snapshot.leaf_for(identity))
    except ValueError as e:
        _fail(str(e))
    if bundle is None:
        _fail(f"identity {identity} is not in the accumulator")
    payload = bundle.to_dict()
    payload["root"] = str(snapshot.root)
    payload["valid"] = verify_path(bundle, snapshot.root)
    _emit(payload)


@main.command()
@click.argument('identities', type=click.Path(exists=True, dir_okay=False))
@click.option('--claim', 'claims', type=int, multiple=True, help='Claimed identity (repeatable)')
@click.option('--identity', type=int, required=True, help='Prover identity (selfNullifier)')
@click.option('--nonce', type=int, required=True, help='Session nonce')
@click.option('--min-threshold', type=int, default=None, help='Minimum verified relations')
@click.option('--n-max', type=int, default=None, help='Circuit arity')
@click.option('--depth', type=int, default=None, help='Merkle depth')
@click.option('--strict/--no-strict', default=None, help='Fail instead of truncating over capacity')
@click.option('--output', type=click.Path(), help='Output file path (default: stdout)')
@click.pass_context
def pack(ctx, identities, claims, identity, nonce, min_threshold, n_max, depth, strict, output):
    """
    Pack a social circuit input for the CLAIM identities.

    Examples:

        zkbadge pack ids.txt --claim 11 --claim 12 --identity 7 --nonce 42
    """
    settings = _settings(ctx)
    depth = depth or settings.merkle_depth
    n_max = n_max or settings.n_max
    min_threshold = min_threshold or settings.min_threshold
    strict = settings.strict_packing if strict is None else strict

    try:
        snapshot = build_snapshot(_read_identities(identities), depth)
        bundles = []
        for claimed in claims:
            bundle = snapshot.prove_inclusion(snapshot.leaf_for(claimed))
            if bundle is None:
                click.echo(
                    click.style(f"⚠️  Skipping identity not in accumulator: {claimed}", fg="yellow"),
                    err=True,
                )
                continue
            bundles.append(bundle)
        circuit_input = pack_bundles(bundles, n_max, depth, snapshot.zero_leaf, strict=strict)
    except (BadgeError, ValueError) as e:
        _fail(str(e))

    _emit(circuit_input.to_circuit_json(identity, nonce, snapshot.root, min_threshold), output)


@main.command()
@click.argument('kind', type=click.Choice([k.value for k in ProofKind]))
@click.argument('proof', type=click.Path(exists=True, dir_okay=False))
@click.argument('public', type=click.Path(exists=True, dir_okay=False))
@click.option('--keys-dir', type=click.Path(file_okay=False), help='Verification key directory')
@click.pass_context
def verify(ctx, kind, proof, public, keys_dir):
    """Verify a Groth16 proof of KIND and print its decoded public signals."""
    settings = _settings(ctx)
    verifier = ProofVerifier(
        SnarkjsBackend(settings.snarkjs_command, settings.snarkjs_timeout),
        directory_key_loader(keys_dir or settings.keys_dir),
    )
    try:
        verified = verifier.verify(kind, _read_json(proof), _read_json(public))
    except (BadgeError, ValueError) as e:
        _fail(str(e))

    signals = {
        name: str(value) for name, value in vars(verified.signals).items()
    }
    _emit({"kind": kind, "qualified": verified.signals.qualified, "signals": signals})


@main.group()
def config():
    """Show or publish the verification config."""
    pass


@config.command('show')
@click.pass_context
def config_show(ctx):
    """Print the published config."""
    service = _service(ctx)
    try:
        published = service.published()
    except BadgeError as e:
        _fail(str(e))
    _emit(published.to_dict())


@config.command('publish')
@click.option('--min-threshold', type=int, default=None, help='Minimum verified relations')
@click.pass_context
def config_publish(ctx, min_threshold):
    """Rebuild the accumulator from verified identities and publish its root."""
    service = _service(ctx)
    try:
        published = service.publish_config(min_threshold=min_threshold)
    except BadgeError as e:
        _fail(str(e))
    _emit(published.to_dict())


@main.group()
def nonce():
    """Session nonce management."""
    pass


@nonce.command('issue')
@click.argument('scope', type=click.Choice(sorted(NONCE_SCOPES)))
@click.pass_context
def nonce_issue(ctx, scope):
    """Issue a single-use nonce in SCOPE."""
    ledger = NonceLedger(Store(_settings(ctx).database_url))
    click.echo(str(ledger.issue(scope)))


def _service(ctx: click.Context) -> BadgeService:
    try:
        return BadgeService.from_settings(_settings(ctx))
    except BadgeError as e:
        _fail(str(e))


if __name__ == "__main__":
    main()
