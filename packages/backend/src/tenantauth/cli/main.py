"""tenantauth CLI — operator helpers for credentials.

Usage:
    tenantauth generate-pat                      # New PAT + the hash to store
    tenantauth hash-pat pat_abc123               # Hash of an existing PAT
    tenantauth inspect-token eyJhbGciOi...       # Verify an access token, print claims
    tenantauth inspect-token --refresh eyJ...    # Same for a refresh token

inspect-token uses TENANTAUTH_JWT_SECRET unless --secret is given.
"""

from __future__ import annotations

import json
import sys

import click

from tenantauth import __version__
from tenantauth.auth.errors import AuthError, ConfigurationError
from tenantauth.auth.pat import generate_personal_access_token, hash_personal_access_token
from tenantauth.auth.tokens import verify_access_token, verify_refresh_token


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _default_secret() -> str:
    from tenantauth.config import settings

    return settings.jwt_secret


@click.group()
@click.version_option(version=__version__, prog_name="tenantauth")
def main():
    """tenantauth — inspect and mint credential material."""


@main.command("generate-pat")
@click.option("--prefix", default=None, help="PAT prefix (defaults to TENANTAUTH_PAT_PREFIX).")
def generate_pat(prefix: str | None):
    """Generate a new personal access token and its storage hash."""
    if prefix is None:
        from tenantauth.config import settings

        prefix = settings.pat_prefix
    generated = generate_personal_access_token(prefix)
    click.secho("Token (shown once):", bold=True)
    click.echo(generated.token)
    click.secho("Hash (store this):", bold=True)
    click.echo(generated.token_hash)


@main.command("hash-pat")
@click.argument("token")
def hash_pat(token: str):
    """Print the storage hash of TOKEN."""
    click.echo(hash_personal_access_token(token))


@main.command("inspect-token")
@click.argument("token")
@click.option("--secret", default=None, help="Signing secret (defaults to TENANTAUTH_JWT_SECRET).")
@click.option("--refresh", is_flag=True, help="Treat TOKEN as a refresh token.")
def inspect_token(token: str, secret: str | None, refresh: bool):
    """Verify TOKEN and print its claims."""
    secret = secret if secret is not None else _default_secret()
    try:
        if refresh:
            claims = verify_refresh_token(token, secret)
            data = {
                "type": "refresh",
                "subject": claims.subject,
                "token_id": claims.token_id,
                "issued_at": claims.issued_at.isoformat(),
                "expires_at": claims.expires_at.isoformat(),
            }
        else:
            claims = verify_access_token(token, secret)
            data = {
                "type": "access",
                "subject": claims.subject,
                "username": claims.username,
                "role": claims.role,
                "status": claims.status,
                "issued_at": claims.issued_at.isoformat(),
                "expires_at": claims.expires_at.isoformat(),
            }
    except AuthError as e:
        click.secho(f"Invalid token ({e.kind.value}): {e}", fg="red", err=True)
        sys.exit(1)
    except ConfigurationError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(2)

    click.echo(_pretty_json(data))


if __name__ == "__main__":
    main()
