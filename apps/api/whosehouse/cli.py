"""CLI tools for WhoseHouse administration."""

import click

from whosehouse.db.enums import Role
from whosehouse.db.models import Organization, Profile
from whosehouse.db.session import SessionLocal
from whosehouse.services import auth_service, placement_service
from whosehouse.utils import normalize_email


@click.group()
def cli():
    """WhoseHouse CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
def create_org(name: str, slug: str):
    """
    Create an organization (fostering agency or local authority).

    Example:
        python -m whosehouse.cli create-org --name "Northshire Fostering" --slug "northshire"
    """
    db = SessionLocal()
    try:
        slug = slug.lower().strip()
        if not slug.replace("-", "").replace("_", "").isalnum():
            click.echo("❌ Slug must be alphanumeric (with optional hyphens/underscores)")
            return

        existing = db.query(Organization).filter(Organization.slug == slug).first()
        if existing:
            click.echo(f"❌ Organization with slug '{slug}' already exists")
            return

        org = Organization(name=name, slug=slug)
        db.add(org)
        db.commit()

        click.echo(f"✓ Created organization: {name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Slug: {slug}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option("--email", required=True, help="Admin email address")
@click.option("--full-name", required=True, help="Admin display name")
@click.password_option(help="Initial password")
def create_admin(org_slug: str, email: str, full_name: str, password: str):
    """
    Create the first admin account of an organization.

    Further accounts are created by that admin through the API.
    """
    db = SessionLocal()
    try:
        org = auth_service.get_org_by_slug(db, org_slug)
        if not org:
            click.echo(f"❌ Organization not found: {org_slug}")
            return

        profile = auth_service.create_profile(
            db,
            org_id=org.id,
            email=email,
            password=password,
            full_name=full_name,
            role=Role.ADMIN,
        )
        db.commit()

        click.echo(f"✓ Created admin {profile.email} in {org.name}")
        click.echo(f"  ID: {profile.id}")

    except auth_service.AuthServiceError as e:
        db.rollback()
        click.echo(f"❌ {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m whosehouse.cli revoke-sessions --email "carer@example.com"
    """
    db = SessionLocal()
    try:
        user = db.query(Profile).filter(Profile.email == normalize_email(email)).first()
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        old_version = user.token_version
        user.token_version += 1
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
def expire_placement_requests():
    """
    Mark pending placement requests past their expiry as expired.

    Safe to run from cron; expired requests are also flipped lazily when
    a household tries to answer them.
    """
    db = SessionLocal()
    try:
        count = placement_service.expire_stale_requests(db)
        db.commit()
        click.echo(f"✓ Expired {count} placement request(s)")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
