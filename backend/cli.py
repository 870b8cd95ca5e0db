"""
Product Catalog CLI.

Command-line interface for local setup and operations.
"""

import asyncio
import sys
import time
from decimal import Decimal

import typer
from rich.console import Console
from rich.table import Table

from shared.config.settings import settings
from shared.config.logging import mask_token

app = typer.Typer(
    name="catalog",
    help="Product Catalog API CLI",
    add_completion=False,
)
console = Console()

SAMPLE_PRODUCTS = [
    ("Laptop Pro 15", "High-performance laptop with 16GB RAM", "1299.99", "electronics", 50),
    ("Wireless Mouse", "Ergonomic wireless mouse", "29.99", "electronics", 200),
    ("Office Chair", "Comfortable office chair", "249.99", "furniture", 30),
    ("Desk Lamp", "LED desk lamp", "39.99", "furniture", 100),
]


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init():
    """Create the products table if it does not exist."""
    from shared.infrastructure.db import engine
    from rest_api.models import Base

    Base.metadata.create_all(bind=engine)
    console.print("[green]✓ Tables created[/green]")


@app.command()
def db_seed(
    force: bool = typer.Option(False, "--force", "-f", help="Allow seeding in production"),
):
    """Insert the sample products."""
    from shared.infrastructure.db import get_db_context
    from rest_api.models import Product

    if settings.environment == "production" and not force:
        console.print("[red]Cannot seed production without --force[/red]")
        raise typer.Exit(1)

    with get_db_context() as db:
        for name, description, price, category, stock in SAMPLE_PRODUCTS:
            db.add(Product(
                name=name,
                description=description,
                price=Decimal(price),
                category=category,
                stock=stock,
            ))
        db.commit()

    console.print(f"[green]✓ Seeded {len(SAMPLE_PRODUCTS)} products[/green]")


# =============================================================================
# Cache Commands
# =============================================================================

@app.command()
def cache_clear(
    pattern: str = typer.Argument("products*", help="Key pattern to clear, without the key prefix"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be deleted"),
):
    """Clear cached entries by pattern."""

    async def _clear():
        from shared.infrastructure.redis import get_redis_pool, close_redis_pool

        redis = await get_redis_pool()
        try:
            keys = [key async for key in redis.scan_iter(match=f"{settings.redis_key_prefix}{pattern}")]
            if not keys:
                console.print("[yellow]No keys match pattern[/yellow]")
                return

            table = Table(title=f"Keys matching '{pattern}'")
            table.add_column("Key", style="cyan")
            for key in keys[:50]:
                table.add_row(key)
            if len(keys) > 50:
                table.add_row(f"... and {len(keys) - 50} more")
            console.print(table)

            if dry_run:
                console.print(f"[yellow]Would delete {len(keys)} keys (dry run)[/yellow]")
            else:
                deleted = await redis.delete(*keys)
                console.print(f"[green]✓ Deleted {deleted} keys[/green]")
        finally:
            await close_redis_pool()

    asyncio.run(_clear())


@app.command()
def cache_stats():
    """Show Redis statistics."""

    async def _stats():
        from shared.infrastructure.redis import get_redis_pool, close_redis_pool

        redis = await get_redis_pool()
        try:
            info = await redis.info()
            table = Table(title="Redis Statistics")
            table.add_column("Metric", style="cyan")
            table.add_column("Value", style="green")

            table.add_row("Version", info.get("redis_version", "?"))
            table.add_row("Connected Clients", str(info.get("connected_clients", "?")))
            table.add_row("Used Memory", info.get("used_memory_human", "?"))
            table.add_row("Total Keys", str(await redis.dbsize()))
            table.add_row("Uptime (days)", str(info.get("uptime_in_days", "?")))
            console.print(table)
        finally:
            await close_redis_pool()

    asyncio.run(_stats())


# =============================================================================
# OAuth Commands
# =============================================================================

@app.command()
def token():
    """Obtain the shared access token and show a masked preview."""
    if not settings.oauth_token_url:
        console.print("[red]OAUTH_TOKEN_URL is not configured[/red]")
        raise typer.Exit(1)

    async def _token():
        from shared.infrastructure.redis import get_redis_pool, close_redis_pool
        from rest_api.dependencies import close_clients, get_token_manager

        redis = await get_redis_pool()
        try:
            manager = get_token_manager(redis)
            value = await manager.get_access_token()
            state = await manager.get_state()
            console.print(f"[green]✓ {mask_token(value, visible=20)}[/green] ({state.value})")
        finally:
            await close_clients()
            await close_redis_pool()

    try:
        asyncio.run(_token())
    except Exception as e:
        console.print(f"[red]✗ Token request failed: {e}[/red]")
        raise typer.Exit(1)


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health(
    url: str = typer.Option(f"http://localhost:{settings.api_port}/health", help="API health URL"),
):
    """Check the API and its dependencies."""
    import httpx

    async def _health():
        from shared.infrastructure.redis import get_redis_pool, close_redis_pool

        table = Table(title="Service Health")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Response Time", style="yellow")

        async with httpx.AsyncClient(timeout=5.0) as client:
            try:
                start = time.perf_counter()
                response = await client.get(url)
                elapsed = (time.perf_counter() - start) * 1000
                if response.status_code == 200:
                    table.add_row("REST API", "✓ Healthy", f"{elapsed:.0f}ms")
                else:
                    table.add_row("REST API", f"✗ Status {response.status_code}", f"{elapsed:.0f}ms")
            except httpx.HTTPError as e:
                table.add_row("REST API", f"✗ {type(e).__name__}", "-")

        try:
            start = time.perf_counter()
            redis = await get_redis_pool()
            await redis.ping()
            elapsed = (time.perf_counter() - start) * 1000
            table.add_row("Redis", "✓ Healthy", f"{elapsed:.0f}ms")
        except Exception as e:
            table.add_row("Redis", f"✗ {type(e).__name__}", "-")
        finally:
            await close_redis_pool()

        console.print(table)

    asyncio.run(_health())


@app.command()
def version():
    """Show version information."""
    table = Table(title="Product Catalog Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("API", "1.0.0")
    table.add_row("API prefix", f"/api/{settings.api_version}")
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
