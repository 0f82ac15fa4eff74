"""Offline queue CLI commands."""
import asyncio
import sys

import click

from pontoflex.config.sync import SyncConfig
from pontoflex.core.constants import DEFAULT_PEEK, DEFAULT_STALE_DAYS
from pontoflex.offline import (
    AuthMethod,
    JsonFileStore,
    MemoryRemoteStore,
    OfflineQueue,
    RegistrationAttempt,
    RestRemoteStore,
    SocketProbeNetwork,
)

from .output import print_error, print_json, print_success, success_box, table


def build_queue(config: SyncConfig) -> OfflineQueue:
    """Queue wired to the configured store, REST endpoint and probe.

    Without a REST URL the remote is an always-offline stand-in, so
    read-only commands still work and nothing is ever dropped.
    """
    if config.rest_url:
        remote = RestRemoteStore(config.rest_url, config.api_key, timeout=config.request_timeout_s)
    else:
        remote = MemoryRemoteStore(online=False)

    network = SocketProbeNetwork(
        host=config.probe_host,
        port=config.probe_port,
        timeout=config.probe_timeout_s,
        interval=config.probe_interval_s,
    )
    return OfflineQueue(JsonFileStore(config.store_dir), remote, network, config=config)


def _load_config() -> SyncConfig:
    config = SyncConfig.from_env()
    errors = config.validate()
    if errors:
        for error in errors:
            print_error(f"Config error: {error}")
        sys.exit(2)
    return config


@click.group()
def offline():
    """Offline queue commands."""
    pass


@offline.command()
def status():
    """Show offline queue status."""
    try:
        queue = build_queue(_load_config())
        print_json(asyncio.run(queue.get_sync_status()))
    except Exception as e:
        print_error(f"Status check failed: {e}")
        sys.exit(1)


@offline.command('queue')
@click.option('--limit', '-n', default=DEFAULT_PEEK, help='Number of registrations to show')
def show_queue(limit: int):
    """List pending registrations, oldest first."""
    try:
        queue = build_queue(_load_config())

        async def _read():
            return await queue.peek(limit), await queue.size()

        items, total = asyncio.run(_read())

        if not items:
            click.echo("Queue is empty")
            return

        click.echo(f"Showing {len(items)} of {total} pending registrations:\n")
        table(
            ["offline_id", "employee", "date", "time", "method", "attempts"],
            [[p.offline_id[:8], p.employee_id, p.reference_date, p.reference_time,
              p.auth_method.value, str(p.attempts)] for p in items],
        )

    except Exception as e:
        print_error(f"Queue list failed: {e}")
        sys.exit(1)


@offline.command()
@click.option('--employee', required=True, help='Employee ID')
@click.option('--company', required=True, help='Company ID')
@click.option('--method', type=click.Choice([m.value for m in AuthMethod]),
              default=AuthMethod.PASSWORD.value, help='Verification method')
@click.option('--lat', type=float, default=None, help='Latitude')
@click.option('--lng', type=float, default=None, help='Longitude')
def enqueue(employee: str, company: str, method: str, lat: float, lng: float):
    """Queue a clock event for later sync."""
    try:
        queue = build_queue(_load_config())
        pending = asyncio.run(_enqueue_and_wait(queue, RegistrationAttempt(
            employee_id=employee,
            company_id=company,
            auth_method=AuthMethod(method),
            latitude=lat,
            longitude=lng,
        )))
        success_box("Offline Enqueue: QUEUED", [
            ("Offline ID", pending.offline_id),
            ("Employee", pending.employee_id),
            ("Date", pending.reference_date),
            ("Time", pending.reference_time),
        ], "pontoflex offline sync")
    except Exception as e:
        print_error(f"Enqueue failed: {e}")
        sys.exit(1)


async def _enqueue_and_wait(queue: OfflineQueue, attempt: RegistrationAttempt):
    pending = await queue.enqueue(attempt)
    await queue.wait_idle()
    return pending


@offline.command('sync')
@click.option('--force', is_flag=True, help='Force sync attempt even if not connected')
def do_sync(force: bool):
    """Sync offline queue to the remote store."""
    try:
        config = _load_config()
        if not config.rest_url:
            print_error("PONTOFLEX_REST_URL is not set")
            sys.exit(2)

        queue = build_queue(config)
        if not force and not asyncio.run(queue.network.get_status()).connected:
            print_error("Not connected. Use --force to attempt anyway.")
            sys.exit(1)

        result = asyncio.run(queue.drain())
        if result.retained or result.dead:
            print_error(f"{len(result.retained) + len(result.dead)} registrations failed to sync")
        else:
            print_success(f"Synced {len(result.synced)} registrations")
        print_json(result.to_dict())

    except Exception as e:
        print_error(f"Sync failed: {e}")
        sys.exit(1)


@offline.command()
def dead():
    """List registrations rejected permanently by the remote store."""
    try:
        queue = build_queue(_load_config())
        letters = asyncio.run(queue.get_dead_letters())
        if not letters:
            click.echo("No dead letters")
            return
        table(
            ["offline_id", "employee", "date", "time", "error"],
            [[d.registration.offline_id[:8], d.registration.employee_id,
              d.registration.reference_date, d.registration.reference_time,
              d.error_message[:40]] for d in letters],
        )
    except Exception as e:
        print_error(f"Dead letter list failed: {e}")
        sys.exit(1)


@offline.command()
def retry():
    """Move dead letters back into the queue."""
    try:
        queue = build_queue(_load_config())
        moved = asyncio.run(queue.retry_dead_letters())
        print_success(f"Requeued {moved} registrations")
    except Exception as e:
        print_error(f"Retry failed: {e}")
        sys.exit(1)


@offline.command()
@click.option('--days', default=DEFAULT_STALE_DAYS, help='Minimum age in days')
def stale(days: int):
    """List registrations pending for more than N days."""
    try:
        queue = build_queue(_load_config())
        items = asyncio.run(queue.get_stale(days))
        if not items:
            click.echo(f"No registrations older than {days} days")
            return
        table(
            ["offline_id", "employee", "date", "time", "attempts", "last_error"],
            [[p.offline_id[:8], p.employee_id, p.reference_date, p.reference_time,
              str(p.attempts), (p.last_error or "")[:30]] for p in items],
        )
    except Exception as e:
        print_error(f"Stale check failed: {e}")
        sys.exit(1)


@offline.command()
def clear():
    """Clear offline queue (use after manual resolution)."""
    try:
        queue = build_queue(_load_config())
        size = asyncio.run(queue.size())
        if size == 0:
            click.echo("Queue already empty")
            return

        if click.confirm(f"Clear {size} pending registrations?"):
            asyncio.run(queue.clear())
            print_success("Queue cleared")

    except Exception as e:
        print_error(f"Clear failed: {e}")
        sys.exit(1)


@offline.command()
def connected():
    """Check if the network probe target is reachable."""
    try:
        queue = build_queue(_load_config())
        is_connected = asyncio.run(queue.network.get_status()).connected
        print_json({
            "connected": is_connected,
            "status": "online" if is_connected else "offline",
        })
    except Exception as e:
        print_error(f"Connection check failed: {e}")
        sys.exit(1)
