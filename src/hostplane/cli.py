"""Hostplane CLI - Command line interface."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hostplane.core.config import (
    ENVIRONMENT_KEYS,
    HostplaneConfig,
    ProvisioningConfig,
    environment_values,
    flatten_config,
    get_config,
    load_config_from_file,
    resolve_provisioning_config,
)
from hostplane.core.logs import configure_logging
from hostplane.upstream import Credentials, UpstreamClient

console = Console()

BANNER = """
 _               _         _
| |__   ___  ___| |_ _ __ | | __ _ _ __   ___
| '_ \\ / _ \\/ __| __| '_ \\| |/ _` | '_ \\ / _ \\
| | | | (_) \\__ \\ |_| |_) | | (_| | | | |  __/
|_| |_|\\___/|___/\\__| .__/|_|\\__,_|_| |_|\\___|
                    |_|
        Tenant hostnames, provisioned and routed
"""

# Environment variable behind each provider setting, for display
PROVIDER_ENV_NAMES = {
    "account_id": "CLOUDFLARE_ACCOUNT_ID",
    "api_token": "CLOUDFLARE_API_TOKEN",
    "dispatch_token": "DISPATCH_NAMESPACE_API_TOKEN",
    "api_key": "CLOUDFLARE_API_KEY",
    "api_email": "CLOUDFLARE_API_EMAIL",
    "custom_domain": "CUSTOM_DOMAIN",
    "zone_id": "CLOUDFLARE_ZONE_ID",
    "fallback_origin": "FALLBACK_ORIGIN",
}

STATUS_COLORS = {
    "active": "green",
    "pending": "yellow",
    "error": "red",
    "not_found": "dim",
}

OUTCOME_STYLES = {
    "created": "green",
    "present": "cyan",
    "skipped": "yellow",
    "failed": "red",
}


def _persisted_from_file(file_config: dict[str, Any]) -> dict[str, Any]:
    """Pick provisioning fields out of a flattened config file.

    Accepts both ``zone_id`` and sectioned keys such as ``provider_zone_id``.
    """
    persisted: dict[str, Any] = {}
    for field_name in ENVIRONMENT_KEYS:
        for key in (field_name, f"provider_{field_name}", f"platform_{field_name}"):
            if key in file_config:
                persisted[field_name] = file_config[key]
                break
    return persisted


def _build_client(cfg: HostplaneConfig, credentials: Credentials | None = None) -> UpstreamClient:
    """Create an upstream client from the configured credentials."""
    provider = cfg.provider
    if credentials is None:
        credentials = Credentials.from_values(
            api_token=provider.api_token,
            dispatch_token=provider.dispatch_token,
            api_key=provider.api_key,
            api_email=provider.api_email,
        )
    platform = cfg.platform
    return UpstreamClient(
        credentials,
        base_url=platform.api_base_url,
        timeout=platform.request_timeout,
    )


def _storage_path(cfg: HostplaneConfig, storage: str | None) -> str:
    return storage or cfg.platform.registry_path


def _open_store(cfg: HostplaneConfig, storage: str | None, root_domain: str | None = None):
    from hostplane.names import platform_labels
    from hostplane.registry import TenantStore

    root = root_domain or cfg.root_domain
    fallback = cfg.provider.fallback_origin or (f"my.{root}" if root else None)
    labels = platform_labels(cfg.platform.reserved_labels, root, fallback)
    return TenantStore(_storage_path(cfg, storage), root_domain=root, reserved_labels=labels)


@click.group(invoke_without_command=True)
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    help="Log level (default: warning, use --verbose for debug)",
)
@click.pass_context
def main(ctx: click.Context, config_file: str | None, verbose: bool, log_level: str):
    """Hostplane - tenant hostname routing and custom domain lifecycle.

    Examples:

        hostplane provision --account-id abc123 --custom-domain platform.com

        hostplane tenant add "Acme Store" --label acme

        hostplane domain connect <tenant-id> shop.acme.com

        hostplane resolve acme.platform.com

        hostplane serve --bind 0.0.0.0:8080
    """
    configure_logging(log_level.lower(), verbose)

    file_config: dict[str, Any] = {}
    if config_file:
        try:
            file_config = flatten_config(load_config_from_file(config_file))
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["file_config"] = file_config

    if ctx.invoked_subcommand is None:
        console.print(BANNER, style="cyan")
        console.print("Usage: hostplane provision --account-id <id>", style="yellow")
        console.print("       hostplane tenant add <name> --label <label>", style="yellow")
        console.print("\nCommands:", style="bold")
        console.print("  hostplane provision  Provision upstream resources", style="dim")
        console.print("  hostplane resolve    Classify a request host", style="dim")
        console.print("  hostplane tenant     Manage tenants", style="dim")
        console.print("  hostplane domain     Manage tenant custom domains", style="dim")
        console.print("  hostplane serve      Run the host routing app", style="dim")


@main.command()
def version():
    """Show version information."""
    from hostplane import __version__

    console.print(BANNER, style="cyan")
    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")


@main.command()
@click.option("--account-id", help="Provider account ID")
@click.option("--api-token", help="Provider API token")
@click.option("--custom-domain", help="Platform root domain (e.g. platform.com)")
@click.option("--zone-id", help="Zone ID used when auto-detection finds nothing")
@click.option("--fallback-origin", help="CNAME target for tenant domains (default: my.<domain>)")
@click.option("--namespace", "namespace_name", help="Dispatch namespace name")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the resulting environment assignments to this file",
)
@click.option("--json", "json_output", is_flag=True, help="Output the report as JSON")
@click.pass_context
def provision(
    ctx: click.Context,
    account_id: str | None,
    api_token: str | None,
    custom_domain: str | None,
    zone_id: str | None,
    fallback_origin: str | None,
    namespace_name: str | None,
    env_file: str | None,
    json_output: bool,
):
    """Provision the dispatch namespace, access token and domain routes.

    Safe to re-run: existing resources are reused. Values come from options,
    then the --config file, then the environment (including a local .env).
    """
    explicit = {
        "account_id": account_id,
        "api_token": api_token,
        "custom_domain": custom_domain,
        "zone_id": zone_id,
        "fallback_origin": fallback_origin,
        "namespace_name": namespace_name,
    }
    persisted = _persisted_from_file((ctx.obj or {}).get("file_config", {}))
    config = resolve_provisioning_config(explicit, persisted, environment_values())
    asyncio.run(_provision_async(config, env_file, json_output))


async def _provision_async(config: ProvisioningConfig, env_file: str | None, json_output: bool):
    """Async implementation of provision command."""
    import json

    from hostplane.errors import FatalProvisioningError
    from hostplane.provisioning import ProvisioningReconciler

    credentials = Credentials.from_values(
        api_token=config.api_token,
        api_key=config.api_key,
        api_email=config.api_email,
    )

    try:
        async with _build_client(get_config(), credentials) as client:
            state = await ProvisioningReconciler(config, client).run()
    except FatalProvisioningError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print("\n[yellow]Please check:[/yellow]")
        for hint in e.hints:
            console.print(f"  - {hint}")
        sys.exit(1)

    if env_file:
        lines = [f'{key}="{value}"' for key, value in state.to_env_dict().items()]
        Path(env_file).write_text("\n".join(lines) + "\n", encoding="utf-8")

    if json_output:
        console.print(json.dumps(state.to_report(), indent=2))
        return

    report = state.to_report()
    summary = (
        f"[bold]Account:[/bold] {state.account_name or state.account_id}\n"
        f"[bold]Dispatch namespaces:[/bold] "
        f"{'[green]available[/green]' if state.namespace_available else '[yellow]unavailable[/yellow]'}\n"
        f"[bold]Namespace:[/bold] {state.dispatch_namespace.name if state.dispatch_namespace else 'N/A'}\n"
        f"[bold]Access token:[/bold] {report['access_credential']['value'] if state.access_credential else 'N/A'}"
    )
    if state.credential_degraded:
        summary += " [yellow](degraded: could not mint a dedicated token)[/yellow]"
    if state.custom_domain:
        summary += (
            f"\n[bold]Custom domain:[/bold] {state.custom_domain}\n"
            f"[bold]Zone:[/bold] {state.zone_name or state.zone_id or 'N/A'}\n"
            f"[bold]Fallback origin:[/bold] {state.fallback_origin}"
        )
    console.print(Panel(summary, title="Provisioning Complete", border_style="green"))

    table = Table(title="Steps")
    table.add_column("Step", style="cyan")
    table.add_column("Outcome")
    table.add_column("Detail", style="dim")
    for entry in state.entries:
        style = OUTCOME_STYLES.get(entry.outcome.value, "white")
        table.add_row(entry.step, f"[{style}]{entry.outcome.value}[/{style}]", entry.detail)
    console.print(table)

    records = state.dns_records()
    if records:
        dns_table = Table(title=f"DNS records for {state.custom_domain} (proxied)")
        dns_table.add_column("Type", style="cyan")
        dns_table.add_column("Name")
        dns_table.add_column("Content", style="green")
        for record_type, name, content in records:
            dns_table.add_row(record_type, name, content)
        console.print(dns_table)

    if env_file:
        console.print(f"[green]Environment written to[/green] {env_file}")


@main.command()
@click.argument("host")
@click.option("--storage", default=None, help="Path to tenant storage file")
@click.option("--root-domain", default=None, help="Platform root domain (default: CUSTOM_DOMAIN)")
def resolve(host: str, storage: str | None, root_domain: str | None):
    """Classify a request host and show the tenant it resolves to."""
    asyncio.run(_resolve_async(host, storage, root_domain))


async def _resolve_async(host: str, storage: str | None, root_domain: str | None):
    """Async implementation of resolve command."""
    from hostplane.domains import HostnameClassifier

    cfg = get_config()
    root = root_domain or cfg.root_domain
    if not root:
        console.print("[red]Error:[/red] No root domain configured (set CUSTOM_DOMAIN or --root-domain)")
        sys.exit(1)

    store = _open_store(cfg, storage, root)
    classifier = HostnameClassifier(
        store,
        root,
        reserved_labels=cfg.platform.reserved_labels,
        extra_platform_hosts=[cfg.provider.fallback_origin or f"my.{root}"],
    )
    resolution = await classifier.resolve(host)

    content = (
        f"[bold]Host:[/bold] {resolution.host}\n"
        f"[bold]Class:[/bold] {resolution.host_class.value}"
    )
    if resolution.tenant:
        content += (
            f"\n[bold]Tenant ID:[/bold] {resolution.tenant.id}\n"
            f"[bold]Tenant:[/bold] {resolution.tenant.name or resolution.tenant.subdomain_label}"
        )
    console.print(Panel(content, title="Host Resolution", border_style="cyan"))

    if resolution.host_class.value == "unresolved":
        sys.exit(1)


@main.group()
def tenant():
    """Manage tenants.

    Examples:

        hostplane tenant add "Acme Store" --label acme

        hostplane tenant list

        hostplane tenant remove <tenant-id>
    """
    pass


@tenant.command("add")
@click.argument("name")
@click.option("--label", required=True, help="Subdomain label (served at <label>.<root domain>)")
@click.option("--storage", default=None, help="Path to tenant storage file")
def tenant_add(name: str, label: str, storage: str | None):
    """Register a new tenant."""
    asyncio.run(_tenant_add_async(name, label, storage))


async def _tenant_add_async(name: str, label: str, storage: str | None):
    """Async implementation of tenant add command."""
    cfg = get_config()
    store = _open_store(cfg, storage)

    try:
        created = await store.create(name, label)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    host = f"{created.subdomain_label}.{cfg.root_domain}" if cfg.root_domain else created.subdomain_label
    console.print(
        Panel(
            f"[green]Tenant created![/green]\n\n"
            f"[bold]ID:[/bold] {created.id}\n"
            f"[bold]Name:[/bold] {created.name}\n"
            f"[bold]Host:[/bold] {host}",
            title="Tenant Registration",
            border_style="green",
        )
    )


@tenant.command("list")
@click.option("--storage", default=None, help="Path to tenant storage file")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def tenant_list(storage: str | None, json_output: bool):
    """List all tenants."""
    asyncio.run(_tenant_list_async(storage, json_output))


async def _tenant_list_async(storage: str | None, json_output: bool):
    """Async implementation of tenant list command."""
    import json

    cfg = get_config()
    store = _open_store(cfg, storage)
    tenants = await store.list_all()

    if json_output:
        console.print(json.dumps([t.to_dict() for t in tenants], indent=2, default=str))
        return

    if not tenants:
        console.print("[dim]No tenants registered[/dim]")
        return

    table = Table(title="Tenants")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Subdomain", style="cyan")
    table.add_column("Custom Hostname")
    table.add_column("Created At")

    for t in tenants:
        table.add_row(
            t.id[:12] + "..." if len(t.id) > 12 else t.id,
            t.name,
            t.subdomain_label,
            t.custom_hostname or "[dim]-[/dim]",
            t.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@tenant.command("remove")
@click.argument("tenant_id")
@click.option("--storage", default=None, help="Path to tenant storage file")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def tenant_remove(tenant_id: str, storage: str | None, yes: bool):
    """Remove a tenant, releasing its custom hostname first."""
    if not yes and not click.confirm(f"Are you sure you want to remove tenant '{tenant_id}'?"):
        console.print("[dim]Cancelled[/dim]")
        return

    asyncio.run(_tenant_remove_async(tenant_id, storage))


async def _tenant_remove_async(tenant_id: str, storage: str | None):
    """Async implementation of tenant remove command."""
    cfg = get_config()
    async with _build_client(cfg) as client:
        manager = _build_manager(cfg, client, storage)
        removed = await manager.remove_tenant(tenant_id)

    if removed:
        console.print(f"[green]Tenant removed:[/green] {tenant_id}")
    else:
        console.print(f"[red]Could not remove tenant:[/red] {tenant_id}")
        sys.exit(1)


def _build_manager(cfg: HostplaneConfig, client: UpstreamClient, storage: str | None):
    from hostplane.domains import CustomDomainManager, CustomHostnameController

    provider = cfg.provider
    store = _open_store(cfg, storage)
    controller = CustomHostnameController(client, provider.zone_id)
    return CustomDomainManager(
        store,
        controller,
        root_domain=cfg.root_domain,
        fallback_origin=provider.fallback_origin,
    )


def _print_record(record, title: str) -> None:
    color = STATUS_COLORS.get(record.status.value, "white")
    content = (
        f"[bold]Hostname:[/bold] {record.hostname}\n"
        f"[bold]Status:[/bold] [{color}]{record.status.value}[/{color}]"
    )
    if record.ssl:
        content += f"\n[bold]Certificate:[/bold] {record.ssl.status or 'N/A'}"
        if record.ssl.validation_method:
            content += f" ({record.ssl.validation_method})"
        for validation in record.ssl.validation_records:
            content += f"\n  {validation.type.upper()} {validation.name} -> {validation.value}"
        for error in record.ssl.validation_errors:
            content += f"\n  [red]{error}[/red]"
    if record.ownership_verification:
        ov = record.ownership_verification
        content += f"\n[bold]Ownership:[/bold] {ov.type.upper()} {ov.name} -> {ov.value}"
    for error in record.verification_errors:
        content += f"\n[red]Error:[/red] {error}"

    console.print(Panel(content, title=title, border_style=color))


@main.group()
def domain():
    """Manage tenant custom domains.

    Custom domains let a tenant serve its site from its own hostname
    (e.g. shop.acme.com) instead of <label>.<root domain>.

    Examples:

        hostplane domain connect <tenant-id> shop.acme.com

        hostplane domain refresh <tenant-id>

        hostplane domain status shop.acme.com

        hostplane domain list

        hostplane domain remove <tenant-id>
    """
    pass


@domain.command("connect")
@click.argument("tenant_id")
@click.argument("hostname")
@click.option("--storage", default=None, help="Path to tenant storage file")
def domain_connect(tenant_id: str, hostname: str, storage: str | None):
    """Connect a custom hostname to a tenant.

    After connecting, you'll receive the DNS record the tenant must configure.
    """
    asyncio.run(_domain_connect_async(tenant_id, hostname, storage))


async def _domain_connect_async(tenant_id: str, hostname: str, storage: str | None):
    """Async implementation of domain connect command."""
    cfg = get_config()
    async with _build_client(cfg) as client:
        manager = _build_manager(cfg, client, storage)
        try:
            record = await manager.connect_domain(tenant_id, hostname)
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    _print_record(record, "Custom Domain")
    if record.status.value == "error":
        sys.exit(1)
    console.print(Panel(manager.dns_instructions(hostname), title="DNS Setup", border_style="yellow"))


@domain.command("status")
@click.argument("hostname")
def domain_status(hostname: str):
    """Query the upstream status of a custom hostname."""
    asyncio.run(_domain_status_async(hostname))


async def _domain_status_async(hostname: str):
    """Async implementation of domain status command."""
    from hostplane.domains import CustomHostnameController, HostnameStatus

    cfg = get_config()
    async with _build_client(cfg) as client:
        controller = CustomHostnameController(client, cfg.provider.zone_id)
        record = await controller.get_status(hostname)

    if record.status == HostnameStatus.NOT_FOUND:
        console.print(f"[red]Custom hostname not found:[/red] {record.hostname}")
        sys.exit(1)

    _print_record(record, f"Custom Hostname: {record.hostname}")


@domain.command("refresh")
@click.argument("tenant_id")
@click.option("--storage", default=None, help="Path to tenant storage file")
def domain_refresh(tenant_id: str, storage: str | None):
    """Poll the upstream once and store the tenant's custom hostname status."""
    asyncio.run(_domain_refresh_async(tenant_id, storage))


async def _domain_refresh_async(tenant_id: str, storage: str | None):
    """Async implementation of domain refresh command."""
    cfg = get_config()
    async with _build_client(cfg) as client:
        manager = _build_manager(cfg, client, storage)
        try:
            record = await manager.refresh_status(tenant_id)
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    _print_record(record, f"Custom Hostname: {record.hostname}")


@domain.command("list")
@click.option("--storage", default=None, help="Path to tenant storage file")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def domain_list(storage: str | None, json_output: bool):
    """List tenants with a custom hostname."""
    asyncio.run(_domain_list_async(storage, json_output))


async def _domain_list_async(storage: str | None, json_output: bool):
    """Async implementation of domain list command."""
    import json

    cfg = get_config()
    store = _open_store(cfg, storage)
    tenants = [t for t in await store.list_all() if t.custom_hostname]

    if json_output:
        data = [
            {
                "tenant_id": t.id,
                "custom_hostname": t.custom_hostname,
                "status": t.custom_hostname_status,
            }
            for t in tenants
        ]
        console.print(json.dumps(data, indent=2))
        return

    if not tenants:
        console.print("[dim]No custom domains connected[/dim]")
        return

    table = Table(title="Custom Domains")
    table.add_column("Hostname", style="cyan")
    table.add_column("Tenant ID", style="dim")
    table.add_column("Status", justify="center")
    table.add_column("Modified At")

    for t in tenants:
        status = t.custom_hostname_status or "unknown"
        color = STATUS_COLORS.get(status, "white")
        table.add_row(
            t.custom_hostname,
            t.id[:12] + "..." if len(t.id) > 12 else t.id,
            f"[{color}]{status}[/{color}]",
            t.modified_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@domain.command("remove")
@click.argument("tenant_id")
@click.option("--storage", default=None, help="Path to tenant storage file")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def domain_remove(tenant_id: str, storage: str | None, yes: bool):
    """Disconnect a tenant's custom hostname."""
    if not yes and not click.confirm(f"Remove the custom domain of tenant '{tenant_id}'?"):
        console.print("[dim]Cancelled[/dim]")
        return

    asyncio.run(_domain_remove_async(tenant_id, storage))


async def _domain_remove_async(tenant_id: str, storage: str | None):
    """Async implementation of domain remove command."""
    from hostplane.domains import DeleteOutcome

    cfg = get_config()
    async with _build_client(cfg) as client:
        manager = _build_manager(cfg, client, storage)
        try:
            outcome = await manager.disconnect_domain(tenant_id)
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    if outcome is DeleteOutcome.DELETED:
        console.print(f"[green]Custom domain removed for tenant:[/green] {tenant_id}")
    elif outcome is DeleteOutcome.NOT_FOUND:
        console.print(f"[yellow]No custom domain to remove for tenant:[/yellow] {tenant_id}")
    else:
        console.print(f"[red]Could not remove custom domain for tenant:[/red] {tenant_id}")
        sys.exit(1)


@main.group()
def config():
    """View and export configuration settings.

    Provider settings use the CLOUDFLARE_* / CUSTOM_DOMAIN variables,
    operational settings the HOSTPLANE_ prefix.

    Examples:

        hostplane config show            # Show all config settings

        hostplane config export          # Export as env vars
    """
    pass


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--section", "-s", help="Show only specific section (provider, platform)")
def config_show(json_output: bool, section: str | None):
    """Show current configuration settings.

    Credentials are masked.
    """
    cfg = get_config()
    display = cfg.to_display_dict()

    if section:
        section = section.lower()
        if section not in display:
            console.print(f"[red]Unknown section:[/red] {section}")
            console.print(f"[dim]Available: {', '.join(display.keys())}[/dim]")
            sys.exit(1)
        display = {section: display[section]}

    if json_output:
        import json
        console.print(json.dumps(display, indent=2))
        return

    console.print(BANNER, style="cyan")
    console.print("[bold]Current Configuration[/bold]\n")

    for section_name, settings in display.items():
        table = Table(title=section_name.replace("_", " ").title())
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        table.add_column("Env Variable", style="dim")

        for key, value in settings.items():
            if section_name == "provider":
                env_var = PROVIDER_ENV_NAMES.get(key, key.upper())
            else:
                env_var = f"HOSTPLANE_{key.upper()}"
            value_str = str(value) if value is not None else "[dim]None[/dim]"
            table.add_row(key, value_str, env_var)

        console.print(table)
        console.print()


@config.command("export")
@click.option("--shell", type=click.Choice(["bash", "powershell", "cmd"]), default="bash", help="Shell format")
def config_export(shell: str):
    """Export current configuration as environment variables.

    Outputs commands to set all config values as env vars. Unset values are skipped.
    """
    cfg = get_config()
    env_dict = cfg.to_env_dict()

    console.print(f"# Hostplane Configuration Export ({shell})")
    console.print("# Copy and paste or save to a file\n")

    for key, value in env_dict.items():
        if not value:
            continue
        if shell == "bash":
            console.print(f'export {key}="{value}"')
        elif shell == "powershell":
            console.print(f'$env:{key}="{value}"')
        elif shell == "cmd":
            console.print(f"set {key}={value}")


@main.command()
@click.option("--bind", default=None, help="Address to listen on (default: HOSTPLANE_BIND)")
@click.option("--storage", default=None, help="Path to tenant storage file")
def serve(bind: str | None, storage: str | None):
    """Run the request-time host routing app."""
    from aiohttp import web

    from hostplane.domains import HostnameClassifier
    from hostplane.server import create_app, parse_bind

    cfg = get_config()
    root = cfg.root_domain
    if not root:
        console.print("[red]Error:[/red] No root domain configured (set CUSTOM_DOMAIN)")
        sys.exit(1)

    platform = cfg.platform
    store = _open_store(cfg, storage, root)
    classifier = HostnameClassifier(
        store,
        root,
        reserved_labels=platform.reserved_labels,
        extra_platform_hosts=[cfg.provider.fallback_origin or f"my.{root}"],
    )
    app = create_app(store, classifier, platform.namespace_name)

    host, port = parse_bind(bind or platform.bind)
    console.print(f"Serving [cyan]{root}[/cyan] on {host}:{port}", style="green")
    web.run_app(app, host=host, port=port, print=None)


if __name__ == "__main__":
    main()
