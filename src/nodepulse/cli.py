"""Command-line interface for NodePulse."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from .config import settings
from .edge.agent import MetricsAgent, build_collector
from .edge.collector import CollectionError, MetricsCollector
from .edge.config import AgentConfig
from .edge.models import MetricDocument
from .edge.sender import DeliveryCoordinator, default_transports
from .utils import get_logger, setup_logging

app = typer.Typer(
    name="nodepulse",
    help="Host metrics agent with HTTP/WebSocket/UDP delivery",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def load_config(path: Optional[Path]) -> AgentConfig:
    """Load the agent config, exiting with a readable error on failure."""
    path = path or settings.config_path
    try:
        if path:
            logger.debug(f"Loading config from {path}")
            return AgentConfig.from_yaml(str(path))
        return AgentConfig.from_env()
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)


def render_document(document: MetricDocument) -> Table:
    """Render a metric document as a table."""
    data = document.to_dict()

    table = Table(title=f"{data['agentId']} @ {data['timestamp']}")
    table.add_column("Section", style="cyan")
    table.add_column("Field", style="white")
    table.add_column("Value", style="green")

    for section in ("cpu", "memory", "disk", "network", "processes", "docker"):
        values = data[section]
        if values is None:
            table.add_row(section, "-", "unavailable")
            continue
        for i, (key, value) in enumerate(values.items()):
            table.add_row(section if i == 0 else "", key, str(value))

    table.add_row("uptime", "seconds", str(data['uptime']))
    return table


async def _collect_one(collector: MetricsCollector, warmup: float) -> MetricDocument:
    collector.prime()
    await asyncio.sleep(warmup)
    return await collector.collect()


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
):
    """Run the agent until interrupted."""
    cfg = load_config(config)
    setup_logging(cfg.log_level, cfg.log_file or settings.log_file)

    agent = MetricsAgent(cfg)
    console.print(f"[bold]Starting agent {cfg.agent_id}[/bold] -> {cfg.host}")

    try:
        run_async(agent.run())
    except KeyboardInterrupt:
        pass


@app.command()
def collect(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw JSON document"),
    warmup: float = typer.Option(1.0, "--warmup", "-w", help="Seconds between baseline and sample"),
):
    """Collect one metric document and print it."""
    cfg = load_config(config)
    setup_logging(settings.log_level)

    try:
        document = run_async(_collect_one(build_collector(cfg), warmup))
    except CollectionError as e:
        console.print(f"[red]Collection failed: {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        console.print_json(document.to_json())
    else:
        console.print(render_document(document))


@app.command()
def send(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    warmup: float = typer.Option(1.0, "--warmup", "-w", help="Seconds between baseline and sample"),
):
    """Collect one document and try to deliver it once."""
    cfg = load_config(config)
    setup_logging(settings.log_level)

    async def _send():
        document = await _collect_one(build_collector(cfg), warmup)
        # One attempt cycle only: no retry queue or dead-letter store
        async with DeliveryCoordinator(
            transports=default_transports(cfg),
            timeout=cfg.transport_timeout,
        ) as coordinator:
            return await coordinator.attempt(document)

    try:
        result = run_async(_send())
    except CollectionError as e:
        console.print(f"[red]Collection failed: {e}[/red]")
        raise typer.Exit(1)

    logger.debug(f"Delivery result: {result}")
    if result.delivered:
        console.print(f"[green]Delivered via {result.transport}[/green]")
    else:
        console.print("[red]Delivery failed on every transport[/red]")
        for name, error in result.errors.items():
            console.print(f"  {name}: {error}")
        raise typer.Exit(1)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(..., help="Where to write the YAML config"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write the default configuration to a YAML file."""
    if path.exists() and not force:
        console.print(f"[red]{path} already exists (use --force to overwrite)[/red]")
        raise typer.Exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    AgentConfig().to_yaml(str(path))
    console.print(f"[green]Config written to: {path}[/green]")


if __name__ == "__main__":
    app()
