"""HoneyGuard CLI."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from honeyguard.core import get_logger, get_settings, setup_logging
from honeyguard.detection.models import RequestSample
from honeyguard.engine import ThreatEngine
from honeyguard.history import InMemoryHistory
from honeyguard.honeypot.models import HoneypotOrigin, HoneypotSummary
from honeyguard.honeypot.sources import DEFAULT_LOG_PATHS, read_log_records
from honeyguard.simulation import TrafficSimulator

app = typer.Typer(name="honeyguard", help="Decoy web traffic threat scoring")
console = Console()
logger = get_logger(__name__)

LEVEL_STYLES = {"LOW": "green", "MEDIUM": "yellow", "HIGH": "red", "CRITICAL": "bold red"}


def _summary_table(summary: HoneypotSummary, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total Events", str(summary.total_events))
    table.add_row("Unique Source IPs", str(summary.unique_source_ips))
    table.add_row("Retained Events", str(summary.retained_events))
    for attack_type, count in sorted(summary.attack_types.items()):
        table.add_row(f"Attack: {attack_type}", str(count))
    for severity, count in sorted(summary.severity_counts.items()):
        table.add_row(f"Severity: {severity}", str(count))
    return table


@app.command()
def score(
    source_ip: str = typer.Option("127.0.0.1", "--ip", "-i", help="Source IP"),
    method: str = typer.Option("GET", "--method", "-m", help="HTTP method"),
    endpoint: str = typer.Option("/", "--endpoint", "-e", help="Request path"),
    payload: Optional[str] = typer.Option(None, "--payload", "-p", help="Request body"),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", "-a", help="Client agent"),
):
    """Score a single request against an empty history."""
    setup_logging()
    sample = RequestSample(
        source_ip=source_ip,
        method=method,
        endpoint=endpoint,
        payload=payload,
        user_agent=user_agent,
    )

    async def run():
        engine = ThreatEngine()
        scored = await engine.score_request(sample, InMemoryHistory())
        result = scored.classification

        table = Table(title=f"{method} {endpoint} from {source_ip}")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Label", result.label.value)
        table.add_row("Confidence", f"{result.confidence:.3f}")
        table.add_row("Threat Level", scored.threat_level.value)
        table.add_row("Attack Type", scored.attack_type)
        table.add_row("Blocked", "yes" if scored.is_blocked else "no")
        table.add_row("Anomaly Score", f"{scored.anomaly.score:.3f}")
        table.add_row("Novelty Score", f"{result.novelty_score:.3f}")
        table.add_row("Pattern Score", f"{result.pattern_score:.3f}")
        table.add_row("Patterns", ", ".join(result.detected_patterns) or "-")
        table.add_row("Contributing Models", ", ".join(result.contributing_models))
        console.print(table)

        alert = scored.to_alert()
        if alert is not None:
            console.print(f"\n[red]{alert.title}[/red]: {alert.description}")

    asyncio.run(run())


@app.command()
def ingest(
    origin: HoneypotOrigin = typer.Option(..., "--origin", "-o", help="Honeypot that wrote the log"),
    path: Optional[Path] = typer.Argument(None, help="JSON-lines log file (default: the origin's standard path)"),
):
    """Normalize a honeypot log file and print the flush summary."""
    setup_logging()
    path = path or DEFAULT_LOG_PATHS[origin.value]
    if not path.exists():
        console.print(f"[red]Log file not found: {path}[/red]")
        raise typer.Exit(code=1)

    async def run():
        engine = ThreatEngine()
        accepted = rejected = 0
        for record in read_log_records(path):
            if await engine.ingest_honeypot_event(record, origin) is None:
                rejected += 1
            else:
                accepted += 1

        logger.info(
            "honeypot_log_ingested",
            path=str(path),
            origin=origin.value,
            accepted=accepted,
            rejected=rejected,
        )
        summary = await engine.flush_honeypot()
        console.print(_summary_table(summary, f"{origin.value} log: {path}"))
        console.print(f"[dim]{accepted} accepted, {rejected} rejected[/dim]")

    asyncio.run(run())


@app.command()
def simulate(
    count: int = typer.Option(20, "--count", "-n", min=1, help="Requests to generate"),
    honeypot_events: int = typer.Option(10, "--honeypot", help="Honeypot records per origin"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed"),
):
    """Run synthetic traffic through the engine and print the results."""
    setup_logging()
    settings = get_settings()
    if seed is not None:
        settings = settings.model_copy(update={"isolation_seed": seed})

    async def run():
        engine = ThreatEngine(settings=settings)
        history = InMemoryHistory()
        simulator = TrafficSimulator(seed=seed)

        table = Table(title=f"Simulated Traffic ({count} requests)")
        table.add_column("#", style="dim")
        table.add_column("Source IP", style="cyan")
        table.add_column("Request")
        table.add_column("Label")
        table.add_column("Confidence")
        table.add_column("Anomaly")
        table.add_column("Level")
        table.add_column("Attack")

        alerts = 0
        for i, sample in enumerate(simulator.requests(count), start=1):
            scored = await engine.score_request(sample, history)
            history.append(scored.to_traffic_record(response_code=200))
            if scored.should_alert:
                alerts += 1
            level = scored.threat_level.value
            table.add_row(
                str(i),
                sample.source_ip,
                f"{sample.method} {sample.endpoint}",
                scored.classification.label.value,
                f"{scored.classification.confidence:.2f}",
                f"{scored.anomaly.score:.2f}",
                f"[{LEVEL_STYLES[level]}]{level}[/{LEVEL_STYLES[level]}]",
                f"{scored.attack_type} (blocked)" if scored.is_blocked else scored.attack_type,
            )
        console.print(table)
        console.print(f"[yellow]{alerts} of {count} requests would raise an alert[/yellow]")

        for _ in range(honeypot_events):
            await engine.ingest_honeypot_event(simulator.cowrie_record(), HoneypotOrigin.COWRIE)
            await engine.ingest_honeypot_event(simulator.dionaea_record(), HoneypotOrigin.DIONAEA)
        if honeypot_events:
            summary = await engine.flush_honeypot()
            console.print(_summary_table(summary, "Honeypot Summary"))

        findings = await engine.sweep_anomalies(history)
        if findings:
            console.print("\n[red]Flagged source IPs:[/red]")
            for finding in findings:
                console.print(f"  - {finding.source_ip} ({finding.mean_score:.2f}): {finding.reason}")
        else:
            console.print("\n[green]Anomaly sweep flagged no source IPs[/green]")

    asyncio.run(run())


@app.command()
def models():
    """List the scoring strategies in the ensemble."""
    engine = ThreatEngine()
    table = Table(title="Scoring Strategies")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Features")
    for entry in engine.classifier.catalog():
        table.add_row(
            entry["name"],
            entry["type"],
            "\n".join(entry["features"]),
        )
    console.print(table)


if __name__ == "__main__":
    app()
