"""CLI entrypoint using Typer."""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from pathlib import Path

import typer

from profagent.agents.profiler import ProfilerAgent
from profagent.core.config import AppConfig
from profagent.core.errors import ConfigError
from profagent.core.logging import configure_logging
from profagent.profiles.builder import convert
from profagent.profiles.samples import SampleMode
from profagent.profiles.schema import decode_profile, iter_value_types, stack_names
from profagent.sampling.sampler import StackSampler

app = typer.Typer(help="Continuous profiling agent for the Cloud Profiler API")
logger = logging.getLogger(__name__)


def _load_agent(config: str) -> ProfilerAgent:
    try:
        cfg = AppConfig.from_yaml(config)
        configure_logging(cfg.agent.debug_logging)
        return ProfilerAgent(cfg)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)


@app.command()
def run(config: str = typer.Option("configs/agent.yaml", help="Path to config YAML")) -> None:
    # Demo: profagent run --config configs/agent.yaml
    # Purpose: poll the profiler API forever; Ctrl-C stops the loop.
    agent = _load_agent(config)
    agent.start()
    try:
        while agent.looper.running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping agent")
    finally:
        agent.stop(timeout=5)


@app.command()
def once(config: str = typer.Option("configs/agent.yaml", help="Path to config YAML")) -> None:
    # Demo: profagent once --config configs/agent.yaml
    # Purpose: run a single create/profile/update cycle and surface any error.
    agent = _load_agent(config)
    try:
        agent.run_cycle()
    finally:
        agent.stop()
    typer.echo("Profile uploaded")


@app.command()
def capture(
    output: Path = typer.Argument(..., help="Where to write the gzipped pprof file"),
    mode: SampleMode = typer.Option(SampleMode.WALL, help="cpu|wall|alloc"),
    duration: float = typer.Option(5.0, help="Seconds to sample"),
    interval: int = typer.Option(10_000, help="Microseconds per tick (allocations for alloc)"),
    debug: bool = typer.Option(False, help="Enable debug logging"),
) -> None:
    # Demo: profagent capture wall.pb.gz --mode wall --duration 3
    # Purpose: sample this process locally without talking to the API.
    configure_logging(debug)
    sample_set = StackSampler().sample(mode, interval, duration)
    data = convert(sample_set, sample_set.start_time, sample_set.end_time)
    output.write_bytes(data)
    typer.echo(f"Wrote {len(data)} bytes to {output}")


@app.command()
def inspect(
    path: Path = typer.Argument(..., help="pprof file, gzipped or raw"),
    top: int = typer.Option(10, help="Number of hottest leaf functions to list"),
) -> None:
    # Demo: profagent inspect wall.pb.gz --top 5
    # Purpose: summarize a pprof file as JSON.
    profile = decode_profile(path.read_bytes())
    leaf_values: Counter = Counter()
    for sample in profile.sample:
        names = stack_names(profile, sample)
        if names and len(sample.value) > 1:
            leaf_values[names[0]] += sample.value[1]
    summary = {
        "sample_types": [f"{t}/{u}" for t, u in iter_value_types(profile)],
        "period": profile.period,
        "time_nanos": profile.time_nanos,
        "duration_nanos": profile.duration_nanos,
        "samples": len(profile.sample),
        "functions": len(profile.function),
        "locations": len(profile.location),
        "top": [{"function": name, "value": value} for name, value in leaf_values.most_common(top)],
    }
    typer.echo(json.dumps(summary, indent=2))


if __name__ == "__main__":
    app()
