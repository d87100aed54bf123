"""CLI entry point for openapi-sampler."""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any

import click
import yaml

from openapi_sampler.config import EngineSettings, SamplingOptions, load_settings
from openapi_sampler.engine import SchemaEngine
from openapi_sampler.errors import SchemaEngineError
from openapi_sampler.models import DeclaredSchemas, Observation, RouteDefinition
from openapi_sampler.typesystem.compiler import compile_schema
from openapi_sampler.typesystem.render import to_json_schema


def _load_data(file_path: Path) -> Any:
    """Load a YAML or JSON file (JSON parses as YAML)."""
    return yaml.safe_load(file_path.read_text(encoding="utf-8"))


def _load_routes(file_path: Path) -> list[dict]:
    data = _load_data(file_path)
    routes = data.get("routes", []) if isinstance(data, dict) else data
    if not isinstance(routes, list):
        raise click.ClickException(f"{file_path} must contain a list of routes")
    return routes


def _load_traffic(file_path: Path) -> list[Observation]:
    """Read recorded responses from a JSON Lines file or a YAML/JSON list."""
    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix == ".jsonl":
        entries = [json.loads(line) for line in text.splitlines() if line.strip()]
    else:
        entries = yaml.safe_load(text) or []

    observations = []
    for entry in entries:
        body = entry.get("body")
        if body is not None and not isinstance(body, str):
            body = json.dumps(body)
        observations.append(
            Observation(
                path=entry["path"],
                method=entry.get("method", "get"),
                status_code=entry.get("status", 200),
                content_type=entry.get("content_type", "application/json"),
                body=body,
            )
        )
    return observations


def _build_settings(
    config_path: Path | None,
    seed_path: Path | None,
    mode: str | None,
    interval: float | None,
    max_count: int | None,
) -> EngineSettings:
    settings = load_settings(config_path) if config_path else EngineSettings()
    if seed_path is not None:
        settings.in_spec_path = seed_path

    overrides = {
        "sampling_mode": mode,
        "sampling_interval": interval,
        "sampling_max_count": max_count,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if overrides:
        base = settings.response_sampling or SamplingOptions()
        settings.response_sampling = base.model_copy(update=overrides)
    return settings


@click.group()
def main():
    """openapi-sampler: grow an OpenAPI document from declared schemas and live traffic."""
    pass


@main.command()
@click.argument("routes_path", type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output document path (.json or .yaml).")
@click.option("--traffic", "traffic_path", default=None, type=click.Path(exists=True, path_type=Path), help="Recorded responses (.jsonl, .json or .yaml).")
@click.option("--seed", "seed_path", default=None, type=click.Path(exists=True, path_type=Path), help="Existing document to start from.")
@click.option("--config", "config_path", default=None, type=click.Path(path_type=Path), help="Engine settings YAML file.")
@click.option("--mode", default=None, type=click.Choice(["combine", "individual"]), help="How differing responses are merged.")
@click.option("--interval", default=None, type=click.FloatRange(0, 1), help="Fraction of responses to sample.")
@click.option("--max-count", default=None, type=click.IntRange(min=0), help="Maximum samples per response.")
@click.option("-v", "--verbose", is_flag=True, help="Log every sampling decision.")
def build(
    routes_path: Path,
    output: Path,
    traffic_path: Path | None,
    seed_path: Path | None,
    config_path: Path | None,
    mode: str | None,
    interval: float | None,
    max_count: int | None,
    verbose: bool,
):
    """Register routes, replay recorded traffic and write the document."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    settings = _build_settings(config_path, seed_path, mode, interval, max_count)
    try:
        engine = SchemaEngine(settings)
    except SchemaEngineError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Registering routes from {routes_path}...")
    routes = _load_routes(routes_path)
    for route in routes:
        sampling = route.get("sampling")
        try:
            engine.register_route(
                route["path"],
                route.get("method", "get"),
                RouteDefinition.model_validate(route),
                DeclaredSchemas.model_validate(route),
                SamplingOptions.model_validate(sampling) if sampling else None,
            )
        except SchemaEngineError as e:
            raise click.ClickException(f"Route {route['path']}: {e}") from e
    click.echo(f"Registered {len(routes)} routes.")

    if traffic_path is not None:
        click.echo(f"Replaying traffic from {traffic_path}...")
        observations = _load_traffic(traffic_path)
        outcomes = Counter(engine.observe(observation).value for observation in observations)
        summary = ", ".join(f"{name}: {count}" for name, count in sorted(outcomes.items()))
        click.echo(f"Replayed {len(observations)} responses ({summary or 'none'}).")

    path = engine.save_document(output)
    click.echo(f"Document saved to {path}")


@main.command(name="compile")
@click.argument("schema_path", type=click.Path(exists=True, path_type=Path))
@click.option("--format", "fmt", default="json", type=click.Choice(["json", "yaml"]), help="Output format.")
def compile_command(schema_path: Path, fmt: str):
    """Compile a JSON Schema file and print its normalized form."""
    try:
        node = compile_schema(_load_data(schema_path))
    except SchemaEngineError as e:
        raise click.ClickException(str(e)) from e

    rendered = to_json_schema(node)
    if fmt == "json":
        click.echo(json.dumps(rendered, indent=2, ensure_ascii=False))
    else:
        click.echo(yaml.safe_dump(rendered, sort_keys=False, allow_unicode=True), nl=False)
