"""
Crypto Detector: CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Open the SQLite store and execute the action.
  5. Report the result to stdout.

Install and run::

    pip install -e .
    crypto-detector --help
    crypto-detector init-db
    crypto-detector validate-config --mode speculative
    crypto-detector create-cycle --assets data/snapshot.json --hours 24
    crypto-detector complete-due --prices data/prices.json
    crypto-detector scenarios cycle_1718000000000_ab12cd
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="crypto-detector",
    help="Asset scoring, cycle validation and scenario simulation CLI.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from crypto_detector.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config, console: bool = True) -> None:
    from crypto_detector.utils.logging import configure_logging
    configure_logging(config.logging, console=console)


def _algorithm_config_or_exit(config, mode: Optional[str]):
    """Build and validate the algorithm config for ``mode``; exit on violations."""
    from crypto_detector.models.algorithm import validate_algorithm_config
    from crypto_detector.taxonomy.classification import ModelMode

    try:
        resolved = ModelMode(mode.lower()) if mode else config.cycles.default_mode
    except ValueError:
        typer.echo(f"[ERROR] Unknown mode '{mode}'.", err=True)
        raise typer.Exit(code=1)

    try:
        algo = config.algorithm_config(resolved)
    except ValueError as exc:
        typer.echo(f"[ERROR] Invalid algorithm config: {exc}", err=True)
        raise typer.Exit(code=1)

    violations = validate_algorithm_config(algo)
    if violations:
        typer.echo(f"[ERROR] Algorithm config ({resolved.value}) has {len(violations)} violation(s):", err=True)
        for message in violations:
            typer.echo(f"  - {message}", err=True)
        raise typer.Exit(code=1)
    return algo


def _load_file_or_exit(loader, path: str):
    try:
        return loader(Path(path))
    except FileNotFoundError:
        typer.echo(f"[ERROR] File not found: {path}", err=True)
        raise typer.Exit(code=1)
    except (ValueError, json.JSONDecodeError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)


@contextmanager
def _open_store(config) -> Iterator:
    """Yield a ``SQLiteKeyValueStore`` inside one committed transaction."""
    from crypto_detector.db.connection import get_connection
    from crypto_detector.db.repositories.kv_repo import SQLiteKeyValueStore
    from crypto_detector.db.schema import apply_schema

    with get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        yield SQLiteKeyValueStore(conn)


def _manager(config, store):
    from crypto_detector.cycles.manager import CycleManager
    from crypto_detector.db.repositories.cycle_repo import CycleRepository

    return CycleManager(
        CycleRepository(store),
        history_limit=config.cycles.history_limit,
        temporal_model=config.cycles.temporal_model,
    )


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Initialize the SQLite database and apply schema + migrations.

    Safe to run multiple times.
    """
    from crypto_detector.db.connection import get_connection
    from crypto_detector.db.migrations import run_migrations
    from crypto_detector.db.schema import ALL_TABLE_NAMES, apply_schema

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        migrations_applied = run_migrations(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    mode: Optional[str] = typer.Option(None, "--mode", help="normal | speculative (default: both)."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    show_full: bool = typer.Option(False, "--full", help="Print the resolved algorithm config."),
) -> None:
    """Validate app config and the per-mode algorithm configs.

    Lists every invariant violation; exits with code 1 if any are found.
    """
    from crypto_detector.models.algorithm import validate_algorithm_config
    from crypto_detector.taxonomy.classification import ModelMode

    config = _load_config_or_exit(config_path)

    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Default mode:     {config.cycles.default_mode.value}")
    typer.echo(f"  Cycle duration:   {config.cycles.default_duration_hours:g}h")
    typer.echo(f"  Temporal model:   {config.cycles.temporal_model.value}")
    typer.echo(
        f"  Active trading:   TP {config.trading.take_profit_pct:g}% / "
        f"SL {config.trading.stop_loss_pct:g}% / hold {config.trading.max_hold_cycles}"
    )
    typer.echo(f"  Log level:        {config.logging.level}")

    try:
        modes = [ModelMode(mode.lower())] if mode else list(ModelMode)
    except ValueError:
        typer.echo(f"[ERROR] Unknown mode '{mode}'.", err=True)
        raise typer.Exit(code=1)
    failed = False
    for m in modes:
        try:
            algo = config.algorithm_config(m)
        except ValueError as exc:
            typer.echo(f"[ERROR] {m.value}: {exc}", err=True)
            failed = True
            continue
        violations = validate_algorithm_config(algo)
        if violations:
            failed = True
            typer.echo(f"[ERROR] {m.value}: {len(violations)} violation(s)")
            for message in violations:
                typer.echo(f"  - {message}")
        else:
            typer.echo(f"[OK] {m.value} algorithm config valid (version {algo.version}).")
        if show_full:
            typer.echo(json.dumps(algo.model_dump(mode="json"), indent=2))

    if failed:
        raise typer.Exit(code=1)


@app.command("score")
def score(
    assets_file: str = typer.Option(..., "--assets", help="JSON list of asset metrics."),
    signals_file: Optional[str] = typer.Option(None, "--signals", help="JSON signals keyed by asset id."),
    mode: Optional[str] = typer.Option(None, "--mode", help="normal | speculative."),
    as_json: bool = typer.Option(False, "--json", help="Emit full ScoreResults as JSON."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Score assets without creating a cycle."""
    from crypto_detector.ingestion.files import load_assets, load_signals
    from crypto_detector.scoring.engine import score_assets

    config = _load_config_or_exit(config_path)
    # JSON goes to stdout; keep log lines off the terminal
    _configure_logging(config, console=not as_json)
    algo = _algorithm_config_or_exit(config, mode)

    assets = _load_file_or_exit(load_assets, assets_file)
    signals = _load_file_or_exit(load_signals, signals_file) if signals_file else {}
    scored = score_assets(assets, algo, signals)

    if as_json:
        typer.echo(json.dumps([s.model_dump(mode="json") for s in scored], indent=2))
        return

    typer.echo(f"{'SYMBOL':<10} {'BOOST':>6}  {'CLASS':<11} {'PRED%':>7}  REASON")
    for s in sorted(scored, key=lambda x: x.score.boost_power, reverse=True):
        typer.echo(
            f"{s.metrics.symbol:<10} {s.score.boost_power:>6.3f}  "
            f"{s.score.classification.value:<11} {s.score.predicted_change:>7.2f}  {s.score.reason}"
        )


@app.command("create-cycle")
def create_cycle(
    assets_file: str = typer.Option(..., "--assets", help="JSON list of asset metrics."),
    signals_file: Optional[str] = typer.Option(None, "--signals", help="JSON signals keyed by asset id."),
    hours: Optional[float] = typer.Option(None, "--hours", help="Cycle duration in hours."),
    mode: Optional[str] = typer.Option(None, "--mode", help="normal | speculative."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Score a snapshot and open a new active cycle."""
    from crypto_detector.db.repositories.calibration_repo import CalibrationRepository
    from crypto_detector.ingestion.files import load_assets, load_signals
    from crypto_detector.scoring.engine import score_assets
    from crypto_detector.utils.time_utils import hours_to_ms

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    algo = _algorithm_config_or_exit(config, mode)

    assets = _load_file_or_exit(load_assets, assets_file)
    signals = _load_file_or_exit(load_signals, signals_file) if signals_file else {}
    duration_ms = hours_to_ms(hours) if hours is not None else config.cycles.default_duration_ms

    with _open_store(config) as store:
        calibration = CalibrationRepository(store).load()
        scored = score_assets(assets, algo, signals, calibration)
        try:
            cycle = _manager(config, store).create_cycle(scored, algo, duration_ms, algo.model_type)
        except ValueError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)

    typer.echo(f"[OK] Cycle {cycle.id} created: {len(cycle.snapshot)} assets, ends {cycle.end_time.isoformat()}")


@app.command("list-cycles")
def list_cycles(
    completed: bool = typer.Option(False, "--completed", help="List completed instead of active."),
    limit: Optional[int] = typer.Option(None, "--limit", help="Max completed cycles to show."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List active (default) or completed cycles."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        manager = _manager(config, store)
        cycles = manager.list_completed(limit) if completed else manager.list_active()

    if not cycles:
        typer.echo("No cycles.")
        return
    for c in cycles:
        accuracy = f"{c.metrics.success_rate:.1f}%" if c.metrics else "-"
        typer.echo(
            f"{c.id}  {c.status.value:<9} {c.mode.value:<11} "
            f"{c.duration_hours:>6.1f}h  assets={len(c.snapshot):<4} accuracy={accuracy}"
        )


@app.command("complete-cycle")
def complete_cycle(
    cycle_id: str = typer.Argument(..., help="Cycle id."),
    prices_file: str = typer.Option(..., "--prices", help="JSON prices file."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Complete one cycle against the given prices."""
    from crypto_detector.cycles.errors import CycleError
    from crypto_detector.ingestion.files import load_prices

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    prices = _load_file_or_exit(load_prices, prices_file)

    with _open_store(config) as store:
        try:
            cycle = _manager(config, store).complete_cycle(cycle_id, prices)
        except CycleError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)

    m = cycle.metrics
    typer.echo(f"[OK] Cycle {cycle.id} completed: {m.correct}/{m.total} correct ({m.success_rate:.1f}%).")


@app.command("complete-due")
def complete_due(
    prices_file: str = typer.Option(..., "--prices", help="JSON prices file."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Complete every active cycle whose window has closed."""
    from crypto_detector.ingestion.files import load_prices

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    quotes = _load_file_or_exit(load_prices, prices_file)

    def lookup(asset_ids):
        wanted = set(asset_ids)
        return [q for q in quotes if q.asset_id in wanted]

    with _open_store(config) as store:
        report = _manager(config, store).complete_due(lookup)

    typer.echo(f"  Completed:  {len(report.completed)}")
    typer.echo(f"  Incomplete: {len(report.incomplete)} (left active for retry)")
    for cycle_id in report.incomplete:
        typer.echo(f"    - {cycle_id}")
    typer.echo("[OK] Due-cycle sweep finished.")


@app.command("exclude")
def exclude(
    cycle_id: str = typer.Argument(..., help="Completed cycle id."),
    asset_ids: list[str] = typer.Argument(None, help="Asset ids to exclude (none clears)."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Set which results are excluded from a completed cycle's statistics."""
    from crypto_detector.cycles.errors import CycleError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        try:
            cycle = _manager(config, store).set_excluded_results(cycle_id, asset_ids or [])
        except CycleError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)

    typer.echo(
        f"[OK] {len(cycle.excluded_results)} excluded; "
        f"success rate now {cycle.metrics.success_rate:.1f}%."
    )


@app.command("scenarios")
def scenarios(
    cycle_id: str = typer.Argument(..., help="Completed cycle id."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Replay a completed cycle under alternative horizons and trading configs."""
    from crypto_detector.cycles.errors import CycleError
    from crypto_detector.scenarios.analysis import simulate_scenarios

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        manager = _manager(config, store)
        try:
            cycle = manager.get_cycle(cycle_id)
            analysis = simulate_scenarios(
                cycle, config.trading, manager.get_observations(cycle_id)
            )
        except CycleError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)

    typer.echo(f"Cycle {analysis.cycle_id} ({analysis.mode.value}), data quality: {analysis.data_quality.level}")
    if analysis.temporal_model_mismatch:
        typer.echo("  [WARN] Stored predictions used a different temporal model than the replay.")
    typer.echo("")
    typer.echo("Durations:")
    for d in analysis.duration_scenarios:
        rate = f"{d.metrics.success_rate:.1f}%" if d.metrics else "-"
        marker = " (actual)" if d.is_actual else ""
        typer.echo(f"  {d.label:<10} {d.status:<14} success={rate}{marker}")
    typer.echo("")
    typer.echo("Trading configs (ranked):")
    for key, score_value in analysis.trading.ranking:
        s = analysis.trading.scenarios[key].summary
        typer.echo(
            f"  {key:<13} score={score_value:.3f} win={s.win_rate:.1f}% "
            f"avgPnL={s.avg_pnl_pct:+.2f}% TP={s.tp_hits} SL={s.sl_hits} hold={s.max_hold_hits}"
        )
    feed = analysis.optimization_feed
    typer.echo("")
    if feed.recommended_params is not None:
        p = feed.recommended_params
        typer.echo(
            f"[OK] Recommended: {feed.best_trading_config} "
            f"(TP {p.take_profit_pct:g}% / SL {p.stop_loss_pct:g}% / hold {p.max_hold_cycles}); "
            f"best horizon {feed.best_duration_hours}h"
        )


@app.command("temporal-profile")
def temporal_profile(
    base: float = typer.Option(..., "--base", help="Canonical 12h prediction (percent)."),
    classification: str = typer.Option("INVERTIBLE", "--classification"),
    mode: str = typer.Option("normal", "--mode"),
) -> None:
    """Print Φ over standard horizons next to the pro-rata equivalent."""
    from crypto_detector.taxonomy.classification import ModelMode, normalize_classification
    from crypto_detector.temporal.transfer import build_temporal_profile

    try:
        resolved_mode = ModelMode(mode.lower())
    except ValueError:
        typer.echo(f"[ERROR] Unknown mode '{mode}'.", err=True)
        raise typer.Exit(code=1)

    cls = normalize_classification(classification)
    typer.echo(f"{'HOURS':>6} {'PHASE':<11} {'SCALE':>7} {'PRED%':>8} {'LINEAR%':>8}")
    for point in build_temporal_profile(base, cls, resolved_mode):
        typer.echo(
            f"{point.hours:>6g} {point.phase:<11} {point.scale_factor:>7.4f} "
            f"{point.predicted_change:>8.2f} {point.linear_equivalent:>8.2f}"
        )


@app.command("calibrate")
def calibrate(
    limit: Optional[int] = typer.Option(None, "--limit", help="Completed cycles to use."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Rebuild online calibration and compare Φ with completed-cycle history."""
    from crypto_detector.db.repositories.calibration_repo import CalibrationRepository
    from crypto_detector.scoring.calibration import (
        build_calibration_report,
        observations_from_cycle,
        rebuild_calibration,
    )
    from crypto_detector.temporal.calibration import calibrate_from_history

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        cycles = _manager(config, store).list_completed(limit)
        outcomes = [o for c in cycles for o in observations_from_cycle(c)]
        state = rebuild_calibration(outcomes)
        CalibrationRepository(store).save(state)

    report = build_calibration_report(state)
    typer.echo("Online calibration:")
    for name, cls_report in report.classes.items():
        typer.echo(
            f"  {name:<11} n={cls_report.samples:<4} bias={cls_report.bias:+.2f} "
            f"scale={cls_report.scale:.3f} mae={cls_report.mae:.2f} [{cls_report.quality}] "
            f"{cls_report.diagnosis}"
        )

    temporal = calibrate_from_history(cycles)
    typer.echo("")
    if temporal.status != "calibrated":
        typer.echo(
            f"Temporal model: {temporal.status} "
            f"({temporal.cycles_used}/{temporal.min_cycles} cycles)."
        )
    else:
        typer.echo("Temporal model buckets:")
        for b in temporal.summary:
            flag = f" -> suggest {b.suggested_adjustment}" if b.suggested_adjustment is not None else ""
            typer.echo(
                f"  {b.key:<18} n={b.sample_count:<4} model={b.current_model_factor:.4f} "
                f"observed={b.avg_actual_ratio:.3f}{flag}"
            )
    typer.echo("[OK] Calibration saved.")


@app.command("stats")
def stats(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Global accuracy over retained completed cycles."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        g = _manager(config, store).global_stats()

    typer.echo(f"  Cycles:          {g.total_cycles}")
    typer.echo(f"  Predictions:     {g.total_predictions}")
    typer.echo(f"  Avg success:     {g.avg_success_rate:.1f}%")
    if g.best_cycle and g.worst_cycle:
        typer.echo(f"  Best cycle:      {g.best_cycle.cycle_id} ({g.best_cycle.success_rate:.1f}%)")
        typer.echo(f"  Worst cycle:     {g.worst_cycle.cycle_id} ({g.worst_cycle.success_rate:.1f}%)")


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
