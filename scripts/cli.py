from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from dotenv import load_dotenv
from rich import print, print_json
from rich.markup import escape

from blueprints.library import BlueprintLibrary, coerce_inputs, missing_inputs
from forge.backend_factory import build_backend
from forge.config_loader import apply_forge_overrides, load_forge_config
from forge.config_models import ForgeConfig
from forge.prompt_executor import PromptExecutor
from forge.run_store import RunRecorder
from grading.service import TestRunOutcome, execute_blueprint, run_prompt_test, summarize_test_runs

app = typer.Typer(add_completion=False)
load_dotenv()


def _load_config(
    config_path: str,
    model: Optional[str],
    max_attempts: Optional[int],
    blueprints_dir: Optional[str],
) -> ForgeConfig:
    config = load_forge_config(Path(config_path))
    try:
        return apply_forge_overrides(
            config,
            model=model,
            max_attempts=max_attempts,
            blueprints_dir=blueprints_dir,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="max-attempts") from exc


def _start_run(config: ForgeConfig, command: str) -> RunRecorder:
    recorder = RunRecorder.start(Path(config.output.artifacts_dir), command)
    recorder.log(
        f"Starting {command}:"
        f" run_id={recorder.run_id}"
        f" provider={config.backend.provider}"
        f" model={config.backend.model}"
        f" max_attempts={config.executor.max_attempts}"
    )
    return recorder


def _build_executor(config: ForgeConfig, recorder: RunRecorder) -> PromptExecutor:
    backend = build_backend(config.backend, event_logger=recorder.event_logger("model_backend"))
    return PromptExecutor(
        backend=backend,
        max_attempts=config.executor.max_attempts,
        event_logger=recorder.event_logger("prompt_executor"),
    )


def _parse_inputs(pairs: List[str], inputs_file: Optional[str]) -> Dict[str, Any]:
    inputs: Dict[str, Any] = {}
    if inputs_file:
        with Path(inputs_file).open("r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise typer.BadParameter("inputs file must contain an object", param_hint="inputs-file")
        inputs.update(loaded)
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="input")
        inputs[key.strip()] = value
    return inputs


def _print_outcome(outcome: TestRunOutcome, name: str) -> None:
    if not outcome.ok:
        print(f"[red]ERROR[/red] {name} ({outcome.test_id}): {escape(str(outcome.error))}")
        return
    status = "[green]PASS[/green]" if outcome.passed else "[red]FAIL[/red]"
    print(f"{status} {name} ({outcome.test_id}) duration_ms={outcome.duration_ms:.1f} attempts={outcome.attempts}")
    for result in outcome.assertion_results:
        mark = "[green]✓[/green]" if result.passed else "[red]✗[/red]"
        print(f"  {mark} {escape(result.message)}")


@app.command("list")
def list_blueprints(
    config: str = typer.Option("profiles/forge.yaml", help="Config path"),
    blueprints_dir: Optional[str] = typer.Option(None, help="Blueprint directory override"),
):
    """List blueprints and their stored tests."""
    effective = _load_config(config, None, None, blueprints_dir)
    library = BlueprintLibrary(Path(effective.library.blueprints_dir))
    blueprints = library.list_blueprints()
    if not blueprints:
        print("Blueprints: (none)")
        return
    for blueprint in blueprints:
        hard = len(blueprint.hard_rules)
        print(
            f"{blueprint.name} id={blueprint.id} rules={len(blueprint.rules)} (hard={hard}) "
            f"fields={', '.join(blueprint.output_schema) or '(any)'}"
        )
        for stored_test in blueprint.tests:
            print(
                f"  test {stored_test.name or '(unnamed)'} id={stored_test.id} "
                f"assertions={len(stored_test.assertions or [])}"
            )


@app.command()
def execute(
    blueprint: str = typer.Argument(..., help="Blueprint id or name"),
    input_pairs: List[str] = typer.Option([], "--input", "-i", help="Input value as key=value"),
    inputs_file: Optional[str] = typer.Option(None, help="YAML/JSON file with input values"),
    config: str = typer.Option("profiles/forge.yaml", help="Config path"),
    model: Optional[str] = typer.Option(None, help="Model override"),
    max_attempts: Optional[int] = typer.Option(None, help="Attempt budget override"),
    blueprints_dir: Optional[str] = typer.Option(None, help="Blueprint directory override"),
):
    """Execute one blueprint and print the validated result."""
    effective = _load_config(config, model, max_attempts, blueprints_dir)
    library = BlueprintLibrary(Path(effective.library.blueprints_dir))
    target = library.get_blueprint(blueprint)
    try:
        inputs = coerce_inputs(target, _parse_inputs(input_pairs, inputs_file))
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="input") from exc

    recorder = _start_run(effective, f"execute blueprint={target.name}")
    unfilled = missing_inputs(target, inputs)
    if unfilled:
        recorder.log(f"Unfilled placeholders: {', '.join(unfilled)}", level="WARNING")
        print(f"[yellow]Warning:[/yellow] unfilled placeholders: {escape(', '.join(unfilled))}")

    executor = _build_executor(effective, recorder)
    payload = execute_blueprint(executor, target, inputs)

    recorder.write_report(
        {
            "blueprint_id": target.id,
            "inputs": inputs,
            "response": payload,
            "config_snapshot": effective.model_dump(mode="python"),
        },
    )
    recorder.log(f"Execution ok={payload['ok']}", level="INFO" if payload["ok"] else "ERROR")
    print_json(data=payload)
    print(f"Run log written to {recorder.log_path}")
    if not payload["ok"]:
        raise typer.Exit(code=1)


def _run_tests(effective: ForgeConfig, library: BlueprintLibrary, test_ids: List[str], command: str) -> None:
    recorder = _start_run(effective, command)
    executor = _build_executor(effective, recorder)

    outcomes: List[TestRunOutcome] = []
    for test_id in test_ids:
        stored_test, target = library.get_test(test_id)
        outcome = run_prompt_test(executor, stored_test, target)
        outcomes.append(outcome)
        recorder.log(
            f"test={stored_test.id} blueprint={target.id} ok={outcome.ok} passed={outcome.passed}",
            level="INFO" if outcome.passed else "ERROR",
        )
        _print_outcome(outcome, stored_test.name or stored_test.id)

    summary = summarize_test_runs(outcomes)
    report = recorder.write_report(
        {
            "summary": summary,
            "tests": {outcome.test_id: outcome.to_payload() for outcome in outcomes},
            "config_snapshot": effective.model_dump(mode="python"),
        },
    )
    summary_line = (
        f"Test summary: run_id={recorder.run_id} total={summary['total']} passed={summary['passed']} "
        f"failed={summary['failed']} errored={summary['errored']}"
    )
    recorder.log(summary_line)
    print(summary_line)
    print(f"Report written to {report}")
    if summary["passed"] != summary["total"]:
        raise typer.Exit(code=1)


@app.command("test")
def run_test(
    test_id: str = typer.Argument(..., help="Stored test id"),
    config: str = typer.Option("profiles/forge.yaml", help="Config path"),
    model: Optional[str] = typer.Option(None, help="Model override"),
    max_attempts: Optional[int] = typer.Option(None, help="Attempt budget override"),
    blueprints_dir: Optional[str] = typer.Option(None, help="Blueprint directory override"),
):
    """Run one stored test and grade its assertions."""
    effective = _load_config(config, model, max_attempts, blueprints_dir)
    library = BlueprintLibrary(Path(effective.library.blueprints_dir))
    _run_tests(effective, library, [test_id], f"test test_id={test_id}")


@app.command("test-all")
def test_all(
    blueprint: str = typer.Argument(..., help="Blueprint id or name"),
    config: str = typer.Option("profiles/forge.yaml", help="Config path"),
    model: Optional[str] = typer.Option(None, help="Model override"),
    max_attempts: Optional[int] = typer.Option(None, help="Attempt budget override"),
    blueprints_dir: Optional[str] = typer.Option(None, help="Blueprint directory override"),
):
    """Run every stored test of one blueprint."""
    effective = _load_config(config, model, max_attempts, blueprints_dir)
    library = BlueprintLibrary(Path(effective.library.blueprints_dir))
    tests = library.list_tests(blueprint)
    if not tests:
        print(f"Blueprint {blueprint} has no stored tests.")
        return
    _run_tests(effective, library, [t.id for t in tests], f"test-all blueprint={blueprint}")


if __name__ == "__main__":
    app()
