# loader.py
from __future__ import annotations

import runpy
from pathlib import Path
from typing import Any, Dict, List

import yaml

from . import dsl
from .errors import ConfigurationError
from .model import Pipeline, Step, StepKind
from .predicates import from_fields

YAML_SUFFIXES = (".yml", ".yaml")

_PIPELINE_KEYS = {"name", "channels", "allow_failures", "fast_finish", "mainline", "steps"}
_STEP_KEYS = {"name", "run", "kind", "cwd", "only", "skip"}


# ----------------------------------------------------------------------
# Python descriptors
# ----------------------------------------------------------------------

def _load_python(path: Path) -> Pipeline:
    """
    The file must define either:
      - pipeline() -> Pipeline
      - PIPELINE = Pipeline(...)

    DSL misuse inside the file (an unknown step kind, only() with no
    channels) surfaces as ConfigurationError, not as a crash.
    """
    module_name = f"matrixci_workflow_{path.stem}"
    try:
        globals_dict = runpy.run_path(str(path), run_name=module_name)
    except (TypeError, ValueError) as e:
        raise ConfigurationError([f"{type(e).__name__}: {e}"], source=str(path)) from e

    result = None
    fn = globals_dict.get("pipeline")
    if "PIPELINE" in globals_dict:
        result = globals_dict["PIPELINE"]
    elif callable(fn) and fn is not dsl.pipeline:
        try:
            result = fn()
        except TypeError as e:
            if "required positional argument" in str(e):
                raise ConfigurationError(
                    [
                        "pipeline() is called with no arguments but expects some. "
                        "Define `def pipeline(): return make_pipeline(...)` and import the DSL "
                        "helper under another name: `from matrixci.dsl import pipeline as make_pipeline`."
                    ],
                    source=str(path),
                ) from e
            raise ConfigurationError([f"TypeError: {e}"], source=str(path)) from e
        except ValueError as e:
            raise ConfigurationError([f"ValueError: {e}"], source=str(path)) from e

    if not isinstance(result, Pipeline):
        raise ConfigurationError(
            ["workflow must define pipeline() -> Pipeline or PIPELINE = Pipeline(...)"],
            source=str(path),
        )
    return result


# ----------------------------------------------------------------------
# YAML descriptors
# ----------------------------------------------------------------------

def _str_list(value: Any, what: str, problems: List[str]) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        problems.append(f"{what} must be a list, got {type(value).__name__}")
        return []
    out = []
    for v in value:
        if not isinstance(v, str):
            # an unquoted 1.40 would silently become "1.4"
            problems.append(f"{what} entry {v!r} must be a string (quote version numbers)")
            continue
        out.append(v)
    return out


def _parse_step(idx: int, raw: Any, problems: List[str]) -> Step | None:
    if not isinstance(raw, dict):
        problems.append(f"step #{idx} must be a mapping, got {type(raw).__name__}")
        return None

    unknown = sorted(set(raw) - _STEP_KEYS)
    if unknown:
        problems.append(f"step #{idx} has unknown keys {unknown}")

    name = raw.get("name")
    run = raw.get("run")
    label = name if isinstance(name, str) and name else f"#{idx}"
    if not isinstance(name, str) or not name:
        problems.append(f"step #{idx} needs a 'name'")
        name = ""
    if not isinstance(run, str) or not run.strip():
        problems.append(f"step {label!r} needs a 'run' command")
        run = ""

    kind_raw = raw.get("kind", StepKind.BUILD.value)
    try:
        kind = StepKind(kind_raw)
    except ValueError:
        problems.append(
            f"step {label!r} has unknown kind {kind_raw!r} "
            f"(known: {[k.value for k in StepKind]})"
        )
        kind = StepKind.BUILD

    try:
        when = from_fields(raw.get("only"), raw.get("skip"))
    except (TypeError, ValueError) as e:
        problems.append(f"step {label!r}: {e}")
        return None

    cwd = raw.get("cwd")
    if cwd is not None and not isinstance(cwd, str):
        problems.append(f"step {label!r} cwd must be a string")
        cwd = None

    return Step(name=name, run=run, kind=kind, when=when, cwd=cwd)


def pipeline_from_dict(data: Dict[str, Any], source: str | None = None) -> Pipeline:
    """Build and validate a Pipeline from a parsed descriptor mapping."""
    if not isinstance(data, dict):
        raise ConfigurationError(["descriptor must be a mapping"], source=source)

    problems: List[str] = []
    unknown = sorted(set(data) - _PIPELINE_KEYS)
    if unknown:
        problems.append(f"unknown top-level keys {unknown}")

    if "channels" not in data:
        problems.append("missing required key 'channels'")
    channels = _str_list(data.get("channels"), "channels", problems)
    allow_failures = _str_list(data.get("allow_failures"), "allow_failures", problems)

    fast_finish = data.get("fast_finish", False)
    if not isinstance(fast_finish, bool):
        problems.append("fast_finish must be true or false")
        fast_finish = False

    mainline = data.get("mainline", "master")
    if not isinstance(mainline, str):
        problems.append("mainline must be a branch name")
        mainline = "master"

    raw_steps = data.get("steps")
    if raw_steps is None:
        problems.append("missing required key 'steps'")
        raw_steps = []
    elif not isinstance(raw_steps, list):
        problems.append("steps must be a list")
        raw_steps = []

    steps: List[Step] = []
    for idx, raw in enumerate(raw_steps):
        step = _parse_step(idx, raw, problems)
        if step is not None:
            steps.append(step)

    name = data.get("name") or (Path(source).stem if source else "pipeline")

    if problems:
        raise ConfigurationError(problems, source=source)

    pipeline = Pipeline(
        name=str(name),
        channels=channels,
        steps=steps,
        allow_failures=allow_failures,
        fast_finish=fast_finish,
        mainline=mainline,
    )
    pipeline.validate()
    return pipeline


def _load_yaml(path: Path) -> Pipeline:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError([f"invalid YAML: {exc}"], source=str(path)) from exc
    if data is None:
        raise ConfigurationError(["descriptor is empty"], source=str(path))
    return pipeline_from_dict(data, source=str(path))


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def load_pipeline(path: str | Path) -> Pipeline:
    """
    Load a pipeline descriptor from a .py or .yml/.yaml file.

    Raises FileNotFoundError for a missing file and ConfigurationError for
    anything malformed; the returned pipeline has been validated.
    """
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise FileNotFoundError(f"Workflow file not found: {p}")

    if p.suffix == ".py":
        pipeline = _load_python(p)
        pipeline.validate()
        return pipeline
    if p.suffix in YAML_SUFFIXES:
        return _load_yaml(p)

    raise ConfigurationError(
        [f"workflow must be a .py, .yml or .yaml file, got {p.name}"],
        source=str(p),
    )
