"""Loading user load scripts.

A script is a module exposing a *setup* callable. Setup runs once, before
any virtual user starts, receives a ``ScriptContext`` with the run's
collaborators, and returns the iteration function::

    def setup(ctx):
        pipeline = [{"$match": {"name": "John"}}]

        def iteration():
            result = ctx.client.aggregate(pipeline)
            ctx.checks.check(result, {"Has result": lambda r: len(r) > 0})

        return iteration

References are either ``package.module:attr`` or ``path/to/file.py:attr``;
``attr`` defaults to ``setup``.
"""

from __future__ import annotations

import importlib
import importlib.util
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from mongoload.db import DatabaseClient
from mongoload.exceptions import ConfigError
from mongoload.logger import Logger

from simulator.core.checks import CheckEvaluator
from simulator.core.models import RunConfig
from simulator.core.vu import IterationFunction

DEFAULT_SETUP_ATTR = "setup"


@dataclass(frozen=True)
class ScriptContext:
    checks: CheckEvaluator
    logger: Logger
    config: RunConfig
    client: DatabaseClient | None = None


ScriptSetup = Callable[[ScriptContext], IterationFunction]


def _split_reference(reference: str) -> tuple[str, str]:
    ref = reference.strip()
    if not ref:
        raise ConfigError("script reference must not be empty")

    # Windows drive letters ("C:\...") contain a colon too; split on the last one.
    target, sep, attr = ref.rpartition(":")
    if not sep or not target or "/" in attr or "\\" in attr:
        return ref, DEFAULT_SETUP_ATTR
    return target, attr or DEFAULT_SETUP_ATTR


def _import_target(target: str):
    if target.endswith(".py") or "/" in target or "\\" in target:
        path = Path(target)
        if not path.is_file():
            raise ConfigError("script file not found", path=target)
        spec = importlib.util.spec_from_file_location(f"_loadsim_script_{path.stem}", path)
        if spec is None or spec.loader is None:
            raise ConfigError("cannot load script file", path=target)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            raise ConfigError(
                "script failed to import",
                path=target,
                error_type=type(exc).__name__,
                error=str(exc),
            ) from exc
        return module

    try:
        return importlib.import_module(target)
    except ImportError as exc:
        raise ConfigError("script module not importable", module=target, error=str(exc)) from exc
    except Exception as exc:
        raise ConfigError(
            "script failed to import",
            module=target,
            error_type=type(exc).__name__,
            error=str(exc),
        ) from exc


def load_script(reference: str) -> ScriptSetup:
    """Resolve a script reference to its setup callable."""
    target, attr = _split_reference(reference)
    module = _import_target(target)

    setup = getattr(module, attr, None)
    if setup is None:
        raise ConfigError("script has no setup callable", script=target, attribute=attr)
    if not callable(setup):
        raise ConfigError("script setup is not callable", script=target, attribute=attr)
    return setup


def build_iteration(setup: ScriptSetup, context: ScriptContext) -> IterationFunction:
    """Run the script's setup stage and validate what it returns."""
    try:
        fn = setup(context)
    except ConfigError:
        raise
    except Exception as exc:
        raise ConfigError(
            "script setup failed",
            error_type=type(exc).__name__,
            error=str(exc),
        ) from exc

    if not callable(fn):
        raise ConfigError("script setup must return a callable", got=type(fn).__name__)
    return fn
