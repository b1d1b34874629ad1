"""Command-line interface for itersolve.

Subcommands
-----------
``itersolve info``
    Print version information.

``itersolve run <config.yaml>``
    Run (or resume) an optimisation described by a YAML file.

``itersolve inspect <checkpoint>``
    Print the header and best-so-far values of a checkpoint artifact.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import yaml

from itersolve import __version__
from itersolve.checkpoint.checkpointer import CHECKPOINT_VERSION, Checkpointer
from itersolve.errors import ConfigError, ExecutionError
from itersolve.observers import JsonLinesObserver, LoggingObserver, Observer, ProgressObserver
from itersolve.runtime import Executor, ExecutorConfig
from itersolve.utils.helpers import ensure_dir, file_sha256, import_object, timestamp_id

logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────────


def _load_yaml(path: str) -> Dict[str, Any]:
    """Load a YAML file and return its contents as a dict."""
    p = Path(path)
    if not p.exists():
        print(f'Error: config file not found: {path}', file=sys.stderr)
        sys.exit(1)
    with p.open() as f:
        return yaml.safe_load(f) or {}


def _resolve(ref: str) -> Any:
    """Import a ``module:attr`` reference, reporting failures as ConfigError."""
    try:
        return import_object(ref)
    except (ImportError, AttributeError, ValueError) as exc:
        raise ConfigError(f"Cannot resolve '{ref}': {exc}") from exc


def _build_observers(names: List[str], run_dir: str) -> List[Observer]:
    """Map observer names from the config file to observer instances."""
    observers: List[Observer] = []
    for name in names:
        if name == 'logging':
            observers.append(LoggingObserver())
        elif name == 'jsonl':
            observers.append(JsonLinesObserver(run_dir=run_dir))
        elif name == 'progress':
            observers.append(ProgressObserver())
        else:
            raise ConfigError(f"Unknown observer '{name}'. Valid: logging, jsonl, progress")
    return observers


def _build_executor(cfg: Dict[str, Any]) -> Executor:
    """Construct an Executor from a config dict.

    Expected YAML structure::

        problem: mypkg.objectives:Rosenbrock   # class or factory
        problem_args: {a: 1.0, b: 100.0}
        solver: mypkg.solvers:GradientDescent
        solver_args: {step_size: 0.001}
        init_param: [-1.2, 1.0]
        observers: [logging, jsonl]
        run_dir: artifacts/my_run             # optional
        resume: artifacts/my_run/checkpoint.ckpt  # optional
        executor:
          max_iters: 1000
          target_cost: 1.0e-8
    """
    if 'problem' not in cfg or 'solver' not in cfg:
        raise ConfigError("Config must name both 'problem' and 'solver' as 'module:attr'")

    problem = _resolve(cfg['problem'])(**(cfg.get('problem_args') or {}))
    solver = _resolve(cfg['solver'])(**(cfg.get('solver_args') or {}))

    executor_cfg = cfg.get('executor')
    config = ExecutorConfig.from_dict(executor_cfg) if executor_cfg is not None else None

    resume = cfg.get('resume')
    if resume:
        executor = Executor.from_checkpoint(resume, problem, solver, config=config)
    else:
        init_param = cfg.get('init_param')
        if isinstance(init_param, list):
            init_param = np.asarray(init_param, dtype=float)
        executor = Executor(problem, solver, init_param=init_param, config=config)

    run_dir = cfg.get('run_dir') or str(Path('artifacts') / f'{executor.config.name}_{timestamp_id()}')
    for observer in _build_observers(cfg.get('observers') or [], run_dir):
        executor.add_observer(observer)
    return executor


# ── Subcommands ─────────────────────────────────────────────────────────


def cmd_info(_args: argparse.Namespace) -> None:
    """Print version information."""
    print(f'itersolve {__version__}')
    print(f'checkpoint format version {CHECKPOINT_VERSION}')


def cmd_run(args: argparse.Namespace) -> None:
    """Run (or resume) an optimisation."""
    cfg = _load_yaml(args.config)
    logger.info('Loaded run config %s', args.config)
    try:
        executor = _build_executor(cfg)
        if args.save_config:
            ensure_dir(str(Path(args.save_config).parent))
            executor.config.to_yaml(args.save_config)
        result = executor.run()
    except ExecutionError as exc:
        print(f'Error: {exc}', file=sys.stderr)
        sys.exit(1)
    print(result.summary())
    if result.failed:
        sys.exit(2)


def cmd_inspect(args: argparse.Namespace) -> None:
    """Describe a checkpoint artifact."""
    try:
        checkpoint = Checkpointer.load(args.checkpoint)
    except ExecutionError as exc:
        print(f'Error: {exc}', file=sys.stderr)
        sys.exit(1)
    state = checkpoint.state
    print(f'{"=" * 50}')
    print(f'  Checkpoint: {args.checkpoint}')
    print(f'  SHA-256:    {file_sha256(args.checkpoint)}')
    print(f'  Created:    {checkpoint.created or "N/A"}')
    print(f'  Run:        {checkpoint.config.get("name", "N/A")}')
    print(f'  Solver:     {checkpoint.solver_name or "N/A"} '
          f'(snapshot v{checkpoint.solver_version if checkpoint.solver_version is not None else "-"})')
    print(f'  Iteration:  {checkpoint.iteration}')
    print(f'  Best cost:  {state.get("best_cost")}')
    print(f'  Best param: {state.get("best_param")!r}')
    print(f'{"=" * 50}')


# ── Main entry point ───────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``itersolve`` CLI."""
    parser = argparse.ArgumentParser(
        prog='itersolve',
        description='itersolve — run iterative optimisation solvers with checkpoint/resume.',
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'itersolve {__version__}',
    )
    parser.add_argument(
        '-v',
        '--verbose',
        action='store_true',
        help='Enable verbose (DEBUG) logging.',
    )

    subparsers = parser.add_subparsers(dest='command', help='Available subcommands')

    # info
    sp_info = subparsers.add_parser('info', help='Show version information')
    sp_info.set_defaults(func=cmd_info)

    # run
    sp_run = subparsers.add_parser('run', help='Run or resume an optimisation')
    sp_run.add_argument('config', help='Path to run YAML config')
    sp_run.add_argument('--save-config', default=None, help='Write the effective executor config here')
    sp_run.set_defaults(func=cmd_run)

    # inspect
    sp_inspect = subparsers.add_parser('inspect', help='Describe a checkpoint artifact')
    sp_inspect.add_argument('checkpoint', help='Path to a checkpoint file')
    sp_inspect.set_defaults(func=cmd_inspect)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(name)s %(message)s')

    if hasattr(args, 'func'):
        args.func(args)
    else:
        parser.print_help()


if __name__ == '__main__':
    main()
