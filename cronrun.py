#!/usr/bin/env python3
"""
cronrun.py

Runs a command on a cron schedule, forever, until terminated or until the
exit-code policy says stop.
"""

from __future__ import annotations

import argparse
import logging
import os
import shlex
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, TextIO, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from croniter import croniter


LOGGER_NAME = "cronrun"
LOG_LEVEL_ENV = "CRONRUN_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
LOCALTIME_PATH = Path("/etc/localtime")
DEFAULT_TICK_SECONDS = 0.1
STDERR_TAIL_CHARS = 64 * 1024
STDERR_READ_CHUNK = 4096

ANSI_RESET = "\033[0m"
ANSI_CLEAR_LINE = "\r\033[2K"
LEVEL_COLORS = {
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
}
DEFAULT_LEVEL_COLOR = "\033[37m"
SPINNER_FRAMES = ("⠁", "⠂", "⠄", "⡀", "⢀", "⠠", "⠐", "⠈")

OUTCOME_EXITED = "exited"
OUTCOME_SIGNALLED = "signalled"
OUTCOME_LAUNCH_FAILED = "launch_failed"

PHASE_COMPUTING = "computing_next"
PHASE_IDLING = "idling"
PHASE_LAUNCHING = "launching"
PHASE_EVALUATING = "evaluating"
PHASE_TERMINATED = "terminated"

CONFIG_KEYS = {
    "cron",
    "command",
    "quiet",
    "exit_on_error",
    "ignored_codes",
    "no_color",
    "enable_stdin",
    "stderr_to_stdout",
    "no_output",
    "log_file",
}


class CronRunError(Exception):
    """Base error for cronrun."""


class ConfigError(CronRunError):
    """Command line or config file validation error."""


class InvalidExpression(CronRunError):
    """Cron expression that does not parse or never fires."""


class ColorFormatter(logging.Formatter):
    """Formatter that wraps the level name in an ANSI color."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, DEFAULT_LEVEL_COLOR)
        levelname = record.levelname
        record.levelname = f"{color}{levelname}{ANSI_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def resolve_log_level(quiet: bool, environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    override = (env.get(LOG_LEVEL_ENV) or "").strip()
    if override:
        level = logging.getLevelName(override.upper())
        if not isinstance(level, int):
            raise ConfigError(f'Error: {LOG_LEVEL_ENV} must be a logging level name, got "{override}".')
        return level
    return logging.WARNING if quiet else logging.INFO


def build_logger(
    level: int,
    color: bool,
    stream: Optional[TextIO] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setFormatter(ColorFormatter(LOG_FORMAT) if color else logging.Formatter(LOG_FORMAT))
    logger.addHandler(stream_handler)
    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
    return logger


def system_timezone() -> Tuple[tzinfo, str]:
    tz_name = (os.environ.get("TZ") or "").lstrip(":")
    if tz_name:
        try:
            return ZoneInfo(tz_name), tz_name
        except (ZoneInfoNotFoundError, ValueError):
            pass
    local_tz = datetime.now().astimezone().tzinfo
    if isinstance(local_tz, ZoneInfo):
        return local_tz, local_tz.key
    if LOCALTIME_PATH.is_file():
        try:
            with LOCALTIME_PATH.open("rb") as handle:
                return ZoneInfo.from_file(handle, key="localtime"), "localtime"
        except (OSError, ValueError):
            pass
    # Fixed offset; DST changes are not tracked past this point.
    return local_tz, datetime.now().astimezone().tzname() or "local"


def to_croniter_expression(expression: str) -> str:
    if expression.startswith("@"):
        return expression
    fields = expression.split()
    if len(fields) == 5:
        return " ".join(fields)
    if len(fields) == 6:
        # Seconds lead here; croniter wants them last.
        return " ".join(fields[1:] + fields[:1])
    raise InvalidExpression(
        f'Error: Invalid cron expression "{expression}": expected 5 or 6 fields, got {len(fields)}.'
    )


class RecurrenceRule:
    """A parsed cron expression evaluated in one timezone.

    Accepts five-field expressions, six-field expressions with a leading
    seconds field, and croniter aliases such as ``@hourly``.
    """

    def __init__(self, expression: str, tz: Optional[tzinfo] = None, tz_name: Optional[str] = None):
        if not isinstance(expression, str) or not expression.strip():
            raise InvalidExpression("Error: cron expression must be a non-empty string.")
        if tz is None:
            tz, tz_name = system_timezone()
        self.expression = " ".join(expression.split())
        self.timezone = tz
        self.timezone_name = tz_name or str(tz)
        self._croniter_expr = to_croniter_expression(self.expression)
        try:
            croniter(self._croniter_expr, datetime.now(tz=tz)).get_next(datetime)
        except ValueError as exc:
            raise InvalidExpression(f'Error: Invalid cron expression "{self.expression}": {exc}') from exc

    def next_after(self, reference: datetime) -> datetime:
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=self.timezone)
        iterator = croniter(self._croniter_expr, reference.astimezone(self.timezone))
        candidate = iterator.get_next(datetime)
        while candidate <= reference:
            candidate = iterator.get_next(datetime)
        return candidate.astimezone(self.timezone)

    def upcoming(self, count: int, reference: Optional[datetime] = None) -> List[datetime]:
        cursor = reference or datetime.now(tz=self.timezone)
        runs: List[datetime] = []
        for _ in range(count):
            cursor = self.next_after(cursor)
            runs.append(cursor)
        return runs


@dataclass(frozen=True)
class JobSpec:
    command: str
    args: Tuple[str, ...] = ()

    @staticmethod
    def from_argv(argv: Sequence[str]) -> "JobSpec":
        parts = [str(part) for part in argv]
        if not parts or not parts[0].strip():
            raise ConfigError("Error: a command to run is required (pass it after --).")
        return JobSpec(command=parts[0], args=tuple(parts[1:]))

    @property
    def argv(self) -> List[str]:
        return [self.command, *self.args]

    def display(self) -> str:
        return " ".join(shlex.quote(part) for part in self.argv)


@dataclass(frozen=True)
class IOPolicy:
    inherit_stdin: bool = False
    inherit_stdout: bool = True
    merge_stderr: bool = False


@dataclass(frozen=True)
class ExitConfig:
    stop_on_error: bool = False
    ignored_codes: FrozenSet[int] = frozenset()


@dataclass(frozen=True)
class RunOutcome:
    kind: str  # exited | signalled | launch_failed
    return_code: Optional[int] = None
    signal_number: Optional[int] = None
    error: Optional[str] = None
    stderr: str = ""
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.kind == OUTCOME_EXITED and self.return_code == 0


@dataclass(frozen=True)
class Decision:
    stop: bool = False
    exit_code: int = 0


CONTINUE = Decision()


def popen_streams(io_policy: IOPolicy) -> Dict[str, Any]:
    return {
        "stdin": None if io_policy.inherit_stdin else subprocess.DEVNULL,
        "stdout": None if io_policy.inherit_stdout else subprocess.DEVNULL,
        "stderr": subprocess.STDOUT if io_policy.merge_stderr else subprocess.PIPE,
    }


def drain_tail(stream: TextIO, limit: int = STDERR_TAIL_CHARS) -> str:
    """Read a stream to EOF and keep only its last ``limit`` characters."""
    tail = ""
    for chunk in iter(lambda: stream.read(STDERR_READ_CHUNK), ""):
        tail = (tail + chunk)[-limit:]
    return tail


class ProcessLauncher:
    """
    Runs one child process at a time and reports how it ended.

    Captured stderr is drained on a reader thread while the child runs. Only
    the last STDERR_TAIL_CHARS characters are kept, so a chatty child neither
    blocks on a full pipe nor grows memory without bound.

    A terminate request is sticky: once made, a child spawned afterwards (or
    one still being spawned when the request arrived) is terminated as soon
    as it is registered.
    """

    def __init__(self, logger: logging.Logger, tail_chars: int = STDERR_TAIL_CHARS):
        self.logger = logger
        self.tail_chars = tail_chars
        self._current: Optional[subprocess.Popen] = None
        self._terminate_requested = False

    def run(self, job: JobSpec, io_policy: IOPolicy) -> RunOutcome:
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                job.argv,
                text=True,
                errors="replace",
                **popen_streams(io_policy),
            )
        except OSError as exc:
            return RunOutcome(
                kind=OUTCOME_LAUNCH_FAILED,
                error=str(exc),
                duration_seconds=time.monotonic() - started,
            )

        self._current = proc
        if self._terminate_requested:
            self._signal_child(proc)

        captured: List[str] = []
        reader = None
        if proc.stderr is not None:
            stream = proc.stderr
            reader = threading.Thread(
                target=lambda: captured.append(drain_tail(stream, self.tail_chars)),
                name="cronrun-stderr",
                daemon=True,
            )
            reader.start()
        try:
            proc.wait()
        finally:
            self._current = None
        if reader is not None:
            reader.join()
            proc.stderr.close()
        stderr = captured[0] if captured else ""
        duration = time.monotonic() - started

        if proc.returncode < 0:
            return RunOutcome(
                kind=OUTCOME_SIGNALLED,
                signal_number=-proc.returncode,
                stderr=stderr,
                duration_seconds=duration,
            )
        return RunOutcome(
            kind=OUTCOME_EXITED,
            return_code=proc.returncode,
            stderr=stderr,
            duration_seconds=duration,
        )

    def terminate(self) -> None:
        self._terminate_requested = True
        proc = self._current
        if proc is None:
            return
        self._signal_child(proc)

    def _signal_child(self, proc: subprocess.Popen) -> None:
        if proc.poll() is not None:
            return
        self.logger.info("Terminating running command (pid=%s).", proc.pid)
        try:
            proc.terminate()
        except ProcessLookupError:
            pass


def evaluate_exit_policy(outcome: RunOutcome, config: ExitConfig) -> Decision:
    if outcome.kind == OUTCOME_LAUNCH_FAILED or outcome.success:
        return CONTINUE
    if not config.stop_on_error:
        return CONTINUE
    if outcome.kind == OUTCOME_SIGNALLED:
        return Decision(stop=True, exit_code=128 + (outcome.signal_number or 0))
    if outcome.return_code in config.ignored_codes:
        return CONTINUE
    return Decision(stop=True, exit_code=int(outcome.return_code or 0))


class LoopObserver:
    """Receives phase, tick and outcome events from the scheduler loop."""

    def on_phase(self, phase: str, message: str) -> None:
        pass

    def on_tick(self, now: datetime, next_run: datetime) -> None:
        pass

    def on_outcome(self, outcome: RunOutcome) -> None:
        pass

    def close(self) -> None:
        pass


def format_remaining(seconds: float) -> str:
    return str(timedelta(seconds=max(0, int(seconds))))


class Spinner(LoopObserver):
    """Single-line terminal spinner, redrawn on every idle tick."""

    def __init__(self, stream: Optional[TextIO] = None, color: bool = True):
        self.stream = stream or sys.stderr
        self.color = color
        self._frame = 0
        self._message = ""
        self._drawn = False

    def on_phase(self, phase: str, message: str) -> None:
        self._message = message
        if phase != PHASE_IDLING:
            self._clear()

    def on_tick(self, now: datetime, next_run: datetime) -> None:
        self._frame = (self._frame + 1) % len(SPINNER_FRAMES)
        frame = SPINNER_FRAMES[self._frame]
        if self.color:
            frame = f"{LEVEL_COLORS[logging.INFO]}{frame}{ANSI_RESET}"
        remaining = format_remaining((next_run - now).total_seconds())
        self.stream.write(f"{ANSI_CLEAR_LINE}{frame} {self._message} (in {remaining})")
        self.stream.flush()
        self._drawn = True

    def close(self) -> None:
        self._clear()

    def _clear(self) -> None:
        if self._drawn:
            self.stream.write(ANSI_CLEAR_LINE)
            self.stream.flush()
            self._drawn = False


class SchedulerLoop:
    """Compute next run, idle until it arrives, run the job, apply the exit policy.

    ``run()`` only returns when the exit policy stops the loop (its exit
    code) or after ``cancel()`` (0). Runs never overlap: a run that outlasts
    the recurrence period just makes the next computed occurrence later.
    """

    def __init__(
        self,
        rule: RecurrenceRule,
        job: JobSpec,
        io_policy: IOPolicy,
        exit_config: ExitConfig,
        logger: logging.Logger,
        launcher: Optional[ProcessLauncher] = None,
        observer: Optional[LoopObserver] = None,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.rule = rule
        self.job = job
        self.io_policy = io_policy
        self.exit_config = exit_config
        self.logger = logger
        self.launcher = launcher or ProcessLauncher(logger)
        self.observer = observer or LoopObserver()
        self.tick_seconds = tick_seconds
        self.clock = clock or (lambda: datetime.now(tz=rule.timezone))
        self.phase = PHASE_COMPUTING
        self.next_run: Optional[datetime] = None
        self.run_count = 0
        self._stop_event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def cancel(self) -> None:
        self._stop_event.set()
        self.launcher.terminate()

    def run(self) -> int:
        self.logger.info(
            "Scheduling %s with cron expression %r (%s)",
            self.job.display(),
            self.rule.expression,
            self.rule.timezone_name,
        )
        try:
            while not self.cancelled:
                next_run = self._compute_next()
                if next_run is None:
                    continue
                if not self._idle_until(next_run):
                    break
                outcome = self._launch()
                if self.cancelled:
                    self._report(outcome)
                    break
                decision = self._evaluate(outcome)
                if decision.stop:
                    self._set_phase(PHASE_TERMINATED, f"Stopped with exit code {decision.exit_code}")
                    return decision.exit_code
            self._set_phase(PHASE_TERMINATED, "Stopped")
            self.logger.info("Scheduler stopped after %s run(s).", self.run_count)
            return 0
        finally:
            self.observer.close()

    def _set_phase(self, phase: str, message: str) -> None:
        self.phase = phase
        self.observer.on_phase(phase, message)

    def _compute_next(self) -> Optional[datetime]:
        self._set_phase(PHASE_COMPUTING, "Computing next run...")
        next_run = self.rule.next_after(self.clock())
        if next_run <= self.clock():
            self.logger.warning("Next run is in the past: %s; checking again.", next_run.isoformat())
            return None
        self.next_run = next_run
        self.logger.info("Next run at %s (%s)", next_run.isoformat(), self.rule.timezone_name)
        return next_run

    def _idle_until(self, next_run: datetime) -> bool:
        self._set_phase(PHASE_IDLING, f"Next run at {next_run.isoformat()}")
        while True:
            now = self.clock()
            if now >= next_run:
                return True
            self.observer.on_tick(now, next_run)
            remaining = (next_run - now).total_seconds()
            if self._stop_event.wait(min(self.tick_seconds, remaining)):
                return False

    def _launch(self) -> RunOutcome:
        self._set_phase(PHASE_LAUNCHING, "Running job...")
        self.logger.debug("Running %s", self.job.display())
        outcome = self.launcher.run(self.job, self.io_policy)
        self.run_count += 1
        self.observer.on_outcome(outcome)
        return outcome

    def _evaluate(self, outcome: RunOutcome) -> Decision:
        self._set_phase(PHASE_EVALUATING, "Checking exit status...")
        self._report(outcome)
        decision = evaluate_exit_policy(outcome, self.exit_config)
        if decision.stop:
            self.logger.error("exit_on_error is set; stopping with exit code %s.", decision.exit_code)
        elif (
            self.exit_config.stop_on_error
            and outcome.kind == OUTCOME_EXITED
            and outcome.return_code in self.exit_config.ignored_codes
        ):
            self.logger.info("Exit code %s is ignored; continuing.", outcome.return_code)
        return decision

    def _report(self, outcome: RunOutcome) -> None:
        if outcome.kind == OUTCOME_LAUNCH_FAILED:
            self.logger.error("Failed to execute command %s: %s", self.job.display(), outcome.error)
            return
        stderr = outcome.stderr.strip()
        if outcome.success:
            self.logger.info("Command exited with status 0 (%.2fs)", outcome.duration_seconds)
            if stderr:
                self.logger.debug("stderr: %s", stderr)
            return
        if outcome.kind == OUTCOME_SIGNALLED:
            self.logger.error(
                "Command terminated by signal %s (%.2fs)",
                outcome.signal_number,
                outcome.duration_seconds,
            )
        else:
            self.logger.error(
                "Command exited with status %s (%.2fs)",
                outcome.return_code,
                outcome.duration_seconds,
            )
        if stderr:
            self.logger.error("stderr: %s", stderr)


@dataclass(frozen=True)
class RunnerSettings:
    cron: str
    job: Optional[JobSpec]
    io_policy: IOPolicy
    exit_config: ExitConfig
    quiet: bool
    color: bool
    log_file: Optional[Path]
    preview: Optional[int]


def ensure_bool(value: Any, field_path: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"Error: {field_path} must be true or false.")
    return value


def ensure_str(value: Any, field_path: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"Error: {field_path} must be a non-empty string.")
    return value.strip()


def parse_code_list(value: str) -> List[int]:
    """argparse type for ``--ignored-codes 3,4``."""
    codes: List[int] = []
    for token in value.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            codes.append(int(token))
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f'invalid exit code "{token}"') from exc
    return codes


def parse_ignored_codes(raw: Any, field_path: str) -> List[int]:
    if raw is None:
        return []
    if isinstance(raw, int) and not isinstance(raw, bool):
        return [raw]
    if isinstance(raw, str):
        try:
            return parse_code_list(raw)
        except argparse.ArgumentTypeError as exc:
            raise ConfigError(f"Error: {field_path}: {exc}.") from exc
    if isinstance(raw, list):
        codes: List[int] = []
        for idx, value in enumerate(raw):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"Error: {field_path}[{idx}] must be an integer.")
            codes.append(value)
        return codes
    raise ConfigError(f"Error: {field_path} must be a list of integers or a comma separated string.")


def parse_command(raw: Any, field_path: str) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        # Shell-style strings are convenient in YAML.
        return shlex.split(raw)
    if isinstance(raw, list):
        parts: List[str] = []
        for idx, arg in enumerate(raw):
            if not isinstance(arg, (str, int, float, bool)):
                raise ConfigError(f"Error: {field_path}[{idx}] must be scalar value convertible to string.")
            parts.append(str(arg))
        return parts
    raise ConfigError(f"Error: {field_path} must be a list or shell-style string.")


def load_config_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise ConfigError(f"Error: Config file not found: {config_path}")
    try:
        payload = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Error: Failed to parse YAML in {config_path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError("Error: Top-level config must be a mapping.")
    unknown = set(payload.keys()) - CONFIG_KEYS
    if unknown:
        raise ConfigError(f"Error: Unknown config keys: {sorted(unknown)}.")
    return payload


def _pick(cli_value: Any, config: Dict[str, Any], key: str, default: bool) -> bool:
    if cli_value is not None:
        return bool(cli_value)
    return ensure_bool(config.get(key), key, default)


def resolve_settings(args: argparse.Namespace) -> RunnerSettings:
    config: Dict[str, Any] = {}
    config_dir = Path.cwd()
    if args.config:
        config_path = Path(args.config).resolve()
        config = load_config_file(config_path)
        config_dir = config_path.parent

    if args.cron is not None:
        cron = ensure_str(args.cron, "--cron")
    elif config.get("cron") is not None:
        cron = ensure_str(config["cron"], "cron")
    else:
        raise ConfigError("Error: a cron expression is required (--cron or cron in the config file).")

    command = list(args.command) or parse_command(config.get("command"), "command")
    job = JobSpec.from_argv(command) if command else None

    ignored = list(args.ignored_codes or []) or parse_ignored_codes(config.get("ignored_codes"), "ignored_codes")

    log_file: Optional[Path] = None
    if args.log_file:
        log_file = Path(args.log_file).resolve()
    elif config.get("log_file") is not None:
        raw_log = Path(ensure_str(config["log_file"], "log_file"))
        log_file = (raw_log if raw_log.is_absolute() else config_dir / raw_log).resolve()

    if args.preview is not None and args.preview <= 0:
        raise ConfigError("Error: --preview must be >= 1")

    return RunnerSettings(
        cron=cron,
        job=job,
        io_policy=IOPolicy(
            inherit_stdin=_pick(args.enable_stdin, config, "enable_stdin", False),
            inherit_stdout=not _pick(args.no_output, config, "no_output", False),
            merge_stderr=_pick(args.stderr_to_stdout, config, "stderr_to_stdout", False),
        ),
        exit_config=ExitConfig(
            stop_on_error=_pick(args.exit_on_error, config, "exit_on_error", False),
            ignored_codes=frozenset(ignored),
        ),
        quiet=_pick(args.quiet, config, "quiet", False),
        color=not _pick(args.no_color, config, "no_color", False),
        log_file=log_file,
        preview=args.preview,
    )


def install_signal_handlers(loop: SchedulerLoop) -> Dict[int, Any]:
    def handle(signum: int, _frame: Any) -> None:
        loop.logger.info("Received %s; shutting down.", signal.Signals(signum).name)
        loop.cancel()

    previous: Dict[int, Any] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handle)
    return previous


def restore_signal_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def command_preview(rule: RecurrenceRule, count: int) -> int:
    print(f"Cron expression: {rule.expression}")
    print(f"Timezone: {rule.timezone_name}")
    print(f"Next {count} run(s):")
    for run_dt in rule.upcoming(count):
        print(f"- {run_dt.isoformat()}")
    return 0


def command_run(settings: RunnerSettings, rule: RecurrenceRule, logger: logging.Logger) -> int:
    if settings.job is None:
        raise ConfigError("Error: a command to run is required (pass it after --).")
    if settings.exit_config.ignored_codes and not settings.exit_config.stop_on_error:
        logger.warning("--ignored-codes has no effect without --exit-on-error.")

    observer: Optional[LoopObserver] = None
    if not settings.quiet and sys.stderr.isatty():
        observer = Spinner(color=settings.color)
    loop = SchedulerLoop(
        rule=rule,
        job=settings.job,
        io_policy=settings.io_policy,
        exit_config=settings.exit_config,
        logger=logger,
        observer=observer,
    )
    previous = install_signal_handlers(loop)
    try:
        return loop.run()
    finally:
        restore_signal_handlers(previous)


def split_command(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    items = list(argv)
    if "--" in items:
        idx = items.index("--")
        return items[:idx], items[idx + 1:]
    return items, []


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    options, trailing = split_command(sys.argv[1:] if argv is None else argv)
    parser = argparse.ArgumentParser(
        prog="cronrun",
        description="Run a command repeatedly on a cron schedule.",
        epilog="Example: cronrun --cron '*/5 * * * *' -- ./backup.sh --full",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("command", nargs="*", help="Command and arguments to run (after --)")
    parser.add_argument("-t", "--cron", help="Cron expression: 5 fields, or 6 with leading seconds")
    parser.add_argument("-q", "--quiet", action="store_true", default=None, help="Only log warnings and errors")
    parser.add_argument(
        "-x",
        "--exit-on-error",
        action="store_true",
        default=None,
        help="Exit with the command's status when it fails",
    )
    parser.add_argument(
        "-c",
        "--ignored-codes",
        type=parse_code_list,
        action="extend",
        help="Exit codes that do not stop the loop with --exit-on-error (comma separated)",
    )
    parser.add_argument("-b", "--no-color", action="store_true", default=None, help="Disable colored output")
    parser.add_argument(
        "-i",
        "--enable-stdin",
        action="store_true",
        default=None,
        help="Pass stdin through to the command (closed by default)",
    )
    parser.add_argument(
        "-r",
        "--stderr-to-stdout",
        action="store_true",
        default=None,
        help="Send the command's stderr to its stdout",
    )
    parser.add_argument("-s", "--no-output", action="store_true", default=None, help="Discard the command's stdout")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--log-file", help="Also append log records to this file")
    parser.add_argument("--preview", type=int, help="Print the next N run times and exit")
    args = parser.parse_args(options)
    args.command = list(args.command) + trailing
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logger = build_logger(logging.INFO, color=not args.no_color)

    try:
        settings = resolve_settings(args)
        logger = build_logger(
            resolve_log_level(settings.quiet),
            settings.color,
            log_file=settings.log_file,
        )
        rule = RecurrenceRule(settings.cron)
        if settings.preview:
            return command_preview(rule, settings.preview)
        return command_run(settings, rule, logger)
    except CronRunError as exc:
        logger.error(str(exc))
        return 1
    except Exception as exc:  # pragma: no cover - defensive
        logger.exception("Unexpected error: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
