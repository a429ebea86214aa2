"""Sequential, fail-fast execution of idempotent steps with deferred handlers."""

from __future__ import annotations

import logging
import time
import traceback
from dataclasses import dataclass, field
from typing import Optional, Union

from lib.errors import HandlerError, PlaybookError, StepError, VariableError
from lib.operation_log import OperationLogger
from lib.progress import recap, step_header
from lib.remote_utils import is_dry_run
from lib.templates import referenced_names, render
from lib.types import ApplyFunc, Params, StrDict, StrList


@dataclass
class Step:
    """One declarative step: a module type plus its (templated) parameters.

    With ``loop`` the module is applied once per item, each item's keys
    overriding ``params``; the step is changed if any item changed.
    """
    name: str
    module: str
    params: Params = field(default_factory=dict)
    notify: Union[str, tuple[str, ...], list[str]] = ()
    loop: Optional[list[Params]] = None

    def __post_init__(self) -> None:
        if isinstance(self.notify, str):
            self.notify = (self.notify,)
        else:
            self.notify = tuple(self.notify)

    def invocations(self) -> list[Params]:
        if not self.loop:
            return [self.params]
        return [{**self.params, **item} for item in self.loop]


@dataclass
class Handler:
    name: str
    module: str
    params: Params = field(default_factory=dict)


@dataclass
class StepResult:
    name: str
    changed: bool
    messages: StrList = field(default_factory=list)
    duration: float = 0.0


@dataclass
class RunResult:
    steps: list[StepResult] = field(default_factory=list)
    handlers: StrList = field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> int:
        return sum(1 for s in self.steps if s.changed)

    @property
    def ok(self) -> int:
        return len(self.steps) - self.changed

    @property
    def changed_steps(self) -> StrList:
        return [s.name for s in self.steps if s.changed]


def select_steps(steps: list[Step], names: Optional[StrList]) -> list[Step]:
    """Keep only the named steps, preserving declaration order."""
    if not names:
        return list(steps)
    known = {s.name for s in steps}
    unknown = [n for n in names if n not in known]
    if unknown:
        raise PlaybookError(f"Unknown step(s): {', '.join(unknown)}")
    wanted = set(names)
    return [s for s in steps if s.name in wanted]


class Runner:
    """Apply steps in order, then run each notified handler once.

    Everything that can be checked statically (module types, handler
    references, template variables) is checked before the first step runs.
    """

    def __init__(
        self,
        steps: list[Step],
        handlers: list[Handler],
        variables: StrDict,
        modules: Optional[dict[str, ApplyFunc]] = None,
        logger: Optional[logging.Logger] = None,
        operation_log: Optional[OperationLogger] = None,
    ):
        if modules is None:
            from modules import MODULES
            modules = MODULES
        self.steps = steps
        self.handlers = {h.name: h for h in handlers}
        self.variables = variables
        self.modules = modules
        self.logger = logger or logging.getLogger("provision")
        self.operation_log = operation_log

    def validate(self) -> None:
        """Reject malformed playbooks and undefined variables before any change is made."""
        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise PlaybookError(f"Duplicate step name: {step.name}")
            seen.add(step.name)
            if step.module not in self.modules:
                raise PlaybookError(f"Step '{step.name}': unknown module type '{step.module}'")
            for handler_name in step.notify:
                if handler_name not in self.handlers:
                    raise PlaybookError(f"Step '{step.name}' notifies unknown handler '{handler_name}'")
            for name in referenced_names([step.params, step.loop or []]):
                if name not in self.variables:
                    raise VariableError(name, f"referenced by step '{step.name}' but not defined")
        for handler in self.handlers.values():
            if handler.module not in self.modules:
                raise PlaybookError(f"Handler '{handler.name}': unknown module type '{handler.module}'")
            for name in referenced_names(handler.params):
                if name not in self.variables:
                    raise VariableError(name, f"referenced by handler '{handler.name}' but not defined")

    def apply_step(self, step: Step) -> StepResult:
        apply = self.modules[step.module]
        result = StepResult(name=step.name, changed=False)
        for params in step.invocations():
            outcome = apply(render(params, self.variables))
            result.changed = result.changed or outcome.changed
            if outcome.msg:
                result.messages.append(outcome.msg)
        return result

    def run(self) -> RunResult:
        self.validate()

        run_result = RunResult(dry_run=is_dry_run())
        notified: dict[str, StrList] = {}
        total = len(self.steps)

        for i, step in enumerate(self.steps, 1):
            self.logger.info(step_header(i, total, step.name))
            if self.operation_log:
                self.operation_log.log_step(step.name, "started")
            start = time.time()

            try:
                result = self.apply_step(step)
            except Exception as e:
                self._record_failure(step.name, e)
                raise StepError(step.name, e) from e

            result.duration = time.time() - start
            run_result.steps.append(result)

            status = "changed" if result.changed else "ok"
            for message in result.messages:
                self.logger.info(f"  {'✓' if not result.changed else '→'} {message}")
            self.logger.info(f"  {status}")
            if self.operation_log:
                self.operation_log.log_step(step.name, status, "; ".join(result.messages), result.duration)

            if result.changed:
                for handler_name in step.notify:
                    notified.setdefault(handler_name, []).append(step.name)

        for handler_name, triggered_by in notified.items():
            self._run_handler(self.handlers[handler_name], triggered_by)
            run_result.handlers.append(handler_name)

        summary = recap(run_result.ok, run_result.changed, dry_run=run_result.dry_run)
        self.logger.info(f"\n{summary}")
        if self.operation_log:
            self.operation_log.complete("completed", summary)
        return run_result

    def _run_handler(self, handler: Handler, triggered_by: StrList) -> None:
        self.logger.info(f"\nHandler: {handler.name} (notified by {', '.join(triggered_by)})")
        if is_dry_run():
            self.logger.info("  [DRY-RUN] Handler not executed")
            if self.operation_log:
                self.operation_log.log_handler(handler.name, "skipped", triggered_by)
            return
        try:
            outcome = self.modules[handler.module](render(handler.params, self.variables))
        except Exception as e:
            if self.operation_log:
                self.operation_log.log_error("handler_error", str(e), {"handler": handler.name})
                self.operation_log.complete("failed", f"handler '{handler.name}' failed")
            raise HandlerError(handler.name, e) from e
        if outcome.msg:
            self.logger.info(f"  ✓ {outcome.msg}")
        if self.operation_log:
            self.operation_log.log_handler(handler.name, "completed", triggered_by)

    def _record_failure(self, step_name: str, error: BaseException) -> None:
        self.logger.error(f"  ✗ {error}")
        if self.operation_log:
            self.operation_log.log_step(step_name, "failed", str(error))
            self.operation_log.log_error("step_execution_error", str(error),
                                         {"step": step_name, "traceback": traceback.format_exc()})
            self.operation_log.complete("failed", f"step '{step_name}' failed")
