import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Sequence


class StepState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Step:
    name: str
    action: Callable[[], object]
    idempotent: bool = True


class StepError(Exception):
    def __init__(self, step: Step, cause: BaseException):
        self.step = step
        self.step_name = step.name
        self.cause = cause
        super().__init__(f"{step.name} failed: {cause}")


def run_step(step: Step) -> None:
    logging.info("Running step: %s" % step.name)
    try:
        step.action()
    except Exception as e:
        raise StepError(step, e) from e
    logging.info("Step %s done" % step.name)


class Pipeline:
    """Ordered steps, stopping at the first failure.

    Nothing already done is undone when a step fails; the host is left as the
    completed steps made it.
    """

    def __init__(self, steps: Sequence[Step]):
        names = [step.name for step in steps]
        duplicates = sorted(set([name for name in names if names.count(name) > 1]))
        if len(duplicates) > 0:
            raise Exception(f"Duplicate step names: {duplicates}")
        self.steps: List[Step] = list(steps)
        self.states: Dict[str, StepState] = dict(
            [(step.name, StepState.PENDING) for step in self.steps]
        )
        self._executed = False

    def execute(self) -> None:
        if self._executed:
            raise Exception("Pipeline has already been executed")
        self._executed = True

        for step in self.steps:
            self.states[step.name] = StepState.RUNNING
            try:
                run_step(step)
            except StepError:
                self.states[step.name] = StepState.FAILED
                raise
            self.states[step.name] = StepState.SUCCEEDED

    def succeeded(self) -> bool:
        return all(state == StepState.SUCCEEDED for state in self.states.values())
