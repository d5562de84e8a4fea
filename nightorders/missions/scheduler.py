"""
Dependency Scheduler for Night Orders.

Picks the next runnable step of a mission. The scan is redone from
scratch on every call: a step's outcome can change whether later steps
are runnable, so no queue is cached between calls.
"""

import copy
from typing import List, Optional

from .mission_types import Mission, Step, StepStatus

_UNSATISFIABLE = frozenset({StepStatus.FAILED, StepStatus.SKIPPED})


def dependencies_met(mission: Mission, step: Step) -> bool:
    """True when every dependency of ``step`` resolves to a completed step."""
    for dep_id in step.dependencies:
        dep = mission.get_step(dep_id)
        if dep is None or dep.status != StepStatus.COMPLETED:
            return False
    return True


def next_runnable_step(mission: Mission) -> Optional[Step]:
    """
    Return the first pending step (by ascending step id) whose
    dependencies are all completed, or None.

    Pure: the mission is not modified.
    """
    for step in mission.ordered_steps():
        if step.status != StepStatus.PENDING:
            continue
        if dependencies_met(mission, step):
            return step
    return None


def blocked_steps(mission: Mission) -> List[Step]:
    """
    Pending steps that can never become runnable.

    A step is blocked when a dependency is missing, failed or skipped, or
    is itself blocked.
    """
    blocked_ids = set()
    changed = True
    while changed:
        changed = False
        for step in mission.ordered_steps():
            if step.status != StepStatus.PENDING or step.step_id in blocked_ids:
                continue
            for dep_id in step.dependencies:
                dep = mission.get_step(dep_id)
                if dep is None or dep.status in _UNSATISFIABLE or dep_id in blocked_ids:
                    blocked_ids.add(step.step_id)
                    changed = True
                    break
    return [s for s in mission.ordered_steps() if s.step_id in blocked_ids]


def planned_order(mission: Mission) -> List[int]:
    """
    Step ids in the order they would run if every step succeeded.

    Simulated on a copy; the mission itself is untouched. Steps that can
    never run (missing or cyclic dependencies) are left out.
    """
    shadow = copy.deepcopy(mission)
    order: List[int] = []
    step = next_runnable_step(shadow)
    while step is not None:
        step.status = StepStatus.COMPLETED
        order.append(step.step_id)
        step = next_runnable_step(shadow)
    return order
