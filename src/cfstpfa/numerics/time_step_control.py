"""
This module contains simulator timers: a fixed sequence of report steps, and an
adaptive sub-stepping timer for use within one report step.

The residual assembly takes the time step length as input; the timers decide which
lengths are used.

Algorithm Overview (adaptive sub-stepping):

    The adaptive timer covers the interval from the start of a report step to its end.
    Each new estimate of the time step (e.g. from the convergence history of the
    nonlinear solver) is first limited by the maximum time step. Then, to avoid a
    very short final sub-step, the estimate is adjusted against the remaining part
    of the report step:

Algorithm Workflow in Pseudocode:

    INPUT
        dt_estimate // proposed time step

    SET dt = min(dt_estimate, max_time_step)
    SET remaining = total_time - current_time

    IF remaining > 0 THEN
        IF 1.05 * dt > remaining THEN
            // Less than 5% overshoot: take the remainder in one step
            SET dt = remaining
            IF dt > max_time_step THEN
                SET dt = remaining / 2
            ENDIF
        ELSEIF 1.5 * dt > remaining THEN
            // Avoid leaving less than half a step: split the remainder
            SET dt = remaining / 2
        ENDIF
    ENDIF

    RETURN dt

"""
from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

import cfstpfa as ct

__all__ = ["SimulatorTimer", "AdaptiveSimulatorTimer"]

logger = logging.getLogger(__name__)


class SimulatorTimer:
    """Timer for a fixed sequence of report steps.

    Parameters:
        time_steps: Lengths of the report steps, all positive.
        start_step: ``default=0`` Index of the first step to take.

    Raises:
        ValueError: If a step length is not positive, or the start step is out of
            range.

    Example:
        # Ten steps of one day each
        timer = ct.SimulatorTimer.from_uniform(10, 1 * ct.DAY)
        while not timer.done():
            solve(timer.current_step_length)
            timer.advance()

    Attributes:
        time_steps (np.ndarray): Lengths of the report steps.

    """

    def __init__(self, time_steps: Sequence[float], start_step: int = 0) -> None:
        time_steps = np.asarray(time_steps, dtype=float)
        if time_steps.ndim != 1:
            raise ValueError("Time steps should be given as a sequence of numbers")
        if np.any(time_steps <= 0):
            raise ValueError("Time steps must be positive.")
        if start_step < 0 or start_step > time_steps.size:
            raise ValueError(
                f"Start step {start_step} outside range of {time_steps.size} steps."
            )

        self.time_steps: np.ndarray = time_steps
        self._current_step = start_step
        self._current_time = float(time_steps[:start_step].sum())
        self._total_time = float(time_steps.sum())

    @classmethod
    def from_uniform(cls, num_steps: int = 1, step_length: float = ct.DAY):
        """Timer with ``num_steps`` steps of equal length.

        Parameters:
            num_steps: ``default=1`` Number of steps.
            step_length: ``default=ct.DAY`` Length of each step.

        """
        if num_steps < 1:
            raise ValueError("At least one time step is needed.")
        return cls(np.full(num_steps, float(step_length)))

    def __repr__(self) -> str:
        return (
            f"Simulator timer at step {self._current_step} of {self.num_steps()}, "
            f"time {self._current_time} of {self._total_time}"
        )

    def initial_step(self) -> bool:
        """Whether the current step is the first one."""
        return self._current_step == 0

    def num_steps(self) -> int:
        return self.time_steps.size

    @property
    def current_step_num(self) -> int:
        """Index of the current step."""
        return self._current_step

    @current_step_num.setter
    def current_step_num(self, step: int) -> None:
        if step < 0 or step > self.num_steps():
            raise ValueError(f"Step {step} outside range of {self.num_steps()} steps.")
        self._current_step = step
        self._current_time = float(self.time_steps[:step].sum())

    @property
    def current_step_length(self) -> float:
        """Length of the current step."""
        if self.done():
            raise ValueError("All time steps have been taken.")
        return float(self.time_steps[self._current_step])

    @property
    def step_length_taken(self) -> float:
        """Length of the step most recently taken."""
        if self._current_step == 0:
            raise ValueError("No time step has been taken.")
        return float(self.time_steps[self._current_step - 1])

    @property
    def simulation_time_elapsed(self) -> float:
        return self._current_time

    @property
    def total_time(self) -> float:
        """Total simulation time.

        Setting the total time rescales all step lengths by the same factor.

        """
        return self._total_time

    @total_time.setter
    def total_time(self, time: float) -> None:
        if time <= 0:
            raise ValueError("Total time must be positive.")
        factor = time / self._total_time
        self.time_steps = self.time_steps * factor
        self._current_time *= factor
        self._total_time = float(time)

    def advance(self) -> None:
        """Move to the next step."""
        if self.done():
            raise ValueError("All time steps have been taken.")
        self._current_time += self.time_steps[self._current_step]
        self._current_step += 1

    def done(self) -> bool:
        """Whether all steps have been taken."""
        return self._current_step == self.num_steps()

    def report(self) -> None:
        """Log the state of the timer, with times in days."""
        step_length = (
            self.time_steps[self._current_step] if not self.done() else 0.0
        )
        logger.info(
            f"Time step {self._current_step:4d}"
            f"    Current time (days) {self._current_time / ct.DAY:9.3f}"
            f"    Current stepsize (days) {step_length / ct.DAY:9.3f}"
            f"    Total time (days) {self._total_time / ct.DAY:9.3f}"
        )


class AdaptiveSimulatorTimer:
    """Timer for adaptive sub-stepping within one report step.

    Parameters:
        start_time: Simulation time at the start of the report step.
        step_length: Length of the report step.
        last_step_taken: Length of the last sub-step taken, used as the first
            estimate.
        max_time_step: ``default=inf`` Maximum sub-step length.
        report_step: ``default=0`` Index of the report step.

    Raises:
        ValueError: If the step length, the last step taken or the maximum time step
            is not positive.

    Attributes:
        start_time (float): Simulation time at the start of the report step.
        total_time (float): Simulation time at the end of the report step.
        max_time_step (float): Maximum sub-step length.
        report_step (int): Index of the report step.
        dt (float): Current sub-step length.

    """

    def __init__(
        self,
        start_time: float,
        step_length: float,
        last_step_taken: float,
        max_time_step: float = np.inf,
        report_step: int = 0,
    ) -> None:
        if step_length <= 0:
            raise ValueError("Report step length must be positive.")
        if last_step_taken <= 0:
            raise ValueError("Last step taken must be positive.")
        if max_time_step <= 0:
            raise ValueError("Maximum time step must be positive.")

        self.start_time: float = float(start_time)
        self.total_time: float = self.start_time + float(step_length)
        self.max_time_step: float = float(max_time_step)
        self.report_step: int = report_step

        self._current_time = self.start_time
        self._current_step = 0
        self._steps: list[float] = []
        self.dt: float = 0.0

        self.provide_time_step_estimate(last_step_taken)

    @classmethod
    def from_timer(
        cls,
        timer: SimulatorTimer,
        last_step_taken: float,
        max_time_step: float = np.inf,
    ) -> AdaptiveSimulatorTimer:
        """Sub-stepping timer covering the current step of a report step timer."""
        return cls(
            timer.simulation_time_elapsed,
            timer.current_step_length,
            last_step_taken,
            max_time_step=max_time_step,
            report_step=timer.current_step_num,
        )

    def __repr__(self) -> str:
        return (
            f"Adaptive simulator timer in report step {self.report_step}: "
            f"{self.num_sub_steps()} sub-steps taken, time {self._current_time} "
            f"of {self.total_time}"
        )

    def provide_time_step_estimate(self, dt_estimate: float) -> float:
        """Set the next sub-step length from an estimate.

        See the module documentation for the algorithm.

        Parameters:
            dt_estimate: Proposed sub-step length.

        Returns:
            The sub-step length that will be used, also stored in :attr:`dt`.

        """
        remaining = self.total_time - self._current_time
        # apply max time step
        dt = min(dt_estimate, self.max_time_step)

        if remaining > 0:
            if 1.05 * dt > remaining:
                dt = remaining
                if dt > self.max_time_step:
                    dt = 0.5 * remaining
            elif 1.5 * dt > remaining:
                # Avoid a very small step at the end
                dt = 0.5 * remaining

        self.dt = dt
        return dt

    @property
    def current_step_num(self) -> int:
        return self._current_step

    @property
    def current_step_length(self) -> float:
        return self.dt

    @property
    def step_length_taken(self) -> float:
        """Length of the sub-step most recently taken."""
        if not self._steps:
            raise ValueError("No time step has been taken.")
        return self._steps[-1]

    @property
    def simulation_time_elapsed(self) -> float:
        return self._current_time

    def advance(self) -> None:
        """Take a sub-step of the current length."""
        self._current_step += 1
        self._current_time += self.dt
        self._steps.append(self.dt)

    def done(self) -> bool:
        return self._current_time >= self.total_time

    def average_step_length(self) -> float:
        """Average of the sub-step lengths taken, zero if none."""
        if not self._steps:
            return 0.0
        return float(np.mean(self._steps))

    def max_step_length(self) -> float:
        if not self._steps:
            return 0.0
        return max(self._steps)

    def min_step_length(self) -> float:
        if not self._steps:
            return 0.0
        return min(self._steps)

    def num_sub_steps(self) -> int:
        return len(self._steps)

    def report(self) -> None:
        """Log start and end time and the sub-steps taken, with times in days."""
        lines = [f"Sub steps started at time = {self.start_time / ct.DAY} (days)"]
        for i, step in enumerate(self._steps):
            lines.append(f" step[ {i} ] = {step / ct.DAY} (days)")
        lines.append(f"sub steps end time = {self._current_time / ct.DAY} (days)")
        logger.info("\n".join(lines))
