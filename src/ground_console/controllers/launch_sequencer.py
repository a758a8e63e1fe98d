"""
Launch Sequencer - narrated launch state machine.

States:
    IDLE --start--> RUNNING --step--> RUNNING
                            --last step--> COMPLETE
                            --abort--> ABORTED

ARMED is reserved: arming is implicit in start(). COMPLETE and ABORTED
are terminal; LaunchController builds a fresh sequencer for each run.

What makes a step fire is a pluggable trigger:
- ScriptedTrigger replays fixed offsets (mock mode, deterministic)
- TelemetryTrigger fires each step when its condition holds on an
  incoming TelemetryRecord (live mode)

Step firing and abort() serialize through the sequencer lock, so once
abort() returns no step of that run can reach the console.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import threading

from ..communication.telemetry import TelemetryRecord
from ..models.console_log import ConsoleLog
from ..models.telemetry_store import TelemetryStore
from ..utils.observer import Subject, Subscription, SubscriptionGroup
from ..utils.scheduling import ScheduledCall, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)


class LaunchState(Enum):
    """Launch sequence states."""
    IDLE = auto()
    ARMED = auto()
    RUNNING = auto()
    ABORTED = auto()
    COMPLETE = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (LaunchState.ABORTED, LaunchState.COMPLETE)


class LaunchEvent(Enum):
    """Events that trigger state transitions."""
    START = auto()
    STEP = auto()
    LAST_STEP = auto()
    ABORT = auto()


class LaunchMode(Enum):
    """Where step triggers come from."""
    MOCK = "mock"
    LIVE = "live"


_TRANSITIONS: Dict[Tuple[LaunchState, LaunchEvent], LaunchState] = {
    (LaunchState.IDLE, LaunchEvent.START): LaunchState.RUNNING,
    (LaunchState.RUNNING, LaunchEvent.STEP): LaunchState.RUNNING,
    (LaunchState.RUNNING, LaunchEvent.LAST_STEP): LaunchState.COMPLETE,
    (LaunchState.RUNNING, LaunchEvent.ABORT): LaunchState.ABORTED,
}


class InvalidTransition(Exception):
    """An event is not allowed in the current state."""
    pass


@dataclass(frozen=True)
class LaunchStep:
    """
    One narrated step.

    offset_ms schedules the step in mock mode; condition gates it in
    live mode (None fires as soon as the previous step has fired).
    """
    offset_ms: int
    text: str
    side_effect: Optional[Callable[[], None]] = field(default=None, compare=False)
    condition: Optional[Callable[[TelemetryRecord], bool]] = field(default=None, compare=False)


class StepTrigger(ABC):
    """Decides when the sequencer's next step fires."""

    @abstractmethod
    def begin(self, sequencer: "LaunchSequencer") -> None:
        """Called once, under the sequencer lock, when the run starts."""
        pass

    def on_telemetry(self, sequencer: "LaunchSequencer", record: TelemetryRecord) -> None:
        """Called under the sequencer lock for each record while running."""
        pass

    def cancel(self) -> None:
        """Drop anything still pending."""
        pass


class ScriptedTrigger(StepTrigger):
    """Fires steps at their fixed offsets from start()."""

    def __init__(self, scheduler: Optional[Scheduler] = None):
        self._scheduler = scheduler or ThreadingScheduler()
        self._pending: List[ScheduledCall] = []

    def begin(self, sequencer: "LaunchSequencer") -> None:
        for index, step in enumerate(sequencer.steps):
            call = self._scheduler.call_later(step.offset_ms / 1000.0,
                                              partial(sequencer.fire_through, index))
            self._pending.append(call)

    def cancel(self) -> None:
        for call in self._pending:
            call.cancel()
        self._pending.clear()


class TelemetryTrigger(StepTrigger):
    """Fires steps in order as incoming telemetry satisfies their conditions."""

    def begin(self, sequencer: "LaunchSequencer") -> None:
        self._advance(sequencer, None)

    def on_telemetry(self, sequencer: "LaunchSequencer", record: TelemetryRecord) -> None:
        self._advance(sequencer, record)

    @staticmethod
    def _advance(sequencer: "LaunchSequencer", record: Optional[TelemetryRecord]) -> None:
        while sequencer.state == LaunchState.RUNNING:
            step = sequencer.next_step
            if step is None:
                return
            if step.condition is not None:
                if record is None or not step.condition(record):
                    return
            sequencer.fire_next()


class LaunchSequencer:
    """
    One run of a launch sequence.

    Usage:
        sequencer = LaunchSequencer(default_mock_script(), ScriptedTrigger(), console)
        sequencer.start()
        ...
        sequencer.abort()
    """

    def __init__(self, steps: Sequence[LaunchStep], trigger: StepTrigger,
                 console: ConsoleLog, mode: LaunchMode = LaunchMode.MOCK):
        if not steps:
            raise ValueError("A launch sequence needs at least one step")
        offsets = [step.offset_ms for step in steps]
        if offsets != sorted(offsets):
            raise ValueError("Launch step offsets must be non-decreasing")

        self._steps: Tuple[LaunchStep, ...] = tuple(steps)
        self._trigger = trigger
        self._console = console
        self.mode = mode

        self._lock = threading.RLock()
        self._state = LaunchState.IDLE
        self._next_index = 0
        self._fired: List[LaunchStep] = []
        self._state_changed: Subject[LaunchState] = Subject("launch-state")

    @property
    def state(self) -> LaunchState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state == LaunchState.RUNNING

    @property
    def steps(self) -> Tuple[LaunchStep, ...]:
        return self._steps

    @property
    def next_step(self) -> Optional[LaunchStep]:
        with self._lock:
            if self._next_index < len(self._steps):
                return self._steps[self._next_index]
            return None

    @property
    def fired_steps(self) -> Tuple[LaunchStep, ...]:
        with self._lock:
            return tuple(self._fired)

    def subscribe(self, callback: Callable[[LaunchState], None], owner: object = None) -> Subscription:
        """Subscribe to state changes. Callbacks run under the sequencer lock."""
        return self._state_changed.subscribe(callback, owner=owner)

    # ========================================================================
    # Public API - State Transitions
    # ========================================================================

    def start(self) -> None:
        """
        Start the run.

        Raises:
            InvalidTransition: If the sequencer is not IDLE
        """
        with self._lock:
            self._handle_event(LaunchEvent.START)
            logger.info(f"Launch sequence started ({self.mode.value}, {len(self._steps)} steps)")
            self._trigger.begin(self)

    def abort(self) -> bool:
        """
        Abort the run and cancel every pending step.

        Returns:
            True if the run was aborted, False if it was not running
        """
        with self._lock:
            if self._state != LaunchState.RUNNING:
                return False
            self._trigger.cancel()
            self._console.append("Launch sequence aborted")
            self._handle_event(LaunchEvent.ABORT)
            logger.info(f"Launch sequence aborted after {len(self._fired)} steps")
            return True

    def on_telemetry(self, record: TelemetryRecord) -> None:
        """Offer a record to the trigger while running."""
        with self._lock:
            if self._state == LaunchState.RUNNING:
                self._trigger.on_telemetry(self, record)

    def fire_through(self, index: int) -> None:
        """Fire every pending step up to and including index, in order."""
        with self._lock:
            while self._state == LaunchState.RUNNING and self._next_index <= index:
                self.fire_next()

    def fire_next(self) -> None:
        """Fire the next step. No effect unless running."""
        with self._lock:
            if self._state != LaunchState.RUNNING or self._next_index >= len(self._steps):
                return

            step = self._steps[self._next_index]
            self._next_index += 1
            self._fired.append(step)
            self._console.append(step.text)

            if step.side_effect is not None:
                try:
                    step.side_effect()
                except Exception as e:
                    logger.error(f"Launch step side effect failed at '{step.text}': {e}")

            if self._next_index == len(self._steps):
                self._handle_event(LaunchEvent.LAST_STEP)
                logger.info("Launch sequence complete")
            else:
                self._handle_event(LaunchEvent.STEP)

    # ========================================================================
    # Internal - Event Handling
    # ========================================================================

    def _handle_event(self, event: LaunchEvent) -> None:
        """Process state machine event. Caller holds the lock."""
        old_state = self._state
        new_state = _TRANSITIONS.get((old_state, event))
        if new_state is None:
            raise InvalidTransition(f"{event.name} not allowed in state {old_state.name}")

        if new_state != old_state:
            self._state = new_state
            logger.debug(f"Launch state: {old_state.name} -> {new_state.name}")
            self._state_changed.notify(new_state)


# ============================================================================
# Scripts
# ============================================================================

LIFTOFF_ACCEL_MS2 = 15.0
BURNOUT_ACCEL_MS2 = 5.0
APOGEE_DESCENT_M = 10.0
TOUCHDOWN_MARGIN_M = 15.0
GPS_LOCK_SATELLITES = 4


def default_mock_script() -> List[LaunchStep]:
    """Fixed countdown and flight narration replayed in mock mode."""
    steps = [
        LaunchStep(0, "Initializing launch sequence..."),
        LaunchStep(1000, "Running pre-flight systems check..."),
        LaunchStep(2000, "Systems check complete"),
    ]
    for second in range(10, 0, -1):
        steps.append(LaunchStep(3000 + (10 - second) * 1000, f"T-{second}"))
    steps += [
        LaunchStep(13000, "Ignition"),
        LaunchStep(14000, "Liftoff!"),
        LaunchStep(18000, "Motor burnout"),
        LaunchStep(30000, "Apogee reached"),
        LaunchStep(31000, "Drogue parachute deployed"),
        LaunchStep(45000, "Main parachute deployed"),
        LaunchStep(75000, "Touchdown. Launch sequence complete"),
    ]
    return steps


class _ApogeeDetector:
    """True once altitude has fallen APOGEE_DESCENT_M below its peak."""

    def __init__(self):
        self.peak: Optional[float] = None

    def __call__(self, record: TelemetryRecord) -> bool:
        if record.altitude_m is None:
            return False
        if self.peak is None or record.altitude_m > self.peak:
            self.peak = record.altitude_m
        return record.altitude_m <= self.peak - APOGEE_DESCENT_M


class _TouchdownDetector:
    """True when altitude is back near the altitude seen at the first record."""

    def __init__(self):
        self.ground: Optional[float] = None

    def observe(self, record: TelemetryRecord) -> bool:
        if self.ground is None and record.altitude_m is not None:
            self.ground = record.altitude_m
        return True

    def __call__(self, record: TelemetryRecord) -> bool:
        if self.ground is None or record.altitude_m is None:
            return False
        return record.altitude_m <= self.ground + TOUCHDOWN_MARGIN_M


def default_live_script() -> List[LaunchStep]:
    """Device-driven narration; fresh detector state for every run."""
    touchdown = _TouchdownDetector()
    return [
        LaunchStep(0, "Live launch sequence armed, waiting for telemetry..."),
        LaunchStep(0, "Telemetry link confirmed", condition=touchdown.observe),
        LaunchStep(0, "GPS lock acquired",
                   condition=lambda r: (r.satellite_count or 0) >= GPS_LOCK_SATELLITES),
        LaunchStep(0, "Liftoff detected",
                   condition=lambda r: r.accel_z is not None and r.accel_z >= LIFTOFF_ACCEL_MS2),
        LaunchStep(0, "Motor burnout",
                   condition=lambda r: r.accel_z is not None and r.accel_z < BURNOUT_ACCEL_MS2),
        LaunchStep(0, "Apogee detected", condition=_ApogeeDetector()),
        LaunchStep(0, "Touchdown. Launch sequence complete", condition=touchdown),
    ]


# ============================================================================
# Controller
# ============================================================================

ScriptFactory = Callable[[], List[LaunchStep]]


class LaunchController:
    """
    Owns the current sequencer run and the externally observed run flag.

    A new sequencer is built for every start(); a finished or aborted
    run is discarded then.
    """

    def __init__(self, console: ConsoleLog, store: TelemetryStore,
                 scheduler: Optional[Scheduler] = None,
                 mock_script: ScriptFactory = default_mock_script,
                 live_script: ScriptFactory = default_live_script):
        self._console = console
        self._scheduler = scheduler or ThreadingScheduler()
        self._scripts: Dict[LaunchMode, ScriptFactory] = {
            LaunchMode.MOCK: mock_script,
            LaunchMode.LIVE: live_script,
        }
        self._lock = threading.Lock()
        # Held from the busy check until the new run is RUNNING
        self._start_lock = threading.RLock()
        self._current: Optional[LaunchSequencer] = None
        self._running = False

        self._state_changed: Subject[LaunchState] = Subject("launch")
        self._run_flag: Subject[bool] = Subject("run-flag")
        self._subscriptions = SubscriptionGroup()
        self._subscriptions.add(store.subscribe(self._on_telemetry, owner=self))

    @property
    def current(self) -> Optional[LaunchSequencer]:
        with self._lock:
            return self._current

    @property
    def state(self) -> LaunchState:
        sequencer = self.current
        return sequencer.state if sequencer else LaunchState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state == LaunchState.RUNNING

    def subscribe_state(self, callback: Callable[[LaunchState], None], owner: object = None) -> Subscription:
        return self._state_changed.subscribe(callback, owner=owner)

    def subscribe_run_flag(self, callback: Callable[[bool], None], owner: object = None) -> Subscription:
        return self._run_flag.subscribe(callback, owner=owner)

    def start(self, mode: LaunchMode = LaunchMode.MOCK) -> bool:
        """
        Start a fresh run.

        Returns:
            False if a run is already in progress
        """
        with self._start_lock:
            with self._lock:
                if self._current is not None and self._current.is_running:
                    logger.warning("Launch start ignored: sequence already running")
                    self._console.append("Launch sequence already running")
                    return False

                if mode == LaunchMode.MOCK:
                    trigger: StepTrigger = ScriptedTrigger(self._scheduler)
                else:
                    trigger = TelemetryTrigger()
                sequencer = LaunchSequencer(self._scripts[mode](), trigger, self._console, mode)
                sequencer.subscribe(self._on_state_changed, owner=self)
                self._current = sequencer

            # State observers may read self.current, so _lock is released here
            sequencer.start()
        return True

    def abort(self) -> bool:
        """Abort the current run. Returns False if nothing was running."""
        with self._start_lock:
            sequencer = self.current
            if sequencer is None:
                return False
            return sequencer.abort()

    def shutdown(self) -> None:
        """Abort any run and release subscriptions."""
        self.abort()
        self._subscriptions.cancel_all()

    def _on_telemetry(self, record: TelemetryRecord) -> None:
        sequencer = self.current
        if sequencer is not None:
            sequencer.on_telemetry(record)

    def _on_state_changed(self, state: LaunchState) -> None:
        self._state_changed.notify(state)
        running = state == LaunchState.RUNNING
        if running != self._running:
            self._running = running
            self._run_flag.notify(running)
