"""
Monitoring lifecycle state machine.

    IDLE --submit--> ACTIVE <--toggle--> PAUSED

``toggle`` before ``submit`` raises InvalidTransition. ``submit`` is one-shot.
"""
from typing import Callable, List

from .exceptions import InvalidTransition
from .models import MonitoringState

StateListener = Callable[[MonitoringState], None]


class MonitoringLifecycle:
    """Gate deciding whether recognition events may enter the pipeline."""

    def __init__(self):
        self.state = MonitoringState.IDLE
        self.submitted = False
        self._listeners: List[StateListener] = []

    @property
    def is_active(self) -> bool:
        return self.state is MonitoringState.ACTIVE

    def add_listener(self, listener: StateListener):
        self._listeners.append(listener)

    @property
    def listeners(self) -> List[StateListener]:
        return list(self._listeners)

    def submit(self) -> bool:
        """Mark attendance as submitted and start monitoring.

        Returns False without changing anything if already submitted.
        """
        if self.submitted:
            return False
        self.submitted = True
        self.state = MonitoringState.ACTIVE
        return True

    def toggle(self) -> MonitoringState:
        if not self.submitted:
            raise InvalidTransition("Submit attendance before starting camera monitoring")
        if self.state is MonitoringState.ACTIVE:
            self.state = MonitoringState.PAUSED
        else:
            self.state = MonitoringState.ACTIVE
        return self.state
