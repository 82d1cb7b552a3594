# cash_planner/outputs/base.py
from abc import ABC, abstractmethod


class BaseOutput(ABC):
    @abstractmethod
    def write(self, occurrences, window_start, window_end):
        """
        Write projected occurrences for [window_start, window_end] to the sink
        and return the path written.
        """
        pass
