import datetime as dt
import json
import os
import sys
from contextlib import contextmanager
from typing import Any, Dict, Optional

from . import __version__, constants


class Step:
    """Class that represents a single pipeline step, such as building the
    index or running alevin.

    :param skipped: whether the step was skipped because its outputs already exist, defaults to `False`
    :type skipped: bool, optional
    :param **kwargs: additional information to save with the step, such as output paths
    """

    def __init__(self, skipped: bool = False, **kwargs):
        self.start_time = None
        self.end_time = None
        self.elapsed = None
        self.skipped = skipped
        self.extra = kwargs

    def start(self):
        self.start_time = dt.datetime.now()

    def end(self):
        self.end_time = dt.datetime.now()
        self.elapsed = (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start_time': None if self.skipped else self.start_time.isoformat(),
            'end_time': None if self.skipped else self.end_time.isoformat(),
            'elapsed': None if self.skipped else self.elapsed,
            'skipped': self.skipped,
            **self.extra
        }


class Stats:
    """Class used to collect run statistics of a single command.
    """

    def __init__(self):
        self.call = None

        self.start_time = None
        self.end_time = None
        self.elapsed = None

        self.steps = {}
        self.step_order = []

        self.version = __version__

    def start(self):
        """Start collecting statistics.

        Sets start time and the command line call.
        """
        self.start_time = dt.datetime.now()
        self.call = ' '.join(sys.argv)

    def end(self):
        self.end_time = dt.datetime.now()
        self.elapsed = (self.end_time - self.start_time).total_seconds()

    @contextmanager
    def step(self, key: str, skipped: bool = False, **kwargs):
        """Register a processing step.

        Any additional keyword arguments are passed to the constructor of `Step`.

        :param key: step name
        :type key: str
        :param skipped: whether this step is skipped, defaults to `False`
        :type skipped: bool, optional
        """
        step = Step(skipped=skipped, **kwargs)
        self.steps[key] = step
        self.step_order.append(key)
        if not skipped:
            step.start()
        yield step
        if not skipped:
            step.end()

    def default_path(self, out_dir: str) -> str:
        """Timestamped path to save these statistics in the given directory.
        """
        return os.path.join(
            out_dir, f'{constants.STATS_PREFIX}_{dt.datetime.strftime(self.start_time, "%Y%m%d_%H%M%S_%f")}.json'
        )

    def save(self, path: Optional[str] = None, out_dir: Optional[str] = None) -> str:
        """Save statistics as JSON.

        :param path: path to JSON, defaults to `None`
        :type path: str, optional
        :param out_dir: when `path` is not given, save to a timestamped file in this directory
        :type out_dir: str, optional

        :return: path to saved JSON
        :rtype: str
        """
        path = path or self.default_path(out_dir or '.')
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=4)
        return path

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'call': self.call,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'elapsed': self.elapsed,
            'step_order': self.step_order,
            'steps': {key: step.to_dict()
                      for key, step in self.steps.items()}
        }
