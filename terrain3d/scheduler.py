"""Repeating-task scheduling with explicit, cancellable handles.

Two schedulers share the same ``call_every(interval, callback)`` interface:

* ``SimulatedScheduler`` advances a virtual clock on demand. It drives
  headless use and tests.
* ``CanvasTimerScheduler`` runs callbacks on matplotlib canvas timers inside
  the interactive viewer.
"""

import heapq
import itertools


class ScheduledTask:
    """Handle to a repeating callback.

    ``cancel()`` is idempotent. A cancelled task never fires again.
    """

    def __init__(self, callback, interval, on_cancel=None):
        self.callback = callback
        self.interval = interval
        self._on_cancel = on_cancel
        self._cancelled = False

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self):
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            on_cancel, self._on_cancel = self._on_cancel, None
            on_cancel()

    def __repr__(self):
        state = 'cancelled' if self._cancelled else 'active'
        return f"ScheduledTask(interval={self.interval}, {state})"


class SimulatedScheduler:
    """Scheduler driven by a virtual clock.

    Examples
    --------
    >>> ticks = []
    >>> sched = SimulatedScheduler()
    >>> task = sched.call_every(0.05, lambda: ticks.append(sched.time))
    >>> sched.advance(0.2)
    4
    """

    # Tolerance for accumulated floating point error in due times
    _EPS = 1e-9

    def __init__(self):
        self.time = 0.0
        self._queue = []
        self._counter = itertools.count()

    def call_every(self, interval, callback):
        """Run *callback* every *interval* seconds until cancelled."""
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        task = ScheduledTask(callback, interval)
        heapq.heappush(self._queue, (self.time + interval, next(self._counter), task))
        return task

    @property
    def active_tasks(self):
        return [task for _, _, task in self._queue if not task.cancelled]

    def advance(self, seconds):
        """Advance the clock, firing due callbacks in time order.

        Returns
        -------
        int
            Number of callbacks fired.
        """
        end = self.time + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= end + self._EPS:
            due, _, task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            self.time = due
            task.callback()
            fired += 1
            if not task.cancelled:
                heapq.heappush(
                    self._queue, (due + task.interval, next(self._counter), task)
                )
        self.time = end
        return fired


class CanvasTimerScheduler:
    """Scheduler backed by matplotlib canvas timers.

    Parameters
    ----------
    canvas : matplotlib.backend_bases.FigureCanvasBase
        Canvas whose ``new_timer`` creates the timers.
    """

    def __init__(self, canvas):
        self.canvas = canvas

    def call_every(self, interval, callback):
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        timer = self.canvas.new_timer(interval=max(1, int(interval * 1000)))
        timer.add_callback(callback)

        def _stop():
            timer.stop()
            timer.remove_callback(callback)

        task = ScheduledTask(callback, interval, on_cancel=_stop)
        timer.start()
        return task
