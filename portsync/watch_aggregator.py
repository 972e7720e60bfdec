"""
Pod watch aggregation.

Merges one kubernetes watch stream per selector into a single queue consumed
by the pod forwarder. Events from one source keep their order; there is no
ordering across sources. The aggregator only manages subscription lifetime,
it never interprets events.
"""
import logging
import threading
from dataclasses import dataclass

from kubernetes import watch

from portsync.errors import WatchSourceError

logger = logging.getLogger(__name__)

STOP_JOIN_TIMEOUT = 2.0


@dataclass(frozen=True)
class PodSelector:
    """One pod subscription: a namespace and an optional label selector."""

    namespace: str
    label_selector: str = ""

    def __str__(self):
        if self.label_selector:
            return f"{self.namespace} ({self.label_selector})"
        return self.namespace


class PodWatchAggregator:
    """Fan-in of pod watch streams."""

    def __init__(self, core_v1, watch_factory=watch.Watch, timeout_seconds=None):
        """
        Initialize the aggregator.

        Args:
            core_v1: Kubernetes CoreV1Api client
            watch_factory: Callable returning a kubernetes.watch.Watch-like object
            timeout_seconds: Server-side timeout for each watch (optional)
        """
        self.core_v1 = core_v1
        self.watch_factory = watch_factory
        self.timeout_seconds = timeout_seconds

    def start(self, selectors, aggregate):
        """
        Start one watch per selector, pushing raw events onto *aggregate*.

        Args:
            selectors: Iterable of PodSelector
            aggregate: queue.Queue receiving the event dicts

        Returns:
            callable: Idempotent function stopping every subscription

        Raises:
            WatchSourceError: If no selector is given or a watch cannot be created
        """
        selectors = list(selectors)
        if not selectors:
            raise WatchSourceError("no namespaces to watch for pods")

        stopped = threading.Event()
        watchers = []
        threads = []
        stop_lock = threading.Lock()

        def stop():
            with stop_lock:
                if stopped.is_set():
                    return
                stopped.set()
            for w in watchers:
                w.stop()
            for thread in threads:
                if thread.is_alive() and thread is not threading.current_thread():
                    thread.join(timeout=STOP_JOIN_TIMEOUT)
            logger.debug(f"Stopped {len(watchers)} pod watch(es)")

        for selector in selectors:
            try:
                w = self.watch_factory()
            except Exception as e:
                stop()
                raise WatchSourceError(f"failed to create pod watch for {selector}: {e}") from e
            watchers.append(w)
            thread = threading.Thread(
                target=self._pump,
                args=(selector, w, stopped, aggregate),
                name=f"pod-watch-{selector.namespace}",
                daemon=True,
            )
            threads.append(thread)

        for thread in threads:
            thread.start()

        logger.info(f"Watching pods in: {', '.join(str(s) for s in selectors)}")
        return stop

    def _stream_kwargs(self, selector):
        kwargs = {"namespace": selector.namespace}
        if selector.label_selector:
            kwargs["label_selector"] = selector.label_selector
        if self.timeout_seconds:
            kwargs["timeout_seconds"] = self.timeout_seconds
        return kwargs

    def _pump(self, selector, w, stopped, aggregate):
        try:
            for event in w.stream(self.core_v1.list_namespaced_pod, **self._stream_kwargs(selector)):
                if stopped.is_set():
                    break
                aggregate.put(event)
        except Exception as e:
            # A failed source ends only its own contribution.
            if not stopped.is_set():
                logger.warning(f"⚠ Pod watch for {selector} ended: {e}")
        else:
            logger.debug(f"Pod watch for {selector} closed")
