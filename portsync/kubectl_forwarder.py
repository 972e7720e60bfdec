"""
kubectl port-forward backend.

Each forwarding entry runs one `kubectl port-forward pod/<name>` process in
the background. Readiness is detected by polling the local port until it
accepts connections; the wait is bounded by the timeout the entry manager
passes in. kubectl stderr is drained on a daemon thread per process
and logged line by line.
"""
import collections
import logging
import socket
import subprocess
import threading
import time

from portsync.backend import EntryForwarder
from portsync.errors import ForwardSessionError

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20


class KubectlForwarder(EntryForwarder):
    """Forwarding backend driving kubectl port-forward processes."""

    def __init__(self, kubectl="kubectl", kube_context=None, address="127.0.0.1", poll_interval=0.1):
        """
        Initialize the backend.

        Args:
            kubectl: kubectl executable (default: kubectl)
            kube_context: kubeconfig context passed as --context (optional)
            address: Local address kubectl binds to (default: 127.0.0.1)
            poll_interval: Seconds between readiness probes (default: 0.1)
        """
        self.kubectl = kubectl
        self.kube_context = kube_context
        self.address = address
        self.poll_interval = poll_interval
        self._processes = {}
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    def command(self, entry):
        """Build the kubectl command line for *entry*."""
        cmd = [
            self.kubectl, "port-forward",
            f"pod/{entry.pod_name}",
            f"{entry.local_port}:{entry.container_port}",
            "-n", entry.namespace,
            "--address", self.address,
        ]
        if self.kube_context:
            cmd.extend(["--context", self.kube_context])
        return cmd

    def forward(self, entry, timeout):
        key = entry.key()
        self.terminate(entry)

        try:
            process = subprocess.Popen(
                self.command(entry),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise ForwardSessionError(f"failed to start kubectl port-forward for {key}: {e}", key=key) from e

        stderr_tail = collections.deque(maxlen=STDERR_TAIL_LINES)
        reader = threading.Thread(
            target=self._drain_stderr,
            args=(key, process, stderr_tail),
            name=f"kubectl-stderr-{key}",
            daemon=True,
        )
        with self._lock:
            self._processes[key] = process
        reader.start()

        deadline = time.monotonic() + timeout
        while True:
            if process.poll() is not None:
                self._forget(key, process)
                reader.join(timeout=1)
                stderr = "\n".join(stderr_tail)
                raise ForwardSessionError(
                    f"kubectl port-forward for {key} exited with code {process.returncode}: {stderr}",
                    key=key,
                )
            if self._is_listening(entry.local_port):
                logger.info(f"✓ Port forwarded {entry}")
                return
            if self._cancelled.is_set() or time.monotonic() >= deadline:
                break
            self._cancelled.wait(self.poll_interval)

        self._forget(key, process)
        self._stop_process(key, process)
        raise ForwardSessionError(f"port-forward for {key} not ready after {timeout}s", key=key)

    def terminate(self, entry):
        key = entry.key()
        with self._lock:
            process = self._processes.pop(key, None)
        if process is not None:
            self._stop_process(key, process)

    def cancel(self):
        self._cancelled.set()

    def is_alive(self, entry):
        with self._lock:
            process = self._processes.get(entry.key())
        return process is not None and process.poll() is None

    def _drain_stderr(self, key, process, tail):
        """Log kubectl stderr until the process closes it; keeps the last lines in *tail*."""
        for line in process.stderr:
            line = line.rstrip()
            if line:
                tail.append(line)
                logger.debug(f"kubectl[{key}]: {line}")
        returncode = process.wait()
        with self._lock:
            unexpected = self._processes.get(key) is process
        if unexpected:
            logger.warning(f"⚠ kubectl port-forward for {key} exited with code {returncode}")

    def _forget(self, key, process):
        with self._lock:
            if self._processes.get(key) is process:
                del self._processes[key]

    def _is_listening(self, port):
        try:
            with socket.create_connection((self.address, port), timeout=self.poll_interval):
                return True
        except OSError:
            return False

    def _stop_process(self, key, process):
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning(f"⚠ kubectl port-forward for {key} did not exit, killing it")
            process.kill()
