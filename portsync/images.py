"""Set of container images built or deployed by the current session."""
import threading


class TrackedImages:
    """Thread-safe image set; the build pipeline adds while the forwarder reads."""

    def __init__(self, images=()):
        self._lock = threading.Lock()
        self._images = set(images)

    def add(self, image):
        with self._lock:
            self._images.add(image)

    def contains(self, image):
        with self._lock:
            return image in self._images

    def __contains__(self, image):
        return self.contains(image)

    def __len__(self):
        with self._lock:
            return len(self._images)
