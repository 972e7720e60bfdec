"""Interface between the entry manager and a forwarding backend."""


class EntryForwarder:
    """Establishes and tears down the tunnel for one forwarding entry.

    Implementations must accept terminate() for entries that were never
    forwarded successfully, and forward() again for an entry that was
    terminated by an update.
    """

    def forward(self, entry, timeout):
        """Start forwarding entry.local_port to the target container port.

        Blocks for at most *timeout* seconds waiting for the tunnel to be
        ready and raises ForwardSessionError when it is not.
        """
        raise NotImplementedError

    def terminate(self, entry):
        """Tear down the tunnel for *entry*, if any."""
        raise NotImplementedError

    def cancel(self):
        """Abort readiness waits in progress. Called once on shutdown."""

    def is_alive(self, entry):
        """Return False once a tunnel that became ready has gone away."""
        return True
