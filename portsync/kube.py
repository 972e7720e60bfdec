"""Kubernetes client loading."""
import logging

from kubernetes import client, config

from portsync.errors import WatchSourceError

logger = logging.getLogger(__name__)


def load_core_v1(context=None):
    """
    Load cluster configuration and return a CoreV1Api client.

    Tries the in-cluster service account first and falls back to the
    kubeconfig from ~/.kube/config or KUBECONFIG.

    Args:
        context: kubeconfig context to use (optional)

    Returns:
        kubernetes.client.CoreV1Api: Client for pods

    Raises:
        WatchSourceError: If no configuration could be loaded
    """
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        try:
            config.load_kube_config(context=context)
            logger.info(f"Loaded kubeconfig (context: {context or 'current'})")
        except (config.ConfigException, FileNotFoundError) as e:
            raise WatchSourceError(f"no Kubernetes configuration available: {e}") from e
    return client.CoreV1Api()
