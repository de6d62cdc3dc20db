"""Kubernetes client manager for lhcli."""

import logging
import os
from typing import Optional

from kubernetes import client, config
from kubernetes.client import CoreV1Api, CustomObjectsApi

from lhcli.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


class K8sClientManager:
    """Manages Kubernetes client connections.

    This class provides a centralized way to manage Kubernetes API clients
    with support for both local (kubeconfig) and in-cluster authentication.
    """

    def __init__(
        self,
        kubeconfig_path: Optional[str] = None,
        context: Optional[str] = None,
        in_cluster: bool = False
    ) -> None:
        """Initialize the Kubernetes client manager.

        Args:
            kubeconfig_path: Path to kubeconfig file
            context: Context inside the kubeconfig (uses its current context if not set)
            in_cluster: Use the pod's service account instead of a kubeconfig
        """
        self._kubeconfig_path = kubeconfig_path
        self._context = context
        self._in_cluster = in_cluster or os.getenv("LHCLI_IN_CLUSTER", "").lower() == "true"
        self._api_client = self._load_config()

    def _load_config(self) -> client.ApiClient:
        """Load Kubernetes configuration into a dedicated API client."""
        configuration = client.Configuration()
        if self._in_cluster:
            # Running inside the cluster, use service account
            try:
                config.load_incluster_config(client_configuration=configuration)
            except config.ConfigException as e:
                raise ConfigError(f"failed to load in-cluster config: {e}")
        elif self._kubeconfig_path:
            path = os.path.expanduser(self._kubeconfig_path)
            try:
                config.load_kube_config(
                    config_file=path,
                    context=self._context,
                    client_configuration=configuration,
                )
            except (config.ConfigException, OSError) as e:
                raise ConfigError(f"failed to load kubeconfig from {path}: {e}")
        else:
            # Try default kubeconfig location
            try:
                config.load_kube_config(context=self._context, client_configuration=configuration)
            except (config.ConfigException, OSError) as e:
                raise ConfigError(f"failed to load default kubeconfig: {e}")
        logger.debug("Loaded Kubernetes config for %s", configuration.host)
        return client.ApiClient(configuration)

    def get_core_v1_api(self) -> CoreV1Api:
        """Get CoreV1Api client for events and persistent volumes.

        Returns:
            CoreV1Api client instance
        """
        return client.CoreV1Api(self._api_client)

    def get_custom_objects_api(self) -> CustomObjectsApi:
        """Get CustomObjectsApi client for the Longhorn custom resources.

        Returns:
            CustomObjectsApi client instance
        """
        return client.CustomObjectsApi(self._api_client)
