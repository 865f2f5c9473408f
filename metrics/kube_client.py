import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

logger = logging.getLogger(__name__)


class ClusterAPIError(Exception):
    pass


class ClusterConnectionError(ClusterAPIError):
    """Cluster unreachable, request timed out, or credentials could not be loaded"""
    pass


class ClusterQueryError(ClusterAPIError):
    """The API server answered with a non-success status"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class KubernetesClientSet:
    core: client.CoreV1Api
    apps: client.AppsV1Api
    custom: client.CustomObjectsApi
    page_size: int = 0
    request_timeout_seconds: int = 30


def _new_api_client(kubeconfig: Optional[str], context: Optional[str]) -> client.ApiClient:
    configuration = client.Configuration()
    if kubeconfig or context:
        config.load_kube_config(config_file=kubeconfig, context=context,
                                client_configuration=configuration)
    else:
        try:
            config.load_kube_config(client_configuration=configuration)
        except ConfigException:
            logger.debug("No usable kubeconfig found, falling back to in-cluster configuration")
            config.load_incluster_config(client_configuration=configuration)
    # a failed request is reported, never repeated
    configuration.retries = 0
    return client.ApiClient(configuration)


def load_clients(*, kubeconfig: Optional[str] = None, context: Optional[str] = None,
                 page_size: int = 0, request_timeout_seconds: int = 30) -> KubernetesClientSet:
    """Create Kubernetes API clients using kubeconfig/context, or in-cluster credentials.

    This is the single place where credentials are loaded; discovery and
    telemetry only receive the resulting client set.
    """
    if kubeconfig:
        logger.debug(f"Creating Kubernetes client from {kubeconfig}")
    else:
        logger.debug("Creating Kubernetes client from default loading rules")
    try:
        api_client = _new_api_client(kubeconfig, context)
    except (ConfigException, OSError) as e:
        raise ClusterConnectionError(f"cannot load cluster credentials: {e}") from e

    return KubernetesClientSet(
        core=client.CoreV1Api(api_client),
        apps=client.AppsV1Api(api_client),
        custom=client.CustomObjectsApi(api_client),
        page_size=page_size,
        request_timeout_seconds=request_timeout_seconds,
    )


def call_api(description: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
    """Invoke a kubernetes client method, translating failures to ClusterAPIError."""
    try:
        return fn(*args, **kwargs)
    except ApiException as e:
        raise ClusterQueryError(
            f"{description}: API returned status {e.status}: {e.reason}", status=e.status
        ) from e
    except (urllib3.exceptions.HTTPError, OSError) as e:
        raise ClusterConnectionError(f"{description}: request failed: {e}") from e


def _page(resp: Any):
    # Typed list objects vs. the plain dicts returned for custom resources
    if isinstance(resp, dict):
        return resp.get("items") or [], (resp.get("metadata") or {}).get("continue")
    return resp.items or [], getattr(resp.metadata, "_continue", None)


def list_all(clients: KubernetesClientSet, description: str,
             fn: Callable[..., Any], *args, **kwargs) -> List[Any]:
    """Run a list call to completion, following continue tokens when paging is enabled."""
    kwargs["_request_timeout"] = clients.request_timeout_seconds
    if clients.page_size:
        kwargs["limit"] = clients.page_size

    items: List[Any] = []
    while True:
        resp = call_api(description, fn, *args, **kwargs)
        page, token = _page(resp)
        items.extend(page)
        if not clients.page_size or not token:
            return items
        kwargs["_continue"] = token
