"""
Zabbix API Client Module
Handles token authentication and the JSON-RPC queries needed to find a host's graphs.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

import requests
from pyzabbix import ZabbixAPI, ZabbixAPIException

from errors import HostNotFoundError, ZabbixAPIError, ZabbixRequestError

logger = logging.getLogger(__name__)


class ZabbixClient:
    """Client for the Zabbix JSON-RPC API, authenticated with an API token."""

    API_TIMEOUT = 10

    def __init__(self, base_url: str, token: str, session: Optional[requests.Session] = None):
        """
        Args:
            base_url: Zabbix web root (e.g., https://zabbix.example.com)
            token: API token, sent as a bearer header on every request
            session: Optional requests session to send API calls through
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.session = session
        self.api: Optional[ZabbixAPI] = None
        self._connected: bool = False

    @property
    def is_connected(self) -> bool:
        """Check if client is ready to query Zabbix."""
        return self._connected

    def connect(self) -> None:
        """
        Prepare the API object. The token is supplied by configuration, so no
        login request is made: the bearer header rides on the session.
        """
        api_url = f"{self.base_url}/api_jsonrpc.php"
        logger.info(f"Using Zabbix API at {api_url}")

        session = self.session or requests.Session()
        self.api = ZabbixAPI(api_url, session=session, detect_version=False)
        self.api.timeout = self.API_TIMEOUT
        # ZabbixAPI installs its own default headers, these must win
        session.headers.update({
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.token}',
        })
        self.session = session
        self._connected = True

    def disconnect(self) -> None:
        """Release the HTTP session."""
        if self.session is not None:
            self.session.close()
        self._connected = False
        self.api = None
        logger.debug("Disconnected from Zabbix")

    def _call(self, action: str, request: Callable[[], Any]) -> Any:
        """Run one API request, translating library errors into ours."""
        if not self._connected or not self.api:
            raise ZabbixRequestError(f"Not connected, cannot run {action}")

        try:
            result = request()
        except ZabbixAPIException as e:
            error = getattr(e, 'error', None)
            if isinstance(error, dict) and error.get('message'):
                message = error['message']
                if error.get('data'):
                    message = f"{message} {error['data']}"
            else:
                message = str(e.args[0]) if e.args else str(e)
            logger.error(f"API issue on {action}: {message}")
            raise ZabbixAPIError(action, message) from e
        except requests.RequestException as e:
            logger.error(f"Request failed on {action}: {str(e)}")
            raise ZabbixRequestError(f"Request failed on {action}: {str(e)}") from e

        logger.debug(f"Response for {action}:\n{json.dumps(result, indent=2)}")
        return result

    def resolve_host(self, hostname: str) -> str:
        """
        Find the id of a host by its exact technical name.

        Args:
            hostname: Host name as configured in Zabbix (e.g., ec2-preprod)

        Returns:
            The hostid of the first matching host

        Raises:
            ZabbixRequestError: If the request could not be sent
            ZabbixAPIError: If the API returned an error
            HostNotFoundError: If no host matches
        """
        hosts: List[Dict[str, Any]] = self._call('host.get', lambda: self.api.host.get(
            filter={'host': hostname},
            output=['hostid', 'host'],
            selectInterfaces=['interfaceid', 'ip'],
        ))

        if not hosts or not hosts[0].get('hostid'):
            logger.error(f"Host not found: {hostname}")
            raise HostNotFoundError(hostname)

        if len(hosts) > 1:
            logger.debug(f"{len(hosts)} hosts match {hostname}, using the first one")

        host_id = str(hosts[0]['hostid'])
        logger.info(f"Host ID: {host_id}")
        return host_id

    def list_graphs(self, host_id: str) -> Dict[str, str]:
        """
        Get the graphs defined for a host.

        Args:
            host_id: The host ID to get graphs from

        Returns:
            Mapping of graphid to graph name, empty if the host has no graphs
        """
        rows: List[Dict[str, Any]] = self._call('graph.get', lambda: self.api.graph.get(
            hostids=[host_id],
            output=['graphid', 'name'],
        ))

        graphs: Dict[str, str] = {}
        for row in rows or []:
            graphs[str(row['graphid'])] = row['name']

        logger.info(f"Found {len(graphs)} graphs for host {host_id}")
        return graphs
