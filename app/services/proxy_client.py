"""
Proxy Client - RPC to external integration proxies

Every integration without a local implementation is served by a proxy
function named by convention (e.g. "slack-proxy"). Calls are JSON POSTs to
{PROXY_BASE_URL}/{proxy_name}; the proxy answers {data...} or {error}.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


@dataclass
class ProxyResponse:
    """Response of a proxy invocation"""
    status_code: int
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ProxyClient:
    """
    Usage:
        client = ProxyClient(base_url, api_key)
        response = await client.invoke('slack-proxy', {'action': 'execute', ...})
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config: Dict[str, Any], transport: Optional[httpx.AsyncBaseTransport] = None) -> 'ProxyClient':
        return cls(
            base_url=config.get('PROXY_BASE_URL', ''),
            api_key=config.get('PROXY_API_KEY'),
            timeout=config.get('NODE_TIMEOUT_SECONDS', 30.0),
            transport=transport,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"
        return headers

    async def invoke(self, proxy_name: str, payload: Dict[str, Any]) -> ProxyResponse:
        """
        Invoke a proxy.

        Raises:
            httpx.HTTPError: Transport-level failure (connection, timeout)
        """
        url = f"{self.base_url}/{proxy_name}"
        logger.info(f"Invoking proxy: {proxy_name}")

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.post(url, json=payload, headers=self._headers())

        try:
            data = response.json()
        except ValueError:
            data = response.text or None

        if response.is_success:
            return ProxyResponse(status_code=response.status_code, data=data)

        error = None
        if isinstance(data, dict) and data.get('error'):
            error = data['error']
            if isinstance(error, dict):
                error = error.get('message') or str(error)
        if not error:
            error = f"Proxy returned a non-2xx status code ({response.status_code})"

        logger.warning(f"Proxy {proxy_name} responded {response.status_code}")
        return ProxyResponse(status_code=response.status_code, data=data, error=str(error))
