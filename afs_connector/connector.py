"""
AFS Connector - Builds AFS web service queries and decodes their replies

This is the base of every AFS web service client (search, acp...):
1. Merges the caller parameters with the standard AFS ones
2. Formats the URL of the web service
3. Makes one GET call
4. Decodes the JSON reply

Design decisions:
- Uses httpx, one short-lived client per call (no pooling, no retry)
- Failures never raise to the caller: they are turned into an error reply
  with the same shape as the ones AFS produces
- Caller identity is passed explicitly through a CallerContext
"""

import json
import logging
from abc import ABC, abstractmethod
from types import SimpleNamespace
from typing import Any, Mapping, Optional
from urllib.parse import quote_plus

import httpx

from .config_schema import ConnectorConfig
from .context import CallerContext
from .version import get_api_version

# Configure logging
logger = logging.getLogger(__name__)


OUTPUT_FORMAT = "json,2"

CANNOT_INITIALIZE = "Cannot initialize connexion"
EXECUTION_FAILED = "Failed to execute request"


class ConnectorExecutionFailed(Exception):
    """AFS returned nothing usable for the query."""


class ConnectorInitFailed(Exception):
    """The request could not be built for the generated URL."""


def _quote(value: Any) -> str:
    return quote_plus(str(value), safe=":,")


class Connector(ABC):
    """
    Base class for all AFS web services.

    Subclasses only have to name the web service they query by
    implementing web_service_name().
    """

    def __init__(
        self,
        config: ConnectorConfig,
        context: Optional[CallerContext] = None,
        transport: Optional[httpx.BaseTransport] = None,
        verbose: bool = False
    ):
        """
        Initialize the connector.

        Args:
            config: Host, scheme and service of the AFS web service
            context: Default caller identity, used when send() gets none
            transport: Optional httpx transport (e.g., httpx.MockTransport)
            verbose: Enable verbose logging
        """
        self.config = config
        self.context = context or CallerContext()
        self.transport = transport
        self.verbose = verbose
        self.url: Optional[str] = None  # Last generated URL (debug purpose)
        self.as_map = False

        if verbose:
            logging.basicConfig(level=logging.DEBUG)

    @abstractmethod
    def web_service_name(self) -> str:
        """Name of the web service to query (e.g., "search")."""
        raise NotImplementedError(
            f"{type(self).__name__} must implement web_service_name()"
        )

    def configure_decoding(self, as_map: bool = True) -> None:
        """
        Choose how JSON objects of the replies are decoded.

        By default objects are decoded as records with attribute access
        (SimpleNamespace). With as_map=True they are decoded as dicts.
        """
        self.as_map = as_map

    def get_generated_url(self) -> Optional[str]:
        """URL generated by the previous query, None when none was built yet."""
        return self.url

    def _with_defaults(self, parameters: Mapping[str, Any], context: CallerContext) -> dict:
        """Standard AFS parameters first, then the caller ones.

        Standard parameters cannot be overridden by the caller.
        """
        merged = {
            "afs:service": self.config.service.id,
            "afs:status": self.config.service.status,
            "afs:output": OUTPUT_FORMAT,
            "afs:log": get_api_version(),
        }
        if context.ip is not None:
            merged["afs:ip"] = context.ip
        if context.user_agent is not None:
            merged["afs:userAgent"] = context.user_agent

        for key, value in parameters.items():
            if key in merged:
                logger.debug(f"Ignoring caller value for standard parameter {key}")
                continue
            merged[key] = value
        return merged

    def _format_parameters(self, parameters: Mapping[str, Any]) -> str:
        """Query string; list values give one key=value pair per item."""
        pairs = []
        for key, values in parameters.items():
            if not isinstance(values, (list, tuple)):
                values = [values]
            for value in values:
                pairs.append(f"{_quote(key)}={_quote(value)}")
        return "&".join(pairs)

    def build_url(
        self,
        service_name: str,
        parameters: Mapping[str, Any],
        context: Optional[CallerContext] = None
    ) -> str:
        """
        Build the URL querying an AFS web service.

        Args:
            service_name: Name of the web service (no check is done)
            parameters: Query parameters, left untouched
            context: Caller identity, defaults to the connector one

        Returns:
            scheme://host/service_name?query, also kept for get_generated_url()
        """
        context = context or self.context
        merged = self._with_defaults(parameters, context)
        self.url = "{}://{}/{}?{}".format(
            self.config.scheme,
            self.config.host,
            service_name,
            self._format_parameters(merged),
        )
        return self.url

    def _build_headers(self, context: CallerContext) -> dict:
        headers = {}
        forwarded = context.forwarded_header()
        if forwarded is not None:
            headers["X-Forwarded-For"] = forwarded.encode("utf-8")
        if context.user_agent is not None:
            headers["User-Agent"] = context.user_agent.encode("utf-8")
        return headers

    def _loads(self, body) -> Any:
        if self.as_map:
            return json.loads(body)
        return json.loads(body, object_hook=lambda obj: SimpleNamespace(**obj))

    def _decode(self, body: bytes) -> Any:
        """Decode a reply body, empty bodies and empty values are failures."""
        if not body:
            raise ConnectorExecutionFailed("Empty reply")
        try:
            reply = self._loads(body)
        except (ValueError, RecursionError) as e:
            raise ConnectorExecutionFailed(f"Invalid JSON reply: {e}") from e
        if not reply or reply == "0":
            raise ConnectorExecutionFailed("Empty decoded reply")
        return reply

    def build_error(self, message: str, details: str) -> Any:
        """Error reply shaped like the AFS ones, decoded in the current mode."""
        logger.warning(f"{message} [{details}]")
        return self._loads(json.dumps({"header": {"error": {"message": [message]}}}))

    def _open_request(self, client: httpx.Client, url: str, headers: dict) -> httpx.Request:
        try:
            request = client.build_request("GET", url, headers=headers)
        except (httpx.InvalidURL, ValueError) as e:
            raise ConnectorInitFailed(str(e)) from e
        if not request.url.host:
            raise ConnectorInitFailed(f"No host in {url}")
        return request

    def send(
        self,
        parameters: Mapping[str, Any],
        context: Optional[CallerContext] = None
    ) -> Any:
        """
        Send a query built from parameters and return the decoded reply.

        Never raises on connection, transfer or decoding failures: an error
        reply {"header": {"error": {"message": [...]}}} is returned instead.
        """
        context = context or self.context
        url = self.build_url(self.web_service_name(), parameters, context)
        headers = self._build_headers(context)

        if self.verbose:
            logger.debug(f"GET {url}")
            logger.debug(f"Headers: {headers}")

        with httpx.Client(
            timeout=self.config.timeout_seconds,
            transport=self.transport,
        ) as client:
            try:
                request = self._open_request(client, url, headers)
            except ConnectorInitFailed as e:
                logger.debug(f"Request initialization failed: {e}")
                return self.build_error(CANNOT_INITIALIZE, url)

            try:
                response = client.send(request)
            except httpx.UnsupportedProtocol as e:
                logger.debug(f"Request initialization failed: {e}")
                return self.build_error(CANNOT_INITIALIZE, url)
            except httpx.RequestError as e:
                logger.debug(f"Request failed: {e}")
                return self.build_error(EXECUTION_FAILED, url)

            logger.debug(f"AFS replied with status {response.status_code}")
            try:
                return self._decode(response.content)
            except ConnectorExecutionFailed as e:
                logger.debug(str(e))
                return self.build_error(EXECUTION_FAILED, url)


class SearchConnector(Connector):
    """Connector to the AFS search web service."""

    def web_service_name(self) -> str:
        return "search"


class AcpConnector(Connector):
    """Connector to the AFS auto-complete (ACP) web service."""

    def web_service_name(self) -> str:
        return "acp"
