"""AFS web service connector"""

from .config_schema import ConnectorConfig, Service
from .context import CallerContext
from .connector import Connector, SearchConnector, AcpConnector
from .facet_sort import FacetSort
from .version import __version__, get_api_version

__all__ = [
    "ConnectorConfig",
    "Service",
    "CallerContext",
    "Connector",
    "SearchConnector",
    "AcpConnector",
    "FacetSort",
    "get_api_version",
    "__version__",
]
