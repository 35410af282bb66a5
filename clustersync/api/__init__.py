"""Desired and observed cluster state."""

from .library import Cran as Cran
from .library import Egg as Egg
from .library import InstallStatus as InstallStatus
from .library import Jar as Jar
from .library import Library as Library
from .library import LibraryStatus as LibraryStatus
from .library import Maven as Maven
from .library import PyPi as PyPi
from .library import Whl as Whl
from .library import library_from_json, library_to_json
from .model import ClusterInfo as ClusterInfo
from .model import ClusterSnapshot as ClusterSnapshot
from .model import ClusterState as ClusterState
from .model import ReconciliationResult as ReconciliationResult
from .model import Stage as Stage
from .spec import AutoScale as AutoScale
from .spec import AwsAttributes as AwsAttributes
from .spec import AzureAttributes as AzureAttributes
from .spec import ClusterSpec as ClusterSpec
from .spec import GcpAttributes as GcpAttributes

__all__ = [
    "AutoScale",
    "AwsAttributes",
    "AzureAttributes",
    "ClusterInfo",
    "ClusterSnapshot",
    "ClusterSpec",
    "ClusterState",
    "Cran",
    "Egg",
    "GcpAttributes",
    "InstallStatus",
    "Jar",
    "Library",
    "LibraryStatus",
    "Maven",
    "PyPi",
    "ReconciliationResult",
    "Stage",
    "Whl",
    "library_from_json",
    "library_to_json",
]
