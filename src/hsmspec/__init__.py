"""hsmspec - declarative lifecycle management for CloudHSM v2 clusters and HSMs."""

from .blueprints import Blueprint as Blueprint
from .client import HsmClient as HsmClient
from .client import connect as connect
from .cluster import ClusterResource as ClusterResource
from .context import Context as Context
from .hsm import HsmResource as HsmResource
from .projects import Project as Project
from .resource import Resource as Resource
from .spec import Observation as Observation
from .spec import Specification as Specification
from .spec import spec as spec
from .specop import Absent as Absent
from .specop import Action as Action
from .specop import Change as Change
from .specop import Ensure as Ensure
from .specop import Present as Present
from .specop import SpecOp as SpecOp
from .state import StateFile as StateFile
from .waiter import WaitSettings as WaitSettings
from .workspace import Workspace as Workspace
