"""
livesubset - live-filtered subsets of a record collection

A subset is a derived view over a parent collection holding exactly the
parent's records that pass a membership predicate. Subsets stay consistent
with the parent, and with each other, through the parent's event stream.

Design Principles:
- The parent is the single source of truth; subsets only reference records
- Mutations issued on a subset are forwarded to the parent
- Propagation guards travel in an explicit PropagationContext
- Bulk resets report the identities that changed, so unaffected subsets
  skip rescanning

Example Usage:
    >>> from livesubset import Collection, Subset, field_eq
    >>> tasks = Collection()
    >>> archived = Subset(parent=tasks, predicate=field_eq("archived", 1),
    ...                   live_update="all")
    >>> tasks.add([{"id": 0, "archived": 0}, {"id": 1, "archived": 1}])
    >>> archived.ids()
    [1]
"""

__version__ = "0.5.0"
__author__ = "livesubset Contributors"

# Core primitives
from livesubset.events import Events
from livesubset.context import PropagationContext
from livesubset.models import Record
from livesubset.collection import Collection

# Subsets
from livesubset.liveupdate import LiveUpdate
from livesubset.subset import Subset, SubsetDefinition

# Definitions
from livesubset.predicates import (
    Predicate,
    field_eq,
    field_truthy,
    field_contains,
    tags,
    tags_any,
    search,
    ids,
    where,
)
from livesubset.registry import SubsetRegistry

# Configuration
from livesubset.config import SubsetConfig, get_config, init_config

# Errors
from livesubset.errors import (
    LiveSubsetError,
    SubsetConfigurationError,
    SubsetParseError,
    SubsetNotFoundError,
    ConfigError,
)

__all__ = [
    # Core
    "Events",
    "PropagationContext",
    "Record",
    "Collection",
    # Subsets
    "LiveUpdate",
    "Subset",
    "SubsetDefinition",
    "SubsetRegistry",
    # Predicates
    "Predicate",
    "field_eq",
    "field_truthy",
    "field_contains",
    "tags",
    "tags_any",
    "search",
    "ids",
    "where",
    # Config
    "SubsetConfig",
    "get_config",
    "init_config",
    # Errors
    "LiveSubsetError",
    "SubsetConfigurationError",
    "SubsetParseError",
    "SubsetNotFoundError",
    "ConfigError",
]
