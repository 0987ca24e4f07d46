"""
Subset Registry - named subset management.

The registry stores named subset definitions and the live subsets bound
from them, enabling:
- Subset definitions from YAML files
- Programmatic registration
- Binding definitions to parent collections
- Disposing every subset of a parent in one call

A registry is an ordinary object: construct one at start-up and pass it to
whatever needs to bind subsets. Nothing here is global.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

from livesubset.collection import Collection
from livesubset.errors import SubsetNotFoundError
from livesubset.liveupdate import LiveUpdate
from livesubset.parser import DefinitionParser, parse_definitions_file
from livesubset.predicates import TruePredicate
from livesubset.subset import MembershipPredicate, ParentRef, Subset, SubsetDefinition, resolve_parent

if TYPE_CHECKING:
    from livesubset.config import SubsetConfig

logger = logging.getLogger(__name__)


class SubsetRegistry:
    """
    Registry for named subsets.

    Example:
        registry = SubsetRegistry()
        registry.load_file("subsets.yaml")

        tasks = Collection()
        archived = registry.bind("archived", tasks)

        # Later, stop every subset observing tasks
        registry.dispose(tasks)
    """

    def __init__(self, default_live_update: Any = None):
        self.default_live_update = LiveUpdate.coerce(default_live_update)
        self._definitions: Dict[str, SubsetDefinition] = {}
        self._raw: Dict[str, Dict[str, Any]] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}
        self._bound: List[Subset] = []
        self._parser = DefinitionParser(self, default_live_update=self.default_live_update)

        self._register_builtins()

    def _register_builtins(self):
        """Register built-in definitions."""
        self.register(
            SubsetDefinition(name="all", predicate=TruePredicate(), description="Every parent record"),
            metadata={"builtin": True},
        )

    def register(
        self,
        definition: Union[SubsetDefinition, str],
        predicate: Optional[MembershipPredicate] = None,
        metadata: Optional[Dict[str, Any]] = None,
        **options: Any
    ) -> SubsetDefinition:
        """
        Register a definition.

        Either pass a SubsetDefinition, or a name plus a predicate and
        SubsetDefinition options:

            registry.register("archived", lambda r: r.get("archived"),
                              live_update=["archived"])
        """
        if not isinstance(definition, SubsetDefinition):
            if predicate is None:
                raise TypeError("register() needs a SubsetDefinition or a name and a predicate")
            options.setdefault("live_update", self.default_live_update)
            options["live_update"] = LiveUpdate.coerce(options["live_update"])
            definition = SubsetDefinition(name=definition, predicate=predicate, **options)

        self._definitions[definition.name] = definition
        self._raw.pop(definition.name, None)
        self._metadata[definition.name] = metadata or {}
        if definition.description:
            self._metadata[definition.name]["description"] = definition.description
        return definition

    def register_definition(
        self,
        name: str,
        definition: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Register a raw definition (parsed on first access).

        Lazy parsing lets definitions extend ones declared later in the
        same file.
        """
        self._raw[name] = definition
        self._definitions.pop(name, None)
        self._metadata[name] = metadata or {}

        if "description" in definition:
            self._metadata[name]["description"] = definition["description"]

    def get_definition(self, name: str) -> SubsetDefinition:
        """
        Get a definition by name.

        Raises:
            SubsetNotFoundError: If the name is not registered
        """
        if name in self._definitions:
            return self._definitions[name]

        if name in self._raw:
            definition = self._parser.parse(name, self._raw[name])
            self._definitions[name] = definition
            return definition

        raise SubsetNotFoundError(f"Subset not found: {name}")

    def has(self, name: str) -> bool:
        """Check if a definition exists in the registry."""
        return name in self._definitions or name in self._raw

    def list(self, include_builtin: bool = True) -> List[str]:
        """List registered definition names."""
        names = set(self._definitions) | set(self._raw)

        if not include_builtin:
            names = {n for n in names if not self._metadata.get(n, {}).get("builtin")}

        return sorted(names)

    def get_metadata(self, name: str) -> Dict[str, Any]:
        """Get metadata for a definition."""
        return self._metadata.get(name, {})

    def load_file(self, path: Union[str, Path]) -> int:
        """
        Load definitions from a YAML file.

        Returns:
            Number of definitions loaded
        """
        data = parse_definitions_file(path)
        count = 0

        for name, definition in data.items():
            if isinstance(definition, dict):
                self.register_definition(name, definition, metadata={"source": str(path)})
                count += 1
            else:
                logger.warning(f"Ignoring non-mapping definition '{name}' in {path}")

        logger.info(f"Loaded {count} subset definitions from {path}")
        return count

    def load_directory(self, path: Union[str, Path], pattern: str = "*.yaml") -> int:
        """
        Load definitions from all YAML files in a directory.

        Returns:
            Total number of definitions loaded
        """
        path = Path(path)
        count = 0

        for yaml_path in sorted(path.glob(pattern)):
            count += self.load_file(yaml_path)

        # Also check .yml extension
        for yaml_path in sorted(path.glob(pattern.replace(".yaml", ".yml"))):
            count += self.load_file(yaml_path)

        return count

    # ------------------------------------------------------------------
    # Live subsets
    # ------------------------------------------------------------------

    def bind(
        self,
        name: str,
        parent: ParentRef,
        records: Optional[Iterable[Any]] = None
    ) -> Subset:
        """
        Create a live subset of `parent` from a named definition.

        The registry keeps track of it so dispose() can release it.
        """
        subset = self.get_definition(name).bind(parent, records)
        self._bound.append(subset)
        return subset

    def bind_all(
        self,
        parent: ParentRef,
        include_builtin: bool = False
    ) -> Dict[str, Subset]:
        """Bind every registered definition to `parent`."""
        return {
            name: self.bind(name, parent)
            for name in self.list(include_builtin=include_builtin)
        }

    def bound(self, parent: Optional[Collection] = None) -> List[Subset]:
        """Live subsets created by this registry, optionally for one parent."""
        if parent is None:
            return [s for s in self._bound if not s.disposed]
        return [s for s in self._bound if not s.disposed and s.parent is parent]

    def dispose(self, parent: Optional[ParentRef] = None) -> int:
        """
        Dispose live subsets (all of them, or those of one parent).

        Returns:
            Number of subsets disposed
        """
        target = resolve_parent(parent) if parent is not None else None
        disposed = 0
        remaining = []

        for subset in self._bound:
            if target is None or subset.parent is target:
                if not subset.disposed:
                    subset.dispose()
                    disposed += 1
            else:
                remaining.append(subset)

        self._bound = remaining
        logger.debug(f"Disposed {disposed} subsets")
        return disposed

    def info(self) -> Dict[str, Any]:
        """
        Get registry information.

        Returns:
            Dictionary with registry stats and definition list
        """
        subsets_info = []
        for name in self.list():
            meta = self._metadata.get(name, {})
            subsets_info.append({
                "name": name,
                "description": meta.get("description", ""),
                "builtin": meta.get("builtin", False),
                "bound": sum(1 for s in self.bound() if s.name == name),
            })

        return {
            "total_definitions": len(subsets_info),
            "builtin_definitions": sum(1 for s in subsets_info if s["builtin"]),
            "custom_definitions": sum(1 for s in subsets_info if not s["builtin"]),
            "live_subsets": len(self.bound()),
            "definitions": subsets_info,
        }

    @classmethod
    def from_yaml(cls, path: Union[str, Path], default_live_update: Any = None) -> "SubsetRegistry":
        """Create a registry and load definitions from a YAML file."""
        registry = cls(default_live_update=default_live_update)
        registry.load_file(path)
        return registry

    @classmethod
    def from_config(cls, config: "SubsetConfig") -> "SubsetRegistry":
        """Create a registry from configuration (default live update, definitions file)."""
        registry = cls(default_live_update=config.default_live_update)
        if config.definitions_file:
            path = Path(config.definitions_file)
            if path.is_dir():
                registry.load_directory(path)
            else:
                registry.load_file(path)
        return registry

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __iter__(self):
        return iter(self.list())

    def __len__(self) -> int:
        return len(self.list())
