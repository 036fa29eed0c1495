"""Loading compiled proxies into the running process."""

from __future__ import annotations

import logging
import threading

from proxygen.compiler import CompiledArtifact
from proxygen.errors import LoadError

logger = logging.getLogger(__name__)


class ProxyLoader:
    """Defines classes from compiled artifacts and remembers them by name.

    The first class defined under a binary name stays bound to it until the
    loader is cleared, so concurrent definitions of the same proxy agree on
    one class.
    """

    _instance: ProxyLoader | None = None
    _instance_lock = threading.Lock()

    def __init__(self) -> None:
        self._classes: dict[str, type] = {}
        self._lock = threading.Lock()

    @classmethod
    def instance(cls) -> ProxyLoader:
        """The process-wide loader."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def __contains__(self, name: str) -> bool:
        return name in self._classes

    def __len__(self) -> int:
        return len(self._classes)

    def define_class(self, artifact: CompiledArtifact) -> type | None:
        """Execute ``artifact`` and return the class it defines, or None."""
        try:
            return self.define_class_or_raise(artifact)
        except LoadError as e:
            logger.warning("%s", e.to_result().to_compact())
            return None

    def define_class_or_raise(self, artifact: CompiledArtifact) -> type:
        namespace = dict(artifact.namespace)
        try:
            exec(artifact.code, namespace)
        except Exception as e:
            raise LoadError(artifact.name, e) from e

        cls = namespace.get(artifact.simple_name)
        if not isinstance(cls, type):
            raise LoadError(
                artifact.name, LookupError(f"no class named {artifact.simple_name!r}")
            )

        with self._lock:
            defined = self._classes.setdefault(artifact.name, cls)
        if defined is cls:
            logger.debug("Defined %s", artifact.name)
        return defined

    def load_class(self, name: str) -> type:
        """Return the class previously defined under binary name ``name``.

        Raises:
            LookupError: If this loader never defined such a class
        """
        try:
            return self._classes[name]
        except KeyError:
            raise LookupError(f"Proxy class not found: {name}") from None

    def clear(self) -> None:
        with self._lock:
            self._classes.clear()
