from typing import Generic, Protocol, TypeVar

from api.v1.core.exceptions import UnknownJobError
from api.v1.infra.jobs.schemas import Message

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - background processing handlers
class JobHandler(Protocol):
    """Protocol for job handlers that process queued messages."""

    async def handle(self, message: Message) -> None:
        """
        Handle a single message.

        Raises on failure; the queue records the job as failed.
        """
        ...


class JobRegistry(Registry[JobHandler]):
    """
    Registry mapping job names to handlers.

    One instance is built at startup and shared by the HTTP layer
    (producer) and the job queue (consumer).
    """

    def __init__(self):
        super().__init__("Job")

    def register(self, name: str, implementation: JobHandler) -> None:
        """Bind a handler to a job name. Binding a name twice is a startup bug."""
        if name in self._implementations:
            raise ValueError(f"Job '{name}' is already registered")
        super().register(name, implementation)

    async def dispatch(self, message: Message) -> None:
        """
        Run the handler bound to ``message.job``.

        Raises UnknownJobError without calling any handler when the message
        has no job name or the name is unbound. Handler exceptions propagate
        unchanged.
        """
        job = message.job
        handler = self._implementations.get(job) if job else None
        if handler is None:
            raise UnknownJobError(job)

        await handler.handle(message)
