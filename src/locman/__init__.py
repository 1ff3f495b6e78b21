"""locman - interactive manager for models served by a local Ollama daemon.

The client layer can be used on its own::

    from locman import BodyBufferPool, RegistryClient, Transport

    with BodyBufferPool() as pool, Transport("http://10.0.0.5:11434", pool=pool) as t:
        client = RegistryClient(t)
        for model in client.list_models():
            print(model.name)
"""

from locman._version import __version__
from locman.client import (
    BatchSummary,
    BodyBufferPool,
    ModelSummary,
    OperationResult,
    RegistryClient,
    RequestOutcome,
    Transport,
)
from locman.config import ManagerConfig, load_config

__all__ = [
    "__version__",
    "BatchSummary",
    "BodyBufferPool",
    "ManagerConfig",
    "ModelSummary",
    "OperationResult",
    "RegistryClient",
    "RequestOutcome",
    "Transport",
    "load_config",
]
