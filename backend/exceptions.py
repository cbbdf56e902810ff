"""Error taxonomy for the compliance assistant backend."""


class RAGError(Exception):
    """Base class for all assistant backend errors"""


class ConfigurationError(RAGError):
    """A required provider setting (e.g. an API key) is missing"""


class ProviderError(RAGError):
    """An embedding or generation call to an external provider failed"""


class ServiceNotInitialized(RAGError):
    """A query was attempted while the orchestrator is not ready"""


class LoadError(RAGError):
    """A persisted vector index snapshot is missing or corrupt"""


class SessionBusy(RAGError):
    """A message was sent while the session already has one in flight"""
