from apigovernor.providers.meta_graph import GovernedMetaClient, MetaApiError, MetaGraphClient

__all__ = ["GovernedMetaClient", "MetaApiError", "MetaGraphClient"]
