"""Azure Blob Storage payload store."""

from .store import AzureBlobPayloadStore, AzureBlobPayloadStoreOptions

__all__ = ["AzureBlobPayloadStore", "AzureBlobPayloadStoreOptions"]
