from designvault.providers.blob.local_blob_store import LocalBlobStore

__all__ = ["LocalBlobStore"]
