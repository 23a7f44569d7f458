from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

from ..config import settings
from .provider import StorageProvider


class BlobStorageProvider(StorageProvider):
    def __init__(self) -> None:
        if not settings.azure_blob_connection or not settings.azure_blob_container:
            raise RuntimeError("AZURE_BLOB_CONNECTION and AZURE_BLOB_CONTAINER must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)
        self._container = settings.azure_blob_container

    def _client(self, key: str):
        return self._service.get_blob_client(self._container, key.lstrip("/"))

    def put(self, key: str, data: bytes, content_type: str) -> str:
        client = self._client(key)
        client.upload_blob(data, overwrite=True, content_settings=ContentSettings(content_type=content_type))
        return client.url

    def delete(self, key: str) -> None:
        try:
            self._client(key).delete_blob()
        except ResourceNotFoundError:
            pass
