class StorageProvider:
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under key and return the URL the asset is served from."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        """Remove the object under key; a missing key is not an error."""
        raise NotImplementedError
