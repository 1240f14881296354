import os

import boto3
from botocore.exceptions import ClientError

from fluxqc.config import settings
from fluxqc.services.errors import DataError


class StorageService:
    """Reads and writes dataset version files on S3 (``s3://bucket/key``) or local disk."""

    def __init__(self):
        self._s3_client = None
        self.bucket_name = settings.S3_BUCKET

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT or None,
                aws_access_key_id=settings.S3_ACCESS_KEY or None,
                aws_secret_access_key=settings.S3_SECRET_KEY or None,
                use_ssl=settings.S3_USE_SSL,
                region_name="us-east-1",
            )
        return self._s3_client

    @staticmethod
    def is_remote(file_path: str) -> bool:
        return file_path.startswith("s3://")

    @staticmethod
    def _split(file_path: str) -> tuple[str, str]:
        path_parts = file_path.replace("s3://", "", 1).split("/", 1)
        if len(path_parts) != 2 or not path_parts[1]:
            raise DataError(f"Invalid storage path: {file_path}")
        return path_parts[0], path_parts[1]

    def read_bytes(self, file_path: str) -> bytes:
        if self.is_remote(file_path):
            bucket, key = self._split(file_path)
            try:
                response = self.s3_client.get_object(Bucket=bucket, Key=key)
                return response["Body"].read()
            except ClientError as e:
                raise DataError(f"File not found: {file_path} ({e})")

        if not os.path.isfile(file_path):
            raise DataError(f"File not found: {file_path}")
        with open(file_path, "rb") as fh:
            return fh.read()

    def write_bytes(self, file_path: str, data: bytes) -> str:
        if self.is_remote(file_path):
            bucket, key = self._split(file_path)
            try:
                self.s3_client.put_object(Bucket=bucket, Key=key, Body=data)
            except ClientError as e:
                raise DataError(f"File write failed: {file_path} ({e})")
            return file_path

        os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
        with open(file_path, "wb") as fh:
            fh.write(data)
        return file_path


storage_service = StorageService()
