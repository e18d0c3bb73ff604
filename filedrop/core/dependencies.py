"""
Shared dependencies for FastAPI endpoints.
The storage client lives on app.state and is injected from there.
"""

from typing import Annotated

from fastapi import Depends, Request

from filedrop.core.config import Settings, settings
from filedrop.s3.client import S3Client
from filedrop.s3.objects import RetrievalPolicy
from filedrop.s3.uploader import UploadCoordinator


def get_settings() -> Settings:
    return settings


def get_s3_client(request: Request) -> S3Client:
    """Storage client created during application startup."""
    return request.app.state.s3_client


def get_uploader(
    client: Annotated[S3Client, Depends(get_s3_client)],
    config: Annotated[Settings, Depends(get_settings)]
) -> UploadCoordinator:
    return UploadCoordinator(client, bucket=config.AWS_BUCKET, id_length=config.ID_LENGTH)


def get_retrieval(
    client: Annotated[S3Client, Depends(get_s3_client)],
    config: Annotated[Settings, Depends(get_settings)]
) -> RetrievalPolicy:
    return RetrievalPolicy(client, bucket=config.AWS_BUCKET)


# Dependency annotations
AppSettings = Annotated[Settings, Depends(get_settings)]
StorageClient = Annotated[S3Client, Depends(get_s3_client)]
Uploader = Annotated[UploadCoordinator, Depends(get_uploader)]
Retrieval = Annotated[RetrievalPolicy, Depends(get_retrieval)]
