"""
S3 Upload Configuration.
Constants for multipart upload and streaming settings.
"""

# Multipart Upload Settings
PART_SIZE = 5 * 1024 * 1024   # 5MB (S3/MinIO minimum for every part but the last)

# Streaming Settings
READ_CHUNK_SIZE = 256 * 1024  # 256KB per chunk when streaming objects back out

# Object metadata key holding the original file name
FILE_NAME_METADATA_KEY = "file_name"
