"""
S3 publishing for pipeline exports

Uploads exported tables and reports to an S3 bucket with retries, MD5 metadata
and a post-upload verification against the stored object.
"""

import hashlib
import os
import time
from pathlib import Path
from typing import Dict, Iterable, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from layoffs_pipeline.config import AWS_REGION, S3_PREFIX
from utils.logger import setup_logger

logger = setup_logger("S3_Storage", log_file="layoffs_pipeline.log")

DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 2  # seconds

CONTENT_TYPES = {
    '.parquet': 'application/vnd.apache-parquet',
    '.csv': 'text/csv',
}


class S3Uploader:
    """Uploads pipeline output files to a single S3 bucket."""

    def __init__(
        self,
        bucket: str,
        region: str = AWS_REGION,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        prefix: str = S3_PREFIX,
        s3_client=None
    ):
        """
        Args:
            bucket: Target S3 bucket name
            region: AWS region to use
            retry_attempts: Number of upload attempts per file
            retry_delay: Base delay between attempts in seconds, doubled each retry
            prefix: Key prefix for uploaded objects
            s3_client: Pre-built boto3 S3 client (a new one is created if omitted)
        """
        self.bucket = bucket
        self.region = region
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.prefix = prefix.strip('/')
        self.s3_client = s3_client or boto3.client('s3', region_name=region)

        self.transfer_config = TransferConfig(
            multipart_threshold=8 * 1024 * 1024,  # 8MB
            max_concurrency=10,
            multipart_chunksize=8 * 1024 * 1024,  # 8MB
            use_threads=True
        )

    @staticmethod
    def _calculate_md5(file_path: str) -> str:
        md5_hash = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                md5_hash.update(chunk)
        return md5_hash.hexdigest()

    def build_key(self, file_path: str) -> str:
        """Default object key: <prefix>/date=<YYYY-MM-DD>/<filename>."""
        current_date = time.strftime("%Y-%m-%d")
        filename = os.path.basename(file_path)
        if self.prefix:
            return f"{self.prefix}/date={current_date}/{filename}"
        return f"date={current_date}/{filename}"

    def _verify_upload(self, object_key: str, original_md5: str) -> bool:
        try:
            response = self.s3_client.head_object(Bucket=self.bucket, Key=object_key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error verifying upload: {e}")
            return False

        s3_md5 = response.get('Metadata', {}).get('md5_hash')
        if s3_md5 is not None and s3_md5 != original_md5:
            logger.warning(f"MD5 mismatch for s3://{self.bucket}/{object_key}: expected {original_md5}, got {s3_md5}")
            return False
        return True

    def upload_file(self, file_path: str, object_key: Optional[str] = None) -> Optional[str]:
        """
        Upload a file with retry logic and verify it landed intact.

        Args:
            file_path: Path to the local file
            object_key: S3 key to write (default: see build_key)

        Returns:
            S3 URI of the uploaded file if successful, None otherwise
        """
        if not os.path.exists(file_path):
            logger.error(f"File not found: {file_path}")
            return None

        object_key = object_key or self.build_key(file_path)
        content_type = CONTENT_TYPES.get(Path(file_path).suffix.lower(), 'application/octet-stream')
        md5_hash = self._calculate_md5(file_path)
        extra_args = {
            'Metadata': {
                'md5_hash': md5_hash,
                'original_size': str(os.path.getsize(file_path)),
                'source': 'layoffs_pipeline',
                'upload_date': time.strftime("%Y-%m-%d %H:%M:%S"),
            },
            'ContentType': content_type,
        }

        attempt = 0
        while attempt < self.retry_attempts:
            try:
                logger.info(f"Uploading {file_path} to s3://{self.bucket}/{object_key} (Attempt {attempt + 1})")
                self.s3_client.upload_file(
                    Filename=file_path,
                    Bucket=self.bucket,
                    Key=object_key,
                    ExtraArgs=extra_args,
                    Config=self.transfer_config
                )
                if self._verify_upload(object_key, md5_hash):
                    s3_uri = f"s3://{self.bucket}/{object_key}"
                    logger.info(f"Successfully uploaded and verified {s3_uri}")
                    return s3_uri
                logger.warning(f"Upload verification failed for s3://{self.bucket}/{object_key}")
            # The transfer manager wraps failed PutObject calls in S3UploadFailedError;
            # credential and connection problems surface as BotoCoreError.
            except (S3UploadFailedError, ClientError, BotoCoreError) as e:
                logger.warning(f"Upload attempt {attempt + 1} failed: {e}")

            attempt += 1
            if attempt < self.retry_attempts:
                sleep_time = self.retry_delay * (2 ** attempt)  # Exponential backoff
                logger.info(f"Retrying in {sleep_time} seconds...")
                time.sleep(sleep_time)

        logger.error(f"Failed to upload {file_path} after {self.retry_attempts} attempts")
        return None

    def upload_files(self, file_paths: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Upload several files.

        Returns:
            Mapping of local path to S3 URI (None for failed uploads)
        """
        results = {path: self.upload_file(path) for path in file_paths}
        failed = [path for path, uri in results.items() if uri is None]
        if failed:
            logger.error(f"{len(failed)} of {len(results)} uploads failed: {failed}")
        return results
