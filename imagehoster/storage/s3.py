import boto3
from io import BytesIO
from botocore.exceptions import ClientError
from imagehoster.settings import settings
import logging

log = logging.getLogger(__name__)

# -------------------------
# S3 Service
# -------------------------
class S3Service:
    """Holds image payloads (base64 text) too large for a DynamoDB item."""

    def __init__(self):
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.client = session.client("s3", **kwargs)
        log.info("Initialized S3 client")

        # Ensure bucket exists at initialization
        self.ensure_bucket()

    def ensure_bucket(self):
        try:
            self.client.head_bucket(Bucket=settings.s3_bucket)
            log.debug("Bucket %s already exists", settings.s3_bucket)
        except ClientError as e:
            error_code = int(e.response["Error"]["Code"])
            if error_code == 404:
                self.client.create_bucket(Bucket=settings.s3_bucket)
                log.info("Created bucket %s", settings.s3_bucket)
            else:
                log.error("Failed to check/create bucket: %s", e)
                raise

    def put_payload(self, key: str, payload: str):
        self.client.upload_fileobj(
            Fileobj=BytesIO(payload.encode("ascii")),
            Bucket=settings.s3_bucket,
            Key=key,
            ExtraArgs={"ContentType": "text/plain"},
        )
        log.debug("Uploaded s3://%s/%s", settings.s3_bucket, key)

    def get_payload(self, key: str) -> str:
        resp = self.client.get_object(Bucket=settings.s3_bucket, Key=key)
        return resp["Body"].read().decode("ascii")

    def delete(self, key: str):
        self.client.delete_object(Bucket=settings.s3_bucket, Key=key)
        log.debug("Deleted s3://%s/%s", settings.s3_bucket, key)

    def close(self):
        log.info("Closed S3 client")
