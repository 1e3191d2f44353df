import boto3
from botocore.exceptions import ClientError
import os
import logging
import uuid

logger = logging.getLogger(__name__)

S3_CLIENT = None
AWS_REGION = os.getenv('AWS_DEFAULT_REGION', 'eu-north-1')
S3_BUCKET_NAME = os.getenv('S3_BUCKET_NAME', 'backoffice-documents')
ALLOWED_DOCUMENT_EXTENSIONS = {'pdf', 'png', 'jpg', 'jpeg', 'webp'}
DEFAULT_URL_EXPIRY = int(os.getenv('DOCUMENT_URL_EXPIRY', '900'))


def get_s3_client():
    """Initializes and returns a reusable S3 client."""
    global S3_CLIENT
    if S3_CLIENT is None:
        S3_CLIENT = boto3.client('s3', region_name=AWS_REGION)
        logger.info(f"S3 client initialized for region: {AWS_REGION}")
    return S3_CLIENT


def build_document_key(tenant_id: str, folder: str, object_id: int, filename: str) -> str:
    """Object key for a document attached to a purchase, return or expense."""
    file_extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    if file_extension not in ALLOWED_DOCUMENT_EXTENSIONS:
        raise ValueError(
            f"Unsupported document type '{file_extension}'. Allowed: {', '.join(sorted(ALLOWED_DOCUMENT_EXTENSIONS))}"
        )
    return f"documents/{tenant_id}/{folder}/{object_id}_{uuid.uuid4().hex}.{file_extension}"


def generate_presigned_upload_url(tenant_id: str, folder: str, object_id: int, filename: str,
                                  expires_in: int = DEFAULT_URL_EXPIRY) -> dict:
    """
    Generates a time-limited URL for uploading a document directly to S3.

    Returns:
        A dictionary with the presigned URL and the S3 path to store on the record.
    """
    s3_key = build_document_key(tenant_id, folder, object_id, filename)
    s3_client = get_s3_client()

    try:
        url = s3_client.generate_presigned_url(
            'put_object',
            Params={'Bucket': S3_BUCKET_NAME, 'Key': s3_key},
            ExpiresIn=expires_in
        )
    except ClientError as e:
        logger.exception(f"Failed to generate presigned upload URL for key: {s3_key}")
        raise RuntimeError(f"Could not generate S3 upload URL: {e}")

    logger.info(f"Generated presigned upload URL for key: {s3_key}")
    return {"upload_url": url, "s3_path": f"s3://{S3_BUCKET_NAME}/{s3_key}", "expires_in": expires_in}


def generate_presigned_download_url(s3_path: str, expires_in: int = DEFAULT_URL_EXPIRY) -> str:
    """Generates a time-limited preview/download URL for a stored document."""
    prefix = f's3://{S3_BUCKET_NAME}/'
    if not s3_path.startswith(prefix):
        raise ValueError(f"Invalid S3 path format. Must start with '{prefix}'")

    s3_key = s3_path[len(prefix):]
    s3_client = get_s3_client()

    try:
        url = s3_client.generate_presigned_url(
            'get_object',
            Params={'Bucket': S3_BUCKET_NAME, 'Key': s3_key},
            ExpiresIn=expires_in
        )
    except ClientError as e:
        logger.exception(f"Failed to generate presigned download URL for key: {s3_key}")
        if e.response['Error']['Code'] == 'NoSuchKey':
            raise FileNotFoundError(f"File not found in S3 at path: {s3_path}")
        raise RuntimeError(f"Could not generate S3 download URL: {e}")

    logger.info(f"Generated presigned download URL for key: {s3_key}")
    return url
