DEFAULT_BASE_URL = "https://www.buildfunctions.com"
DEFAULT_GPU_BUILD_URL = "https://prod-gpu-build.buildfunctions.link"
SANDBOX_DOMAIN = "buildfunctions.app"

# Route53 authoritative nameservers for buildfunctions.app. Records are
# visible here as soon as a subdomain is provisioned.
AUTHORITATIVE_NAMESERVERS = (
    "205.251.193.143",  # ns-399.awsdns-49.com
    "205.251.198.254",  # ns-1278.awsdns-31.org
    "205.251.195.249",  # ns-1017.awsdns-63.net
    "205.251.198.95",  # ns-1631.awsdns-11.co.uk
)

DEFAULT_NETWORK_TIMEOUT_SEC = 120
GPU_BUILD_TIMEOUT_SEC = 30 * 60
CPU_SANDBOX_CREATE_TIMEOUT_SEC = 5 * 60
DNS_LIFETIME_SEC = 5

PART_SIZE_BYTES = 9 * 1024 * 1024
PART_UPLOAD_CONCURRENCY = 5
OCTET_STREAM = "application/octet-stream"

PROBE_MAX_ATTEMPTS = 60
PROBE_DELAY_SEC = 0.5
PROBE_TIMEOUT_SEC = 10
PROBE_LOG_EVERY = 10
HTTPS_PORT = 443

# Platform routes
AUTH_ROUTE = "api/sdk/auth"
CPU_SANDBOX_CREATE_ROUTE = "api/sdk/sandbox/create"
CPU_SANDBOX_DELETE_ROUTE = "api/sdk/sandbox/delete"
SANDBOX_UPLOAD_ROUTE = "api/sdk/sandbox/upload"
FUNCTIONS_ROUTE = "api/sdk/functions"
FUNCTION_BUILD_ROUTE = "api/sdk/functions/build"
COMPLETE_MULTIPART_ROUTE = (
    "api/functions/gpu/transfer-and-mount/complete-multipart-upload"
)
GPU_BUILD_ROUTE = "build"
GPU_DELETE_ROUTE = "delete"

FUNCTION_NAME_PATTERN = r"^[a-z0-9-]+$"

# JSON keys
BUCKET_NAME_KEY = "bucketName"
CODE_KEY = "code"
CONTENT_KEY = "content"
ERROR_KEY = "error"
ETAG_KEY = "ETag"
FUNCTION_LIST_KEY = "stringifiedQueryResults"
FILE_NAME_KEY = "fileName"
FILE_PATH_KEY = "filePath"
PART_NUMBER_KEY = "PartNumber"
PARTS_KEY = "parts"
S3_FILE_PATH_KEY = "s3FilePath"
SANDBOX_ID_KEY = "sandboxId"
SANDBOX_TYPE_KEY = "sandboxType"
SITE_ID_KEY = "siteId"
TYPE_KEY = "type"
UPLOAD_ID_KEY = "uploadId"
USER_ID_KEY = "userId"
USERNAME_KEY = "username"

DEFAULT_GPU = "T4"
DEFAULT_FRAMEWORK = "pytorch"
CPU_SANDBOX_DEFAULT_MEMORY_MB = 128
CPU_SANDBOX_DEFAULT_TIMEOUT_SEC = 10
GPU_SANDBOX_DEFAULT_MEMORY_MB = 10000
GPU_SANDBOX_DEFAULT_TIMEOUT_SEC = 300
GPU_SANDBOX_CPU_CORES = 2
CPU_FUNCTION_DEFAULT_MEMORY_MB = 128
CPU_FUNCTION_DEFAULT_TIMEOUT_SEC = 10
GPU_FUNCTION_DEFAULT_MEMORY_MB = 1024
GPU_FUNCTION_DEFAULT_TIMEOUT_SEC = 60
GPU_FUNCTION_CPU_CORES = 2

FILE_EXTENSIONS = {
    "javascript": ".js",
    "typescript": ".ts",
    "python": ".py",
    "go": ".go",
    "shell": ".sh",
}
