import os

# Database Configuration
# Single keyed table lives in this database (Postgres in deployment)
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/inventory_db")

# Application Metadata
PROJECT_NAME = "Inventory & Job Tracking Service"
VERSION = "1.0.0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Blob storage
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "s3")  # "s3" or "local"
LOCAL_STORAGE_PATH = os.getenv("LOCAL_STORAGE_PATH", "./data/blobs")
UPLOAD_BUCKET = os.getenv("UPLOAD_BUCKET", "inventory-uploads")
TEMPLATE_BUCKET = os.getenv("TEMPLATE_BUCKET", "job-template-uploads")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL") or None
UPLOAD_URL_EXPIRY = int(os.getenv("UPLOAD_URL_EXPIRY", 300))  # seconds

# Externally managed configuration (read-only from the app's side)
APP_CONFIG_PARAM_NAME = os.getenv("APP_CONFIG_PARAM_NAME", "/inventory-app/config")
WFM_CONFIG_PARAM_NAME = os.getenv("WFM_CONFIG_PARAM_NAME", "/inventory-app/wfm_token")

# WorkflowMax
WFM_BASE_URL = os.getenv("WFM_BASE_URL", "https://api.workflowmax.com/v2/")
WFM_ACCOUNT_ID = os.getenv("WFM_ACCOUNT_ID", "")
WFM_TIMEOUT = float(os.getenv("WFM_TIMEOUT", 10.0))
WFM_MAX_RETRIES = int(os.getenv("WFM_MAX_RETRIES", 3))  # Rate limit / availability retries
WFM_RETRY_BASE_DELAY = float(os.getenv("WFM_RETRY_BASE_DELAY", 0.5))

# Keyed store retries
STORE_MAX_RETRIES = int(os.getenv("STORE_MAX_RETRIES", 3))
STORE_RETRY_BASE_DELAY = float(os.getenv("STORE_RETRY_BASE_DELAY", 0.2))
STOCK_CAS_MAX_ATTEMPTS = int(os.getenv("STOCK_CAS_MAX_ATTEMPTS", 20))  # Optimistic aggregate updates
STOCK_CAS_BASE_DELAY = float(os.getenv("STOCK_CAS_BASE_DELAY", 0.01))

# Ingestion
MAX_REPORTED_ROW_ERRORS = int(os.getenv("MAX_REPORTED_ROW_ERRORS", 50))
