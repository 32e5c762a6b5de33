import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/tuckshop_db")

# Application Metadata
PROJECT_NAME = "Tuckshop Order Management System"
VERSION = "1.0.0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Stock / order engine
MAX_TRANSACTION_RETRIES = int(os.getenv("MAX_TRANSACTION_RETRIES", 3)) # Attempts per order transaction before giving up
DEFAULT_MIN_STOCK_THRESHOLD = int(os.getenv("DEFAULT_MIN_STOCK_THRESHOLD", 10)) # Low-stock boundary for new items
ORDER_SEQUENCE_NAME = "orders"

# Outbox Poller Configuration (dispatches events to notification/reporting sinks)
POLLING_INTERVAL = int(os.getenv("POLLING_INTERVAL", 1)) # Poller checks for new events every N seconds
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", 5)) # Max retries for an event
BATCH_SIZE = int(os.getenv("BATCH_SIZE", 50)) # How many events to fetch per poll
RESTORE_SWEEP_INTERVAL = int(os.getenv("RESTORE_SWEEP_INTERVAL", 60)) # Seconds between retries of unrestored cancellations

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
