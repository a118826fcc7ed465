import os
from dotenv import load_dotenv

load_dotenv()

# Payment processor
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "").strip()
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "").strip()
PAYMENT_PROCESSOR_TIMEOUT_SECONDS = float(os.getenv("PAYMENT_PROCESSOR_TIMEOUT_SECONDS", "10"))

# Catalog fallback when a product row carries no currency
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "EUR")

# Audit trail
MAX_REASON_LENGTH = 500

# Tracing is only wired up when an exporter endpoint is configured
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "")

# Customer tokens are issued by the identity provider and verified here
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Shared by admin tooling and service-to-service calls
INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY", "")
