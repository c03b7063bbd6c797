"""
Runtime configuration for the Prospect Intel backend.

All values come from environment variables so the same build runs locally,
in CI and in production.
"""

import os

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

# Anthropic / deep intelligence
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
DEEP_INTEL_PREMIUM_MODEL = os.getenv("DEEP_INTEL_PREMIUM_MODEL", "claude-sonnet-4-20250514")
DEEP_INTEL_STANDARD_MODEL = os.getenv("DEEP_INTEL_STANDARD_MODEL", "claude-3-5-haiku-20241022")
DEEP_INTEL_PREMIUM_ENERGY_THRESHOLD = int(os.getenv("DEEP_INTEL_PREMIUM_ENERGY_THRESHOLD", "10"))
DEEP_INTEL_MAX_TOKENS = int(os.getenv("DEEP_INTEL_MAX_TOKENS", "2000"))

# Home-market convention for local phone numbers (leading 0)
DEFAULT_PHONE_COUNTRY_CODE = os.getenv("DEFAULT_PHONE_COUNTRY_CODE", "+63")

# "inline" runs scans as supervised asyncio tasks, "inngest" hands them to Inngest
SCAN_DISPATCH_MODE = os.getenv("SCAN_DISPATCH_MODE", "inline")

# Inngest
INNGEST_APP_ID = os.getenv("INNGEST_APP_ID", "prospect-intel")
INNGEST_DEV = os.getenv("INNGEST_DEV")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
