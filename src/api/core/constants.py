API_VERSION_HEADER = "X-Upblock-Version"

# Supabase access tokens
JWT_ALGORITHM = "HS256"
JWT_AUDIENCE = "authenticated"

# Device fingerprints come from the browser; keep them bounded
MAX_FINGERPRINT_LENGTH = 128
MAX_ADDRESS_LENGTH = 512
