"""Authentication and authorization constants."""

TOKEN_TYPE_BEARER = "bearer"
TOKEN_TYPE_ACCESS = "access_token"
TOKEN_TYPE_REFRESH = "refresh_token"

# Token validation
TOKEN_MIN_LENGTH = 10
TOKEN_MAX_LENGTH = 2048

# Roles
ROLE_STUDENT = "student"
ROLE_INSTRUCTOR = "instructor"
ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"
ALL_ROLES = (ROLE_STUDENT, ROLE_INSTRUCTOR, ROLE_ADMIN, ROLE_SUPER_ADMIN)

# Security headers
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}
