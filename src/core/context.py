"""Authentication context model for typed user authentication."""

from dataclasses import dataclass, field
from uuid import UUID


@dataclass
class AuthenticatedUserContext:
    """Identity taken from a verified Supabase access token."""

    user_id: UUID
    email: str | None = None
    claims: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("User id is required in authentication context")
