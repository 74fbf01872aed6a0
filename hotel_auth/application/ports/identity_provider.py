from typing import Protocol, Optional, Dict, Any


class IdentityError(Exception):
    """The identity provider rejected or failed an account operation."""


class IdentityProvider(Protocol):
    def verify_id_token(self, id_token: str) -> Optional[Dict[str, Any]]:
        ...

    def update_password(self, uid: str, new_password: str) -> None:
        ...
