"""Admin accounts.

Passwords are stored as salted hashes. A successful login only returns the
admin's id and username; the client keeps the id to show the admin
console. There is no session or token.
"""

import logging
from typing import Dict

from werkzeug.security import check_password_hash, generate_password_hash

from grantha_library.exceptions import AuthenticationError, ValidationError
from grantha_library.models import AdminAccount
from grantha_library.store import ADMINS, DocumentStore

logger = logging.getLogger(__name__)


class AdminAccounts:
    """Creation and authentication of admin accounts."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def create_admin(self, username: str, password: str) -> AdminAccount:
        """Creates an admin account.

        Raises:
            ValidationError: If username or password is empty, or the
                username is taken.
        """
        username = (username or '').strip()
        if not username or not password:
            raise ValidationError('Username and password required')
        if self._store.find_one(ADMINS, {'username': username}) is not None:
            raise ValidationError(f"Admin '{username}' already exists")
        account = AdminAccount.from_payload({
            'username': username,
            'passwordHash': generate_password_hash(password),
        })
        stored = AdminAccount.from_document(
            self._store.insert(ADMINS, account.to_document())
        )
        logger.info("Created admin '%s'", username)
        return stored

    def login(self, username: str, password: str) -> Dict[str, str]:
        """Checks credentials.

        Returns:
            Dictionary with adminId and username.

        Raises:
            ValidationError: If username or password is missing.
            AuthenticationError: If the credentials do not match.
        """
        if not isinstance(username, str) or not isinstance(password, str) \
                or not username or not password:
            raise ValidationError('Username and password required')
        document = self._store.find_one(ADMINS, {'username': username})
        if document is None:
            logger.warning("Login failed for unknown admin '%s'", username)
            raise AuthenticationError('Invalid credentials')
        account = AdminAccount.from_document(document)
        if not check_password_hash(account.password_hash, password):
            logger.warning("Login failed for admin '%s'", username)
            raise AuthenticationError('Invalid credentials')
        return {'adminId': account.admin_id, 'username': account.username}
