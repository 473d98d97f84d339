"""
Credential Store

Persists the bearer token and the cached user profile as a single YAML
document, so the two are always written and cleared together.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

import yaml

from flowdeploy.constants import CREDENTIALS_FILENAME
from flowdeploy.models.session import Credential, User

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    File-backed token + user storage.

    Storage failures are logged and otherwise ignored: an unreadable or
    unwritable file behaves like "no persisted session".
    """

    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)
        self.path = self.config_dir / CREDENTIALS_FILENAME
        self._cached: Optional[Credential] = None

    @property
    def token(self) -> Optional[str]:
        """Token of the last saved or loaded credential."""
        return self._cached.token if self._cached else None

    def save(self, token: str, user: User) -> bool:
        """
        Write token and user atomically.

        Returns:
            True if the pair reached disk
        """
        credential = Credential(token=token, user=user)
        self._cached = credential

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.config_dir, prefix=".credentials-")
            try:
                with os.fdopen(fd, "w") as f:
                    yaml.safe_dump(credential.to_dict(), f, default_flow_style=False)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not persist credentials to %s: %s", self.path, e)
            return False

        return True

    def load(self) -> Optional[Credential]:
        """
        Read the persisted pair.

        Returns:
            Credential with both token and user, or None
        """
        try:
            if not self.path.exists():
                self._cached = None
                return None
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read credentials from %s: %s", self.path, e)
            self._cached = None
            return None

        credential = Credential.from_dict(data) if isinstance(data, dict) else None
        if credential is None:
            logger.debug("Ignoring incomplete credential file %s", self.path)
        self._cached = credential
        return credential

    def clear(self) -> None:
        """Remove both token and user."""
        self._cached = None
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove credentials at %s: %s", self.path, e)
