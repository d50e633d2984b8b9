"""Access credential issuer: short redemption codes and their public URLs."""

import secrets
from typing import Optional

from common.constants import (
    SHORTLINK_ALPHABET,
    SHORTLINK_CODE_LENGTH,
    SHORTLINK_MAX_ATTEMPTS,
    SHORTLINK_PATH_PREFIX,
)
from common.logging_config import get_logger
from bundler import config
from bundler.exceptions import BundlerException, LinkAlreadyExistsError
from bundler.repositories.short_link_repository import (
    DuplicateCodeError,
    DuplicateGroupLinkError,
    ShortLinkRepository,
)
from bundler.utils import utcnow

logger = get_logger(__name__)


def generate_code(length: int = SHORTLINK_CODE_LENGTH) -> str:
    return ''.join(secrets.choice(SHORTLINK_ALPHABET) for _ in range(length))


def make_new_code(group_id: str, pin_hash: Optional[str] = None) -> str:
    """
    Mint a redemption code bound to ``group_id``.

    Uniqueness is enforced by the store; a colliding code is regenerated.

    Args:
        group_id: Group the code resolves to
        pin_hash: Optional bcrypt hash of the download password

    Returns:
        The new code

    Raises:
        LinkAlreadyExistsError: The group already has a code
    """
    for attempt in range(1, SHORTLINK_MAX_ATTEMPTS + 1):
        code = generate_code()
        try:
            ShortLinkRepository.create(code, group_id, pin_hash, utcnow())
        except DuplicateCodeError:
            logger.warning(f"Short link code collision, regenerating (attempt {attempt}/{SHORTLINK_MAX_ATTEMPTS})")
            continue
        except DuplicateGroupLinkError as e:
            raise LinkAlreadyExistsError(f"File group {group_id} already has a download link") from e

        logger.info(f"Short link minted [group_id={group_id}] [pin={'yes' if pin_hash else 'no'}]")
        return code

    raise BundlerException(f"Unable to allocate a unique short link after {SHORTLINK_MAX_ATTEMPTS} attempts")


def make_url(code: str) -> str:
    return f"{config.PUBLIC_BASE_URL}{SHORTLINK_PATH_PREFIX}/{code}"
