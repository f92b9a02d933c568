"""
Run one provider verification pass without going through HTTP
Usage: python run_verification.py [role]

Exit status is 1 when the pass could not run or any provider update failed.
"""
import logging
import sys
from typing import Optional

from marketplace.config import load_settings
from marketplace.database import build_engine, build_session_factory
from marketplace.domain.verification.service import VerificationPassResult, VerificationService
from marketplace.errors import MarketplaceError

logger = logging.getLogger(__name__)


def run_verification(role: Optional[str] = None) -> VerificationPassResult:
    settings = load_settings()
    engine = build_engine(settings)
    db = build_session_factory(engine)()
    try:
        return VerificationService(db, role=role or settings.verification_role).run_pass()
    finally:
        db.close()
        engine.dispose()


def main(argv: list[str]) -> int:
    try:
        result = run_verification(argv[0] if argv else None)
    except MarketplaceError as e:
        logger.error(f"❌ Verification pass failed: {e}")
        return 1

    logger.info(
        f"✅ verified={result.verified} revoked={result.revoked} "
        f"failed={result.failed} skipped={result.skipped}"
    )
    return 1 if result.failed else 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    sys.exit(main(sys.argv[1:]))
