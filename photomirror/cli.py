import argparse
import sys
from pathlib import Path
from typing import List, Optional

from google.auth.transport.requests import AuthorizedSession
from loguru import logger

from photomirror.auth import AuthManager
from photomirror.config import CONFIG_FILENAME, DATA_DIR, SyncConfig, load_user_config
from photomirror.exceptions import AuthError
from photomirror.google_photos_api import GooglePhotosSource
from photomirror.lock import RunLock
from photomirror.syncer import MirrorSync, SyncReport

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_BAD_CONFIG = 2

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photomirror",
        description="Mirror a Google Photos library into a local folder.",
    )
    parser.add_argument("-s", "--storage", metavar="STORAGEPATH",
                        help="Set path to storage")
    parser.add_argument("-p", "--profile", metavar="PATH",
                        help="Path to store DB and API related files")
    parser.add_argument("-q", "--query-limit", type=int, metavar="NUMBER",
                        help="Set limit to Google Photo API queries")
    parser.add_argument("--page-size", type=int, metavar="NUMBER",
                        help="Items requested per listing page (max 100)")
    parser.add_argument("-c", "--clear-auth", action="store_true",
                        help="Forget last auth token and authorize again")
    parser.add_argument("-l", "--logfile", metavar="FILE",
                        help="Log to FILE instead of stderr")
    parser.add_argument("--log-level", default="INFO", choices=LOG_LEVELS,
                        type=str.upper, help="Minimum level to log (default: INFO)")
    parser.add_argument("--verify-hashes", action="store_true", default=None,
                        help="Re-hash local files and re-download any that changed")
    parser.add_argument("--sweep-orphans", action="store_true", default=None,
                        help="Delete files in storage that the index does not know about")
    return parser


def configure_logging(logfile: Optional[str], level: str = "INFO"):
    logger.remove()
    logger.add(logfile or sys.stderr, level=level)


def run_sync(config: SyncConfig, clear_auth: bool = False) -> SyncReport:
    """
    Authenticate, then run one full sync pass.
    """
    auth = AuthManager(config.token_path, config.credentials_path)
    if clear_auth:
        auth.clear()

    try:
        creds = auth.authenticate()
    except AuthError as e:
        logger.error(f"Authentication failed: {e}")
        return SyncReport(error=e)

    source = GooglePhotosSource(AuthorizedSession(creds))
    syncer = MirrorSync.from_config(config, source)
    try:
        return syncer.run()
    finally:
        syncer.index.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.logfile, args.log_level)

    profile = Path(args.profile).expanduser() if args.profile else DATA_DIR
    try:
        user_config = load_user_config(profile / CONFIG_FILENAME)
        config = SyncConfig.from_sources(user_config, {
            "profile_path": profile,
            "storage_path": args.storage,
            "query_limit": args.query_limit,
            "page_size": args.page_size,
            "verify_hashes": args.verify_hashes,
            "sweep_orphans": args.sweep_orphans,
        })
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_BAD_CONFIG

    with RunLock(config.lock_path) as acquired:
        if not acquired:
            logger.info("Another sync is already running; exiting.")
            return EXIT_OK
        report = run_sync(config, clear_auth=args.clear_auth)

    logger.info(f"Sync finished: {report.summary()}")
    return EXIT_OK if report.ok else EXIT_ABORTED
