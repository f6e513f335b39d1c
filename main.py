"""
Thread Poster Application

This is the main entry point for the Thread Poster application.
It signs in to X with OAuth 2.0 (PKCE), composes single posts or
multi-post threads with images, and publishes them as a reply chain.

Commands:
    login, logout, whoami, count TEXT, post [TEXT ...]
"""

import sys
import argparse
import logging
from typing import Callable, Dict, List, Optional

from config import settings
from config.validators import validate_settings, get_config_summary
from data.drafts import DraftRepository
from data.memory_store import MemoryObjectStore
from data.models import Thread, ThreadStatus
from data.protocols import ImageProcessor
from services import character_counter
from services.context import AppContext
from utils.exceptions import ThreadPosterError, ConfigurationError
from utils.helpers import split_indexed_option, split_thread_text, truncate_text
from utils.image_processor import PillowImageProcessor
from utils.logger import get_logger, setup_file_logging

# Set up logging
logger = get_logger(__name__)


def log_progress(progress: float, message: str) -> None:
    logger.info(f"[{progress:4.0%}] {message}")


class ThreadPoster:
    """
    Main application class for the Thread Poster.

    Each public method implements one command and returns True on success.
    """

    def __init__(self, context_factory: Optional[Callable[..., AppContext]] = None,
                 image_processor: Optional[ImageProcessor] = None, validate: bool = True):
        """
        Initialize the Thread Poster application.

        Args:
            context_factory: Builds the AppContext. Defaults to AppContext.create.
            image_processor: Prepares image files for upload.
            validate: Check settings before building the context.
        """
        self.context_factory = context_factory or AppContext.create
        self.image_processor = image_processor
        self.validate = validate
        self._context: Optional[AppContext] = None

    @property
    def context(self) -> AppContext:
        if self._context is None:
            if self.validate:
                validate_settings()
            logger.debug(f"Configuration: {get_config_summary()}")
            self._context = self.context_factory(progress_callback=log_progress)
        return self._context

    # -------------------------------------------------------------------------
    # Account commands
    # -------------------------------------------------------------------------

    def login(self) -> bool:
        user = self.context.sign_in()
        if user is None:
            logger.warning("Sign-in was cancelled")
            return False
        print(f"Signed in as @{user.username} ({user.name})")
        return True

    def logout(self) -> bool:
        self.context.sign_out()
        print("Signed out")
        return True

    def whoami(self) -> bool:
        user = self.context.restore_session()
        if user is None:
            print("Not signed in. Run 'login' first.")
            return False
        print(f"@{user.username} ({user.name}) id={user.id}")
        return True

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def count(self, text: str, premium: bool = False) -> bool:
        """Print the weighted length of ``text`` and what is left of the limit."""
        limit = settings.CHARACTER_LIMIT_PREMIUM if premium else settings.CHARACTER_LIMIT_STANDARD
        used = character_counter.count(text)
        left = character_counter.remaining(text, limit)
        print(f"{used}/{limit} characters ({left} remaining)")
        return left >= 0

    def build_thread(self, repository: DraftRepository, texts: List[str],
                     images: Dict[int, List[str]], alts: Dict[int, List[str]]) -> Thread:
        """
        Create a draft thread from item texts and image files.

        Args:
            repository: Where the draft is created.
            texts: One text per item.
            images: 1-based item number mapped to image paths.
            alts: 1-based item number mapped to alt texts, in image order.

        Returns:
            Thread: The new draft.
        """
        for number in images:
            if number > len(texts):
                raise ValueError(f"--image refers to item {number} but there are only {len(texts)} item(s)")

        thread = repository.create_thread(texts[0])
        for text in texts[1:]:
            repository.add_item(thread, text)

        processor = self.image_processor or PillowImageProcessor()
        for number, item in enumerate(repository.items_for(thread), start=1):
            item_alts = alts.get(number, [])
            for index, path in enumerate(images.get(number, [])):
                with open(path, "rb") as f:
                    processed = processor.process(f.read())
                alt_text = item_alts[index] if index < len(item_alts) else ""
                repository.add_attachment(item, processed.data, processed.thumbnail,
                                          alt_text=alt_text, media_type=processed.media_type)
        return thread

    def post(self, texts: List[str], images: Dict[int, List[str]], alts: Dict[int, List[str]],
             premium: bool = False, test_mode: bool = False) -> bool:
        """
        Publish ``texts`` as a post or thread.

        Args:
            texts: One text per item.
            images: 1-based item number mapped to image paths.
            alts: 1-based item number mapped to alt texts.
            premium: Use the premium character limit.
            test_mode: If True, validate and show the thread without posting.

        Returns:
            bool: True if everything was posted (or validated in test mode).
        """
        if not texts:
            logger.error("Nothing to post")
            return False

        limit = settings.CHARACTER_LIMIT_PREMIUM if premium else settings.CHARACTER_LIMIT_STANDARD
        over = [(n, character_counter.count(t)) for n, t in enumerate(texts, start=1)
                if not character_counter.is_within_limit(t, limit)]
        if over:
            for number, used in over:
                logger.error(f"Item {number} is {used} characters; the limit is {limit}")
            return False

        if test_mode:
            repository = DraftRepository(MemoryObjectStore())
            thread = self.build_thread(repository, texts, images, alts)
            for number, item in enumerate(repository.items_for(thread), start=1):
                attachments = repository.attachments_for(item)
                logger.info(f"TEST MODE: Would post {number}/{len(texts)} "
                            f"({character_counter.count(item.text)} chars, {len(attachments)} image(s)): "
                            f"{truncate_text(item.text, 60)}")
            return True

        context = self.context
        if context.restore_session() is None:
            logger.error("Not signed in. Run 'login' first.")
            return False

        thread = self.build_thread(context.repository, texts, images, alts)
        try:
            published = context.composer.post(thread)
        except ThreadPosterError as e:
            logger.error(f"Posting failed: {e}")
            if thread.status == ThreadStatus.FAILED and any(
                    i.status == ThreadStatus.POSTED for i in context.repository.items_for(thread)):
                logger.warning("Some posts were published before the failure")
            return False

        for record in published:
            print(record.view_url)
        return True


def parse_indexed(values: Optional[List[str]], option: str) -> Dict[int, List[str]]:
    """Group ``N=VALUE`` options by item number, keeping their order."""
    grouped: Dict[int, List[str]] = {}
    for value in values or []:
        try:
            number, rest = split_indexed_option(value)
        except ValueError as e:
            raise argparse.ArgumentTypeError(f"{option}: {e}")
        grouped.setdefault(number, []).append(rest)
    return grouped


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Thread Poster Application')
    parser.add_argument('--log-file', type=str, default=None, help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('login', help='Sign in through the browser')
    subparsers.add_parser('logout', help='Delete the stored credential')
    subparsers.add_parser('whoami', help='Show the signed-in account')

    count_parser = subparsers.add_parser('count', help='Show the weighted character count of TEXT')
    count_parser.add_argument('text', type=str)
    count_parser.add_argument('--premium', action='store_true', help='Use the premium character limit')

    post_parser = subparsers.add_parser('post', help='Publish a post or a thread')
    post_parser.add_argument('text', nargs='*', help='One argument per post in the thread')
    post_parser.add_argument('--file', type=str, default=None,
                             help=f"Read posts from a file, separated by '{settings.THREAD_ITEM_SEPARATOR}' lines")
    post_parser.add_argument('--image', action='append', metavar='N=PATH',
                             help='Attach an image to post N (1-based, repeatable)')
    post_parser.add_argument('--alt', action='append', metavar='N=TEXT',
                             help="Alt text for post N's images, in the order they were given")
    post_parser.add_argument('--premium', action='store_true', help='Use the premium character limit')
    post_parser.add_argument('--test', action='store_true', help='Run in test mode without posting')

    return parser.parse_args(argv)


def read_texts(args) -> List[str]:
    texts = list(args.text)
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            texts.extend(split_thread_text(f.read(), settings.THREAD_ITEM_SEPARATOR))
    return [t for t in texts if t.strip()]


def run_command(poster: ThreadPoster, args) -> bool:
    if args.command == 'login':
        return poster.login()
    if args.command == 'logout':
        return poster.logout()
    if args.command == 'whoami':
        return poster.whoami()
    if args.command == 'count':
        return poster.count(args.text, premium=args.premium)
    if args.command == 'post':
        return poster.post(
            read_texts(args),
            parse_indexed(args.image, '--image'),
            parse_indexed(args.alt, '--alt'),
            premium=args.premium,
            test_mode=args.test,
        )
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None, poster: Optional[ThreadPoster] = None) -> int:
    """Main entry point for the application."""
    # Parse command line arguments
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    get_logger().setLevel(log_level)
    if args.log_file:
        setup_file_logging(args.log_file, log_level)

    logger.debug(f"Starting Thread Poster command '{args.command}'")

    try:
        poster = poster or ThreadPoster()
        success = run_command(poster, args)
        exit_code = 0 if success else 1
    except (ConfigurationError, argparse.ArgumentTypeError, OSError, ValueError) as e:
        logger.error(str(e))
        exit_code = 1
    except ThreadPosterError as e:
        logger.error(f"{args.command} failed: {e}")
        exit_code = 1
    except Exception as e:
        logger.error(f"Unhandled exception in Thread Poster: {e}", exc_info=True)
        exit_code = 2

    logger.debug(f"Thread Poster finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
