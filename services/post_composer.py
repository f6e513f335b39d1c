"""
Post Composer Module

Top-level orchestrator that publishes a draft thread. Items are posted one
after another; each item's attachments are uploaded first, then the item
is posted as a reply to the previous one so the platform renders the
sequence as a single thread.

Thread and item statuses:

    editing/ready/failed -> posting -> posted
                                    -> failed   (any step raises)

Retrying a failed thread resumes it: items already posted are skipped and
the reply chain continues from the last of them.
"""

from typing import Dict, List, Optional

from config import settings
from data.drafts import DraftRepository
from data.models import (
    Attachment,
    PublishedPost,
    Thread,
    ThreadItem,
    ThreadStatus,
    new_id,
)
from services.protocols import MediaUploadService, PostingClient, ProgressCallback
from utils.exceptions import EmptyContentError, InvalidStateError
from utils.logger import get_logger

logger = get_logger(__name__)


class PostComposer:
    """Publishes threads and tracks their progress."""

    def __init__(self, api_client: PostingClient, media_uploader: MediaUploadService,
                 repository: DraftRepository, progress_callback: Optional[ProgressCallback] = None,
                 post_url_template: Optional[str] = None):
        """
        Initialize the composer.

        Args:
            api_client: Creates posts.
            media_uploader: Uploads attachments.
            repository: Draft storage; also receives PublishedPost records.
            progress_callback: Called with (progress, status_message) on every change.
            post_url_template: Format string for a post's view URL, with ``{post_id}``.
        """
        self.api_client = api_client
        self.media_uploader = media_uploader
        self.repository = repository
        self.progress_callback = progress_callback
        self.post_url_template = post_url_template or settings.X_POST_URL_TEMPLATE

        self.progress = 0.0
        self.status_message = ""

    def _report(self, progress: Optional[float] = None, message: Optional[str] = None) -> None:
        if progress is not None:
            self.progress = progress
        if message is not None:
            self.status_message = message
        if self.progress_callback is not None:
            self.progress_callback(self.progress, self.status_message)

    def post(self, thread: Thread) -> List[PublishedPost]:
        """
        Publish every item of ``thread`` that has content.

        Args:
            thread: An editable thread.

        Returns:
            List[PublishedPost]: Records for the items posted by this call.

        Raises:
            InvalidStateError: If the thread is posting or already posted. Nothing is changed.
            EmptyContentError: If no item has text or attachments.
            ThreadPosterError: Whatever the uploader or API client raised. The thread
                is left ``failed`` with the error message.
        """
        if not thread.is_editable:
            raise InvalidStateError(f"Cannot post a thread that is {thread.status.value}")

        items: List[ThreadItem] = []
        published: List[PublishedPost] = []
        is_thread = False
        try:
            thread.status = ThreadStatus.POSTING
            thread.failure_message = None
            self.repository.save(thread)
            self._report(0.0, "Preparing...")

            items = self.repository.items_for(thread)
            content_items = [item for item in items if item.has_content]
            if not content_items:
                raise EmptyContentError()

            is_thread = len(content_items) > 1
            if is_thread and thread.thread_group_id is None:
                thread.thread_group_id = new_id()
            group_id = thread.thread_group_id if is_thread else None

            attachments: Dict[str, List[Attachment]] = {
                item.id: self.repository.attachments_for(item) for item in content_items
            }
            total_units = sum(len(a) for a in attachments.values()) + len(content_items)
            completed = 0
            previous_post_id: Optional[str] = None
            item_count = len(content_items)

            logger.info(f"Posting thread {thread.id}: {item_count} item(s), {total_units} step(s)")

            for position, item in enumerate(content_items):
                item_attachments = attachments[item.id]
                number = position + 1

                if item.status == ThreadStatus.POSTED and item.posted_post_id:
                    # Published by an earlier attempt
                    completed += len(item_attachments) + 1
                    previous_post_id = item.posted_post_id
                    self._report(completed / total_units)
                    continue

                item.status = ThreadStatus.POSTING
                self.repository.save(item)

                media_ids = []
                for index, attachment in enumerate(item_attachments, start=1):
                    self._report(message=f"Uploading image {index} of {len(item_attachments)} "
                                         f"for post {number}...")
                    media_id = self.media_uploader.upload(attachment.data, attachment.media_type)
                    if attachment.alt_text:
                        self.media_uploader.set_alt_text(media_id, attachment.alt_text)
                    attachment.uploaded_media_id = media_id
                    self.repository.save(attachment)
                    media_ids.append(media_id)

                    completed += 1
                    self._report(completed / total_units)

                posting_message = f"Posting {number} of {item_count}..." if is_thread else "Posting..."
                self._report(message=posting_message)
                result = self.api_client.post_item(item.text, media_ids=media_ids or None,
                                                   reply_to_id=previous_post_id)

                item.status = ThreadStatus.POSTED
                item.posted_post_id = result.post_id
                self.repository.save(item)

                record = PublishedPost(
                    post_id=result.post_id,
                    text=result.text,
                    attachment_count=len(item_attachments),
                    view_url=self.post_url_template.format(post_id=result.post_id),
                    thread_group_id=group_id,
                    position_in_thread=position,
                )
                self.repository.record_published(record)
                published.append(record)

                completed += 1
                self._report(completed / total_units)
                previous_post_id = result.post_id

        except Exception as e:
            thread.status = ThreadStatus.FAILED
            thread.failure_message = str(e)
            for item in items:
                if item.status == ThreadStatus.POSTING:
                    item.status = ThreadStatus.FAILED
                    self.repository.save(item)
            self.repository.save(thread)
            self._report(0.0, f"Failed: {e}")
            logger.error(f"Posting thread {thread.id} failed: {e}")
            raise

        thread.status = ThreadStatus.POSTED
        self.repository.save(thread)
        self._report(1.0, "Thread posted!" if is_thread else "Posted!")
        logger.info(f"Thread {thread.id} posted ({len(published)} new post(s))")
        return published

    def retry(self, thread: Thread) -> List[PublishedPost]:
        """
        Resume a failed thread.

        Failed items go back to ``editing`` and every attachment of an item
        that is not yet posted loses its uploaded media id, so it is uploaded
        again. Items already posted are left alone and skipped by ``post``.

        Raises:
            InvalidStateError: If the thread is not ``failed``. No request is made.
        """
        if thread.status != ThreadStatus.FAILED:
            raise InvalidStateError(f"Only failed threads can be retried (thread is {thread.status.value})")

        thread.failure_message = None
        for item in self.repository.items_for(thread):
            if item.status == ThreadStatus.POSTED:
                continue
            if item.status == ThreadStatus.FAILED:
                item.status = ThreadStatus.EDITING
                self.repository.save(item)
            for attachment in self.repository.attachments_for(item):
                attachment.uploaded_media_id = None
                self.repository.save(attachment)

        logger.info(f"Retrying thread {thread.id}")
        return self.post(thread)
