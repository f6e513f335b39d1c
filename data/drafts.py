"""
Draft Repository Module

This module manages the draft ownership tree on top of an ObjectStore:
a Thread owns its ThreadItems, a ThreadItem owns its Attachments, and
PublishedPost records live on their own. Deleting a parent walks and
removes its children explicitly.

Invariants kept here:
- a thread always has at least one item;
- item ``sort_order`` values are 0..n-1 after every mutation;
- attachment ``sort_order`` values are 0..n-1 within their item, n <= 4.
"""

from typing import List, Optional, Union

from config import settings
from data.models import Attachment, PublishedPost, Thread, ThreadItem
from data.protocols import ObjectStore
from utils.exceptions import AttachmentLimitError, InvalidStateError, NotFoundError
from utils.logger import get_logger

logger = get_logger(__name__)


class DraftRepository:
    """Creates, edits and deletes threads, items and attachments."""

    def __init__(self, store: ObjectStore, max_attachments: Optional[int] = None):
        """
        Initialize the repository.

        Args:
            store: The object store used as the arena for every model.
            max_attachments: Attachment cap per item. Defaults to settings.
        """
        self.store = store
        self.max_attachments = max_attachments or settings.MAX_ATTACHMENTS_PER_ITEM

    # -------------------------------------------------------------------------
    # Threads
    # -------------------------------------------------------------------------

    def create_thread(self, text: str = "") -> Thread:
        """
        Create a thread with a single item.

        Args:
            text: Text of the first item.

        Returns:
            Thread: The new thread in ``editing`` status.
        """
        thread = Thread()
        item = ThreadItem(thread_id=thread.id, text=text, sort_order=0)
        thread.item_ids.append(item.id)
        self.store.insert(item)
        self.store.insert(thread)
        logger.debug(f"Created thread {thread.id}")
        return thread

    def get_thread(self, thread_id: str) -> Thread:
        thread = self.store.get(Thread, thread_id)
        if thread is None:
            raise NotFoundError(f"Thread {thread_id} not found")
        return thread

    def list_threads(self) -> List[Thread]:
        """Return all threads, most recently updated first."""
        return sorted(self.store.query(Thread), key=lambda t: t.updated_at, reverse=True)

    def touch(self, thread: Thread) -> None:
        thread.touch()
        self.store.insert(thread)

    def save(self, obj: Union[Thread, ThreadItem, Attachment]) -> None:
        """Write back a mutated thread, item or attachment."""
        if isinstance(obj, Thread):
            obj.touch()
        self.store.insert(obj)

    def delete_thread(self, thread: Thread) -> None:
        """
        Delete a thread together with every item and attachment it owns.

        Args:
            thread: The thread to delete.
        """
        for item in self.items_for(thread):
            self._delete_item_tree(item)
        thread.item_ids.clear()
        self.store.delete(thread)
        logger.info(f"Deleted thread {thread.id}")

    def can_post(self, thread: Thread) -> bool:
        """True when the thread is editable and at least one item has content."""
        return thread.is_editable and any(item.has_content for item in self.items_for(thread))

    # -------------------------------------------------------------------------
    # Items
    # -------------------------------------------------------------------------

    def items_for(self, thread: Thread) -> List[ThreadItem]:
        """Return the thread's items in ascending ``sort_order``."""
        items = [self.store.get(ThreadItem, item_id) for item_id in thread.item_ids]
        return sorted((i for i in items if i is not None), key=lambda i: i.sort_order)

    def add_item(self, thread: Thread, text: str = "") -> ThreadItem:
        """
        Append a new item at the end of the thread.

        Args:
            thread: The owning thread.
            text: Initial text.

        Returns:
            ThreadItem: The new item.
        """
        items = self.items_for(thread)
        next_order = (max(i.sort_order for i in items) + 1) if items else 0
        item = ThreadItem(thread_id=thread.id, text=text, sort_order=next_order)
        thread.item_ids.append(item.id)
        self.store.insert(item)
        self.touch(thread)
        return item

    def remove_item(self, thread: Thread, item: ThreadItem) -> None:
        """
        Remove an item, its attachments, and re-sequence the remaining items.

        Raises:
            InvalidStateError: If the item is the thread's last one.
        """
        if item.id not in thread.item_ids:
            raise NotFoundError(f"Item {item.id} does not belong to thread {thread.id}")
        if len(thread.item_ids) <= 1:
            raise InvalidStateError("A thread must keep at least one item")

        thread.item_ids.remove(item.id)
        self._delete_item_tree(item)

        for index, remaining in enumerate(self.items_for(thread)):
            remaining.sort_order = index
            self.store.insert(remaining)
        self.touch(thread)

    def set_item_text(self, item: ThreadItem, text: str) -> None:
        """
        Replace an item's text.

        Raises:
            InvalidStateError: If the item is being posted or already posted.
        """
        if not item.is_editable:
            raise InvalidStateError()
        item.text = text
        self.store.insert(item)
        thread = self.store.get(Thread, item.thread_id)
        if thread is not None:
            self.touch(thread)

    def _delete_item_tree(self, item: ThreadItem) -> None:
        for attachment in self.attachments_for(item):
            self.store.delete(attachment)
        item.attachment_ids.clear()
        self.store.delete(item)

    # -------------------------------------------------------------------------
    # Attachments
    # -------------------------------------------------------------------------

    def attachments_for(self, item: ThreadItem) -> List[Attachment]:
        """Return the item's attachments in ascending ``sort_order``."""
        attachments = [self.store.get(Attachment, a_id) for a_id in item.attachment_ids]
        return sorted((a for a in attachments if a is not None), key=lambda a: a.sort_order)

    def add_attachment(self, item: ThreadItem, data: bytes, thumbnail: bytes,
                       alt_text: str = "", media_type: str = "image/jpeg") -> Attachment:
        """
        Attach an image to an item.

        Args:
            item: The owning item.
            data: Full-resolution payload.
            thumbnail: Thumbnail payload.
            alt_text: Accessibility description.
            media_type: MIME type of ``data``.

        Returns:
            Attachment: The new attachment.

        Raises:
            AttachmentLimitError: If the item already has the maximum number of attachments.
        """
        if len(item.attachment_ids) >= self.max_attachments:
            raise AttachmentLimitError(
                f"A post can have at most {self.max_attachments} images"
            )
        attachment = Attachment(
            item_id=item.id,
            data=data,
            thumbnail=thumbnail,
            alt_text=alt_text,
            sort_order=len(item.attachment_ids),
            media_type=media_type,
        )
        item.attachment_ids.append(attachment.id)
        self.store.insert(attachment)
        self.store.insert(item)
        return attachment

    def remove_attachment(self, item: ThreadItem, attachment: Attachment) -> None:
        """Remove an attachment and re-sequence the remaining ones."""
        if attachment.id not in item.attachment_ids:
            raise NotFoundError(f"Attachment {attachment.id} does not belong to item {item.id}")
        item.attachment_ids.remove(attachment.id)
        self.store.delete(attachment)
        for index, remaining in enumerate(self.attachments_for(item)):
            remaining.sort_order = index
            self.store.insert(remaining)
        self.store.insert(item)

    # -------------------------------------------------------------------------
    # Published posts
    # -------------------------------------------------------------------------

    def record_published(self, post: PublishedPost) -> None:
        self.store.insert(post)

    def published_posts(self, thread_group_id: Optional[str] = None) -> List[PublishedPost]:
        """
        Return published posts, oldest first.

        Args:
            thread_group_id: Restrict to one thread group, ordered by position.
        """
        if thread_group_id is None:
            return sorted(self.store.query(PublishedPost), key=lambda p: p.posted_at)
        posts = self.store.query(PublishedPost, lambda p: p.thread_group_id == thread_group_id)
        return sorted(posts, key=lambda p: p.position_in_thread)
