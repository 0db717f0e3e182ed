from .errors import ValidationFailed
from .log import get_logger
from .models import ContactMessage, new_id
from .store import CONTACTS, RecordStore

logger = get_logger(__name__)


class ContactInbox:
    """Messages left through the public contact form."""

    def __init__(self, store: RecordStore):
        self.store = store

    def submit(self, name: str, email: str, message: str) -> ContactMessage:
        if not name or not email or not message:
            raise ValidationFailed("Name, email and message are required")
        item = ContactMessage(id=new_id(), name=name, email=email, message=message)
        with self.store.locked(CONTACTS):
            records = self.store.load(CONTACTS)
            records.append(item.to_record())
            self.store.save(CONTACTS, records)
        logger.info("contact_message_received", message_id=item.id, email=email)
        return item

    def list_all(self) -> list[ContactMessage]:
        return [ContactMessage.model_validate(r) for r in self.store.load(CONTACTS)]
