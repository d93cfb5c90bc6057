"""Direct-message conversation engine."""

from .backend import ConversationSnapshot, InMemoryBackend, MessagingBackend
from .service import MessagesService, RefreshLoop, ServiceRegistry

__all__ = [
	"ConversationSnapshot",
	"InMemoryBackend",
	"MessagesService",
	"MessagingBackend",
	"RefreshLoop",
	"ServiceRegistry",
]
