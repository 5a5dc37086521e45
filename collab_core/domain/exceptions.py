# collab_core/domain/exceptions.py


class CollabError(Exception):
    """Base class for every failure raised below the interactor boundary."""


class NotFound(CollabError):
    def __init__(self, collection: str, document_id: str):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"{collection}/{document_id} not found")


class StoreUnavailable(CollabError):
    pass


class Unauthorized(CollabError):
    pass


class InvalidTransition(CollabError):
    def __init__(self, request_id: str, current: str, target: str):
        self.request_id = request_id
        self.current = current
        self.target = target
        super().__init__(f"Request {request_id} is {current}, cannot move to {target}")


class ConversationClosed(CollabError):
    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} is no longer active")


class MalformedDocument(StoreUnavailable):
    def __init__(self, collection: str, document_id: str, reason: str):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"{collection}/{document_id} is malformed: {reason}")
