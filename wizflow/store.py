""" Persistence and identity collaborators used by the editor. """

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class User:
    uid: str
    display_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        return self.display_name or self.email


class IdentityProvider(ABC):
    @abstractmethod
    def current_user(self) -> Optional[User]:
        """ The signed-in user, or None. """


class StaticIdentity(IdentityProvider):
    def __init__(self, user: Optional[User]):
        self.user = user

    def current_user(self) -> Optional[User]:
        return self.user


class DocumentStore(ABC):
    """
    Key-value document store keyed by (user id, workflow id).
    Implementations raise PersistenceError on failure.
    """

    @abstractmethod
    async def upsert(self, user_id: str, workflow_id: str, data: Dict[str, Any],
                     merge: bool = True) -> None:
        pass

    @abstractmethod
    async def get(self, user_id: str, workflow_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def list(self, user_id: str) -> List[Dict[str, Any]]:
        """ Summaries ``{id, name, description}`` of a user's workflows. """

    @abstractmethod
    async def delete(self, user_id: str, workflow_id: str) -> None:
        pass


class InMemoryStore(DocumentStore):
    def __init__(self):
        self._docs: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def upsert(self, user_id, workflow_id, data, merge=True):
        key = (user_id, workflow_id)
        current = self._docs.get(key, {}) if merge else {}
        current = dict(current)
        current.update(copy.deepcopy(data))
        self._docs[key] = current

    async def get(self, user_id, workflow_id):
        doc = self._docs.get((user_id, workflow_id))
        return copy.deepcopy(doc) if doc is not None else None

    async def list(self, user_id):
        return [
            {"id": wid, "name": doc.get("name", ""), "description": doc.get("description", "")}
            for (uid, wid), doc in self._docs.items()
            if uid == user_id
        ]

    async def delete(self, user_id, workflow_id):
        self._docs.pop((user_id, workflow_id), None)
