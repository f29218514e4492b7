"""
In-memory user directory.
"""

import threading
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Iterable, List, Optional


@dataclass
class User:
    id: int
    name: str
    email: str
    role: str = "user"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_USERS = (
    User(id=1, name="John Doe", email="john@example.com", role="admin"),
    User(id=2, name="Jane Smith", email="jane@example.com", role="user"),
)


class UserDirectory:
    """Lock-guarded mapping of user id to User.

    Callers always receive copies; the directory is the only owner of the
    stored records. Ids come from a counter that starts at size + 1 and
    never goes back, so an id freed by a delete is not handed out again.
    """

    def __init__(self, users: Optional[Iterable[User]] = None):
        seed = DEFAULT_USERS if users is None else users
        self._users: Dict[int, User] = {user.id: replace(user) for user in seed}
        self._next_id = max(len(self._users), max(self._users, default=0)) + 1
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    def list(self) -> List[User]:
        with self._lock:
            return [replace(user) for user in self._users.values()]

    def find(self, user_id: int) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def insert(self, name: str, email: str, role: str = "user") -> User:
        with self._lock:
            user = User(id=self._next_id, name=name, email=email, role=role)
            self._users[user.id] = user
            self._next_id += 1
            return replace(user)

    def update(self, user_id: int, **fields: Any) -> Optional[User]:
        """Overwrite the given fields; ``None`` values are ignored."""
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            changes = {key: value for key, value in fields.items() if value is not None}
            updated = replace(user, **changes)
            self._users[user_id] = updated
            return replace(updated)

    def delete(self, user_id: int) -> bool:
        with self._lock:
            return self._users.pop(user_id, None) is not None
