"""Acting-user context passed explicitly into every service call."""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional


class UserRole(str, Enum):
    MANAGER = "manager"
    ADMIN = "admin"
    RECEPTION = "reception"
    PHOTO_EDITOR = "photo_editor"
    VIDEO_EDITOR = "video_editor"
    PRINTER = "printer"
    SELECTOR = "selector"


class AuthorityRank(IntEnum):
    """Ordered authority levels used to break write conflicts."""
    STAFF = 1
    SUPERVISOR = 2
    MANAGER = 3

    @classmethod
    def highest(cls) -> "AuthorityRank":
        return max(cls)

    @classmethod
    def parse(cls, value: Optional[object]) -> "AuthorityRank":
        """Parse a stored rank label or number. Unknown values count as STAFF.

        ``ADMIN`` is accepted as an alias of SUPERVISOR and ``RECEPTION``
        as an alias of STAFF, matching labels written by older clients.
        """
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return cls.STAFF
        label = str(value or "").strip().upper()
        if label.isdigit():
            return cls.parse(int(label))
        if label == "ADMIN":
            return cls.SUPERVISOR
        return cls.__members__.get(label, cls.STAFF)


ROLE_RANKS: dict[UserRole, AuthorityRank] = {
    UserRole.MANAGER: AuthorityRank.MANAGER,
    UserRole.ADMIN: AuthorityRank.SUPERVISOR,
}

ROLE_LABELS: dict[UserRole, str] = {
    UserRole.MANAGER: "Manager",
    UserRole.ADMIN: "Supervisor",
    UserRole.RECEPTION: "Reception",
    UserRole.PHOTO_EDITOR: "Photo Editor",
    UserRole.VIDEO_EDITOR: "Video Editor",
    UserRole.PRINTER: "Printer",
    UserRole.SELECTOR: "Selector",
}


@dataclass(frozen=True)
class SessionContext:
    """
    Identity of the user performing an operation.

    Replaces a process-wide "current user" accessor: services receive this
    object explicitly, so audit logging and conflict ranking never depend on
    ambient state.
    """
    user_id: str
    name: str
    role: UserRole = UserRole.RECEPTION
    role_label: Optional[str] = None

    @property
    def rank(self) -> AuthorityRank:
        return ROLE_RANKS.get(self.role, AuthorityRank.STAFF)

    @property
    def label(self) -> str:
        return self.role_label or ROLE_LABELS[self.role]

    @property
    def full_name(self) -> str:
        """Display name prefixed with the role label, e.g. ``Reception Maryam``."""
        return f"{self.label} {self.name}"

    @property
    def is_manager(self) -> bool:
        return self.rank >= AuthorityRank.SUPERVISOR

    @classmethod
    def system(cls) -> "SessionContext":
        """Actor used by scheduled jobs such as the retention sweep."""
        return cls(user_id="system", name="System", role=UserRole.ADMIN, role_label="System")
