"""
Profile model - the identity record the entitlement engine reads.

A profile carries the member's role and the stored license value. The
license column predates the current tier names, so it may hold a legacy
alias ('entree', 'transformation', 'immersion'); normalization happens in
the entitlement resolver, never here.

The engine only ever writes one column of this table: the role, when the
developer license lapse policy demotes the subject account.
"""

import enum

from sqlalchemy import Column, String, DateTime

from membership_access.db_base import Base
from membership_access.models.base import TimestampMixin, generate_uuid


class Role(str, enum.Enum):
    """Account roles."""
    CLIENT = "client"
    ADMIN = "admin"
    DEVELOPER = "developer"

    @property
    def is_administrative(self) -> bool:
        return self in (Role.ADMIN, Role.DEVELOPER)


# Roles that resolve to full access regardless of the stored license
ADMINISTRATIVE_ROLES = frozenset(r.value for r in Role if r.is_administrative)

# The role demoted by the lapse policy, and what it is demoted to
ELEVATED_ROLE = Role.ADMIN.value
ORDINARY_ROLE = Role.CLIENT.value


class Profile(Base, TimestampMixin):
    """
    Member profile.

    Owned by the identity store; the engine treats it as a read-only
    snapshot except for the role demotion described above.
    """

    __tablename__ = "profiles"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
        comment="Identity provider user id"
    )

    email = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    full_name = Column(String(255), nullable=True)

    role = Column(
        String(50),
        nullable=False,
        default=Role.CLIENT.value,
        comment="client | admin | developer"
    )

    license = Column(
        String(50),
        nullable=True,
        default="none",
        comment="Stored license value, current tier name or legacy alias"
    )

    license_valid_until = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Optional license expiry"
    )

    def __repr__(self) -> str:
        return (
            f"<Profile(id={self.id}, email={self.email}, "
            f"role={self.role}, license={self.license})>"
        )
