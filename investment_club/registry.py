"""
Club Registry Module

Creates clubs together with their capability tokens, creates members, and
owns the per-club transaction boundary every mutating operation runs in.
"""

import threading
import uuid
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from .audit import AuditTrail, AuditEventType
from .capability import CapabilityToken, mint_capability
from .errors import ClubNotFound
from .logging_config import get_logger, log_action
from .models import Club, Gender, Investment, Member
from .storage import StorageInterface

logger = get_logger("investment_club.registry")


class ClubRegistry:
    """
    Registry of clubs and member records

    Live Club objects are cached so that every caller shares the same
    instance, and therefore the same lock, for a given club id.
    """

    def __init__(self, storage: StorageInterface, audit_trail: Optional[AuditTrail] = None):
        self.storage = storage
        self.audit_trail = audit_trail
        self.clubs_table = "clubs"
        self.members_table = "members"
        self._clubs: Dict[str, Club] = {}
        self._cache_lock = threading.Lock()
        self._write_lock = threading.RLock()

    def create_club(
        self,
        name: str,
        club_type: str,
        rules: str,
        description: str,
        status: bool,
        now: int
    ) -> Tuple[Club, CapabilityToken]:
        """
        Create a new club and mint its capability token

        Inputs are stored as given; business-rule checks belong to the caller.

        Returns:
            The club (zero balance, no members or investments) and the
            token bound to it
        """
        club = Club(
            id=str(uuid.uuid4()),
            name=name,
            club_type=club_type,
            rules=rules,
            description=description,
            founded_at=now,
            status=status,
        )
        token = mint_capability(club.id)

        with self._write_lock, self.storage.atomic():
            self.storage.save(self.clubs_table, club.id, club.to_dict())
            self._audit(AuditEventType.CLUB_CREATED, "club", club.id, now,
                        {"name": name, "club_type": club_type, "status": status})
        with self._cache_lock:
            self._clubs[club.id] = club

        log_action(logger, "info", f"Club {name} created", action="create_club",
                   resource=club.id, extra={"club_type": club_type})

        return club, token

    def add_member(
        self,
        club_id: str,
        name: str,
        gender: Gender,
        contact: str,
        shares: int,
        now: int,
        participant: Optional[str] = None
    ) -> Member:
        """
        Create a member record for a club

        No uniqueness check is made: calling this twice for the same person
        stores two member records. When participant is given and the club is
        registered, the member is also linked into club.members under that
        identity, replacing any previous link.

        Args:
            club_id: Owning club
            name: Member name
            gender: Closed two-valued gender tag
            contact: Free-text contact info
            shares: Share count used to scale obligations
            now: Join timestamp in milliseconds
            participant: Identity to link the member under

        Returns:
            Member with paid == False
        """
        member = Member(
            id=str(uuid.uuid4()),
            club_id=club_id,
            name=name,
            gender=gender,
            contact=contact,
            shares=shares,
            joined_at=now,
        )

        metadata = {"club_id": club_id, "shares": shares, "gender": gender}
        club = self.find_club(club_id) if participant is not None else None
        if club is not None:
            with self.transaction(club, member=member):
                club.members[participant] = member
                self._audit(AuditEventType.MEMBER_ADDED, "member", member.id, now,
                            metadata, actor=participant)
        else:
            with self._write_lock, self.storage.atomic():
                self.storage.save(self.members_table, member.id, member.to_dict())
                self._audit(AuditEventType.MEMBER_ADDED, "member", member.id, now,
                            metadata, actor=participant)

        log_action(logger, "info", f"Member {name} added", user_id=participant,
                   action="add_member", resource=club_id,
                   extra={"member_id": member.id, "shares": shares})

        return member

    def find_club(self, club_id: str) -> Optional[Club]:
        """Get club by ID, loading it from storage on first access"""
        with self._cache_lock:
            club = self._clubs.get(club_id)
            if club is None:
                data = self.storage.load(self.clubs_table, club_id)
                if data is None:
                    return None
                club = Club.from_dict(data)
                self._clubs[club_id] = club
            return club

    def get_club(self, club_id: str) -> Club:
        """Get club by ID or raise ClubNotFound"""
        club = self.find_club(club_id)
        if club is None:
            raise ClubNotFound(f"Club {club_id} not found")
        return club

    def list_clubs(self) -> List[Club]:
        return [self.get_club(data['id']) for data in self.storage.load_all(self.clubs_table)]

    def get_member(self, member_id: str) -> Optional[Member]:
        """Get the stored member record by ID"""
        data = self.storage.load(self.members_table, member_id)
        if data:
            return Member.from_dict(data)
        return None

    def get_club_members(self, club_id: str) -> List[Member]:
        """Get every member record of a club, duplicates included"""
        records = self.storage.find(self.members_table, {"club_id": club_id})
        return [Member.from_dict(data) for data in records]

    def save_club(self, club: Club, member: Optional[Member] = None) -> None:
        """Persist a club, and optionally a member, in one storage transaction"""
        with self._write_lock, self.storage.atomic():
            self.storage.save(self.clubs_table, club.id, club.to_dict())
            if member is not None:
                self.storage.save(self.members_table, member.id, member.to_dict())

    @contextmanager
    def transaction(
        self,
        club: Club,
        member: Optional[Member] = None,
        investment: Optional[Investment] = None
    ):
        """
        Single-writer, all-or-nothing boundary for one club

        Holds the club lock for the duration of the block. The block and the
        final write of the club (and member) share one storage transaction,
        so audit events logged inside the block commit or roll back with the
        state they describe. If anything raises, the in-memory club, its
        members' paid flags, its obligations' statuses and the given member
        and investment are put back exactly as they were before the block.
        """
        with club.lock:
            balance = club.balance
            members = dict(club.members)
            investments = dict(club.investments)
            paid_flags = [(m, m.paid) for m in members.values()]
            statuses = [(inv, inv.status) for inv in investments.values()]
            if member is not None:
                paid_flags.append((member, member.paid))
            if investment is not None:
                statuses.append((investment, investment.status))
            try:
                with self._write_lock, self.storage.atomic():
                    yield club
                    self.save_club(club, member)
            except Exception:
                club.balance = balance
                club.members.clear()
                club.members.update(members)
                club.investments.clear()
                club.investments.update(investments)
                for snapshot_member, flag in paid_flags:
                    snapshot_member.paid = flag
                # Rollback bypasses the transition table
                for snapshot_investment, status in statuses:
                    snapshot_investment.status = status
                raise

    def _audit(self, event_type, entity_type, entity_id, now, metadata, actor=None) -> None:
        if self.audit_trail is not None:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                occurred_at=now,
                metadata=metadata,
                actor=actor
            )
