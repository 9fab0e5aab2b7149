"""Client-side view of the LOBBY -> RACING -> FINISHED session lifecycle."""

from dataclasses import dataclass, replace

from tap_duel.domain.sessions import Session, SessionStatus


def merge_snapshots(current: Session, observed: Session) -> Session:
    """Join two snapshots of the same session without ever moving backwards.

    Notifications are unordered and may repeat, so each field may only move
    forward. Set-once fields keep the first non-null value seen.
    """
    if observed.id != current.id:
        return current
    status = current.status
    if observed.status.rank > current.status.rank:
        status = observed.status
    guest_id = current.guest_id
    if guest_id is None:
        guest_id = observed.guest_id
    return replace(
        current,
        guest_id=guest_id,
        status=status,
        host_score=max(current.host_score, observed.host_score),
        guest_score=max(current.guest_score, observed.guest_score),
        start_time=current.start_time or observed.start_time,
        winner_id=(
            current.winner_id if current.winner_id is not None else observed.winner_id
        ),
        next_session_id=current.next_session_id or observed.next_session_id,
    )


@dataclass
class SessionStateMachine:
    """Tracks one session as observed by one client."""

    session: Session

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    def observe(self, snapshot: Session) -> SessionStatus | None:
        """Merge a snapshot and return the status entered, if it advanced."""
        previous = self.session.status
        self.session = merge_snapshots(self.session, snapshot)
        if self.session.status.rank > previous.rank:
            return self.session.status
        return None

    def can_start(self, player_id: int) -> bool:
        return (
            self.session.is_host(player_id)
            and self.session.guest_id is not None
            and self.session.status is SessionStatus.LOBBY
        )

    def can_rematch(self, player_id: int) -> bool:
        return (
            self.session.is_host(player_id)
            and self.session.status is SessionStatus.FINISHED
        )
