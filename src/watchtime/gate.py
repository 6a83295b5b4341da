"""Rewarded-ad gating for wallet-affecting operations."""

from __future__ import annotations

import hmac
import threading
from typing import Iterable, Optional, Protocol, Set

from .exceptions import AdNotGrantedError
from .models import AdOutcome, GuardedAction

DEFAULT_GUARDED_ACTIONS: frozenset[GuardedAction] = frozenset(GuardedAction)


class AdProvider(Protocol):
    """Interface of the external rewarded-ad collaborator."""

    def is_rewarded_ad_ready(self) -> bool: ...

    def request_rewarded_ad(self) -> AdOutcome: ...

    def is_ad_loading(self) -> bool: ...


class ReviewerOverride:
    """Session-only bypass for app reviewers; never persisted."""

    def __init__(self, code: str = "") -> None:
        self._code = code
        self._active = False

    def is_reviewer_code(self, candidate: str) -> bool:
        if not self._code:
            return False
        return hmac.compare_digest(candidate.strip().lower(), self._code.lower())

    def activate(self, candidate: str) -> bool:
        if not self.is_reviewer_code(candidate):
            return False
        self._active = True
        return True

    def is_active(self) -> bool:
        return self._active

    def reset(self) -> None:
        self._active = False


class RewardGate:
    """Track which guarded actions currently hold a single-use ad grant.

    Each action is ``locked`` until a rewarded ad reports
    :attr:`~watchtime.models.AdOutcome.GRANTED`, then ``unlocked`` until the
    action is consumed.
    """

    def __init__(
        self,
        ads: Optional[AdProvider] = None,
        *,
        reviewer: Optional[ReviewerOverride] = None,
        guarded: Iterable[GuardedAction] = DEFAULT_GUARDED_ACTIONS,
    ) -> None:
        self._ads = ads
        self._reviewer = reviewer or ReviewerOverride()
        self._guarded: frozenset[GuardedAction] = frozenset(guarded)
        self._unlocked: Set[GuardedAction] = set()
        self._lock = threading.Lock()

    @property
    def reviewer(self) -> ReviewerOverride:
        return self._reviewer

    def requires_ad(self, action: GuardedAction) -> bool:
        if self._reviewer.is_active():
            return False
        return action in self._guarded

    def is_unlocked(self, action: GuardedAction) -> bool:
        with self._lock:
            return action in self._unlocked

    def is_ad_ready(self) -> bool:
        return bool(self._ads and self._ads.is_rewarded_ad_ready())

    def is_ad_loading(self) -> bool:
        return bool(self._ads and self._ads.is_ad_loading())

    def present(self, action: GuardedAction) -> AdOutcome:
        """Ask the ad collaborator for a rewarded ad and record its outcome."""

        if self._ads is None or not self._ads.is_rewarded_ad_ready():
            return self.deliver(action, AdOutcome.NOT_READY)
        return self.deliver(action, self._ads.request_rewarded_ad())

    def deliver(self, action: GuardedAction, outcome: AdOutcome) -> AdOutcome:
        """Record an ad outcome; only a granted reward unlocks ``action``."""

        if outcome is not AdOutcome.GRANTED:
            raise AdNotGrantedError(action.value, outcome.value)
        with self._lock:
            self._unlocked.add(action)
        return outcome

    def ensure(self, action: GuardedAction) -> None:
        """Raise unless ``action`` may proceed right now."""

        if not self.requires_ad(action):
            return
        with self._lock:
            if action not in self._unlocked:
                raise AdNotGrantedError(action.value, "locked")

    def consume(self, action: GuardedAction) -> None:
        """Use up the grant for ``action`` after it executed."""

        with self._lock:
            self._unlocked.discard(action)

    def cancel(self, action: GuardedAction) -> bool:
        with self._lock:
            if action not in self._unlocked:
                return False
            self._unlocked.discard(action)
            return True
