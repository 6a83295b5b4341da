import pytest

from watchtime.exceptions import AdNotGrantedError
from watchtime.gate import ReviewerOverride, RewardGate
from watchtime.models import AdOutcome, GuardedAction


class FakeAds:
    def __init__(self, outcome: AdOutcome = AdOutcome.GRANTED, ready: bool = True) -> None:
        self.outcome = outcome
        self.ready = ready
        self.requests = 0

    def is_rewarded_ad_ready(self) -> bool:
        return self.ready

    def request_rewarded_ad(self) -> AdOutcome:
        self.requests += 1
        return self.outcome

    def is_ad_loading(self) -> bool:
        return not self.ready


def test_actions_start_locked() -> None:
    gate = RewardGate()

    with pytest.raises(AdNotGrantedError) as excinfo:
        gate.ensure(GuardedAction.RAISE_BASE)

    assert excinfo.value.reason == "locked"
    assert excinfo.value.action == "raise_base"


def test_grant_is_single_use() -> None:
    gate = RewardGate()

    gate.deliver(GuardedAction.EARN_TIME, AdOutcome.GRANTED)
    gate.ensure(GuardedAction.EARN_TIME)
    assert gate.is_unlocked(GuardedAction.EARN_TIME)
    assert not gate.is_unlocked(GuardedAction.RESET_DAY)

    gate.consume(GuardedAction.EARN_TIME)

    with pytest.raises(AdNotGrantedError):
        gate.ensure(GuardedAction.EARN_TIME)


@pytest.mark.parametrize("outcome", [AdOutcome.DISMISSED, AdOutcome.TIMED_OUT])
def test_non_granted_outcome_keeps_gate_locked(outcome: AdOutcome) -> None:
    gate = RewardGate()

    with pytest.raises(AdNotGrantedError) as excinfo:
        gate.deliver(GuardedAction.LOCK_SCREEN, outcome)

    assert excinfo.value.reason == outcome.value
    assert not gate.is_unlocked(GuardedAction.LOCK_SCREEN)


def test_present_without_ready_ad() -> None:
    ads = FakeAds(ready=False)
    gate = RewardGate(ads)

    with pytest.raises(AdNotGrantedError) as excinfo:
        gate.present(GuardedAction.EARN_TIME)

    assert excinfo.value.reason == "not_ready"
    assert ads.requests == 0
    assert gate.is_ad_loading() is True


def test_present_unlocks_on_granted_ad() -> None:
    ads = FakeAds()
    gate = RewardGate(ads)

    assert gate.present(GuardedAction.RESET_DAY) is AdOutcome.GRANTED
    assert gate.is_unlocked(GuardedAction.RESET_DAY)
    assert ads.requests == 1


def test_reviewer_override_bypasses_gate() -> None:
    reviewer = ReviewerOverride("791989")
    gate = RewardGate(reviewer=reviewer)

    assert reviewer.activate("000000") is False
    assert gate.requires_ad(GuardedAction.RAISE_BASE) is True

    assert reviewer.activate(" 791989 ") is True
    gate.ensure(GuardedAction.RAISE_BASE)
    assert gate.requires_ad(GuardedAction.RAISE_BASE) is False

    reviewer.reset()
    assert gate.requires_ad(GuardedAction.RAISE_BASE) is True


def test_reviewer_without_code_never_activates() -> None:
    assert ReviewerOverride().activate("") is False


def test_unguarded_actions_skip_ads() -> None:
    gate = RewardGate(guarded={GuardedAction.EARN_TIME})

    gate.ensure(GuardedAction.APPLY_EARNED_TIME)

    with pytest.raises(AdNotGrantedError):
        gate.ensure(GuardedAction.EARN_TIME)


def test_cancel_relocks() -> None:
    gate = RewardGate()
    gate.deliver(GuardedAction.RAISE_BASE, AdOutcome.GRANTED)

    assert gate.cancel(GuardedAction.RAISE_BASE) is True
    assert gate.cancel(GuardedAction.RAISE_BASE) is False
    assert not gate.is_unlocked(GuardedAction.RAISE_BASE)
