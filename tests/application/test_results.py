"""
Tests for result types and replay helpers.
"""

from datetime import datetime, timezone

from sudo_gate.application.results import (
    ActivationCode,
    ActivationResult,
    ChallengeOutcome,
    ChallengeStatus,
    DecisionKind,
    GateDecision,
    ReplayInstruction,
    flatten_fields,
)
from sudo_gate.domain.rules import AsyncRpcMatcher, Rule
from sudo_gate.domain.value_objects import ResponseMutations


def test_flatten_nested_structures():
    data = {"a": {"b": ["x", "y"]}, "c": "1", "d": None}
    assert flatten_fields(data) == [
        ("a[b][0]", "x"),
        ("a[b][1]", "y"),
        ("c", "1"),
        ("d", ""),
    ]


def test_flatten_keeps_repeated_fields():
    data = {"checked[]": ["a.php", "b.php"], "action": "delete-selected"}
    assert flatten_fields(data) == [
        ("checked[]", "a.php"),
        ("checked[]", "b.php"),
        ("action", "delete-selected"),
    ]


def test_flatten_keeps_empty_containers():
    data = {"tags[]": [], "meta": {}, "nested": {"ids": []}, "keep": "1"}
    assert flatten_fields(data) == [
        ("tags[]", ""),
        ("meta", ""),
        ("nested[ids]", ""),
        ("keep", "1"),
    ]


def test_flatten_empty_body():
    assert flatten_fields({}) == []


def test_flatten_scalars():
    assert flatten_fields({"n": 3, "flag": True}) == [("n", "3"), ("flag", "True")]


def test_replay_instruction_kind():
    assert ReplayInstruction("r", "GET", "/x").is_redirect
    assert ReplayInstruction("r", "head", "/x").is_redirect
    assert not ReplayInstruction("r", "POST", "/x").is_redirect


def test_activation_result_to_dict():
    expires = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert ActivationResult.success(expires, ResponseMutations()).to_dict() == {
        "code": "success",
        "expires_at": expires.isoformat(),
    }
    assert ActivationResult.locked_out(120).to_dict() == {
        "code": "locked_out",
        "remaining": 120,
    }
    assert ActivationResult.not_allowed().code == ActivationCode.NOT_ALLOWED
    assert not ActivationResult.invalid_password(2).is_success


def test_gate_decisions():
    rule = Rule(
        id="plugin.delete",
        label="Delete plugin",
        category="plugins",
        async_rpc=AsyncRpcMatcher("delete-plugin"),
    )

    assert GateDecision.proceed().allowed
    challenge = GateDecision.challenge(rule, "/sudo/challenge?stash_key=k", "k")
    assert challenge.kind == DecisionKind.CHALLENGE
    assert challenge.status_code == 302

    blocked = GateDecision.soft_block(rule, "nope", 403)
    assert blocked.body == {"code": "sudo_required", "rule_id": "plugin.delete", "message": "nope"}

    policy = GateDecision.policy_block(None, "sudo_disabled", "off")
    assert policy.status_code == 403
    assert policy.body["code"] == "sudo_disabled"


def test_challenge_outcome_to_dict():
    post = ChallengeOutcome(
        status=ChallengeStatus.COMPLETE,
        replay=ReplayInstruction("plugin.delete", "POST", "/p", {"ids[]": ["1", "2"]}),
    )
    assert post.to_dict() == {
        "code": "complete",
        "replay": {
            "method": "POST",
            "url": "/p",
            "fields": [("ids[]", "1"), ("ids[]", "2")],
        },
    }

    fallback = ChallengeOutcome(status=ChallengeStatus.COMPLETE, redirect_url="/")
    assert fallback.to_dict() == {"code": "complete", "redirect": "/"}

    pending = ChallengeOutcome(status=ChallengeStatus.TWO_FACTOR_REQUIRED)
    assert pending.to_dict() == {"code": "2fa_required"}
    assert not pending.is_complete
