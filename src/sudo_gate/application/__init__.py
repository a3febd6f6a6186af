"""Application layer for the sudo gate - services, configuration and results."""

from sudo_gate.application.config import SudoGateConfig
from sudo_gate.application.default_rules import core_rules, default_rules, network_rules
from sudo_gate.application.registry import ActionRegistry
from sudo_gate.application.results import (
    ActivationCode,
    ActivationResult,
    ChallengeOutcome,
    ChallengeStatus,
    DecisionKind,
    GateDecision,
    ReplayInstruction,
)
from sudo_gate.application.session import ElevatedSessionService
from sudo_gate.application.stash import RequestStash
from sudo_gate.application.gate import Gate
from sudo_gate.application.challenge import ChallengeFlow

__all__ = [
    "SudoGateConfig",
    "core_rules",
    "default_rules",
    "network_rules",
    "ActionRegistry",
    "ActivationCode",
    "ActivationResult",
    "ChallengeOutcome",
    "ChallengeStatus",
    "DecisionKind",
    "GateDecision",
    "ReplayInstruction",
    "ElevatedSessionService",
    "RequestStash",
    "Gate",
    "ChallengeFlow",
]
