"""Effect orchestration package.

Keep this module lightweight: `models` imports `effects.errors` while
`effects.transitions` imports `models`, so nothing beyond the errors is
imported eagerly here.
"""

from __future__ import annotations

import importlib

from .errors import (
    EffectError,
    MalformedNotificationError,
    SubmissionFailedError,
    UnconfiguredEndpointError,
    UnknownEffectKindError,
)

__all__ = [
    "EffectError",
    "MalformedNotificationError",
    "SubmissionFailedError",
    "UnconfiguredEndpointError",
    "UnknownEffectKindError",
]


_LAZY_EXPORTS = {
    # Orchestrator
    "EffectManager": ("effects.manager", "EffectManager"),
    # Outbound
    "ActionSubmitter": ("effects.submitter", "ActionSubmitter"),
    "SubmissionResult": ("effects.submitter", "SubmissionResult"),
    # Presentation contract
    "BACK": ("effects.presenter", "BACK"),
    "StepRequest": ("effects.presenter", "StepRequest"),
    "StepPresenter": ("effects.presenter", "StepPresenter"),
    "ScriptedPresenter": ("effects.presenter", "ScriptedPresenter"),
    "AsyncPresenter": ("effects.presenter", "AsyncPresenter"),
    # Transition table
    "EFFECTS": ("effects.transitions", "EFFECTS"),
    "EffectDefinition": ("effects.transitions", "EffectDefinition"),
    "get_definition": ("effects.transitions", "get_definition"),
    # Push frame routing
    "SnapshotRouter": ("effects.router", "SnapshotRouter"),
    # Headless scenarios
    "run_scenario": ("effects.scenario_runner", "run_scenario"),
}


def __getattr__(name: str):
    if name in _LAZY_EXPORTS:
        module_name, attr = _LAZY_EXPORTS[name]
        module = importlib.import_module(module_name)
        value = getattr(module, attr)
        globals()[name] = value
        if name not in __all__:
            __all__.append(name)
        return value
    raise AttributeError(f"module 'effects' has no attribute {name!r}")
