from __future__ import annotations

from casereview.reasoning.router import is_consistent, next_stage, route
from casereview.reasoning.stages import Stage, STAGE_ORDER
from casereview.reasoning.state import PartialReasoningState, ReasoningState


def test_next_stage_follows_array_population() -> None:
    state = ReasoningState(case_text="notes")
    assert next_stage(state) == Stage.SYMPTOMS

    state.apply(PartialReasoningState(symptoms=("insomnia",)))
    assert next_stage(state) == Stage.CRITERIA

    state.apply(PartialReasoningState(criteria_findings=("criterion A met",)))
    assert next_stage(state) == Stage.DIAGNOSES

    state.apply(PartialReasoningState(candidate_diagnoses=("GAD (F41.1)",)))
    assert next_stage(state) == Stage.TREATMENTS

    state.apply(PartialReasoningState(treatment_suggestions=("CBT",)))
    assert next_stage(state) == Stage.DONE
    assert state.current_stage == Stage.DONE


def test_next_stage_never_moves_backwards_on_append_only_lineage() -> None:
    state = ReasoningState(case_text="notes")
    order = list(STAGE_ORDER) + [Stage.DONE]
    previous = order.index(next_stage(state))

    updates = [
        PartialReasoningState(symptoms=("a",)),
        PartialReasoningState(symptoms=("b",)),
        PartialReasoningState(criteria_findings=("c",)),
        PartialReasoningState(candidate_diagnoses=("d",)),
        PartialReasoningState(criteria_findings=("late finding",)),
        PartialReasoningState(treatment_suggestions=("e",)),
        PartialReasoningState(symptoms=("late symptom",)),
    ]
    for update in updates:
        state.apply(update)
        current = order.index(next_stage(state))
        assert current >= previous
        previous = current


def test_next_stage_is_pure() -> None:
    state = ReasoningState(case_text="notes", symptoms=["a"])
    snapshot = state.copy()

    assert next_stage(state) == next_stage(state) == Stage.CRITERIA
    assert state == snapshot


def test_inconsistent_state_restarts_from_earliest_empty_stage() -> None:
    state = ReasoningState(
        case_text="notes",
        symptoms=["a"],
        candidate_diagnoses=["GAD"],
    )

    assert not is_consistent(state)
    assert route(state) == Stage.CRITERIA


def test_consistent_states() -> None:
    assert is_consistent(ReasoningState(case_text="x"))
    assert is_consistent(ReasoningState(case_text="x", symptoms=["a"], criteria_findings=["b"]))
