"""Tests for task agent prompt builders."""

from __future__ import annotations

from agentfork.core.prompts.task_agent_prompts import (
    ORCHESTRATOR_PROMPT,
    build_initial_message,
    build_summary_directive,
    build_task_agent_prompt,
    build_time_warning,
)


def test_task_agent_prompt_contains_task_and_instructions() -> None:
    prompt = build_task_agent_prompt("count files", "Count every .py file", base_prompt="BASE")

    assert prompt.startswith("BASE")
    assert "You are a task agent spawned to complete a specific task." in prompt
    assert "Your task: count files" in prompt
    assert "Detailed instructions: Count every .py file" in prompt
    assert "return_from_task" in prompt


def test_initial_message() -> None:
    assert build_initial_message("count files") == "Begin working on your task: count files"


def test_time_warning_default_lead() -> None:
    assert build_time_warning() == (
        "\n\nWARNING: Your time is almost up (less than 30 seconds remaining). "
        "Please summarize your progress and return soon."
    )


def test_time_warning_rounds_up_seconds() -> None:
    assert "less than 2 seconds" in build_time_warning(1500)


def test_summary_directive_names_task() -> None:
    directive = build_summary_directive("count files")
    assert directive.startswith("Your time is up.")
    assert '"count files"' in directive
    assert directive.endswith("Use the return_from_task tool now.")


def test_orchestrator_prompt_lists_restricted_tools() -> None:
    for name in ("task_agent", "task_tracker", "list_directory", "read_file"):
        assert name in ORCHESTRATOR_PROMPT
