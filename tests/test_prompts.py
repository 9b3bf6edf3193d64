import pytest

from healthmate.prompts import PLAN_SECTIONS, build_diet_prompt, load_system_prompt, plan_system_prompt


def test_prompt_without_preferences_is_just_the_goal():
    prompt = build_diet_prompt("  I want to lose 5kg  ", [], [])

    assert prompt == "I want to lose 5kg"
    assert "Avoid" not in prompt


def test_prompt_lists_every_allergy_and_dislike_lowercase():
    prompt = build_diet_prompt(
        "High protein please",
        allergies=["Peanuts", "GLUTEN"],
        dislikes={"Broccoli", "tofu"},
    )

    assert prompt.startswith("High protein please")
    assert "Avoid allergens: gluten, peanuts." in prompt
    assert "Avoid disliked foods: broccoli, tofu." in prompt


def test_prompt_only_adds_clauses_for_nonempty_sets():
    prompt = build_diet_prompt("Vegetarian plan", allergies=["shellfish"])

    assert "Avoid allergens: shellfish." in prompt
    assert "disliked foods" not in prompt


def test_prompt_is_deterministic_and_deduplicated():
    first = build_diet_prompt("goal", ["b", "A", "a"], ["z", " Y "])
    second = build_diet_prompt("goal", ["a", "b"], ["y", "z"])

    assert first == second
    assert "Avoid allergens: a, b." in first


def test_full_plan_prompt_names_all_four_sections():
    prompt = plan_system_prompt()

    for section in PLAN_SECTIONS:
        assert section in prompt


@pytest.mark.parametrize("section", PLAN_SECTIONS)
def test_section_prompt_targets_one_section(section):
    prompt = plan_system_prompt(section)

    assert f"{section} only" in prompt
    assert "2-3 alternative options" in prompt


def test_unknown_section_is_rejected():
    with pytest.raises(ValueError):
        plan_system_prompt("Brunch")


def test_structured_prompt_asks_for_json_array():
    prompt = load_system_prompt("structured_suggestions")

    assert "JSON array" in prompt
    for category in ("breakfast", "lunch", "dinner", "snack", "lifestyle"):
        assert f"- {category}:" in prompt
