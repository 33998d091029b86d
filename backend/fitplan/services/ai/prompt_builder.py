"""Prompt text for plan generation, modification, and chat. No I/O."""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Sequence

from fitplan.domain.plan import DAY_NAMES, DAYS_PER_PLAN, DayPlan, WeeklyPlan
from fitplan.domain.profile import UserProfileSnapshot
from fitplan.services.ai.schemas import OutlineResponse

GOAL_LABELS = {
    "muscle_gain": "Build muscle (slight calorie surplus, progressive overload)",
    "weight_loss": "Lose fat (moderate calorie deficit, preserve muscle)",
    "general_fitness": "General fitness (maintenance calories, balanced training)",
    "endurance": "Improve endurance (aerobic base, higher carbohydrate intake)",
}

DAY_JSON_EXAMPLE = {
    "id": "day-id",
    "dayIndex": 0,
    "workout": {
        "id": "workout-id",
        "name": "Upper Body Push",
        "type": "strength|cardio|flexibility|rest",
        "durationMinutes": 45,
        "exercises": [
            {
                "id": "exercise-id",
                "name": "Push-up",
                "sets": 3,
                "reps": "10-12",
                "restSeconds": 90,
                "notes": "Form cues",
                "equipmentRequired": ["bodyweight"],
            }
        ],
    },
    "meals": [
        {
            "id": "meal-id",
            "name": "Greek Yogurt Bowl",
            "type": "breakfast|lunch|dinner|snack",
            "calories": 450,
            "protein": 30,
            "carbs": 50,
            "fat": 12,
            "ingredients": ["200g greek yogurt", "1 banana"],
            "instructions": "Brief preparation steps",
        }
    ],
}


@dataclass(frozen=True)
class DaySummary:
    """One-line recap of an already generated day, carried into later batch prompts."""

    day_index: int
    workout_type: str
    workout_name: str
    intensity: str

    @classmethod
    def from_day(cls, day: DayPlan, intensity: str) -> "DaySummary":
        workout_type = day.workout.type if day.workout else "rest"
        workout_name = day.workout.name if day.workout and day.workout.name else "Rest Day"
        return cls(day.day_index, workout_type, workout_name, intensity)

    def to_line(self) -> str:
        return f"- {DAY_NAMES[self.day_index]} (dayIndex {self.day_index}): {self.workout_name} [{self.workout_type}, {self.intensity}]"


def _format_equipment(profile: UserProfileSnapshot) -> str:
    if profile.equipment == "bodyweight":
        return "Bodyweight only (no equipment)"
    label = profile.equipment.replace("_", " ").title()
    if profile.equipment_details:
        return f"{label}: {', '.join(profile.equipment_details)}"
    return label


def _format_dietary(profile: UserProfileSnapshot) -> str:
    if not profile.dietary_restrictions:
        text = "No restrictions"
    else:
        text = ", ".join(item.replace("_", " ") for item in profile.dietary_restrictions)
    if profile.dietary_notes:
        text = f"{text} (Note: {profile.dietary_notes})"
    return text


def _profile_block(profile: UserProfileSnapshot) -> str:
    goal = GOAL_LABELS.get(profile.goal, profile.goal.replace("_", " "))
    lines = [
        f"Age: {profile.age}",
        f"Weight: {profile.weight_kg:g} kg",
        f"Height: {profile.height_cm:g} cm",
        f"BMI: {profile.bmi}",
    ]
    if profile.gender:
        lines.append(f"Gender: {profile.gender}")
    if profile.fitness_level:
        lines.append(f"Fitness level: {profile.fitness_level}")
    lines.append(f"Goal: {goal}")
    lines.append(f"Equipment: {_format_equipment(profile)}")
    lines.append(f"Dietary restrictions: {_format_dietary(profile)}")
    return "\n".join(lines)


def _constraints_block(profile: UserProfileSnapshot) -> str:
    return (
        "=== CRITICAL CONSTRAINTS ===\n"
        f"1. EQUIPMENT: ONLY use exercises possible with: {_format_equipment(profile)}. "
        "Every exercise must list its required equipment.\n"
        f"2. DIETARY: Every meal must respect: {_format_dietary(profile)}. "
        "Double-check ingredients for hidden allergens.\n"
        "3. SAFETY: Match volume and intensity to the user's level. Include warm-up cues in exercise notes.\n"
        "4. RECOVERY: Rest days have workout type \"rest\" and an EMPTY exercises array."
    )


def build_outline_prompt(profile: UserProfileSnapshot, *, plan_id: str, week_start: date) -> str:
    """Ask for the 7-day skeleton (workout type + intensity per day)."""
    example = {
        "planId": plan_id,
        "weekStartDate": week_start.isoformat(),
        "dayOutline": [
            {"dayIndex": 0, "workoutType": "strength", "intensity": "moderate", "focus": "Lower body"},
            {"dayIndex": 1, "workoutType": "cardio", "intensity": "low", "focus": "Zone 2 conditioning"},
        ],
    }
    return (
        "=== USER PROFILE ===\n"
        f"{_profile_block(profile)}\n\n"
        f"{_constraints_block(profile)}\n\n"
        "=== TASK: WEEKLY OUTLINE ===\n"
        f"Design the skeleton of a 7-day plan starting Monday {week_start.isoformat()}.\n"
        "- Declare one workout type per day: strength, cardio, flexibility, or rest.\n"
        "- Declare an intensity per day: low, moderate, or high (rest days use low).\n"
        "- Include 1-2 rest days and avoid two high-intensity days in a row.\n"
        "- Only plan workouts the user's equipment allows.\n\n"
        "=== REQUIRED OUTPUT FORMAT ===\n"
        "Respond with ONLY a JSON object shaped like this example, with exactly 7 dayOutline entries "
        "(dayIndex 0-6, Monday-Sunday):\n"
        f"{json.dumps(example, indent=2)}"
    )


def build_batch_prompt(
    profile: UserProfileSnapshot,
    outline: OutlineResponse,
    previous_days: Sequence[DaySummary],
    *,
    start_index: int,
    end_index: int,
    week_start: date,
) -> str:
    """Ask for fully detailed days ``start_index..end_index`` (inclusive)."""
    outline_lines = []
    for entry in outline.day_outline:
        focus = f" - {entry.focus}" if entry.focus else ""
        outline_lines.append(
            f"- dayIndex {entry.day_index} ({DAY_NAMES[entry.day_index]}): {entry.workout_type}, {entry.intensity}{focus}"
        )
    previous = "\n".join(summary.to_line() for summary in previous_days) or "None yet (this is the first batch)."
    requested = []
    for day_index in range(start_index, end_index + 1):
        entry = outline.day_outline[day_index]
        day_date = week_start + timedelta(days=day_index)
        requested.append(
            f"- dayIndex {day_index} ({DAY_NAMES[day_index]} {day_date.isoformat()}): "
            f"workout type MUST be \"{entry.workout_type}\" at {entry.intensity} intensity"
        )
    count = end_index - start_index + 1
    return (
        "=== USER PROFILE ===\n"
        f"{_profile_block(profile)}\n\n"
        f"{_constraints_block(profile)}\n\n"
        "=== WEEKLY OUTLINE (already agreed, do not change) ===\n"
        + "\n".join(outline_lines)
        + "\n\n=== DAYS ALREADY GENERATED ===\n"
        f"{previous}\n"
        "Keep variety: do not repeat the same main lifts or meals from the days above.\n\n"
        f"=== TASK: GENERATE {count} DAY(S) ===\n"
        + "\n".join(requested)
        + "\n- Include 3 main meals (breakfast, lunch, dinner) per day, optionally one snack.\n"
        "- Protein 1.6-2.2 g/kg bodyweight for muscle gain, 1.2-1.6 g/kg for fat loss.\n\n"
        "=== REQUIRED OUTPUT FORMAT ===\n"
        f"Respond with ONLY a JSON object {{\"days\": [...]}} containing exactly these {count} day(s). "
        "Each day must follow this shape:\n"
        f"{json.dumps(DAY_JSON_EXAMPLE, indent=2)}"
    )


def build_generation_prompt(profile: UserProfileSnapshot, *, plan_id: str, week_start: date) -> str:
    """Single-shot prompt for a full 7-day plan."""
    return (
        "=== USER PROFILE ===\n"
        f"{_profile_block(profile)}\n\n"
        f"{_constraints_block(profile)}\n\n"
        "=== WORKOUT PROGRAMMING GUIDELINES ===\n"
        "- Strength: 3-5 sets of 8-12 reps for hypertrophy, 3-6 reps for strength.\n"
        "- Cardio: 20-45 minutes, moderate to high intensity.\n"
        "- Rest between sets: 60-90 seconds for hypertrophy, 2-3 minutes for strength.\n"
        "- 1-2 rest days per week.\n\n"
        "=== MEAL PLANNING GUIDELINES ===\n"
        "- 3 main meals per day (breakfast, lunch, dinner), optionally one snack.\n"
        "- Calories: surplus for muscle gain, moderate deficit for weight loss, maintenance otherwise.\n\n"
        "=== REQUIRED OUTPUT FORMAT ===\n"
        f"Respond with ONLY a JSON object {{\"id\": \"{plan_id}\", \"days\": [...]}} with ALL 7 days "
        f"(dayIndex 0-6, Monday {week_start.isoformat()} to Sunday). Each day must follow this shape:\n"
        f"{json.dumps(DAY_JSON_EXAMPLE, indent=2)}"
    )


def summarize_plan(plan: WeeklyPlan) -> str:
    lines = []
    for day in plan.days:
        if day.is_rest_day:
            workout = "Rest Day"
        else:
            workout = f"{day.workout.name} [{day.workout.type}, {len(day.exercises)} exercises]"
        meals = ", ".join(f"{meal.id}: {meal.name}" for meal in day.meals) or "no meals"
        lines.append(f"- dayIndex {day.day_index} ({day.day_name} {day.date.isoformat()}): {workout}; meals: {meals}")
    return "\n".join(lines)


def build_partial_modification_prompt(plan: WeeklyPlan, request: str) -> str:
    """Embed the current plan and the user's request; ask for changed days only."""
    profile = plan.profile_snapshot
    example = {
        "modificationType": "dayReplacement|workoutUpdate|mealUpdate|rejected",
        "modifiedDays": [DAY_JSON_EXAMPLE],
        "explanation": "One or two friendly sentences describing the change",
    }
    current_days = json.dumps([day.to_document() for day in plan.days], indent=1)
    return (
        "A user wants to modify their existing weekly plan.\n\n"
        "=== USER PROFILE (at plan creation) ===\n"
        f"{_profile_block(profile)}\n\n"
        f"{_constraints_block(profile)}\n\n"
        "=== CURRENT PLAN SUMMARY ===\n"
        f"Plan ID: {plan.id}\n"
        f"Week: {plan.start_date.isoformat()} to {plan.end_date.isoformat()}\n"
        f"{summarize_plan(plan)}\n\n"
        "=== CURRENT PLAN DAYS (JSON) ===\n"
        f"{current_days}\n\n"
        "=== USER'S MODIFICATION REQUEST ===\n"
        f"\"{request.strip()}\"\n\n"
        "=== YOUR TASK ===\n"
        "- Return ONLY the days that change, each as a COMPLETE day (workout and all meals).\n"
        "- Keep the dayIndex of every changed day; keep unchanged meals and exercises with their ids.\n"
        "- Use modificationType \"workoutUpdate\" for workout-only edits, \"mealUpdate\" for meal-only edits, "
        "and \"dayReplacement\" otherwise.\n"
        "- If the request is unsafe, violates the constraints above, or is not about this plan, respond with "
        "modificationType \"rejected\", an empty modifiedDays array, and explain why.\n\n"
        "=== REQUIRED OUTPUT FORMAT ===\n"
        f"Respond with ONLY a JSON object shaped like this (at most {DAYS_PER_PLAN} modifiedDays):\n"
        f"{json.dumps(example, indent=2)}"
    )


def build_chat_prompt(message: str, plan: Optional[WeeklyPlan] = None) -> str:
    context = summarize_plan(plan) if plan is not None else "The user has no active plan yet."
    return (
        "=== USER'S CURRENT WEEK ===\n"
        f"{context}\n\n"
        "=== USER MESSAGE ===\n"
        f"\"{message.strip()}\"\n\n"
        "Reply conversationally in at most 3 sentences. If the user asks to change the plan, "
        "tell them to phrase it as a modification request such as 'swap Wednesday's workout for yoga'."
    )
